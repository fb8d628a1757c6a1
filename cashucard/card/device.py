"""
Block device contract and sector keys.

A block device is whatever talks to the card: a PC/SC reader, or the
in-memory VirtualCard used in tests. Implementations raise AuthError,
ReadError or WriteError for card-level failures and TransportError when
the reader itself is gone.
"""

from dataclasses import dataclass
from typing import Protocol

from .mifare import DEFAULT_KEY, KEY_LENGTH, KeyType


class BlockDevice(Protocol):
    def authenticate(self, block: int, key_type: KeyType, key: bytes) -> None:
        ...

    def read(self, block: int, length: int) -> bytes:
        ...

    def write(self, block: int, data: bytes, length: int) -> None:
        ...


@dataclass(frozen=True)
class SectorKey:
    """Key used to unlock every sector touched by one operation."""
    key_type: KeyType
    key: bytes

    def __post_init__(self):
        if len(self.key) != KEY_LENGTH:
            raise ValueError(f"Sector key must be {KEY_LENGTH} bytes, got {len(self.key)}")


# Length-prefixed cards are written with key A, NDEF cards with key B
DEFAULT_LPR_KEY = SectorKey(KeyType.A, DEFAULT_KEY)
DEFAULT_NDEF_KEY = SectorKey(KeyType.B, DEFAULT_KEY)
