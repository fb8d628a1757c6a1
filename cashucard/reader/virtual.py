"""
In-memory card that behaves like a MIFARE card behind a reader.

Sector keys are checked against the trailer blocks, blocks can only be read
or written once their sector is authenticated, and failures can be injected
per block. Every call is recorded in `calls` so tests can assert on the
exact block traffic.
"""

import logging
from typing import Optional

from cashucard.card.errors import AuthError, ReadError, TransportError, WriteError
from cashucard.card.mifare import (
    MIFARE_CLASSIC_1K, CardGeometry, KeyType, DEFAULT_KEY,
    build_sector_trailer, parse_sector_trailer,
)

logger = logging.getLogger(__name__)


class VirtualCard:
    """A card that lives in a bytearray."""

    def __init__(self, geometry: CardGeometry = MIFARE_CLASSIC_1K, total_blocks: Optional[int] = None):
        self.geometry = geometry
        self.total_blocks = geometry.total_blocks if total_blocks is None else total_blocks
        self.memory = bytearray(self.total_blocks * geometry.block_size)
        self.fail_auth: set[int] = set()
        self.fail_read: set[int] = set()
        self.fail_write: set[int] = set()
        self.present = True
        self.calls: list[tuple[str, int]] = []
        self._sector: Optional[int] = None

        if geometry.sectored:
            for sector in range(self.total_blocks // geometry.blocks_per_sector):
                self.set_sector_keys(sector, DEFAULT_KEY, DEFAULT_KEY)

    # ──────────────────────────────────────────────
    # Test helpers
    # ──────────────────────────────────────────────

    def set_sector_keys(self, sector: int, key_a: bytes, key_b: bytes):
        """Rewrite a sector trailer with new keys."""
        trailer = self.geometry.sector_trailer_block(sector)
        self._store(trailer, build_sector_trailer(key_a, key_b))

    def block(self, block: int) -> bytes:
        """Return the raw content of a block, bypassing authentication."""
        size = self.geometry.block_size
        return bytes(self.memory[block * size:(block + 1) * size])

    def blocks_called(self, operation: str) -> list[int]:
        """Block numbers passed to `operation` ("authenticate", "read" or "write")."""
        return [block for op, block in self.calls if op == operation]

    def _store(self, block: int, data: bytes):
        size = self.geometry.block_size
        self.memory[block * size:block * size + len(data)] = data

    def _check_present(self):
        if not self.present:
            raise TransportError("Card removed from reader")

    def _check_access(self, block: int, error: type, failures: set[int]):
        if block >= self.total_blocks or block in failures:
            raise error(f"Block {block} not accessible", block=block)
        if self.geometry.sectored and self._sector != self.geometry.block_to_sector(block):
            raise error(f"Sector of block {block} not authenticated", block=block)

    # ──────────────────────────────────────────────
    # Block device interface
    # ──────────────────────────────────────────────

    def authenticate(self, block: int, key_type: KeyType, key: bytes) -> None:
        self._check_present()
        self.calls.append(("authenticate", block))
        self._sector = None
        if not self.geometry.sectored:
            return
        if block >= self.total_blocks or block in self.fail_auth:
            raise AuthError(f"Authentication rejected at block {block}", block=block)

        sector = self.geometry.block_to_sector(block)
        trailer_block = self.geometry.sector_trailer_block(sector)
        if trailer_block >= self.total_blocks:
            raise AuthError(f"Sector {sector} is not on this card", block=block)
        trailer = parse_sector_trailer(self.block(trailer_block))
        expected = trailer["key_a"] if key_type == KeyType.A else trailer["key_b"]
        if bytes(key) != expected:
            raise AuthError(f"Wrong key {KeyType(key_type).name} for sector {sector}", block=block)
        self._sector = sector

    def read(self, block: int, length: int) -> bytes:
        self._check_present()
        self.calls.append(("read", block))
        self._check_access(block, ReadError, self.fail_read)
        start = block * self.geometry.block_size
        return bytes(self.memory[start:start + length])

    def write(self, block: int, data: bytes, length: int) -> None:
        self._check_present()
        self.calls.append(("write", block))
        self._check_access(block, WriteError, self.fail_write)
        if len(data) < length:
            raise WriteError(f"Block {block} needs {length} bytes, got {len(data)}", block=block)
        self._store(block, bytes(data[:length]))
        logger.debug(f"Virtual write block {block}: {bytes(data[:length]).hex()}")

    def __repr__(self) -> str:
        return f"VirtualCard({self.geometry.name}, {self.total_blocks} blocks)"
