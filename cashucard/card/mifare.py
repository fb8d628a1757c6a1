"""
Card geometry for the memory cards a token can be stored on.

A MIFARE Classic 1K card has:
- 16 sectors (0-15)
- 4 blocks per sector (64 blocks total, numbered 0-63)
- 16 bytes per block (1024 bytes total)
- Block 0: manufacturer data (read-only, contains UID)
- Every 4th block (3, 7, 11, ...): sector trailer (Key A + access bits + Key B)

Sector 0 is never used for token data; storage starts at block 4.

MIFARE Ultralight cards are not sectored: 16 pages of 4 bytes, no trailers and
no authentication. Pages 0-3 hold the UID, lock bytes and OTP area, so user
data starts at page 4.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional


class KeyType(IntEnum):
    """MIFARE authentication key selector, as sent in GENERAL AUTHENTICATE."""
    A = 0x60
    B = 0x61


# Sector trailer layout within a 16-byte block
KEY_A_OFFSET = 0
KEY_A_LENGTH = 6
ACCESS_BITS_OFFSET = 6
ACCESS_BITS_LENGTH = 4
KEY_B_OFFSET = 10
KEY_B_LENGTH = 6

KEY_LENGTH = 6

# Transport key shipped on blank cards
DEFAULT_KEY = bytes([0xFF] * KEY_LENGTH)

# Access bits of a blank card (transport configuration)
TRANSPORT_ACCESS_BITS = bytes([0xFF, 0x07, 0x80, 0x69])


@dataclass(frozen=True)
class CardGeometry:
    """Physical layout of a card family."""
    name: str
    block_size: int
    blocks_per_sector: int      # 0 = not sectored (no trailers, no auth)
    total_blocks: int
    start_block: int            # First block used for token data

    @property
    def sectored(self) -> bool:
        return self.blocks_per_sector > 0

    def is_sector_trailer(self, block: int) -> bool:
        """Check if a block number is a sector trailer."""
        if not self.sectored:
            return False
        return block % self.blocks_per_sector == self.blocks_per_sector - 1

    def block_to_sector(self, block: int) -> int:
        """Return the sector number for a given block (0 on unsectored cards)."""
        if not self.sectored:
            return 0
        return block // self.blocks_per_sector

    def sector_to_block(self, sector: int) -> int:
        """Return the first block number for a given sector."""
        return sector * self.blocks_per_sector

    def sector_trailer_block(self, sector: int) -> int:
        """Return the sector trailer block number for a given sector."""
        return self.sector_to_block(sector) + self.blocks_per_sector - 1

    def data_blocks(self, start_block: Optional[int] = None) -> list[int]:
        """Return all data block numbers from start_block, excluding sector trailers."""
        start = self.start_block if start_block is None else start_block
        return [b for b in range(start, self.total_blocks) if not self.is_sector_trailer(b)]

    def capacity(self, start_block: Optional[int] = None) -> int:
        """Usable bytes from start_block to the end of the card."""
        return len(self.data_blocks(start_block)) * self.block_size


MIFARE_CLASSIC_1K = CardGeometry(
    name="MIFARE Classic 1K",
    block_size=16,
    blocks_per_sector=4,
    total_blocks=64,
    start_block=4,
)

MIFARE_MINI = CardGeometry(
    name="MIFARE Mini",
    block_size=16,
    blocks_per_sector=4,
    total_blocks=20,
    start_block=4,
)

MIFARE_ULTRALIGHT = CardGeometry(
    name="MIFARE Ultralight",
    block_size=4,
    blocks_per_sector=0,
    total_blocks=16,
    start_block=4,
)

GEOMETRIES = {
    "mifare_classic_1k": MIFARE_CLASSIC_1K,
    "mifare_mini": MIFARE_MINI,
    "mifare_ultralight": MIFARE_ULTRALIGHT,
}


def get_geometry(card_type: str) -> CardGeometry:
    """Look up a geometry by its configuration name."""
    try:
        return GEOMETRIES[card_type.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown card type {card_type!r}, expected one of {sorted(GEOMETRIES)}"
        ) from None


def parse_sector_trailer(data: bytes) -> dict:
    """
    Parse a 16-byte sector trailer block.

    Returns dict with key_a, access_bits, and key_b as bytes.
    """
    if len(data) != MIFARE_CLASSIC_1K.block_size:
        raise ValueError(
            f"Sector trailer must be {MIFARE_CLASSIC_1K.block_size} bytes, got {len(data)}"
        )
    return {
        "key_a": data[KEY_A_OFFSET:KEY_A_OFFSET + KEY_A_LENGTH],
        "access_bits": data[ACCESS_BITS_OFFSET:ACCESS_BITS_OFFSET + ACCESS_BITS_LENGTH],
        "key_b": data[KEY_B_OFFSET:KEY_B_OFFSET + KEY_B_LENGTH],
    }


def build_sector_trailer(key_a: bytes = DEFAULT_KEY, key_b: bytes = DEFAULT_KEY,
                         access_bits: bytes = TRANSPORT_ACCESS_BITS) -> bytes:
    """Build a 16-byte sector trailer block from its parts."""
    if len(key_a) != KEY_A_LENGTH or len(key_b) != KEY_B_LENGTH:
        raise ValueError(f"Keys must be {KEY_LENGTH} bytes")
    if len(access_bits) != ACCESS_BITS_LENGTH:
        raise ValueError(f"Access bits must be {ACCESS_BITS_LENGTH} bytes")
    return key_a + access_bits + key_b


def parse_key(key_hex: str) -> bytes:
    """Parse a 12-character hex key (e.g. "FFFFFFFFFFFF")."""
    key = bytes.fromhex(key_hex.replace(" ", ""))
    if len(key) != KEY_LENGTH:
        raise ValueError(f"Key must be {KEY_LENGTH} bytes, got {len(key)}")
    return key
