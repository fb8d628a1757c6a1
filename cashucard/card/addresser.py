"""
Logical-to-physical block addressing.

Token data is a run of logical blocks. On the card it starts at the
geometry's start block and skips every sector trailer:

    logical   0  1  2     3  4  5     6 ...
    physical  4  5  6 (7) 8  9 10 (11) 12 ...

Each sector must be authenticated before its first block is touched. The
addresser authenticates once per sector per pass, always against the first
block of the sector.
"""

import logging
from itertools import islice
from typing import Iterator, Optional

from .device import BlockDevice, SectorKey
from .errors import AuthError, PreconditionError, ReadError
from .mifare import CardGeometry

logger = logging.getLogger(__name__)


def plan(geometry: CardGeometry, count: int, start_block: Optional[int] = None) -> list[int]:
    """
    Return the physical blocks that hold `count` logical data blocks.

    Raises:
        PreconditionError: the card does not have that many data blocks.
    """
    blocks = geometry.data_blocks(start_block)
    if count > len(blocks):
        raise PreconditionError(
            f"{geometry.name} has {len(blocks)} data blocks, {count} requested"
        )
    return blocks[:count]


class BlockAddresser:
    """Walks the data blocks of one card for a single read, write or scan pass."""

    def __init__(self, device: BlockDevice, geometry: CardGeometry, key: SectorKey,
                 start_block: Optional[int] = None):
        self.device = device
        self.geometry = geometry
        self.key = key
        self.start_block = geometry.start_block if start_block is None else start_block
        self._sector: Optional[int] = None

    def blocks(self) -> Iterator[int]:
        """Yield data blocks to the end of the card, unlocking each sector on entry."""
        for block in self.geometry.data_blocks(self.start_block):
            self._enter(block)
            yield block

    def _enter(self, block: int):
        if not self.geometry.sectored:
            return
        sector = self.geometry.block_to_sector(block)
        if sector == self._sector:
            return
        first = self.geometry.sector_to_block(sector)
        logger.debug(f"Authenticating sector {sector} at block {first} with key {self.key.key_type.name}")
        try:
            self.device.authenticate(first, self.key.key_type, self.key.key)
        except AuthError as e:
            raise AuthError(
                f"Authentication failed for sector {sector} at block {first}: {e}",
                block=first,
            ) from e
        self._sector = sector

    def read_blocks(self, count: Optional[int] = None) -> Iterator[tuple[int, bytes]]:
        """Yield (block, data) for up to `count` data blocks (all when None)."""
        size = self.geometry.block_size
        for block in islice(self.blocks(), count):
            data = self.device.read(block, size)
            if len(data) < size:
                raise ReadError(f"Block {block} returned {len(data)} of {size} bytes", block=block)
            # Some readers return a whole 16-byte frame for 4-byte pages
            yield block, bytes(data[:size])

    def write(self, buffer: bytes) -> list[int]:
        """
        Write a block-aligned buffer starting at the start block.

        Returns:
            The physical blocks written, in order.
        """
        size = self.geometry.block_size
        if len(buffer) % size:
            raise PreconditionError(f"Buffer of {len(buffer)} bytes is not aligned to {size}-byte blocks")
        count = len(buffer) // size
        plan(self.geometry, count, self.start_block)

        written = []
        for i, block in enumerate(islice(self.blocks(), count)):
            self.device.write(block, buffer[i * size:(i + 1) * size], size)
            written.append(block)
        logger.debug(f"Wrote {len(buffer)} bytes to blocks {written}")
        return written
