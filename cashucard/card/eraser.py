"""Erasing token data by zeroing every data block."""

import logging
from dataclasses import dataclass, field
from itertools import islice
from typing import Optional

from .addresser import BlockAddresser
from .device import DEFAULT_LPR_KEY, BlockDevice, SectorKey
from .errors import AuthError, PreconditionError, StorageError, WriteError
from .mifare import CardGeometry

logger = logging.getLogger(__name__)


@dataclass
class EraseResult:
    """Outcome of an erase pass. Partial erasure is a normal outcome."""
    block_size: int
    blocks: list[int] = field(default_factory=list)
    stopped_at: Optional[int] = None
    error: Optional[StorageError] = None

    @property
    def bytes_erased(self) -> int:
        return len(self.blocks) * self.block_size

    @property
    def complete(self) -> bool:
        return self.error is None

    @property
    def last_block(self) -> Optional[int]:
        """
        Last block of the erased extent.

        When a failure stopped the pass this is the block just before the
        failing one, which may be a trailer (trailers are never written).
        """
        if self.stopped_at is not None:
            return self.stopped_at - 1
        return self.last_erased

    @property
    def last_erased(self) -> Optional[int]:
        return self.blocks[-1] if self.blocks else None

    def to_dict(self) -> dict:
        return {
            "blocks": self.blocks,
            "bytes_erased": self.bytes_erased,
            "last_block": self.last_block,
            "last_erased": self.last_erased,
            "stopped_at": self.stopped_at,
            "complete": self.complete,
            "error": str(self.error) if self.error else None,
        }


def erase(device: BlockDevice, geometry: CardGeometry, key: SectorKey = DEFAULT_LPR_KEY,
          limit: Optional[int] = None, start_block: Optional[int] = None) -> EraseResult:
    """
    Overwrite data blocks with zeros from `start_block` (the geometry's
    start block when None) onwards.

    Stops at the first failing write or authentication, at the end of the
    geometry, or once `limit` bytes are erased. Nothing is retried.

    Raises:
        PreconditionError: `limit` is smaller than one block.
    """
    size = geometry.block_size
    if limit is not None and limit < size:
        raise PreconditionError(f"Erase limit of {limit} bytes is smaller than one {size}-byte block")

    count = None if limit is None else limit // size
    result = EraseResult(block_size=size)
    zeros = bytes(size)
    addresser = BlockAddresser(device, geometry, key, start_block)
    try:
        for block in islice(addresser.blocks(), count):
            device.write(block, zeros, size)
            result.blocks.append(block)
    except (WriteError, AuthError) as e:
        # A failing block ends the pass; the extent erased so far is the result.
        result.stopped_at = e.block
        result.error = e
        logger.warning(f"Erase stopped at block {e.block}: {e}")

    logger.info(f"Erased {result.bytes_erased} bytes in {len(result.blocks)} blocks")
    return result
