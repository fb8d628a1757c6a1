"""Capacity probing: count the data blocks a card will actually read."""

import logging
from typing import Optional

from .addresser import BlockAddresser
from .device import DEFAULT_LPR_KEY, BlockDevice, SectorKey
from .errors import AuthError, ReadError
from .mifare import CardGeometry

logger = logging.getLogger(__name__)


def probe_capacity(device: BlockDevice, geometry: CardGeometry,
                   key: SectorKey = DEFAULT_LPR_KEY, start_block: Optional[int] = None) -> int:
    """
    Return the number of usable bytes on the inserted card.

    Reads one block at a time from the start block until a read or an
    authentication fails, or the geometry ends. The capacity is only valid for
    this card; probe again after a card swap.
    """
    addresser = BlockAddresser(device, geometry, key, start_block=start_block)
    blocks_read = 0
    try:
        for _ in addresser.read_blocks():
            blocks_read += 1
    except (ReadError, AuthError) as e:
        # Expected: the first unreadable block is the end of the usable area.
        # TransportError and anything else still propagate.
        logger.debug(f"Probe stopped at block {e.block}: {e}")

    capacity = blocks_read * geometry.block_size
    logger.info(f"Card capacity: {capacity} bytes in {blocks_read} blocks")
    return capacity
