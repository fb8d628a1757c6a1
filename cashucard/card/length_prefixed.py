"""
Length-prefixed raw card format.

Layout from the start block onwards (trailers skipped):

    | 4 ASCII hex chars | payload ............ | 00 00 ... |
    | payload length    | N bytes              | pad       |

The header is the zero-padded lowercase hex length, e.g. "000a" for ten
bytes, so at most 0xFFFF payload bytes can be stored. The buffer is padded
with zero bytes to the next block boundary; an already aligned buffer gets
one whole block of padding.
"""

import logging
import string
from typing import Optional, Union

from .addresser import BlockAddresser
from .device import DEFAULT_LPR_KEY, BlockDevice, SectorKey
from .errors import NotATokenError, PreconditionError, ShortReadError
from .mifare import CardGeometry

logger = logging.getLogger(__name__)

HEADER_LENGTH = 4
MAX_PAYLOAD_LENGTH = 0xFFFF


def _as_bytes(blob: Union[str, bytes]) -> bytes:
    if isinstance(blob, str):
        return blob.encode("utf-8")
    return bytes(blob)


def frame(blob: Union[str, bytes], block_size: int) -> bytes:
    """Build the padded, block-aligned buffer for a payload."""
    payload = _as_bytes(blob)
    if len(payload) > MAX_PAYLOAD_LENGTH:
        raise PreconditionError(
            f"Payload of {len(payload)} bytes exceeds the {MAX_PAYLOAD_LENGTH}-byte header limit"
        )
    framed = f"{len(payload):04x}".encode("ascii") + payload
    pad = block_size - (len(framed) % block_size)
    return framed + bytes(pad)


def is_header(data: bytes) -> bool:
    """Check whether data starts with a length header."""
    header = bytes(data[:HEADER_LENGTH])
    return len(header) == HEADER_LENGTH and all(chr(b) in string.hexdigits for b in header)


def parse_header(data: bytes) -> int:
    """Return the payload length declared by the first 4 bytes of a card."""
    header = bytes(data[:HEADER_LENGTH])
    if len(header) < HEADER_LENGTH:
        raise NotATokenError(f"Length header needs {HEADER_LENGTH} bytes, got {len(header)}")
    if not is_header(header):
        raise NotATokenError(f"Invalid length header {header!r}")
    return int(header.decode("ascii"), 16)


def write(device: BlockDevice, geometry: CardGeometry, blob: Union[str, bytes],
          key: SectorKey = DEFAULT_LPR_KEY, capacity: Optional[int] = None) -> list[int]:
    """
    Write a payload to the card.

    Args:
        device: Block device for the card.
        geometry: Layout of the card family.
        blob: Payload; strings are stored UTF-8 encoded.
        key: Sector key.
        capacity: Usable bytes on this card (from a probe). Defaults to the
            geometry's nominal capacity.

    Returns:
        The physical blocks written.
    """
    buffer = frame(blob, geometry.block_size)
    limit = geometry.capacity() if capacity is None else capacity
    if len(buffer) > limit:
        raise PreconditionError(f"Token needs {len(buffer)} bytes, card holds {limit}")

    logger.info(f"Writing {len(buffer)} bytes to {geometry.name} from block {geometry.start_block}")
    return BlockAddresser(device, geometry, key).write(buffer)


def read(device: BlockDevice, geometry: CardGeometry, key: SectorKey = DEFAULT_LPR_KEY) -> bytes:
    """
    Read a payload back from the card.

    Reads only as many blocks as the header asks for. Read and authentication
    failures propagate with their block number.

    Raises:
        ShortReadError: the header declares more bytes than the card holds.
        NotATokenError: the header is not a hex length.
    """
    collected = bytearray()
    expected = None
    for block, data in BlockAddresser(device, geometry, key).read_blocks():
        collected += data
        if expected is None and len(collected) >= HEADER_LENGTH:
            expected = parse_header(collected)
            logger.debug(f"Length header at block {block} declares {expected} bytes")
        if expected is not None and len(collected) >= HEADER_LENGTH + expected:
            return bytes(collected[HEADER_LENGTH:HEADER_LENGTH + expected])

    if expected is None:
        raise NotATokenError("Card is too small to hold a length header")
    raise ShortReadError(expected, len(collected) - HEADER_LENGTH)
