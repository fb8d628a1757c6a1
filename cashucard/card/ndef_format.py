"""
NDEF card format, readable by generic NFC tools.

The token is stored as a single NDEF Text record inside an NDEF message
TLV, the way NFC Forum tags lay out their data area:

    | 03 | len | NDEF message (Text record) | FE | 00 00 ... |

`len` is one byte, or FF followed by a 16-bit big-endian length for
messages of 255 bytes or more.

Third-party writers do not agree on the exact framing and their length
fields cannot be trusted, so reading does not parse the TLV. It reads until
the card stops answering and then looks for the "cashu" prefix that starts
every token.
"""

import logging
from typing import Optional

import ndef

from .addresser import BlockAddresser
from .device import DEFAULT_NDEF_KEY, BlockDevice, SectorKey
from .eraser import erase
from .errors import AuthError, NotATokenError, PreconditionError, ReadError
from .mifare import CardGeometry

logger = logging.getLogger(__name__)

MAGIC = b"cashu"

NDEF_MESSAGE_TLV = 0x03
TERMINATOR_TLV = 0xFE
MAX_MESSAGE_LENGTH = 0xFFFE


def encode_message(token: str) -> bytes:
    """Encode a token as an NDEF message holding one Text record."""
    record = ndef.TextRecord(token)
    return b"".join(ndef.message_encoder([record]))


def wrap_tlv(message: bytes) -> bytes:
    """Wrap an NDEF message in its TLV and append the terminator TLV."""
    length = len(message)
    if length > MAX_MESSAGE_LENGTH:
        raise PreconditionError(f"NDEF message of {length} bytes does not fit a TLV")
    if length < 0xFF:
        header = bytes([NDEF_MESSAGE_TLV, length])
    else:
        header = bytes([NDEF_MESSAGE_TLV, 0xFF]) + length.to_bytes(2, "big")
    return header + message + bytes([TERMINATOR_TLV])


def frame(token: str, block_size: int) -> bytes:
    """Build the padded, block-aligned buffer for a token."""
    if not token.encode("utf-8").startswith(MAGIC):
        raise PreconditionError(f"Token must start with {MAGIC.decode()!r}")
    tlv = wrap_tlv(encode_message(token))
    return tlv + bytes(-len(tlv) % block_size)


def extract(raw: bytes) -> str:
    """
    Recover the token from the raw bytes read off a card.

    Raises:
        NotATokenError: no token prefix in the data.
    """
    data = bytes(raw).rstrip(b"\x00")
    index = data.find(MAGIC)
    if index < 0:
        raise NotATokenError("No cashu token found on card")
    # Exactly one framing byte follows the record: the terminator TLV for
    # cards written by write(). Assumed for third-party encoders as well,
    # which has not been verified for all of them.
    token = data[index:-1]
    try:
        return token.decode("utf-8")
    except UnicodeDecodeError as e:
        raise NotATokenError(f"Token is not valid UTF-8: {e}") from e


def write(device: BlockDevice, geometry: CardGeometry, token: str,
          key: SectorKey = DEFAULT_NDEF_KEY, capacity: Optional[int] = None) -> list[int]:
    """
    Write a token as an NDEF message, then zero the data blocks after it up
    to the capacity. Reading scans to the end of the card, so bytes left by
    an earlier, longer write would otherwise end up in the token.

    Returns:
        The physical blocks holding the message.
    """
    buffer = frame(token, geometry.block_size)
    limit = geometry.capacity() if capacity is None else capacity
    if len(buffer) > limit:
        raise PreconditionError(f"Token needs {len(buffer)} bytes, card holds {limit}")

    logger.info(f"Writing {len(buffer)}-byte NDEF message to {geometry.name}")
    blocks = BlockAddresser(device, geometry, key).write(buffer)

    remaining = limit - len(buffer)
    if remaining >= geometry.block_size:
        cleared = erase(device, geometry, key, limit=remaining, start_block=blocks[-1] + 1)
        logger.debug(f"Cleared {cleared.bytes_erased} stale bytes after the message")
    return blocks


def read(device: BlockDevice, geometry: CardGeometry, key: SectorKey = DEFAULT_NDEF_KEY) -> str:
    """Read blocks until the card stops answering, then extract the token."""
    raw = bytearray()
    try:
        for _, data in BlockAddresser(device, geometry, key).read_blocks():
            raw += data
    except (ReadError, AuthError) as e:
        # A failing block marks the end of the readable area. Failing on the
        # very first block means the card is not readable at all.
        if not raw:
            raise
        logger.debug(f"NDEF read ended at block {e.block}: {e}")

    logger.debug(f"Read {len(raw)} raw bytes")
    return extract(raw)
