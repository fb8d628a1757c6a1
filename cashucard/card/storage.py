"""
Token storage on a card session, the interface the rest of the app uses.

Two on-card formats exist and deployed cards may carry either one, so the
format is an explicit tag chosen by the caller:

- CardFormat.LENGTH_PREFIXED: exact length header, needs this tool to read.
- CardFormat.NDEF: NDEF Text record, readable by generic NFC apps.

When reading, the format can also be detected from the first data block.
"""

import logging
from enum import Enum
from typing import Optional

from . import length_prefixed, ndef_format
from .device import BlockDevice, SectorKey
from .eraser import EraseResult, erase
from .errors import AuthError, NotATokenError, PreconditionError, StorageError
from .prober import probe_capacity
from .session import CardSession

logger = logging.getLogger(__name__)


class CardFormat(str, Enum):
    LENGTH_PREFIXED = "lpr"
    NDEF = "ndef"


def _key_for(session: CardSession, card_format: CardFormat) -> SectorKey:
    if card_format == CardFormat.NDEF:
        return session.ndef_key
    return session.lpr_key


def _detect(device: BlockDevice, session: CardSession) -> CardFormat:
    geometry = session.geometry
    block = geometry.start_block
    if geometry.sectored:
        first = geometry.sector_to_block(geometry.block_to_sector(block))
        try:
            device.authenticate(first, session.lpr_key.key_type, session.lpr_key.key)
        except AuthError:
            logger.debug(f"Key {session.lpr_key.key_type.name} rejected at block {first}, trying NDEF key")
            device.authenticate(first, session.ndef_key.key_type, session.ndef_key.key)

    data = device.read(block, geometry.block_size)
    if length_prefixed.is_header(data):
        return CardFormat.LENGTH_PREFIXED
    if data.lstrip(b"\x00")[:1] == bytes([ndef_format.NDEF_MESSAGE_TLV]) or ndef_format.MAGIC in data:
        return CardFormat.NDEF
    raise NotATokenError(f"Unrecognized card content at block {block}", block=block)


def detect_format(session: CardSession) -> CardFormat:
    """Tell which format the card in the session was written with."""
    with session.exclusive() as device:
        return _detect(device, session)


def write_card(session: CardSession, token: str,
               card_format: CardFormat = CardFormat.LENGTH_PREFIXED,
               capacity: Optional[int] = None) -> list[int]:
    """
    Store a token on the card.

    Args:
        session: Card to write.
        token: Serialized token string.
        card_format: On-card format.
        capacity: Probed capacity of this card, if known.

    Returns:
        The physical blocks written.
    """
    with session.exclusive() as device:
        key = _key_for(session, card_format)
        if card_format == CardFormat.NDEF:
            blocks = ndef_format.write(device, session.geometry, token, key, capacity)
        else:
            blocks = length_prefixed.write(device, session.geometry, token, key, capacity)
    logger.info(f"Token of {len(token)} chars written as {card_format.value} to blocks {blocks[0]}-{blocks[-1]}")
    return blocks


def read_card(session: CardSession, card_format: Optional[CardFormat] = None) -> str:
    """Read the token stored on the card, detecting the format when not given."""
    with session.exclusive() as device:
        if card_format is None:
            card_format = _detect(device, session)
            logger.info(f"Detected {card_format.value} card")
        key = _key_for(session, card_format)
        if card_format == CardFormat.NDEF:
            return ndef_format.read(device, session.geometry, key)

        payload = length_prefixed.read(device, session.geometry, key)
    try:
        return payload.decode("utf-8")
    except UnicodeDecodeError as e:
        raise NotATokenError(f"Card payload is not valid UTF-8: {e}") from e


def reset_card(session: CardSession, limit: Optional[int] = None,
               card_format: CardFormat = CardFormat.LENGTH_PREFIXED) -> EraseResult:
    """
    Zero the card's data blocks. Best effort: I/O failures end up in the
    returned result, never as an exception.

    Raises:
        PreconditionError: `limit` is smaller than one block.
    """
    block_size = session.geometry.block_size
    if limit is not None and limit < block_size:
        raise PreconditionError(f"Erase limit of {limit} bytes is smaller than one {block_size}-byte block")

    try:
        with session.exclusive() as device:
            return erase(device, session.geometry, _key_for(session, card_format), limit)
    except StorageError as e:
        # Reader or session failures are reported the same way as a partial erase.
        logger.error(f"Card reset failed: {e}")
        return EraseResult(block_size=block_size, stopped_at=e.block, error=e)


def get_max_capacity(session: CardSession,
                     card_format: CardFormat = CardFormat.LENGTH_PREFIXED) -> int:
    """Probe the usable bytes of the card in the session."""
    with session.exclusive() as device:
        return probe_capacity(device, session.geometry, _key_for(session, card_format))
