"""Open a card session from configuration."""

import logging
from typing import Optional

from cashucard import config
from cashucard.card.device import SectorKey
from cashucard.card.mifare import KeyType, get_geometry, parse_key
from cashucard.card.session import CardSession
from cashucard.reader.virtual import VirtualCard

logger = logging.getLogger(__name__)


def open_session(reader: Optional[str] = None, card_type: Optional[str] = None) -> CardSession:
    """
    Build a CardSession for the configured reader and card family.

    Args:
        reader: "pcsc" or "virtual" (defaults to CASHUCARD_READER).
        card_type: Geometry name (defaults to CASHUCARD_CARD_TYPE).
    """
    reader = reader or config.READER
    geometry = get_geometry(card_type or config.CARD_TYPE)

    if reader == "virtual":
        device = VirtualCard(geometry)
    elif reader == "pcsc":
        # pyscard needs a running PC/SC daemon; only load it when asked for
        from cashucard.reader.pcsc import PcscCard
        device = PcscCard.open(config.READER_NAME)
    else:
        raise ValueError(f"Unknown reader {reader!r}, expected 'pcsc' or 'virtual'")

    logger.info(f"Opened {reader} reader for {geometry.name}")
    return CardSession(
        device,
        geometry,
        lpr_key=SectorKey(KeyType.A, parse_key(config.LPR_KEY)),
        ndef_key=SectorKey(KeyType.B, parse_key(config.NDEF_KEY)),
        lock_timeout=config.LOCK_TIMEOUT,
    )
