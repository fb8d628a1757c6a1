"""
PC/SC block device for ACR122U-style contactless readers.

The reader exposes MIFARE operations through pseudo-APDUs (class FF):

    LOAD KEY              FF 82 00 <slot> 06 <key x6>
    GENERAL AUTHENTICATE  FF 86 00 00 05 01 00 <block> <key type> <slot>
    READ BINARY           FF B0 00 <block> <length>
    UPDATE BINARY         FF D6 00 <block> <length> <data>
    GET UID               FF CA 00 00 00

Status word 90 00 is success. Any other status is reported as a card-level
failure on that block; a broken reader link is a TransportError.

Reference: ACR122U Application Programming Interface V2.04
"""

import logging
from typing import Optional

from smartcard.Exceptions import CardConnectionException, NoCardException
from smartcard.System import readers

from cashucard.card.errors import AuthError, ReadError, TransportError, WriteError
from cashucard.card.mifare import KEY_LENGTH, KeyType

logger = logging.getLogger(__name__)

SW_SUCCESS = (0x90, 0x00)


def list_readers() -> list:
    """Return available PC/SC readers."""
    try:
        return readers()
    except Exception as e:
        raise TransportError(f"PC/SC service unavailable: {e}") from e


class PcscCard:
    """A card on a PC/SC reader, addressed block by block."""

    def __init__(self, connection, key_slot: int = 0x00):
        self.connection = connection
        self.key_slot = key_slot

    @classmethod
    def open(cls, reader_filter: str = "", key_slot: int = 0x00) -> "PcscCard":
        """Connect to the card on the first reader whose name contains `reader_filter`."""
        matching = [r for r in list_readers() if reader_filter in str(r)]
        if not matching:
            raise TransportError(f"No PC/SC reader matching {reader_filter!r}")

        reader = matching[0]
        connection = reader.createConnection()
        try:
            connection.connect()
        except (CardConnectionException, NoCardException) as e:
            raise TransportError(f"No card on {reader}: {e}") from e
        logger.info(f"Connected to card on {reader}")
        return cls(connection, key_slot=key_slot)

    def _transmit(self, apdu: list[int]) -> tuple[bytes, tuple[int, int]]:
        try:
            data, sw1, sw2 = self.connection.transmit(apdu)
        except CardConnectionException as e:
            raise TransportError(f"Reader link failed: {e}") from e
        return bytes(data), (sw1, sw2)

    @property
    def uid(self) -> Optional[bytes]:
        data, sw = self._transmit([0xFF, 0xCA, 0x00, 0x00, 0x00])
        return data if sw == SW_SUCCESS else None

    def authenticate(self, block: int, key_type: KeyType, key: bytes) -> None:
        if len(key) != KEY_LENGTH:
            raise AuthError(f"Key must be {KEY_LENGTH} bytes", block=block)
        _, sw = self._transmit([0xFF, 0x82, 0x00, self.key_slot, KEY_LENGTH, *key])
        if sw != SW_SUCCESS:
            raise AuthError(f"Reader refused key (SW={sw[0]:02X}{sw[1]:02X})", block=block)

        _, sw = self._transmit([0xFF, 0x86, 0x00, 0x00, 0x05,
                                0x01, 0x00, block, int(key_type), self.key_slot])
        if sw != SW_SUCCESS:
            raise AuthError(f"Authentication failed at block {block} (SW={sw[0]:02X}{sw[1]:02X})",
                            block=block)

    def read(self, block: int, length: int) -> bytes:
        data, sw = self._transmit([0xFF, 0xB0, 0x00, block, length])
        if sw != SW_SUCCESS:
            raise ReadError(f"Read failed at block {block} (SW={sw[0]:02X}{sw[1]:02X})", block=block)
        return data

    def write(self, block: int, data: bytes, length: int) -> None:
        _, sw = self._transmit([0xFF, 0xD6, 0x00, block, length, *data[:length]])
        if sw != SW_SUCCESS:
            raise WriteError(f"Write failed at block {block} (SW={sw[0]:02X}{sw[1]:02X})", block=block)

    def close(self):
        try:
            self.connection.disconnect()
        except CardConnectionException as e:
            logger.warning(f"Disconnect failed: {e}")

    def __repr__(self) -> str:
        return f"PcscCard({self.connection!r})"
