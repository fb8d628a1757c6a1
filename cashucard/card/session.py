"""
Card session: the handle every storage operation is given.

A session binds one block device to the geometry and keys of the card in
it. Block operations on one card must never interleave, so each operation
takes the session lock for its whole pass. Separate sessions share nothing
and can run concurrently.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator

from .device import DEFAULT_LPR_KEY, DEFAULT_NDEF_KEY, BlockDevice, SectorKey
from .errors import CardBusyError
from .mifare import CardGeometry

logger = logging.getLogger(__name__)


class CardSession:
    """Exclusive handle on one card."""

    def __init__(self, device: BlockDevice, geometry: CardGeometry,
                 lpr_key: SectorKey = DEFAULT_LPR_KEY, ndef_key: SectorKey = DEFAULT_NDEF_KEY,
                 lock_timeout: float = 5.0):
        self.device = device
        self.geometry = geometry
        self.lpr_key = lpr_key
        self.ndef_key = ndef_key
        self.lock_timeout = lock_timeout
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @contextmanager
    def exclusive(self) -> Iterator[BlockDevice]:
        """Hold the card for one operation."""
        if not self._lock.acquire(timeout=self.lock_timeout):
            logger.warning(f"{self!r} still busy after {self.lock_timeout}s")
            raise CardBusyError(f"Card session busy for more than {self.lock_timeout}s")
        try:
            yield self.device
        finally:
            self._lock.release()

    def __repr__(self) -> str:
        return f"CardSession({self.geometry.name}, device={self.device!r})"
