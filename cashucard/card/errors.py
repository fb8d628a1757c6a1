"""
Exceptions raised by card storage operations.

Block devices raise AuthError, ReadError, WriteError and TransportError.
The codecs add ShortReadError, NotATokenError and PreconditionError.
"""

from typing import Optional


class StorageError(Exception):
    """Base class for every card storage failure."""

    def __init__(self, message: str, block: Optional[int] = None):
        super().__init__(message)
        self.block = block


class AuthError(StorageError):
    """The sector key was rejected."""


class ReadError(StorageError):
    """A block could not be read."""


class WriteError(StorageError):
    """A block could not be written."""


class ShortReadError(StorageError):
    """The length header declares more payload than the card holds."""

    def __init__(self, expected: int, found: int, block: Optional[int] = None):
        super().__init__(
            f"Card declares {expected} payload bytes but only {found} could be read",
            block=block,
        )
        self.expected = expected
        self.found = found


class NotATokenError(StorageError):
    """The card content is not a recognized token."""


class PreconditionError(StorageError, ValueError):
    """The caller asked for something the card format cannot represent."""


class CardBusyError(StorageError):
    """Another operation holds the card session."""


class TransportError(StorageError):
    """The link to the reader failed. Never means "end of card"."""
