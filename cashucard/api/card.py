"""API routes for card operations."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from cashucard import config
from cashucard.card.errors import (
    AuthError, CardBusyError, NotATokenError, PreconditionError,
    ShortReadError, StorageError, TransportError,
)
from cashucard.card.session import CardSession
from cashucard.card.storage import (
    CardFormat, get_max_capacity, read_card, reset_card, write_card,
)
from cashucard.reader.factory import open_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/card", tags=["card"])

ERROR_STATUS = (
    (PreconditionError, 400),
    (AuthError, 403),
    (CardBusyError, 409),
    (NotATokenError, 422),
    (ShortReadError, 422),
    (TransportError, 503),
)


# ──────────────────────────────────────────────
# Request models
# ──────────────────────────────────────────────

class WriteRequest(BaseModel):
    token: str
    format: CardFormat = CardFormat(config.CARD_FORMAT)
    check_capacity: bool = True  # Probe the card before writing


class ReadRequest(BaseModel):
    format: Optional[CardFormat] = None  # None = detect from the card


class ResetRequest(BaseModel):
    limit: Optional[int] = None  # Bytes to erase, None = whole card
    format: CardFormat = CardFormat(config.CARD_FORMAT)


# ──────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────

def get_session(request: Request) -> CardSession:
    """Return the app's card session, opening the reader on first use."""
    session = getattr(request.app.state, "card_session", None)
    if session is None:
        try:
            session = open_session()
        except StorageError as e:
            raise HTTPException(status_code=503, detail=str(e))
        request.app.state.card_session = session
    return session


def _http_error(request: Request, e: StorageError) -> HTTPException:
    status = next((code for cls, code in ERROR_STATUS if isinstance(e, cls)), 500)
    if isinstance(e, TransportError):
        # Reconnect on the next request
        request.app.state.card_session = None
    logger.error(f"Card operation failed: {e}")
    return HTTPException(status_code=status, detail=str(e))


# ──────────────────────────────────────────────
# Routes
# ──────────────────────────────────────────────

@router.get("/status")
def card_status(session: CardSession = Depends(get_session)):
    """Describe the reader and the configured card family."""
    return {
        "device": repr(session.device),
        "card": session.geometry.name,
        "block_size": session.geometry.block_size,
        "nominal_capacity": session.geometry.capacity(),
        "busy": session.busy,
    }


@router.get("/capacity")
def card_capacity(request: Request, format: CardFormat = CardFormat(config.CARD_FORMAT),
                  session: CardSession = Depends(get_session)):
    """Probe the usable bytes on the inserted card."""
    try:
        return {"capacity": get_max_capacity(session, format)}
    except StorageError as e:
        raise _http_error(request, e)


@router.post("/write")
def card_write(req: WriteRequest, request: Request, session: CardSession = Depends(get_session)):
    """Store a token on the inserted card."""
    try:
        capacity = get_max_capacity(session, req.format) if req.check_capacity else None
        if capacity is not None and capacity < session.geometry.block_size:
            # Nothing readable at the start block. Let the write report why.
            capacity = None
        blocks = write_card(session, req.token, req.format, capacity=capacity)
    except StorageError as e:
        raise _http_error(request, e)
    return {
        "format": req.format.value,
        "blocks": blocks,
        "bytes": len(blocks) * session.geometry.block_size,
    }


@router.post("/read")
def card_read(req: ReadRequest, request: Request, session: CardSession = Depends(get_session)):
    """Read the token from the inserted card."""
    try:
        token = read_card(session, req.format)
    except StorageError as e:
        raise _http_error(request, e)
    return {"token": token}


@router.post("/reset")
def card_reset(req: ResetRequest, request: Request, session: CardSession = Depends(get_session)):
    """Zero the data blocks of the inserted card. Partial erasure is reported, not raised."""
    try:
        result = reset_card(session, limit=req.limit, card_format=req.format)
    except PreconditionError as e:
        raise _http_error(request, e)
    return result.to_dict()
