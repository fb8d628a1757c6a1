"""
CashuCard — ecash tokens on contactless memory cards.

FastAPI backend exposing the card storage operations:
- Writing a token to a MIFARE card (length-prefixed or NDEF format)
- Reading it back, with format detection
- Probing usable card capacity
- Erasing card data
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from cashucard import config
from cashucard.api import card

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Release the card reader on shutdown."""
    logger.info(f"Starting CashuCard ({config.READER} reader, {config.CARD_TYPE})")
    app.state.card_session = None
    yield
    session = app.state.card_session
    close = getattr(session.device, "close", None) if session else None
    if close:
        close()
    logger.info("Shutting down CashuCard")


app = FastAPI(
    title="CashuCard",
    description="Ecash tokens on MIFARE cards",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(card.router)


def run():
    """Console entry point."""
    uvicorn.run(app, host=config.HOST, port=config.PORT)


if __name__ == "__main__":
    run()
