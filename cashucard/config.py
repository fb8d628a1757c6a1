"""Application configuration."""

import os

# Card reader: "pcsc" for a USB reader, "virtual" for an in-memory card
READER = os.getenv("CASHUCARD_READER", "pcsc")
READER_NAME = os.getenv("CASHUCARD_READER_NAME", "ACR122")

# Card family and default on-card format ("lpr" or "ndef")
CARD_TYPE = os.getenv("CASHUCARD_CARD_TYPE", "mifare_classic_1k")
CARD_FORMAT = os.getenv("CASHUCARD_FORMAT", "lpr")

# Sector keys (hex)
LPR_KEY = os.getenv("CASHUCARD_LPR_KEY", "FFFFFFFFFFFF")
NDEF_KEY = os.getenv("CASHUCARD_NDEF_KEY", "FFFFFFFFFFFF")

# Seconds to wait for a busy card session
LOCK_TIMEOUT = float(os.getenv("CASHUCARD_LOCK_TIMEOUT", "5"))

# HTTP API
HOST = os.getenv("CASHUCARD_HOST", "127.0.0.1")
PORT = int(os.getenv("CASHUCARD_PORT", "8000"))
