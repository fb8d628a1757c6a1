"""Shared fixtures: an in-memory MIFARE Classic 1K card and its session."""

import pytest

from cashucard.card.mifare import MIFARE_CLASSIC_1K
from cashucard.card.session import CardSession
from cashucard.reader.virtual import VirtualCard


@pytest.fixture
def card() -> VirtualCard:
    return VirtualCard(MIFARE_CLASSIC_1K)


@pytest.fixture
def session(card) -> CardSession:
    return CardSession(card, MIFARE_CLASSIC_1K, lock_timeout=0.05)
