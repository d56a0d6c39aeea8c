import logging
from datetime import UTC, datetime

import pytest
import pytest_asyncio

from reviewkit.application.deck_service import DeckService
from reviewkit.application.review_service import ReviewService
from reviewkit.infrastructure.adapters.memory_store import InMemoryCardStore, InMemoryReviewLog


@pytest.fixture
def now():
    """A fixed reference time so due checks are deterministic."""
    return datetime(2024, 3, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def review_log():
    return InMemoryReviewLog()


@pytest.fixture
def card_store(review_log):
    return InMemoryCardStore(review_log)


@pytest.fixture
def deck_service(card_store):
    return DeckService(card_store)


@pytest.fixture
def review_service(card_store, review_log):
    return ReviewService(card_store, review_log)


@pytest_asyncio.fixture
async def owned_deck(deck_service, now):
    """A private deck owned by 'alice' with three fresh cards."""
    deck = await deck_service.create_deck("alice", "Biology")
    cards = [
        await deck_service.add_card(deck.id, "alice", f"Q{i}", f"A{i}", now=now)
        for i in range(3)
    ]
    return deck, cards


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Points the config directory at a temp dir to isolate config files."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setattr("reviewkit.application.config.CONFIG_DIR", home / ".config/reviewkit")
    return home


@pytest.fixture
def root_log_level():
    """Restores the root logger level changed by CLI or server startup."""
    root = logging.getLogger()
    original = root.level
    yield root
    root.setLevel(original)
