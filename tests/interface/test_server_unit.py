import asyncio
import logging
import random

import pytest
from fastapi.testclient import TestClient

from reviewkit.application.deck_service import DeckService
from reviewkit.application.review_service import ReviewService
from reviewkit.consts import VERSION
from reviewkit.infrastructure.adapters.memory_store import InMemoryCardStore, InMemoryReviewLog
from reviewkit.server import app, get_review_service


@pytest.fixture
def seeded():
    log = InMemoryReviewLog()
    store = InMemoryCardStore(log)
    decks = DeckService(store)

    async def seed():
        private = await decks.create_deck("alice", "Private")
        public = await decks.create_deck("alice", "Public", is_public=True)
        card = await decks.add_card(private.id, "alice", "Q", "A")
        shared = await decks.add_card(public.id, "alice", "Q", "A")
        return private, public, card, shared

    private, public, card, shared = asyncio.run(seed())
    service = ReviewService(store, log, rng=random.Random(0))
    app.dependency_overrides[get_review_service] = lambda: service
    yield {"private": private, "public": public, "card": card, "shared": shared, "store": store}
    app.dependency_overrides.clear()


@pytest.fixture
def client(seeded):
    return TestClient(app)


def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == VERSION


def test_get_version(client):
    response = client.get("/version")
    assert response.status_code == 200
    assert response.json() == {"version": VERSION}


def test_submit_review(client, seeded):
    deck, card = seeded["private"], seeded["card"]
    response = client.post(
        f"/decks/{deck.id}/review",
        json={"user_id": "alice", "card_id": card.id, "quality": 4, "response_ms": 1500},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["interval"] == 1
    assert data["repetitions"] == 1
    assert data["ease_factor"] == 2.5
    assert data["is_public_deck"] is False
    assert data["card"]["version"] == 1


@pytest.mark.parametrize("quality", [-1, 6, 3.5, "good"])
def test_invalid_quality_is_400(client, seeded, quality):
    deck, card = seeded["private"], seeded["card"]
    response = client.post(
        f"/decks/{deck.id}/review",
        json={"user_id": "alice", "card_id": card.id, "quality": quality},
    )
    assert response.status_code == 400


def test_missing_fields_is_400(client, seeded):
    response = client.post(f"/decks/{seeded['private'].id}/review", json={"user_id": "alice"})
    assert response.status_code == 400
    assert "required" in response.json()["detail"]


def test_unknown_card_is_404(client, seeded):
    response = client.post(
        f"/decks/{seeded['private'].id}/review",
        json={"user_id": "alice", "card_id": "card_nope", "quality": 3},
    )
    assert response.status_code == 404


def test_private_deck_review_by_stranger_is_403(client, seeded):
    response = client.post(
        f"/decks/{seeded['private'].id}/review",
        json={"user_id": "mallory", "card_id": seeded["card"].id, "quality": 3},
    )
    assert response.status_code == 403


def test_public_deck_review_is_tracked_separately(client, seeded):
    response = client.post(
        f"/decks/{seeded['public'].id}/review",
        json={"user_id": "bob", "card_id": seeded["shared"].id, "quality": 5},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["is_public_deck"] is True
    assert "separately" in data["message"]
    assert data["card"]["repetitions"] == 1

    stored = asyncio.run(seeded["store"].get_card(seeded["shared"].id))
    assert stored.repetitions == 0


def test_study_session_and_stats(client, seeded):
    deck = seeded["private"]
    study = client.get(f"/decks/{deck.id}/study", params={"user_id": "alice", "limit": 5})
    assert study.status_code == 200
    assert [c["id"] for c in study.json()["cards"]] == [seeded["card"].id]
    assert study.json()["total_cards"] == 1

    stats = client.get(f"/decks/{deck.id}/stats", params={"user_id": "alice"})
    assert stats.status_code == 200
    assert stats.json()["new"] == 1
    assert stats.json()["due"] == 1
    assert stats.json()["estimated_time"] == "10s"


def test_private_deck_study_hidden_from_stranger(client, seeded):
    response = client.get(f"/decks/{seeded['private'].id}/study", params={"user_id": "mallory"})
    assert response.status_code == 404


def test_unknown_deck_review_is_404(client, seeded):
    response = client.post(
        "/decks/deck_missing/review",
        json={"user_id": "alice", "card_id": seeded["card"].id, "quality": 3},
    )
    assert response.status_code == 404
    assert "Deck" in response.json()["detail"]


def test_startup_applies_configured_log_level(seeded, mock_home, monkeypatch, root_log_level):
    monkeypatch.setenv("REVIEWKIT_LOG_LEVEL", "WARNING")
    with TestClient(app) as client:
        assert client.get("/health").status_code == 200
        assert root_log_level.level == logging.WARNING
