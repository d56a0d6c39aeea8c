"""
In-memory adapters for the card store and review log.

Used by tests and by the server's ``memory`` backend. State lives for the
life of the process.
"""

import asyncio
import dataclasses

from reviewkit.domain.errors import CardNotFoundError, ConcurrencyConflictError
from reviewkit.domain.scheduling.models import (
    CardScheduleState,
    Deck,
    FlashcardRecord,
    ReviewEvent,
)
from reviewkit.domain.scheduling.ports import CardStore, ReviewLog


class InMemoryReviewLog(ReviewLog):
    def __init__(self):
        self._events: list[ReviewEvent] = []

    async def append(self, event: ReviewEvent) -> ReviewEvent:
        self._events.append(event)
        return event

    async def latest_for(self, flashcard_id: str, user_id: str) -> ReviewEvent | None:
        for event in reversed(self._events):
            if event.flashcard_id == flashcard_id and event.user_id == user_id:
                return event
        return None

    async def list_for_card(self, flashcard_id: str) -> list[ReviewEvent]:
        return [e for e in self._events if e.flashcard_id == flashcard_id]


class InMemoryCardStore(CardStore):
    """
    Dict-backed card store.

    Owns (or shares) the review log that commit_review appends to, so the
    schedule write and the event land under the same lock.
    """

    def __init__(self, review_log: InMemoryReviewLog | None = None):
        self._decks: dict[str, Deck] = {}
        self._cards: dict[str, FlashcardRecord] = {}
        self._lock = asyncio.Lock()
        self.review_log = review_log if review_log is not None else InMemoryReviewLog()

    async def add_deck(self, deck: Deck) -> Deck:
        self._decks[deck.id] = deck
        return deck

    async def get_deck(self, deck_id: str) -> Deck | None:
        return self._decks.get(deck_id)

    async def add_card(self, card: FlashcardRecord) -> FlashcardRecord:
        self._cards[card.id] = card
        return card

    async def get_card(self, card_id: str, deck_id: str | None = None) -> FlashcardRecord | None:
        card = self._cards.get(card_id)
        if card is None or (deck_id is not None and card.deck_id != deck_id):
            return None
        return card

    async def list_cards(self, deck_id: str) -> list[FlashcardRecord]:
        # dicts keep insertion order, which is creation order here
        return [c for c in self._cards.values() if c.deck_id == deck_id]

    def _next_version(
        self, card_id: str, state: CardScheduleState, expected_version: int
    ) -> FlashcardRecord:
        # Caller holds self._lock.
        current = self._cards.get(card_id)
        if current is None:
            raise CardNotFoundError(f"Card {card_id} not found")
        if current.version != expected_version:
            raise ConcurrencyConflictError(card_id, expected_version)

        return dataclasses.replace(
            current,
            ease_factor=state.ease_factor,
            interval=state.interval,
            repetitions=state.repetitions,
            next_review_date=state.next_review_date,
            last_review_date=state.last_review_date,
            version=current.version + 1,
        )

    async def update_schedule(
        self, card_id: str, state: CardScheduleState, expected_version: int
    ) -> FlashcardRecord:
        async with self._lock:
            updated = self._next_version(card_id, state, expected_version)
            self._cards[card_id] = updated
            return updated

    async def commit_review(
        self,
        card_id: str,
        state: CardScheduleState,
        expected_version: int,
        event: ReviewEvent,
    ) -> FlashcardRecord:
        async with self._lock:
            updated = self._next_version(card_id, state, expected_version)
            # Append first: if it raises, the card is never replaced.
            await self.review_log.append(event)
            self._cards[card_id] = updated
            return updated
