"""Deck and card creation. New cards start with default SM-2 state, due immediately."""

import logging
from datetime import datetime

from reviewkit.application.id_service import generate_id
from reviewkit.domain.errors import AccessDeniedError, DeckNotFoundError
from reviewkit.domain.scheduling.models import CardScheduleState, Deck, FlashcardRecord, utcnow
from reviewkit.domain.scheduling.ports import CardStore

logger = logging.getLogger(__name__)


class DeckService:
    def __init__(self, card_store: CardStore):
        self._cards = card_store

    async def create_deck(self, user_id: str, title: str, is_public: bool = False) -> Deck:
        deck = Deck(id=generate_id("deck"), user_id=user_id, title=title, is_public=is_public)
        return await self._cards.add_deck(deck)

    async def add_card(
        self,
        deck_id: str,
        user_id: str,
        front: str,
        back: str,
        hint: str | None = None,
        now: datetime | None = None,
    ) -> FlashcardRecord:
        deck = await self._cards.get_deck(deck_id)
        if deck is None:
            raise DeckNotFoundError(f"Deck {deck_id} not found")
        if deck.user_id != user_id:
            raise AccessDeniedError(f"User {user_id} does not own deck {deck_id}")

        now = now or utcnow()
        initial = CardScheduleState.initial(now)
        card = FlashcardRecord(
            id=generate_id("card"),
            deck_id=deck_id,
            front=front,
            back=back,
            hint=hint,
            ease_factor=initial.ease_factor,
            interval=initial.interval,
            repetitions=initial.repetitions,
            next_review_date=initial.next_review_date,
            created_at=now,
        )
        logger.debug(f"Adding card {card.id} to deck {deck_id}")
        return await self._cards.add_card(card)
