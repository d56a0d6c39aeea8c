"""
Review Service: Application layer orchestrator.

Coordinates the read-compute-write cycle around the pure SM-2 scheduler:
resolves the card, computes the next schedule, then commits the schedule
and its review event together behind a compare-and-swap.
"""

import dataclasses
import logging
import math
import random
from dataclasses import dataclass
from datetime import datetime

from reviewkit.application.id_service import generate_id
from reviewkit.application.scheduler import (
    calculate_deck_stats,
    compute_next_schedule,
    estimate_study_time,
    get_cards_for_review,
    get_new_cards,
    mastered_count,
)
from reviewkit.domain.constants import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_NEW_LIMIT,
    DEFAULT_REVIEW_LIMIT,
    MAX_QUALITY,
    MIN_QUALITY,
)
from reviewkit.domain.errors import (
    AccessDeniedError,
    CardNotFoundError,
    ConcurrencyConflictError,
    DeckNotFoundError,
    InvalidQualityError,
)
from reviewkit.domain.scheduling.models import (
    CardScheduleState,
    Deck,
    DeckStats,
    FlashcardRecord,
    ReviewEvent,
    ScheduleResult,
    utcnow,
)
from reviewkit.domain.scheduling.ports import CardStore, ReviewLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReviewOutcome:
    """
    Result of a submitted review.

    For public-deck learners, card carries the learner's own schedule
    overlaid on the (unchanged) stored card.
    """

    result: ScheduleResult
    card: FlashcardRecord
    event: ReviewEvent
    is_public_deck: bool = False


@dataclass(frozen=True)
class StudySession:
    cards: list[FlashcardRecord]
    stats: DeckStats
    total_cards: int


@dataclass(frozen=True)
class DeckOverview:
    stats: DeckStats
    mastered: int
    estimated_time: str


def validate_quality(quality: object) -> int:
    """
    Boundary check: quality must be an integer in [0, 5].

    Integral floats (e.g. 4.0 from JSON) are accepted; bools are not.
    """
    if isinstance(quality, bool):
        raise InvalidQualityError("Quality must be an integer between 0 and 5")
    if isinstance(quality, float):
        if not math.isfinite(quality) or not quality.is_integer():
            raise InvalidQualityError("Quality must be an integer between 0 and 5")
        quality = int(quality)
    if not isinstance(quality, int):
        raise InvalidQualityError("Quality must be an integer between 0 and 5")
    if not MIN_QUALITY <= quality <= MAX_QUALITY:
        raise InvalidQualityError("Quality must be between 0 and 5")
    return quality


class ReviewService:
    """
    Application service for submitting reviews and building study sessions.

    Depends on the CardStore and ReviewLog ports, not concrete adapters.
    """

    def __init__(
        self,
        card_store: CardStore,
        review_log: ReviewLog,
        max_retries: int = DEFAULT_MAX_RETRIES,
        rng: random.Random | None = None,
        new_card_limit: int = DEFAULT_NEW_LIMIT,
    ):
        """
        Args:
            card_store: Port for cards and decks.
            review_log: Append-only review log.
            max_retries: Extra attempts after a lost compare-and-swap.
            rng: Random source for session shuffling.
            new_card_limit: Default cap on new cards added to a session.
        """
        self._cards = card_store
        self._log = review_log
        self._max_retries = max_retries
        self._rng = rng or random.Random()
        self._new_card_limit = new_card_limit

    async def submit_review(
        self,
        deck_id: str,
        card_id: str,
        user_id: str,
        quality: object,
        response_ms: int | None = None,
        now: datetime | None = None,
    ) -> ReviewOutcome:
        """
        Record a review and reschedule the card.

        Deck owners update the card itself. Other users reviewing a public
        deck never touch the card; their progress lives in the review log.

        Raises:
            InvalidQualityError: quality is not an integer in [0, 5].
            DeckNotFoundError: The deck does not exist.
            CardNotFoundError: The card is missing or not in this deck.
            AccessDeniedError: The deck is private and not the user's.
            ConcurrencyConflictError: Every retry lost the race.
        """
        q = validate_quality(quality)
        now = now or utcnow()

        deck = await self._cards.get_deck(deck_id)
        if deck is None:
            raise DeckNotFoundError(f"Deck {deck_id} not found")

        card = await self._cards.get_card(card_id, deck_id)
        if card is None:
            raise CardNotFoundError(f"Card {card_id} not found in deck {deck_id}")

        if deck.user_id == user_id:
            return await self._review_owned(card, user_id, q, response_ms, now)
        if deck.is_public:
            return await self._review_public(card, user_id, q, response_ms, now)
        raise AccessDeniedError(f"User {user_id} cannot review deck {deck_id}")

    async def _review_owned(
        self,
        card: FlashcardRecord,
        user_id: str,
        quality: int,
        response_ms: int | None,
        now: datetime,
    ) -> ReviewOutcome:
        attempts = self._max_retries + 1

        for attempt in range(1, attempts + 1):
            result = compute_next_schedule(quality, card.schedule, now)
            event = self._event(card.id, user_id, quality, response_ms, now, result)
            try:
                updated = await self._cards.commit_review(
                    card.id, result.to_state(now), card.version, event
                )
                break
            except ConcurrencyConflictError:
                if attempt == attempts:
                    logger.error(f"Giving up on card {card.id} after {attempts} attempts")
                    raise
                logger.warning(
                    f"Stale write on card {card.id} (attempt {attempt}/{attempts}), retrying"
                )
                refreshed = await self._cards.get_card(card.id)
                if refreshed is None:
                    raise CardNotFoundError(f"Card {card.id} was deleted during review") from None
                card = refreshed

        logger.info(
            f"Review card={card.id} user={user_id} q={quality} "
            f"interval={result.interval} ef={result.ease_factor}"
        )
        return ReviewOutcome(result=result, card=updated, event=event)

    async def _review_public(
        self,
        card: FlashcardRecord,
        user_id: str,
        quality: int,
        response_ms: int | None,
        now: datetime,
    ) -> ReviewOutcome:
        state = await self.learner_state(card.id, user_id)
        result = compute_next_schedule(quality, state, now)
        event = await self._log.append(
            self._event(card.id, user_id, quality, response_ms, now, result)
        )

        learner_view = dataclasses.replace(
            card,
            ease_factor=result.ease_factor,
            interval=result.interval,
            repetitions=result.repetitions,
            next_review_date=result.next_review_date,
            last_review_date=now,
        )
        logger.info(
            f"Public-deck review card={card.id} user={user_id} q={quality} "
            f"interval={result.interval}"
        )
        return ReviewOutcome(result=result, card=learner_view, event=event, is_public_deck=True)

    async def learner_state(self, card_id: str, user_id: str) -> CardScheduleState:
        """
        A non-owner's schedule for a card, from their latest review event.
        """
        latest = await self._log.latest_for(card_id, user_id)
        if latest is None or latest.ease_factor is None:
            return CardScheduleState()
        return CardScheduleState(
            ease_factor=latest.ease_factor,
            interval=latest.interval or 0,
            repetitions=latest.repetitions or 0,
            last_review_date=latest.created_at,
        )

    def _event(
        self,
        card_id: str,
        user_id: str,
        quality: int,
        response_ms: int | None,
        now: datetime,
        result: ScheduleResult,
    ) -> ReviewEvent:
        return ReviewEvent(
            id=generate_id("rev"),
            flashcard_id=card_id,
            user_id=user_id,
            quality=quality,
            created_at=now,
            response_ms=response_ms,
            ease_factor=result.ease_factor,
            interval=result.interval,
            repetitions=result.repetitions,
        )

    async def _readable_deck(self, deck_id: str, user_id: str) -> Deck:
        deck = await self._cards.get_deck(deck_id)
        if deck is None or (deck.user_id != user_id and not deck.is_public):
            raise DeckNotFoundError(f"Deck {deck_id} not found")
        return deck

    async def build_study_session(
        self,
        deck_id: str,
        user_id: str,
        limit: int = DEFAULT_REVIEW_LIMIT,
        include_new: bool = True,
        shuffle: bool = True,
        now: datetime | None = None,
        new_limit: int | None = None,
    ) -> StudySession:
        """
        Due cards first, topped up with new cards when there is room.

        Args:
            deck_id: Deck to study.
            user_id: Must own the deck, or the deck must be public.
            limit: Maximum session size.
            include_new: Fill remaining slots with never-reviewed cards.
            shuffle: Shuffle the final selection.
            now: Reference time for the due check.
            new_limit: Cap on new cards added; defaults to the service setting.
        """
        await self._readable_deck(deck_id, user_id)
        now = now or utcnow()

        cards = await self._cards.list_cards(deck_id)
        session = get_cards_for_review(cards, limit, now)

        if include_new and len(session) < limit:
            chosen = {c.id for c in session}
            fresh = [c for c in get_new_cards(cards, len(cards)) if c.id not in chosen]
            cap = self._new_card_limit if new_limit is None else new_limit
            session.extend(fresh[: max(0, min(cap, limit - len(session)))])

        if shuffle:
            self._rng.shuffle(session)

        return StudySession(
            cards=session,
            stats=calculate_deck_stats(cards, now),
            total_cards=len(cards),
        )

    async def get_deck_overview(
        self, deck_id: str, user_id: str, now: datetime | None = None
    ) -> DeckOverview:
        await self._readable_deck(deck_id, user_id)
        cards = await self._cards.list_cards(deck_id)
        stats = calculate_deck_stats(cards, now)
        return DeckOverview(
            stats=stats,
            mastered=mastered_count(cards),
            estimated_time=estimate_study_time(stats.due),
        )
