"""
Domain models for SM-2 scheduling.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import IntEnum

from reviewkit.domain.constants import DEFAULT_EASE_FACTOR


def utcnow() -> datetime:
    return datetime.now(UTC)


class QualityRating(IntEnum):
    """Self-rated recall quality, 0 (no recall) to 5 (instant recall)."""

    BLACKOUT = 0  # complete blackout
    WRONG = 1  # incorrect, recognized on reveal
    HARD = 2  # incorrect, but the answer seemed easy
    GOOD = 3  # correct with serious difficulty
    EASY = 4  # correct after hesitation
    PERFECT = 5


@dataclass(frozen=True)
class CardScheduleState:
    """
    The scheduling subset of a flashcard record.

    Attributes:
        ease_factor: Interval growth multiplier, never below 1.3.
        interval: Days until the next review. 0 only for an unseen card.
        repetitions: Consecutive successful (q >= 3) reviews since the last failure.
        next_review_date: When the card becomes due. None means never scheduled.
        last_review_date: Most recent review, None if never reviewed.
    """

    ease_factor: float = DEFAULT_EASE_FACTOR
    interval: int = 0
    repetitions: int = 0
    next_review_date: datetime | None = None
    last_review_date: datetime | None = None

    @classmethod
    def initial(cls, now: datetime) -> "CardScheduleState":
        """Defaults for a freshly created card: due immediately."""
        return cls(next_review_date=now)


@dataclass(frozen=True)
class ScheduleResult:
    """
    Output of one SM-2 step.

    Does not carry last_review_date: setting it is the caller's job when
    the result is persisted.
    """

    ease_factor: float
    interval: int
    repetitions: int
    next_review_date: datetime

    def to_state(self, reviewed_at: datetime) -> CardScheduleState:
        return CardScheduleState(
            ease_factor=self.ease_factor,
            interval=self.interval,
            repetitions=self.repetitions,
            next_review_date=self.next_review_date,
            last_review_date=reviewed_at,
        )


@dataclass(frozen=True)
class ReviewEvent:
    """
    An append-only review log entry.

    The ease_factor/interval/repetitions snapshot is the schedule computed
    by this review; it carries per-learner progress on public decks.
    """

    id: str
    flashcard_id: str
    user_id: str
    quality: int
    created_at: datetime
    response_ms: int | None = None
    ease_factor: float | None = None
    interval: int | None = None
    repetitions: int | None = None


@dataclass(frozen=True)
class Deck:
    id: str
    user_id: str
    title: str
    is_public: bool = False
    created_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class FlashcardRecord:
    """
    A persisted flashcard: content plus its schedule state.

    version is bumped on every schedule write and is the compare-and-swap token.
    """

    id: str
    deck_id: str
    front: str
    back: str
    hint: str | None = None
    ease_factor: float = DEFAULT_EASE_FACTOR
    interval: int = 0
    repetitions: int = 0
    next_review_date: datetime | None = None
    last_review_date: datetime | None = None
    version: int = 0
    created_at: datetime = field(default_factory=utcnow)

    @property
    def schedule(self) -> CardScheduleState:
        return CardScheduleState(
            ease_factor=self.ease_factor,
            interval=self.interval,
            repetitions=self.repetitions,
            next_review_date=self.next_review_date,
            last_review_date=self.last_review_date,
        )


@dataclass(frozen=True)
class DeckStats:
    """
    Deck breakdown. new/learning/review partition the deck; due overlaps them.
    """

    total: int = 0
    new: int = 0
    learning: int = 0
    review: int = 0
    due: int = 0
    average_ease_factor: float = 0

    def as_dict(self) -> dict[str, int | float]:
        return {
            "total": self.total,
            "new": self.new,
            "learning": self.learning,
            "review": self.review,
            "due": self.due,
            "average_ease_factor": self.average_ease_factor,
        }
