"""
SM-2 scheduler and deck queries.

This is a pure computation module with no I/O. Every function that needs
the current time accepts ``now`` and samples the clock at most once when
it is omitted.

Cards passed to the query helpers may be any object exposing the needed
attributes (``id``, ``next_review_date``, ``repetitions``, ``ease_factor``)
or a mapping with those keys.
"""

import math
from collections.abc import Iterable, Mapping, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any, TypeVar

from reviewkit.domain.constants import (
    DEFAULT_NEW_LIMIT,
    DEFAULT_REVIEW_LIMIT,
    EASE_DECIMALS,
    FAILED_INTERVAL,
    FIRST_INTERVAL,
    MASTERED_REPETITIONS,
    MATURE_REPETITIONS,
    MAX_QUALITY,
    MIN_EASE_FACTOR,
    MIN_QUALITY,
    PASSING_QUALITY,
    QUALITY_LABELS,
    SECOND_INTERVAL,
    SECONDS_PER_CARD,
)
from reviewkit.domain.scheduling.models import (
    CardScheduleState,
    DeckStats,
    ScheduleResult,
    utcnow,
)

CardT = TypeVar("CardT")

_EPOCH = datetime.min.replace(tzinfo=UTC)


def round_half_up(value: float, ndigits: int = 0) -> float:
    """
    Round halves towards +infinity, so 2.5 -> 3 and 0.125 -> 0.13 (at 2 places).

    Python's round() is banker's rounding, which would turn 1 * 2.5 into 2.
    """
    scale = 10**ndigits
    return math.floor(value * scale + 0.5) / scale


def clamp_quality(quality: float) -> int:
    """Clamp to [0, 5] and round to the nearest integer. NaN counts as 0."""
    if math.isnan(quality):
        return MIN_QUALITY
    bounded = max(MIN_QUALITY, min(MAX_QUALITY, quality))
    return int(round_half_up(bounded))


def next_ease_factor(ease_factor: float, quality: int) -> float:
    """
    EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02)), floored at 1.3.
    """
    miss = MAX_QUALITY - quality
    new_ef = ease_factor + (0.1 - miss * (0.08 + miss * 0.02))
    return max(new_ef, MIN_EASE_FACTOR)


def compute_next_schedule(
    quality: float,
    state: CardScheduleState,
    now: datetime | None = None,
) -> ScheduleResult:
    """
    Apply one SM-2 review to a card's schedule.

    Args:
        quality: Recall quality. Out-of-range values are clamped, never rejected.
        state: The card's current ease factor, interval and repetitions.
        now: Review time; next_review_date is now + interval days.

    Returns:
        The new schedule. The caller sets last_review_date when persisting it.
    """
    q = clamp_quality(quality)
    now = now or utcnow()

    if q >= PASSING_QUALITY:
        if state.repetitions == 0:
            interval = FIRST_INTERVAL
        elif state.repetitions == 1:
            interval = SECOND_INTERVAL
        else:
            interval = int(round_half_up(state.interval * state.ease_factor))
        repetitions = state.repetitions + 1
    else:
        repetitions = 0
        interval = FAILED_INTERVAL

    ease_factor = round_half_up(next_ease_factor(state.ease_factor, q), EASE_DECIMALS)

    return ScheduleResult(
        ease_factor=ease_factor,
        interval=interval,
        repetitions=repetitions,
        next_review_date=now + timedelta(days=interval),
    )


def _field(card: Any, name: str) -> Any:
    if isinstance(card, Mapping):
        return card[name]
    return getattr(card, name)


def _as_utc(value: datetime | None) -> datetime:
    # Never-scheduled cards sort first and are always due.
    if value is None:
        return _EPOCH
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def is_due(card: Any, now: datetime | None = None) -> bool:
    return _as_utc(_field(card, "next_review_date")) <= _as_utc(now or utcnow())


def get_cards_for_review(
    cards: Iterable[CardT],
    limit: int = DEFAULT_REVIEW_LIMIT,
    now: datetime | None = None,
) -> list[CardT]:
    """
    Due cards, most overdue first, at most ``limit`` of them.

    Cards due at the same instant keep their input order.
    """
    if limit <= 0:
        return []

    now = now or utcnow()
    due = [card for card in cards if is_due(card, now)]
    due.sort(key=lambda card: _as_utc(_field(card, "next_review_date")))
    return due[:limit]


def get_new_cards(cards: Iterable[CardT], limit: int = DEFAULT_NEW_LIMIT) -> list[CardT]:
    """
    Cards never successfully reviewed, in input order, at most ``limit``.
    """
    if limit <= 0:
        return []
    return [card for card in cards if _field(card, "repetitions") == 0][:limit]


def calculate_deck_stats(cards: Sequence[Any], now: datetime | None = None) -> DeckStats:
    """
    Bucket a deck by repetitions and count due cards.

    new (0), learning (1-2) and review (3+) partition the deck; due is an
    independent count. average_ease_factor is 0 for an empty deck.
    """
    if not cards:
        return DeckStats()

    now = now or utcnow()
    new = learning = review = due = 0
    total_ef = 0.0

    for card in cards:
        total_ef += _field(card, "ease_factor")

        repetitions = _field(card, "repetitions")
        if repetitions == 0:
            new += 1
        elif repetitions < MATURE_REPETITIONS:
            learning += 1
        else:
            review += 1

        if is_due(card, now):
            due += 1

    return DeckStats(
        total=len(cards),
        new=new,
        learning=learning,
        review=review,
        due=due,
        average_ease_factor=round_half_up(total_ef / len(cards), EASE_DECIMALS),
    )


def mastered_count(cards: Iterable[Any], threshold: int = MASTERED_REPETITIONS) -> int:
    """Reporting label only; unrelated to the review bucket."""
    return sum(1 for card in cards if _field(card, "repetitions") >= threshold)


def estimate_study_time(card_count: int) -> str:
    """
    Rough session length at ~10 seconds per card, e.g. "40s", "5 min", "2h".
    """
    seconds = card_count * SECONDS_PER_CARD

    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{int(round_half_up(seconds / 60))} min"
    return f"{int(round_half_up(seconds / 3600))}h"


def quality_label(quality: int) -> str:
    if isinstance(quality, int) and MIN_QUALITY <= quality <= MAX_QUALITY:
        return QUALITY_LABELS[quality]
    return "Unknown"
