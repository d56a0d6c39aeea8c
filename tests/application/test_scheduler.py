from dataclasses import dataclass
from datetime import datetime, timedelta

import pytest

from reviewkit.application.scheduler import (
    calculate_deck_stats,
    clamp_quality,
    compute_next_schedule,
    estimate_study_time,
    get_cards_for_review,
    get_new_cards,
    is_due,
    mastered_count,
    quality_label,
    round_half_up,
)
from reviewkit.domain.scheduling.models import CardScheduleState, DeckStats, QualityRating


def state(ease_factor=2.5, interval=0, repetitions=0):
    return CardScheduleState(ease_factor=ease_factor, interval=interval, repetitions=repetitions)


@dataclass
class Card:
    id: str
    next_review_date: datetime
    repetitions: int = 0
    ease_factor: float = 2.5


# --- compute_next_schedule ---


def test_first_success_sets_interval_to_one(now):
    r = compute_next_schedule(4, state(repetitions=0), now)
    assert r.interval == 1
    assert r.repetitions == 1


def test_second_success_sets_interval_to_six(now):
    r = compute_next_schedule(4, state(interval=1, repetitions=1), now)
    assert r.interval == 6
    assert r.repetitions == 2


def test_subsequent_success_multiplies_interval(now):
    r = compute_next_schedule(4, state(ease_factor=2.5, interval=6, repetitions=2), now)
    assert r.interval == 15
    assert r.repetitions == 3
    assert r.ease_factor == 2.5


def test_interval_rounds_half_up(now):
    # 1 * 2.5 = 2.5 must become 3, not banker's 2
    assert compute_next_schedule(4, state(interval=1, repetitions=2), now).interval == 3
    assert compute_next_schedule(4, state(interval=3, repetitions=5), now).interval == 8


@pytest.mark.parametrize("repetitions,interval,ease", [(0, 0, 2.5), (4, 40, 2.8), (9, 300, 1.3)])
def test_failure_resets(now, repetitions, interval, ease):
    r = compute_next_schedule(0, state(ease, interval, repetitions), now)
    assert r.repetitions == 0
    assert r.interval == 1


def test_ease_deltas_by_quality(now):
    expected = {5: 2.6, 4: 2.5, 3: 2.36, 2: 2.18, 1: 1.96, 0: 1.7}
    for q, ef in expected.items():
        assert compute_next_schedule(q, state(), now).ease_factor == pytest.approx(ef), q


def test_ease_factor_floor(now):
    r = compute_next_schedule(0, state(ease_factor=1.4, interval=10, repetitions=3), now)
    assert r.ease_factor == 1.3

    for q in range(6):
        for ef in (1.3, 1.31, 1.5, 2.5, 3.2):
            assert compute_next_schedule(q, state(ease_factor=ef), now).ease_factor >= 1.3


def test_perfect_grows_ease_more_than_barely_correct(now):
    s = state(ease_factor=2.0, interval=6, repetitions=2)
    perfect = compute_next_schedule(5, s, now).ease_factor - s.ease_factor
    barely = compute_next_schedule(3, s, now).ease_factor - s.ease_factor
    assert perfect > barely


def test_quality_is_clamped(now):
    s = state(ease_factor=2.2, interval=6, repetitions=2)
    assert compute_next_schedule(7, s, now) == compute_next_schedule(5, s, now)
    assert compute_next_schedule(-3, s, now) == compute_next_schedule(0, s, now)


def test_fractional_quality_rounds_before_branching(now):
    assert compute_next_schedule(2.5, state(), now).repetitions == 1
    assert compute_next_schedule(2.4, state(), now).repetitions == 0


def test_next_review_date_uses_injected_now(now):
    r = compute_next_schedule(5, state(interval=1, repetitions=1), now)
    assert r.next_review_date == now + timedelta(days=6)


def test_result_does_not_set_last_review_date(now):
    r = compute_next_schedule(5, state(), now)
    assert not hasattr(r, "last_review_date")
    assert r.to_state(now).last_review_date == now


def test_end_to_end_scenario(now):
    s = CardScheduleState.initial(now)

    r1 = compute_next_schedule(5, s, now)
    assert (r1.interval, r1.repetitions, r1.ease_factor) == (1, 1, pytest.approx(2.6))

    day2 = now + timedelta(days=1)
    r2 = compute_next_schedule(5, r1.to_state(now), day2)
    assert (r2.interval, r2.repetitions, r2.ease_factor) == (6, 2, pytest.approx(2.7))

    r3 = compute_next_schedule(2, r2.to_state(day2), day2 + timedelta(days=6))
    assert r3.interval == 1
    assert r3.repetitions == 0
    assert 1.3 <= r3.ease_factor < 2.7
    assert r3.ease_factor == pytest.approx(2.38)


def test_accepts_quality_enum(now):
    assert compute_next_schedule(QualityRating.PERFECT, state(), now).ease_factor == 2.6


# --- helpers ---


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(0.125, 2) == 0.13
    assert round_half_up(-2.5) == -2


def test_clamp_quality_edge_values():
    assert clamp_quality(float("nan")) == 0
    assert clamp_quality(float("inf")) == 5
    assert clamp_quality(4.6) == 5
    assert clamp_quality(-0.4) == 0


# --- get_cards_for_review ---


def test_due_selection_orders_most_overdue_first(now):
    cards = [
        Card("yesterday", now - timedelta(days=1)),
        Card("tomorrow", now + timedelta(days=1)),
        Card("last_week", now - timedelta(days=5)),
    ]
    due = get_cards_for_review(cards, limit=10, now=now)
    assert [c.id for c in due] == ["last_week", "yesterday"]


def test_due_selection_truncates_and_keeps_tie_order(now):
    same = now - timedelta(hours=1)
    cards = [Card("a", same), Card("b", same), Card("c", now - timedelta(days=2))]
    assert [c.id for c in get_cards_for_review(cards, limit=2, now=now)] == ["c", "a"]
    assert [c.id for c in get_cards_for_review(cards, limit=3, now=now)] == ["c", "a", "b"]


def test_due_selection_edge_cases(now):
    cards = [Card("a", now - timedelta(days=1))]
    assert get_cards_for_review([], limit=10, now=now) == []
    assert get_cards_for_review(cards, limit=0, now=now) == []
    assert get_cards_for_review(cards, limit=-1, now=now) == []


def test_due_boundary_is_inclusive(now):
    assert is_due(Card("a", now), now)
    assert not is_due(Card("a", now + timedelta(seconds=1)), now)


def test_due_selection_accepts_mappings_and_naive_dates(now):
    naive = (now - timedelta(days=1)).replace(tzinfo=None)
    cards = [{"id": "x", "next_review_date": naive}]
    assert get_cards_for_review(cards, now=now) == cards


def test_unscheduled_card_is_due(now):
    assert is_due({"next_review_date": None}, now)


# --- get_new_cards ---


def test_new_cards_ignore_due_date_and_keep_order(now):
    cards = [
        Card("future_new", now + timedelta(days=3), repetitions=0),
        Card("seen", now - timedelta(days=1), repetitions=2),
        Card("past_new", now - timedelta(days=1), repetitions=0),
    ]
    assert [c.id for c in get_new_cards(cards, limit=10)] == ["future_new", "past_new"]
    assert [c.id for c in get_new_cards(cards, limit=1)] == ["future_new"]
    assert get_new_cards(cards, limit=0) == []


# --- calculate_deck_stats ---


def test_empty_deck_stats():
    stats = calculate_deck_stats([])
    assert stats == DeckStats()
    assert stats.as_dict() == {
        "total": 0,
        "new": 0,
        "learning": 0,
        "review": 0,
        "due": 0,
        "average_ease_factor": 0,
    }


def test_deck_stats_buckets(now):
    past, future = now - timedelta(days=1), now + timedelta(days=1)
    cards = [
        Card("a", past, repetitions=0, ease_factor=2.5),
        Card("b", future, repetitions=1, ease_factor=2.36),
        Card("c", past, repetitions=2, ease_factor=2.5),
        Card("d", future, repetitions=3, ease_factor=2.6),
        Card("e", past, repetitions=7, ease_factor=1.3),
    ]
    stats = calculate_deck_stats(cards, now)

    assert stats.total == 5
    assert (stats.new, stats.learning, stats.review) == (1, 2, 2)
    assert stats.due == 3
    assert stats.average_ease_factor == 2.25
    assert stats.new + stats.learning + stats.review == stats.total


def test_mastered_is_separate_from_review_bucket(now):
    cards = [Card(str(r), now, repetitions=r) for r in (3, 4, 5, 8)]
    assert calculate_deck_stats(cards, now).review == 4
    assert mastered_count(cards) == 2


# --- presentation helpers ---


@pytest.mark.parametrize(
    "count,label",
    [(0, "0s"), (5, "50s"), (6, "1 min"), (9, "2 min"), (30, "5 min"), (360, "1h"), (540, "2h")],
)
def test_estimate_study_time(count, label):
    assert estimate_study_time(count) == label


def test_quality_label():
    assert quality_label(0) == "Blackout"
    assert quality_label(QualityRating.GOOD) == "Good"
    assert quality_label(5) == "Perfect"
    assert quality_label(6) == "Unknown"
    assert quality_label(-1) == "Unknown"
