# Domain Scheduling Package
from .models import (
    CardScheduleState,
    Deck,
    DeckStats,
    FlashcardRecord,
    QualityRating,
    ReviewEvent,
    ScheduleResult,
    utcnow,
)
from .ports import CardStore, ReviewLog

__all__ = [
    "CardScheduleState",
    "CardStore",
    "Deck",
    "DeckStats",
    "FlashcardRecord",
    "QualityRating",
    "ReviewEvent",
    "ReviewLog",
    "ScheduleResult",
    "utcnow",
]
