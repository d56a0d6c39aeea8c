"""
Store Factory
Centralizes the logic for selecting the persistence adapters.
"""

import logging
import random

from reviewkit.application.config import AppConfig
from reviewkit.application.deck_service import DeckService
from reviewkit.application.review_service import ReviewService
from reviewkit.domain.scheduling.ports import CardStore, ReviewLog
from reviewkit.infrastructure.adapters.memory_store import InMemoryCardStore, InMemoryReviewLog
from reviewkit.infrastructure.adapters.sqlite_store import (
    SqliteCardStore,
    SqliteDatabase,
    SqliteReviewLog,
)

logger = logging.getLogger(__name__)


def get_stores(config: AppConfig) -> tuple[CardStore, ReviewLog]:
    """
    Returns the CardStore / ReviewLog pair for the configured backend.
    """
    if config.backend == "memory":
        log = InMemoryReviewLog()
        return InMemoryCardStore(log), log

    logger.debug(f"Backend: sqlite ({config.db_path})")
    db = SqliteDatabase(config.db_path)
    return SqliteCardStore(db), SqliteReviewLog(db)


def get_services(
    config: AppConfig, rng: random.Random | None = None
) -> tuple[DeckService, ReviewService]:
    card_store, review_log = get_stores(config)
    return (
        DeckService(card_store),
        ReviewService(
            card_store,
            review_log,
            max_retries=config.max_retries,
            rng=rng,
            new_card_limit=config.new_card_limit,
        ),
    )
