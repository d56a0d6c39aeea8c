"""
SQLite adapters: Infrastructure implementations of CardStore and ReviewLog.

Both adapters share one database file. Timestamps are stored as ISO-8601
strings in UTC.
"""

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

from reviewkit.domain.errors import CardNotFoundError, ConcurrencyConflictError
from reviewkit.domain.scheduling.models import (
    CardScheduleState,
    Deck,
    FlashcardRecord,
    ReviewEvent,
)
from reviewkit.domain.scheduling.ports import CardStore, ReviewLog

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS decks (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    title TEXT NOT NULL,
    is_public INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS flashcards (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    deck_id TEXT NOT NULL REFERENCES decks(id) ON DELETE CASCADE,
    front TEXT NOT NULL,
    back TEXT NOT NULL,
    hint TEXT,
    ease_factor REAL NOT NULL DEFAULT 2.5,
    interval INTEGER NOT NULL DEFAULT 0,
    repetitions INTEGER NOT NULL DEFAULT 0,
    next_review_date TEXT,
    last_review_date TEXT,
    version INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_flashcards_deck ON flashcards(deck_id, next_review_date);

CREATE TABLE IF NOT EXISTS flashcard_reviews (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    flashcard_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    quality INTEGER NOT NULL,
    response_ms INTEGER,
    ease_factor REAL,
    interval INTEGER,
    repetitions INTEGER,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_reviews_card_user ON flashcard_reviews(flashcard_id, user_id);
"""


def _dump_dt(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat()


def _load_dt(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)


class SqliteDatabase:
    """
    Owns the database file and hands out short-lived connections.
    """

    def __init__(self, path: Path | str):
        self.path = str(path)
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self.init_schema()

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_schema(self) -> None:
        with self.connect() as conn:
            conn.executescript(SCHEMA)
        logger.debug(f"Schema ready at {self.path}")


def _row_to_card(row: sqlite3.Row) -> FlashcardRecord:
    return FlashcardRecord(
        id=row["id"],
        deck_id=row["deck_id"],
        front=row["front"],
        back=row["back"],
        hint=row["hint"],
        ease_factor=row["ease_factor"],
        interval=row["interval"],
        repetitions=row["repetitions"],
        next_review_date=_load_dt(row["next_review_date"]),
        last_review_date=_load_dt(row["last_review_date"]),
        version=row["version"],
        created_at=_load_dt(row["created_at"]),
    )


def _row_to_event(row: sqlite3.Row) -> ReviewEvent:
    return ReviewEvent(
        id=row["id"],
        flashcard_id=row["flashcard_id"],
        user_id=row["user_id"],
        quality=row["quality"],
        created_at=_load_dt(row["created_at"]),
        response_ms=row["response_ms"],
        ease_factor=row["ease_factor"],
        interval=row["interval"],
        repetitions=row["repetitions"],
    )


def _cas_update(
    conn: sqlite3.Connection, card_id: str, state: CardScheduleState, expected_version: int
) -> None:
    cursor = conn.execute(
        "UPDATE flashcards SET ease_factor = ?, interval = ?, repetitions = ?, "
        "next_review_date = ?, last_review_date = ?, version = version + 1 "
        "WHERE id = ? AND version = ?",
        (
            state.ease_factor,
            state.interval,
            state.repetitions,
            _dump_dt(state.next_review_date),
            _dump_dt(state.last_review_date),
            card_id,
            expected_version,
        ),
    )
    if cursor.rowcount == 0:
        exists = conn.execute("SELECT 1 FROM flashcards WHERE id = ?", (card_id,)).fetchone()
        if exists is None:
            raise CardNotFoundError(f"Card {card_id} not found")
        raise ConcurrencyConflictError(card_id, expected_version)


def _insert_event(conn: sqlite3.Connection, event: ReviewEvent) -> None:
    conn.execute(
        "INSERT INTO flashcard_reviews (id, flashcard_id, user_id, quality, response_ms, "
        "ease_factor, interval, repetitions, created_at) "
        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
        (
            event.id,
            event.flashcard_id,
            event.user_id,
            event.quality,
            event.response_ms,
            event.ease_factor,
            event.interval,
            event.repetitions,
            _dump_dt(event.created_at),
        ),
    )


class SqliteCardStore(CardStore):
    def __init__(self, db: SqliteDatabase):
        self.db = db

    async def add_deck(self, deck: Deck) -> Deck:
        with self.db.connect() as conn:
            conn.execute(
                "INSERT INTO decks (id, user_id, title, is_public, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (deck.id, deck.user_id, deck.title, int(deck.is_public), _dump_dt(deck.created_at)),
            )
        logger.info(f"Created deck {deck.id} for user {deck.user_id}")
        return deck

    async def get_deck(self, deck_id: str) -> Deck | None:
        with self.db.connect() as conn:
            row = conn.execute("SELECT * FROM decks WHERE id = ?", (deck_id,)).fetchone()
        if row is None:
            return None
        return Deck(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            is_public=bool(row["is_public"]),
            created_at=_load_dt(row["created_at"]),
        )

    async def add_card(self, card: FlashcardRecord) -> FlashcardRecord:
        with self.db.connect() as conn:
            conn.execute(
                "INSERT INTO flashcards (id, deck_id, front, back, hint, ease_factor, interval, "
                "repetitions, next_review_date, last_review_date, version, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    card.id,
                    card.deck_id,
                    card.front,
                    card.back,
                    card.hint,
                    card.ease_factor,
                    card.interval,
                    card.repetitions,
                    _dump_dt(card.next_review_date),
                    _dump_dt(card.last_review_date),
                    card.version,
                    _dump_dt(card.created_at),
                ),
            )
        return card

    async def get_card(self, card_id: str, deck_id: str | None = None) -> FlashcardRecord | None:
        query = "SELECT * FROM flashcards WHERE id = ?"
        params: tuple = (card_id,)
        if deck_id is not None:
            query += " AND deck_id = ?"
            params = (card_id, deck_id)

        with self.db.connect() as conn:
            row = conn.execute(query, params).fetchone()
        return _row_to_card(row) if row else None

    async def list_cards(self, deck_id: str) -> list[FlashcardRecord]:
        with self.db.connect() as conn:
            rows = conn.execute(
                "SELECT * FROM flashcards WHERE deck_id = ? ORDER BY seq ASC", (deck_id,)
            ).fetchall()
        return [_row_to_card(r) for r in rows]

    async def update_schedule(
        self, card_id: str, state: CardScheduleState, expected_version: int
    ) -> FlashcardRecord:
        with self.db.connect() as conn:
            _cas_update(conn, card_id, state, expected_version)
            row = conn.execute("SELECT * FROM flashcards WHERE id = ?", (card_id,)).fetchone()
        return _row_to_card(row)

    async def commit_review(
        self,
        card_id: str,
        state: CardScheduleState,
        expected_version: int,
        event: ReviewEvent,
    ) -> FlashcardRecord:
        # One connection, one transaction: a failed insert rolls back the update.
        with self.db.connect() as conn:
            _cas_update(conn, card_id, state, expected_version)
            _insert_event(conn, event)
            row = conn.execute("SELECT * FROM flashcards WHERE id = ?", (card_id,)).fetchone()
        return _row_to_card(row)


class SqliteReviewLog(ReviewLog):
    def __init__(self, db: SqliteDatabase):
        self.db = db

    async def append(self, event: ReviewEvent) -> ReviewEvent:
        with self.db.connect() as conn:
            _insert_event(conn, event)
        return event

    async def latest_for(self, flashcard_id: str, user_id: str) -> ReviewEvent | None:
        with self.db.connect() as conn:
            row = conn.execute(
                "SELECT * FROM flashcard_reviews WHERE flashcard_id = ? AND user_id = ? "
                "ORDER BY seq DESC LIMIT 1",
                (flashcard_id, user_id),
            ).fetchone()
        return _row_to_event(row) if row else None

    async def list_for_card(self, flashcard_id: str) -> list[ReviewEvent]:
        with self.db.connect() as conn:
            rows = conn.execute(
                "SELECT * FROM flashcard_reviews WHERE flashcard_id = ? ORDER BY seq ASC",
                (flashcard_id,),
            ).fetchall()
        return [_row_to_event(r) for r in rows]
