# Infrastructure Store Adapters Package
from .memory_store import InMemoryCardStore, InMemoryReviewLog
from .sqlite_store import SqliteCardStore, SqliteDatabase, SqliteReviewLog

__all__ = [
    "InMemoryCardStore",
    "InMemoryReviewLog",
    "SqliteCardStore",
    "SqliteDatabase",
    "SqliteReviewLog",
]
