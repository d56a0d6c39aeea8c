"""Stable identifiers for decks, cards and review events."""

from ulid import ULID


def generate_id(prefix: str) -> str:
    """Generate a sortable ID using ULID, e.g. ``card_01HV...``."""
    return f"{prefix}_{ULID()}"
