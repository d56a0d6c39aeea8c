"""reviewkit: SM-2 spaced-repetition scheduling for flashcard decks."""

from reviewkit.consts import VERSION

__version__ = VERSION
