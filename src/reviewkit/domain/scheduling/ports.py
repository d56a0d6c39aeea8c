"""
Ports (interfaces) for card and review persistence.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod

from .models import CardScheduleState, Deck, FlashcardRecord, ReviewEvent


class CardStore(ABC):
    """
    Port for reading and writing flashcards and their decks.

    Implementations:
        - InMemoryCardStore: Process-local dictionaries.
        - SqliteCardStore: A SQLite database file.
    """

    @abstractmethod
    async def add_deck(self, deck: Deck) -> Deck:
        pass

    @abstractmethod
    async def get_deck(self, deck_id: str) -> Deck | None:
        pass

    @abstractmethod
    async def add_card(self, card: FlashcardRecord) -> FlashcardRecord:
        pass

    @abstractmethod
    async def get_card(self, card_id: str, deck_id: str | None = None) -> FlashcardRecord | None:
        """
        Fetch a single card.

        Args:
            card_id: The card to fetch.
            deck_id: If given, the card must belong to this deck.

        Returns:
            The card, or None if missing or in another deck.
        """
        pass

    @abstractmethod
    async def list_cards(self, deck_id: str) -> list[FlashcardRecord]:
        """
        Bulk fetch every card in a deck, in creation order.
        """
        pass

    @abstractmethod
    async def update_schedule(
        self, card_id: str, state: CardScheduleState, expected_version: int
    ) -> FlashcardRecord:
        """
        Write the scheduling fields of one card.

        The write only commits if the stored version still equals
        expected_version; the committed record has version + 1.

        Raises:
            CardNotFoundError: The card does not exist.
            ConcurrencyConflictError: The card changed since it was read.
        """
        pass

    @abstractmethod
    async def commit_review(
        self,
        card_id: str,
        state: CardScheduleState,
        expected_version: int,
        event: ReviewEvent,
    ) -> FlashcardRecord:
        """
        Write a card's new schedule and append its review event as one unit.

        Same compare-and-swap as update_schedule. Either both writes are
        applied or neither is: a failed append leaves the card untouched.

        Raises:
            CardNotFoundError: The card does not exist.
            ConcurrencyConflictError: The card changed since it was read.
        """
        pass


class ReviewLog(ABC):
    """
    Port for the append-only review log.
    """

    @abstractmethod
    async def append(self, event: ReviewEvent) -> ReviewEvent:
        pass

    @abstractmethod
    async def latest_for(self, flashcard_id: str, user_id: str) -> ReviewEvent | None:
        """
        Most recent review of a card by one user, or None.
        """
        pass

    @abstractmethod
    async def list_for_card(self, flashcard_id: str) -> list[ReviewEvent]:
        """
        All reviews of a card, oldest first.
        """
        pass
