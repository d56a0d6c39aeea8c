"""Domain errors raised at the caller boundary.

The scheduler itself never raises; these belong to the service layer and
the adapters that back it.
"""


class ReviewKitError(Exception):
    """Base class for all reviewkit errors."""


class InvalidQualityError(ReviewKitError):
    """Quality rating is not an integer in [0, 5]."""


class CardNotFoundError(ReviewKitError):
    pass


class DeckNotFoundError(ReviewKitError):
    pass


class AccessDeniedError(ReviewKitError):
    """User may not review cards in this deck."""


class ConcurrencyConflictError(ReviewKitError):
    """A schedule write lost a compare-and-swap on the card version."""

    def __init__(self, card_id: str, expected_version: int):
        super().__init__(
            f"Card {card_id} was modified concurrently (expected version {expected_version})"
        )
        self.card_id = card_id
        self.expected_version = expected_version
