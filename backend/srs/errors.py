"""Error taxonomy for the scheduling engine and its persistence boundary.

Only ``ConcurrentModificationConflict`` is retryable, and only by re-reading
the card and recomputing the review from scratch. Everything else is a
programming or data error that must reach the caller untouched.
"""


class SRSError(Exception):
    """Base class for all scheduling errors."""


class InvalidRating(SRSError, ValueError):
    """A rating outside Again(1) / Hard(2) / Good(3) / Easy(4)."""

    def __init__(self, rating: object) -> None:
        self.rating = rating
        super().__init__(
            f"Invalid rating {rating!r}. Must be 1 (Again), 2 (Hard), 3 (Good), or 4 (Easy)."
        )


class UnknownCardState(SRSError, ValueError):
    """A persisted state that does not map to New/Learning/Review/Relearning."""

    def __init__(self, state: object) -> None:
        self.state = state
        super().__init__(f"Unknown card state {state!r}")


class NumericDomainError(SRSError, ArithmeticError):
    """A computed value is NaN, infinite, or outside its valid range."""

    def __init__(self, quantity: str, value: object) -> None:
        self.quantity = quantity
        self.value = value
        super().__init__(f"{quantity} out of domain: {value!r}")


class FlashcardNotFound(SRSError, LookupError):
    """The flashcard does not exist, is soft-deleted, or belongs to another user."""

    def __init__(self, flashcard_id: int) -> None:
        self.flashcard_id = flashcard_id
        super().__init__(f"Flashcard {flashcard_id} not found or access denied")


class ConcurrentModificationConflict(SRSError):
    """The card changed between read and conditional write."""

    def __init__(self, flashcard_id: int, expected_version: int) -> None:
        self.flashcard_id = flashcard_id
        self.expected_version = expected_version
        super().__init__(
            f"Flashcard {flashcard_id} was modified concurrently "
            f"(expected version {expected_version})"
        )
