"""Value types shared by the memory model and the scheduler.

Everything here is immutable: the scheduler never mutates a card in place, it
returns new ``Card`` and ``ReviewLog`` values that the caller may persist or
drop.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import IntEnum

from backend.srs.errors import InvalidRating, UnknownCardState

# Storage defaults for a freshly authored card
DEFAULT_STABILITY = 0.4
DEFAULT_DIFFICULTY = 5.0


class State(IntEnum):
    """Lifecycle position of a card."""

    NEW = 0
    LEARNING = 1
    REVIEW = 2
    RELEARNING = 3

    @classmethod
    def parse(cls, value: "State | int | str | None") -> "State":
        """Convert a persisted state value, failing fast on anything unrecognised.

        ``None`` means the row predates scheduling and is treated as New, which
        is also the storage default. Any other unknown value raises
        ``UnknownCardState``: guessing would corrupt the card's statistics.
        """
        if value is None:
            return cls.NEW
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise UnknownCardState(value) from None
        if isinstance(value, int) and not isinstance(value, bool):
            try:
                return cls(value)
            except ValueError:
                raise UnknownCardState(value) from None
        raise UnknownCardState(value)


class Rating(IntEnum):
    """Recall quality supplied by the learner."""

    AGAIN = 1
    HARD = 2
    GOOD = 3
    EASY = 4

    @classmethod
    def parse(cls, value: "Rating | int") -> "Rating":
        """Validate a raw rating, raising ``InvalidRating`` outside 1-4."""
        if isinstance(value, cls):
            return value
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidRating(value)
        try:
            return cls(value)
        except ValueError:
            raise InvalidRating(value) from None


@dataclass(frozen=True)
class Card:
    """Memory state of a single flashcard."""

    due: datetime
    stability: float = DEFAULT_STABILITY
    difficulty: float = DEFAULT_DIFFICULTY
    elapsed_days: int = 0
    scheduled_days: int = 0
    reps: int = 0
    lapses: int = 0
    state: State = State.NEW
    last_review: datetime | None = None
    learning_steps: int = 0

    @classmethod
    def new(cls, now: datetime) -> "Card":
        """Create a never-reviewed card that is due immediately."""
        return cls(due=now)

    def evolve(self, **changes) -> "Card":
        return replace(self, **changes)


@dataclass(frozen=True)
class ReviewLog:
    """Immutable record of one review: the card before and after, plus the rating."""

    rating: Rating
    state: State  # before the review
    state_after: State
    due: datetime  # due date before the review
    stability_before: float
    stability_after: float
    difficulty_before: float
    difficulty_after: float
    elapsed_days: int
    last_elapsed_days: int
    scheduled_days: int
    learning_steps: int
    review: datetime
    review_duration_ms: int | None = None

    @property
    def state_changed(self) -> bool:
        return self.state != self.state_after


@dataclass(frozen=True)
class SchedulingInfo:
    """One candidate outcome of a review: the resulting card and its log."""

    card: Card
    log: ReviewLog


# Rating -> candidate outcome, always holding all four ratings
RecordLog = dict[Rating, SchedulingInfo]
