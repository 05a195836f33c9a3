"""Pydantic schemas for API request/response models."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

# --- Flashcards ---


class FlashcardCreateRequest(BaseModel):
    """Request to author a new flashcard."""

    front: str = Field(min_length=1)
    back: str = Field(min_length=1)
    type: Literal["QnA", "Definition", "Cloze"] = "QnA"
    tags: list[str] = Field(default_factory=list)


class FlashcardResponse(BaseModel):
    """A flashcard with its scheduling state."""

    id: int
    type: str
    front: str
    back: str
    tags: list[str]
    state: str | None
    due: datetime
    stability: float
    difficulty: float
    elapsed_days: int
    scheduled_days: int
    reps: int
    lapses: int
    last_review: datetime | None
    learning_steps: int
    version: int

    model_config = {"from_attributes": True}


# --- Review ---


class ReviewRequest(BaseModel):
    """Request to record a rating for a flashcard."""

    rating: int  # 1=Again, 2=Hard, 3=Good, 4=Easy; range checked by the scheduler
    review_duration_ms: int | None = Field(default=None, ge=0)


class ReviewResponse(BaseModel):
    """Response after a committed review with the next schedule."""

    success: bool = True
    next_review: datetime
    interval_days: int
    card_state: str
    stability: float
    difficulty: float
    reps: int
    lapses: int
    state_changed: bool
    days_until_due: int


class IntervalPreviewResponse(BaseModel):
    """Where one rating would send the card."""

    interval_days: int
    due: datetime
    state: str
    minutes_until_due: float


class PreviewResponse(BaseModel):
    """Upcoming intervals for all four ratings, without committing any."""

    flashcard_id: int
    again: IntervalPreviewResponse
    hard: IntervalPreviewResponse
    good: IntervalPreviewResponse
    easy: IntervalPreviewResponse


# --- Queue / stats ---


class DueFlashcardsResponse(BaseModel):
    """Cards to review now: due cards first, then new cards."""

    flashcards: list[FlashcardResponse]
    total_due: int
    total_new: int
    has_more: bool


class FlashcardStatsResponse(BaseModel):
    """Aggregate counts for the revise screen."""

    due_today: int
    due_overdue: int
    new_cards: int
    total_reviews_today: int
