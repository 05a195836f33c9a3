"""Flashcard model: authored content plus its persisted FSRS state."""

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.config import utcnow
from backend.models.base import Base, TimestampMixin
from backend.srs.card import DEFAULT_DIFFICULTY, DEFAULT_STABILITY, Card, State

FLASHCARD_TYPES = ("QnA", "Definition", "Cloze")


class Flashcard(Base, TimestampMixin):
    """One flashcard per row. ``version`` guards concurrent review commits."""

    __tablename__ = "flashcards"
    __table_args__ = (
        Index("idx_flashcards_user_due", "user_id", "due"),
        Index("idx_flashcards_user_state", "user_id", "state"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False, default="QnA")
    front: Mapped[str] = mapped_column(Text, nullable=False)
    back: Mapped[str] = mapped_column(Text, nullable=False)
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    state: Mapped[str | None] = mapped_column(String(20), nullable=True, default=State.NEW.name)
    due: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    stability: Mapped[float] = mapped_column(Float, nullable=False, default=DEFAULT_STABILITY)
    difficulty: Mapped[float] = mapped_column(Float, nullable=False, default=DEFAULT_DIFFICULTY)
    elapsed_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    scheduled_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reps: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lapses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_review: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    learning_steps: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    reviews: Mapped[list["FlashcardReview"]] = relationship(back_populates="flashcard")  # type: ignore[name-defined] # noqa: F821

    def to_card(self) -> Card:
        """Convert the stored row into an engine ``Card``.

        Raises:
            UnknownCardState: If the stored state is not a known lifecycle state.
        """
        state = State.parse(self.state)
        if state == State.NEW:
            return Card.new(self.due or utcnow())
        return Card(
            due=self.due,
            stability=self.stability,
            difficulty=self.difficulty,
            elapsed_days=self.elapsed_days or 0,
            scheduled_days=self.scheduled_days or 0,
            reps=self.reps or 0,
            lapses=self.lapses or 0,
            state=state,
            last_review=self.last_review,
            learning_steps=self.learning_steps or 0,
        )


def card_columns(card: Card) -> dict:
    """Column values for persisting an engine ``Card``."""
    return {
        "state": card.state.name,
        "due": card.due,
        "stability": card.stability,
        "difficulty": card.difficulty,
        "elapsed_days": card.elapsed_days,
        "scheduled_days": card.scheduled_days,
        "reps": card.reps,
        "lapses": card.lapses,
        "last_review": card.last_review,
        "learning_steps": card.learning_steps,
    }
