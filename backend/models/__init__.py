"""SQLAlchemy ORM models for the flashcard SRS database."""

from backend.models.base import Base
from backend.models.flashcard import Flashcard
from backend.models.flashcard_review import FlashcardReview

__all__ = ["Base", "Flashcard", "FlashcardReview"]
