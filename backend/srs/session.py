"""Review session orchestrator.

Walks a prepared queue one card at a time, submits the learner's rating
through the persistence boundary, and keeps running session statistics.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from backend.models.flashcard import Flashcard
from backend.srs.card import Rating, State
from backend.srs.parameters import Parameters
from backend.srs.queue import QueueConfig, ReviewQueue, build_queue
from backend.srs.scheduler import IntervalPreview, Scheduler
from backend.srs.store import ReviewOutcome, load_card, submit_review

logger = logging.getLogger(__name__)


@dataclass
class SessionStats:
    """Statistics for a review session."""

    cards_reviewed: int = 0
    again: int = 0
    hard: int = 0
    good: int = 0
    easy: int = 0
    new_cards_seen: int = 0
    average_time_ms: float = 0.0
    total_time_ms: int = 0

    def record(self, rating: Rating, was_new: bool, time_ms: int | None) -> None:
        self.cards_reviewed += 1
        field_name = rating.name.lower()
        setattr(self, field_name, getattr(self, field_name) + 1)
        if was_new:
            self.new_cards_seen += 1
        if time_ms is not None:
            self.total_time_ms += time_ms
            self.average_time_ms = self.total_time_ms / self.cards_reviewed


@dataclass
class ReviewSession:
    """Manages an active review session for a user."""

    user_id: str
    queue: ReviewQueue
    scheduler: Scheduler
    stats: SessionStats = field(default_factory=SessionStats)
    _card_index: int = 0
    _cards: list[Flashcard] = field(default_factory=list)
    _card_ids: list[int] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Initialize the card list from the queue."""
        self._cards = self.queue.interleaved()
        self._card_ids = [card.id for card in self._cards]

    @property
    def remaining(self) -> int:
        """Return the number of cards left to review."""
        return max(0, len(self._cards) - self._card_index)

    @property
    def is_complete(self) -> bool:
        """Return True if all cards have been reviewed."""
        return self._card_index >= len(self._cards)

    @property
    def current_card(self) -> Flashcard | None:
        """Return the current card or None if session is complete."""
        if self._card_index < len(self._cards):
            return self._cards[self._card_index]
        return None

    @property
    def current_id(self) -> int | None:
        """Return the id of the current card, captured when the session started."""
        if self.is_complete:
            return None
        return self._card_ids[self._card_index]

    async def preview(
        self,
        db: AsyncSession,
        now: datetime,
    ) -> dict[Rating, IntervalPreview] | None:
        """Intervals each rating would give the current card, from its stored state."""
        if self.is_complete:
            return None
        _, card = await load_card(db, self._card_ids[self._card_index], self.user_id)
        return self.scheduler.preview(card, now)

    def skip(self) -> None:
        """Move past the current card without recording a review."""
        self._card_index += 1

    async def submit_rating(
        self,
        db: AsyncSession,
        rating: Rating | int,
        review_duration_ms: int | None = None,
        now: datetime | None = None,
    ) -> ReviewOutcome:
        """Record ``rating`` for the current card and advance.

        A failed review leaves the card in place so the learner can retry.
        """
        if self.is_complete:
            raise IndexError("Review session is complete")

        rating = Rating.parse(rating)
        outcome = await submit_review(
            db,
            self._card_ids[self._card_index],
            self.user_id,
            rating,
            scheduler=self.scheduler,
            review_duration_ms=review_duration_ms,
            now=now,
        )

        self.stats.record(rating, outcome.result.log.state == State.NEW, review_duration_ms)
        self._card_index += 1
        return outcome


async def start_session(
    db: AsyncSession,
    user_id: str,
    config: QueueConfig | None = None,
    params: Parameters | None = None,
) -> ReviewSession:
    """Start a new review session for a user.

    Args:
        db: Database session.
        user_id: The user starting the session.
        config: Queue limits (defaults from settings).
        params: Scheduler parameters (defaults from settings).

    Returns:
        A ReviewSession ready for use.
    """
    queue = await build_queue(db, user_id, config)
    scheduler = Scheduler(params or Parameters.from_settings())

    session = ReviewSession(
        user_id=user_id,
        queue=queue,
        scheduler=scheduler,
    )

    logger.info(
        "Started session for user %s: %d cards queued",
        user_id,
        queue.total,
    )
    return session
