"""Queue management for flashcard reviews.

Fetches due cards (overdue first), tops the queue up with New cards, and
computes the aggregate counts shown on the revise screen.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.config import settings, utcnow
from backend.models.flashcard import Flashcard
from backend.models.flashcard_review import FlashcardReview
from backend.srs.card import State

logger = logging.getLogger(__name__)


@dataclass
class QueueConfig:
    """Configuration for queue building."""

    limit: int = settings.max_reviews_per_session
    include_new: bool = True
    new_cards_limit: int = settings.max_new_cards_per_session


@dataclass
class ReviewQueue:
    """A prepared queue of cards for a review session."""

    due_cards: list[Flashcard] = field(default_factory=list)
    new_cards: list[Flashcard] = field(default_factory=list)
    total: int = 0
    has_more: bool = False

    def interleaved(self) -> list[Flashcard]:
        """Return cards interleaved: mostly reviews with new cards mixed in.

        Strategy: Insert new cards at regular intervals within the review queue
        to maintain engagement without overwhelming with unfamiliar material.
        """
        if not self.new_cards:
            return list(self.due_cards)
        if not self.due_cards:
            return list(self.new_cards)

        result: list[Flashcard] = []
        new = list(self.new_cards)

        # Insert a new card every N reviews
        every = max(1, len(self.due_cards) // (len(new) + 1))
        new_idx = 0

        for i, card in enumerate(self.due_cards):
            result.append(card)
            if new_idx < len(new) and (i + 1) % every == 0:
                result.append(new[new_idx])
                new_idx += 1

        # Append any remaining new cards at the end
        result.extend(new[new_idx:])
        return result


@dataclass
class QueueStats:
    """Aggregate counts for a learner's cards."""

    due_today: int
    due_overdue: int
    new_cards: int
    total_reviews_today: int


def _live(user_id: str):
    return and_(Flashcard.user_id == user_id, Flashcard.is_deleted.is_(False))


def _day_bounds(now: datetime) -> tuple[datetime, datetime]:
    start = datetime.combine(now.date(), time.min)
    return start, start + timedelta(days=1)


async def build_queue(
    session: AsyncSession,
    user_id: str,
    config: QueueConfig | None = None,
    now: datetime | None = None,
) -> ReviewQueue:
    """Build a review queue for a user.

    Fetches due cards (anything not New with ``due <= now``, most overdue
    first), then fills the remaining slots with New cards, newest first.

    Args:
        session: Database session.
        user_id: The user to build the queue for.
        config: Queue configuration (limits, new card policy).
        now: Current time (defaults to utcnow).

    Returns:
        A ReviewQueue with due and new cards.
    """
    config = config or QueueConfig()
    now = now or utcnow()

    due_stmt = (
        select(Flashcard)
        .where(
            and_(
                _live(user_id),
                Flashcard.state != State.NEW.name,
                Flashcard.due <= now,
            )
        )
        .order_by(Flashcard.due.asc(), Flashcard.id.asc())
        .limit(config.limit)
    )
    due_cards = list((await session.execute(due_stmt)).scalars().all())

    new_cards: list[Flashcard] = []
    if config.include_new and len(due_cards) < config.limit:
        new_card_slots = min(config.new_cards_limit, config.limit - len(due_cards))
        # NULL state rows predate scheduling and count as New
        new_stmt = (
            select(Flashcard)
            .where(
                and_(
                    _live(user_id),
                    (Flashcard.state == State.NEW.name) | Flashcard.state.is_(None),
                )
            )
            .order_by(Flashcard.created_at.desc(), Flashcard.id.desc())
            .limit(new_card_slots)
        )
        new_cards = list((await session.execute(new_stmt)).scalars().all())

    total = len(due_cards) + len(new_cards)
    queue = ReviewQueue(
        due_cards=due_cards,
        new_cards=new_cards,
        total=total,
        has_more=total == config.limit,
    )

    logger.info(
        "Built queue for user %s: %d due + %d new = %d total",
        user_id,
        len(due_cards),
        len(new_cards),
        queue.total,
    )
    return queue


async def get_stats(
    session: AsyncSession,
    user_id: str,
    now: datetime | None = None,
) -> QueueStats:
    """Count due-today, overdue, and new cards plus today's reviews."""
    now = now or utcnow()
    today_start, tomorrow_start = _day_bounds(now)

    due_dates = (
        await session.execute(
            select(Flashcard.due).where(
                and_(_live(user_id), Flashcard.state != State.NEW.name, Flashcard.due <= now)
            )
        )
    ).scalars().all()
    due_today = sum(1 for due in due_dates if today_start <= due < tomorrow_start)

    new_cards = (
        await session.execute(
            select(func.count(Flashcard.id)).where(
                and_(
                    _live(user_id),
                    (Flashcard.state == State.NEW.name) | Flashcard.state.is_(None),
                )
            )
        )
    ).scalar() or 0

    reviews_today = (
        await session.execute(
            select(func.count(FlashcardReview.id)).where(
                and_(
                    FlashcardReview.user_id == user_id,
                    FlashcardReview.created_at >= today_start,
                    FlashcardReview.created_at < tomorrow_start,
                )
            )
        )
    ).scalar() or 0

    return QueueStats(
        due_today=due_today,
        due_overdue=len(due_dates) - due_today,
        new_cards=new_cards,
        total_reviews_today=reviews_today,
    )
