"""Persistence boundary for reviews.

Reads a flashcard, runs the scheduler, and writes the new state back with an
optimistic lock: the UPDATE only matches while the row still carries the
version that was read. A lost race raises ``ConcurrentModificationConflict``
and writes nothing; ``submit_review`` then recomputes from a fresh read.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from backend.config import settings, utcnow
from backend.models.flashcard import FLASHCARD_TYPES, Flashcard, card_columns
from backend.models.flashcard_review import FlashcardReview
from backend.srs.card import Card, Rating, SchedulingInfo
from backend.srs.errors import ConcurrentModificationConflict, FlashcardNotFound
from backend.srs.scheduler import Scheduler

logger = logging.getLogger(__name__)


@dataclass
class ReviewOutcome:
    """A committed review."""

    flashcard_id: int
    version: int
    result: SchedulingInfo
    review_id: int


async def get_flashcard(db: AsyncSession, flashcard_id: int, user_id: str) -> Flashcard:
    """Fetch a live flashcard owned by ``user_id``, re-reading its stored values.

    Raises:
        FlashcardNotFound: Missing, soft-deleted, or owned by someone else.
    """
    stmt = (
        select(Flashcard)
        .where(
            and_(
                Flashcard.id == flashcard_id,
                Flashcard.user_id == user_id,
                Flashcard.is_deleted.is_(False),
            )
        )
        .execution_options(populate_existing=True)
    )
    row = (await db.execute(stmt)).scalar_one_or_none()
    if row is None:
        raise FlashcardNotFound(flashcard_id)
    return row


async def load_card(
    db: AsyncSession,
    flashcard_id: int,
    user_id: str,
) -> tuple[Flashcard, Card]:
    """Fetch a flashcard and convert it to an engine ``Card``.

    Raises:
        FlashcardNotFound: No live flashcard with that id for the user.
        UnknownCardState: The stored state is not recognised.
    """
    row = await get_flashcard(db, flashcard_id, user_id)
    return row, row.to_card()


async def commit_review(
    db: AsyncSession,
    row: Flashcard,
    result: SchedulingInfo,
    user_id: str,
) -> ReviewOutcome:
    """Write ``result`` for ``row`` if nobody else committed since it was read."""
    flashcard_id = row.id
    expected_version = row.version
    card = result.card
    log = result.log

    stmt = (
        update(Flashcard)
        .where(and_(Flashcard.id == flashcard_id, Flashcard.version == expected_version))
        .values(**card_columns(card), version=expected_version + 1, updated_at=log.review)
        .execution_options(synchronize_session=False)
    )
    updated = await db.execute(stmt)
    if updated.rowcount != 1:
        await db.rollback()
        logger.warning(
            "Review conflict on flashcard %d: version %d is stale",
            flashcard_id,
            expected_version,
        )
        raise ConcurrentModificationConflict(flashcard_id, expected_version)

    entry = FlashcardReview(
        flashcard_id=flashcard_id,
        user_id=user_id,
        rating=int(log.rating),
        state_before=log.state.name,
        state_after=log.state_after.name,
        stability_before=log.stability_before,
        stability_after=log.stability_after,
        difficulty_before=log.difficulty_before,
        difficulty_after=log.difficulty_after,
        elapsed_days=log.elapsed_days,
        scheduled_days=log.scheduled_days,
        review_duration_ms=log.review_duration_ms,
        created_at=log.review,
    )
    db.add(entry)
    await db.flush()
    review_id = entry.id
    await db.commit()

    logger.info(
        "Reviewed flashcard %d as %s: %s -> %s, next due %s",
        flashcard_id,
        log.rating.name,
        log.state.name,
        log.state_after.name,
        card.due.isoformat(),
    )
    return ReviewOutcome(
        flashcard_id=flashcard_id,
        version=expected_version + 1,
        result=result,
        review_id=review_id,
    )


async def submit_review(
    db: AsyncSession,
    flashcard_id: int,
    user_id: str,
    rating: Rating | int,
    scheduler: Scheduler | None = None,
    review_duration_ms: int | None = None,
    now: datetime | None = None,
    max_attempts: int | None = None,
) -> ReviewOutcome:
    """Review a stored flashcard and persist the outcome.

    The rating is validated before anything is read. On a concurrent
    modification the whole review is recomputed from a fresh read, up to
    ``max_attempts`` times; the last conflict propagates to the caller.

    Raises:
        InvalidRating: Rating outside 1-4.
        FlashcardNotFound: No live flashcard with that id for the user.
        UnknownCardState / NumericDomainError: Corrupt stored state.
        ConcurrentModificationConflict: Every attempt lost the race.
    """
    rating = Rating.parse(rating)
    scheduler = scheduler or Scheduler()

    async def review_once() -> ReviewOutcome:
        row, card = await load_card(db, flashcard_id, user_id)
        result = scheduler.review(card, now or utcnow(), rating, review_duration_ms)
        return await commit_review(db, row, result, user_id)

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_attempts or settings.review_conflict_retries),
        wait=wait_exponential(multiplier=0.05, max=1),
        retry=retry_if_exception_type(ConcurrentModificationConflict),
        reraise=True,
    )
    return await retrying(review_once)


async def soft_delete(db: AsyncSession, flashcard_id: int, user_id: str) -> None:
    """Hide a flashcard from scheduling. Its review history is kept."""
    row = await get_flashcard(db, flashcard_id, user_id)
    row.is_deleted = True
    row.version += 1
    await db.commit()
    logger.info("Soft-deleted flashcard %d", flashcard_id)


async def create_flashcard(
    db: AsyncSession,
    user_id: str,
    front: str,
    back: str,
    card_type: str = "QnA",
    tags: list[str] | None = None,
    now: datetime | None = None,
) -> Flashcard:
    """Author a new flashcard in the New state, due immediately."""
    if card_type not in FLASHCARD_TYPES:
        raise ValueError(f"Unknown flashcard type {card_type!r}; expected one of {FLASHCARD_TYPES}")
    now = now or utcnow()
    row = Flashcard(
        user_id=user_id,
        type=card_type,
        front=front,
        back=back,
        tags=list(tags or []),
        created_at=now,
        updated_at=now,
        **card_columns(Card.new(now)),
    )
    db.add(row)
    await db.commit()
    logger.info("Created flashcard %d for user %s", row.id, user_id)
    return row
