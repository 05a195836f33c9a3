"""Tests for queue building, revise-screen stats, and review sessions."""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.models.flashcard import Flashcard
from backend.srs import store
from backend.srs.card import Rating
from backend.srs.errors import FlashcardNotFound, InvalidRating
from backend.srs.parameters import Parameters
from backend.srs.queue import QueueConfig, build_queue, get_stats
from backend.srs.session import start_session

T = datetime(2025, 7, 1, 12, 0, 0)


async def _add(
    db: AsyncSession,
    front: str,
    user_id: str = "alice",
    created: datetime = T - timedelta(days=30),
    **schedule,
) -> int:
    """Create a card and optionally move it into a scheduled state."""
    row = await store.create_flashcard(db, user_id, front, f"{front} back", now=created)
    if schedule:
        schedule.setdefault("state", "REVIEW")
        schedule.setdefault("stability", 5.0)
        schedule.setdefault("reps", 3)
        schedule.setdefault("last_review", schedule["due"] - timedelta(days=5))
        await db.execute(
            update(Flashcard)
            .where(Flashcard.id == row.id)
            .values(**schedule)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    return row.id


async def _seed(db: AsyncSession) -> dict[str, int]:
    ids = {
        "overdue": await _add(db, "overdue", due=T - timedelta(days=3)),
        "due_soon": await _add(db, "due_soon", due=T - timedelta(hours=1)),
        "future": await _add(db, "future", due=T + timedelta(days=1)),
        "learning": await _add(db, "learning", state="LEARNING", due=T - timedelta(minutes=5)),
        "new_old": await _add(db, "new_old", created=T - timedelta(days=2)),
        "new_recent": await _add(db, "new_recent", created=T - timedelta(days=1)),
        "deleted": await _add(db, "deleted", due=T - timedelta(days=10)),
        "other_user": await _add(db, "other_user", user_id="bob", due=T - timedelta(days=10)),
    }
    await store.soft_delete(db, ids["deleted"], "alice")
    return ids


@pytest.mark.asyncio
async def test_build_queue_orders_due_then_new(db: AsyncSession) -> None:
    ids = await _seed(db)
    queue = await build_queue(db, "alice", QueueConfig(limit=10, new_cards_limit=5), now=T)

    assert [c.id for c in queue.due_cards] == [ids["overdue"], ids["due_soon"], ids["learning"]]
    assert [c.id for c in queue.new_cards] == [ids["new_recent"], ids["new_old"]]
    assert queue.total == 5
    assert queue.has_more is False


@pytest.mark.asyncio
async def test_build_queue_respects_limits(db: AsyncSession) -> None:
    ids = await _seed(db)

    full = await build_queue(db, "alice", QueueConfig(limit=3, new_cards_limit=5), now=T)
    assert len(full.due_cards) == 3
    assert full.new_cards == []
    assert full.has_more is True

    topped = await build_queue(db, "alice", QueueConfig(limit=4, new_cards_limit=5), now=T)
    assert [c.id for c in topped.new_cards] == [ids["new_recent"]]

    no_new = await build_queue(
        db, "alice", QueueConfig(limit=10, include_new=False, new_cards_limit=5), now=T
    )
    assert no_new.new_cards == []
    assert no_new.total == 3


@pytest.mark.asyncio
async def test_build_queue_counts_null_state_as_new(db: AsyncSession) -> None:
    legacy = await _add(db, "legacy")
    await db.execute(
        update(Flashcard)
        .where(Flashcard.id == legacy)
        .values(state=None)
        .execution_options(synchronize_session=False)
    )
    await db.commit()

    queue = await build_queue(db, "alice", now=T)
    assert [c.id for c in queue.new_cards] == [legacy]
    assert queue.due_cards == []


@pytest.mark.asyncio
async def test_get_stats(db: AsyncSession) -> None:
    ids = await _seed(db)
    stats = await get_stats(db, "alice", now=T)
    assert stats.due_today == 2
    assert stats.due_overdue == 1
    assert stats.new_cards == 2
    assert stats.total_reviews_today == 0

    await store.submit_review(db, ids["new_old"], "alice", Rating.GOOD, now=T)
    stats = await get_stats(db, "alice", now=T)
    assert stats.new_cards == 1
    assert stats.total_reviews_today == 1
    # Reviews belong to the reviewer only
    assert (await get_stats(db, "bob", now=T)).total_reviews_today == 0


# --- Review session ---


@pytest.mark.asyncio
async def test_session_walks_queue_and_records_stats(db: AsyncSession) -> None:
    review_id = await _add(db, "review", due=T - timedelta(days=1))
    new_id = await _add(db, "new")

    session = await start_session(
        db, "alice", QueueConfig(limit=10, new_cards_limit=5), params=Parameters()
    )
    assert session.remaining == 2
    assert session.current_id == review_id

    previews = await session.preview(db, T)
    assert set(previews) == set(Rating)

    outcome = await session.submit_rating(db, Rating.GOOD, review_duration_ms=1200)
    assert outcome.flashcard_id == review_id
    assert session.current_id == new_id

    await session.submit_rating(db, 1, review_duration_ms=800)
    assert session.is_complete
    assert session.current_card is None
    assert await session.preview(db, T) is None

    stats = session.stats
    assert stats.cards_reviewed == 2
    assert stats.good == 1
    assert stats.again == 1
    assert stats.new_cards_seen == 1
    assert stats.total_time_ms == 2000
    assert stats.average_time_ms == 1000

    with pytest.raises(IndexError):
        await session.submit_rating(db, Rating.GOOD)


@pytest.mark.asyncio
async def test_session_failed_rating_keeps_card(db: AsyncSession) -> None:
    card_id = await _add(db, "new")
    session = await start_session(db, "alice", params=Parameters())

    with pytest.raises(InvalidRating):
        await session.submit_rating(db, 9)
    assert session.current_id == card_id
    assert session.stats.cards_reviewed == 0

    await store.soft_delete(db, card_id, "alice")
    with pytest.raises(FlashcardNotFound):
        await session.submit_rating(db, Rating.GOOD)
    assert session.remaining == 1

    session.skip()
    assert session.is_complete


@pytest.mark.asyncio
async def test_empty_session(db: AsyncSession) -> None:
    session = await start_session(db, "nobody", params=Parameters())
    assert session.queue.total == 0
    assert session.is_complete
    assert session.current_id is None
