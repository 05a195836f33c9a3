"""API routes for review statistics shown on the revise screen."""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.api.schemas import FlashcardStatsResponse
from backend.config import settings
from backend.database import get_session
from backend.srs.queue import get_stats

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stats", tags=["stats"])


@router.get("", response_model=FlashcardStatsResponse)
async def get_flashcard_stats(
    user_id: str = Query(default=settings.default_user_id),
    db: AsyncSession = Depends(get_session),
) -> FlashcardStatsResponse:
    """Due-today, overdue, and new card counts plus today's review count."""
    stats = await get_stats(db, user_id)
    logger.debug("Stats for user %s: %s", user_id, stats)
    return FlashcardStatsResponse(
        due_today=stats.due_today,
        due_overdue=stats.due_overdue,
        new_cards=stats.new_cards,
        total_reviews_today=stats.total_reviews_today,
    )
