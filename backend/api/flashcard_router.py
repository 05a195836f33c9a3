"""API routes for flashcards: authoring, reviewing, and interval previews."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.api.schemas import (
    DueFlashcardsResponse,
    FlashcardCreateRequest,
    FlashcardResponse,
    IntervalPreviewResponse,
    PreviewResponse,
    ReviewRequest,
    ReviewResponse,
)
from backend.config import settings, utcnow
from backend.database import get_session
from backend.srs import store
from backend.srs.card import Rating
from backend.srs.errors import (
    ConcurrentModificationConflict,
    FlashcardNotFound,
    InvalidRating,
    NumericDomainError,
    UnknownCardState,
)
from backend.srs.parameters import Parameters
from backend.srs.queue import QueueConfig, build_queue
from backend.srs.scheduler import Scheduler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/flashcards", tags=["flashcards"])


def get_scheduler() -> Scheduler:
    """Scheduler built from the current settings."""
    return Scheduler(Parameters.from_settings())


@router.post("", response_model=FlashcardResponse, status_code=201)
async def create_flashcard(
    request: FlashcardCreateRequest,
    user_id: str = Query(default=settings.default_user_id),
    db: AsyncSession = Depends(get_session),
) -> FlashcardResponse:
    """Author a new flashcard, due immediately."""
    row = await store.create_flashcard(
        db, user_id, request.front, request.back, request.type, request.tags
    )
    return FlashcardResponse.model_validate(row)


@router.get("/due", response_model=DueFlashcardsResponse)
async def due_flashcards(
    user_id: str = Query(default=settings.default_user_id),
    limit: int = Query(default=settings.max_reviews_per_session, ge=1, le=200),
    include_new: bool = True,
    new_cards_limit: int = Query(default=settings.max_new_cards_per_session, ge=0),
    db: AsyncSession = Depends(get_session),
) -> DueFlashcardsResponse:
    """Due cards (most overdue first) topped up with new cards."""
    config = QueueConfig(limit=limit, include_new=include_new, new_cards_limit=new_cards_limit)
    queue = await build_queue(db, user_id, config)
    return DueFlashcardsResponse(
        flashcards=[FlashcardResponse.model_validate(c) for c in queue.due_cards + queue.new_cards],
        total_due=len(queue.due_cards),
        total_new=len(queue.new_cards),
        has_more=queue.has_more,
    )


@router.get("/{flashcard_id}", response_model=FlashcardResponse)
async def get_flashcard(
    flashcard_id: int,
    user_id: str = Query(default=settings.default_user_id),
    db: AsyncSession = Depends(get_session),
) -> FlashcardResponse:
    """Get one flashcard with its scheduling state."""
    try:
        row = await store.get_flashcard(db, flashcard_id, user_id)
    except FlashcardNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return FlashcardResponse.model_validate(row)


@router.delete("/{flashcard_id}", status_code=204)
async def delete_flashcard(
    flashcard_id: int,
    user_id: str = Query(default=settings.default_user_id),
    db: AsyncSession = Depends(get_session),
) -> None:
    """Soft-delete a flashcard. It disappears from queues; history is kept."""
    try:
        await store.soft_delete(db, flashcard_id, user_id)
    except FlashcardNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.post("/{flashcard_id}/review", response_model=ReviewResponse)
async def review_flashcard(
    flashcard_id: int,
    request: ReviewRequest,
    user_id: str = Query(default=settings.default_user_id),
    db: AsyncSession = Depends(get_session),
    scheduler: Scheduler = Depends(get_scheduler),
) -> ReviewResponse:
    """Record a rating and return the next schedule."""
    try:
        outcome = await store.submit_review(
            db,
            flashcard_id,
            user_id,
            request.rating,
            scheduler=scheduler,
            review_duration_ms=request.review_duration_ms,
        )
    except InvalidRating as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except FlashcardNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ConcurrentModificationConflict as exc:
        raise HTTPException(
            status_code=409,
            detail=f"Rating not recorded, the card changed while reviewing. Please retry. ({exc})",
        ) from exc
    except (UnknownCardState, NumericDomainError) as exc:
        logger.error("Review of flashcard %d failed: %s", flashcard_id, exc)
        raise HTTPException(
            status_code=500,
            detail=f"Error in spaced repetition calculation, rating not recorded: {exc}",
        ) from exc

    card = outcome.result.card
    log = outcome.result.log
    return ReviewResponse(
        next_review=card.due,
        interval_days=card.scheduled_days,
        card_state=card.state.name,
        stability=card.stability,
        difficulty=card.difficulty,
        reps=card.reps,
        lapses=card.lapses,
        state_changed=log.state_changed,
        days_until_due=round((card.due - log.review).total_seconds() / 86400),
    )


@router.get("/{flashcard_id}/preview", response_model=PreviewResponse)
async def preview_flashcard(
    flashcard_id: int,
    user_id: str = Query(default=settings.default_user_id),
    db: AsyncSession = Depends(get_session),
    scheduler: Scheduler = Depends(get_scheduler),
) -> PreviewResponse:
    """Show the interval each rating would give, without recording anything."""
    try:
        _, card = await store.load_card(db, flashcard_id, user_id)
        previews = scheduler.preview(card, utcnow())
    except FlashcardNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except (UnknownCardState, NumericDomainError) as exc:
        logger.error("Preview of flashcard %d failed: %s", flashcard_id, exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    def entry(rating: Rating) -> IntervalPreviewResponse:
        p = previews[rating]
        return IntervalPreviewResponse(
            interval_days=p.interval_days,
            due=p.due,
            state=p.state.name,
            minutes_until_due=round(p.delay.total_seconds() / 60, 1),
        )

    return PreviewResponse(
        flashcard_id=flashcard_id,
        again=entry(Rating.AGAIN),
        hard=entry(Rating.HARD),
        good=entry(Rating.GOOD),
        easy=entry(Rating.EASY),
    )
