"""State-machine driver on top of the FSRS memory model.

Given a card and a review time, ``Scheduler.repeat`` produces one candidate
next card per rating without committing to any of them; ``Scheduler.review``
selects the candidate matching the learner's rating.

Lifecycle:
- New -> Learning (Again/Hard/Good) or Review (Easy)
- Learning/Relearning -> step through the short learning steps, then Review
- Review -> Review on success, Relearning on Again (counts a lapse)
"""

import logging
import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from backend.srs.card import Card, Rating, RecordLog, ReviewLog, SchedulingInfo, State
from backend.srs.errors import NumericDomainError
from backend.srs.fsrs import MAX_DIFFICULTY, MIN_DIFFICULTY, MemoryModel
from backend.srs.parameters import Parameters

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class IntervalPreview:
    """What the learner would get for one rating, without committing it."""

    rating: Rating
    state: State
    interval_days: int
    due: datetime
    delay: timedelta


@dataclass(frozen=True)
class _Step:
    """Where a rating sends a card inside the learning-step table.

    ``delay`` is None when the card graduates to Review.
    """

    state: State
    index: int
    delay: timedelta | None


def elapsed_days_between(last_review: datetime | None, now: datetime) -> int:
    """Whole days since the last review, 0 for a card never reviewed."""
    if last_review is None:
        return 0
    return math.floor((now - last_review).total_seconds() / SECONDS_PER_DAY)


class Scheduler:
    """Computes next card states for all four ratings."""

    def __init__(self, params: Parameters | None = None) -> None:
        """Initialize with optional custom parameters (defaults: FSRS-5, no fuzz)."""
        self.params = params or Parameters()
        self.model = MemoryModel(self.params)

    def repeat(self, card: Card, now: datetime) -> RecordLog:
        """Return every possible outcome of reviewing ``card`` at ``now``.

        Pure: the input card is not modified.
        """
        state = State.parse(card.state)
        self._check_card(card, state)

        elapsed_days = elapsed_days_between(card.last_review, now)
        if state != State.NEW and (elapsed_days < 0 or now < card.due):
            logger.warning(
                "Early review: card due %s reviewed at %s (elapsed %d days)",
                card.due.isoformat(),
                now.isoformat(),
                elapsed_days,
            )
        elapsed_days = max(0, elapsed_days)

        memory = {rating: self._next_memory(card, state, rating, elapsed_days) for rating in Rating}
        if state == State.REVIEW:
            steps = {rating: self._review_step(rating) for rating in Rating}
        else:
            steps = {rating: self._learning_step(card, state, rating) for rating in Rating}

        seed = f"{now.isoformat()}_{card.reps}_{card.difficulty * card.stability}"
        intervals = self._ordered_intervals(
            {
                rating: self.model.next_interval(stability, elapsed_days, f"{seed}_{rating.value}")
                for rating, (stability, _) in memory.items()
            }
        )

        record: RecordLog = {}
        for rating in Rating:
            stability, difficulty = memory[rating]
            step = steps[rating]
            if step.delay is None:
                scheduled_days = intervals[rating]
                due = now + timedelta(days=scheduled_days)
            else:
                scheduled_days = math.floor(step.delay.total_seconds() / SECONDS_PER_DAY)
                due = now + step.delay

            lapses = card.lapses + 1 if state == State.REVIEW and rating == Rating.AGAIN else card.lapses
            next_card = card.evolve(
                due=due,
                stability=stability,
                difficulty=difficulty,
                elapsed_days=elapsed_days,
                scheduled_days=scheduled_days,
                reps=card.reps + 1,
                lapses=lapses,
                state=step.state,
                last_review=now,
                learning_steps=step.index,
            )
            log = ReviewLog(
                rating=rating,
                state=state,
                state_after=step.state,
                due=card.due,
                stability_before=card.stability,
                stability_after=stability,
                difficulty_before=card.difficulty,
                difficulty_after=difficulty,
                elapsed_days=elapsed_days,
                last_elapsed_days=card.elapsed_days,
                scheduled_days=scheduled_days,
                learning_steps=card.learning_steps,
                review=now,
            )
            record[rating] = SchedulingInfo(card=next_card, log=log)
            logger.debug(
                "Candidate %s: %s -> %s, S=%.4f D=%.4f due %s",
                rating.name,
                state.name,
                step.state.name,
                stability,
                difficulty,
                due.isoformat(),
            )
        return record

    def review(
        self,
        card: Card,
        now: datetime,
        rating: Rating | int,
        review_duration_ms: int | None = None,
    ) -> SchedulingInfo:
        """Apply ``rating`` to ``card`` and return the resulting card and log.

        Raises:
            InvalidRating: If ``rating`` is not 1-4. Nothing is computed.
        """
        rating = Rating.parse(rating)
        chosen = self.repeat(card, now)[rating]
        if review_duration_ms is None:
            return chosen
        log = replace(chosen.log, review_duration_ms=review_duration_ms)
        return SchedulingInfo(card=chosen.card, log=log)

    def preview(self, card: Card, now: datetime) -> dict[Rating, IntervalPreview]:
        """Read-only projection of ``repeat`` for showing upcoming intervals."""
        return {
            rating: IntervalPreview(
                rating=rating,
                state=info.card.state,
                interval_days=info.card.scheduled_days,
                due=info.card.due,
                delay=info.card.due - now,
            )
            for rating, info in self.repeat(card, now).items()
        }

    def get_retrievability(self, card: Card, now: datetime) -> float:
        """Current recall probability of a card (1.0 for a never-reviewed card)."""
        if State.parse(card.state) == State.NEW:
            return 1.0
        return self.model.retrievability(card.stability, elapsed_days_between(card.last_review, now))

    def _check_card(self, card: Card, state: State) -> None:
        if state == State.NEW:
            return
        if not math.isfinite(card.stability) or card.stability <= 0:
            raise NumericDomainError("stability", card.stability)
        if not math.isfinite(card.difficulty):
            raise NumericDomainError("difficulty", card.difficulty)

    def _next_memory(
        self,
        card: Card,
        state: State,
        rating: Rating,
        elapsed_days: int,
    ) -> tuple[float, float]:
        """Return (stability, difficulty) after ``rating``."""
        if state == State.NEW:
            return self.model.initial_stability(rating), self.model.initial_difficulty(rating)

        retrievability = self.model.retrievability(card.stability, elapsed_days)
        stability = self.model.next_stability(
            card.stability, card.difficulty, retrievability, rating, elapsed_days
        )
        difficulty = self.model.next_difficulty(card.difficulty, rating)
        if not MIN_DIFFICULTY <= difficulty <= MAX_DIFFICULTY:
            raise NumericDomainError("difficulty", difficulty)
        return stability, difficulty

    def _review_step(self, rating: Rating) -> _Step:
        steps = self._steps(self.params.relearning_steps)
        if rating == Rating.AGAIN and steps:
            return _Step(State.RELEARNING, 0, steps[0])
        return _Step(State.REVIEW, 0, None)

    def _learning_step(self, card: Card, state: State, rating: Rating) -> _Step:
        if state == State.RELEARNING:
            steps = self._steps(self.params.relearning_steps)
            in_steps = State.RELEARNING
        else:
            steps = self._steps(self.params.learning_steps)
            in_steps = State.LEARNING
        if not steps or rating == Rating.EASY:
            return _Step(State.REVIEW, 0, None)

        current = 0 if state == State.NEW else min(card.learning_steps, len(steps) - 1)
        if rating == Rating.AGAIN:
            return _Step(in_steps, 0, steps[0])
        if rating == Rating.HARD:
            return _Step(in_steps, current, self._hard_delay(steps, current))
        if current + 1 < len(steps):
            return _Step(in_steps, current + 1, steps[current + 1])
        return _Step(State.REVIEW, 0, None)

    def _steps(self, steps: tuple[timedelta, ...]) -> tuple[timedelta, ...]:
        # Without short-term scheduling every review lands on a whole-day interval
        return steps if self.params.enable_short_term else ()

    @staticmethod
    def _hard_delay(steps: tuple[timedelta, ...], current: int) -> timedelta:
        """Hard repeats the current step, stretched on the first one."""
        if current == 0:
            if len(steps) == 1:
                return steps[0] * 1.5
            return (steps[0] + steps[1]) / 2
        return steps[current]

    def _ordered_intervals(self, intervals: dict[Rating, int]) -> dict[Rating, int]:
        """Enforce Again <= Hard < Good < Easy, then clamp to the maximum interval."""
        hard = min(intervals[Rating.HARD], intervals[Rating.GOOD])
        good = max(intervals[Rating.GOOD], hard + 1)
        easy = max(intervals[Rating.EASY], good + 1)
        again = min(intervals[Rating.AGAIN], hard)
        maximum = self.params.maximum_interval
        return {
            Rating.AGAIN: max(1, min(again, maximum)),
            Rating.HARD: max(1, min(hard, maximum)),
            Rating.GOOD: max(1, min(good, maximum)),
            Rating.EASY: max(1, min(easy, maximum)),
        }


def repeat(card: Card, now: datetime, params: Parameters | None = None) -> RecordLog:
    """Module-level shortcut for ``Scheduler(params).repeat``."""
    return Scheduler(params).repeat(card, now)


def review(
    card: Card,
    now: datetime,
    rating: Rating | int,
    params: Parameters | None = None,
) -> SchedulingInfo:
    """Module-level shortcut for ``Scheduler(params).review``."""
    return Scheduler(params).review(card, now, rating)
