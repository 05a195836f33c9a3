"""FSRS (Free Spaced Repetition Scheduler) memory model.

Closed-form FSRS-5 formulas, parameterized by a ``Parameters`` value.
Reference: https://github.com/open-spaced-repetition/fsrs4anki

Key concepts:
- Stability (S): Days until recall probability decays to 90%.
- Difficulty (D): Intrinsic hardness in [1, 10], higher = harder.
- Retrievability (R): The probability of recall after t days, (1 + FACTOR * t/S)^DECAY.
- Rating: 1=Again, 2=Hard, 3=Good, 4=Easy
"""

import math
import random

from backend.srs.card import Rating
from backend.srs.errors import NumericDomainError
from backend.srs.parameters import Parameters

# Forgetting curve shape: R(S, S) == 0.9 for any S
DECAY = -0.5
FACTOR = 0.9 ** (1 / DECAY) - 1  # 19/81

# Bounds
MIN_DIFFICULTY = 1.0
MAX_DIFFICULTY = 10.0
MIN_STABILITY = 0.01
MAX_STABILITY = 36500.0

# (start, end, factor): fuzz grows with the interval, slower past each boundary
FUZZ_RANGES = (
    (2.5, 7.0, 0.15),
    (7.0, 20.0, 0.1),
    (20.0, math.inf, 0.05),
)


def _guard(quantity: str, value: float, low: float = -math.inf, high: float = math.inf) -> float:
    if not math.isfinite(value) or not low <= value <= high:
        raise NumericDomainError(quantity, value)
    return value


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class MemoryModel:
    """Pure FSRS-5 math. Holds parameters only, never card state."""

    def __init__(self, params: Parameters | None = None) -> None:
        """Initialize the model with optional custom parameters."""
        self.params = params or Parameters()
        self.w = self.params.weights

    def retrievability(self, stability: float, elapsed_days: float) -> float:
        """Probability of recall ``elapsed_days`` after the last review.

        Negative elapsed time (an early review) counts as zero.
        """
        _guard("stability", stability)
        if stability <= 0:
            raise NumericDomainError("stability", stability)
        t = max(0.0, elapsed_days)
        if t == 0:
            return 1.0
        r = (1 + FACTOR * t / max(stability, MIN_STABILITY)) ** DECAY
        return _guard("retrievability", r, low=0.0, high=1.0)

    def initial_stability(self, rating: Rating) -> float:
        """Starting stability after a card's first rating."""
        return _guard("stability", max(self.w[rating - 1], MIN_STABILITY), MIN_STABILITY)

    def initial_difficulty(self, rating: Rating) -> float:
        """Starting difficulty after a card's first rating, clamped to [1, 10].

        D0(G) = w4 - e^(w5 * (G - 1)) + 1
        """
        try:
            d = self.w[4] - math.exp(self.w[5] * (rating - 1)) + 1
        except OverflowError as exc:
            raise NumericDomainError("difficulty", math.inf) from exc
        d = _clamp(_guard("difficulty", d), MIN_DIFFICULTY, MAX_DIFFICULTY)
        return d

    def next_difficulty(self, difficulty: float, rating: Rating) -> float:
        """Pull difficulty toward a rating-dependent target, then mean-revert.

        The step shrinks linearly as D approaches 10, and the result reverts
        toward D0(Easy) by w7.
        """
        _guard("difficulty", difficulty)
        delta = -self.w[6] * (rating - 3)
        d = difficulty + delta * (10 - difficulty) / 9
        d = self.w[7] * self.initial_difficulty(Rating.EASY) + (1 - self.w[7]) * d
        d = _clamp(_guard("difficulty", d), MIN_DIFFICULTY, MAX_DIFFICULTY)
        return d

    def next_stability(
        self,
        stability: float,
        difficulty: float,
        retrievability: float,
        rating: Rating,
        elapsed_days: float = 1,
    ) -> float:
        """Stability after a review of a card that has already been seen.

        Same-day reviews (short-term mode) use the short-term formula, otherwise
        Again takes the forgetting branch and Hard/Good/Easy the recall branch.
        The result is clamped to [MIN_STABILITY, MAX_STABILITY].
        """
        _guard("stability", stability, low=0.0)
        difficulty = _clamp(_guard("difficulty", difficulty), MIN_DIFFICULTY, MAX_DIFFICULTY)
        _guard("retrievability", retrievability, low=0.0, high=1.0)
        stability = max(stability, MIN_STABILITY)

        try:
            if elapsed_days <= 0 and self.params.enable_short_term:
                s = self._short_term_stability(stability, rating)
            elif rating == Rating.AGAIN:
                s = self._stability_after_fail(stability, difficulty, retrievability)
            else:
                s = self._stability_after_success(stability, difficulty, retrievability, rating)
        except (OverflowError, ZeroDivisionError) as exc:
            raise NumericDomainError("stability", math.nan) from exc

        s = _clamp(_guard("stability", s), MIN_STABILITY, MAX_STABILITY)
        return s

    def next_interval(
        self,
        stability: float,
        elapsed_days: int = 0,
        fuzz_seed: str | None = None,
    ) -> int:
        """Whole days until retrievability falls to the requested retention.

        Derived from: retention = (1 + FACTOR * t / S)^DECAY
        Solving: t = S / FACTOR * (retention^(1/DECAY) - 1)

        Clamped to [1, maximum_interval]. When fuzz is enabled and a seed is
        given, a deterministic jitter is drawn from the fuzz range.
        """
        _guard("stability", stability, low=0.0)
        maximum = self.params.maximum_interval
        raw = stability / FACTOR * (self.params.request_retention ** (1 / DECAY) - 1)
        raw = _guard("interval", raw, low=0.0)
        interval = int(_clamp(round(raw), 1, maximum))
        if self.params.enable_fuzz and fuzz_seed is not None:
            interval = self.apply_fuzz(interval, elapsed_days, fuzz_seed)
        return int(_guard("interval", interval, low=1, high=maximum))

    def fuzz_range(self, interval: float, elapsed_days: int) -> tuple[int, int]:
        """Inclusive [low, high] days a fuzzed ``interval`` may land on."""
        maximum = self.params.maximum_interval
        delta = 1.0
        for start, end, factor in FUZZ_RANGES:
            delta += factor * max(min(interval, end) - start, 0.0)
        interval = min(interval, maximum)
        low = max(2, round(interval - delta))
        high = min(round(interval + delta), maximum)
        if interval > elapsed_days:
            low = max(low, elapsed_days + 1)
        low = min(low, high)
        return low, high

    def apply_fuzz(self, interval: int, elapsed_days: int, seed: str) -> int:
        """Jitter ``interval`` so reviews don't all re-cluster on the same day."""
        if interval < 2.5:
            return interval
        low, high = self.fuzz_range(interval, elapsed_days)
        fuzz_factor = random.Random(seed).random()
        fuzzed = math.floor(fuzz_factor * (high - low + 1) + low)
        return int(_clamp(fuzzed, 1, min(high, self.params.maximum_interval)))

    def _short_term_stability(self, stability: float, rating: Rating) -> float:
        """S' = S * e^(w17 * (G - 3 + w18))"""
        return stability * math.exp(self.w[17] * (rating - 3 + self.w[18]))

    def _stability_after_success(
        self,
        stability: float,
        difficulty: float,
        retrievability: float,
        rating: Rating,
    ) -> float:
        """Calculate new stability after a successful recall (rating >= 2).

        S' = S * (1 + e^(w8) * (11 - D) * S^(-w9) * (e^(w10*(1-R)) - 1) * penalty * bonus)
        """
        hard_penalty = self.w[15] if rating == Rating.HARD else 1.0
        easy_bonus = self.w[16] if rating == Rating.EASY else 1.0
        factor = (
            math.exp(self.w[8])
            * (11 - difficulty)
            * stability ** (-self.w[9])
            * (math.exp(self.w[10] * (1 - retrievability)) - 1)
            * hard_penalty
            * easy_bonus
        )
        return stability * (1 + factor)

    def _stability_after_fail(
        self,
        stability: float,
        difficulty: float,
        retrievability: float,
    ) -> float:
        """Calculate new stability after a lapse (rating = 1).

        S' = w11 * D^(-w12) * ((S+1)^w13 - 1) * e^(w14*(1-R))
        """
        new_s = (
            self.w[11]
            * difficulty ** (-self.w[12])
            * ((stability + 1) ** self.w[13] - 1)
            * math.exp(self.w[14] * (1 - retrievability))
        )
        ceiling = stability
        if self.params.enable_short_term:
            # Never more stable than a same-day Again would leave it
            ceiling = stability / math.exp(self.w[17] * self.w[18])
        return min(new_s, ceiling, stability)
