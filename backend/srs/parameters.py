"""Versioned parameter set for the FSRS memory model.

The weight vector and configuration are a single swappable value so the model
can be recalibrated without touching the scheduler's state machine.
"""

import math
from dataclasses import dataclass, field
from datetime import timedelta

from backend.config import Settings, settings

WEIGHTS_VERSION = "fsrs-5-app-2025"

# FSRS-5 default weights, the vector the app's review path was tuned with.
# w[0..3]: initial stability for Again/Hard/Good/Easy
# w[4..5]: initial difficulty (base, rating exponent)
# w[6]: difficulty change per rating step
# w[7]: difficulty mean reversion
# w[8..10]: recall stability growth (scale, stability decay, retrievability gain)
# w[11..14]: post-lapse stability (scale, difficulty, stability, retrievability)
# w[15..16]: hard penalty / easy bonus
# w[17..18]: short-term (same-day) stability
DEFAULT_WEIGHTS: tuple[float, ...] = (
    0.4072, 1.1829, 3.1262, 15.4722,
    7.2102, 0.5316, 1.0651, 0.0234,
    1.616, 0.1544, 1.0824,
    1.9813, 0.0953, 0.2975, 2.2042,
    0.2407, 2.9466,
    0.5034, 0.6567,
)
WEIGHT_COUNT = len(DEFAULT_WEIGHTS)

DEFAULT_REQUEST_RETENTION = 0.9
DEFAULT_MAXIMUM_INTERVAL = 36500
DEFAULT_LEARNING_STEPS = (timedelta(minutes=1), timedelta(minutes=10))
DEFAULT_RELEARNING_STEPS = (timedelta(minutes=10),)


@dataclass(frozen=True)
class Parameters:
    """Weights plus scheduling configuration.

    Raises ``ValueError`` on construction if any value is outside its domain,
    so a bad configuration never reaches the formulas.
    """

    weights: tuple[float, ...] = DEFAULT_WEIGHTS
    request_retention: float = DEFAULT_REQUEST_RETENTION
    maximum_interval: int = DEFAULT_MAXIMUM_INTERVAL
    enable_fuzz: bool = False
    enable_short_term: bool = True
    learning_steps: tuple[timedelta, ...] = DEFAULT_LEARNING_STEPS
    relearning_steps: tuple[timedelta, ...] = DEFAULT_RELEARNING_STEPS
    version: str = field(default=WEIGHTS_VERSION, compare=False)

    def __post_init__(self) -> None:
        weights = tuple(float(w) for w in self.weights)
        if len(weights) != WEIGHT_COUNT:
            raise ValueError(f"Expected {WEIGHT_COUNT} weights, got {len(weights)}")
        if not all(math.isfinite(w) for w in weights):
            raise ValueError("Weights must be finite")
        if not 0 < self.request_retention < 1:
            raise ValueError(f"request_retention must be in (0, 1), got {self.request_retention}")
        if self.maximum_interval < 1:
            raise ValueError(f"maximum_interval must be positive, got {self.maximum_interval}")
        for step in (*self.learning_steps, *self.relearning_steps):
            if step <= timedelta(0):
                raise ValueError(f"Learning steps must be positive, got {step}")
        object.__setattr__(self, "weights", weights)
        object.__setattr__(self, "learning_steps", tuple(self.learning_steps))
        object.__setattr__(self, "relearning_steps", tuple(self.relearning_steps))

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "Parameters":
        """Build parameters from application settings."""
        config = config or settings
        return cls(
            request_retention=config.request_retention,
            maximum_interval=config.maximum_interval,
            enable_fuzz=config.enable_fuzz,
            enable_short_term=config.enable_short_term,
            learning_steps=tuple(timedelta(minutes=m) for m in config.learning_steps_minutes),
            relearning_steps=tuple(timedelta(minutes=m) for m in config.relearning_steps_minutes),
        )
