from datetime import UTC, datetime
from pathlib import Path

from pydantic_settings import BaseSettings

DATA_DIR = Path(__file__).resolve().parent.parent / "data"


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime.

    Replaces the deprecated ``datetime.utcnow()`` while keeping datetimes
    naive so they stay compatible with SQLite (which doesn't store tz info).
    """
    return datetime.now(UTC).replace(tzinfo=None)


class Settings(BaseSettings):
    app_name: str = "Flashcard SRS"
    database_url: str = f"sqlite+aiosqlite:///{DATA_DIR / 'flashcard_srs.db'}"
    default_user_id: str = "local"

    # Scheduler parameters (see backend.srs.parameters)
    request_retention: float = 0.9
    maximum_interval: int = 36500  # ~100 years
    enable_fuzz: bool = True
    enable_short_term: bool = True
    learning_steps_minutes: list[float] = [1.0, 10.0]
    relearning_steps_minutes: list[float] = [10.0]

    max_reviews_per_session: int = 20
    max_new_cards_per_session: int = 10
    review_conflict_retries: int = 3
    debug: bool = False

    model_config = {"env_prefix": "FLASHCARD_SRS_", "env_file": ".env"}


settings = Settings()
