"""
Scheduling Configuration

Type-safe configuration for the FSRS scheduler, learning steps and the
parameter optimizer.

Usage:
    from app.config.scheduling import scheduling_settings

    retention = scheduling_settings.FSRS_DEFAULT_RETENTION
    steps = scheduling_settings.LEARNING_STEPS

Environment Variables:
    SCHEDULING_FSRS_DEFAULT_RETENTION - Target recall probability (default: 0.9)
    SCHEDULING_FSRS_MAX_INTERVAL_DAYS - Longest interval the scheduler may pick (default: 365)
    SCHEDULING_LEARNING_STEPS - JSON list such as ["3m", "15m", "30m"]
    SCHEDULING_OPTIMIZER_MIN_REVIEWS - Reviews needed before weights are fitted (default: 50)
    SCHEDULING_LISTENING_SUGGEST_LISTENING_THRESHOLD - Listening recall a card must beat (default: 0.36)
    etc.
"""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings

LEARNING_STEP_PATTERN = r"^\d+[smhd]$"


class SchedulingSettings(BaseSettings):
    """Configuration for scheduling and parameter optimization."""

    # ===========================================
    # FSRS
    # ===========================================
    FSRS_DEFAULT_RETENTION: float = 0.9
    FSRS_MAX_INTERVAL_DAYS: int = 365

    # ===========================================
    # Learning steps
    # ===========================================
    LEARNING_STEPS: list[str] = ["3m", "15m", "30m"]

    # ===========================================
    # Parameter optimizer
    # ===========================================
    OPTIMIZER_MIN_REVIEWS: int = 50

    # ===========================================
    # Listening suggestions
    # ===========================================
    LISTENING_SUGGEST_LISTENING_THRESHOLD: float = 0.36
    LISTENING_SUGGEST_VOCABULARY_THRESHOLD: float = 0.36

    class Config:
        env_prefix = "SCHEDULING_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @field_validator("FSRS_DEFAULT_RETENTION")
    @classmethod
    def _check_retention(cls, value: float) -> float:
        if not 0.7 <= value <= 0.99:
            raise ValueError("FSRS_DEFAULT_RETENTION must be within [0.7, 0.99]")
        return value


@lru_cache()
def get_scheduling_settings() -> SchedulingSettings:
    """Get cached scheduling settings instance."""
    return SchedulingSettings()


# Global settings instance
scheduling_settings = get_scheduling_settings()
