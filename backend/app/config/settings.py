"""
Application Configuration

This module provides type-safe configuration loading using Pydantic settings.
Environment variables are loaded from .env file and validated.

Usage:
    from app.config import settings

    # Access settings
    db_url = settings.DATABASE_URL
    batch = settings.JOB_BATCH_SIZE
"""

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic_settings import BaseSettings

PROJECT_ROOT = Path(__file__).parent.parent.parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Tutor Engine"
    DEBUG: bool = False

    # PostgreSQL
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "tutor"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "tutor"

    # Full SQLAlchemy URL; overrides the POSTGRES_* parts when set
    DATABASE_URL_OVERRIDE: str = ""

    @property
    def POSTGRES_URL(self) -> str:
        """Async PostgreSQL connection URL."""
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @property
    def DATABASE_URL(self) -> str:
        """URL the application engine connects to."""
        return self.DATABASE_URL_OVERRIDE or self.POSTGRES_URL

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/1"

    # Background job worker
    JOB_BATCH_SIZE: int = 10
    JOB_POLL_INTERVAL_SECONDS: int = 30
    JOB_SWEEP_INTERVAL_SECONDS: int = 300
    JOB_STALE_AFTER_SECONDS: int = 900  # RUNNING longer than this is presumed lost
    JOB_MAX_ATTEMPTS: int = 3

    # Shared secret for POST /api/jobs/process; empty disables the check (dev mode)
    WORKER_API_KEY: str = ""

    # In-process APScheduler that triggers the worker tasks
    SCHEDULER_ENABLED: bool = True

    # Create missing tables on startup (development databases without Alembic)
    DB_CREATE_TABLES: bool = False

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()


@lru_cache()
def load_yaml_config() -> dict[str, Any]:
    """Load application configuration from config/default.yaml."""
    config_path = PROJECT_ROOT / "config" / "default.yaml"

    if not config_path.exists():
        return {}

    with open(config_path) as f:
        return yaml.safe_load(f) or {}


yaml_config: dict[str, Any] = load_yaml_config()
