"""
Engine, Session Factories and Declarative Base

- async_session_maker: pooled; request handlers (via get_db) and the
  /api/jobs/process endpoint.
- task_session_maker: NullPool; Celery tasks, which run every tick in a new
  event loop via asyncio.run() and cannot reuse connections opened on an
  earlier loop.

Pool sizing comes from config/default.yaml and is skipped for SQLite URLs
(unit tests run on aiosqlite).
"""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from app.config import settings, yaml_config


db_config: dict[str, Any] = yaml_config.get("database", {})
pool_size: int = db_config.get("pool_size", 5)
max_overflow: int = db_config.get("max_overflow", 10)
pool_timeout: int = db_config.get("pool_timeout", 30)

_pool_kwargs: dict[str, Any] = {}
if not settings.DATABASE_URL.startswith("sqlite"):
    _pool_kwargs = {
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_timeout": pool_timeout,
    }

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    **_pool_kwargs,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

task_engine = create_async_engine(
    settings.DATABASE_URL,
    poolclass=NullPool,
    echo=settings.DEBUG,
)

task_session_maker = async_sessionmaker(
    task_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


# Register every model on Base.metadata; the model modules import Base from here.
from app.db import models, models_jobs, models_learning  # noqa: F401, E402


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped session: committed when the route returns, rolled back
    if it raises.
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db() -> None:
    """
    Create missing tables from the models.

    Development only (DB_CREATE_TABLES); deployed databases use Alembic.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
