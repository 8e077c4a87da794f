"""Database package."""

from app.db.base import (
    Base,
    async_session_maker,
    engine,
    get_db,
    init_db,
    task_session_maker,
)

__all__ = [
    "engine",
    "async_session_maker",
    "task_session_maker",
    "Base",
    "get_db",
    "init_db",
]
