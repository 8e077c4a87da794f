"""
Portable Column Types

Column types shared by all models so that the schema runs unchanged on
PostgreSQL (production) and SQLite (unit tests).

- UTCDateTime: always hands back timezone-aware UTC datetimes. The fsrs
  library rejects naive datetimes, and SQLite drops tzinfo on the way out.
- JSONDocument: JSONB on PostgreSQL, JSON elsewhere.
- LedgerId: BIGINT on PostgreSQL, INTEGER on SQLite (only INTEGER PRIMARY KEY
  autoincrements there).
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, BigInteger, DateTime, Integer
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import TypeDecorator


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """TIMESTAMP WITH TIME ZONE that is normalized to UTC in both directions."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(
        self, value: Optional[datetime], dialect
    ) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"Naive datetime {value!r} cannot be stored")
        return value.astimezone(timezone.utc)

    def process_result_value(
        self, value: Optional[datetime], dialect
    ) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


JSONDocument = JSON().with_variant(JSONB(), "postgresql")

LedgerId = BigInteger().with_variant(Integer(), "sqlite")
