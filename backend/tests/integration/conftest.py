"""
Integration Test Fixtures

Integration tests run against a real PostgreSQL database, which is required
for behavior SQLite cannot show: FOR UPDATE SKIP LOCKED claims, JSONB
columns and BIGINT ledger ids.

IMPORTANT: All integration tests use the TEST database only (via
POSTGRES_TEST_* env vars). A safety check fixture (verify_test_database)
runs at session start to fail fast if production credentials are detected.

Run with:
    pytest -m integration
"""

import os
from pathlib import Path
from typing import AsyncGenerator
from urllib.parse import quote_plus

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from sqlalchemy import create_engine, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Load .env file FIRST, before reading any environment variables
# This ensures POSTGRES_TEST_* variables are available
_project_root = Path(__file__).parent.parent.parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)


# =============================================================================
# Safety Check - Runs before any integration tests
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def verify_test_database():
    """
    Safety check: Verify we're using test database credentials.

    Set ALLOW_PROD_DB_TESTS=1 to skip this check (for local development only).
    """
    if os.environ.get("ALLOW_PROD_DB_TESTS", "").lower() in ("1", "true", "yes"):
        return

    config = get_test_db_config()
    production_indicators = ["prod", "production", "live"]
    for indicator in production_indicators:
        assert indicator not in config["db"].lower(), (
            f"SAFETY CHECK FAILED: Database name '{config['db']}' looks like production! "
            "Set POSTGRES_TEST_DB environment variable or ALLOW_PROD_DB_TESTS=1."
        )
        assert indicator not in config["user"].lower(), (
            f"SAFETY CHECK FAILED: Database user '{config['user']}' looks like production! "
            "Set POSTGRES_TEST_USER environment variable or ALLOW_PROD_DB_TESTS=1."
        )


# =============================================================================
# Database Configuration
# =============================================================================


def get_test_db_config() -> dict:
    """
    Get test database configuration from environment variables.

    Priority: POSTGRES_TEST_* > POSTGRES_* > defaults
    """
    return {
        "host": os.environ.get("POSTGRES_HOST", "localhost"),
        "port": os.environ.get("POSTGRES_PORT", "5432"),
        "user": os.environ.get(
            "POSTGRES_TEST_USER", os.environ.get("POSTGRES_USER", "testuser")
        ),
        "password": os.environ.get(
            "POSTGRES_TEST_PASSWORD", os.environ.get("POSTGRES_PASSWORD", "testpass")
        ),
        "db": os.environ.get("POSTGRES_TEST_DB", os.environ.get("POSTGRES_DB", "testdb")),
    }


def get_test_db_url(async_driver: bool = True) -> str:
    """Build database URL from test config environment variables."""
    config = get_test_db_config()
    encoded_password = quote_plus(config["password"])
    driver = "postgresql+asyncpg" if async_driver else "postgresql+psycopg2"
    return (
        f"{driver}://{config['user']}:{encoded_password}"
        f"@{config['host']}:{config['port']}/{config['db']}"
    )


pytestmark = pytest.mark.integration


@pytest.fixture(scope="session")
def setup_test_database():
    """
    Recreate all tables once per test session.

    Uses synchronous SQLAlchemy to avoid event loop issues.
    """
    from app.db.base import Base

    sync_engine = create_engine(get_test_db_url(async_driver=False))
    Base.metadata.drop_all(sync_engine)
    Base.metadata.create_all(sync_engine)

    yield

    sync_engine.dispose()


# Tables to clean, children first
TABLES = [
    "jobs",
    "review_events",
    "student_card_states",
    "student_fsrs_params",
    "fill_in_blank_card_states",
    "teaching_sessions",
    "unit_items",
    "units",
    "listening_exercises",
    "fill_in_blank_exercises",
    "grammar_exercises",
    "vocabulary_cards",
    "vocabulary_decks",
    "students",
    "teachers",
]


@pytest_asyncio.fixture
async def pg_session_maker(
    setup_test_database,
) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """
    Session factory on the test database, with every table emptied first.

    A fresh engine per test keeps connections on the test's event loop.
    """
    test_engine = create_async_engine(get_test_db_url(async_driver=True), echo=False)
    maker = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

    async with maker() as session:
        await session.execute(text(f"TRUNCATE TABLE {', '.join(TABLES)} CASCADE"))
        await session.commit()

    yield maker

    await test_engine.dispose()


@pytest_asyncio.fixture
async def pg_db(pg_session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with pg_session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()
