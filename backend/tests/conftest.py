"""
Shared Test Fixtures and Configuration

This module provides pytest fixtures used across unit and integration tests.

Unit tests run against a throwaway SQLite database (aiosqlite) created per
test from Base.metadata; the schema types in app.db.types keep the models
portable between SQLite and PostgreSQL.
"""

import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, AsyncGenerator, Awaitable, Callable, Generator, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from dotenv import load_dotenv

# Add the backend directory to the path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load .env file from project root BEFORE any fixtures run
# This ensures POSTGRES_TEST_* variables are available
_project_root = Path(__file__).parent.parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)
else:
    # Try backend directory
    _backend_env = Path(__file__).parent.parent / ".env"
    if _backend_env.exists():
        load_dotenv(_backend_env)

# Settings are read once when app.config is first imported, so the values
# the app must see are set here rather than in a fixture
os.environ["DATABASE_URL_OVERRIDE"] = os.environ.get(
    "TEST_DATABASE_URL_OVERRIDE", "sqlite+aiosqlite://"
)
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["WORKER_API_KEY"] = ""

from sqlalchemy import select  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.db.base import Base  # noqa: E402
from app.db.models import (  # noqa: E402
    FillInBlankExercise,
    GrammarExercise,
    ListeningExercise,
    Student,
    Teacher,
    Unit,
    UnitItem,
    VocabularyCard,
    VocabularyDeck,
)
from app.enums.learning import ExerciseType, StudentStatus  # noqa: E402
from app.services.exercises import reset_dispatcher  # noqa: E402


# ============================================================================
# Environment Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment() -> Generator[None, None, None]:
    """
    Set up test environment variables before any tests run.

    This ensures tests run with predictable configuration, overriding
    any values from .env files to ensure test isolation.
    """
    # Store original environment
    original_env = os.environ.copy()

    # Test database credentials come from POSTGRES_TEST_* env vars if set,
    # otherwise fall back to defaults for CI environments
    test_env = {
        "POSTGRES_HOST": os.environ.get("POSTGRES_HOST", "localhost"),
        "POSTGRES_PORT": os.environ.get("POSTGRES_PORT", "5432"),
        "POSTGRES_USER": os.environ.get("POSTGRES_TEST_USER", "testuser"),
        "POSTGRES_PASSWORD": os.environ.get("POSTGRES_TEST_PASSWORD", "testpass"),
        "POSTGRES_DB": os.environ.get("POSTGRES_TEST_DB", "testdb"),
        "CELERY_BROKER_URL": os.environ.get("CELERY_BROKER_URL", "memory://"),
        "DEBUG": "true",
    }
    os.environ.update(test_env)

    yield

    # Restore original environment
    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture(autouse=True)
def fresh_dispatcher() -> Generator[None, None, None]:
    """Give every test its own handler instances."""
    reset_dispatcher()
    yield
    reset_dispatcher()


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """
    Create a SQLite database file with the full schema.

    A file (rather than :memory:) lets several sessions, such as the ones a
    job worker opens, see each other's committed writes.
    """
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test database."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(
    session_maker: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """A database session for the test; rolled back and closed afterwards."""
    async with session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()


# ============================================================================
# Seed Data
# ============================================================================

BASE_TIME = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

SAMPLE_WORDS: list[tuple[str, str, str]] = [
    ("apple", "苹果", "píngguǒ"),
    ("water", "水", "shuǐ"),
    ("teacher", "老师", "lǎoshī"),
]


@pytest_asyncio.fixture
async def teacher(db: AsyncSession) -> Teacher:
    row = Teacher(name="Ms. Chen", email="chen@example.com")
    db.add(row)
    await db.commit()
    return row


@pytest_asyncio.fixture
async def other_teacher(db: AsyncSession) -> Teacher:
    row = Teacher(name="Mr. Wu", email="wu@example.com")
    db.add(row)
    await db.commit()
    return row


@pytest_asyncio.fixture
async def student(db: AsyncSession, teacher: Teacher) -> Student:
    row = Student(teacher_id=teacher.id, name="Lin", status=StudentStatus.ACTIVE.value)
    db.add(row)
    await db.commit()
    return row


@pytest_asyncio.fixture
async def deck(db: AsyncSession, teacher: Teacher) -> VocabularyDeck:
    """A private deck of SAMPLE_WORDS created by the teacher, in list order."""
    row = VocabularyDeck(name="Everyday words", creator_id=teacher.id)
    db.add(row)
    await db.flush()

    for i, (english, chinese, pinyin) in enumerate(SAMPLE_WORDS):
        db.add(
            VocabularyCard(
                deck_id=row.id,
                english_word=english,
                chinese_translation=chinese,
                pinyin=pinyin,
                example_sentences=[f"I like {english}."],
                audio_url=f"https://cdn.example.com/audio/{english}.mp3",
                created_at=BASE_TIME + timedelta(seconds=i),
            )
        )
    await db.commit()
    return row


@pytest_asyncio.fixture
async def cards(db: AsyncSession, deck: VocabularyDeck) -> list[VocabularyCard]:
    """The cards of the sample deck, in creation order."""
    result = await db.execute(
        select(VocabularyCard)
        .where(VocabularyCard.deck_id == deck.id)
        .order_by(VocabularyCard.created_at)
    )
    return list(result.scalars().all())


UnitFactory = Callable[..., Awaitable[Unit]]


@pytest.fixture
def make_unit(db: AsyncSession, deck: VocabularyDeck) -> UnitFactory:
    """
    Build a unit from a list of exercise types over the sample deck.

    Usage:
        unit = await make_unit(
            ExerciseType.VOCABULARY_DECK,
            ExerciseType.FILL_IN_BLANK_EXERCISE,
            configs={0: {"new_cards": 2}},
        )
    """

    async def factory(
        *exercise_types: ExerciseType,
        configs: Optional[dict[int, dict[str, Any]]] = None,
    ) -> Unit:
        configs = configs or {}
        unit = Unit(name="Unit 1")
        db.add(unit)
        await db.flush()

        for order, exercise_type in enumerate(exercise_types):
            references: dict[str, Any] = {}
            if exercise_type == ExerciseType.VOCABULARY_DECK:
                references["vocabulary_deck_id"] = deck.id
            elif exercise_type == ExerciseType.LISTENING_EXERCISE:
                exercise = ListeningExercise(title="Listen", deck_id=deck.id)
                db.add(exercise)
                await db.flush()
                references["listening_exercise_id"] = exercise.id
            elif exercise_type == ExerciseType.FILL_IN_BLANK_EXERCISE:
                exercise = FillInBlankExercise(title="Fill in", deck_id=deck.id)
                db.add(exercise)
                await db.flush()
                references["fill_in_blank_exercise_id"] = exercise.id
            else:
                exercise = GrammarExercise(title="Measure words")
                db.add(exercise)
                await db.flush()
                references["grammar_exercise_id"] = exercise.id

            db.add(
                UnitItem(
                    unit_id=unit.id,
                    type=exercise_type.value,
                    order=order + 1,
                    exercise_config=configs.get(order),
                    **references,
                )
            )

        await db.commit()
        return unit

    return factory


# ============================================================================
# Mock Fixtures
# ============================================================================


@pytest.fixture
def mock_db_session() -> MagicMock:
    """
    Create a mock database session for unit testing.
    """
    mock = MagicMock()
    mock.execute = AsyncMock()
    mock.commit = AsyncMock()
    mock.rollback = AsyncMock()
    mock.close = AsyncMock()
    mock.flush = AsyncMock()
    mock.get = AsyncMock(return_value=None)
    return mock
