"""
SQLAlchemy Database Models for Teaching Content

Teachers, students, vocabulary decks and the units that sequence exercises.
These rows are owned by the (external) content-management CRUD; the session
engine only reads them.

Tables:
- teachers: Tutors who own students and jobs
- students: Learners, each belonging to one teacher
- vocabulary_decks / vocabulary_cards: Flashcard content
- grammar_exercises, listening_exercises, fill_in_blank_exercises: Exercise payloads
- units / unit_items: Ordered exercise sequences

ARCHITECTURE NOTE:
    Each unit item references exactly one exercise payload, and the populated
    reference must agree with the item's type. The CHECK constraint below and
    UnitItem.payload_id keep that tagged union honest.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.db.types import JSONDocument, UTCDateTime, utc_now
from app.enums.learning import ExerciseType, StudentStatus


# ===========================================
# People
# ===========================================


class Teacher(Base):
    """A tutor. Owns students, sessions and background jobs."""

    __tablename__ = "teachers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200))
    email: Mapped[Optional[str]] = mapped_column(String(320), unique=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now)

    students: Mapped[List["Student"]] = relationship(back_populates="teacher")


class Student(Base):
    """
    A learner.

    Attributes:
        teacher_id: Owning teacher; the only teacher allowed to run sessions.
        status: ACTIVE, PAUSED or COMPLETED. Only ACTIVE students can start
            sessions or have maintenance jobs run for them.
        is_archived: Soft-delete flag; archived students are treated as inactive.
    """

    __tablename__ = "students"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    teacher_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("teachers.id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(String(200))
    status: Mapped[str] = mapped_column(String(20), default=StudentStatus.ACTIVE.value)
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now)

    teacher: Mapped["Teacher"] = relationship(back_populates="students")

    @property
    def is_active(self) -> bool:
        return self.status == StudentStatus.ACTIVE.value and not self.is_archived


# ===========================================
# Vocabulary
# ===========================================


class VocabularyDeck(Base):
    """
    A named collection of vocabulary cards.

    Attributes:
        creator_id: Teacher who created the deck; the only one who may add cards.
        is_public: Whether other teachers may use the deck in units and jobs.
    """

    __tablename__ = "vocabulary_decks"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    creator_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("teachers.id", ondelete="SET NULL"), index=True
    )
    is_public: Mapped[bool] = mapped_column(Boolean, default=False)
    name: Mapped[str] = mapped_column(String(200))
    description: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now)

    cards: Mapped[List["VocabularyCard"]] = relationship(
        back_populates="deck", cascade="all, delete-orphan"
    )


class VocabularyCard(Base):
    """
    A single vocabulary flashcard.

    Attributes:
        english_word: Prompt side; also the expected fill-in-the-blank answer.
        chinese_translation: Answer side.
        pinyin: Optional romanization.
        example_sentences: Optional list of usage examples, used by
            fill-in-the-blank exercises.
        audio_url: Pronunciation audio for listening exercises.
    """

    __tablename__ = "vocabulary_cards"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    deck_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("vocabulary_decks.id", ondelete="CASCADE"), index=True
    )
    english_word: Mapped[str] = mapped_column(String(500))
    chinese_translation: Mapped[str] = mapped_column(String(500))
    pinyin: Mapped[Optional[str]] = mapped_column(String(500))
    ipa_pronunciation: Mapped[Optional[str]] = mapped_column(String(500))
    example_sentences: Mapped[Optional[list]] = mapped_column(JSONDocument)
    audio_url: Mapped[Optional[str]] = mapped_column(String(2000))
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now)

    deck: Mapped["VocabularyDeck"] = relationship(back_populates="cards")


# ===========================================
# Exercise payloads
# ===========================================


class GrammarExercise(Base):
    """Grammar drill content. No session handler exists for it yet."""

    __tablename__ = "grammar_exercises"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(200))
    content: Mapped[Optional[dict]] = mapped_column(JSONDocument)


class ListeningExercise(Base):
    """Listening practice over the cards of a vocabulary deck."""

    __tablename__ = "listening_exercises"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(200))
    deck_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("vocabulary_decks.id", ondelete="CASCADE")
    )


class FillInBlankExercise(Base):
    """Fill-in-the-blank practice over the cards of a vocabulary deck."""

    __tablename__ = "fill_in_blank_exercises"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(200))
    deck_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("vocabulary_decks.id", ondelete="CASCADE")
    )


# ===========================================
# Units
# ===========================================


class Unit(Base):
    """An ordered sequence of exercises taught in one session."""

    __tablename__ = "units"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200))
    description: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now)

    items: Mapped[List["UnitItem"]] = relationship(
        back_populates="unit",
        order_by="UnitItem.order",
        cascade="all, delete-orphan",
    )


# Payload column holding the exercise reference for each item type
PAYLOAD_COLUMNS: dict[ExerciseType, str] = {
    ExerciseType.VOCABULARY_DECK: "vocabulary_deck_id",
    ExerciseType.GRAMMAR_EXERCISE: "grammar_exercise_id",
    ExerciseType.LISTENING_EXERCISE: "listening_exercise_id",
    ExerciseType.FILL_IN_BLANK_EXERCISE: "fill_in_blank_exercise_id",
}

_exactly_one_payload = (
    " + ".join(
        f"(CASE WHEN {column} IS NOT NULL THEN 1 ELSE 0 END)"
        for column in PAYLOAD_COLUMNS.values()
    )
    + " = 1"
)


class UnitItem(Base):
    """
    One exercise slot in a unit.

    Attributes:
        type: ExerciseType value; selects the session handler.
        order: Position within the unit. Sessions advance by ascending order.
        exercise_config: Per-type tunables (e.g. new cards per session,
            learning steps). Validated by the handler's config model.
        vocabulary_deck_id / grammar_exercise_id / listening_exercise_id /
            fill_in_blank_exercise_id: Exactly one is set, matching type.
    """

    __tablename__ = "unit_items"
    __table_args__ = (
        UniqueConstraint("unit_id", "order", name="uq_unit_items_unit_order"),
        CheckConstraint(_exactly_one_payload, name="ck_unit_items_one_payload"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    unit_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("units.id", ondelete="CASCADE"), index=True
    )
    type: Mapped[str] = mapped_column(String(50))
    order: Mapped[int] = mapped_column(Integer)
    exercise_config: Mapped[Optional[dict]] = mapped_column(JSONDocument)

    vocabulary_deck_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("vocabulary_decks.id")
    )
    grammar_exercise_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("grammar_exercises.id")
    )
    listening_exercise_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("listening_exercises.id")
    )
    fill_in_blank_exercise_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("fill_in_blank_exercises.id")
    )

    unit: Mapped["Unit"] = relationship(back_populates="items")

    @property
    def exercise_type(self) -> ExerciseType:
        return ExerciseType(self.type)

    @property
    def payload_id(self) -> uuid.UUID:
        """Reference to the exercise payload selected by this item's type."""
        value = getattr(self, PAYLOAD_COLUMNS[self.exercise_type])
        if value is None:
            raise ValueError(
                f"Unit item {self.id} of type {self.type} has no "
                f"{PAYLOAD_COLUMNS[self.exercise_type]}"
            )
        return value
