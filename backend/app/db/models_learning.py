"""
SQLAlchemy Database Models for the Learning System

These models back live teaching sessions and the FSRS scheduler.

Tables:
- teaching_sessions: Live sessions stepping a student through a unit
- student_card_states: Materialized per-card scheduling state (a cache)
- review_events: Append-only review ledger, the source of truth for card states
- student_fsrs_params: Fitted FSRS weight vectors, versioned per student
- fill_in_blank_card_states: Which fill-in-the-blank cards a student has finished

ARCHITECTURE NOTE:
    student_card_states can be dropped and rebuilt at any time by folding
    review_events (see CardStateService.rebuild_from_ledger). Nothing may
    update or delete a review_events row.

    Pydantic counterparts live in app/models/sessions.py and
    app/models/progress.py.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.db.models import Student, Unit, UnitItem
from app.db.types import JSONDocument, LedgerId, UTCDateTime, utc_now
from app.enums.learning import CardState, ReviewType, SessionStatus


# ===========================================
# Teaching Sessions
# ===========================================


class TeachingSession(Base):
    """
    A live teaching session.

    Attributes:
        status: IN_PROGRESS or COMPLETED (terminal).
        current_unit_item_id: Exercise currently being worked; null once the
            session is completed.
        progress: Serialized SessionProgress (see app.models.progress). Set
            iff status is IN_PROGRESS and current_unit_item_id is set.
        start_time: When the session was started.
        end_time: When the session completed or was ended; never rewritten.
    """

    __tablename__ = "teaching_sessions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    teacher_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("teachers.id", ondelete="CASCADE"), index=True
    )
    student_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("students.id", ondelete="CASCADE"), index=True
    )
    unit_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("units.id"))
    status: Mapped[str] = mapped_column(
        String(20), default=SessionStatus.IN_PROGRESS.value
    )
    current_unit_item_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("unit_items.id")
    )
    progress: Mapped[Optional[dict]] = mapped_column(JSONDocument)
    start_time: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now)
    end_time: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utc_now, onupdate=utc_now
    )

    student: Mapped["Student"] = relationship()
    unit: Mapped["Unit"] = relationship()
    current_unit_item: Mapped[Optional["UnitItem"]] = relationship()


# ===========================================
# Card State Cache
# ===========================================


class StudentCardState(Base):
    """
    Scheduling state of one card for one student and review type.

    Derived data: every column is reproducible by replaying the card's
    review_events in order.

    Attributes:
        state: NEW, LEARNING, REVIEW or RELEARNING.
        learning_step: Index of the next learning step to schedule.
        stability: FSRS stability in days; null until graduation.
        difficulty: FSRS difficulty (1-10); null until graduation.
        due: When the card should next be shown.
        last_review: Time of the most recent review.
        reps: Number of reviews.
        lapses: Number of times the card was forgotten while in REVIEW.
    """

    __tablename__ = "student_card_states"
    __table_args__ = (
        UniqueConstraint(
            "student_id", "card_id", "review_type", name="uq_card_state_triple"
        ),
        Index("ix_card_states_student_due", "student_id", "review_type", "due"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("students.id", ondelete="CASCADE")
    )
    card_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("vocabulary_cards.id", ondelete="CASCADE"), index=True
    )
    review_type: Mapped[str] = mapped_column(
        String(20), default=ReviewType.VOCABULARY.value
    )

    # FSRS state
    state: Mapped[str] = mapped_column(String(20), default=CardState.NEW.value)
    learning_step: Mapped[int] = mapped_column(Integer, default=0)
    stability: Mapped[Optional[float]] = mapped_column(Float)
    difficulty: Mapped[Optional[float]] = mapped_column(Float)
    due: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now)
    last_review: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    reps: Mapped[int] = mapped_column(Integer, default=0)
    lapses: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utc_now, onupdate=utc_now
    )


# ===========================================
# Review Ledger
# ===========================================


class ReviewEvent(Base):
    """
    One review, appended before the card state it produces is written.

    Ordered per (student, card, review_type) by (reviewed_at, id).

    Attributes:
        rating: 1-4 (AGAIN, HARD, GOOD, EASY).
        session_id: Teaching session the review happened in, if any.
        is_learning_step: Whether learning-step logic (rather than the FSRS
            main scheduler) produced the resulting state.
        learning_steps: Step sequence in force at review time, so replays
            reproduce the same transitions.
        previous_*: Snapshot of the card state before this review.
    """

    __tablename__ = "review_events"
    __table_args__ = (
        Index(
            "ix_review_events_replay",
            "student_id",
            "card_id",
            "review_type",
            "reviewed_at",
        ),
    )

    id: Mapped[int] = mapped_column(LedgerId, primary_key=True, autoincrement=True)
    student_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("students.id", ondelete="CASCADE"), index=True
    )
    card_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("vocabulary_cards.id", ondelete="CASCADE")
    )
    review_type: Mapped[str] = mapped_column(String(20))
    session_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("teaching_sessions.id", ondelete="SET NULL")
    )
    rating: Mapped[int] = mapped_column(Integer)
    reviewed_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now)
    is_learning_step: Mapped[bool] = mapped_column(Boolean, default=False)
    learning_steps: Mapped[list] = mapped_column(JSONDocument, default=list)

    # Pre-review snapshot
    previous_state: Mapped[str] = mapped_column(String(20))
    previous_step: Mapped[int] = mapped_column(Integer, default=0)
    previous_stability: Mapped[Optional[float]] = mapped_column(Float)
    previous_difficulty: Mapped[Optional[float]] = mapped_column(Float)
    previous_due: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    previous_last_review: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    previous_reps: Mapped[int] = mapped_column(Integer, default=0)
    previous_lapses: Mapped[int] = mapped_column(Integer, default=0)


# ===========================================
# FSRS Parameters
# ===========================================


class StudentFsrsParams(Base):
    """
    A fitted FSRS weight vector.

    Each optimization run inserts a new version and deactivates the previous
    one, keeping the history.

    Attributes:
        weights: FSRS parameter vector (length matches the fsrs library).
        version: 1-based, increasing and unique per (student, review_type).
        optimization_score: Log loss of the fitted weights on the training data.
        training_data_size: Number of reviews the weights were fitted on.
        is_active: Whether the scheduler uses this vector; at most one per
            (student, review_type).
    """

    __tablename__ = "student_fsrs_params"
    __table_args__ = (
        UniqueConstraint(
            "student_id", "review_type", "version", name="uq_fsrs_params_version"
        ),
        # At most one active vector per (student, review_type)
        Index(
            "uq_fsrs_params_one_active",
            "student_id",
            "review_type",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("students.id", ondelete="CASCADE")
    )
    review_type: Mapped[str] = mapped_column(
        String(20), default=ReviewType.VOCABULARY.value
    )
    weights: Mapped[list] = mapped_column(JSONDocument)
    version: Mapped[int] = mapped_column(Integer, default=1)
    optimization_score: Mapped[Optional[float]] = mapped_column(Float)
    training_data_size: Mapped[int] = mapped_column(Integer, default=0)
    last_optimized: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


# ===========================================
# Fill-in-the-blank
# ===========================================


class FillInBlankCardState(Base):
    """Completion record of a fill-in-the-blank card for a student."""

    __tablename__ = "fill_in_blank_card_states"
    __table_args__ = (
        UniqueConstraint("student_id", "card_id", name="uq_fill_in_blank_student_card"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("students.id", ondelete="CASCADE")
    )
    card_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("vocabulary_cards.id", ondelete="CASCADE")
    )
    is_seen: Mapped[bool] = mapped_column(Boolean, default=False)
    last_result: Mapped[Optional[str]] = mapped_column(String(20))
    completed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
