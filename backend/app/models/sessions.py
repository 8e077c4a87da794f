"""
Pydantic Models for Teaching Sessions

Request/response models for the session API and the per-action payloads
exercise operators accept.

ARCHITECTURE NOTE:
    SQLAlchemy counterparts live in app/db/models_learning.py.
"""

import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import Field

from app.enums.learning import CardState, ExerciseType, Rating, ReviewType, SessionStatus
from app.models.base import StrictRequest, StrictResponse
from app.models.progress import SessionProgress


# =============================================================================
# Requests
# =============================================================================


class StartSessionRequest(StrictRequest):
    """Start a session for a student on a unit."""

    student_id: uuid.UUID
    unit_id: uuid.UUID


class SubmitAnswerRequest(StrictRequest):
    """
    An action on the current exercise.

    Attributes:
        action: Operator name, e.g. REVEAL_ANSWER or SUBMIT_RATING
        data: Action-specific payload, validated by the operator
    """

    action: str = Field(..., min_length=1, max_length=100)
    data: dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# Operator payloads
# =============================================================================


class RatingData(StrictRequest):
    """Data of SUBMIT_RATING."""

    rating: Rating


class StudentAnswerData(StrictRequest):
    """Data of SUBMIT_STUDENT_ANSWER."""

    answer: str = Field(..., max_length=1000)


class EmptyData(StrictRequest):
    """Data of actions that take no input."""


# =============================================================================
# Responses
# =============================================================================


class CardStateSummary(StrictResponse):
    """Scheduling state of a card after a review."""

    card_id: uuid.UUID
    review_type: ReviewType
    state: CardState
    learning_step: int
    stability: Optional[float] = None
    difficulty: Optional[float] = None
    due: datetime
    last_review: Optional[datetime] = None
    reps: int
    lapses: int


class ActionResult(StrictResponse):
    """
    Per-action feedback returned alongside the new session state.

    Attributes:
        is_correct: Correctness feedback where the action carries one
        feedback: Short human-readable message
        correct_answer: Expected answer (fill-in-the-blank)
        card_state: Card state written by a rating
    """

    is_correct: Optional[bool] = None
    feedback: Optional[str] = None
    correct_answer: Optional[str] = None
    card_state: Optional[CardStateSummary] = None


class UnitItemSummary(StrictResponse):
    """Outline entry of a unit item."""

    id: uuid.UUID
    type: ExerciseType
    order: int


class SessionStateResponse(StrictResponse):
    """Full, serializable snapshot of a teaching session."""

    id: uuid.UUID
    teacher_id: uuid.UUID
    student_id: uuid.UUID
    unit_id: uuid.UUID
    status: SessionStatus
    current_item: Optional[UnitItemSummary] = None
    progress: Optional[SessionProgress] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    items: list[UnitItemSummary] = Field(default_factory=list)


class SubmitAnswerResponse(StrictResponse):
    """New session state plus the result of the submitted action."""

    state: SessionStateResponse
    result: ActionResult
