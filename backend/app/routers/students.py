"""
Student Progress API Router

Read-only views of a student's schedule for the teacher who owns them.

Endpoints:
- GET /api/students/{id}/due-cards - Card states due now, earliest first
- GET /api/students/{id}/listening/suggested-count - How many listening items to practice

Both return empty results for students who are not active.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.dependencies import get_current_teacher_id, get_student_progress_service
from app.enums.learning import ReviewType
from app.models.sessions import CardStateSummary
from app.models.students import (
    CardSummary,
    DueCard,
    DueCardsResponse,
    ListeningSuggestionResponse,
)
from app.services.learning.student_progress_service import StudentProgressService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/students", tags=["students"])


@router.get("/{student_id}/due-cards", response_model=DueCardsResponse)
async def get_due_cards(
    student_id: uuid.UUID,
    review_type: ReviewType = Query(ReviewType.VOCABULARY),
    limit: int = Query(100, ge=1, le=1000),
    teacher_id: uuid.UUID = Depends(get_current_teacher_id),
    service: StudentProgressService = Depends(get_student_progress_service),
) -> DueCardsResponse:
    """List the student's due cards of one review type, earliest due first."""
    due = await service.get_due_cards(teacher_id, student_id, review_type, limit=limit)
    return DueCardsResponse(
        student_id=student_id,
        review_type=review_type,
        cards=[
            DueCard(
                card_state=CardStateSummary.model_validate(state),
                card=CardSummary.model_validate(card),
            )
            for state, card in due
        ],
        total=len(due),
    )


@router.get(
    "/{student_id}/listening/suggested-count",
    response_model=ListeningSuggestionResponse,
)
async def suggest_listening_count(
    student_id: uuid.UUID,
    listening_threshold: Optional[float] = Query(None, ge=0.0, le=1.0),
    vocabulary_threshold: Optional[float] = Query(None, ge=0.0, le=1.0),
    teacher_id: uuid.UUID = Depends(get_current_teacher_id),
    service: StudentProgressService = Depends(get_student_progress_service),
) -> ListeningSuggestionResponse:
    """
    Suggest how many listening items to practice.

    Thresholds default to the SCHEDULING_LISTENING_SUGGEST_* settings.
    """
    suggestion = await service.suggest_listening_count(
        teacher_id,
        student_id,
        listening_threshold=listening_threshold,
        vocabulary_threshold=vocabulary_threshold,
    )
    return ListeningSuggestionResponse(
        student_id=student_id,
        suggested_count=suggestion.suggested_count,
        candidates=suggestion.candidates,
    )
