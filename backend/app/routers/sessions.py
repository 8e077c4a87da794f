"""
Teaching Session API Router

Endpoints for running live teaching sessions.

Endpoints:
- POST /api/sessions - Start a session for a student on a unit
- GET /api/sessions/{id} - Get the full session state
- POST /api/sessions/{id}/answer - Submit an action on the current exercise
- POST /api/sessions/{id}/end - End a session early

All endpoints act as the teacher identified by the X-Teacher-Id header.
"""

import logging
import uuid

from fastapi import APIRouter, Depends, status

from app.dependencies import get_current_teacher_id, get_session_service
from app.models.sessions import (
    SessionStateResponse,
    StartSessionRequest,
    SubmitAnswerRequest,
    SubmitAnswerResponse,
)
from app.services.learning.session_service import SessionService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/sessions", tags=["sessions"])


@router.post("", response_model=SessionStateResponse, status_code=status.HTTP_201_CREATED)
async def start_session(
    request: StartSessionRequest,
    teacher_id: uuid.UUID = Depends(get_current_teacher_id),
    service: SessionService = Depends(get_session_service),
) -> SessionStateResponse:
    """
    Start a teaching session.

    The session opens on the first unit item that has something to
    practice. A unit with no items is rejected and no session is created.
    """
    return await service.start_session(teacher_id, request.student_id, request.unit_id)


@router.get("/{session_id}", response_model=SessionStateResponse)
async def get_session(
    session_id: uuid.UUID,
    teacher_id: uuid.UUID = Depends(get_current_teacher_id),
    service: SessionService = Depends(get_session_service),
) -> SessionStateResponse:
    """Get the full state of a session, including typed progress."""
    return await service.get_full_state(session_id, teacher_id)


@router.post("/{session_id}/answer", response_model=SubmitAnswerResponse)
async def submit_answer(
    session_id: uuid.UUID,
    request: SubmitAnswerRequest,
    teacher_id: uuid.UUID = Depends(get_current_teacher_id),
    service: SessionService = Depends(get_session_service),
) -> SubmitAnswerResponse:
    """
    Submit an action on the session's current exercise.

    Actions depend on the exercise type, e.g. REVEAL_ANSWER and
    SUBMIT_RATING for vocabulary decks.
    """
    return await service.submit_answer(session_id, teacher_id, request.action, request.data)


@router.post("/{session_id}/end", response_model=SessionStateResponse)
async def end_session(
    session_id: uuid.UUID,
    teacher_id: uuid.UUID = Depends(get_current_teacher_id),
    service: SessionService = Depends(get_session_service),
) -> SessionStateResponse:
    """End a session. Ending a completed session is a no-op."""
    return await service.end_session(session_id, teacher_id)
