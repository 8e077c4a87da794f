"""
Teaching Session Service

Steps a student through the ordered exercises of a unit. The service owns
the session-level state machine; everything specific to one exercise type
is delegated to its handler through the exercise dispatcher.

    IN_PROGRESS --(last exercise complete | end_session)--> COMPLETED

A session always points at exactly one unit item while IN_PROGRESS, and its
progress is always of that item's exercise type. When the handler reports
the current exercise complete, the session moves to the next item by order;
exercises that have nothing to do for this student (for example a deck with
no due cards) are skipped. Once no items remain the session completes.

Each public method is one transaction: any error rolls back every change
made during the call, including ledger appends and card state updates.

Usage:
    from app.services.learning.session_service import SessionService

    service = SessionService(db)

    state = await service.start_session(teacher_id, student_id, unit_id)
    response = await service.submit_answer(
        state.id, teacher_id, "SUBMIT_RATING", {"rating": 3}
    )
"""

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import Unit, UnitItem
from app.db.models_learning import TeachingSession
from app.db.types import utc_now
from app.enums.learning import ExerciseType, SessionStatus
from app.middleware.error_handling import (
    AuthorizationError,
    EmptyUnitError,
    InvalidActionError,
    NotFoundError,
    SessionNotActiveError,
    SessionNotFoundError,
)
from app.models.progress import dump_progress, parse_progress
from app.models.sessions import (
    SessionStateResponse,
    SubmitAnswerResponse,
    UnitItemSummary,
)
from app.services.auth import AuthService
from app.services.exercises import ExerciseContext, ExerciseDispatcher, get_dispatcher

logger = logging.getLogger(__name__)


class SessionService:
    """
    Teaching session orchestration service.

    Provides:
    - Session start on a unit (authorization, first exercise initialization)
    - Action submission with automatic advancement between exercises
    - Forced termination
    - Full state snapshots for the UI
    """

    def __init__(
        self,
        db: AsyncSession,
        dispatcher: Optional[ExerciseDispatcher] = None,
        auth: Optional[AuthService] = None,
    ):
        """
        Initialize session service.

        Args:
            db: Database session; the service commits and rolls it back
            dispatcher: Exercise dispatcher (default: the shared instance)
            auth: Authorization collaborator (default: AuthService on db)
        """
        self.db = db
        self.dispatcher = dispatcher or get_dispatcher()
        self.auth = auth or AuthService(db)

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[None]:
        try:
            yield
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

    # =========================================================================
    # Main Entry Points
    # =========================================================================

    async def start_session(
        self,
        teacher_id: uuid.UUID,
        student_id: uuid.UUID,
        unit_id: uuid.UUID,
    ) -> SessionStateResponse:
        """
        Start a session for a student on a unit.

        Nothing is written unless the whole start succeeds: an empty unit or
        an unsupported first exercise leaves no session behind.

        Returns:
            Full state of the new session

        Raises:
            AuthorizationError: The teacher may not teach this student
            NotFoundError: The unit does not exist
            EmptyUnitError: The unit has no items
            UnsupportedExerciseTypeError: An exercise type has no handler
        """
        async with self._transaction():
            await self.auth.authorize(teacher_id, student_id)

            unit = await self.db.get(Unit, unit_id)
            if unit is None:
                raise NotFoundError(f"Unit {unit_id} not found")

            items = await self._load_items(unit_id)
            if not items:
                raise EmptyUnitError(
                    f"Unit {unit_id} has no exercises",
                    details={"unit_id": str(unit_id)},
                )
            self.dispatcher.get_handler(items[0].exercise_type)

            now = utc_now()
            session = TeachingSession(
                teacher_id=teacher_id,
                student_id=student_id,
                unit_id=unit_id,
                status=SessionStatus.IN_PROGRESS.value,
                current_unit_item_id=items[0].id,
                start_time=now,
                updated_at=now,
            )
            self.db.add(session)
            await self.db.flush()

            logger.info(
                f"Started session {session.id} for student {student_id} on unit {unit_id} "
                f"({len(items)} exercises)"
            )
            await self._enter_items(session, items, 0, now)
            await self.db.flush()

            return self._build_state(session, items)

    async def submit_answer(
        self,
        session_id: uuid.UUID,
        teacher_id: uuid.UUID,
        action: str,
        data: Optional[dict[str, Any]] = None,
    ) -> SubmitAnswerResponse:
        """
        Apply a teacher action to the session's current exercise.

        The session row is locked for the duration of the call. If the action
        completes the exercise the session advances to the next one, or
        completes when there is none.

        Returns:
            New full state plus the action's result

        Raises:
            SessionNotFoundError: No such session
            AuthorizationError: The session belongs to another teacher
            SessionNotActiveError: The session is already COMPLETED
            InvalidActionError: Unknown action, wrong stage or bad data
        """
        async with self._transaction():
            session = await self._get_session(session_id, teacher_id, for_update=True)
            if session.status != SessionStatus.IN_PROGRESS.value:
                raise SessionNotActiveError(
                    f"Session {session_id} is {session.status}",
                    details={"session_id": str(session_id), "status": session.status},
                )

            items = await self._load_items(session.unit_id)
            index = self._current_index(session, items)
            item = items[index]
            handler = self.dispatcher.get_handler(item.exercise_type)

            now = utc_now()
            ctx = ExerciseContext(db=self.db, session=session, item=item, now=now)
            result, progress = await handler.submit_answer(ctx, action, data)

            session.progress = dump_progress(progress)
            session.updated_at = now

            if handler.is_complete(session):
                logger.info(
                    f"Session {session.id} finished exercise {item.order} "
                    f"({item.exercise_type.value})"
                )
                await self._enter_items(session, items, index + 1, now)

            await self.db.flush()
            return SubmitAnswerResponse(state=self._build_state(session, items), result=result)

    async def end_session(
        self,
        session_id: uuid.UUID,
        teacher_id: uuid.UUID,
    ) -> SessionStateResponse:
        """
        End a session early.

        Ending a session that is already COMPLETED returns it unchanged.
        """
        async with self._transaction():
            session = await self._get_session(session_id, teacher_id, for_update=True)
            items = await self._load_items(session.unit_id)

            if session.status != SessionStatus.COMPLETED.value:
                self._complete(session, utc_now())
                await self.db.flush()
                logger.info(f"Session {session.id} ended by teacher {teacher_id}")

            return self._build_state(session, items)

    async def get_full_state(
        self,
        session_id: uuid.UUID,
        teacher_id: uuid.UUID,
    ) -> SessionStateResponse:
        """Get a serializable snapshot of a session."""
        session = await self._get_session(session_id, teacher_id)
        items = await self._load_items(session.unit_id)
        return self._build_state(session, items)

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _get_session(
        self,
        session_id: uuid.UUID,
        teacher_id: uuid.UUID,
        for_update: bool = False,
    ) -> TeachingSession:
        query = select(TeachingSession).where(TeachingSession.id == session_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(query)
        session = result.scalar_one_or_none()

        if session is None:
            raise SessionNotFoundError(f"Session {session_id} not found")
        if session.teacher_id != teacher_id:
            raise AuthorizationError(
                f"Session {session_id} belongs to another teacher",
                details={"session_id": str(session_id)},
            )
        return session

    async def _load_items(self, unit_id: uuid.UUID) -> list[UnitItem]:
        result = await self.db.execute(
            select(UnitItem).where(UnitItem.unit_id == unit_id).order_by(UnitItem.order)
        )
        return list(result.scalars().all())

    @staticmethod
    def _current_index(session: TeachingSession, items: list[UnitItem]) -> int:
        for index, item in enumerate(items):
            if item.id == session.current_unit_item_id:
                return index
        raise InvalidActionError(
            f"Session {session.id} is not positioned on an item of its unit",
            details={"session_id": str(session.id)},
        )

    async def _enter_items(
        self,
        session: TeachingSession,
        items: list[UnitItem],
        start: int,
        now: datetime,
    ) -> None:
        """
        Position the session on the first item from start that has work.

        Completes the session when every remaining item is already complete.
        """
        for item in items[start:]:
            handler = self.dispatcher.get_handler(item.exercise_type)
            session.current_unit_item_id = item.id
            session.progress = None
            session.updated_at = now

            await handler.initialize(
                ExerciseContext(db=self.db, session=session, item=item, now=now)
            )
            if not handler.is_complete(session):
                logger.info(
                    f"Session {session.id} on exercise {item.order} "
                    f"({item.exercise_type.value})"
                )
                return

            logger.info(
                f"Session {session.id} skipping exercise {item.order} "
                f"({item.exercise_type.value}): nothing to practice"
            )

        self._complete(session, now)

    @staticmethod
    def _complete(session: TeachingSession, now: datetime) -> None:
        session.status = SessionStatus.COMPLETED.value
        session.end_time = now
        session.current_unit_item_id = None
        session.progress = None
        session.updated_at = now
        logger.info(f"Session {session.id} completed")

    @staticmethod
    def _build_state(session: TeachingSession, items: list[UnitItem]) -> SessionStateResponse:
        outline = [
            UnitItemSummary(id=item.id, type=ExerciseType(item.type), order=item.order)
            for item in items
        ]
        current = next((s for s in outline if s.id == session.current_unit_item_id), None)

        return SessionStateResponse(
            id=session.id,
            teacher_id=session.teacher_id,
            student_id=session.student_id,
            unit_id=session.unit_id,
            status=SessionStatus(session.status),
            current_item=current,
            progress=parse_progress(session.progress),
            start_time=session.start_time,
            end_time=session.end_time,
            items=outline,
        )
