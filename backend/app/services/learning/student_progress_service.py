"""
Student Progress Service

Read-only views over a student's card states, for the teacher's dashboard:

- Due cards: card states of one review type whose due time has passed,
  earliest first, each with its vocabulary card.
- Listening suggestion: how many listening items a session could hold
  without drilling words the student no longer recalls in vocabulary review.

Both views return nothing for students who are paused, completed or
archived; a teacher cannot run sessions for them.

Usage:
    from app.services.learning.student_progress_service import StudentProgressService

    service = StudentProgressService(db_session)
    due = await service.get_due_cards(teacher_id, student_id)
    suggestion = await service.suggest_listening_count(teacher_id, student_id)
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.scheduling import scheduling_settings
from app.db.models import VocabularyCard
from app.db.models_learning import StudentCardState
from app.db.types import utc_now
from app.enums.learning import CardState, ReviewType
from app.services.auth import AuthService
from app.services.learning.scheduling_service import SchedulingService, snapshot_from_row

logger = logging.getLogger(__name__)


@dataclass
class ListeningSuggestion:
    """
    Attributes:
        suggested_count: Listening items worth practicing now
        candidates: Listening cards still recalled above the listening threshold
    """

    suggested_count: int
    candidates: int


class StudentProgressService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.auth = AuthService(db)
        self.scheduling = SchedulingService(db)

    async def get_due_cards(
        self,
        teacher_id: uuid.UUID,
        student_id: uuid.UUID,
        review_type: ReviewType = ReviewType.VOCABULARY,
        limit: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> list[tuple[StudentCardState, VocabularyCard]]:
        """
        Card states due at or before now, ordered by due time.

        Returns:
            (card state, card) pairs; empty for an inactive student

        Raises:
            AuthorizationError: The student does not belong to the teacher
        """
        student = await self.auth.authorize_owner(teacher_id, student_id)
        if not student.is_active:
            return []

        query = (
            select(StudentCardState, VocabularyCard)
            .join(VocabularyCard, VocabularyCard.id == StudentCardState.card_id)
            .where(
                StudentCardState.student_id == student_id,
                StudentCardState.review_type == ReviewType(review_type).value,
                StudentCardState.due <= (now or utc_now()),
            )
            .order_by(StudentCardState.due, StudentCardState.card_id)
        )
        if limit is not None:
            query = query.limit(limit)

        result = await self.db.execute(query)
        return [(state, card) for state, card in result.all()]

    async def suggest_listening_count(
        self,
        teacher_id: uuid.UUID,
        student_id: uuid.UUID,
        listening_threshold: Optional[float] = None,
        vocabulary_threshold: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> ListeningSuggestion:
        """
        Suggest how many listening items to practice.

        A candidate is a reviewed listening card (not NEW, with stability and
        a last review) whose listening retrievability is above
        listening_threshold. Candidates are ranked by vocabulary
        retrievability (0 without a reviewed vocabulary state); the
        suggestion is the length of the leading run at or above
        vocabulary_threshold.

        Raises:
            AuthorizationError: The student does not belong to the teacher
        """
        student = await self.auth.authorize_owner(teacher_id, student_id)
        if not student.is_active:
            return ListeningSuggestion(suggested_count=0, candidates=0)

        if listening_threshold is None:
            listening_threshold = scheduling_settings.LISTENING_SUGGEST_LISTENING_THRESHOLD
        if vocabulary_threshold is None:
            vocabulary_threshold = scheduling_settings.LISTENING_SUGGEST_VOCABULARY_THRESHOLD
        now = now or utc_now()

        listening_scheduler = await self.scheduling.get_scheduler(
            student_id, ReviewType.LISTENING
        )
        candidate_ids = [
            state.card_id
            for state in await self._states(student_id, ReviewType.LISTENING)
            if state.state != CardState.NEW.value
            and state.stability
            and state.last_review is not None
            and listening_scheduler.get_retrievability(snapshot_from_row(state), now)
            > listening_threshold
        ]
        if not candidate_ids:
            return ListeningSuggestion(suggested_count=0, candidates=0)

        vocabulary_scheduler = await self.scheduling.get_scheduler(
            student_id, ReviewType.VOCABULARY
        )
        vocabulary = {
            state.card_id: state
            for state in await self._states(student_id, ReviewType.VOCABULARY, candidate_ids)
        }

        recall = []
        for card_id in candidate_ids:
            state = vocabulary.get(card_id)
            if state is None or state.state == CardState.NEW.value:
                recall.append(0.0)
            else:
                recall.append(
                    vocabulary_scheduler.get_retrievability(snapshot_from_row(state), now)
                )
        recall.sort(reverse=True)

        count = 0
        for value in recall:
            if value < vocabulary_threshold:
                break
            count += 1

        logger.debug(
            f"Listening suggestion for student {student_id}: "
            f"{count} of {len(candidate_ids)} candidates"
        )
        return ListeningSuggestion(suggested_count=count, candidates=len(candidate_ids))

    async def _states(
        self,
        student_id: uuid.UUID,
        review_type: ReviewType,
        card_ids: Optional[list[uuid.UUID]] = None,
    ) -> list[StudentCardState]:
        query = select(StudentCardState).where(
            StudentCardState.student_id == student_id,
            StudentCardState.review_type == review_type.value,
        )
        if card_ids is not None:
            query = query.where(StudentCardState.card_id.in_(card_ids))
        result = await self.db.execute(query)
        return list(result.scalars().all())
