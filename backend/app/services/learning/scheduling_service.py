"""
Scheduling Service

Service layer that integrates the FSRS-with-learning-steps scheduler with the
database. Every review appends one row to the review ledger and then updates
the cached card state, inside the caller's transaction.

The service never commits: the session orchestrator, the job worker or the
request-scoped get_db dependency own the transaction boundary.

Usage:
    from app.services.learning import SchedulingService

    service = SchedulingService(db_session)

    card_state = await service.record_review(
        student_id=student.id,
        card_id=card.id,
        rating=Rating.GOOD,
    )
"""

import logging
import uuid
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.scheduling import scheduling_settings
from app.db.models_learning import ReviewEvent, StudentCardState, StudentFsrsParams
from app.db.types import utc_now
from app.enums.learning import CardState, Rating, ReviewType
from app.middleware.error_handling import UnknownCardError, ValidationError
from app.services.learning.fsrs import (
    DEFAULT_PARAMETERS,
    CardSnapshot,
    FSRSScheduler,
    ReplayReview,
    create_scheduler,
    parse_learning_steps,
)

logger = logging.getLogger(__name__)


# ===========================================
# Row <-> snapshot conversion
# ===========================================


def snapshot_from_row(row: StudentCardState) -> CardSnapshot:
    """Read the scheduling columns of a card state row."""
    return CardSnapshot(
        state=CardState(row.state),
        learning_step=row.learning_step or 0,
        stability=row.stability,
        difficulty=row.difficulty,
        due=row.due,
        last_review=row.last_review,
        reps=row.reps or 0,
        lapses=row.lapses or 0,
    )


def apply_snapshot(row: StudentCardState, snapshot: CardSnapshot) -> None:
    """Write a snapshot into the scheduling columns of a card state row."""
    row.state = snapshot.state.value
    row.learning_step = snapshot.learning_step
    row.stability = snapshot.stability
    row.difficulty = snapshot.difficulty
    row.due = snapshot.due
    row.last_review = snapshot.last_review
    row.reps = snapshot.reps
    row.lapses = snapshot.lapses


def replay_review_from_event(event: ReviewEvent) -> ReplayReview:
    """Reduce a ledger row to the inputs of the transition function."""
    return ReplayReview(
        rating=event.rating,
        reviewed_at=event.reviewed_at,
        learning_steps=tuple(event.learning_steps or ()),
    )


class SchedulingService:
    """
    Records reviews and schedules cards.

    Provides:
    - Review recording (ledger append + card state update)
    - Card state lookup
    - Per-student scheduler construction from the active FSRS weights
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_active_params(
        self,
        student_id: uuid.UUID,
        review_type: ReviewType = ReviewType.VOCABULARY,
    ) -> Optional[StudentFsrsParams]:
        """Get the weight vector currently in use for a student, if fitted."""
        result = await self.db.execute(
            select(StudentFsrsParams)
            .where(
                StudentFsrsParams.student_id == student_id,
                StudentFsrsParams.review_type == ReviewType(review_type).value,
                StudentFsrsParams.is_active.is_(True),
            )
            .order_by(StudentFsrsParams.version.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_active_weights(
        self,
        student_id: uuid.UUID,
        review_type: ReviewType = ReviewType.VOCABULARY,
    ) -> tuple[float, ...]:
        """Get the student's active weight vector, or the library defaults."""
        params = await self.get_active_params(student_id, review_type)
        if params is None or len(params.weights) != len(DEFAULT_PARAMETERS):
            return DEFAULT_PARAMETERS
        return tuple(params.weights)

    async def get_scheduler(
        self,
        student_id: uuid.UUID,
        review_type: ReviewType = ReviewType.VOCABULARY,
    ) -> FSRSScheduler:
        """Build a scheduler with the student's active weights (or defaults)."""
        weights = await self.get_active_weights(student_id, review_type)
        return create_scheduler(parameters=weights)

    async def get_card_state(
        self,
        student_id: uuid.UUID,
        card_id: uuid.UUID,
        review_type: ReviewType = ReviewType.VOCABULARY,
        for_update: bool = False,
    ) -> Optional[StudentCardState]:
        """
        Load the cached state of one card.

        Args:
            for_update: Lock the row until the transaction ends
        """
        query = select(StudentCardState).where(
            StudentCardState.student_id == student_id,
            StudentCardState.card_id == card_id,
            StudentCardState.review_type == ReviewType(review_type).value,
        )
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def record_review(
        self,
        student_id: uuid.UUID,
        card_id: uuid.UUID,
        rating: Rating,
        review_type: ReviewType = ReviewType.VOCABULARY,
        session_id: Optional[uuid.UUID] = None,
        learning_steps: Optional[Sequence[str]] = None,
        review_time: Optional[datetime] = None,
    ) -> StudentCardState:
        """
        Record a review and reschedule the card.

        Appends the ledger entry (flushed first) and then writes the new card
        state, both in the caller's transaction.

        Args:
            student_id: Student who was reviewed
            card_id: Card that was reviewed
            rating: AGAIN, HARD, GOOD or EASY (1-4)
            review_type: Skill being scheduled
            session_id: Teaching session the review happened in
            learning_steps: Step sequence to apply (default from settings)
            review_time: Timestamp of the review (default: now)

        Returns:
            The updated StudentCardState row

        Raises:
            ValidationError: If the rating or a learning step is invalid
            UnknownCardError: If the card has no state for this student
        """
        try:
            rating = Rating(rating)
        except ValueError:
            raise ValidationError(f"Rating must be 1-4, got {rating!r}")

        steps = list(
            scheduling_settings.LEARNING_STEPS if learning_steps is None else learning_steps
        )
        try:
            parsed_steps = parse_learning_steps(steps)
        except ValueError as e:
            raise ValidationError(str(e))

        row = await self.get_card_state(student_id, card_id, review_type, for_update=True)
        if row is None:
            raise UnknownCardError(
                f"Card {card_id} has no {ReviewType(review_type).value} state "
                f"for student {student_id}",
                details={"student_id": str(student_id), "card_id": str(card_id)},
            )

        review_time = review_time or utc_now()
        # Keep the ledger ordered per card even if the clock steps backwards
        if row.last_review is not None and review_time < row.last_review:
            review_time = row.last_review

        before = snapshot_from_row(row)
        scheduler = await self.get_scheduler(student_id, review_type)
        outcome = scheduler.review(before, rating, review_time, parsed_steps)

        event = ReviewEvent(
            student_id=student_id,
            card_id=card_id,
            review_type=ReviewType(review_type).value,
            session_id=session_id,
            rating=rating.value,
            reviewed_at=review_time,
            is_learning_step=outcome.is_learning_step,
            learning_steps=steps,
            previous_state=before.state.value,
            previous_step=before.learning_step,
            previous_stability=before.stability,
            previous_difficulty=before.difficulty,
            previous_due=before.due,
            previous_last_review=before.last_review,
            previous_reps=before.reps,
            previous_lapses=before.lapses,
        )
        self.db.add(event)
        await self.db.flush()

        apply_snapshot(row, outcome.card)
        await self.db.flush()

        logger.info(
            f"Reviewed card {card_id} for student {student_id} ({rating.name}): "
            f"{before.state.value} -> {outcome.card.state.value}, due {outcome.card.due.isoformat()}"
        )

        return row
