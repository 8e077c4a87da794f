"""
Operators for FSRS-backed exercises (vocabulary deck, listening).

- RevealAnswerOperator: PRESENTING_CARD → AWAITING_RATING
- PlayAudioOperator: PLAYING_AUDIO → AWAITING_RATING
- SubmitRatingOperator: AWAITING_RATING → (review recorded) → next card
"""

from enum import Enum

from pydantic import BaseModel

from app.enums.learning import ListeningStage, Rating, ReviewType, VocabularyStage
from app.middleware.error_handling import InvalidActionError
from app.models.progress import SessionProgress
from app.models.sessions import ActionResult, CardStateSummary, RatingData
from app.services.exercises.base import ExerciseContext, ProgressOperator
from app.services.exercises.review_queue import (
    load_card_data,
    load_states,
    requeue_after_review,
)
from app.services.learning.scheduling_service import SchedulingService


class _StageAdvanceOperator(ProgressOperator):
    """Moves progress to NEXT_STAGE without touching the queue."""

    NEXT_STAGE: Enum
    FEEDBACK: str

    async def apply(
        self,
        ctx: ExerciseContext,
        progress: SessionProgress,
        data: BaseModel,
    ) -> tuple[ActionResult, SessionProgress]:
        if not progress.payload.queue:
            raise InvalidActionError(f"{self.ACTION} requires a card to be presented")
        new_progress = progress.model_copy(update={"stage": self.NEXT_STAGE})
        return ActionResult(is_correct=True, feedback=self.FEEDBACK), new_progress


class RevealAnswerOperator(_StageAdvanceOperator):
    ACTION = "REVEAL_ANSWER"
    REQUIRED_STAGE = VocabularyStage.PRESENTING_CARD
    NEXT_STAGE = VocabularyStage.AWAITING_RATING
    FEEDBACK = "Answer revealed."


class PlayAudioOperator(_StageAdvanceOperator):
    ACTION = "PLAY_AUDIO"
    REQUIRED_STAGE = ListeningStage.PLAYING_AUDIO
    NEXT_STAGE = ListeningStage.AWAITING_RATING
    FEEDBACK = "Audio played."


class SubmitRatingOperator(ProgressOperator):
    """
    Rate the card at the head of the queue.

    Records the review through SchedulingService (ledger append and card
    state update), then recomputes the queue: lowest due time first, NEW
    cards last, learning cards whose step came due re-admitted, and the
    rated card appended at the end if it was rated AGAIN.
    """

    ACTION = "SUBMIT_RATING"
    DATA_MODEL = RatingData

    def __init__(self, review_type: ReviewType, awaiting_stage: Enum, next_stage: Enum):
        self.review_type = review_type
        self.awaiting_stage = awaiting_stage
        self.next_stage = next_stage

    def required_stage(self) -> Enum:
        return self.awaiting_stage

    async def apply(
        self,
        ctx: ExerciseContext,
        progress: SessionProgress,
        data: RatingData,
    ) -> tuple[ActionResult, SessionProgress]:
        payload = progress.payload
        if not payload.queue:
            raise InvalidActionError("There is no card left to rate")

        head = payload.queue[0]
        reviewed = await SchedulingService(ctx.db).record_review(
            student_id=ctx.student_id,
            card_id=head.card_id,
            rating=data.rating,
            review_type=self.review_type,
            session_id=ctx.session.id,
            learning_steps=payload.learning_steps,
            review_time=ctx.now,
        )

        scope = await load_states(
            ctx.db, ctx.student_id, payload.initial_card_ids, self.review_type
        )
        queue = requeue_after_review(
            payload.queue,
            reviewed,
            rated_again=data.rating == Rating.AGAIN,
            scope=scope,
            now=ctx.now,
        )
        next_entry = queue[0] if queue else None

        new_payload = payload.model_copy(
            update={
                "queue": queue,
                "current_card_data": await load_card_data(
                    ctx.db, next_entry.card_id if next_entry else None, next_entry
                ),
                "student_answer": None,
            }
        )
        new_progress = progress.model_copy(
            update={"stage": self.next_stage, "payload": new_payload}
        )

        result = ActionResult(
            feedback="Review recorded.",
            card_state=CardStateSummary.model_validate(reviewed),
        )
        return result, new_progress
