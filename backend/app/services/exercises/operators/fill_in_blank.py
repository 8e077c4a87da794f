"""
Operators for fill-in-the-blank exercises.

    SHOWING_QUESTION --SUBMIT_STUDENT_ANSWER--> SHOWING_ANSWER
    SHOWING_ANSWER --REVEAL_ANSWER--> AWAITING_TEACHER_JUDGMENT
    AWAITING_TEACHER_JUDGMENT --MARK_CORRECT--> SHOWING_QUESTION (card done)
    AWAITING_TEACHER_JUDGMENT --MARK_INCORRECT--> SHOWING_QUESTION (card to the back)

Teacher judgments are recorded in fill_in_blank_card_states; a card marked
correct is not offered to the student again.
"""

import uuid
from abc import abstractmethod

from pydantic import BaseModel
from sqlalchemy import select

from app.db.models import VocabularyCard
from app.db.models_learning import FillInBlankCardState
from app.enums.learning import FillInBlankResult, FillInBlankStage
from app.middleware.error_handling import InvalidActionError
from app.models.progress import FillInBlankExerciseProgress
from app.models.sessions import ActionResult, StudentAnswerData
from app.services.exercises.base import ExerciseContext, ProgressOperator
from app.services.exercises.review_queue import load_card_data


def normalize_answer(answer: str) -> str:
    return " ".join(answer.strip().casefold().split())


async def _head_card(ctx: ExerciseContext, progress: FillInBlankExerciseProgress) -> VocabularyCard:
    if not progress.payload.queue:
        raise InvalidActionError("There is no card left in this exercise")
    card = await ctx.db.get(VocabularyCard, progress.payload.queue[0])
    if card is None:
        raise InvalidActionError(f"Card {progress.payload.queue[0]} no longer exists")
    return card


class SubmitStudentAnswerOperator(ProgressOperator):
    """Store the student's answer and check it against the expected word."""

    ACTION = "SUBMIT_STUDENT_ANSWER"
    REQUIRED_STAGE = FillInBlankStage.SHOWING_QUESTION
    DATA_MODEL = StudentAnswerData

    async def apply(
        self,
        ctx: ExerciseContext,
        progress: FillInBlankExerciseProgress,
        data: StudentAnswerData,
    ) -> tuple[ActionResult, FillInBlankExerciseProgress]:
        card = await _head_card(ctx, progress)
        is_correct = normalize_answer(data.answer) == normalize_answer(card.english_word)

        new_progress = progress.model_copy(
            update={
                "stage": FillInBlankStage.SHOWING_ANSWER,
                "payload": progress.payload.model_copy(update={"student_answer": data.answer}),
            }
        )
        result = ActionResult(
            is_correct=is_correct,
            feedback="Answer submitted.",
            correct_answer=card.english_word,
        )
        return result, new_progress


class RevealFillInBlankAnswerOperator(ProgressOperator):
    """Show the expected answer and hand over to the teacher."""

    ACTION = "REVEAL_ANSWER"
    REQUIRED_STAGE = FillInBlankStage.SHOWING_ANSWER

    async def apply(
        self,
        ctx: ExerciseContext,
        progress: FillInBlankExerciseProgress,
        data: BaseModel,
    ) -> tuple[ActionResult, FillInBlankExerciseProgress]:
        card = await _head_card(ctx, progress)
        new_progress = progress.model_copy(
            update={"stage": FillInBlankStage.AWAITING_TEACHER_JUDGMENT}
        )
        return ActionResult(feedback="Answer revealed.", correct_answer=card.english_word), new_progress


class _JudgmentOperator(ProgressOperator):
    REQUIRED_STAGE = FillInBlankStage.AWAITING_TEACHER_JUDGMENT
    RESULT: FillInBlankResult

    async def _record(self, ctx: ExerciseContext, card_id: uuid.UUID) -> None:
        result = await ctx.db.execute(
            select(FillInBlankCardState).where(
                FillInBlankCardState.student_id == ctx.student_id,
                FillInBlankCardState.card_id == card_id,
            )
        )
        state = result.scalar_one_or_none()
        if state is None:
            state = FillInBlankCardState(student_id=ctx.student_id, card_id=card_id)
            ctx.db.add(state)

        state.last_result = self.RESULT.value
        if self.RESULT == FillInBlankResult.CORRECT:
            state.is_seen = True
            state.completed_at = ctx.now
        elif state.is_seen is None:
            state.is_seen = False
        await ctx.db.flush()

    @abstractmethod
    def _next_queue(self, queue: list[uuid.UUID]) -> list[uuid.UUID]:
        pass

    async def apply(
        self,
        ctx: ExerciseContext,
        progress: FillInBlankExerciseProgress,
        data: BaseModel,
    ) -> tuple[ActionResult, FillInBlankExerciseProgress]:
        card = await _head_card(ctx, progress)
        await self._record(ctx, card.id)

        queue = self._next_queue(list(progress.payload.queue))
        new_payload = progress.payload.model_copy(
            update={
                "queue": queue,
                "current_card_data": await load_card_data(ctx.db, queue[0] if queue else None),
                "student_answer": None,
            }
        )
        new_progress = progress.model_copy(
            update={"stage": FillInBlankStage.SHOWING_QUESTION, "payload": new_payload}
        )
        is_correct = self.RESULT == FillInBlankResult.CORRECT
        result = ActionResult(
            is_correct=is_correct,
            feedback="Marked correct." if is_correct else "Marked incorrect; the card will come back.",
            correct_answer=card.english_word,
        )
        return result, new_progress


class MarkCorrectOperator(_JudgmentOperator):
    """Record the card as done and move on."""

    ACTION = "MARK_CORRECT"
    RESULT = FillInBlankResult.CORRECT

    def _next_queue(self, queue: list[uuid.UUID]) -> list[uuid.UUID]:
        return queue[1:]


class MarkIncorrectOperator(_JudgmentOperator):
    """Record the miss and send the card to the back of the queue."""

    ACTION = "MARK_INCORRECT"
    RESULT = FillInBlankResult.INCORRECT

    def _next_queue(self, queue: list[uuid.UUID]) -> list[uuid.UUID]:
        return queue[1:] + queue[:1]
