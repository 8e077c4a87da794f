"""
Fill-in-the-Blank Handler

The student completes an example sentence with the missing English word and
the teacher judges the answer. Cards a student has completed are not offered
again. Fill-in-the-blank keeps its own per-card record and does not write
to the review ledger.
"""

import random

from sqlalchemy import select

from app.db.models import FillInBlankExercise, VocabularyCard
from app.db.models_learning import FillInBlankCardState
from app.enums.learning import ExerciseType, FillInBlankStage
from app.middleware.error_handling import NotFoundError
from app.models.progress import (
    FillInBlankConfig,
    FillInBlankExerciseProgress,
    FillInBlankPayload,
)
from app.services.exercises.base import ExerciseContext, ExerciseHandler
from app.services.exercises.operators.fill_in_blank import (
    MarkCorrectOperator,
    MarkIncorrectOperator,
    RevealFillInBlankAnswerOperator,
    SubmitStudentAnswerOperator,
)
from app.services.exercises.review_queue import load_card_data


class FillInBlankHandler(ExerciseHandler):
    EXERCISE_TYPE = ExerciseType.FILL_IN_BLANK_EXERCISE
    PROGRESS_MODEL = FillInBlankExerciseProgress
    CONFIG_MODEL = FillInBlankConfig

    def __init__(self, rng: random.Random | None = None) -> None:
        super().__init__(
            [
                SubmitStudentAnswerOperator(),
                RevealFillInBlankAnswerOperator(),
                MarkCorrectOperator(),
                MarkIncorrectOperator(),
            ]
        )
        self.rng = rng or random.Random()

    async def build_initial_progress(self, ctx: ExerciseContext) -> FillInBlankExerciseProgress:
        config: FillInBlankConfig = self.load_config(ctx.item)

        exercise = await ctx.db.get(FillInBlankExercise, ctx.item.payload_id)
        if exercise is None:
            raise NotFoundError(f"Fill-in-the-blank exercise {ctx.item.payload_id} not found")

        seen = select(FillInBlankCardState.card_id).where(
            FillInBlankCardState.student_id == ctx.student_id,
            FillInBlankCardState.is_seen.is_(True),
        )
        result = await ctx.db.execute(
            select(VocabularyCard.id)
            .where(VocabularyCard.deck_id == exercise.deck_id, VocabularyCard.id.not_in(seen))
            .order_by(VocabularyCard.created_at, VocabularyCard.id)
        )
        card_ids = list(result.scalars().all())

        if config.shuffle_cards:
            self.rng.shuffle(card_ids)
        queue = card_ids[: config.max_cards]

        return FillInBlankExerciseProgress(
            stage=FillInBlankStage.SHOWING_QUESTION,
            payload=FillInBlankPayload(
                queue=queue,
                current_card_data=await load_card_data(ctx.db, queue[0] if queue else None),
            ),
        )
