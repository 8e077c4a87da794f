"""
Vocabulary Deck Handler

Flashcard review of a whole deck. The student sees the card, the teacher
reveals the answer, the student rates their recall and the card is
rescheduled through FSRS.
"""

from app.enums.learning import ExerciseType, ReviewType, VocabularyStage
from app.models.progress import (
    ReviewQueuePayload,
    VocabularyDeckConfig,
    VocabularyDeckProgress,
)
from app.services.exercises.base import ExerciseContext, ExerciseHandler
from app.services.exercises.operators.review import (
    RevealAnswerOperator,
    SubmitRatingOperator,
)
from app.services.exercises.review_queue import build_queue, load_card_data, load_deck_states


class VocabularyDeckHandler(ExerciseHandler):
    EXERCISE_TYPE = ExerciseType.VOCABULARY_DECK
    PROGRESS_MODEL = VocabularyDeckProgress
    CONFIG_MODEL = VocabularyDeckConfig

    def __init__(self) -> None:
        super().__init__(
            [
                RevealAnswerOperator(),
                SubmitRatingOperator(
                    ReviewType.VOCABULARY,
                    awaiting_stage=VocabularyStage.AWAITING_RATING,
                    next_stage=VocabularyStage.PRESENTING_CARD,
                ),
            ]
        )

    async def build_initial_progress(self, ctx: ExerciseContext) -> VocabularyDeckProgress:
        config: VocabularyDeckConfig = self.load_config(ctx.item)
        states = await load_deck_states(
            ctx.db, ctx.student_id, ctx.item.payload_id, ReviewType.VOCABULARY
        )
        queue = build_queue(states, ctx.now, config.new_cards, config.max_due)
        head = queue[0] if queue else None

        return VocabularyDeckProgress(
            stage=VocabularyStage.PRESENTING_CARD,
            payload=ReviewQueuePayload(
                queue=queue,
                current_card_data=await load_card_data(
                    ctx.db, head.card_id if head else None, head
                ),
                learning_steps=list(config.learning_steps),
                initial_card_ids=[entry.card_id for entry in queue],
            ),
        )
