"""
Listening Exercise Handler

Audio recognition practice over a deck. Only words the student already
knows well in vocabulary review are eligible: their VOCABULARY card must be
in REVIEW with a current retrievability at or above the configured threshold.
Listening has its own FSRS schedule (review type LISTENING); missing listening
states for eligible cards are created as NEW when the exercise starts.
"""

import uuid

from app.db.models import ListeningExercise
from app.enums.learning import CardState, ExerciseType, ListeningStage, ReviewType
from app.middleware.error_handling import NotFoundError
from app.models.progress import (
    ListeningExerciseConfig,
    ListeningExerciseProgress,
    ReviewQueuePayload,
)
from app.services.exercises.base import ExerciseContext, ExerciseHandler
from app.services.exercises.operators.review import PlayAudioOperator, SubmitRatingOperator
from app.services.exercises.review_queue import build_queue, load_card_data, load_deck_states
from app.services.learning.card_state_service import CardStateService
from app.services.learning.scheduling_service import SchedulingService, snapshot_from_row


class ListeningExerciseHandler(ExerciseHandler):
    EXERCISE_TYPE = ExerciseType.LISTENING_EXERCISE
    PROGRESS_MODEL = ListeningExerciseProgress
    CONFIG_MODEL = ListeningExerciseConfig

    def __init__(self) -> None:
        super().__init__(
            [
                PlayAudioOperator(),
                SubmitRatingOperator(
                    ReviewType.LISTENING,
                    awaiting_stage=ListeningStage.AWAITING_RATING,
                    next_stage=ListeningStage.PLAYING_AUDIO,
                ),
            ]
        )

    async def _eligible_card_ids(
        self, ctx: ExerciseContext, deck_id: uuid.UUID, threshold: float
    ) -> list[uuid.UUID]:
        """Deck cards whose vocabulary recall is confident enough, in deck order."""
        vocabulary = await load_deck_states(
            ctx.db, ctx.student_id, deck_id, ReviewType.VOCABULARY
        )
        scheduler = await SchedulingService(ctx.db).get_scheduler(
            ctx.student_id, ReviewType.VOCABULARY
        )
        return [
            state.card_id
            for state in vocabulary
            if state.state == CardState.REVIEW.value
            and scheduler.get_retrievability(snapshot_from_row(state), ctx.now) >= threshold
        ]

    async def build_initial_progress(self, ctx: ExerciseContext) -> ListeningExerciseProgress:
        config: ListeningExerciseConfig = self.load_config(ctx.item)

        exercise = await ctx.db.get(ListeningExercise, ctx.item.payload_id)
        if exercise is None:
            raise NotFoundError(f"Listening exercise {ctx.item.payload_id} not found")

        eligible = await self._eligible_card_ids(
            ctx, exercise.deck_id, config.vocabulary_confidence_threshold
        )
        created = await CardStateService(ctx.db).initialize_cards(
            ctx.student_id, eligible, ReviewType.LISTENING
        )
        if created:
            self.logger.info(
                f"Created {created} listening card states for student {ctx.student_id}"
            )

        eligible_ids = set(eligible)
        states = [
            state
            for state in await load_deck_states(
                ctx.db, ctx.student_id, exercise.deck_id, ReviewType.LISTENING
            )
            if state.card_id in eligible_ids
        ]
        queue = build_queue(states, ctx.now, config.new_cards, config.max_due)
        head = queue[0] if queue else None

        return ListeningExerciseProgress(
            stage=ListeningStage.PLAYING_AUDIO,
            payload=ReviewQueuePayload(
                queue=queue,
                current_card_data=await load_card_data(
                    ctx.db, head.card_id if head else None, head
                ),
                learning_steps=list(config.learning_steps),
                initial_card_ids=[entry.card_id for entry in queue],
            ),
        )
