"""
Card State Service

Maintenance of the card state cache: bulk initialization, rebuilding the
cache from the review ledger, and fitting per-student FSRS weights.

The cache (student_card_states) is derived data. rebuild_from_ledger overwrites
it by folding the ledger with the same transition function the live
review path uses, so a rebuild reproduces incremental updates exactly as long
as the weights have not changed.

Usage:
    from app.services.learning import CardStateService

    service = CardStateService(db_session)

    await service.initialize_card_states(student_id, deck_id)
    summary = await service.rebuild_from_ledger(student_id)
    result = await service.optimize_parameters(student_id)
"""

import asyncio
import logging
import uuid
from collections import defaultdict
from typing import Any, Iterable

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import Student, VocabularyCard
from app.db.models_learning import ReviewEvent, StudentCardState, StudentFsrsParams
from app.db.types import utc_now
from app.enums.learning import ReviewType
from app.services.learning.fsrs import (
    CardSnapshot,
    ReplayReview,
    fold_reviews,
)
from app.services.learning.optimizer import OptimizationResult, ParameterOptimizer
from app.services.learning.scheduling_service import (
    SchedulingService,
    apply_snapshot,
    replay_review_from_event,
)

logger = logging.getLogger(__name__)

# (card_id, review_type value)
CardKey = tuple[uuid.UUID, str]


class CardStateService:
    """
    Service for maintaining the card state cache.

    Provides:
    - Bulk NEW card state creation for a deck or a list of cards
    - Cache rebuild from the review ledger
    - FSRS weight fitting from the review ledger
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.scheduling = SchedulingService(db)

    # ===========================================
    # Initialization
    # ===========================================

    async def initialize_cards(
        self,
        student_id: uuid.UUID,
        card_ids: Iterable[uuid.UUID],
        review_type: ReviewType = ReviewType.VOCABULARY,
    ) -> int:
        """
        Create NEW card states for the given cards where none exist.

        Returns:
            Number of card states created
        """
        card_ids = list(dict.fromkeys(card_ids))
        if not card_ids:
            return 0

        review_type = ReviewType(review_type)
        result = await self.db.execute(
            select(StudentCardState.card_id).where(
                StudentCardState.student_id == student_id,
                StudentCardState.review_type == review_type.value,
                StudentCardState.card_id.in_(card_ids),
            )
        )
        existing = set(result.scalars().all())

        now = utc_now()
        created = 0
        for card_id in card_ids:
            if card_id in existing:
                continue
            self.db.add(
                StudentCardState(
                    student_id=student_id,
                    card_id=card_id,
                    review_type=review_type.value,
                    due=now,
                    created_at=now,
                )
            )
            created += 1

        await self.db.flush()
        return created

    async def initialize_card_states(
        self,
        student_id: uuid.UUID,
        deck_id: uuid.UUID,
        review_type: ReviewType = ReviewType.VOCABULARY,
    ) -> dict[str, int]:
        """
        Create NEW card states for every card of a deck.

        Existing states are left untouched.

        Returns:
            Dict with created and existing counts
        """
        result = await self.db.execute(
            select(VocabularyCard.id)
            .where(VocabularyCard.deck_id == deck_id)
            .order_by(VocabularyCard.created_at, VocabularyCard.id)
        )
        card_ids = list(result.scalars().all())

        created = await self.initialize_cards(student_id, card_ids, review_type)

        logger.info(
            f"Initialized {created} {ReviewType(review_type).value} card states "
            f"for student {student_id} from deck {deck_id}"
        )
        return {"created": created, "existing": len(card_ids) - created}

    # ===========================================
    # Rebuild
    # ===========================================

    async def _load_histories(
        self,
        student_id: uuid.UUID,
        review_type: ReviewType | None = None,
    ) -> dict[CardKey, list[ReplayReview]]:
        query = select(ReviewEvent).where(ReviewEvent.student_id == student_id)
        if review_type is not None:
            query = query.where(ReviewEvent.review_type == ReviewType(review_type).value)
        query = query.order_by(ReviewEvent.reviewed_at, ReviewEvent.id)

        result = await self.db.execute(query)
        histories: dict[CardKey, list[ReplayReview]] = defaultdict(list)
        for event in result.scalars().all():
            histories[(event.card_id, event.review_type)].append(
                replay_review_from_event(event)
            )
        return histories

    async def rebuild_from_ledger(self, student_id: uuid.UUID) -> dict[str, int]:
        """
        Recompute every card state of a student from the ledger.

        The student's card state rows are locked (FOR UPDATE) before the
        ledger is read, so a concurrent record_review either commits first and
        is folded in, or waits and applies its review on top of the rebuilt
        row. Rows are rewritten in place.

        Card states that have no reviews come back as fresh NEW states with
        their original creation time; cards with reviews but no cached state
        are recreated as well.

        Returns:
            Dict with cards_rebuilt, events_replayed and reset_unreviewed counts
        """
        result = await self.db.execute(
            select(StudentCardState)
            .where(StudentCardState.student_id == student_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        rows: dict[CardKey, StudentCardState] = {
            (row.card_id, row.review_type): row for row in result.scalars().all()
        }

        histories = await self._load_histories(student_id)

        schedulers = {}
        events_replayed = 0
        reset_unreviewed = 0
        keys = sorted(set(rows) | set(histories), key=lambda k: (str(k[0]), k[1]))

        for card_id, review_type in keys:
            history = histories.get((card_id, review_type), [])
            row = rows.get((card_id, review_type))
            if row is None:
                row = StudentCardState(
                    student_id=student_id,
                    card_id=card_id,
                    review_type=review_type,
                    created_at=history[0].reviewed_at,
                )
                self.db.add(row)

            if review_type not in schedulers:
                schedulers[review_type] = await self.scheduling.get_scheduler(
                    student_id, ReviewType(review_type)
                )

            snapshot = fold_reviews(
                schedulers[review_type], history, CardSnapshot(due=row.created_at)
            )
            apply_snapshot(row, snapshot)

            events_replayed += len(history)
            if not history:
                reset_unreviewed += 1

        await self.db.flush()

        logger.info(
            f"Rebuilt {len(keys)} card states for student {student_id} "
            f"from {events_replayed} review events"
        )
        return {
            "cards_rebuilt": len(keys),
            "events_replayed": events_replayed,
            "reset_unreviewed": reset_unreviewed,
        }

    # ===========================================
    # Parameter optimization
    # ===========================================

    async def optimize_parameters(
        self,
        student_id: uuid.UUID,
        review_type: ReviewType = ReviewType.VOCABULARY,
        optimizer: ParameterOptimizer | None = None,
    ) -> dict[str, Any]:
        """
        Fit the student's FSRS weights to their review history.

        Persists a new active weight version when enough history exists.
        Card states are not touched; run rebuild_from_ledger afterwards to
        reschedule existing cards under the new weights.

        Returns:
            Dict describing the run (optimized, version, losses, weights)
        """
        review_type = ReviewType(review_type)
        histories = await self._load_histories(student_id, review_type)
        current = await self.scheduling.get_active_params(student_id, review_type)

        initial = await self.scheduling.get_active_weights(student_id, review_type)

        optimizer = optimizer or ParameterOptimizer()
        loop = asyncio.get_running_loop()
        result: OptimizationResult = await loop.run_in_executor(
            None, optimizer.fit, list(histories.values()), initial
        )

        summary: dict[str, Any] = {
            "optimized": result.optimized,
            "review_type": review_type.value,
            "training_data_size": result.training_data_size,
            "loss_before": result.loss_before,
            "loss_after": result.loss_after,
            "version": current.version if current else None,
            "weights": list(result.weights),
        }
        if not result.optimized:
            return summary

        # Serialize version allocation per student until this transaction ends
        await self.db.execute(
            select(Student.id).where(Student.id == student_id).with_for_update()
        )
        next_version = await self._next_version(student_id, review_type)
        await self.db.execute(
            update(StudentFsrsParams)
            .where(
                StudentFsrsParams.student_id == student_id,
                StudentFsrsParams.review_type == review_type.value,
                StudentFsrsParams.is_active.is_(True),
            )
            .values(is_active=False)
        )
        self.db.add(
            StudentFsrsParams(
                student_id=student_id,
                review_type=review_type.value,
                weights=list(result.weights),
                version=next_version,
                optimization_score=result.loss_after,
                training_data_size=result.training_data_size,
                last_optimized=utc_now(),
                is_active=True,
            )
        )
        await self.db.flush()

        logger.info(
            f"Stored FSRS weights v{next_version} for student {student_id} "
            f"({review_type.value}, {result.training_data_size} reviews)"
        )
        summary["version"] = next_version
        return summary

    async def _next_version(self, student_id: uuid.UUID, review_type: ReviewType) -> int:
        result = await self.db.execute(
            select(StudentFsrsParams.version)
            .where(
                StudentFsrsParams.student_id == student_id,
                StudentFsrsParams.review_type == review_type.value,
            )
            .order_by(StudentFsrsParams.version.desc())
            .limit(1)
        )
        latest = result.scalar_one_or_none()
        return (latest or 0) + 1
