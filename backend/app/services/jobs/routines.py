"""
Job Routines

One routine per JobType. A routine receives the worker's database session
and its validated payload, does its work inside the caller's transaction and
returns a JSON-serializable result for jobs.result.

The routine table must cover every JobType; this is checked on import so a
new job type cannot be enqueued without a routine to run it.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import VocabularyCard, VocabularyDeck
from app.enums.jobs import JobType
from app.middleware.error_handling import NotFoundError
from app.models.jobs import (
    BulkImportResult,
    BulkImportRowError,
    BulkImportSummary,
    BulkImportVocabularyPayload,
    InitializeCardStatesPayload,
    OptimizeParamsPayload,
    RebuildCachePayload,
    VocabularyRow,
)
from app.services.auth import AuthService
from app.services.learning import CardStateService

logger = logging.getLogger(__name__)

RoutineFn = Callable[[AsyncSession, Any], Awaitable[dict[str, Any]]]


@dataclass(frozen=True)
class JobRoutine:
    payload_model: type[BaseModel]
    run: RoutineFn
    writes_deck: bool = False

    def student_id(self, payload: BaseModel) -> Optional[uuid.UUID]:
        """Student the job works on, if the job is student-scoped."""
        return getattr(payload, "student_id", None)

    def deck_id(self, payload: BaseModel) -> Optional[uuid.UUID]:
        """Deck the job reads or writes, if any."""
        return getattr(payload, "deck_id", None)

    async def authorize(self, db: AsyncSession, owner_id: uuid.UUID, payload: BaseModel) -> None:
        """
        Check that the job's owner may act on its student and deck.

        Student status is not checked here; the worker skips jobs of
        inactive students instead of failing them.

        Raises:
            AuthorizationError: The owner does not own the student, or may
                not use (or for imports, change) the deck
            NotFoundError: The deck does not exist
        """
        auth = AuthService(db)
        student_id = self.student_id(payload)
        if student_id is not None:
            await auth.authorize_owner(owner_id, student_id)
        deck_id = self.deck_id(payload)
        if deck_id is not None:
            await auth.authorize_deck(owner_id, deck_id, write=self.writes_deck)


async def initialize_card_states(
    db: AsyncSession, payload: InitializeCardStatesPayload
) -> dict[str, Any]:
    counts = await CardStateService(db).initialize_card_states(
        payload.student_id, payload.deck_id, payload.review_type
    )
    return {"review_type": payload.review_type.value, **counts}


async def optimize_params(db: AsyncSession, payload: OptimizeParamsPayload) -> dict[str, Any]:
    return await CardStateService(db).optimize_parameters(
        payload.student_id, payload.review_type
    )


async def rebuild_cache(db: AsyncSession, payload: RebuildCachePayload) -> dict[str, Any]:
    return await CardStateService(db).rebuild_from_ledger(payload.student_id)


def _row_errors(row_number: int, error: PydanticValidationError) -> list[BulkImportRowError]:
    return [
        BulkImportRowError(
            row_number=row_number,
            field_name=".".join(str(part) for part in detail["loc"]) or "row",
            error_message=detail["msg"],
        )
        for detail in error.errors(include_url=False)
    ]


async def bulk_import_vocabulary(
    db: AsyncSession, payload: BulkImportVocabularyPayload
) -> dict[str, Any]:
    """
    Validate and insert vocabulary rows into a deck.

    Invalid rows and rows whose English word already exists in the deck are
    reported per row; the remaining rows are imported.
    """
    deck = await db.get(VocabularyDeck, payload.deck_id)
    if deck is None:
        raise NotFoundError(f"Vocabulary deck {payload.deck_id} not found")

    result = await db.execute(
        select(func.lower(VocabularyCard.english_word)).where(
            VocabularyCard.deck_id == payload.deck_id
        )
    )
    existing = set(result.scalars().all())

    errors: list[BulkImportRowError] = []
    imported = 0
    failed = 0

    for row_number, raw in enumerate(payload.cards, start=1):
        try:
            row = VocabularyRow.model_validate(raw)
        except PydanticValidationError as e:
            errors.extend(_row_errors(row_number, e))
            failed += 1
            continue

        key = row.english_word.lower()
        if key in existing:
            errors.append(
                BulkImportRowError(
                    row_number=row_number,
                    field_name="english_word",
                    error_message=f"'{row.english_word}' already exists in this deck",
                )
            )
            failed += 1
            continue

        db.add(
            VocabularyCard(
                deck_id=payload.deck_id,
                english_word=row.english_word,
                chinese_translation=row.chinese_translation,
                pinyin=row.pinyin,
                ipa_pronunciation=row.ipa_pronunciation,
                audio_url=str(row.audio_url) if row.audio_url else None,
                example_sentences=row.example_sentences,
            )
        )
        existing.add(key)
        imported += 1

    await db.flush()

    logger.info(
        f"Imported {imported}/{len(payload.cards)} vocabulary rows into deck {payload.deck_id}"
    )
    return BulkImportResult(
        summary=BulkImportSummary(
            successful_imports=imported,
            failed_imports=failed,
            total_rows=len(payload.cards),
        ),
        errors=errors,
    ).model_dump(mode="json")


ROUTINES: Mapping[JobType, JobRoutine] = {
    JobType.INITIALIZE_CARD_STATES: JobRoutine(InitializeCardStatesPayload, initialize_card_states),
    JobType.OPTIMIZE_PARAMS: JobRoutine(OptimizeParamsPayload, optimize_params),
    JobType.REBUILD_CACHE: JobRoutine(RebuildCachePayload, rebuild_cache),
    JobType.BULK_IMPORT_VOCABULARY: JobRoutine(
        BulkImportVocabularyPayload, bulk_import_vocabulary, writes_deck=True
    ),
}

_missing = set(JobType) - set(ROUTINES)
if _missing:
    raise RuntimeError(f"No routine registered for job types: {sorted(t.value for t in _missing)}")


def get_routine(job_type: JobType | str) -> JobRoutine:
    return ROUTINES[JobType(job_type)]
