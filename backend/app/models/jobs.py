"""
Pydantic Models for Background Jobs

Payload schemas per job type (validated by the worker at execution time, not
at enqueue time), the bulk import result shape, and the job API models.

ARCHITECTURE NOTE:
    SQLAlchemy counterpart lives in app/db/models_jobs.py. The mapping from
    JobType to payload schema and routine is in app/services/jobs/routines.py.
"""

import json
import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import Field, HttpUrl, field_validator

from app.enums.jobs import JobStatus, JobType
from app.enums.learning import ReviewType
from app.models.base import StrictRequest, StrictResponse


# =============================================================================
# Job payloads
# =============================================================================


class InitializeCardStatesPayload(StrictRequest):
    """Create NEW card states for every card of a deck."""

    student_id: uuid.UUID
    deck_id: uuid.UUID
    review_type: ReviewType = ReviewType.VOCABULARY


class OptimizeParamsPayload(StrictRequest):
    """Fit the student's FSRS weights for one review type."""

    student_id: uuid.UUID
    review_type: ReviewType = ReviewType.VOCABULARY


class RebuildCachePayload(StrictRequest):
    """Recompute every card state of a student from the review ledger."""

    student_id: uuid.UUID


class BulkImportVocabularyPayload(StrictRequest):
    """
    Add rows of vocabulary to a deck.

    Rows stay untyped here so one bad row is reported in the result instead
    of failing the whole job.
    """

    deck_id: uuid.UUID
    cards: list[dict[str, Any]] = Field(..., min_length=1)


class VocabularyRow(StrictRequest):
    """One row of a vocabulary import, as it comes out of the CSV."""

    english_word: str = Field(..., min_length=1, max_length=500)
    chinese_translation: str = Field(..., min_length=1, max_length=500)
    pinyin: Optional[str] = Field(default=None, max_length=500)
    ipa_pronunciation: Optional[str] = Field(default=None, max_length=500)
    audio_url: Optional[HttpUrl] = None
    example_sentences: Optional[list[str]] = None

    @field_validator("audio_url", mode="before")
    @classmethod
    def blank_url_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("example_sentences", mode="before")
    @classmethod
    def parse_sentences(cls, value: Any) -> Any:
        """CSV exports carry the sentence list as a JSON string."""
        if isinstance(value, str):
            if not value.strip():
                return None
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                raise ValueError("must be a JSON list of strings")
        return value


# =============================================================================
# Job results
# =============================================================================


class BulkImportSummary(StrictResponse):
    successful_imports: int = Field(..., ge=0)
    failed_imports: int = Field(..., ge=0)
    total_rows: int = Field(..., ge=0)


class BulkImportRowError(StrictResponse):
    row_number: int = Field(..., ge=1)
    field_name: str
    error_message: str


class BulkImportResult(StrictResponse):
    """Stored in jobs.result for BULK_IMPORT_VOCABULARY."""

    summary: BulkImportSummary
    errors: list[BulkImportRowError] = Field(default_factory=list)


# =============================================================================
# API models
# =============================================================================


class EnqueueJobRequest(StrictRequest):
    """Enqueue a background job."""

    type: JobType
    payload: dict[str, Any] = Field(default_factory=dict)


class JobResponse(StrictResponse):
    """Status of a job as visible to its owner."""

    id: uuid.UUID
    type: JobType
    status: JobStatus
    payload: Optional[dict[str, Any]] = None
    result: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    attempts: int = 0
    created_at: datetime
    updated_at: Optional[datetime] = None
    claimed_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


class JobListResponse(StrictResponse):
    jobs: list[JobResponse]
    total: int


class EnqueueJobResponse(StrictResponse):
    job_id: uuid.UUID
    status: JobStatus = JobStatus.PENDING


class WorkerTickResponse(StrictResponse):
    """
    Outcome of one worker tick.

    Attributes:
        requeued: Stale jobs moved back to PENDING
        expired: Stale jobs failed after running out of attempts
        claimed: Jobs claimed by this tick
        completed: Claimed jobs that completed (including skipped ones)
        failed: Claimed jobs that failed
    """

    worker_id: str
    requeued: int = 0
    expired: int = 0
    claimed: int = 0
    completed: int = 0
    failed: int = 0
