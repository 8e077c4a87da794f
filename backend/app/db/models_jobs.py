"""
SQLAlchemy Database Model for Background Jobs

Tables:
- jobs: Durable work queue consumed by the job worker

ARCHITECTURE NOTE:
    Workers claim rows with SELECT ... FOR UPDATE SKIP LOCKED followed by a
    status compare-and-set that stamps claim_token, so concurrent workers pick
    disjoint batches. See app/services/jobs/worker.py.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.db.types import JSONDocument, UTCDateTime, utc_now
from app.enums.jobs import JobStatus


class Job(Base):
    """
    A unit of background maintenance work.

    Attributes:
        owner_id: Teacher who enqueued the job; status reads are scoped to it.
        type: JobType value.
        status: PENDING, RUNNING, COMPLETED or FAILED.
        payload: Job input, validated against the type's schema at execution.
        result: Routine output on success.
        error: Failure message on FAILED.
        attempts: Number of times the job has been claimed.
        claim_token: Random token of the claim currently holding the job.
        claimed_by: Identifier of the worker holding the job.
        claimed_at: When the current claim was taken; drives the stale sweep.
        finished_at: When the job reached COMPLETED or FAILED.
    """

    __tablename__ = "jobs"
    __table_args__ = (Index("ix_jobs_status_created", "status", "created_at"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("teachers.id", ondelete="CASCADE"), index=True
    )
    type: Mapped[str] = mapped_column(String(50))
    status: Mapped[str] = mapped_column(String(20), default=JobStatus.PENDING.value)
    payload: Mapped[Optional[dict]] = mapped_column(JSONDocument)
    result: Mapped[Optional[dict]] = mapped_column(JSONDocument)
    error: Mapped[Optional[str]] = mapped_column(Text)

    attempts: Mapped[int] = mapped_column(Integer, default=0)
    claim_token: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, index=True)
    claimed_by: Mapped[Optional[str]] = mapped_column(String(200))
    claimed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    finished_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utc_now, onupdate=utc_now
    )
