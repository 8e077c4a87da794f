"""
Job Service

Request-side access to the job queue: enqueueing and owner-scoped status
reads. Execution is the worker's business (see worker.py).

Usage:
    from app.services.jobs import JobService

    service = JobService(db)
    job_id = await service.enqueue_job(teacher_id, JobType.REBUILD_CACHE, {"student_id": ...})
    job = await service.get_job_status(job_id, teacher_id)
"""

import logging
import uuid
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models_jobs import Job
from app.db.types import utc_now
from app.enums.jobs import JobStatus, JobType
from app.middleware.error_handling import NotFoundError
from app.services.jobs.routines import get_routine

logger = logging.getLogger(__name__)


class JobService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def enqueue_job(
        self,
        owner_id: uuid.UUID,
        job_type: JobType,
        payload: Optional[dict[str, Any]] = None,
    ) -> uuid.UUID:
        """
        Insert a PENDING job.

        The payload is stored as given and validated when the job runs. A
        payload that already parses is authorized here: the owner must own
        its student and be allowed to use (or for imports, change) its deck.

        Returns:
            The new job's id

        Raises:
            AuthorizationError: The owner may not act on the student or deck
            NotFoundError: The payload names a deck that does not exist
        """
        job_type = JobType(job_type)
        routine = get_routine(job_type)
        try:
            parsed = routine.payload_model.model_validate(payload or {})
        except PydanticValidationError:
            # Left for the worker to record as a FAILED job
            parsed = None
        if parsed is not None:
            await routine.authorize(self.db, owner_id, parsed)

        now = utc_now()
        job = Job(
            owner_id=owner_id,
            type=job_type.value,
            status=JobStatus.PENDING.value,
            payload=payload or {},
            attempts=0,
            created_at=now,
            updated_at=now,
        )
        self.db.add(job)
        await self.db.flush()

        logger.info(f"Enqueued {job_type.value} job {job.id} for owner {owner_id}")
        return job.id

    async def get_job_status(self, job_id: uuid.UUID, owner_id: uuid.UUID) -> Job:
        """
        Get a job owned by owner_id.

        Raises:
            NotFoundError: No such job for this owner
        """
        result = await self.db.execute(
            select(Job).where(Job.id == job_id, Job.owner_id == owner_id)
        )
        job = result.scalar_one_or_none()
        if job is None:
            raise NotFoundError(f"Job {job_id} not found")
        return job

    async def list_jobs(
        self,
        owner_id: uuid.UUID,
        status: Optional[JobStatus] = None,
        limit: int = 50,
    ) -> tuple[list[Job], int]:
        """
        List an owner's jobs, newest first.

        Returns:
            Tuple of (jobs, total matching count)
        """
        conditions = [Job.owner_id == owner_id]
        if status is not None:
            conditions.append(Job.status == JobStatus(status).value)

        total = await self.db.scalar(select(func.count()).select_from(Job).where(*conditions))
        result = await self.db.execute(
            select(Job)
            .where(*conditions)
            .order_by(Job.created_at.desc(), Job.id)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0
