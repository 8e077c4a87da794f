"""
Job Worker

Claims PENDING jobs and runs their routines. Any number of workers may run
at once (Celery worker processes, the /api/jobs/process endpoint); they never
run the same job twice concurrently:

1. claim_batch: in one transaction, select up to batch_size PENDING jobs
   oldest first with FOR UPDATE SKIP LOCKED, then compare-and-set them to
   RUNNING stamped with a fresh claim token. Only rows carrying this token
   belong to this worker.
2. execute: validate the payload (FAILED on mismatch), skip jobs whose
   student is inactive (COMPLETED with a skipped result), fail jobs whose
   owner no longer owns the student or may not use the deck, else run the
   routine and mark COMPLETED in the same transaction. A routine failure
   rolls back its changes and FAILED is written in a fresh transaction.
   Finalization only applies while the job is still RUNNING under this
   worker's claim token; a job taken away by the stale sweep is left alone.
3. sweep_stale_jobs: RUNNING jobs claimed more than JOB_STALE_AFTER_SECONDS
   ago go back to PENDING, or to FAILED once JOB_MAX_ATTEMPTS claims have
   been used.

Usage:
    from app.db.base import task_session_maker
    from app.services.jobs import JobWorker

    summary = await JobWorker(task_session_maker).run_tick()
"""

import logging
import os
import socket
import uuid
from datetime import timedelta
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.db.models import Student
from app.db.models_jobs import Job
from app.db.types import utc_now
from app.enums.jobs import JobStatus
from app.middleware.error_handling import AuthorizationError, InvalidPayloadError
from app.models.jobs import WorkerTickResponse
from app.services.jobs.routines import get_routine

logger = logging.getLogger(__name__)


class ClaimLostError(Exception):
    """The job is no longer RUNNING under this worker's claim."""


def default_worker_id() -> str:
    return f"{socket.gethostname()}:{os.getpid()}"


class JobWorker:
    """
    Executes queued jobs.

    Each call opens its own sessions from session_maker; a worker holds no
    connection between calls.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        worker_id: Optional[str] = None,
        batch_size: Optional[int] = None,
        stale_after_seconds: Optional[int] = None,
        max_attempts: Optional[int] = None,
    ):
        self.session_maker = session_maker
        self.worker_id = worker_id or default_worker_id()
        self.batch_size = batch_size or settings.JOB_BATCH_SIZE
        self.stale_after = timedelta(
            seconds=stale_after_seconds or settings.JOB_STALE_AFTER_SECONDS
        )
        self.max_attempts = max_attempts or settings.JOB_MAX_ATTEMPTS

    # =========================================================================
    # Claim
    # =========================================================================

    async def claim_batch(self) -> list[Job]:
        """
        Atomically claim up to batch_size PENDING jobs.

        Returns:
            The claimed jobs (detached), oldest first
        """
        token = uuid.uuid4()
        now = utc_now()

        async with self.session_maker() as db:
            async with db.begin():
                result = await db.execute(
                    select(Job.id)
                    .where(Job.status == JobStatus.PENDING.value)
                    .order_by(Job.created_at, Job.id)
                    .limit(self.batch_size)
                    .with_for_update(skip_locked=True)
                )
                ids = list(result.scalars().all())
                if not ids:
                    return []

                await db.execute(
                    update(Job)
                    .where(Job.id.in_(ids), Job.status == JobStatus.PENDING.value)
                    .values(
                        status=JobStatus.RUNNING.value,
                        claim_token=token,
                        claimed_by=self.worker_id,
                        claimed_at=now,
                        attempts=Job.attempts + 1,
                        updated_at=now,
                    )
                    .execution_options(synchronize_session=False)
                )

                result = await db.execute(
                    select(Job)
                    .where(Job.claim_token == token)
                    .order_by(Job.created_at, Job.id)
                    .execution_options(populate_existing=True)
                )
                jobs = list(result.scalars().all())

        logger.info(f"Worker {self.worker_id} claimed {len(jobs)} jobs")
        return jobs

    # =========================================================================
    # Execute
    # =========================================================================

    async def execute(self, job: Job) -> JobStatus:
        """
        Run one claimed job to a final status.

        Returns:
            COMPLETED or FAILED; RUNNING if the claim was lost meanwhile
        """
        try:
            routine = get_routine(job.type)
            payload = routine.payload_model.model_validate(job.payload or {})
        except (ValueError, PydanticValidationError) as e:
            error = InvalidPayloadError(f"Invalid payload for {job.type} job: {e}")
            logger.warning(f"Job {job.id} rejected: {error.message}")
            return await self._fail(job, error.message)

        try:
            async with self.session_maker() as db:
                async with db.begin():
                    student_id = routine.student_id(payload)
                    skip_reason = await self._skip_reason(db, student_id)

                    if skip_reason is not None:
                        logger.warning(f"Skipping {job.type} job {job.id}: {skip_reason}")
                        result: dict[str, Any] = {"skipped": True, "reason": skip_reason}
                    else:
                        # Ownership may have changed since the job was enqueued
                        await routine.authorize(db, job.owner_id, payload)
                        result = await routine.run(db, payload)

                    if not await self._finalize(db, job, JobStatus.COMPLETED, result=result):
                        raise ClaimLostError(f"Job {job.id} is no longer held by this worker")
        except ClaimLostError as e:
            logger.warning(str(e))
            return JobStatus.RUNNING
        except AuthorizationError as e:
            logger.warning(f"Job {job.id} ({job.type}) denied for owner {job.owner_id}: {e.message}")
            return await self._fail(job, f"{type(e).__name__}: {e.message}")
        except Exception as e:
            logger.error(f"Job {job.id} ({job.type}) failed: {e}", exc_info=True)
            return await self._fail(job, f"{type(e).__name__}: {e}")

        logger.info(f"Job {job.id} ({job.type}) completed")
        return JobStatus.COMPLETED

    async def _skip_reason(
        self, db: AsyncSession, student_id: Optional[uuid.UUID]
    ) -> Optional[str]:
        if student_id is None:
            return None
        student = await db.get(Student, student_id)
        if student is None:
            return f"student {student_id} not found"
        if student.is_archived:
            return f"student {student_id} is archived"
        if not student.is_active:
            return f"student {student_id} is {student.status}"
        return None

    async def _finalize(
        self,
        db: AsyncSession,
        job: Job,
        status: JobStatus,
        result: Optional[dict[str, Any]] = None,
        error: Optional[str] = None,
    ) -> bool:
        """Compare-and-set the job to a final status under this claim."""
        now = utc_now()
        outcome = await db.execute(
            update(Job)
            .where(
                Job.id == job.id,
                Job.status == JobStatus.RUNNING.value,
                Job.claim_token == job.claim_token,
            )
            .values(
                status=status.value,
                result=result,
                error=error,
                finished_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return outcome.rowcount == 1

    async def _fail(self, job: Job, error: str) -> JobStatus:
        async with self.session_maker() as db:
            async with db.begin():
                finalized = await self._finalize(db, job, JobStatus.FAILED, error=error)
        if not finalized:
            logger.warning(f"Job {job.id} is no longer held by this worker; failure not recorded")
            return JobStatus.RUNNING
        return JobStatus.FAILED

    # =========================================================================
    # Stale sweep
    # =========================================================================

    async def sweep_stale_jobs(self) -> dict[str, int]:
        """
        Recover jobs whose worker stopped without finalizing them.

        Returns:
            Dict with requeued and expired counts
        """
        now = utc_now()
        cutoff = now - self.stale_after
        requeued = 0
        expired = 0

        async with self.session_maker() as db:
            async with db.begin():
                result = await db.execute(
                    select(Job)
                    .where(Job.status == JobStatus.RUNNING.value, Job.claimed_at < cutoff)
                    .order_by(Job.claimed_at)
                    .with_for_update(skip_locked=True)
                )
                for job in result.scalars().all():
                    logger.warning(
                        f"Job {job.id} ({job.type}) stale: claimed by {job.claimed_by} "
                        f"at {job.claimed_at.isoformat()}, attempt {job.attempts}"
                    )
                    if job.attempts < self.max_attempts:
                        job.status = JobStatus.PENDING.value
                        job.claim_token = None
                        job.claimed_by = None
                        job.claimed_at = None
                        requeued += 1
                    else:
                        job.status = JobStatus.FAILED.value
                        job.error = f"stale: no result after {job.attempts} attempts"
                        job.finished_at = now
                        expired += 1
                    job.updated_at = now

        return {"requeued": requeued, "expired": expired}

    # =========================================================================
    # Tick
    # =========================================================================

    async def run_tick(self) -> WorkerTickResponse:
        """Sweep, claim one batch and execute it."""
        summary = WorkerTickResponse(worker_id=self.worker_id)

        swept = await self.sweep_stale_jobs()
        summary.requeued = swept["requeued"]
        summary.expired = swept["expired"]

        jobs = await self.claim_batch()
        summary.claimed = len(jobs)

        for job in jobs:
            status = await self.execute(job)
            if status == JobStatus.COMPLETED:
                summary.completed += 1
            elif status == JobStatus.FAILED:
                summary.failed += 1

        if jobs:
            logger.info(
                f"Worker {self.worker_id} tick: {summary.completed} completed, "
                f"{summary.failed} failed of {summary.claimed} claimed"
            )
        return summary
