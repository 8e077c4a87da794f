"""
Background Job API Router

Endpoints for enqueueing maintenance jobs and reading their status.

Endpoints:
- POST /api/jobs - Enqueue a job
- GET /api/jobs - List the caller's jobs
- GET /api/jobs/{id} - Get a job's status and result
- POST /api/jobs/process - Run one worker tick (for cron-style deployments)
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.dependencies import (
    get_current_teacher_id,
    get_job_service,
    get_session_maker,
    verify_worker_key,
)
from app.enums.jobs import JobStatus
from app.models.jobs import (
    EnqueueJobRequest,
    EnqueueJobResponse,
    JobListResponse,
    JobResponse,
    WorkerTickResponse,
)
from app.services.jobs import JobService, JobWorker

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/jobs", tags=["jobs"])


@router.post("", response_model=EnqueueJobResponse, status_code=status.HTTP_202_ACCEPTED)
async def enqueue_job(
    request: EnqueueJobRequest,
    teacher_id: uuid.UUID = Depends(get_current_teacher_id),
    service: JobService = Depends(get_job_service),
) -> EnqueueJobResponse:
    """
    Enqueue a job.

    The caller must own the payload's student and be allowed to use its deck
    (403 otherwise). The payload is validated when the job runs; a malformed
    payload shows up as a FAILED job with the validation error.
    """
    job_id = await service.enqueue_job(teacher_id, request.type, request.payload)
    return EnqueueJobResponse(job_id=job_id)


@router.get("", response_model=JobListResponse)
async def list_jobs(
    status_filter: Optional[JobStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    teacher_id: uuid.UUID = Depends(get_current_teacher_id),
    service: JobService = Depends(get_job_service),
) -> JobListResponse:
    """List the caller's jobs, newest first."""
    jobs, total = await service.list_jobs(teacher_id, status=status_filter, limit=limit)
    return JobListResponse(
        jobs=[JobResponse.model_validate(job) for job in jobs],
        total=total,
    )


@router.post("/process", response_model=WorkerTickResponse)
async def process_jobs(
    _: str = Depends(verify_worker_key),
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_session_maker),
) -> WorkerTickResponse:
    """
    Run one worker tick in the API process.

    Claims are skip-locked, so this is safe alongside Celery workers.
    """
    return await JobWorker(session_maker).run_tick()


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(
    job_id: uuid.UUID,
    teacher_id: uuid.UUID = Depends(get_current_teacher_id),
    service: JobService = Depends(get_job_service),
) -> JobResponse:
    """Get a job's status, result and error."""
    job = await service.get_job_status(job_id, teacher_id)
    return JobResponse.model_validate(job)
