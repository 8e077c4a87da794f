"""
Celery Task Definitions

- process_job_queue: one worker tick (stale sweep, claim a batch, execute it)
- sweep_stale_jobs: stale sweep only

Both run the async JobWorker under asyncio.run with task_session_maker
(NullPool), since each Celery task gets a fresh event loop.

Retry Strategy:
    Uses tenacity for retry logic with exponential backoff on transient
    database errors (connection drops, failovers). Job-level failures are
    recorded on the job by the worker and are never retried here.

Usage:
    from app.services.tasks import process_job_queue

    process_job_queue.delay()
    result = process_job_queue.AsyncResult(task_id)
"""

# =============================================================================
# Standard library imports
# =============================================================================
import asyncio
import logging
from typing import Any, Optional

# =============================================================================
# Third-party imports
# =============================================================================
from sqlalchemy.exc import InterfaceError, OperationalError
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

# =============================================================================
# Internal imports
# =============================================================================
from app.db.base import task_session_maker
from app.services.jobs import JobWorker
from app.services.queue import celery_app

logger = logging.getLogger(__name__)

# =============================================================================
# Retry configuration using tenacity
# =============================================================================

# For database hiccups: 3 attempts, 2-10 s exponential backoff
db_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=2, min=2, max=10),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    retry=retry_if_exception_type((OperationalError, InterfaceError)),
    reraise=True,
)


# =============================================================================
# Job queue tasks
# =============================================================================


async def _run_tick_impl(worker_id: Optional[str] = None) -> dict[str, Any]:
    summary = await JobWorker(task_session_maker, worker_id=worker_id).run_tick()
    return summary.model_dump()


async def _sweep_impl() -> dict[str, int]:
    return await JobWorker(task_session_maker).sweep_stale_jobs()


@db_retry
def _run_tick_with_retry(worker_id: Optional[str] = None) -> dict[str, Any]:
    return asyncio.run(_run_tick_impl(worker_id))


@db_retry
def _sweep_with_retry() -> dict[str, int]:
    return asyncio.run(_sweep_impl())


@celery_app.task(name="app.services.tasks.process_job_queue")
def process_job_queue(worker_id: Optional[str] = None) -> dict[str, Any]:
    """
    Celery task to run one job worker tick.

    Retry behavior: 3 attempts with exponential backoff on database errors.

    Returns:
        Tick summary (requeued, expired, claimed, completed, failed)
    """
    summary = _run_tick_with_retry(worker_id)
    if summary["claimed"]:
        logger.info(f"Job queue tick: {summary}")
    return summary


@celery_app.task(name="app.services.tasks.sweep_stale_jobs")
def sweep_stale_jobs() -> dict[str, int]:
    """Celery task to recover stale RUNNING jobs."""
    counts = _sweep_with_retry()
    if counts["requeued"] or counts["expired"]:
        logger.warning(f"Stale job sweep: {counts}")
    return counts
