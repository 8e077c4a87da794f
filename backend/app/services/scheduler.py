"""
Scheduled Job Configuration

Configures periodic job queue triggers using APScheduler:
- Job queue tick every JOB_POLL_INTERVAL_SECONDS
- Stale job sweep every JOB_SWEEP_INTERVAL_SECONDS

Execution Context:
    The scheduler runs IN-PROCESS with FastAPI. It is started/stopped via
    FastAPI's lifespan context manager in app/main.py when SCHEDULER_ENABLED
    is set.

    The scheduler does NOT execute jobs directly. It queues Celery tasks
    (process_job_queue.delay()); a Celery worker claims and runs the jobs.

Limitations:
    - Every backend replica with SCHEDULER_ENABLED triggers ticks. That is
      safe (claims are skip-locked) but redundant; enable it on one replica.

Usage:
    start_scheduler()  # On app startup
    stop_scheduler()   # On app shutdown
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.config import settings

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler()


async def trigger_job_queue_tick() -> None:
    """Queue one job worker tick."""
    # Deferred import: avoids loading Celery and the worker at scheduler import.
    from app.services.tasks import process_job_queue

    process_job_queue.delay()
    logger.debug("Triggered job queue tick")


async def trigger_stale_sweep() -> None:
    """Queue a stale job sweep."""
    from app.services.tasks import sweep_stale_jobs

    sweep_stale_jobs.delay()
    logger.debug("Triggered stale job sweep")


def setup_scheduled_jobs() -> None:
    """Configure the job queue triggers."""
    scheduler.add_job(
        trigger_job_queue_tick,
        IntervalTrigger(seconds=settings.JOB_POLL_INTERVAL_SECONDS),
        id="job_queue_tick",
        name="Job Queue Tick",
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )

    scheduler.add_job(
        trigger_stale_sweep,
        IntervalTrigger(seconds=settings.JOB_SWEEP_INTERVAL_SECONDS),
        id="stale_job_sweep",
        name="Stale Job Sweep",
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )

    logger.info("Scheduled jobs configured:")
    logger.info(f"  - Job queue tick: every {settings.JOB_POLL_INTERVAL_SECONDS}s")
    logger.info(f"  - Stale job sweep: every {settings.JOB_SWEEP_INTERVAL_SECONDS}s")


def start_scheduler() -> None:
    """Start the scheduler and configure jobs."""
    if scheduler.running:
        logger.warning("Scheduler already running")
        return

    setup_scheduled_jobs()
    scheduler.start()
    logger.info("Scheduler started")


def stop_scheduler() -> None:
    """Stop the scheduler gracefully."""
    if not scheduler.running:
        logger.warning("Scheduler not running")
        return

    scheduler.shutdown(wait=True)
    logger.info("Scheduler stopped")


def get_scheduled_jobs() -> list[dict]:
    """Get list of scheduled jobs with their next run times."""
    jobs = []
    for job in scheduler.get_jobs():
        jobs.append(
            {
                "id": job.id,
                "name": job.name,
                "next_run": (
                    job.next_run_time.isoformat() if job.next_run_time else None
                ),
                "trigger": str(job.trigger),
            }
        )
    return jobs

