"""
Celery Queue Configuration

Runs the job worker outside the API process. The durable queue itself is the
jobs table; Celery only carries the periodic "run a tick" and "sweep stale
jobs" triggers, so a lost Celery message never loses a job.

Queues:
- jobs: process_job_queue (claim + execute a batch)
- maintenance: sweep_stale_jobs

Usage:
    from app.services.queue import celery_app
    from app.services.tasks import process_job_queue

    process_job_queue.delay()

    # Run worker: celery -A app.services.queue worker -Q jobs,maintenance -l info
"""

from celery import Celery

from app.config import settings

celery_app = Celery(
    "tutor_engine",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["app.services.tasks"],
)

celery_app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    # Timezone
    timezone="UTC",
    enable_utc=True,
    # Task routing
    task_routes={
        "app.services.tasks.process_job_queue": {"queue": "jobs"},
        "app.services.tasks.sweep_stale_jobs": {"queue": "maintenance"},
    },
    # Result expiration (24 hours)
    result_expires=86400,
    # A tick may run optimizer fits; stay well under the stale-job window
    task_soft_time_limit=600,
    task_time_limit=840,
    # Concurrency
    worker_prefetch_multiplier=1,
    # Task acknowledgment
    task_acks_late=True,
    task_reject_on_worker_lost=True,
)
