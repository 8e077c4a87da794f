"""
Background Job Services

- JobService: enqueue and owner-scoped status reads (request side)
- JobWorker: skip-locked claiming, execution and the stale sweep (worker side)
- routines: one routine and payload schema per JobType
"""

from app.services.jobs.job_service import JobService
from app.services.jobs.routines import ROUTINES, JobRoutine, get_routine
from app.services.jobs.worker import JobWorker

__all__ = [
    "JobService",
    "JobWorker",
    "JobRoutine",
    "ROUTINES",
    "get_routine",
]
