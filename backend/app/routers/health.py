"""
Health Check Endpoints

Provides health check endpoints for monitoring and orchestration.

Endpoints:
- GET /api/health - Basic health check
- GET /api/health/detailed - Detailed health with dependency checks
"""

from fastapi import APIRouter, Depends
from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db.base import get_db
from app.db.models_jobs import Job
from app.enums.jobs import JobStatus
from app.services.queue import celery_app
from app.services.scheduler import get_scheduled_jobs

router = APIRouter(prefix="/api/health", tags=["health"])


@router.get("")
async def health_check():
    """
    Basic health check.

    Returns a simple status response indicating the API is running.
    """
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
    }


@router.get("/detailed")
async def detailed_health_check(db: AsyncSession = Depends(get_db)):
    """
    Detailed health check with dependency status.

    Checks:
    - PostgreSQL database (and job queue depth by status)
    - Celery workers
    - In-process scheduler
    """
    health = {"status": "healthy", "service": settings.APP_NAME, "dependencies": {}}

    # Check PostgreSQL
    try:
        await db.execute(text("SELECT 1"))
        result = await db.execute(select(Job.status, func.count()).group_by(Job.status))
        counts = {status: count for status, count in result.all()}
        health["dependencies"]["postgres"] = {"status": "healthy"}
        health["job_queue"] = {s.value: counts.get(s.value, 0) for s in JobStatus}
    except Exception as e:
        health["dependencies"]["postgres"] = {"status": "unhealthy", "error": str(e)}
        health["status"] = "degraded"

    # Check Celery workers
    try:
        inspect = celery_app.control.inspect(timeout=2.0)
        ping_response = inspect.ping()

        if ping_response:
            worker_names = list(ping_response.keys())
            health["dependencies"]["celery_workers"] = {
                "status": "healthy",
                "worker_count": len(worker_names),
                "workers": worker_names,
            }
        else:
            health["dependencies"]["celery_workers"] = {
                "status": "unhealthy",
                "error": "No workers responding",
                "worker_count": 0,
            }
            health["status"] = "degraded"
    except Exception as e:
        health["dependencies"]["celery_workers"] = {
            "status": "unhealthy",
            "error": str(e),
            "worker_count": 0,
        }
        health["status"] = "degraded"

    health["scheduler"] = {
        "enabled": settings.SCHEDULER_ENABLED,
        "jobs": get_scheduled_jobs(),
    }

    return health
