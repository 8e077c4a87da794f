"""API Routers package."""

from app.routers import health as health_router
from app.routers import jobs as jobs_router
from app.routers import sessions as sessions_router
from app.routers import students as students_router

__all__ = ["health_router", "jobs_router", "sessions_router", "students_router"]
