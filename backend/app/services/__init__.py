"""Services package: session orchestration, scheduling, background jobs and task queueing."""

from app.services.queue import celery_app
from app.services.auth import AuthService

__all__ = [
    "celery_app",
    "AuthService",
]
