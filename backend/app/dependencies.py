"""
FastAPI Dependencies

Common dependencies for caller identity, worker authentication and services.
"""

import secrets
import uuid

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.db.base import async_session_maker, get_db
from app.services.jobs import JobService
from app.services.learning.student_progress_service import StudentProgressService
from app.services.learning.session_service import SessionService

# Worker key header scheme
worker_key_header = APIKeyHeader(name="X-Worker-Key", auto_error=False)


async def get_current_teacher_id(
    x_teacher_id: str | None = Header(None, alias="X-Teacher-Id"),
) -> uuid.UUID:
    """
    Identify the calling teacher.

    Authentication happens upstream; the gateway forwards the authenticated
    teacher's id in the X-Teacher-Id header.

    Raises:
        HTTPException: 401 if the header is missing or not a UUID
    """
    if not x_teacher_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Teacher-Id header",
        )
    try:
        return uuid.UUID(x_teacher_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid X-Teacher-Id header",
        )


async def verify_worker_key(
    worker_key: str | None = Depends(worker_key_header),
) -> str:
    """
    Verify the worker key for the job processing endpoint.

    If WORKER_API_KEY is not configured (empty string), the check is disabled
    (development mode).

    Raises:
        HTTPException: 401 if the key is missing or invalid
    """
    if not settings.WORKER_API_KEY:
        return "dev-mode"

    if not worker_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing worker key. Provide X-Worker-Key header.",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    if not secrets.compare_digest(worker_key, settings.WORKER_API_KEY):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid worker key",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    return worker_key


async def get_session_service(db: AsyncSession = Depends(get_db)) -> SessionService:
    """Get teaching session service."""
    return SessionService(db)


async def get_job_service(db: AsyncSession = Depends(get_db)) -> JobService:
    """Get job service."""
    return JobService(db)


async def get_student_progress_service(
    db: AsyncSession = Depends(get_db),
) -> StudentProgressService:
    """Get student progress service."""
    return StudentProgressService(db)


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Session factory for work that manages its own transactions (the job worker)."""
    return async_session_maker

