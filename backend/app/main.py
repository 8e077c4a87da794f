"""
Tutor Engine API

FastAPI application: teaching sessions, background jobs and health checks.

Run:
    uvicorn app.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.db.base import init_db
from app.middleware import setup_error_handling
from app.routers import health_router, jobs_router, sessions_router, students_router
from app.services.scheduler import start_scheduler, stop_scheduler

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.DB_CREATE_TABLES:
        await init_db()
    if settings.SCHEDULER_ENABLED:
        start_scheduler()
    logger.info(f"{settings.APP_NAME} started")
    yield
    if settings.SCHEDULER_ENABLED:
        stop_scheduler()


def create_app() -> FastAPI:
    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    setup_error_handling(app, debug=settings.DEBUG)

    app.include_router(health_router.router)
    app.include_router(sessions_router.router)
    app.include_router(jobs_router.router)
    app.include_router(students_router.router)

    @app.get("/")
    async def root():
        return {"message": settings.APP_NAME}

    return app


app = create_app()
