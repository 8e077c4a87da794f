"""
Unit tests for the Celery job queue tasks.

The tasks are called directly (task.run), with JobWorker replaced by a mock,
so no broker or database connection is made.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from app.models.jobs import WorkerTickResponse
from app.services import tasks
from app.services.queue import celery_app


def mock_worker(**methods) -> MagicMock:
    worker = MagicMock()
    for name, value in methods.items():
        setattr(worker, name, value)
    return MagicMock(return_value=worker)


class TestProcessJobQueue:
    def test_returns_tick_summary(self):
        summary = WorkerTickResponse(worker_id="celery-1", claimed=2, completed=1, failed=1)
        worker_cls = mock_worker(run_tick=AsyncMock(return_value=summary))

        with patch.object(tasks, "JobWorker", worker_cls):
            result = tasks.process_job_queue.run("celery-1")

        assert result == summary.model_dump()
        worker_cls.assert_called_once_with(tasks.task_session_maker, worker_id="celery-1")

    def test_retries_transient_database_errors(self):
        summary = WorkerTickResponse(worker_id="celery-1")
        run_tick = AsyncMock(
            side_effect=[OperationalError("SELECT 1", {}, Exception("connection reset")), summary]
        )

        with patch.object(tasks, "JobWorker", mock_worker(run_tick=run_tick)), patch(
            "tenacity.nap.time.sleep"
        ):
            result = tasks.process_job_queue.run()

        assert result["worker_id"] == "celery-1"
        assert run_tick.await_count == 2

    def test_other_errors_are_not_retried(self):
        run_tick = AsyncMock(side_effect=RuntimeError("bug"))

        with patch.object(tasks, "JobWorker", mock_worker(run_tick=run_tick)):
            with pytest.raises(RuntimeError):
                tasks.process_job_queue.run()

        assert run_tick.await_count == 1


class TestSweepStaleJobs:
    def test_returns_counts(self):
        sweep = AsyncMock(return_value={"requeued": 2, "expired": 1})

        with patch.object(tasks, "JobWorker", mock_worker(sweep_stale_jobs=sweep)):
            assert tasks.sweep_stale_jobs.run() == {"requeued": 2, "expired": 1}


class TestTaskRegistration:
    def test_tasks_are_registered_and_routed(self):
        routes = celery_app.conf.task_routes

        for name, queue in (
            ("app.services.tasks.process_job_queue", "jobs"),
            ("app.services.tasks.sweep_stale_jobs", "maintenance"),
        ):
            assert name in celery_app.tasks
            assert routes[name] == {"queue": queue}

    def test_late_acknowledgement(self):
        assert celery_app.conf.task_acks_late is True
        assert celery_app.conf.worker_prefetch_multiplier == 1
