"""
Background Job Enums

Job types are a closed set: every member must have a routine registered in
app.services.jobs.routines.
"""

from enum import Enum


class JobType(str, Enum):
    """Maintenance work the worker knows how to run."""

    INITIALIZE_CARD_STATES = "INITIALIZE_CARD_STATES"
    OPTIMIZE_PARAMS = "OPTIMIZE_PARAMS"
    REBUILD_CACHE = "REBUILD_CACHE"
    BULK_IMPORT_VOCABULARY = "BULK_IMPORT_VOCABULARY"


class JobStatus(str, Enum):
    """
    Job lifecycle.

    PENDING → RUNNING → COMPLETED | FAILED. A RUNNING job whose worker
    vanished is moved back to PENDING (or FAILED once out of attempts) by the
    stale sweep.
    """

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
