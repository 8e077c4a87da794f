"""
Centralized enum definitions for the application.

All enums are organized by domain:
- learning.py: Card states, ratings, exercise types, session and progress stages
- jobs.py: Background job types and statuses

Usage:
    from app.enums import CardState, Rating, ExerciseType

    # Or import from specific module
    from app.enums.jobs import JobType
"""

from app.enums.jobs import JobStatus, JobType
from app.enums.learning import (
    CardState,
    ExerciseType,
    FillInBlankResult,
    FillInBlankStage,
    ListeningStage,
    Rating,
    ReviewType,
    SessionStatus,
    StudentStatus,
    VocabularyStage,
)

__all__ = [
    # Learning
    "CardState",
    "Rating",
    "ReviewType",
    "ExerciseType",
    "SessionStatus",
    "StudentStatus",
    "VocabularyStage",
    "ListeningStage",
    "FillInBlankStage",
    "FillInBlankResult",
    # Jobs
    "JobType",
    "JobStatus",
]
