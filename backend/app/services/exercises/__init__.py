"""
Exercise Dispatch Package

One handler per exercise type, each routing teacher actions to operators:

- VocabularyDeckHandler: REVEAL_ANSWER, SUBMIT_RATING
- ListeningExerciseHandler: PLAY_AUDIO, SUBMIT_RATING
- FillInBlankHandler: SUBMIT_STUDENT_ANSWER, REVEAL_ANSWER, MARK_CORRECT,
  MARK_INCORRECT

Usage:
    from app.services.exercises import ExerciseContext, get_dispatcher

    handler = get_dispatcher().get_handler(item.exercise_type)
"""

from app.services.exercises.base import ExerciseContext, ExerciseHandler, ProgressOperator
from app.services.exercises.dispatcher import (
    ExerciseDispatcher,
    get_dispatcher,
    reset_dispatcher,
)

__all__ = [
    "ExerciseContext",
    "ExerciseDispatcher",
    "ExerciseHandler",
    "ProgressOperator",
    "get_dispatcher",
    "reset_dispatcher",
]
