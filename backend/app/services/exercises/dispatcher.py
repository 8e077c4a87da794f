"""
Exercise Dispatcher

Routes a unit item's exercise type to the handler that runs it. The handler
table is explicit and checked when this module is imported: every key must be
an ExerciseType and every handler must declare the type it is registered
under. Types without a handler (currently GRAMMAR_EXERCISE) are rejected with
UnsupportedExerciseTypeError rather than skipped.

Usage:
    from app.services.exercises import get_dispatcher

    handler = get_dispatcher().get_handler(item.exercise_type)
    await handler.initialize(ctx)
"""

import logging
from typing import Mapping, Optional

from app.enums.learning import ExerciseType
from app.middleware.error_handling import UnsupportedExerciseTypeError
from app.services.exercises.base import ExerciseHandler
from app.services.exercises.handlers.fill_in_blank import FillInBlankHandler
from app.services.exercises.handlers.listening import ListeningExerciseHandler
from app.services.exercises.handlers.vocabulary_deck import VocabularyDeckHandler

logger = logging.getLogger(__name__)

HANDLER_CLASSES: Mapping[ExerciseType, type[ExerciseHandler]] = {
    ExerciseType.VOCABULARY_DECK: VocabularyDeckHandler,
    ExerciseType.LISTENING_EXERCISE: ListeningExerciseHandler,
    ExerciseType.FILL_IN_BLANK_EXERCISE: FillInBlankHandler,
}


def check_handler_table(table: Mapping[ExerciseType, type[ExerciseHandler]]) -> None:
    """
    Verify a handler table.

    Raises:
        TypeError: A key is not an ExerciseType or a handler declares a
            different type than the one it is registered under
    """
    for exercise_type, handler_cls in table.items():
        if not isinstance(exercise_type, ExerciseType):
            raise TypeError(f"Handler table key {exercise_type!r} is not an ExerciseType")
        if handler_cls.EXERCISE_TYPE != exercise_type:
            raise TypeError(
                f"{handler_cls.__name__} handles {handler_cls.EXERCISE_TYPE.value}, "
                f"but is registered for {exercise_type.value}"
            )


check_handler_table(HANDLER_CLASSES)


class ExerciseDispatcher:
    """Holds one handler instance per supported exercise type."""

    def __init__(self) -> None:
        self._handlers: dict[ExerciseType, ExerciseHandler] = {}

    def register(self, handler: ExerciseHandler) -> None:
        """
        Register a handler under the type it declares.

        Raises:
            ValueError: If a handler for that type is already registered
        """
        exercise_type = handler.EXERCISE_TYPE
        if exercise_type in self._handlers:
            raise ValueError(f"A handler for {exercise_type.value} is already registered")
        self._handlers[exercise_type] = handler
        logger.debug(f"Registered handler {handler.__class__.__name__} for {exercise_type.value}")

    def get_handler(self, exercise_type: ExerciseType | str) -> ExerciseHandler:
        """
        Get the handler for an exercise type.

        Raises:
            UnsupportedExerciseTypeError: No handler is registered for the type
        """
        try:
            exercise_type = ExerciseType(exercise_type)
        except ValueError:
            raise UnsupportedExerciseTypeError(
                f"Unknown exercise type {exercise_type!r}",
                details={"exercise_type": str(exercise_type)},
            )

        handler = self._handlers.get(exercise_type)
        if handler is None:
            raise UnsupportedExerciseTypeError(
                f"Exercise type {exercise_type.value} is not supported",
                details={"exercise_type": exercise_type.value},
            )
        return handler

    @property
    def supported_types(self) -> list[ExerciseType]:
        return list(self._handlers)


# Singleton dispatcher instance
_dispatcher: Optional[ExerciseDispatcher] = None


def get_dispatcher() -> ExerciseDispatcher:
    """Get the default dispatcher (singleton, lazily initialized)."""
    global _dispatcher

    if _dispatcher is None:
        _dispatcher = _create_dispatcher()

    return _dispatcher


def _create_dispatcher() -> ExerciseDispatcher:
    dispatcher = ExerciseDispatcher()
    for handler_cls in HANDLER_CLASSES.values():
        dispatcher.register(handler_cls())
    return dispatcher


def reset_dispatcher() -> None:
    """Reset the singleton dispatcher (useful for testing)."""
    global _dispatcher
    _dispatcher = None
