"""Exercise handlers, one per supported exercise type."""

from app.services.exercises.handlers.fill_in_blank import FillInBlankHandler
from app.services.exercises.handlers.listening import ListeningExerciseHandler
from app.services.exercises.handlers.vocabulary_deck import VocabularyDeckHandler

__all__ = [
    "FillInBlankHandler",
    "ListeningExerciseHandler",
    "VocabularyDeckHandler",
]
