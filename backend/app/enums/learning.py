"""
Learning System Enums

Defines enums for the FSRS spaced repetition algorithm, exercise types,
session lifecycle and the per-exercise progress stages.
"""

from enum import Enum


class CardState(str, Enum):
    """
    Card states in the learning state machine.

    State transitions:
    - NEW → LEARNING (first learning step)
    - LEARNING → REVIEW (graduated) or LEARNING (still stepping)
    - REVIEW → REVIEW (success) or RELEARNING (lapse)
    - RELEARNING → REVIEW (recovered) or RELEARNING (still struggling)
    """

    NEW = "NEW"  # Never reviewed, initial state
    LEARNING = "LEARNING"  # Walking the learning steps
    REVIEW = "REVIEW"  # Graduated, FSRS intervals
    RELEARNING = "RELEARNING"  # Lapsed and walking the steps again


class Rating(int, Enum):
    """
    FSRS review ratings.

    Teacher assessment of the student's recall after a card is revealed.
    """

    AGAIN = 1  # Complete failure, reset learning
    HARD = 2  # Significant difficulty, shorter interval
    GOOD = 3  # Correct with reasonable effort, normal interval
    EASY = 4  # Too easy, longer interval


class ReviewType(str, Enum):
    """Skill a card is being scheduled for. Each has its own CardState."""

    VOCABULARY = "VOCABULARY"
    LISTENING = "LISTENING"


class ExerciseType(str, Enum):
    """
    Closed set of unit item types.

    Every type except GRAMMAR_EXERCISE has a registered handler in
    app.services.exercises.dispatcher.
    """

    VOCABULARY_DECK = "VOCABULARY_DECK"
    GRAMMAR_EXERCISE = "GRAMMAR_EXERCISE"
    LISTENING_EXERCISE = "LISTENING_EXERCISE"
    FILL_IN_BLANK_EXERCISE = "FILL_IN_BLANK_EXERCISE"


class SessionStatus(str, Enum):
    """Teaching session lifecycle. COMPLETED is terminal."""

    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class StudentStatus(str, Enum):
    """Enrollment status of a student."""

    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"


class VocabularyStage(str, Enum):
    """Vocabulary deck progress: PRESENTING_CARD → AWAITING_RATING → ..."""

    PRESENTING_CARD = "PRESENTING_CARD"
    AWAITING_RATING = "AWAITING_RATING"


class ListeningStage(str, Enum):
    """Listening exercise progress: PLAYING_AUDIO → AWAITING_RATING → ..."""

    PLAYING_AUDIO = "PLAYING_AUDIO"
    AWAITING_RATING = "AWAITING_RATING"


class FillInBlankStage(str, Enum):
    """
    Fill-in-the-blank progress.

    SHOWING_QUESTION → SHOWING_ANSWER → AWAITING_TEACHER_JUDGMENT → SHOWING_QUESTION
    """

    SHOWING_QUESTION = "SHOWING_QUESTION"
    SHOWING_ANSWER = "SHOWING_ANSWER"
    AWAITING_TEACHER_JUDGMENT = "AWAITING_TEACHER_JUDGMENT"


class FillInBlankResult(str, Enum):
    """Teacher judgment recorded for a fill-in-the-blank card."""

    CORRECT = "CORRECT"
    INCORRECT = "INCORRECT"
