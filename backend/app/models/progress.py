"""
Pydantic Models for Session Progress

A session's progress is a closed union discriminated by ``type``, which always
equals the type of the unit item the session is on:

    {"type": "VOCABULARY_DECK", "stage": "PRESENTING_CARD", "payload": {...}}

Each variant carries its own stage enum and payload shape. The orchestrator
stores progress as JSON on teaching_sessions.progress and handlers only ever
see the parsed, typed variant.

This module also holds the per-type exercise_config models.

Usage:
    from app.models.progress import parse_progress, dump_progress

    progress = parse_progress(session.progress)
    session.progress = dump_progress(progress)
"""

import re
import uuid
from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from app.config.scheduling import LEARNING_STEP_PATTERN, scheduling_settings
from app.enums.learning import (
    CardState,
    FillInBlankStage,
    ListeningStage,
    VocabularyStage,
)
from app.models.base import APIModel

_STEP_RE = re.compile(LEARNING_STEP_PATTERN)


# =============================================================================
# Shared payload pieces
# =============================================================================


class QueueEntry(APIModel):
    """A card waiting in a session-local review queue."""

    card_id: uuid.UUID
    state: CardState
    due: datetime


class CardData(APIModel):
    """Content of the card currently presented, denormalized for the UI."""

    card_id: uuid.UUID
    english_word: str
    chinese_translation: str
    pinyin: Optional[str] = None
    ipa_pronunciation: Optional[str] = None
    audio_url: Optional[str] = None
    example_sentences: Optional[list] = None
    state: Optional[CardState] = None
    due: Optional[datetime] = None


class ReviewQueuePayload(APIModel):
    """
    Payload of FSRS-backed exercises.

    Attributes:
        queue: Remaining cards; the head is the card being presented.
        current_card_data: Content of the head card, None once empty.
        student_answer: Free-text answer typed by the student, if any.
        learning_steps: Learning steps reviews in this exercise use.
        initial_card_ids: Cards this exercise covers; learning cards among
            them re-enter the queue when their step comes due.
    """

    queue: list[QueueEntry] = Field(default_factory=list)
    current_card_data: Optional[CardData] = None
    student_answer: Optional[str] = None
    learning_steps: list[str] = Field(default_factory=list)
    initial_card_ids: list[uuid.UUID] = Field(default_factory=list)


class FillInBlankPayload(APIModel):
    """Payload of fill-in-the-blank exercises."""

    queue: list[uuid.UUID] = Field(default_factory=list)
    current_card_data: Optional[CardData] = None
    student_answer: Optional[str] = None


# =============================================================================
# Progress variants
# =============================================================================


class VocabularyDeckProgress(APIModel):
    """Vocabulary deck: PRESENTING_CARD → AWAITING_RATING → PRESENTING_CARD."""

    type: Literal["VOCABULARY_DECK"] = "VOCABULARY_DECK"
    stage: VocabularyStage = VocabularyStage.PRESENTING_CARD
    payload: ReviewQueuePayload


class ListeningExerciseProgress(APIModel):
    """Listening: PLAYING_AUDIO → AWAITING_RATING → PLAYING_AUDIO."""

    type: Literal["LISTENING_EXERCISE"] = "LISTENING_EXERCISE"
    stage: ListeningStage = ListeningStage.PLAYING_AUDIO
    payload: ReviewQueuePayload


class FillInBlankExerciseProgress(APIModel):
    """Fill-in-the-blank: question → answer → teacher judgment → question."""

    type: Literal["FILL_IN_BLANK_EXERCISE"] = "FILL_IN_BLANK_EXERCISE"
    stage: FillInBlankStage = FillInBlankStage.SHOWING_QUESTION
    payload: FillInBlankPayload


SessionProgress = Annotated[
    Union[
        VocabularyDeckProgress,
        ListeningExerciseProgress,
        FillInBlankExerciseProgress,
    ],
    Field(discriminator="type"),
]

progress_adapter: TypeAdapter = TypeAdapter(SessionProgress)


def parse_progress(data: Optional[dict]) -> Optional[SessionProgress]:
    """Parse stored progress JSON into its typed variant."""
    if data is None:
        return None
    return progress_adapter.validate_python(data)


def dump_progress(progress: Optional[SessionProgress]) -> Optional[dict]:
    """Serialize a progress variant for storage."""
    if progress is None:
        return None
    return progress.model_dump(mode="json")


# =============================================================================
# Exercise configs
# =============================================================================


class ExerciseConfig(BaseModel):
    """Base for unit item exercise_config; unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore")


def _default_learning_steps() -> list[str]:
    return list(scheduling_settings.LEARNING_STEPS)


def _check_learning_steps(steps: list[str]) -> list[str]:
    for step in steps:
        if not _STEP_RE.match(step):
            raise ValueError(f"Invalid learning step {step!r}; expected e.g. '3m', '1h', '2d'")
    return steps


class VocabularyDeckConfig(ExerciseConfig):
    """
    Vocabulary deck tunables.

    Attributes:
        new_cards: Maximum NEW cards introduced per session
        max_due: Maximum due REVIEW cards per session
        learning_steps: Learning-step sequence for this deck
    """

    new_cards: int = Field(default=10, ge=0)
    max_due: int = Field(default=50, ge=0)
    learning_steps: list[str] = Field(default_factory=_default_learning_steps)

    validate_learning_steps = field_validator("learning_steps")(_check_learning_steps)


class ListeningExerciseConfig(ExerciseConfig):
    """
    Listening exercise tunables.

    Attributes:
        vocabulary_confidence_threshold: Minimum vocabulary retrievability for
            a card to be eligible for listening practice
    """

    new_cards: int = Field(default=10, ge=0)
    max_due: int = Field(default=20, ge=0)
    vocabulary_confidence_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    learning_steps: list[str] = Field(default_factory=_default_learning_steps)

    validate_learning_steps = field_validator("learning_steps")(_check_learning_steps)


class FillInBlankConfig(ExerciseConfig):
    """Fill-in-the-blank tunables."""

    max_cards: int = Field(default=20, ge=1)
    shuffle_cards: bool = True
