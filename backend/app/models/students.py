"""
Student Progress API Models

Responses of the per-student read endpoints: due cards and the listening
practice suggestion.
"""

import uuid
from typing import Optional

from pydantic import Field

from app.enums.learning import ReviewType
from app.models.base import StrictResponse
from app.models.sessions import CardStateSummary


class CardSummary(StrictResponse):
    id: uuid.UUID
    deck_id: uuid.UUID
    english_word: str
    chinese_translation: str
    pinyin: Optional[str] = None
    audio_url: Optional[str] = None


class DueCard(StrictResponse):
    """A due card state together with the card it schedules."""

    card_state: CardStateSummary
    card: CardSummary


class DueCardsResponse(StrictResponse):
    student_id: uuid.UUID
    review_type: ReviewType
    cards: list[DueCard] = Field(default_factory=list)
    total: int


class ListeningSuggestionResponse(StrictResponse):
    """
    Attributes:
        suggested_count: Listening items worth practicing now
        candidates: Listening cards still recalled above the listening threshold
    """

    student_id: uuid.UUID
    suggested_count: int
    candidates: int
