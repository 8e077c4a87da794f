"""
Session-local Review Queues

Queue assembly shared by the FSRS-backed exercises (vocabulary deck and
listening):

- build_queue: initial queue = due REVIEW cards (capped) + LEARNING and
  RELEARNING cards, by due time ascending, then NEW cards (capped) last.
- requeue_after_review: after a rating, drop the head, re-admit learning
  cards of the exercise whose step has come due, re-sort, and put the head
  back at the end if it was rated AGAIN.
"""

import uuid
from datetime import datetime
from typing import Iterable, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import VocabularyCard
from app.db.models_learning import StudentCardState
from app.enums.learning import CardState, ReviewType
from app.models.progress import CardData, QueueEntry

_STEPPING = (CardState.LEARNING.value, CardState.RELEARNING.value)


async def load_deck_states(
    db: AsyncSession,
    student_id: uuid.UUID,
    deck_id: uuid.UUID,
    review_type: ReviewType,
) -> list[StudentCardState]:
    """Card states of a deck for a student, in card creation order."""
    result = await db.execute(
        select(StudentCardState)
        .join(VocabularyCard, VocabularyCard.id == StudentCardState.card_id)
        .where(
            VocabularyCard.deck_id == deck_id,
            StudentCardState.student_id == student_id,
            StudentCardState.review_type == review_type.value,
        )
        .order_by(VocabularyCard.created_at, VocabularyCard.id)
    )
    return list(result.scalars().all())


async def load_states(
    db: AsyncSession,
    student_id: uuid.UUID,
    card_ids: Sequence[uuid.UUID],
    review_type: ReviewType,
) -> list[StudentCardState]:
    """Card states for specific cards."""
    if not card_ids:
        return []
    result = await db.execute(
        select(StudentCardState).where(
            StudentCardState.student_id == student_id,
            StudentCardState.review_type == review_type.value,
            StudentCardState.card_id.in_(list(card_ids)),
        )
    )
    return list(result.scalars().all())


def to_entry(state: StudentCardState) -> QueueEntry:
    return QueueEntry(card_id=state.card_id, state=CardState(state.state), due=state.due)


def _by_due(entries: Iterable[QueueEntry]) -> list[QueueEntry]:
    return sorted(entries, key=lambda e: (e.due, str(e.card_id)))


def build_queue(
    states: Sequence[StudentCardState],
    now: datetime,
    new_cards: int,
    max_due: int,
) -> list[QueueEntry]:
    """
    Assemble the initial review queue.

    Args:
        states: Card states in card creation order
        now: Reference time for "due"
        new_cards: Maximum NEW cards to include
        max_due: Maximum due REVIEW cards to include
    """
    due = _by_due(
        to_entry(s) for s in states if s.state == CardState.REVIEW.value and s.due <= now
    )[:max_due]
    stepping = [to_entry(s) for s in states if s.state in _STEPPING]
    fresh = [to_entry(s) for s in states if s.state == CardState.NEW.value][:new_cards]
    return _by_due(due + stepping) + fresh


def requeue_after_review(
    queue: Sequence[QueueEntry],
    reviewed: StudentCardState,
    rated_again: bool,
    scope: Sequence[StudentCardState],
    now: datetime,
) -> list[QueueEntry]:
    """
    Recompute the remaining queue after the head card was rated.

    Args:
        queue: Queue before the rating; its head is the reviewed card
        reviewed: The reviewed card's new state
        rated_again: Whether the rating was AGAIN
        scope: Current states of every card the exercise covers
        now: Reference time for re-admission
    """
    remaining = list(queue[1:])
    present = {e.card_id for e in remaining} | {reviewed.card_id}
    readmitted = [
        to_entry(s)
        for s in scope
        if s.card_id not in present and s.state in _STEPPING and s.due <= now
    ]

    scheduled = [e for e in remaining if e.state != CardState.NEW] + readmitted
    fresh = [e for e in remaining if e.state == CardState.NEW]
    new_queue = _by_due(scheduled) + fresh

    if rated_again:
        new_queue.append(to_entry(reviewed))
    return new_queue


async def load_card_data(
    db: AsyncSession,
    card_id: Optional[uuid.UUID],
    entry: Optional[QueueEntry] = None,
) -> Optional[CardData]:
    """Content of a card for presentation; None when there is no card."""
    if card_id is None:
        return None
    card = await db.get(VocabularyCard, card_id)
    if card is None:
        return None
    return CardData(
        card_id=card.id,
        english_word=card.english_word,
        chinese_translation=card.chinese_translation,
        pinyin=card.pinyin,
        ipa_pronunciation=card.ipa_pronunciation,
        audio_url=card.audio_url,
        example_sentences=card.example_sentences,
        state=entry.state if entry else None,
        due=entry.due if entry else None,
    )
