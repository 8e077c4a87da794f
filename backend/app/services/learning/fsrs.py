"""
FSRS (Free Spaced Repetition Scheduler) with Learning Steps

This module wraps the FSRS library and layers short, fixed learning steps in
front of it. A card walks its learning steps (e.g. 3m, 15m, 30m) before it
graduates into FSRS, and walks them again after a lapse.

Key Concepts:
- Stability (S): Days until recall probability decays to 90%
- Difficulty (D): Inherent difficulty of the card (1-10)
- Retrievability (R): Current recall probability based on elapsed time
- Learning steps: Fixed intervals used before (and after lapsing out of) FSRS

State Machine:
    NEW → LEARNING → REVIEW ↔ RELEARNING

The transition function FSRSScheduler.review is pure: the same card, rating,
review time, step sequence and weights always give the same result (fuzzing
is disabled). The live review path, the ledger rebuild and the optimizer all
go through it via iter_replay/fold_reviews, so they cannot drift apart.

Usage:
    from app.services.learning.fsrs import create_scheduler, CardSnapshot

    scheduler = create_scheduler(parameters=weights)

    outcome = scheduler.review(card, Rating.GOOD, learning_steps=parse_learning_steps(["3m", "15m"]))
    outcome.card.due
"""

import logging
import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Iterable, Iterator, NamedTuple, Optional, Sequence

from fsrs import Card as FSRSCard
from fsrs import Rating as FSRSRating
from fsrs import Scheduler, State

from app.config.scheduling import LEARNING_STEP_PATTERN, scheduling_settings
from app.enums.learning import CardState, Rating

logger = logging.getLogger(__name__)

DEFAULT_PARAMETERS: tuple[float, ...] = tuple(Scheduler().parameters)

_STEP_RE = re.compile(LEARNING_STEP_PATTERN)
_STEP_UNITS = {
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
}


# ===========================================
# Learning steps
# ===========================================


def parse_learning_step(step: str) -> timedelta:
    """
    Parse a learning step such as "3m", "1h" or "2d".

    Raises:
        ValueError: If the step does not match ``<digits><s|m|h|d>``
    """
    if not _STEP_RE.match(step):
        raise ValueError(f"Invalid learning step {step!r}; expected e.g. '3m', '1h', '2d'")
    return int(step[:-1]) * _STEP_UNITS[step[-1]]


@lru_cache(maxsize=128)
def _parse_steps_cached(steps: tuple[str, ...]) -> tuple[timedelta, ...]:
    return tuple(parse_learning_step(step) for step in steps)


def parse_learning_steps(steps: Iterable[str]) -> tuple[timedelta, ...]:
    """Parse a learning-step sequence, preserving order."""
    return _parse_steps_cached(tuple(steps))


# ===========================================
# Card snapshots
# ===========================================


@dataclass(frozen=True)
class CardSnapshot:
    """
    Scheduling state of a card.

    Mirrors the columns of student_card_states. All datetimes are
    timezone-aware UTC.
    """

    state: CardState = CardState.NEW
    learning_step: int = 0
    stability: Optional[float] = None
    difficulty: Optional[float] = None
    due: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_review: Optional[datetime] = None
    reps: int = 0
    lapses: int = 0

    def is_new(self) -> bool:
        """Check if this card has never been reviewed."""
        return self.state == CardState.NEW


@dataclass(frozen=True)
class ReviewOutcome:
    """Result of applying one rating to a card."""

    card: CardSnapshot
    is_learning_step: bool


class ReplayReview(NamedTuple):
    """A ledger entry reduced to what the transition function needs."""

    rating: int
    reviewed_at: datetime
    learning_steps: tuple[str, ...]


# ===========================================
# Scheduler
# ===========================================


class FSRSScheduler:
    """
    FSRS scheduler with learning steps.

    The wrapped fsrs.Scheduler runs without its own learning/relearning steps
    and without fuzzing; step handling happens here.

    Attributes:
        parameters: FSRS weight vector in use
        desired_retention: Target retention probability (default 0.9 = 90%)
        maximum_interval: Maximum days between reviews (default 365)
    """

    def __init__(
        self,
        parameters: Optional[Sequence[float]] = None,
        desired_retention: float = 0.9,
        maximum_interval: int = 365,
    ):
        """
        Initialize FSRS scheduler.

        Args:
            parameters: FSRS weights; library defaults when omitted
            desired_retention: Target recall probability (0.7-0.99)
            maximum_interval: Maximum interval in days
        """
        self.parameters = tuple(parameters) if parameters else DEFAULT_PARAMETERS
        self.desired_retention = desired_retention
        self.maximum_interval = maximum_interval

        self._fsrs = Scheduler(
            parameters=self.parameters,
            desired_retention=desired_retention,
            learning_steps=(),
            relearning_steps=(),
            maximum_interval=maximum_interval,
            enable_fuzzing=False,
        )

    def review(
        self,
        card: CardSnapshot,
        rating: Rating,
        review_time: Optional[datetime] = None,
        learning_steps: Sequence[timedelta] = (),
    ) -> ReviewOutcome:
        """
        Apply a rating to a card.

        State Transitions:
            - NEW/LEARNING, steps left: AGAIN → step 0; else due = now + step[i], i += 1
            - NEW/LEARNING, steps exhausted: graduate, S/D seeded from the rating
            - RELEARNING: as above, graduating with S/D updated by FSRS
            - REVIEW, AGAIN: post-lapse S/D, lapses += 1, RELEARNING at step 0
            - REVIEW, otherwise: FSRS interval from the new stability

        Args:
            card: Current scheduling state
            rating: Teacher's assessment of recall (AGAIN, HARD, GOOD, EASY)
            review_time: Timestamp of the review. Defaults to current UTC time.
                Pass explicit time for replays or testing.
            learning_steps: Parsed learning-step intervals in force

        Returns:
            ReviewOutcome with the new card state and whether learning-step
            logic produced it

        Raises:
            ValueError: If rating is not 1-4
        """
        review_time = review_time or datetime.now(timezone.utc)
        rating = Rating(rating)
        reviewed = replace(card, reps=card.reps + 1, last_review=review_time)

        if card.state == CardState.REVIEW:
            return self._review_graduated(card, reviewed, rating, review_time, learning_steps)
        return self._review_stepping(card, reviewed, rating, review_time, learning_steps)

    def _review_stepping(
        self,
        card: CardSnapshot,
        reviewed: CardSnapshot,
        rating: Rating,
        review_time: datetime,
        steps: Sequence[timedelta],
    ) -> ReviewOutcome:
        relearning = card.state == CardState.RELEARNING
        stepping_state = CardState.RELEARNING if relearning else CardState.LEARNING

        if steps and rating == Rating.AGAIN:
            return ReviewOutcome(
                replace(reviewed, state=stepping_state, learning_step=0, due=review_time + steps[0]),
                is_learning_step=True,
            )

        if card.learning_step < len(steps) and rating != Rating.AGAIN:
            return ReviewOutcome(
                replace(
                    reviewed,
                    state=stepping_state,
                    learning_step=card.learning_step + 1,
                    due=review_time + steps[card.learning_step],
                ),
                is_learning_step=True,
            )

        # Steps exhausted: graduate into FSRS
        fsrs_state = State.Relearning if relearning else State.Learning
        result = self._run_fsrs(card, fsrs_state, rating, review_time)
        return ReviewOutcome(
            replace(
                reviewed,
                state=CardState.REVIEW,
                learning_step=0,
                stability=result.stability,
                difficulty=result.difficulty,
                due=result.due,
            ),
            is_learning_step=False,
        )

    def _review_graduated(
        self,
        card: CardSnapshot,
        reviewed: CardSnapshot,
        rating: Rating,
        review_time: datetime,
        steps: Sequence[timedelta],
    ) -> ReviewOutcome:
        result = self._run_fsrs(card, State.Review, rating, review_time)

        if rating == Rating.AGAIN:
            due = review_time + steps[0] if steps else result.due
            return ReviewOutcome(
                replace(
                    reviewed,
                    state=CardState.RELEARNING,
                    learning_step=0,
                    stability=result.stability,
                    difficulty=result.difficulty,
                    due=due,
                    lapses=card.lapses + 1,
                ),
                is_learning_step=bool(steps),
            )

        return ReviewOutcome(
            replace(
                reviewed,
                state=CardState.REVIEW,
                learning_step=0,
                stability=result.stability,
                difficulty=result.difficulty,
                due=result.due,
            ),
            is_learning_step=False,
        )

    def _run_fsrs(
        self,
        card: CardSnapshot,
        fsrs_state: State,
        rating: Rating,
        review_time: datetime,
    ) -> FSRSCard:
        # card_id is passed explicitly; the library otherwise derives one from the clock
        fsrs_card = FSRSCard(
            card_id=0,
            state=fsrs_state,
            step=None if fsrs_state == State.Review else 0,
            stability=card.stability,
            difficulty=card.difficulty,
            due=card.due,
            last_review=card.last_review,
        )
        result_card, _ = self._fsrs.review_card(
            fsrs_card, FSRSRating(int(rating)), review_time
        )
        return result_card

    def get_retrievability(
        self, card: CardSnapshot, now: Optional[datetime] = None
    ) -> float:
        """
        Get current recall probability for a card.

        Uses the FSRS library's forgetting curve.

        Args:
            card: Card state with stability and last_review
            now: Reference time (default: current UTC time)

        Returns:
            Probability of recall (0.0 to 1.0). New cards return 1.0; cards
            that have not graduated yet have no memory model and return 0.0.
        """
        if card.is_new():
            return 1.0
        if card.stability is None or card.last_review is None:
            return 0.0

        now = now or datetime.now(timezone.utc)

        fsrs_card = FSRSCard(
            card_id=0,
            state=State.Review,
            stability=card.stability,
            difficulty=card.difficulty,
            last_review=card.last_review,
        )
        return float(self._fsrs.get_card_retrievability(fsrs_card, now))


def create_scheduler(
    parameters: Optional[Sequence[float]] = None,
    retention: Optional[float] = None,
    max_interval: Optional[int] = None,
) -> FSRSScheduler:
    """
    Create a configured FSRS scheduler.

    Args:
        parameters: FSRS weights (default: library defaults)
        retention: Target retention probability (default from settings)
        max_interval: Maximum interval in days (default from settings)

    Returns:
        Configured FSRSScheduler instance
    """
    if parameters is not None and len(parameters) != len(DEFAULT_PARAMETERS):
        logger.warning(
            f"Ignoring weight vector of length {len(parameters)}; "
            f"expected {len(DEFAULT_PARAMETERS)}"
        )
        parameters = None

    return FSRSScheduler(
        parameters=parameters,
        desired_retention=retention or scheduling_settings.FSRS_DEFAULT_RETENTION,
        maximum_interval=max_interval or scheduling_settings.FSRS_MAX_INTERVAL_DAYS,
    )


# ===========================================
# Ledger replay
# ===========================================


def iter_replay(
    scheduler: FSRSScheduler,
    reviews: Iterable[ReplayReview],
    initial: Optional[CardSnapshot] = None,
) -> Iterator[tuple[CardSnapshot, ReplayReview, ReviewOutcome]]:
    """
    Replay reviews in order, yielding (state before, review, outcome).

    The reviews must already be ordered by (reviewed_at, ledger id).
    """
    card = initial or CardSnapshot()
    for review in reviews:
        outcome = scheduler.review(
            card,
            Rating(review.rating),
            review.reviewed_at,
            parse_learning_steps(review.learning_steps),
        )
        yield card, review, outcome
        card = outcome.card


def fold_reviews(
    scheduler: FSRSScheduler,
    reviews: Iterable[ReplayReview],
    initial: Optional[CardSnapshot] = None,
) -> CardSnapshot:
    """Fold a card's ordered reviews into its current state."""
    card = initial or CardSnapshot()
    for _, _, outcome in iter_replay(scheduler, reviews, card):
        card = outcome.card
    return card
