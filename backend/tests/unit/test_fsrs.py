"""
Unit tests for FSRS (Free Spaced Repetition Scheduler) implementation.

Tests the learning-step layer, the hand-off to the FSRS library, and the
ledger replay helpers.

Note: These tests require the fsrs package to be installed.
"""

from datetime import datetime, timedelta, timezone

import pytest

from app.enums.learning import CardState, Rating
from app.services.learning.fsrs import (
    DEFAULT_PARAMETERS,
    CardSnapshot,
    FSRSScheduler,
    ReplayReview,
    create_scheduler,
    fold_reviews,
    iter_replay,
    parse_learning_step,
    parse_learning_steps,
)

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
STEPS = parse_learning_steps(["3m", "15m"])


class TestLearningStepParsing:
    """Tests for learning step strings."""

    @pytest.mark.parametrize(
        "step,expected",
        [
            ("30s", timedelta(seconds=30)),
            ("3m", timedelta(minutes=3)),
            ("1h", timedelta(hours=1)),
            ("2d", timedelta(days=2)),
        ],
    )
    def test_parse_units(self, step, expected):
        assert parse_learning_step(step) == expected

    @pytest.mark.parametrize("step", ["", "3", "m3", "3 m", "1w", "-1m"])
    def test_rejects_malformed(self, step):
        with pytest.raises(ValueError):
            parse_learning_step(step)

    def test_sequence_order_preserved(self):
        assert parse_learning_steps(["15m", "3m"]) == (
            timedelta(minutes=15),
            timedelta(minutes=3),
        )


class TestFSRSScheduler:
    """Tests for FSRSScheduler class."""

    @pytest.fixture
    def scheduler(self):
        """Create a default scheduler."""
        return FSRSScheduler(desired_retention=0.9, maximum_interval=365)

    @pytest.fixture
    def new_card(self):
        """Create a new card state (never reviewed)."""
        return CardSnapshot(due=T0)

    @pytest.fixture
    def review_card(self):
        """Create a graduated card last reviewed ten days ago."""
        return CardSnapshot(
            state=CardState.REVIEW,
            stability=10.0,
            difficulty=5.0,
            due=T0,
            last_review=T0 - timedelta(days=10),
            reps=5,
            lapses=0,
        )

    def test_scheduler_initialization(self, scheduler):
        """Test scheduler initializes with correct parameters."""
        assert scheduler.desired_retention == 0.9
        assert scheduler.maximum_interval == 365
        assert scheduler.parameters == DEFAULT_PARAMETERS

    def test_learning_steps_then_graduation(self, scheduler, new_card):
        """GOOD walks 3m, then 15m, then graduates into FSRS."""
        first = scheduler.review(new_card, Rating.GOOD, T0, STEPS)
        assert first.card.state == CardState.LEARNING
        assert first.card.due == T0 + timedelta(minutes=3)
        assert first.card.learning_step == 1
        assert first.is_learning_step

        t1 = first.card.due
        second = scheduler.review(first.card, Rating.GOOD, t1, STEPS)
        assert second.card.state == CardState.LEARNING
        assert second.card.due == t1 + timedelta(minutes=15)
        assert second.is_learning_step

        t2 = second.card.due
        third = scheduler.review(second.card, Rating.GOOD, t2, STEPS)
        assert third.card.state == CardState.REVIEW
        assert third.card.stability is not None
        assert third.card.difficulty is not None
        assert third.card.due > t2 + timedelta(minutes=15)
        assert third.card.learning_step == 0
        assert not third.is_learning_step
        assert third.card.reps == 3

    def test_easy_advances_one_step(self, scheduler, new_card):
        """EASY while stepping moves one step like GOOD; it does not skip to graduation."""
        first = scheduler.review(new_card, Rating.EASY, T0, STEPS)
        assert first.card.state == CardState.LEARNING
        assert first.card.learning_step == 1
        assert first.card.due == T0 + timedelta(minutes=3)
        assert first.card.stability is None

        t1 = first.card.due
        second = scheduler.review(first.card, Rating.EASY, t1, STEPS)
        assert second.card.state == CardState.LEARNING
        assert second.card.learning_step == 2
        assert second.card.due == t1 + timedelta(minutes=15)

        third = scheduler.review(second.card, Rating.EASY, second.card.due, STEPS)
        assert third.card.state == CardState.REVIEW

    def test_again_resets_step(self, scheduler, new_card):
        """AGAIN during learning returns to the first step."""
        first = scheduler.review(new_card, Rating.GOOD, T0, STEPS)
        again = scheduler.review(first.card, Rating.AGAIN, T0 + timedelta(minutes=3), STEPS)

        assert again.card.state == CardState.LEARNING
        assert again.card.learning_step == 0
        assert again.card.due == T0 + timedelta(minutes=6)

    def test_no_steps_graduates_immediately(self, scheduler, new_card):
        outcome = scheduler.review(new_card, Rating.GOOD, T0, ())

        assert outcome.card.state == CardState.REVIEW
        assert outcome.card.due > T0
        assert not outcome.is_learning_step

    def test_review_again_lapses_into_relearning(self, scheduler, review_card):
        """AGAIN on a REVIEW card restarts the learning steps."""
        outcome = scheduler.review(review_card, Rating.AGAIN, T0, STEPS)

        assert outcome.card.state == CardState.RELEARNING
        assert outcome.card.learning_step == 0
        assert outcome.card.due == T0 + timedelta(minutes=3)
        assert outcome.card.lapses == 1
        assert outcome.card.stability < review_card.stability
        assert outcome.is_learning_step

    def test_relearning_graduates_back_to_review(self, scheduler, review_card):
        lapsed = scheduler.review(review_card, Rating.AGAIN, T0, STEPS).card
        t = T0
        card = lapsed
        for _ in range(len(STEPS) + 1):
            t = card.due
            card = scheduler.review(card, Rating.GOOD, t, STEPS).card

        assert card.state == CardState.REVIEW
        assert card.lapses == 1
        assert card.due > t

    def test_review_good_grows_interval(self, scheduler, review_card):
        outcome = scheduler.review(review_card, Rating.GOOD, T0, STEPS)

        assert outcome.card.state == CardState.REVIEW
        assert outcome.card.stability > review_card.stability
        assert outcome.card.due - T0 > timedelta(days=10)

    def test_easy_beats_hard(self, scheduler, review_card):
        hard = scheduler.review(review_card, Rating.HARD, T0, STEPS).card
        easy = scheduler.review(review_card, Rating.EASY, T0, STEPS).card
        assert easy.due > hard.due

    def test_invalid_rating_raises(self, scheduler, new_card):
        with pytest.raises(ValueError):
            scheduler.review(new_card, 5, T0, STEPS)

    def test_review_is_deterministic(self, scheduler, review_card):
        first = scheduler.review(review_card, Rating.HARD, T0, STEPS)
        second = scheduler.review(review_card, Rating.HARD, T0, STEPS)
        assert first == second

    def test_maximum_interval_respected(self, review_card):
        scheduler = FSRSScheduler(maximum_interval=30)
        outcome = scheduler.review(review_card, Rating.EASY, T0, STEPS)
        assert outcome.card.due - T0 <= timedelta(days=30)


class TestRetrievability:
    """Tests for recall probability."""

    @pytest.fixture
    def scheduler(self):
        return FSRSScheduler()

    def test_new_card_is_one(self, scheduler):
        assert scheduler.get_retrievability(CardSnapshot(), T0) == 1.0

    def test_learning_card_without_memory_is_zero(self, scheduler):
        card = CardSnapshot(state=CardState.LEARNING, last_review=T0)
        assert scheduler.get_retrievability(card, T0) == 0.0

    def test_decays_with_time(self, scheduler):
        card = CardSnapshot(
            state=CardState.REVIEW, stability=5.0, difficulty=5.0, last_review=T0
        )
        soon = scheduler.get_retrievability(card, T0 + timedelta(days=1))
        later = scheduler.get_retrievability(card, T0 + timedelta(days=30))

        assert 0.0 < later < soon <= 1.0


class TestCreateScheduler:
    """Tests for the scheduler factory."""

    def test_uses_given_weights(self):
        weights = list(DEFAULT_PARAMETERS)
        weights[0] = 1.5
        assert create_scheduler(parameters=weights).parameters[0] == 1.5

    def test_ignores_wrong_length_weights(self):
        scheduler = create_scheduler(parameters=[1.0, 2.0])
        assert scheduler.parameters == DEFAULT_PARAMETERS


class TestReplay:
    """Tests for folding a review history."""

    def test_fold_matches_stepwise_reviews(self):
        scheduler = create_scheduler()
        history = [
            ReplayReview(Rating.GOOD, T0, ("3m", "15m")),
            ReplayReview(Rating.GOOD, T0 + timedelta(minutes=3), ("3m", "15m")),
            ReplayReview(Rating.AGAIN, T0 + timedelta(minutes=18), ("3m", "15m")),
            ReplayReview(Rating.GOOD, T0 + timedelta(minutes=21), ("3m", "15m")),
        ]

        card = CardSnapshot(due=T0)
        for review in history:
            card = scheduler.review(
                card,
                Rating(review.rating),
                review.reviewed_at,
                parse_learning_steps(review.learning_steps),
            ).card

        assert fold_reviews(scheduler, history, CardSnapshot(due=T0)) == card

    def test_iter_replay_yields_previous_state(self):
        scheduler = create_scheduler()
        history = [
            ReplayReview(Rating.GOOD, T0, ("3m",)),
            ReplayReview(Rating.GOOD, T0 + timedelta(minutes=3), ("3m",)),
        ]

        steps = list(iter_replay(scheduler, history, CardSnapshot(due=T0)))

        assert steps[0][0].state == CardState.NEW
        assert steps[1][0] == steps[0][2].card
        assert steps[1][2].card.state == CardState.REVIEW

    def test_empty_history_returns_initial(self):
        initial = CardSnapshot(due=T0)
        assert fold_reviews(create_scheduler(), [], initial) == initial
