"""
FSRS Parameter Optimizer

Fits a student's FSRS weight vector to their review history with the fsrs
library's optimizer (installed through the fsrs[optimizer] extra).

The ledger is handed to the library as one ReviewLog per review, one
card_id per card history. The fit itself is the library's; this module adds
the minimum-history gate and scores the initial and fitted weights with the
binary log loss between the retrievability our scheduler predicts at each
review of a graduated card and whether the student recalled it (any rating
above AGAIN). Predictions come from replaying the ledger with the candidate
weights through the same transition function the live scheduler uses.

Usage:
    from app.services.learning.optimizer import ParameterOptimizer

    optimizer = ParameterOptimizer()
    result = optimizer.fit(histories, initial_weights=weights)
    if result.optimized:
        persist(result.weights)
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
from fsrs import Optimizer, ReviewLog
from fsrs import Rating as FSRSRating

from app.config.scheduling import scheduling_settings
from app.enums.learning import CardState, Rating
from app.services.learning.fsrs import (
    DEFAULT_PARAMETERS,
    FSRSScheduler,
    ReplayReview,
    iter_replay,
)

logger = logging.getLogger(__name__)

_EPSILON = 1e-6


@dataclass
class OptimizationResult:
    """
    Outcome of a fitting run.

    Attributes:
        weights: Fitted weight vector (the initial one when not optimized)
        loss_before: Log loss of the initial weights, None without graduated reviews
        loss_after: Log loss of the returned weights
        training_data_size: Number of reviews handed to the fsrs optimizer
        optimized: False when there was too little history to fit
    """

    weights: tuple[float, ...]
    loss_before: Optional[float]
    loss_after: Optional[float]
    training_data_size: int
    optimized: bool


def build_review_logs(histories: Sequence[Sequence[ReplayReview]]) -> list[ReviewLog]:
    """
    Flatten per-card histories into fsrs review logs.

    Cards are numbered from 1 in the order given; the library only needs the
    id to group a card's reviews.
    """
    logs: list[ReviewLog] = []
    for card_number, history in enumerate(histories, start=1):
        for review in history:
            logs.append(
                ReviewLog(
                    card_id=card_number,
                    rating=FSRSRating(int(review.rating)),
                    review_datetime=review.reviewed_at,
                    review_duration=None,
                )
            )
    return logs


class ParameterOptimizer:
    """Wraps fsrs.Optimizer with a history gate and log-loss scoring."""

    def __init__(
        self,
        desired_retention: Optional[float] = None,
        maximum_interval: Optional[int] = None,
        min_reviews: Optional[int] = None,
    ):
        self.desired_retention = desired_retention or scheduling_settings.FSRS_DEFAULT_RETENTION
        self.maximum_interval = maximum_interval or scheduling_settings.FSRS_MAX_INTERVAL_DAYS
        self.min_reviews = (
            scheduling_settings.OPTIMIZER_MIN_REVIEWS if min_reviews is None else min_reviews
        )

    def _scheduler(self, weights: Sequence[float]) -> FSRSScheduler:
        return FSRSScheduler(
            parameters=weights,
            desired_retention=self.desired_retention,
            maximum_interval=self.maximum_interval,
        )

    def predictions(
        self,
        weights: Sequence[float],
        histories: Sequence[Sequence[ReplayReview]],
    ) -> tuple[np.ndarray, np.ndarray]:
        """
        Replay every history and collect (predicted recall, actual recall).

        Only reviews of cards that were in REVIEW state beforehand contribute;
        learning-step reviews carry no memory model to predict from.
        """
        scheduler = self._scheduler(weights)
        predicted: list[float] = []
        actual: list[float] = []

        for history in histories:
            for before, review, _ in iter_replay(scheduler, history):
                if before.state != CardState.REVIEW:
                    continue
                predicted.append(scheduler.get_retrievability(before, review.reviewed_at))
                actual.append(0.0 if review.rating == Rating.AGAIN else 1.0)

        return np.array(predicted, dtype=float), np.array(actual, dtype=float)

    def loss(
        self,
        weights: Sequence[float],
        histories: Sequence[Sequence[ReplayReview]],
    ) -> tuple[float, int]:
        """Mean binary log loss and the number of reviews it was computed over."""
        predicted, actual = self.predictions(weights, histories)
        if predicted.size == 0:
            return 0.0, 0

        p = np.clip(predicted, _EPSILON, 1.0 - _EPSILON)
        losses = -(actual * np.log(p) + (1.0 - actual) * np.log(1.0 - p))
        return float(losses.mean()), int(predicted.size)

    def fit(
        self,
        histories: Sequence[Sequence[ReplayReview]],
        initial_weights: Optional[Sequence[float]] = None,
    ) -> OptimizationResult:
        """
        Fit weights to the given review histories.

        Args:
            histories: One ordered review list per card
            initial_weights: Weights in use before the fit (default: library defaults)

        Returns:
            OptimizationResult; optimized is False if fewer than min_reviews
            reviews are available.

        Raises:
            ValueError: The library returned a vector of the wrong length
        """
        base = tuple(float(w) for w in (initial_weights or DEFAULT_PARAMETERS))
        loss_before, scored = self.loss(base, histories)
        review_logs = build_review_logs(histories)
        size = len(review_logs)

        if size < self.min_reviews:
            logger.info(f"Skipping optimization: {size} reviews < {self.min_reviews}")
            return OptimizationResult(
                weights=base,
                loss_before=loss_before if scored else None,
                loss_after=loss_before if scored else None,
                training_data_size=size,
                optimized=False,
            )

        fitted = tuple(float(w) for w in Optimizer(review_logs).compute_optimal_parameters())
        if len(fitted) != len(DEFAULT_PARAMETERS):
            raise ValueError(
                f"fsrs optimizer returned {len(fitted)} weights, "
                f"expected {len(DEFAULT_PARAMETERS)}"
            )

        loss_after, _ = self.loss(fitted, histories)
        logger.info(
            f"Optimized FSRS weights over {size} reviews: "
            f"loss {loss_before:.4f} -> {loss_after:.4f} ({scored} graduated reviews scored)"
        )

        return OptimizationResult(
            weights=fitted,
            loss_before=loss_before if scored else None,
            loss_after=loss_after if scored else None,
            training_data_size=size,
            optimized=True,
        )
