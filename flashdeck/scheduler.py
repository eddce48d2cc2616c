# flashdeck/scheduler.py

"""
Defines the BaseScheduler abstract class and the SM2Scheduler for flashdeck,
implementing the SuperMemo 2 review rule.
"""

import logging
import math
from abc import ABC, abstractmethod
import datetime
from typing import Optional, Tuple

from pydantic import BaseModel, Field

from .constants import (
    BOOTSTRAP_INTERVALS,
    DEFAULT_EASE_FACTOR,
    EASY_QUALITY,
    LAPSE_INTERVAL,
    MAX_QUALITY,
    MINIMUM_EASE_FACTOR,
    MIN_QUALITY,
    PASSING_QUALITY,
)
from .exceptions import InvalidQualityError
from .models import CardSchedule, Difficulty, Quality, ensure_utc

logger = logging.getLogger(__name__)


def validate_quality(quality: object) -> Quality:
    """
    Check a raw grade at the engine boundary and convert it to a Quality.

    Raises:
        InvalidQualityError: If quality is not an int (bools are rejected)
            or falls outside [0, 5].
    """
    if isinstance(quality, bool) or not isinstance(quality, int):
        raise InvalidQualityError(quality)
    if not (MIN_QUALITY <= quality <= MAX_QUALITY):
        raise InvalidQualityError(quality)
    return Quality(quality)


def difficulty_for_quality(quality: int) -> Difficulty:
    if quality >= EASY_QUALITY:
        return Difficulty.Easy
    if quality >= PASSING_QUALITY:
        return Difficulty.Medium
    return Difficulty.Hard


def _round_half_up(value: float) -> int:
    # round() would use banker's rounding (12.5 -> 12).
    return int(math.floor(value + 0.5))


# Latest representable due date; intervals are not capped.
MAX_NEXT_REVIEW = datetime.datetime.max.replace(tzinfo=datetime.timezone.utc)


def _due_date(now: datetime.datetime, interval: int) -> datetime.datetime:
    try:
        return now + datetime.timedelta(days=interval)
    except OverflowError:
        logger.debug(f"Interval of {interval} days passes year 9999; saturating.")
        return MAX_NEXT_REVIEW


class BaseScheduler(ABC):
    """
    Abstract base class for all schedulers in flashdeck.
    """

    @abstractmethod
    def compute_next_state(
        self,
        state: CardSchedule,
        quality: int,
        review_ts: datetime.datetime,
    ) -> CardSchedule:
        """
        Computes the next schedule of a card from its current schedule and
        a quality grade.

        Args:
            state: The card's scheduling state before this review.
            quality: The grade for this review (0-5).
            review_ts: The timestamp of this review ("now").

        Returns:
            The card's new CardSchedule.

        Raises:
            InvalidQualityError: If the quality is invalid.
        """
        pass


class SM2SchedulerConfig(BaseModel):
    """Configuration for the SM-2 Scheduler."""

    initial_ease_factor: float = DEFAULT_EASE_FACTOR
    minimum_ease_factor: float = Field(default=MINIMUM_EASE_FACTOR, gt=0)
    bootstrap_intervals: Tuple[int, int] = BOOTSTRAP_INTERVALS
    lapse_interval: int = Field(default=LAPSE_INTERVAL, ge=0)
    passing_quality: int = Field(
        default=PASSING_QUALITY, ge=MIN_QUALITY, le=MAX_QUALITY
    )


class SM2Scheduler(BaseScheduler):
    """
    SM-2 implementation. Pure: the result depends only on the input
    schedule, the grade and the review timestamp.
    """

    def __init__(self, config: Optional[SM2SchedulerConfig] = None):
        if config is None:
            config = SM2SchedulerConfig()
        self.config = config

    def initial_schedule(self, now: datetime.datetime) -> CardSchedule:
        """Schedule of a brand-new card: due immediately."""
        return CardSchedule(
            ease_factor=self.config.initial_ease_factor,
            interval=0,
            repetitions=0,
            next_review=ensure_utc(now),
            last_review=None,
            difficulty=Difficulty.Medium,
        )

    def next_ease_factor(self, ease_factor: float, quality: int) -> float:
        """
        Canonical SM-2 ease update. Quality 4 is the fixed point; lower
        grades shrink the factor, 5 grows it. Clamped to the minimum.
        """
        penalty = MAX_QUALITY - quality
        updated = ease_factor + (0.1 - penalty * (0.08 + penalty * 0.02))
        return max(self.config.minimum_ease_factor, updated)

    def next_interval(
        self, interval: int, repetitions: int, ease_factor: float, quality: int
    ) -> Tuple[int, int]:
        """Returns (interval, repetitions) after a review."""
        if quality < self.config.passing_quality:
            return self.config.lapse_interval, 0

        first, second = self.config.bootstrap_intervals
        if repetitions == 0:
            new_interval = first
        elif repetitions == 1:
            new_interval = second
        else:
            new_interval = _round_half_up(interval * ease_factor)
        return new_interval, repetitions + 1

    def compute_next_state(
        self,
        state: CardSchedule,
        quality: int,
        review_ts: datetime.datetime,
    ) -> CardSchedule:
        grade = validate_quality(quality)
        now = ensure_utc(review_ts)

        # The interval grows by the ease factor in force before this review.
        interval, repetitions = self.next_interval(
            state.interval, state.repetitions, state.ease_factor, grade
        )
        ease_factor = self.next_ease_factor(state.ease_factor, grade)

        logger.debug(
            f"SM-2 q={int(grade)}: interval {state.interval}->{interval}, "
            f"reps {state.repetitions}->{repetitions}, "
            f"ef {state.ease_factor:.4f}->{ease_factor:.4f}"
        )

        return CardSchedule(
            ease_factor=ease_factor,
            interval=interval,
            repetitions=repetitions,
            next_review=_due_date(now, interval),
            last_review=now,
            difficulty=difficulty_for_quality(grade),
        )


_default_scheduler = SM2Scheduler()


def apply_review(
    state: CardSchedule, quality: int, now: datetime.datetime
) -> CardSchedule:
    """Apply one review to a schedule using the default SM-2 parameters."""
    return _default_scheduler.compute_next_state(state, quality, now)
