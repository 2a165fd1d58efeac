"""
SM-2 Interval Calculator.

Implements the SuperMemo 2 update rule used for the long-term (Review)
schedule of every card. Short-term learning steps live in learning.py.

SM-2 Grade Scale:
0 - Complete blackout, wrong response
1 - Incorrect, but upon seeing answer remembered
2 - Incorrect, but answer seemed easy to recall
3 - Correct, but with significant difficulty
4 - Correct, with some hesitation
5 - Correct, with perfect recall
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from memoria.errors import ValidationError

MIN_QUALITY = 0
MAX_QUALITY = 5
PASSING_QUALITY = 3

# =============================================================================
# Configuration
# =============================================================================


@dataclass(frozen=True)
class SchedulerConfig:
    """Configuration for the scheduler (SM-2 plus learning steps)."""

    learning_steps: tuple[int, ...] = (1, 10)  # Minutes between learning reviews
    graduation_interval: int = 1  # Days after graduating from learning
    easy_interval: int = 4  # Days after an "Easy" answer while learning
    new_card_ease_factor: float = 2.5
    minimum_ease_factor: float = 1.3

    def __post_init__(self) -> None:
        if not self.learning_steps:
            raise ValidationError("learning_steps must contain at least one step")
        if any(step < 0 for step in self.learning_steps):
            raise ValidationError(f"learning_steps must be non-negative: {self.learning_steps}")
        if self.graduation_interval < 0 or self.easy_interval < 0:
            raise ValidationError("graduation_interval and easy_interval must be non-negative")
        if self.minimum_ease_factor > self.new_card_ease_factor:
            raise ValidationError(
                f"minimum_ease_factor ({self.minimum_ease_factor}) exceeds "
                f"new_card_ease_factor ({self.new_card_ease_factor})"
            )
        # Settings pass a list
        object.__setattr__(self, "learning_steps", tuple(self.learning_steps))

    @property
    def step_count(self) -> int:
        return len(self.learning_steps)


# =============================================================================
# SM-2 Algorithm
# =============================================================================


@dataclass(frozen=True)
class IntervalResult:
    """Output of one SM-2 update."""

    interval: int
    repetitions: int
    ease_factor: float


def compute_interval(
    quality: int,
    repetitions: int,
    previous_ease_factor: float,
    previous_interval: int,
    config: SchedulerConfig | None = None,
) -> IntervalResult:
    """
    Calculate the next SM-2 interval.

    Args:
        quality: Recall grade (0-5)
        repetitions: Consecutive correct recalls so far
        previous_ease_factor: Current easiness factor
        previous_interval: Current interval in days
        config: Supplies the ease factor floor (defaults to 1.3)

    Returns:
        IntervalResult with the new interval, repetitions and ease factor
    """
    minimum_ease = config.minimum_ease_factor if config else SchedulerConfig.minimum_ease_factor

    if quality < PASSING_QUALITY:
        # Failed - reset repetitions, ease factor untouched
        return IntervalResult(interval=1, repetitions=0, ease_factor=previous_ease_factor)

    if repetitions == 0:
        interval = 1
    elif repetitions == 1:
        interval = 6
    else:
        interval = _round_half_away_from_zero(previous_interval * previous_ease_factor)

    # EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02))
    miss = MAX_QUALITY - quality
    ease_factor = previous_ease_factor + (0.1 - miss * (0.08 + miss * 0.02))

    return IntervalResult(
        interval=interval,
        repetitions=repetitions + 1,
        ease_factor=max(minimum_ease, ease_factor),
    )


def _round_half_away_from_zero(value: float) -> int:
    """Round .5 up for positive intervals (built-in round() rounds half to even)."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def validate_quality(quality: object) -> int:
    """
    Check a rating before it reaches the state machine.

    Raises:
        ValidationError: If quality is not an integer in 0..5
    """
    if isinstance(quality, bool) or not isinstance(quality, int):
        raise ValidationError(f"Quality must be an integer, got {quality!r}")
    if not MIN_QUALITY <= quality <= MAX_QUALITY:
        raise ValidationError(f"Quality must be between {MIN_QUALITY} and {MAX_QUALITY}, got {quality}")
    return quality


# =============================================================================
# Rating Labels
# =============================================================================

QUALITY_DESCRIPTIONS = {
    5: "Perfect response",
    4: "Correct response after a hesitation",
    3: "Correct response recalled with serious difficulty",
    2: "Incorrect response; where the correct one seemed easy to recall",
    1: "Incorrect response; the correct one remembered",
    0: "Complete blackout",
}


def describe_quality(quality: int) -> str:
    """Get the SM-2 description of a grade."""
    return QUALITY_DESCRIPTIONS.get(quality, "Invalid quality")


@dataclass(frozen=True)
class RatingChoice:
    """A rating button offered by a presentation layer."""

    quality: int
    label: str

    @property
    def description(self) -> str:
        return describe_quality(self.quality)


# The study screen only offers four of the six grades
RATING_CHOICES: tuple[RatingChoice, ...] = (
    RatingChoice(0, "Again"),
    RatingChoice(3, "Hard"),
    RatingChoice(4, "Good"),
    RatingChoice(5, "Easy"),
)
