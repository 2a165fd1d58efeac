"""
Card Learning State Machine.

Layers short-term learning steps (minutes) on top of the SM-2 Review
schedule. Each rating produces a Transition: the updated session card and,
for the four transitions that leave the session or reset a card, the
SchedulingRecord that must be persisted.

States:
- Learning: is_learning=True, learning_step in [0, len(learning_steps) - 1]
- Review:   is_learning=False, learning_step=-1
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum

from loguru import logger

from .models import (
    DueCard,
    SchedulingRecord,
    SessionCard,
    SessionOverlay,
    days_from,
    minutes_from,
)
from .sm2 import PASSING_QUALITY, SchedulerConfig, compute_interval, validate_quality

EASY_QUALITY = 5
EASY_GRADUATION_QUALITY = 4  # Easy answers graduate as if graded 4 (no EF bonus)


class Outcome(Enum):
    """What a rating did to a card."""

    RETRY = "retry"  # Learning, failed: back to step 0
    ADVANCE = "advance"  # Learning, passed: next learning step
    GRADUATE = "graduate"  # Learning, passed the last step
    EASY = "easy"  # Learning, graded 5: skip remaining steps
    REVIEW_PASS = "review_pass"  # Review, passed: new SM-2 interval
    LAPSE = "lapse"  # Review, failed: demoted to learning

    @property
    def persists(self) -> bool:
        return self in _PERSISTED_OUTCOMES

    @property
    def leaves_session(self) -> bool:
        return self in _FINAL_OUTCOMES


_PERSISTED_OUTCOMES = {Outcome.GRADUATE, Outcome.EASY, Outcome.REVIEW_PASS, Outcome.LAPSE}
_FINAL_OUTCOMES = {Outcome.GRADUATE, Outcome.EASY, Outcome.REVIEW_PASS}


@dataclass(frozen=True)
class Transition:
    """Result of applying one rating to a session card."""

    outcome: Outcome
    card: SessionCard
    update: SchedulingRecord | None = None

    @property
    def persists(self) -> bool:
        return self.update is not None


class CardLearningState:
    """
    Per-card learning/review state machine.

    Stateless apart from its configuration: every method takes a card and
    returns a new one.
    """

    def __init__(self, config: SchedulerConfig | None = None):
        self.config = config or SchedulerConfig()

    # =========================================================================
    # Session Load
    # =========================================================================

    def initial_overlay(self, record: SchedulingRecord, session_start: datetime) -> SessionOverlay:
        """
        Derive the session-local state for a freshly loaded record.

        Cards that have never been answered correctly, or whose interval is
        still shorter than the graduation interval, start in learning.
        """
        is_learning = (
            record.repetitions == 0 or record.interval_days < self.config.graduation_interval
        )
        if is_learning and record.repetitions > 0:
            logger.debug(
                f"Resuming ungraduated record (reps={record.repetitions}, "
                f"interval={record.interval_days}d) at learning step 0"
            )

        return SessionOverlay(
            is_learning=is_learning,
            learning_step=0 if is_learning else -1,
            next_review_time=session_start,
        )

    def start(self, due: DueCard, session_start: datetime, load_index: int = 0) -> SessionCard:
        """Wrap a due card for a study session."""
        return SessionCard(
            card=due.card,
            record=due.record,
            overlay=self.initial_overlay(due.record, session_start),
            load_index=load_index,
        )

    # =========================================================================
    # Rating
    # =========================================================================

    def apply_rating(self, card: SessionCard, quality: int, now: datetime) -> Transition:
        """
        Apply a rating to a card.

        Args:
            card: The session card being rated
            quality: Recall grade (0-5)
            now: Session clock time of the rating

        Returns:
            Transition describing the new state and any record to persist

        Raises:
            ValidationError: If quality is outside 0..5
        """
        quality = validate_quality(quality)

        if card.is_learning:
            return self._rate_learning(card, quality, now)
        return self._rate_review(card, quality, now)

    def _rate_learning(self, card: SessionCard, quality: int, now: datetime) -> Transition:
        record = card.record

        if quality < PASSING_QUALITY:
            return Transition(
                outcome=Outcome.RETRY,
                card=self._to_step(card, 0, now),
            )

        if quality == EASY_QUALITY:
            result = compute_interval(
                EASY_GRADUATION_QUALITY,
                record.repetitions,
                record.ease_factor,
                record.interval_days,
                self.config,
            )
            update = SchedulingRecord(
                ease_factor=result.ease_factor,
                repetitions=result.repetitions,
                interval_days=self.config.easy_interval,
                due_date=days_from(now, self.config.easy_interval),
            )
            return Transition(outcome=Outcome.EASY, card=self._to_review(card, update), update=update)

        next_step = card.learning_step + 1
        if next_step >= self.config.step_count:
            result = compute_interval(quality, 1, record.ease_factor, 0, self.config)
            update = SchedulingRecord(
                ease_factor=result.ease_factor,
                repetitions=result.repetitions,
                interval_days=self.config.graduation_interval,
                due_date=days_from(now, self.config.graduation_interval),
            )
            return Transition(
                outcome=Outcome.GRADUATE, card=self._to_review(card, update), update=update
            )

        return Transition(outcome=Outcome.ADVANCE, card=self._to_step(card, next_step, now))

    def _rate_review(self, card: SessionCard, quality: int, now: datetime) -> Transition:
        record = card.record
        result = compute_interval(
            quality,
            record.repetitions,
            record.ease_factor,
            record.interval_days,
            self.config,
        )

        if quality >= PASSING_QUALITY:
            update = SchedulingRecord(
                ease_factor=result.ease_factor,
                repetitions=result.repetitions,
                interval_days=result.interval,
                due_date=days_from(now, result.interval),
            )
            return Transition(
                outcome=Outcome.REVIEW_PASS, card=self._to_review(card, update), update=update
            )

        # Lapse: the reset is written explicitly, ease factor carried forward
        update = SchedulingRecord(
            ease_factor=result.ease_factor,
            repetitions=0,
            interval_days=0,
            due_date=now,
        )
        demoted = replace(card, record=update)
        return Transition(outcome=Outcome.LAPSE, card=self._to_step(demoted, 0, now), update=update)

    # =========================================================================
    # State Helpers
    # =========================================================================

    def _to_step(self, card: SessionCard, step: int, now: datetime) -> SessionCard:
        return card.with_overlay(
            is_learning=True,
            learning_step=step,
            next_review_time=minutes_from(now, self.config.learning_steps[step]),
        )

    def _to_review(self, card: SessionCard, update: SchedulingRecord) -> SessionCard:
        graduated = replace(card, record=update)
        return graduated.with_overlay(
            is_learning=False,
            learning_step=-1,
            next_review_time=update.due_date,
        )
