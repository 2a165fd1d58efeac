"""
Domain models for the scheduler.

Plain data classes with no I/O. A SessionCard pairs the last persisted
SchedulingRecord with a session-local overlay; only the record survives a
restart.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone

from .sm2 import SchedulerConfig


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


# =============================================================================
# Persisted Models
# =============================================================================


@dataclass(frozen=True)
class Card:
    """Immutable flashcard content."""

    id: int
    deck_id: int
    question: str
    answer: str


@dataclass(frozen=True)
class SchedulingRecord:
    """
    SM-2 scheduling state stored alongside each card.

    Attributes:
        ease_factor: SM-2 multiplier (never below the configured minimum).
        repetitions: Consecutive correct Review answers.
        interval_days: Current long-term interval.
        due_date: When the card next enters the due set.
    """

    ease_factor: float
    repetitions: int
    interval_days: int
    due_date: datetime

    @classmethod
    def new(cls, now: datetime | None = None, config: SchedulerConfig | None = None) -> SchedulingRecord:
        """Default record for a freshly created card (due immediately)."""
        config = config or SchedulerConfig()
        return cls(
            ease_factor=config.new_card_ease_factor,
            repetitions=0,
            interval_days=0,
            due_date=now or utc_now(),
        )

    def is_due(self, now: datetime) -> bool:
        return self.due_date <= now


@dataclass(frozen=True)
class DueCard:
    """A card returned by the store together with its scheduling record."""

    card: Card
    record: SchedulingRecord


# =============================================================================
# Session Models
# =============================================================================


@dataclass(frozen=True)
class SessionOverlay:
    """Session-local learning state. Never written to the store."""

    is_learning: bool
    learning_step: int  # -1 outside the learning phase
    next_review_time: datetime


@dataclass(frozen=True)
class SessionCard:
    """A card as seen by one study session."""

    card: Card
    record: SchedulingRecord
    overlay: SessionOverlay
    load_index: int = 0  # Position in the store's due order, used for tie-breaks

    @property
    def id(self) -> int:
        return self.card.id

    @property
    def is_learning(self) -> bool:
        return self.overlay.is_learning

    @property
    def learning_step(self) -> int:
        return self.overlay.learning_step

    @property
    def next_review_time(self) -> datetime:
        return self.overlay.next_review_time

    def is_available(self, now: datetime) -> bool:
        return self.overlay.next_review_time <= now

    def with_overlay(self, **changes) -> SessionCard:
        return replace(self, overlay=replace(self.overlay, **changes))


@dataclass
class SessionSummary:
    """Bookkeeping for a finished (or abandoned) session."""

    deck_id: int
    started_at: datetime
    cards_loaded: int = 0
    cards_studied: int = 0
    cards_correct: int = 0
    cards_incorrect: int = 0
    graduated: list[int] = field(default_factory=list)

    @property
    def accuracy(self) -> float:
        if self.cards_studied == 0:
            return 0.0
        return self.cards_correct / self.cards_studied


def minutes_from(now: datetime, minutes: int) -> datetime:
    return now + timedelta(minutes=minutes)


def days_from(now: datetime, days: int) -> datetime:
    return now + timedelta(days=days)
