"""
Memoria Scheduler: SM-2 spaced repetition with learning steps.

Components:
- compute_interval: SM-2 interval calculation
- CardLearningState: per-card learning/review state machine
- SessionQueue: in-session ordering and re-admission
- PersistenceGateway: port implemented by the card store
"""

from .learning import CardLearningState, Outcome, Transition
from .models import (
    Card,
    DueCard,
    SchedulingRecord,
    SessionCard,
    SessionOverlay,
    SessionSummary,
    utc_now,
)
from .ports import PersistenceGateway
from .queue import QueueConfig, SessionQueue, SessionStatus
from .sm2 import (
    RATING_CHOICES,
    IntervalResult,
    RatingChoice,
    SchedulerConfig,
    compute_interval,
    describe_quality,
    validate_quality,
)

__all__ = [
    # SM-2
    "SchedulerConfig",
    "IntervalResult",
    "compute_interval",
    "describe_quality",
    "validate_quality",
    "RatingChoice",
    "RATING_CHOICES",
    # Models
    "Card",
    "DueCard",
    "SchedulingRecord",
    "SessionCard",
    "SessionOverlay",
    "SessionSummary",
    "utc_now",
    # State machine
    "CardLearningState",
    "Outcome",
    "Transition",
    # Session
    "PersistenceGateway",
    "QueueConfig",
    "SessionQueue",
    "SessionStatus",
]
