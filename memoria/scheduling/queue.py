"""
Session Queue.

Selects which card to present next during one study session:
- Loads the due set from the store (retrying briefly when nothing is due yet)
- Presents the earliest available card, ties broken by load order
- Runs each rating through the learning state machine
- Persists before committing any transition that requires it
- Re-admits retried and lapsed cards after their learning delay
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from loguru import logger

from memoria.errors import PersistenceError, ValidationError

from .learning import CardLearningState, Outcome, Transition
from .models import SchedulingRecord, SessionCard, SessionSummary, utc_now
from .ports import PersistenceGateway
from .sm2 import PASSING_QUALITY, SchedulerConfig, validate_quality


@dataclass
class QueueConfig:
    """Session loading options."""

    due_retry_delay: float = 1.0  # Seconds between due-set fetches
    due_retry_attempts: int = 3  # Extra fetches when the deck has cards but none due


@dataclass(frozen=True)
class SessionStatus:
    """Snapshot of the queue after a rating."""

    available: int  # Cards that can be presented right now
    pending: int  # Learning cards waiting out their delay
    retired: int  # Cards that left the session this time
    next_available_at: datetime | None

    @property
    def complete(self) -> bool:
        """True when nothing is available and nothing is waiting."""
        return self.available == 0 and self.pending == 0

    @property
    def waiting(self) -> bool:
        """True when the queue is only temporarily empty."""
        return self.available == 0 and self.pending > 0


class SessionQueue:
    """
    In-session ordering and re-admission of cards for one deck.

    Single-threaded: each rating (including its store write) completes
    before the next card is selected.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        deck_id: int,
        config: SchedulerConfig | None = None,
        queue_config: QueueConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Args:
            gateway: Store used for the due set and scheduling writes
            deck_id: Deck to study
            config: Scheduler configuration (defaults if None)
            queue_config: Loading options (defaults if None)
            clock: Source of the current time; injectable for tests
        """
        self.gateway = gateway
        self.deck_id = deck_id
        self.config = config or SchedulerConfig()
        self.queue_config = queue_config or QueueConfig()
        self.state = CardLearningState(self.config)
        self._clock = clock

        self._active: dict[int, SessionCard] = {}
        self._retired: dict[int, SessionCard] = {}
        self._presented_id: int | None = None
        self._loaded = False
        self.deck_empty = False
        self.summary = SessionSummary(deck_id=deck_id, started_at=clock())

    # =========================================================================
    # Loading
    # =========================================================================

    async def load(self) -> int:
        """
        Build the session from the store's due set.

        Returns:
            Number of cards loaded
        """
        now = self._clock()
        due = await self.gateway.get_due_cards(self.deck_id, now)

        if not due:
            all_cards = await self.gateway.get_all_cards(self.deck_id)
            if not all_cards:
                logger.info(f"Deck {self.deck_id} has no cards")
                self.deck_empty = True
            else:
                for attempt in range(1, self.queue_config.due_retry_attempts + 1):
                    logger.debug(
                        f"No due cards in deck {self.deck_id} "
                        f"({len(all_cards)} total), retry {attempt}"
                    )
                    await asyncio.sleep(self.queue_config.due_retry_delay)
                    now = self._clock()
                    due = await self.gateway.get_due_cards(self.deck_id, now)
                    if due:
                        break

        self._active = {
            entry.card.id: self.state.start(entry, now, load_index=index)
            for index, entry in enumerate(due)
        }
        self._retired = {}
        self._presented_id = None
        self._loaded = True
        self.summary = SessionSummary(deck_id=self.deck_id, started_at=now, cards_loaded=len(due))

        logger.info(f"Session loaded for deck {self.deck_id}: {len(due)} due cards")
        return len(due)

    # =========================================================================
    # Selection
    # =========================================================================

    def available(self, now: datetime | None = None) -> list[SessionCard]:
        """Cards eligible right now, in presentation order."""
        now = now or self._clock()
        eligible = [card for card in self._active.values() if card.is_available(now)]
        eligible.sort(key=lambda card: (card.next_review_time, card.load_index))
        return eligible

    def current(self, now: datetime | None = None) -> SessionCard | None:
        """The card that would be presented now, if any."""
        eligible = self.available(now)
        return eligible[0] if eligible else None

    def present(self, now: datetime | None = None) -> SessionCard | None:
        """Select the next card and remember it as the one being rated."""
        card = self.current(now)
        self._presented_id = card.id if card else None
        return card

    def get(self, card_id: int) -> SessionCard | None:
        return self._active.get(card_id) or self._retired.get(card_id)

    # =========================================================================
    # Rating
    # =========================================================================

    async def rate(self, quality: int) -> Transition:
        """
        Rate the presented card.

        Falls back to the current card when nothing was presented.

        Raises:
            ValidationError: Invalid quality or no card available
            PersistenceError: The store rejected the write; the card keeps
                its previous session state and can be rated again
        """
        quality = validate_quality(quality)
        now = self._clock()

        card = self._active.get(self._presented_id) if self._presented_id is not None else None
        if card is None:
            card = self.current(now)
        if card is None:
            raise ValidationError("No card is available to rate")

        transition = self.state.apply_rating(card, quality, now)

        if transition.update is not None:
            await self._persist(card.id, transition.update)

        self._commit(transition, quality)

        logger.debug(
            f"Card {card.id} rated {quality}: {transition.outcome.value}, "
            f"next at {transition.card.next_review_time.isoformat()}"
        )
        return transition

    async def _persist(self, card_id: int, record: SchedulingRecord) -> None:
        ok = await self.gateway.update_scheduling_record(card_id, record)
        if not ok:
            logger.warning(f"Scheduling write rejected for card {card_id}")
            raise PersistenceError(f"Failed to save scheduling data for card {card_id}", card_id=card_id)

    def _commit(self, transition: Transition, quality: int) -> None:
        card = transition.card

        if transition.outcome.leaves_session:
            self._active.pop(card.id, None)
            self._retired[card.id] = card
        else:
            self._active[card.id] = card

        self._presented_id = None

        self.summary.cards_studied += 1
        if quality >= PASSING_QUALITY:
            self.summary.cards_correct += 1
        else:
            self.summary.cards_incorrect += 1
        if transition.outcome in (Outcome.GRADUATE, Outcome.EASY):
            self.summary.graduated.append(card.id)

    # =========================================================================
    # Completion
    # =========================================================================

    def status(self, now: datetime | None = None) -> SessionStatus:
        """Recompute the available and pending sets."""
        now = now or self._clock()
        available = 0
        pending = 0
        next_available_at: datetime | None = None

        for card in self._active.values():
            if card.is_available(now):
                available += 1
                continue
            pending += 1
            if next_available_at is None or card.next_review_time < next_available_at:
                next_available_at = card.next_review_time

        return SessionStatus(
            available=available,
            pending=pending,
            retired=len(self._retired),
            next_available_at=next_available_at,
        )

    def now(self) -> datetime:
        """Current time on the session clock."""
        return self._clock()

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def is_complete(self) -> bool:
        return self._loaded and self.status().complete

    @property
    def active_count(self) -> int:
        return len(self._active)
