"""
Persistence port for the scheduler.

The session queue depends on this abstraction, not on a concrete store.
Implementations:
    - CardStore: SQLAlchemy/SQLite store (memoria.db.store)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from .models import Card, DueCard, SchedulingRecord


class PersistenceGateway(ABC):
    """Durable source of due cards and sink for scheduling updates."""

    @abstractmethod
    async def get_due_cards(self, deck_id: int, now: datetime) -> list[DueCard]:
        """
        Fetch cards whose due_date is at or before now.

        Args:
            deck_id: Deck to study.
            now: Cut-off timestamp.

        Returns:
            DueCards ordered by due_date ascending.
        """
        pass

    @abstractmethod
    async def get_all_cards(self, deck_id: int) -> list[Card]:
        """
        Fetch every card in a deck.

        Only used to tell an empty deck apart from a deck with nothing due.
        """
        pass

    @abstractmethod
    async def update_scheduling_record(self, card_id: int, record: SchedulingRecord) -> bool:
        """
        Atomically replace one card's scheduling record.

        Returns:
            True on success, False if the card could not be updated.
        """
        pass
