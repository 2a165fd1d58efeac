"""
Exception hierarchy for the Memoria scheduler.

- ValidationError: caller contract violations (bad rating, nothing to rate)
- PersistenceError: the card store is unavailable or a write failed
"""

from __future__ import annotations


class MemoriaError(Exception):
    """Base class for all scheduler errors."""

    pass


class ValidationError(MemoriaError):
    """Raised when a caller passes input outside the scheduler's domain."""

    pass


class PersistenceError(MemoriaError):
    """Raised when a scheduling record could not be read or written."""

    def __init__(self, message: str, card_id: int | None = None):
        super().__init__(message)
        self.card_id = card_id


class DeckNotFoundError(ValidationError):
    """Raised when a deck id does not exist in the store."""

    def __init__(self, deck_id: int):
        super().__init__(f"Deck {deck_id} not found")
        self.deck_id = deck_id
