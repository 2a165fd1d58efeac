"""
Card Store Models.

SQLAlchemy models for decks, cards and their SM-2 study data:
- decks: named collections of cards
- cards: immutable question/answer content
- card_study_data: one scheduling record per card

Timestamps are stored as naive UTC.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class DeckModel(Base):
    """A deck of flashcards."""

    __tablename__ = "decks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    cards: Mapped[list[CardModel]] = relationship(
        back_populates="deck", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<DeckModel id={self.id} title={self.title!r}>"


class CardModel(Base):
    """Question/answer content of a card."""

    __tablename__ = "cards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    deck_id: Mapped[int] = mapped_column(
        ForeignKey("decks.id", ondelete="CASCADE"), nullable=False
    )
    question: Mapped[str] = mapped_column(Text, nullable=False)
    answer: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    deck: Mapped[DeckModel] = relationship(back_populates="cards")
    study_data: Mapped[CardStudyData] = relationship(
        back_populates="card", cascade="all, delete-orphan", uselist=False
    )

    __table_args__ = (Index("idx_cards_deck_id", "deck_id"),)

    def __repr__(self) -> str:
        return f"<CardModel id={self.id} deck={self.deck_id}>"


class CardStudyData(Base):
    """
    SM-2 scheduling record for a card.

    Created alongside the card with defaults (2.5, 0, 0, now) so new cards
    are due immediately.
    """

    __tablename__ = "card_study_data"

    card_id: Mapped[int] = mapped_column(
        ForeignKey("cards.id", ondelete="CASCADE"), primary_key=True
    )
    ease_factor: Mapped[float] = mapped_column(Float, default=2.5)
    repetitions: Mapped[int] = mapped_column(Integer, default=0)
    interval_days: Mapped[int] = mapped_column(Integer, default=0)
    due_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    card: Mapped[CardModel] = relationship(back_populates="study_data")

    __table_args__ = (Index("idx_card_study_data_due_date", "due_date"),)

    def __repr__(self) -> str:
        return (
            f"<CardStudyData card={self.card_id} ef={self.ease_factor:.2f} "
            f"reps={self.repetitions} ivl={self.interval_days}d>"
        )
