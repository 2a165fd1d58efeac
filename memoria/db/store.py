"""
SQLite Card Store for Memoria.

Implements the scheduler's PersistenceGateway and the deck operations used
by the CLI:
- Due-card queries and atomic scheduling writes
- Deck creation, listing, reset and deletion
- Card creation with a default (immediately due) scheduling record

Database location: ~/.memoria/memoria.db (see memoria.config.Settings.database_url)
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone

from loguru import logger
from sqlalchemy import case, func, select
from sqlalchemy.exc import SQLAlchemyError

from memoria.db.database import create_db_engine, create_session_factory, init_db, session_scope
from memoria.db.models import CardModel, CardStudyData, DeckModel
from memoria.errors import DeckNotFoundError, PersistenceError
from memoria.scheduling.models import Card, DueCard, SchedulingRecord, utc_now
from memoria.scheduling.ports import PersistenceGateway
from memoria.scheduling.sm2 import SchedulerConfig

# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class Deck:
    """A deck as returned by the store."""

    id: int
    title: str
    created_at: datetime | None = None


@dataclass(frozen=True)
class DeckStats:
    """Due counts for a deck."""

    total_cards: int = 0
    due_cards: int = 0
    new_cards: int = 0  # Never answered correctly (repetitions == 0)
    review_cards: int = 0
    next_due_time: datetime | None = None  # Earliest due date still in the future


# =============================================================================
# Timestamp Helpers
# =============================================================================


def _to_db(value: datetime) -> datetime:
    """Aware (or naive UTC) datetime -> naive UTC for storage."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _from_db(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc)


# =============================================================================
# Card Store
# =============================================================================


class CardStore(PersistenceGateway):
    """
    SQLAlchemy-backed persistence for decks, cards and scheduling records.

    Every write runs in its own transaction, so scheduling updates are atomic
    per card and independent of one another.
    """

    def __init__(self, database_url: str, config: SchedulerConfig | None = None, echo: bool = False):
        """
        Initialize the card store.

        Args:
            database_url: SQLAlchemy URL (e.g. sqlite:///~/.memoria/memoria.db)
            config: Scheduler configuration used for new-card defaults
            echo: Log emitted SQL
        """
        self.config = config or SchedulerConfig()
        self.engine = create_db_engine(database_url, echo=echo)
        self._sessions = create_session_factory(self.engine)
        init_db(self.engine)

        logger.info(f"CardStore initialized at {self.engine.url}")

    def close(self) -> None:
        self.engine.dispose()

    # =========================================================================
    # Gateway Operations
    # =========================================================================

    async def get_due_cards(self, deck_id: int, now: datetime) -> list[DueCard]:
        """Cards in a deck due at or before now, earliest first."""
        stmt = (
            select(CardModel, CardStudyData)
            .join(CardStudyData, CardStudyData.card_id == CardModel.id)
            .where(CardModel.deck_id == deck_id, CardStudyData.due_date <= _to_db(now))
            .order_by(CardStudyData.due_date.asc(), CardModel.id.asc())
        )

        try:
            with session_scope(self._sessions) as session:
                rows = session.execute(stmt).all()
                due = [DueCard(card=_card(card), record=_record(data)) for card, data in rows]
        except SQLAlchemyError as e:
            logger.error(f"Failed to get due cards for deck {deck_id}: {e}")
            raise PersistenceError(f"Failed to load due cards for deck {deck_id}") from e

        logger.debug(f"Found {len(due)} due cards in deck {deck_id}")
        return due

    async def get_all_cards(self, deck_id: int) -> list[Card]:
        return self.list_cards(deck_id)

    async def update_scheduling_record(self, card_id: int, record: SchedulingRecord) -> bool:
        """Replace a card's scheduling record in a single transaction."""
        try:
            with session_scope(self._sessions) as session:
                data = session.get(CardStudyData, card_id)
                if data is None:
                    logger.warning(f"No study data for card {card_id}")
                    return False

                data.ease_factor = record.ease_factor
                data.repetitions = record.repetitions
                data.interval_days = record.interval_days
                data.due_date = _to_db(record.due_date)
        except SQLAlchemyError as e:
            logger.error(f"Failed to update card {card_id}: {e}")
            raise PersistenceError(f"Failed to save scheduling data for card {card_id}", card_id=card_id) from e

        logger.debug(
            f"Saved card {card_id}: ef={record.ease_factor:.2f}, reps={record.repetitions}, "
            f"interval={record.interval_days}d"
        )
        return True

    # =========================================================================
    # Deck Operations
    # =========================================================================

    def create_deck(self, title: str) -> Deck:
        with session_scope(self._sessions) as session:
            deck = DeckModel(title=title)
            session.add(deck)
            session.flush()
            result = Deck(id=deck.id, title=deck.title, created_at=_from_db(deck.created_at))

        logger.info(f"Created deck {result.id}: {title}")
        return result

    def get_deck(self, deck_id: int) -> Deck | None:
        with session_scope(self._sessions) as session:
            deck = session.get(DeckModel, deck_id)
            if deck is None:
                return None
            return Deck(id=deck.id, title=deck.title, created_at=_from_db(deck.created_at))

    def list_decks(self, now: datetime | None = None) -> list[tuple[Deck, DeckStats]]:
        """All decks with their due counts, oldest first."""
        with session_scope(self._sessions) as session:
            decks = session.scalars(select(DeckModel).order_by(DeckModel.created_at, DeckModel.id)).all()
            summaries = [
                Deck(id=deck.id, title=deck.title, created_at=_from_db(deck.created_at))
                for deck in decks
            ]

        return [(deck, self.get_deck_stats(deck.id, now)) for deck in summaries]

    def delete_deck(self, deck_id: int) -> None:
        """Delete a deck together with its cards and scheduling records."""
        with session_scope(self._sessions) as session:
            deck = session.get(DeckModel, deck_id)
            if deck is None:
                raise DeckNotFoundError(deck_id)
            session.delete(deck)

        logger.info(f"Deleted deck {deck_id}")

    def reset_deck(self, deck_id: int, now: datetime | None = None) -> int:
        """
        Make every card in a deck due now with default scheduling data.

        Returns:
            Number of cards reset
        """
        now = now or utc_now()
        with session_scope(self._sessions) as session:
            if session.get(DeckModel, deck_id) is None:
                raise DeckNotFoundError(deck_id)

            rows = session.scalars(
                select(CardStudyData)
                .join(CardModel, CardModel.id == CardStudyData.card_id)
                .where(CardModel.deck_id == deck_id)
            ).all()
            for data in rows:
                data.ease_factor = self.config.new_card_ease_factor
                data.repetitions = 0
                data.interval_days = 0
                data.due_date = _to_db(now)
            count = len(rows)

        logger.info(f"Reset {count} cards in deck {deck_id} to be due for study")
        return count

    def get_deck_stats(self, deck_id: int, now: datetime | None = None) -> DeckStats:
        now_db = _to_db(now or utc_now())
        stmt = (
            select(
                func.count(CardModel.id),
                func.count(case((CardStudyData.due_date <= now_db, 1))),
                func.count(case((CardStudyData.repetitions == 0, 1))),
                func.count(case((CardStudyData.repetitions > 0, 1))),
            )
            .join(CardStudyData, CardStudyData.card_id == CardModel.id)
            .where(CardModel.deck_id == deck_id)
        )

        with session_scope(self._sessions) as session:
            total, due, new, review = session.execute(stmt).one()

        return DeckStats(
            total_cards=total or 0,
            due_cards=due or 0,
            new_cards=new or 0,
            review_cards=review or 0,
            next_due_time=self.get_next_due_time(deck_id, now),
        )

    def get_next_due_time(self, deck_id: int, now: datetime | None = None) -> datetime | None:
        """Earliest due date in the deck that is still in the future."""
        stmt = (
            select(func.min(CardStudyData.due_date))
            .join(CardModel, CardModel.id == CardStudyData.card_id)
            .where(CardModel.deck_id == deck_id, CardStudyData.due_date > _to_db(now or utc_now()))
        )
        with session_scope(self._sessions) as session:
            return _from_db(session.scalar(stmt))

    # =========================================================================
    # Card Operations
    # =========================================================================

    def add_cards(
        self,
        deck_id: int,
        pairs: Iterable[tuple[str, str]],
        now: datetime | None = None,
    ) -> list[Card]:
        """
        Add question/answer pairs to a deck.

        Each card gets a default scheduling record and is due immediately.
        """
        default = SchedulingRecord.new(now or utc_now(), self.config)

        with session_scope(self._sessions) as session:
            if session.get(DeckModel, deck_id) is None:
                raise DeckNotFoundError(deck_id)

            models = []
            for question, answer in pairs:
                card = CardModel(deck_id=deck_id, question=question, answer=answer)
                card.study_data = CardStudyData(
                    ease_factor=default.ease_factor,
                    repetitions=default.repetitions,
                    interval_days=default.interval_days,
                    due_date=_to_db(default.due_date),
                )
                session.add(card)
                models.append(card)
            session.flush()
            cards = [_card(card) for card in models]

        logger.info(f"Added {len(cards)} cards to deck {deck_id}, all due immediately")
        return cards

    def list_cards(self, deck_id: int) -> list[Card]:
        stmt = select(CardModel).where(CardModel.deck_id == deck_id).order_by(CardModel.id)
        try:
            with session_scope(self._sessions) as session:
                return [_card(card) for card in session.scalars(stmt)]
        except SQLAlchemyError as e:
            logger.error(f"Failed to list cards for deck {deck_id}: {e}")
            raise PersistenceError(f"Failed to load cards for deck {deck_id}") from e

    def get_scheduling_record(self, card_id: int) -> SchedulingRecord | None:
        with session_scope(self._sessions) as session:
            data = session.get(CardStudyData, card_id)
            return _record(data) if data is not None else None


def _card(model: CardModel) -> Card:
    return Card(id=model.id, deck_id=model.deck_id, question=model.question, answer=model.answer)


def _record(data: CardStudyData) -> SchedulingRecord:
    return SchedulingRecord(
        ease_factor=data.ease_factor,
        repetitions=data.repetitions,
        interval_days=data.interval_days,
        due_date=_from_db(data.due_date),
    )
