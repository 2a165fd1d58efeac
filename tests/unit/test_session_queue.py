"""
Tests for SessionQueue.

Run with: pytest tests/unit/test_session_queue.py -v
"""

from datetime import timedelta

import pytest

from memoria.errors import PersistenceError, ValidationError
from memoria.scheduling import Outcome, QueueConfig, SessionQueue

from conftest import START, FakeGateway

NO_WAIT = QueueConfig(due_retry_delay=0, due_retry_attempts=2)


@pytest.fixture
def new_deck(make_due_card, make_gateway):
    """Gateway holding three brand-new cards, all due at the session start."""
    return make_gateway(due=[make_due_card(1), make_due_card(2), make_due_card(3)])


@pytest.fixture
def make_queue(clock):
    def _make(gateway, **kwargs) -> SessionQueue:
        kwargs.setdefault("queue_config", NO_WAIT)
        return SessionQueue(gateway, deck_id=1, clock=clock, **kwargs)

    return _make


# =============================================================================
# Loading
# =============================================================================


class TestLoad:
    @pytest.mark.asyncio
    async def test_loads_due_cards_in_store_order(self, new_deck, make_queue):
        queue = make_queue(new_deck)

        loaded = await queue.load()

        assert loaded == 3
        assert queue.is_loaded
        assert queue.active_count == 3
        assert [card.id for card in queue.available()] == [1, 2, 3]
        assert queue.summary.cards_loaded == 3

    @pytest.mark.asyncio
    async def test_empty_deck_does_not_retry(self, make_gateway, make_queue):
        gateway = make_gateway()
        queue = make_queue(gateway)

        assert await queue.load() == 0

        assert queue.deck_empty
        assert gateway.due_calls == 1
        assert queue.is_complete

    @pytest.mark.asyncio
    async def test_nothing_due_retries_then_gives_up(self, make_due_card, make_gateway, make_queue):
        future = make_due_card(1, repetitions=2, interval_days=6, due_date=START + timedelta(days=3))
        gateway = make_gateway(due=[future])
        queue = make_queue(gateway)

        assert await queue.load() == 0

        assert not queue.deck_empty
        assert gateway.due_calls == 1 + NO_WAIT.due_retry_attempts
        assert queue.status().complete

    @pytest.mark.asyncio
    async def test_retry_picks_up_late_due_set(self, make_due_card, make_queue):
        class LateGateway(FakeGateway):
            async def get_due_cards(self, deck_id, now):
                self.due_calls += 1
                return [] if self.due_calls == 1 else list(self.due)

        gateway = LateGateway(due=[make_due_card(1)])
        queue = make_queue(gateway)

        assert await queue.load() == 1
        assert gateway.due_calls == 2

    @pytest.mark.asyncio
    async def test_learning_and_review_cards_start_available(self, make_due_card, make_gateway, make_queue):
        gateway = make_gateway(
            due=[make_due_card(1), make_due_card(2, repetitions=3, interval_days=15)]
        )
        queue = make_queue(gateway)
        await queue.load()

        new, review = queue.available()

        assert new.is_learning and new.learning_step == 0
        assert not review.is_learning and review.learning_step == -1


# =============================================================================
# Selection
# =============================================================================


class TestSelection:
    @pytest.mark.asyncio
    async def test_ties_break_by_load_order(self, make_due_card, make_gateway, make_queue):
        gateway = make_gateway(due=[make_due_card(9), make_due_card(4)])
        queue = make_queue(gateway)
        await queue.load()

        assert queue.present().id == 9

    @pytest.mark.asyncio
    async def test_retried_cards_keep_load_order(self, new_deck, make_queue, clock):
        queue = make_queue(new_deck)
        await queue.load()

        for _ in range(3):
            queue.present()
            await queue.rate(0)

        clock.advance(minutes=1)

        assert [card.id for card in queue.available()] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_present_is_stable_until_rated(self, new_deck, make_queue):
        queue = make_queue(new_deck)
        await queue.load()

        assert queue.present().id == 1
        assert queue.current().id == 1

    @pytest.mark.asyncio
    async def test_get_finds_active_and_retired(self, new_deck, make_queue):
        queue = make_queue(new_deck)
        await queue.load()
        queue.present()
        await queue.rate(5)

        assert queue.get(1) is not None
        assert queue.get(2) is not None
        assert queue.get(99) is None


# =============================================================================
# Rating
# =============================================================================


class TestRating:
    @pytest.mark.asyncio
    async def test_three_new_cards(self, new_deck, make_queue, clock):
        queue = make_queue(new_deck)
        await queue.load()

        # A: Good -> second learning step
        assert queue.present().id == 1
        advance = await queue.rate(4)
        assert advance.outcome == Outcome.ADVANCE
        assert advance.card.next_review_time == START + timedelta(minutes=10)

        # B: Easy -> leaves the session with a 4-day interval
        assert queue.present().id == 2
        easy = await queue.rate(5)
        assert easy.outcome == Outcome.EASY
        assert new_deck.writes == [(2, easy.update)]
        assert easy.update.interval_days == 4
        assert easy.update.due_date == START + timedelta(days=4)

        # C: Again -> back in one minute
        assert queue.present().id == 3
        retry = await queue.rate(0)
        assert retry.outcome == Outcome.RETRY
        assert retry.card.next_review_time == START + timedelta(minutes=1)

        status = queue.status()
        assert (status.available, status.pending, status.retired) == (0, 2, 1)
        assert status.waiting
        assert status.next_available_at == START + timedelta(minutes=1)
        assert queue.present() is None

        clock.advance(minutes=1)
        assert queue.present().id == 3

        clock.advance(minutes=9)
        assert [card.id for card in queue.available()] == [3, 1]

    @pytest.mark.asyncio
    async def test_learning_steps_are_not_persisted(self, new_deck, make_queue):
        queue = make_queue(new_deck)
        await queue.load()

        queue.present()
        await queue.rate(4)
        queue.present()
        await queue.rate(0)

        assert new_deck.writes == []

    @pytest.mark.asyncio
    async def test_rate_without_present_uses_current_card(self, new_deck, make_queue):
        queue = make_queue(new_deck)
        await queue.load()

        transition = await queue.rate(4)

        assert transition.card.id == 1

    @pytest.mark.asyncio
    async def test_no_card_available(self, make_gateway, make_queue):
        queue = make_queue(make_gateway())
        await queue.load()

        with pytest.raises(ValidationError):
            await queue.rate(4)

    @pytest.mark.asyncio
    async def test_invalid_quality_changes_nothing(self, new_deck, make_queue):
        queue = make_queue(new_deck)
        await queue.load()
        before = queue.present()

        with pytest.raises(ValidationError):
            await queue.rate(7)

        assert queue.get(before.id) == before
        assert queue.summary.cards_studied == 0

    @pytest.mark.asyncio
    async def test_rejected_write_leaves_card_unchanged(self, new_deck, make_queue):
        queue = make_queue(new_deck)
        await queue.load()
        before = queue.present()
        new_deck.fail_writes = True

        with pytest.raises(PersistenceError) as exc_info:
            await queue.rate(5)

        assert exc_info.value.card_id == before.id
        assert queue.get(before.id) == before
        assert queue.active_count == 3
        assert queue.summary.cards_studied == 0

        # The queue stays usable once the store recovers
        new_deck.fail_writes = False
        transition = await queue.rate(5)
        assert transition.outcome == Outcome.EASY
        assert queue.active_count == 2

    @pytest.mark.asyncio
    async def test_store_error_aborts_only_that_rating(self, make_due_card, make_gateway, make_queue):
        gateway = make_gateway(due=[make_due_card(1, repetitions=3, interval_days=10), make_due_card(2)])
        queue = make_queue(gateway)
        await queue.load()
        before = queue.present()
        gateway.write_error = PersistenceError("database is locked", card_id=before.id)

        with pytest.raises(PersistenceError) as exc_info:
            await queue.rate(0)

        assert exc_info.value.card_id == before.id
        assert queue.get(before.id) == before
        assert not queue.get(before.id).is_learning
        assert queue.summary.cards_studied == 0
        assert gateway.writes == []

        # The same card can be rated again once the store recovers
        gateway.write_error = None
        lapse = await queue.rate(0)
        assert lapse.outcome == Outcome.LAPSE
        assert lapse.card.id == before.id
        assert gateway.writes == [(before.id, lapse.update)]

    @pytest.mark.asyncio
    async def test_review_pass_retires_card(self, make_due_card, make_gateway, make_queue):
        gateway = make_gateway(due=[make_due_card(1, repetitions=2, interval_days=6)])
        queue = make_queue(gateway)
        await queue.load()

        transition = await queue.rate(4)

        assert transition.outcome == Outcome.REVIEW_PASS
        assert transition.update.interval_days == 15
        assert queue.is_complete

    @pytest.mark.asyncio
    async def test_lapse_relearns_and_graduates(self, make_due_card, make_gateway, make_queue, clock):
        gateway = make_gateway(due=[make_due_card(1, repetitions=3, interval_days=10)])
        queue = make_queue(gateway)
        await queue.load()

        lapse = await queue.rate(1)
        assert lapse.outcome == Outcome.LAPSE
        assert gateway.writes[0][1].repetitions == 0
        assert gateway.writes[0][1].interval_days == 0
        assert queue.status().pending == 1
        assert not queue.is_complete

        clock.advance(minutes=1)
        assert (await queue.rate(4)).outcome == Outcome.ADVANCE
        clock.advance(minutes=10)
        graduate = await queue.rate(4)

        assert graduate.outcome == Outcome.GRADUATE
        assert graduate.update.interval_days == 1
        assert len(gateway.writes) == 2
        assert queue.is_complete

    @pytest.mark.asyncio
    async def test_summary_counts(self, new_deck, make_queue):
        queue = make_queue(new_deck)
        await queue.load()

        await queue.rate(5)
        await queue.rate(0)
        await queue.rate(3)

        summary = queue.summary
        assert summary.cards_studied == 3
        assert summary.cards_correct == 2
        assert summary.cards_incorrect == 1
        assert summary.graduated == [1]
        assert summary.accuracy == pytest.approx(2 / 3)
