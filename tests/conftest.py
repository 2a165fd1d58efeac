"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from memoria.scheduling import (  # noqa: E402
    Card,
    DueCard,
    PersistenceGateway,
    SchedulerConfig,
    SchedulingRecord,
)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (use a SQLite file)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


START = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced session clock."""

    def __init__(self, start: datetime = START):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


class FakeGateway(PersistenceGateway):
    """In-memory gateway that records every write."""

    def __init__(self, due: list[DueCard] | None = None, extra_cards: list[Card] | None = None):
        self.due = list(due or [])
        self.extra_cards = list(extra_cards or [])
        self.writes: list[tuple[int, SchedulingRecord]] = []
        self.due_calls = 0
        self.fail_writes = False
        self.write_error: Exception | None = None

    async def get_due_cards(self, deck_id, now):
        self.due_calls += 1
        return [entry for entry in self.due if entry.record.is_due(now)]

    async def get_all_cards(self, deck_id):
        return [entry.card for entry in self.due] + self.extra_cards

    async def update_scheduling_record(self, card_id, record):
        if self.write_error is not None:
            raise self.write_error
        if self.fail_writes:
            return False
        self.writes.append((card_id, record))
        return True


@pytest.fixture
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def config():
    return SchedulerConfig()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_due_card():
    """Factory for DueCards with a given scheduling state."""

    def _make(
        card_id: int,
        repetitions: int = 0,
        interval_days: int = 0,
        ease_factor: float = 2.5,
        due_date: datetime = START,
        deck_id: int = 1,
    ) -> DueCard:
        return DueCard(
            card=Card(
                id=card_id,
                deck_id=deck_id,
                question=f"Question {card_id}?",
                answer=f"Answer {card_id}",
            ),
            record=SchedulingRecord(
                ease_factor=ease_factor,
                repetitions=repetitions,
                interval_days=interval_days,
                due_date=due_date,
            ),
        )

    return _make


@pytest.fixture
def make_gateway():
    def _make(due=None, extra_cards=None) -> FakeGateway:
        return FakeGateway(due=due, extra_cards=extra_cards)

    return _make


@pytest.fixture
def sample_pairs():
    """Provide sample question/answer pairs."""
    return [
        ("What is the OSI model?", "A 7-layer reference model for network communication"),
        ("Which layer handles routing?", "Network Layer (Layer 3)"),
        ("What does TCP stand for?", "Transmission Control Protocol"),
    ]
