"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import pytest
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add src to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from mnemonic.deck import new_card
from mnemonic.models import Card, CardState, CardType, MemoryState, Topic
from mnemonic.store import MemoryStore


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


NOW = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock for deterministic time."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def now():
    """Fixed reference time."""
    return NOW


@pytest.fixture
def clock():
    """Clock starting at NOW that tests can advance."""
    return FakeClock()


@pytest.fixture
def store():
    """Empty in-memory store."""
    return MemoryStore()


def make_card(
    card_id: str,
    topic_ids: list[str] | None = None,
    state: CardState = CardState.NEW,
    due: datetime | None = None,
    created: datetime = NOW - timedelta(days=30),
) -> Card:
    """Build a card in a given lifecycle state without going through reviews."""
    due = due or NOW - timedelta(hours=1)
    reviewed = state is not CardState.NEW
    memory = MemoryState(
        state=state,
        due=due,
        stability=3.0 if reviewed else 0.0,
        difficulty=5.0 if reviewed else 0.0,
        last_review=due - timedelta(days=3) if reviewed else None,
        review_count=2 if reviewed else 0,
        step=0 if state in (CardState.LEARNING, CardState.RELEARNING) else None,
    )
    return Card(
        id=card_id,
        type=CardType.BASIC,
        front=f"front {card_id}",
        back=f"back {card_id}",
        memory=memory,
        topic_ids=list(topic_ids if topic_ids is not None else ["t1"]),
        created_at=created,
        updated_at=created,
    )


def make_topic(topic_id: str, related: list[str] | None = None, parent_id: str | None = None, order: int = 0) -> Topic:
    return Topic(
        id=topic_id,
        name=topic_id.upper(),
        parent_id=parent_id,
        order=order,
        related_topic_ids=list(related or []),
    )


@pytest.fixture
def sample_card():
    """A brand-new basic card."""
    return new_card(CardType.BASIC, "What is 2 + 2?", "4", ["math"], now=NOW)
