import os
from datetime import datetime, timedelta, timezone

import pytest

from wordloop.application.interval_engine import IntervalEngine
from wordloop.domain.models import CardProgress, StudyDirection
from wordloop.infrastructure.adapters.memory import (
    InMemoryCardRecordRepository,
    InMemorySelectionRepository,
    InMemorySessionLedger,
)

NOW = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def learning_card(card_id: int, position: int | None = None, **kwargs) -> CardProgress:
    return CardProgress(
        card_id=card_id,
        direction=kwargs.pop("direction", StudyDirection.EN_TO_TR),
        next_review_at=kwargs.pop("next_review_at", NOW),
        session_position=position,
        **kwargs,
    )


def review_card(card_id: int, **kwargs) -> CardProgress:
    kwargs.setdefault("repetitions", 2)
    kwargs.setdefault("interval_days", 1.0)
    kwargs.setdefault("next_review_at", NOW - timedelta(hours=1))
    return CardProgress(
        card_id=card_id,
        direction=kwargs.pop("direction", StudyDirection.EN_TO_TR),
        learning_phase=False,
        **kwargs,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine():
    return IntervalEngine()


@pytest.fixture
def repo():
    return InMemoryCardRecordRepository()


@pytest.fixture
def ledger():
    return InMemorySessionLedger()


@pytest.fixture
def selections():
    return InMemorySelectionRepository()


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config files
    monkeypatch.setenv("HOME", str(home))
    for key in list(os.environ):
        if key.startswith("WORDLOOP_"):
            monkeypatch.delenv(key)
    return home


@pytest.fixture
def make_learning():
    return learning_card


@pytest.fixture
def make_review():
    return review_card
