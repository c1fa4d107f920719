import pytest

from wordloop.application.config import WordloopConfig
from wordloop.application.factory import (
    build_mastery,
    build_scheduler,
    build_selection_flow,
    open_store,
)
from wordloop.application.scheduler import SessionState
from wordloop.domain.models import Decision, Quality, QuotaTier, StudyDirection
from wordloop.infrastructure.adapters.memory import InMemoryCardRecordRepository
from wordloop.infrastructure.adapters.sqlite_store import SqliteStore


@pytest.mark.asyncio
async def test_memory_backend(mock_home):
    store = await open_store(WordloopConfig(backend="memory"))

    assert isinstance(store.cards, InMemoryCardRecordRepository)
    store.close()


@pytest.mark.asyncio
async def test_sqlite_backend_shares_one_store(mock_home, tmp_path):
    config = WordloopConfig(database_path=tmp_path / "w.sqlite3")

    store = await open_store(config)
    try:
        assert isinstance(store.cards, SqliteStore)
        assert store.cards is store.ledger is store.selections
    finally:
        store.close()


@pytest.mark.asyncio
async def test_select_then_study_end_to_end(mock_home, tmp_path):
    config = WordloopConfig(
        database_path=tmp_path / "w.sqlite3", free_daily_limit=2, undo_capacity=2
    )
    store = await open_store(config)
    try:
        flow = build_selection_flow(config, store, [10, 11, 12], tier=QuotaTier.FREE)
        await flow.load()
        assert flow.undo_stack.capacity == 2

        await flow.decide(10, Decision.SELECT)
        await flow.decide(11, Decision.SELECT)
        blocked = await flow.decide(12, Decision.SELECT)
        assert not blocked.accepted
        await flow.decide(12, Decision.SKIP)
        assert flow.finished

        scheduler = build_scheduler(config, store, StudyDirection.TR_TO_EN)
        assert await scheduler.start() is SessionState.IN_SESSION
        assert sorted(scheduler.queue.cards) == [10, 11]

        while scheduler.state is SessionState.IN_SESSION:
            await scheduler.answer(Quality.EASY)

        assert scheduler.state is SessionState.COMPLETED
        assert scheduler.summary.studied == 4
        assert scheduler.summary.graduated == 2
        row = await store.ledger.get_session(scheduler.summary.session_id)
        assert row["studied"] == 4
    finally:
        store.close()


def test_mastery_rule_follows_config(mock_home):
    policy = build_mastery(WordloopConfig(mastery_repetitions=7))

    assert policy.min_repetitions == 7
    assert policy.min_interval_days == 30.0
