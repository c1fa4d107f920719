"""
Store Factory
Centralizes the logic for selecting store adapters and wiring services.
"""

from collections.abc import Sequence
from dataclasses import dataclass

from wordloop.application.config import WordloopConfig
from wordloop.application.interval_engine import IntervalEngine
from wordloop.application.mastery import MasteryPolicy
from wordloop.application.scheduler import StudyScheduler
from wordloop.application.selection import SelectionFlow
from wordloop.domain.models import QuotaTier, StudyDirection
from wordloop.domain.ports import (
    BreakpointHook,
    CardRecordRepository,
    QuotaPolicy,
    SelectionRepository,
    SessionLedger,
)
from wordloop.infrastructure.adapters.memory import (
    InMemoryCardRecordRepository,
    InMemorySelectionRepository,
    InMemorySessionLedger,
)
from wordloop.infrastructure.adapters.quota import DailySelectionQuota
from wordloop.infrastructure.adapters.sqlite_store import SqliteStore


@dataclass
class StoreBundle:
    """The three persistence ports, possibly backed by the same object."""

    cards: CardRecordRepository
    ledger: SessionLedger
    selections: SelectionRepository

    def close(self) -> None:
        for port in {id(p): p for p in (self.cards, self.ledger, self.selections)}.values():
            close = getattr(port, "close", None)
            if close is not None:
                close()


async def open_store(config: WordloopConfig) -> StoreBundle:
    """
    Returns the store implementation selected by ``config.backend``.
    """
    if config.backend == "memory":
        return StoreBundle(
            cards=InMemoryCardRecordRepository(),
            ledger=InMemorySessionLedger(),
            selections=InMemorySelectionRepository(),
        )

    store = SqliteStore(config.database_path)
    await store.open()
    return StoreBundle(cards=store, ledger=store, selections=store)


def build_engine(config: WordloopConfig) -> IntervalEngine:
    return IntervalEngine(config.interval_policy())


def build_mastery(config: WordloopConfig) -> MasteryPolicy:
    return config.mastery_policy()


def build_quota(config: WordloopConfig, store: StoreBundle) -> QuotaPolicy:
    return DailySelectionQuota(
        store.selections,
        free_limit=config.free_daily_limit,
        premium_limit=config.premium_daily_limit,
    )


def build_scheduler(
    config: WordloopConfig,
    store: StoreBundle,
    direction: StudyDirection,
    breakpoint_hook: BreakpointHook | None = None,
) -> StudyScheduler:
    return StudyScheduler(
        store.cards,
        store.ledger,
        direction,
        engine=build_engine(config),
        queue_policy=config.queue_policy(),
        breakpoint_hook=breakpoint_hook,
        session_limit=config.session_limit,
        checkpoint_every=config.checkpoint_every,
        mastery=build_mastery(config),
    )


def build_selection_flow(
    config: WordloopConfig,
    store: StoreBundle,
    candidates: Sequence[int],
    tier: QuotaTier = QuotaTier.FREE,
) -> SelectionFlow:
    return SelectionFlow(
        candidates,
        store.selections,
        store.cards,
        build_quota(config, store),
        tier=tier,
        engine=build_engine(config),
        undo_capacity=config.undo_capacity,
    )
