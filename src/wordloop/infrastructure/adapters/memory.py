"""
In-memory store adapters.

Dict-backed implementations of the persistence ports, used by tests and by
applications that keep their own storage and only need the scheduler core.
"""

import asyncio
import logging
from datetime import datetime, timezone
from itertools import count

from wordloop.application.id_service import generate_session_id
from wordloop.domain.errors import PersistenceFailure
from wordloop.domain.models import (
    CardProgress,
    CardSummary,
    Decision,
    DecisionRecord,
    SessionKind,
    StudyDirection,
)
from wordloop.domain.ports import CardRecordRepository, SelectionRepository, SessionLedger
from wordloop.infrastructure.utils.locks import KeyedLocks

logger = logging.getLogger(__name__)


def due_order(progress: CardProgress) -> tuple:
    """Learning cards by session position (unplaced last), then reviews oldest first."""
    if progress.learning_phase:
        position = progress.session_position
        return (0, position is None, position or 0, progress.next_review_at)
    return (1, False, 0, progress.next_review_at)


class InMemoryCardRecordRepository(CardRecordRepository):
    """Keeps CardProgress records in a dict keyed by (card_id, direction)."""

    def __init__(self, records: list[CardProgress] | None = None):
        self._records: dict[tuple[int, StudyDirection], CardProgress] = {}
        self._locks = KeyedLocks()
        for progress in records or []:
            self._records[progress.key] = progress

    def __len__(self) -> int:
        return len(self._records)

    def all(self) -> list[CardProgress]:
        return list(self._records.values())

    async def get_progress(
        self, card_id: int, direction: StudyDirection
    ) -> CardProgress | None:
        return self._records.get((card_id, direction))

    async def upsert_progress(self, progress: CardProgress) -> None:
        async with self._locks.hold(progress.key):
            # Yield so writers on other keys can interleave
            await asyncio.sleep(0)
            self._records[progress.key] = progress

    async def query_due(
        self,
        direction: StudyDirection,
        limit: int,
        now: datetime | None = None,
    ) -> list[CardSummary]:
        now = now or datetime.now(timezone.utc)
        due = [
            p for p in self._records.values() if p.direction == direction and p.is_due(now)
        ]
        due.sort(key=due_order)
        return [p.summary() for p in due[:limit]]

    async def delete_progress(
        self, card_id: int, direction: StudyDirection | None = None
    ) -> None:
        keys = [
            k for k in self._records if k[0] == card_id and direction in (None, k[1])
        ]
        for key in keys:
            async with self._locks.hold(key):
                self._records.pop(key, None)


class InMemorySessionLedger(SessionLedger):
    """Records sessions as plain dicts."""

    def __init__(self):
        self.sessions: dict[str, dict] = {}

    async def start_session(self, kind: SessionKind) -> str:
        session_id = generate_session_id()
        self.sessions[session_id] = {
            "kind": kind,
            "started_at": datetime.now(timezone.utc),
            "ended_at": None,
            "studied": 0,
            "correct": 0,
        }
        return session_id

    async def end_session(self, session_id: str, studied: int, correct: int) -> None:
        session = self.sessions.get(session_id)
        if session is None:
            raise PersistenceFailure("end_session", KeyError(session_id))
        session.update(
            ended_at=datetime.now(timezone.utc), studied=studied, correct=correct
        )


class InMemorySelectionRepository(SelectionRepository):
    """Keeps the latest decision per card, in decision order."""

    def __init__(self):
        self._decisions: dict[int, tuple[Decision, datetime, int]] = {}
        self._seq = count()

    def decision_for(self, card_id: int) -> Decision | None:
        entry = self._decisions.get(card_id)
        return entry[0] if entry else None

    async def save_decision(
        self, card_id: int, decision: Decision, decided_at: datetime | None = None
    ) -> None:
        decided_at = decided_at or datetime.now(timezone.utc)
        self._decisions[card_id] = (decision, decided_at, next(self._seq))

    async def get_decision(self, card_id: int) -> DecisionRecord | None:
        entry = self._decisions.get(card_id)
        if entry is None:
            return None
        return DecisionRecord(card_id=card_id, decision=entry[0], decided_at=entry[1])

    async def delete_decision(self, card_id: int) -> None:
        self._decisions.pop(card_id, None)

    async def selected_card_ids(self) -> list[int]:
        selected = [
            (decided_at, seq, card_id)
            for card_id, (decision, decided_at, seq) in self._decisions.items()
            if decision is Decision.SELECT
        ]
        return [card_id for _, _, card_id in sorted(selected)]

    async def count_selected_since(self, since: datetime) -> int:
        return sum(
            1
            for decision, decided_at, _ in self._decisions.values()
            if decision is Decision.SELECT and decided_at >= since
        )
