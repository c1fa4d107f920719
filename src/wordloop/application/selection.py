"""
Swipe-based word selection.

Each candidate word is either selected for study or skipped. Selections count
against a daily quota. The last few decisions can be undone, newest first;
once candidates run out, a one-time preparation pass makes sure every
selected word has progress records in both study directions.
"""

import asyncio
import logging
from collections import deque
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from wordloop.domain import constants as c
from wordloop.domain.errors import PersistenceFailure
from wordloop.domain.models import Decision, QuotaTier, StudyDirection, UndoAction
from wordloop.domain.ports import CardRecordRepository, QuotaPolicy, SelectionRepository

from .interval_engine import IntervalEngine, utc_now

logger = logging.getLogger(__name__)


class DecisionStatus(str, Enum):
    ACCEPTED = "accepted"
    QUOTA_EXCEEDED = "quota_exceeded"
    NO_CANDIDATE = "no_candidate"  # all candidates already decided
    STALE = "stale"  # card is not the current candidate
    FAILED = "failed"  # decision could not be persisted
    BUSY = "busy"  # previous decision still saving


class UndoStatus(str, Enum):
    UNDONE = "undone"
    NOTHING_TO_UNDO = "nothing_to_undo"
    FAILED = "failed"
    BUSY = "busy"


@dataclass(frozen=True)
class DecisionOutcome:
    status: DecisionStatus
    card_id: int
    next_card_id: int | None = None
    finished: bool = False

    @property
    def accepted(self) -> bool:
        return self.status is DecisionStatus.ACCEPTED


@dataclass(frozen=True)
class SkipAllOutcome:
    status: DecisionStatus
    skipped: int = 0
    finished: bool = False


@dataclass(frozen=True)
class UndoOutcome:
    status: UndoStatus
    action: UndoAction | None = None
    current_card_id: int | None = None


class UndoStack:
    """
    Fixed-capacity LIFO of recent decisions.

    Pushing onto a full stack silently drops the oldest entry; that decision
    is then permanently committed.
    """

    def __init__(self, capacity: int = c.UNDO_CAPACITY):
        if capacity <= 0:
            raise ValueError("Undo capacity must be positive")
        self._items: deque[UndoAction] = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._items)

    @property
    def capacity(self) -> int:
        return self._items.maxlen

    def push(self, action: UndoAction) -> None:
        self._items.append(action)

    def pop(self) -> UndoAction | None:
        if not self._items:
            return None
        return self._items.pop()

    def peek(self) -> UndoAction | None:
        return self._items[-1] if self._items else None

    def items(self) -> list[UndoAction]:
        """Oldest first."""
        return list(self._items)


class SelectionFlow:
    """
    Walks a list of candidate words, one decision at a time.

    Depends on the SelectionRepository, CardRecordRepository and QuotaPolicy
    ports. Call ``load()`` once before deciding.
    """

    def __init__(
        self,
        candidates: Sequence[int],
        selections: SelectionRepository,
        progress_repo: CardRecordRepository,
        quota: QuotaPolicy,
        *,
        tier: QuotaTier = QuotaTier.FREE,
        engine: IntervalEngine | None = None,
        directions: Sequence[StudyDirection] = tuple(StudyDirection),
        undo_capacity: int = c.UNDO_CAPACITY,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.candidates: list[int] = list(candidates)
        self._selections = selections
        self._progress = progress_repo
        self._quota = quota
        self.tier = tier
        self._engine = engine or IntervalEngine()
        self.directions = tuple(directions)
        self._clock = clock
        self._undo = UndoStack(undo_capacity)

        self._cursor = 0
        self.selected_today = 0
        self.selected_count = 0
        self.skipped_count = 0
        self._prepared = False
        self._lock = asyncio.Lock()
        # Progress keys this flow created, per card, removed again on undo
        self._seeded: dict[int, set[tuple[int, StudyDirection]]] = {}

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def current(self) -> int | None:
        if self.finished:
            return None
        return self.candidates[self._cursor]

    @property
    def finished(self) -> bool:
        return self._cursor >= len(self.candidates)

    @property
    def undo_stack(self) -> UndoStack:
        return self._undo

    @property
    def can_undo(self) -> bool:
        return len(self._undo) > 0

    @property
    def ceiling(self) -> int:
        return self._quota.ceiling(self.tier)

    @property
    def quota_left(self) -> int:
        return max(self.ceiling - self.selected_today, 0)

    async def load(self) -> None:
        """Read today's selection count from the quota policy."""
        self.selected_today = await self._quota.current_count(self.tier)
        logger.info(
            f"Selection loaded: {len(self.candidates)} candidates, "
            f"{self.selected_today}/{self.ceiling} selected today ({self.tier.value})"
        )

    async def decide(self, card_id: int, decision: Decision) -> DecisionOutcome:
        """
        Record SELECT or SKIP for the current candidate.

        A SELECT over the daily ceiling is refused with QUOTA_EXCEEDED and
        nothing is persisted; SKIP is never limited. A decision arriving while
        another is still being saved is refused with BUSY.
        """
        if self._lock.locked():
            return DecisionOutcome(
                status=DecisionStatus.BUSY, card_id=card_id, next_card_id=self.current
            )
        async with self._lock:
            return await self._decide_locked(card_id, decision)

    async def _decide_locked(self, card_id: int, decision: Decision) -> DecisionOutcome:
        if self.finished:
            return DecisionOutcome(status=DecisionStatus.NO_CANDIDATE, card_id=card_id, finished=True)
        if card_id != self.current:
            logger.warning(f"Decision for {card_id} ignored, current candidate is {self.current}")
            return DecisionOutcome(
                status=DecisionStatus.STALE, card_id=card_id, next_card_id=self.current
            )

        if decision is Decision.SELECT and self.selected_today >= self.ceiling:
            logger.info(f"Daily selection limit reached ({self.ceiling})")
            return DecisionOutcome(
                status=DecisionStatus.QUOTA_EXCEEDED, card_id=card_id, next_card_id=card_id
            )

        try:
            await self._record(card_id, decision)
        except PersistenceFailure as e:
            logger.error(f"Could not save {decision.value} for card {card_id}: {e}")
            return DecisionOutcome(status=DecisionStatus.FAILED, card_id=card_id, next_card_id=card_id)

        await self._prepare_if_finished()
        return DecisionOutcome(
            status=DecisionStatus.ACCEPTED,
            card_id=card_id,
            next_card_id=self.current,
            finished=self.finished,
        )

    async def skip_all(self) -> SkipAllOutcome:
        """
        Skip every remaining candidate.

        Each skip is an ordinary undo entry, so only the last ``undo_capacity``
        of them can be taken back. Skips saved before a persistence failure
        are kept.
        """
        if self._lock.locked():
            return SkipAllOutcome(status=DecisionStatus.BUSY)
        async with self._lock:
            if self.finished:
                return SkipAllOutcome(status=DecisionStatus.NO_CANDIDATE, finished=True)

            skipped = 0
            while not self.finished:
                card_id = self.current
                try:
                    await self._record(card_id, Decision.SKIP)
                except PersistenceFailure as e:
                    logger.error(f"Skip-all stopped at card {card_id}: {e}")
                    return SkipAllOutcome(status=DecisionStatus.FAILED, skipped=skipped)
                skipped += 1

            logger.info(f"Skipped all {skipped} remaining candidates")
            await self._prepare_if_finished()
            return SkipAllOutcome(status=DecisionStatus.ACCEPTED, skipped=skipped, finished=True)

    async def undo(self) -> UndoOutcome:
        """
        Revert the most recent decision and step back to its candidate.

        Progress records created for the card by this flow are deleted and the
        decision it replaced, if any, is restored. No-op when the stack is
        empty. On a persistence failure the action is kept on the stack.
        """
        if self._lock.locked():
            return UndoOutcome(status=UndoStatus.BUSY, current_card_id=self.current)
        async with self._lock:
            return await self._undo_locked()

    async def _undo_locked(self) -> UndoOutcome:
        action = self._undo.pop()
        if action is None:
            return UndoOutcome(status=UndoStatus.NOTHING_TO_UNDO, current_card_id=self.current)

        created = self._seeded.get(action.card_id, set())
        try:
            for card_id, direction in sorted(created):
                await self._progress.delete_progress(card_id, direction)
                created.discard((card_id, direction))
            if action.previous is None:
                await self._selections.delete_decision(action.card_id)
            else:
                await self._selections.save_decision(
                    action.card_id, action.previous.decision, action.previous.decided_at
                )
        except PersistenceFailure as e:
            logger.error(f"Undo failed for card {action.card_id}: {e}")
            self._undo.push(action)
            return UndoOutcome(status=UndoStatus.FAILED, action=action, current_card_id=self.current)

        self._seeded.pop(action.card_id, None)
        if action.decision is Decision.SELECT:
            self.selected_count = max(self.selected_count - 1, 0)
            self.selected_today = max(self.selected_today - 1, 0)
        else:
            self.skipped_count = max(self.skipped_count - 1, 0)

        self._cursor = max(self._cursor - 1, 0)
        self._prepared = False
        logger.info(f"Undid {action.decision.value} for card {action.card_id}")
        return UndoOutcome(status=UndoStatus.UNDONE, action=action, current_card_id=self.current)

    async def prepare_session(self) -> int:
        """
        Make sure every selected word has progress in each direction.

        Idempotent: existing records are left alone.

        Returns:
            Number of progress records created.
        """
        created = 0
        selected = await self._selections.selected_card_ids()
        for card_id in selected:
            created += await self._seed(card_id)
        self._prepared = True
        logger.info(f"Study session prepared: {created} new progress records")
        return created

    async def _record(self, card_id: int, decision: Decision) -> None:
        """Persist one decision and advance; raises before any state changes."""
        previous = await self._selections.get_decision(card_id)
        await self._selections.save_decision(card_id, decision)

        if decision is Decision.SELECT:
            await self._seed_inline(card_id)
            self.selected_count += 1
            self.selected_today += 1
        else:
            self.skipped_count += 1

        self._undo.push(UndoAction(card_id=card_id, decision=decision, previous=previous))
        self._cursor += 1

    async def _prepare_if_finished(self) -> None:
        if not self.finished or self._prepared:
            return
        try:
            await self.prepare_session()
        except PersistenceFailure as e:
            logger.error(f"Preparing study session failed: {e}")

    async def _seed_inline(self, card_id: int) -> None:
        try:
            await self._seed(card_id)
        except PersistenceFailure as e:
            # prepare_session() backfills anything missing
            logger.warning(f"Seeding progress for card {card_id} deferred: {e}")

    async def _seed(self, card_id: int) -> int:
        created = 0
        now = self._clock()
        for direction in self.directions:
            if await self._progress.get_progress(card_id, direction) is not None:
                continue
            await self._progress.upsert_progress(
                self._engine.initial_progress(card_id, direction, now=now)
            )
            self._seeded.setdefault(card_id, set()).add((card_id, direction))
            created += 1
        return created
