"""
Study scheduler: application layer orchestrator.

Drives one study session for one direction:

    IDLE -> LOADING -> (IN_SESSION | EMPTY | ERROR) -> COMPLETED

Each answer runs the interval engine, persists the new progress, then lets the
session queue reorder or evict the card. Every ``checkpoint_every`` answers
the breakpoint hook may pause the session until ``resume()``. When the queue
runs out, the original batch is re-read and any card still in the learning
phase is queued again; only an empty re-scan completes the session.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from wordloop.domain import constants as c
from wordloop.domain.errors import PersistenceFailure
from wordloop.domain.models import (
    BreakpointDecision,
    CardProgress,
    CardSummary,
    PreviewTexts,
    Quality,
    SessionKind,
    SessionSummary,
    StudyDirection,
)
from wordloop.domain.ports import BreakpointHook, CardRecordRepository, SessionLedger

from .interval_engine import IntervalEngine, utc_now
from .mastery import MasteryPolicy
from .session_queue import QueueMove, QueuePolicy, SessionQueue

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    IN_SESSION = "in_session"
    EMPTY = "empty"
    ERROR = "error"
    COMPLETED = "completed"


class AnswerStatus(str, Enum):
    ACCEPTED = "accepted"
    BUSY = "busy"  # previous answer still persisting
    PAUSED = "paused"  # waiting on the breakpoint hook
    NOT_IN_SESSION = "not_in_session"
    ABANDONED = "abandoned"  # session closed while the write was in flight


@dataclass(frozen=True)
class AnswerOutcome:
    """
    Result of submitting an answer.

    Attributes:
        status: Whether the answer was applied.
        card_id: The answered card, when one was current.
        progress: The card's new progress, when computed.
        move: How the queue changed, None if the card was passed over.
        persisted: False when the write failed and the card was passed over.
        paused: True when a checkpoint paused the session.
        state: Scheduler state after the answer.
        summary: Session aggregate, set once the session completed.
    """

    status: AnswerStatus
    state: SessionState
    card_id: int | None = None
    progress: CardProgress | None = None
    move: QueueMove | None = None
    persisted: bool = False
    paused: bool = False
    summary: SessionSummary | None = None

    @property
    def accepted(self) -> bool:
        return self.status is AnswerStatus.ACCEPTED


class StudyScheduler:
    """
    Orchestrates IntervalEngine and SessionQueue for one study session.

    Depends on the CardRecordRepository and SessionLedger ports. A single
    caller drives the scheduler; overlapping answers are rejected as BUSY.
    """

    def __init__(
        self,
        repository: CardRecordRepository,
        ledger: SessionLedger,
        direction: StudyDirection,
        *,
        engine: IntervalEngine | None = None,
        queue_policy: QueuePolicy | None = None,
        breakpoint_hook: BreakpointHook | None = None,
        mastery: MasteryPolicy | None = None,
        session_limit: int = c.DEFAULT_SESSION_LIMIT,
        checkpoint_every: int = c.DEFAULT_CHECKPOINT_EVERY,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Args:
            repository: Progress store (port).
            ledger: Session record store (port).
            direction: Direction studied in this session.
            engine: Interval engine; uses default policy if not provided.
            queue_policy: Reinsertion ratios; defaults if not provided.
            breakpoint_hook: Optional ad/break hook called at checkpoints.
            mastery: Optional rule marking long-interval review cards mastered.
            session_limit: Maximum cards pulled into the session.
            checkpoint_every: Answers between breakpoint hook calls.
            clock: Returns the current time; injectable for tests.
        """
        self._repo = repository
        self._ledger = ledger
        self.direction = direction
        self._engine = engine or IntervalEngine()
        self._queue_policy = queue_policy or QueuePolicy()
        self._hook = breakpoint_hook
        self._mastery = mastery
        self.session_limit = session_limit
        self.checkpoint_every = checkpoint_every
        self._clock = clock

        self._state = SessionState.IDLE
        self._queue: SessionQueue | None = None
        self._summary: SessionSummary | None = None
        self._error: PersistenceFailure | None = None
        self._answer_lock = asyncio.Lock()
        self._resumed = asyncio.Event()
        self._resumed.set()
        self._generation = 0

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def error(self) -> PersistenceFailure | None:
        return self._error

    @property
    def summary(self) -> SessionSummary | None:
        return self._summary

    @property
    def queue(self) -> SessionQueue | None:
        return self._queue

    @property
    def paused(self) -> bool:
        return not self._resumed.is_set()

    @property
    def current_card(self) -> int | None:
        if self._state is not SessionState.IN_SESSION or self._queue is None:
            return None
        return self._queue.current

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> SessionState:
        """
        Build the session queue from due and learning cards.

        Returns:
            EMPTY when nothing is due, IN_SESSION when the queue has cards,
            ERROR when the due query failed (retry with ``reload()``).
        """
        self._generation += 1
        generation = self._generation
        self._state = SessionState.LOADING
        self._error = None
        self._summary = None
        self._queue = None
        self._resumed.set()

        try:
            rows = await self._repo.query_due(
                self.direction, self.session_limit, now=self._clock()
            )
        except PersistenceFailure as e:
            if generation == self._generation:
                logger.error(f"Study queue loading failed: {e}")
                self._error = e
                self._state = SessionState.ERROR
            return self._state

        if generation != self._generation:
            return self._state

        if not rows:
            logger.info(f"No cards to study for {self.direction.value}")
            self._state = SessionState.EMPTY
            return self._state

        kind = _session_kind(rows)
        session_id = await self._open_ledger(kind)
        if generation != self._generation:
            return self._state

        self._queue = SessionQueue((row.card_id for row in rows), self._queue_policy)
        self._summary = SessionSummary(
            session_id=session_id, kind=kind, started_at=self._clock()
        )
        self._state = SessionState.IN_SESSION
        logger.info(
            f"Started {kind.value} session {session_id} with {len(self._queue)} cards "
            f"({self.direction.value})"
        )
        return self._state

    async def reload(self) -> SessionState:
        """Retry entry point after an ERROR; discards any unfinished session."""
        logger.info("Reloading study queue")
        return await self.start()

    def close(self) -> None:
        """
        Tear the session down.

        In-flight writes may still finish, but they no longer touch the queue.
        A fresh ``start()`` is required to continue studying.
        """
        self._generation += 1
        self._state = SessionState.IDLE
        self._queue = None
        self._resumed.set()
        logger.info("Study session closed")

    def resume(self) -> int | None:
        """Release a checkpoint pause and return the current card."""
        if self.paused:
            logger.info("Resuming after checkpoint")
        self._resumed.set()
        return self.current_card

    async def wait_until_resumed(self) -> None:
        await self._resumed.wait()

    # ------------------------------------------------------------------
    # Per-card operations
    # ------------------------------------------------------------------

    async def current_progress(self) -> CardProgress | None:
        """Progress of the current card, bootstrap defaults if it has no record."""
        card_id = self.current_card
        if card_id is None:
            return None
        return await self._load_progress(card_id)

    async def preview(self) -> PreviewTexts | None:
        """Button labels for the current card."""
        progress = await self.current_progress()
        if progress is None:
            return None
        return self._engine.preview_texts(progress, now=self._clock())

    async def answer(self, quality: Quality) -> AnswerOutcome:
        """
        Apply the learner's rating to the current card.

        A failed read or write is logged and the card is passed over; the
        session keeps going. Answers are processed strictly one at a time.
        """
        if self._state is not SessionState.IN_SESSION or self._queue is None:
            return AnswerOutcome(status=AnswerStatus.NOT_IN_SESSION, state=self._state)
        if self.paused:
            return AnswerOutcome(status=AnswerStatus.PAUSED, state=self._state)
        if self._answer_lock.locked():
            return AnswerOutcome(status=AnswerStatus.BUSY, state=self._state)

        async with self._answer_lock:
            return await self._answer_locked(quality)

    async def _answer_locked(self, quality: Quality) -> AnswerOutcome:
        generation = self._generation
        queue = self._queue
        summary = self._summary
        card_id = queue.current
        now = self._clock()

        progress: CardProgress | None = None
        persisted = False
        graduated = False
        try:
            current = await self._load_progress(card_id, raise_errors=True)
            progress = self._engine.next_state(current, quality, now=now)
            if self._mastery is not None:
                progress = self._mastery.apply(progress)
            graduated = current.learning_phase and not progress.learning_phase
            if progress.learning_phase:
                progress = progress.with_position(queue.reinsert_index(quality))
            await self._repo.upsert_progress(progress)
            persisted = True
        except PersistenceFailure as e:
            logger.error(f"Progress update failed for card {card_id}: {e}")

        if generation != self._generation:
            logger.warning(f"Session closed before card {card_id} finished; not advancing")
            return AnswerOutcome(
                status=AnswerStatus.ABANDONED,
                state=self._state,
                card_id=card_id,
                progress=progress,
                persisted=persisted,
            )

        summary.studied += 1
        if quality.is_pass:
            summary.correct += 1
        if persisted and graduated:
            summary.graduated += 1

        move: QueueMove | None = None
        if persisted:
            move = queue.apply(progress, quality)
            if move.evicted:
                logger.info(f"Card {card_id} left the session (review phase)")
        else:
            queue.skip_current()

        if queue.is_exhausted:
            await self._rescan(generation)
            if generation != self._generation:
                return AnswerOutcome(
                    status=AnswerStatus.ABANDONED,
                    state=self._state,
                    card_id=card_id,
                    progress=progress,
                    move=move,
                    persisted=persisted,
                )
            if self._state is not SessionState.IN_SESSION:
                return AnswerOutcome(
                    status=AnswerStatus.ACCEPTED,
                    state=self._state,
                    card_id=card_id,
                    progress=progress,
                    move=move,
                    persisted=persisted,
                    summary=self._summary if self._state is SessionState.COMPLETED else None,
                )

        paused = await self._checkpoint(summary.studied, generation)
        return AnswerOutcome(
            status=AnswerStatus.ACCEPTED,
            state=self._state,
            card_id=card_id,
            progress=progress,
            move=move,
            persisted=persisted,
            paused=paused,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _load_progress(self, card_id: int, raise_errors: bool = False) -> CardProgress:
        try:
            progress = await self._repo.get_progress(card_id, self.direction)
        except PersistenceFailure as e:
            if raise_errors:
                raise
            logger.warning(f"Could not read card {card_id}, using defaults: {e}")
            progress = None
        if progress is None:
            progress = self._engine.initial_progress(card_id, self.direction, now=self._clock())
        return progress

    async def _rescan(self, generation: int) -> None:
        """
        Queue ran out: keep going with batch cards still in the learning phase.

        A card without a record counts as finished. A read failure moves the
        scheduler to ERROR instead of completing a session that may still
        hold learning cards.
        """
        queue = self._queue
        still_learning: list[int] = []
        try:
            for card_id in queue.batch:
                progress = await self._repo.get_progress(card_id, self.direction)
                if progress is not None and progress.learning_phase and not progress.is_mastered:
                    still_learning.append(card_id)
        except PersistenceFailure as e:
            if generation == self._generation:
                logger.error(f"Re-scan of session cards failed: {e}")
                self._error = e
                self._state = SessionState.ERROR
            return

        if generation != self._generation:
            return

        if queue.restart(still_learning):
            return
        await self._complete()

    async def _complete(self) -> None:
        summary = self._summary
        summary.elapsed = self._clock() - summary.started_at
        if summary.session_id is not None:
            try:
                await self._ledger.end_session(
                    summary.session_id, summary.studied, summary.correct
                )
            except PersistenceFailure as e:
                logger.error(f"Could not record end of session {summary.session_id}: {e}")
        self._state = SessionState.COMPLETED
        logger.info(
            f"Session {summary.session_id} completed: {summary.studied} studied, "
            f"{summary.correct} correct, {summary.graduated} graduated "
            f"in {summary.elapsed.total_seconds():.0f}s"
        )

    async def _checkpoint(self, answered: int, generation: int) -> bool:
        if self._hook is None or self.checkpoint_every <= 0:
            return False
        if answered % self.checkpoint_every != 0:
            return False

        decision = await self._hook.on_checkpoint(answered)
        if generation != self._generation:
            return False
        if decision is BreakpointDecision.PAUSE:
            logger.info(f"Checkpoint after {answered} cards: paused")
            self._resumed.clear()
            return True
        return False

    async def _open_ledger(self, kind: SessionKind) -> str | None:
        try:
            return await self._ledger.start_session(kind)
        except PersistenceFailure as e:
            logger.warning(f"Session ledger unavailable, continuing without record: {e}")
            return None


def _session_kind(rows: list[CardSummary]) -> SessionKind:
    learning = sum(1 for row in rows if row.learning_phase)
    if learning == len(rows):
        return SessionKind.NEW_WORDS
    if learning == 0:
        return SessionKind.REVIEW
    return SessionKind.MIXED
