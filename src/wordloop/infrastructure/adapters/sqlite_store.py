"""
SQLite Store: infrastructure adapter for a single-file database.

Implements CardRecordRepository, SessionLedger and SelectionRepository on one
connection. Blocking calls run in a worker thread; writes to the same
(card_id, direction) key are serialized with keyed asyncio locks.
"""

import asyncio
import logging
import sqlite3
import threading
from contextlib import AsyncExitStack
from datetime import datetime, timezone
from pathlib import Path

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

SCHEMA = """
CREATE TABLE IF NOT EXISTS card_progress (
    card_id INTEGER NOT NULL,
    direction TEXT NOT NULL,
    repetitions INTEGER NOT NULL DEFAULT 0,
    ease_factor REAL NOT NULL,
    interval_days REAL NOT NULL DEFAULT 0,
    next_review_at TEXT NOT NULL,
    last_review_at TEXT,
    learning_phase INTEGER NOT NULL DEFAULT 1,
    session_position INTEGER,
    is_mastered INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (card_id, direction)
);
CREATE TABLE IF NOT EXISTS study_sessions (
    id TEXT PRIMARY KEY,
    kind TEXT NOT NULL,
    started_at TEXT NOT NULL,
    ended_at TEXT,
    studied INTEGER NOT NULL DEFAULT 0,
    correct INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE IF NOT EXISTS selections (
    card_id INTEGER PRIMARY KEY,
    decision TEXT NOT NULL,
    decided_at TEXT NOT NULL
);
"""

PROGRESS_COLUMNS = (
    "card_id, direction, repetitions, ease_factor, interval_days, next_review_at, "
    "last_review_at, learning_phase, session_position, is_mastered"
)


def _to_text(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_text(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def _row_to_progress(row: sqlite3.Row) -> CardProgress:
    return CardProgress(
        card_id=row["card_id"],
        direction=StudyDirection(row["direction"]),
        repetitions=row["repetitions"],
        ease_factor=row["ease_factor"],
        interval_days=row["interval_days"],
        next_review_at=_from_text(row["next_review_at"]),
        last_review_at=_from_text(row["last_review_at"]),
        learning_phase=bool(row["learning_phase"]),
        session_position=row["session_position"],
        is_mastered=bool(row["is_mastered"]),
    )


class SqliteStore(CardRecordRepository, SessionLedger, SelectionRepository):
    """
    SQLite-backed persistence for progress, sessions and selections.

    Use as an async context manager or call ``close()`` explicitly.
    """

    def __init__(self, path: Path | str):
        self.path = path if path == ":memory:" else Path(path)
        self._conn: sqlite3.Connection | None = None
        self._conn_lock = threading.Lock()
        self._locks = KeyedLocks()

    async def __aenter__(self) -> "SqliteStore":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    async def open(self) -> None:
        if self._conn is not None:
            return
        try:
            self._conn = await asyncio.to_thread(self._connect)
        except sqlite3.Error as e:
            raise PersistenceFailure("open", e) from e
        logger.debug(f"Opened SQLite store at {self.path}")

    def _connect(self) -> sqlite3.Connection:
        if isinstance(self.path, Path):
            self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.path), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.executescript(SCHEMA)
        conn.commit()
        return conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    async def _run(self, operation: str, fn, *args):
        """Run a blocking database call in a thread, mapping errors to PersistenceFailure."""
        if self._conn is None:
            await self.open()

        def call():
            with self._conn_lock:
                return fn(self._conn, *args)

        try:
            return await asyncio.to_thread(call)
        except sqlite3.Error as e:
            raise PersistenceFailure(operation, e) from e

    # ------------------------------------------------------------------
    # CardRecordRepository
    # ------------------------------------------------------------------

    async def get_progress(
        self, card_id: int, direction: StudyDirection
    ) -> CardProgress | None:
        def query(conn: sqlite3.Connection):
            row = conn.execute(
                f"SELECT {PROGRESS_COLUMNS} FROM card_progress "
                "WHERE card_id = ? AND direction = ?",
                (card_id, direction.value),
            ).fetchone()
            return _row_to_progress(row) if row else None

        return await self._run("get_progress", query)

    async def upsert_progress(self, progress: CardProgress) -> None:
        def write(conn: sqlite3.Connection):
            conn.execute(
                f"INSERT OR REPLACE INTO card_progress ({PROGRESS_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    progress.card_id,
                    progress.direction.value,
                    progress.repetitions,
                    progress.ease_factor,
                    progress.interval_days,
                    _to_text(progress.next_review_at),
                    _to_text(progress.last_review_at),
                    int(progress.learning_phase),
                    progress.session_position,
                    int(progress.is_mastered),
                ),
            )
            conn.commit()

        async with self._locks.hold(progress.key):
            await self._run("upsert_progress", write)

    async def query_due(
        self,
        direction: StudyDirection,
        limit: int,
        now: datetime | None = None,
    ) -> list[CardSummary]:
        now_text = _to_text(now or datetime.now(timezone.utc))

        def query(conn: sqlite3.Connection):
            rows = conn.execute(
                f"SELECT {PROGRESS_COLUMNS} FROM card_progress "
                "WHERE direction = ? AND is_mastered = 0 "
                "AND (learning_phase = 1 OR next_review_at <= ?) "
                "ORDER BY learning_phase DESC, "
                "session_position IS NULL, session_position ASC, "
                "next_review_at ASC "
                "LIMIT ?",
                (direction.value, now_text, limit),
            ).fetchall()
            return [_row_to_progress(row).summary() for row in rows]

        return await self._run("query_due", query)

    async def delete_progress(
        self, card_id: int, direction: StudyDirection | None = None
    ) -> None:
        directions = list(StudyDirection) if direction is None else [direction]

        def write(conn: sqlite3.Connection):
            conn.executemany(
                "DELETE FROM card_progress WHERE card_id = ? AND direction = ?",
                [(card_id, d.value) for d in directions],
            )
            conn.commit()

        async with AsyncExitStack() as stack:
            for d in directions:
                await stack.enter_async_context(self._locks.hold((card_id, d)))
            await self._run("delete_progress", write)

    # ------------------------------------------------------------------
    # SessionLedger
    # ------------------------------------------------------------------

    async def start_session(self, kind: SessionKind) -> str:
        session_id = generate_session_id()

        def write(conn: sqlite3.Connection):
            conn.execute(
                "INSERT INTO study_sessions (id, kind, started_at) VALUES (?, ?, ?)",
                (session_id, kind.value, _to_text(datetime.now(timezone.utc))),
            )
            conn.commit()

        await self._run("start_session", write)
        return session_id

    async def end_session(self, session_id: str, studied: int, correct: int) -> None:
        def write(conn: sqlite3.Connection):
            cursor = conn.execute(
                "UPDATE study_sessions SET ended_at = ?, studied = ?, correct = ? WHERE id = ?",
                (_to_text(datetime.now(timezone.utc)), studied, correct, session_id),
            )
            conn.commit()
            return cursor.rowcount

        updated = await self._run("end_session", write)
        if not updated:
            raise PersistenceFailure("end_session", KeyError(session_id))

    async def get_session(self, session_id: str) -> dict | None:
        def query(conn: sqlite3.Connection):
            row = conn.execute(
                "SELECT id, kind, started_at, ended_at, studied, correct "
                "FROM study_sessions WHERE id = ?",
                (session_id,),
            ).fetchone()
            return dict(row) if row else None

        return await self._run("get_session", query)

    # ------------------------------------------------------------------
    # SelectionRepository
    # ------------------------------------------------------------------

    async def save_decision(
        self, card_id: int, decision: Decision, decided_at: datetime | None = None
    ) -> None:
        decided_text = _to_text(decided_at or datetime.now(timezone.utc))

        def write(conn: sqlite3.Connection):
            conn.execute(
                "INSERT OR REPLACE INTO selections (card_id, decision, decided_at) "
                "VALUES (?, ?, ?)",
                (card_id, decision.value, decided_text),
            )
            conn.commit()

        await self._run("save_decision", write)

    async def get_decision(self, card_id: int) -> DecisionRecord | None:
        def query(conn: sqlite3.Connection):
            row = conn.execute(
                "SELECT card_id, decision, decided_at FROM selections WHERE card_id = ?",
                (card_id,),
            ).fetchone()
            if row is None:
                return None
            return DecisionRecord(
                card_id=row["card_id"],
                decision=Decision(row["decision"]),
                decided_at=_from_text(row["decided_at"]),
            )

        return await self._run("get_decision", query)

    async def delete_decision(self, card_id: int) -> None:
        def write(conn: sqlite3.Connection):
            conn.execute("DELETE FROM selections WHERE card_id = ?", (card_id,))
            conn.commit()

        await self._run("delete_decision", write)

    async def selected_card_ids(self) -> list[int]:
        def query(conn: sqlite3.Connection):
            rows = conn.execute(
                "SELECT card_id FROM selections WHERE decision = ? "
                "ORDER BY decided_at ASC, rowid ASC",
                (Decision.SELECT.value,),
            ).fetchall()
            return [row["card_id"] for row in rows]

        return await self._run("selected_card_ids", query)

    async def count_selected_since(self, since: datetime) -> int:
        def query(conn: sqlite3.Connection):
            return conn.execute(
                "SELECT COUNT(*) FROM selections WHERE decision = ? AND decided_at >= ?",
                (Decision.SELECT.value, _to_text(since)),
            ).fetchone()[0]

        return await self._run("count_selected_since", query)
