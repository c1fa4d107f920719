"""
Ports (interfaces) for the scheduler's external collaborators.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
Adapters raise ``PersistenceFailure`` for any I/O problem.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from .models import (
    BreakpointDecision,
    CardProgress,
    CardSummary,
    Decision,
    DecisionRecord,
    QuotaTier,
    SessionKind,
    StudyDirection,
)


class CardRecordRepository(ABC):
    """
    Port for durable per-card, per-direction progress records.

    Implementations:
        - InMemoryCardRecordRepository: Dict-backed, for tests and embedding.
        - SqliteStore: Single-file SQLite database.

    Writes to the same (card_id, direction) key must be serialized; different
    keys may be written concurrently.
    """

    @abstractmethod
    async def get_progress(
        self, card_id: int, direction: StudyDirection
    ) -> CardProgress | None:
        """
        Fetch the progress record for a card.

        Returns:
            The record, or None when the card has never been seeded.
        """
        pass

    @abstractmethod
    async def upsert_progress(self, progress: CardProgress) -> None:
        """Insert or replace the record keyed by (card_id, direction)."""
        pass

    @abstractmethod
    async def query_due(
        self,
        direction: StudyDirection,
        limit: int,
        now: datetime | None = None,
    ) -> list[CardSummary]:
        """
        List learning-phase cards plus review cards due at ``now``.

        Args:
            direction: Study direction to query.
            limit: Maximum number of rows.
            now: Reference time; defaults to the current UTC time.

        Returns:
            Learning cards first by session position, then due reviews oldest first.
        """
        pass

    @abstractmethod
    async def delete_progress(
        self, card_id: int, direction: StudyDirection | None = None
    ) -> None:
        """Delete a card's record in one direction, or in every direction when None."""
        pass


class SessionLedger(ABC):
    """Port for recording study sessions."""

    @abstractmethod
    async def start_session(self, kind: SessionKind) -> str:
        """Open a session record and return its id."""
        pass

    @abstractmethod
    async def end_session(self, session_id: str, studied: int, correct: int) -> None:
        """Close a session record with its aggregate counts."""
        pass


class SelectionRepository(ABC):
    """Port for persisting swipe decisions on candidate words."""

    @abstractmethod
    async def save_decision(
        self, card_id: int, decision: Decision, decided_at: datetime | None = None
    ) -> None:
        """Insert or replace the decision; ``decided_at`` defaults to now."""
        pass

    @abstractmethod
    async def get_decision(self, card_id: int) -> DecisionRecord | None:
        pass

    @abstractmethod
    async def delete_decision(self, card_id: int) -> None:
        pass

    @abstractmethod
    async def selected_card_ids(self) -> list[int]:
        """All cards currently marked SELECT, in decision order."""
        pass

    @abstractmethod
    async def count_selected_since(self, since: datetime) -> int:
        """Number of SELECT decisions made at or after ``since``."""
        pass


class BreakpointHook(ABC):
    """
    Hook invoked every N answered cards.

    External ad/upsell logic decides whether the learner may continue
    straight away or the scheduler must pause until ``resume()`` is called.
    """

    @abstractmethod
    async def on_checkpoint(self, answered: int) -> BreakpointDecision:
        pass


class QuotaPolicy(ABC):
    """Port resolving today's selection count and the tier ceiling."""

    @abstractmethod
    async def current_count(self, tier: QuotaTier) -> int:
        pass

    @abstractmethod
    def ceiling(self, tier: QuotaTier) -> int:
        pass
