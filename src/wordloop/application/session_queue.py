"""
In-session working set of cards.

Cards still in the learning phase are pulled out after each answer and put
back further down the queue: HARD cards come back soonest, EASY cards go to
the very end. Cards that graduate (or answered review cards) leave the queue
for good and resurface in a later session once they are due.

Pure and synchronous; the scheduler owns all persistence.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from wordloop.domain import constants as c
from wordloop.domain.models import CardProgress, Quality

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueuePolicy:
    """Fraction of the remaining queue a learning card is pushed back by."""

    ratio_hard: float = c.REINSERT_RATIO_HARD
    ratio_medium: float = c.REINSERT_RATIO_MEDIUM
    ratio_easy: float = c.REINSERT_RATIO_EASY

    def ratio(self, quality: Quality) -> float:
        if quality is Quality.HARD:
            return self.ratio_hard
        if quality is Quality.MEDIUM:
            return self.ratio_medium
        return self.ratio_easy


@dataclass(frozen=True)
class QueueMove:
    """
    What happened to the answered card.

    Attributes:
        card_id: The answered card.
        from_index: Its index before the answer.
        to_index: New index if reinserted, None if it left the queue.
    """

    card_id: int
    from_index: int
    to_index: int | None

    @property
    def evicted(self) -> bool:
        return self.to_index is None


class SessionQueue:
    """
    Ordered, mutable list of card ids with a cursor on the current card.

    The cursor only moves forward when a card is passed over without being
    applied (e.g. its write failed). Applied cards are always removed from
    the cursor position, so the next card slides into place.
    """

    def __init__(self, card_ids: Iterable[int], policy: QueuePolicy | None = None):
        self._cards: list[int] = list(dict.fromkeys(card_ids))
        self._batch: tuple[int, ...] = tuple(self._cards)
        self._cursor = 0
        self.policy = policy or QueuePolicy()

    def __len__(self) -> int:
        return len(self._cards)

    def __contains__(self, card_id: object) -> bool:
        return card_id in self._cards

    @property
    def cards(self) -> list[int]:
        return list(self._cards)

    @property
    def batch(self) -> tuple[int, ...]:
        """Every card the session started with, in original order."""
        return self._batch

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def current(self) -> int | None:
        if self.is_exhausted:
            return None
        return self._cards[self._cursor]

    @property
    def remaining(self) -> int:
        return max(len(self._cards) - self._cursor, 0)

    @property
    def is_exhausted(self) -> bool:
        return self._cursor >= len(self._cards)

    def reinsert_index(self, quality: Quality) -> int:
        """
        Index the current card would land on if reinserted after ``quality``.

        offset = floor(remaining * ratio), clamped to [0, remaining], where
        remaining counts the cards after the cursor once the current card is
        taken out.
        """
        remaining = max(len(self._cards) - self._cursor - 1, 0)
        offset = int(remaining * self.policy.ratio(quality))
        offset = min(max(offset, 0), remaining)
        return self._cursor + offset

    def apply(self, progress: CardProgress, quality: Quality) -> QueueMove:
        """
        Reorder or evict the current card after its answer has been applied.

        Args:
            progress: The card's progress after the answer.
            quality: The answer that produced it.

        Returns:
            A QueueMove describing the reordering.
        """
        card_id = self.current
        if card_id is None or card_id != progress.card_id:
            raise ValueError(f"Card {progress.card_id} is not the current card")

        from_index = self._cursor
        if not progress.learning_phase:
            self._cards.pop(from_index)
            logger.debug(f"Card {card_id} left the queue ({len(self._cards)} left)")
            return QueueMove(card_id=card_id, from_index=from_index, to_index=None)

        to_index = self.reinsert_index(quality)
        self._cards.pop(from_index)
        self._cards.insert(to_index, card_id)
        logger.debug(
            f"Reordered card {card_id} | quality={quality.name} | "
            f"position {from_index} -> {to_index} of {len(self._cards)}"
        )
        return QueueMove(card_id=card_id, from_index=from_index, to_index=to_index)

    def skip_current(self) -> int | None:
        """Move past the current card without reordering it."""
        card_id = self.current
        if card_id is not None:
            self._cursor += 1
        return card_id

    def restart(self, still_learning: Iterable[int]) -> bool:
        """
        Rebuild the queue from the batch cards that are still learning.

        Cards keep their current relative order; batch cards no longer in the
        queue are appended in batch order. The cursor resets to 0.

        Returns:
            True if any card remains, i.e. the session must go on.
        """
        wanted = set(still_learning) & set(self._batch)
        ordered = [card_id for card_id in self._cards if card_id in wanted]
        ordered += [card_id for card_id in self._batch if card_id in wanted and card_id not in ordered]
        self._cards = ordered
        self._cursor = 0
        if ordered:
            logger.info(f"Queue rebuilt with {len(ordered)} learning cards")
        return bool(ordered)
