"""
Long-term mastery rule.

A review card that has been recalled often enough at a long enough interval
is marked mastered and drops out of due queries for good. This runs after the
interval engine, never inside it.
"""

import logging
from dataclasses import dataclass, replace

from wordloop.domain import constants as c
from wordloop.domain.models import CardProgress

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MasteryPolicy:
    min_repetitions: int = c.MASTERY_REPETITIONS
    min_interval_days: float = c.MASTERY_INTERVAL_DAYS

    def qualifies(self, progress: CardProgress) -> bool:
        return (
            not progress.learning_phase
            and progress.repetitions >= self.min_repetitions
            and progress.interval_days >= self.min_interval_days
        )

    def apply(self, progress: CardProgress) -> CardProgress:
        """Return ``progress`` marked mastered if it qualifies, else unchanged."""
        if progress.is_mastered or not self.qualifies(progress):
            return progress
        logger.info(
            f"Card {progress.card_id} ({progress.direction.value}) mastered after "
            f"{progress.repetitions} reviews at {progress.interval_days:.1f}d"
        )
        return replace(progress, is_mastered=True)
