"""
Calendar-day quota policy.

Counts today's SELECT decisions from the selection repository. "Today" starts
at midnight in the clock's timezone, so the count resets without any stored
state.
"""

from collections.abc import Callable
from datetime import datetime, time

from wordloop.application.interval_engine import utc_now
from wordloop.domain import constants as c
from wordloop.domain.models import QuotaTier
from wordloop.domain.ports import QuotaPolicy, SelectionRepository


class DailySelectionQuota(QuotaPolicy):
    """Tier ceilings from configuration, counts from the selection repository."""

    def __init__(
        self,
        selections: SelectionRepository,
        free_limit: int = c.FREE_DAILY_SELECTIONS,
        premium_limit: int = c.PREMIUM_DAILY_SELECTIONS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._selections = selections
        self._limits = {QuotaTier.FREE: free_limit, QuotaTier.PREMIUM: premium_limit}
        self._clock = clock

    def start_of_day(self) -> datetime:
        now = self._clock()
        return datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)

    async def current_count(self, tier: QuotaTier) -> int:
        # Both tiers draw from the same daily count; only the ceiling differs
        return await self._selections.count_selected_since(self.start_of_day())

    def ceiling(self, tier: QuotaTier) -> int:
        return self._limits[tier]
