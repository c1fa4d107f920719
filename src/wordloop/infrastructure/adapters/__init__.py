# Infrastructure Store Adapters Package
from .memory import (
    InMemoryCardRecordRepository,
    InMemorySelectionRepository,
    InMemorySessionLedger,
)
from .quota import DailySelectionQuota
from .sqlite_store import SqliteStore

__all__ = [
    "DailySelectionQuota",
    "InMemoryCardRecordRepository",
    "InMemorySelectionRepository",
    "InMemorySessionLedger",
    "SqliteStore",
]
