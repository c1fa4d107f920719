# Domain Package
from .errors import PersistenceFailure, WordloopError
from .models import (
    CardProgress,
    CardSummary,
    Decision,
    DecisionRecord,
    Quality,
    QuotaTier,
    SessionKind,
    StudyDirection,
)

__all__ = [
    "CardProgress",
    "CardSummary",
    "Decision",
    "DecisionRecord",
    "PersistenceFailure",
    "Quality",
    "QuotaTier",
    "SessionKind",
    "StudyDirection",
    "WordloopError",
]
