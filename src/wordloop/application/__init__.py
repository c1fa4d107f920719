# Application Package
from .interval_engine import IntervalEngine, IntervalPolicy, describe_delay
from .mastery import MasteryPolicy
from .scheduler import AnswerOutcome, AnswerStatus, SessionState, StudyScheduler
from .selection import (
    DecisionOutcome,
    DecisionStatus,
    SelectionFlow,
    SkipAllOutcome,
    UndoOutcome,
    UndoStack,
    UndoStatus,
)
from .session_queue import QueueMove, QueuePolicy, SessionQueue

__all__ = [
    "AnswerOutcome",
    "AnswerStatus",
    "DecisionOutcome",
    "DecisionStatus",
    "IntervalEngine",
    "IntervalPolicy",
    "MasteryPolicy",
    "QueueMove",
    "QueuePolicy",
    "SelectionFlow",
    "SessionQueue",
    "SessionState",
    "SkipAllOutcome",
    "StudyScheduler",
    "UndoOutcome",
    "UndoStack",
    "UndoStatus",
    "describe_delay",
]
