"""
Domain models for the study scheduler.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum

from .constants import DEFAULT_EASE_FACTOR


class Quality(int, Enum):
    """Recall confidence reported by the learner for one card."""

    HARD = 1
    MEDIUM = 2
    EASY = 3

    @property
    def is_pass(self) -> bool:
        return self >= Quality.MEDIUM


class StudyDirection(str, Enum):
    EN_TO_TR = "en_to_tr"
    TR_TO_EN = "tr_to_en"


class SessionKind(str, Enum):
    REVIEW = "review"  # only graduated cards
    NEW_WORDS = "new_words"  # only learning-phase cards
    MIXED = "mixed"


class Decision(str, Enum):
    SELECT = "select"
    SKIP = "skip"


class QuotaTier(str, Enum):
    FREE = "free"
    PREMIUM = "premium"


class BreakpointDecision(str, Enum):
    CONTINUE = "continue"
    PAUSE = "pause"


@dataclass(frozen=True)
class LearningPhase:
    session_position: int | None


@dataclass(frozen=True)
class ReviewPhase:
    next_review_at: datetime


@dataclass(frozen=True)
class CardProgress:
    """
    Progress of one vocabulary item in one study direction.

    Attributes:
        card_id: Vocabulary item identifier.
        direction: Which side of the card is prompted.
        repetitions: Consecutive passing recalls.
        ease_factor: SM-2 multiplier, never below 1.3.
        interval_days: Current spacing; fractional days for learning steps.
        next_review_at: When the card becomes due in the review phase.
        last_review_at: Time of the last answer, None for fresh cards.
        learning_phase: True until the card graduates.
        session_position: Ordering hint while in the learning phase.
        is_mastered: Set by long-term criteria outside the scheduler.
    """

    card_id: int
    direction: StudyDirection
    next_review_at: datetime
    repetitions: int = 0
    ease_factor: float = DEFAULT_EASE_FACTOR
    interval_days: float = 0.0
    last_review_at: datetime | None = None
    learning_phase: bool = True
    session_position: int | None = None
    is_mastered: bool = False

    @property
    def key(self) -> tuple[int, StudyDirection]:
        return (self.card_id, self.direction)

    @property
    def phase(self) -> LearningPhase | ReviewPhase:
        if self.learning_phase:
            return LearningPhase(session_position=self.session_position)
        return ReviewPhase(next_review_at=self.next_review_at)

    def is_due(self, now: datetime) -> bool:
        """Learning cards are always eligible; review cards once next_review_at passes."""
        if self.is_mastered:
            return False
        return self.learning_phase or self.next_review_at <= now

    def summary(self) -> "CardSummary":
        return CardSummary(
            card_id=self.card_id,
            direction=self.direction,
            learning_phase=self.learning_phase,
            session_position=self.session_position,
            next_review_at=self.next_review_at,
            repetitions=self.repetitions,
        )

    def with_position(self, session_position: int | None) -> "CardProgress":
        return replace(self, session_position=session_position)


@dataclass(frozen=True)
class CardSummary:
    """Lightweight row returned by due queries."""

    card_id: int
    direction: StudyDirection
    learning_phase: bool
    session_position: int | None
    next_review_at: datetime
    repetitions: int = 0


@dataclass(frozen=True)
class DecisionRecord:
    """A stored swipe decision."""

    card_id: int
    decision: Decision
    decided_at: datetime


@dataclass(frozen=True)
class UndoAction:
    """
    One reversible selection decision.

    Attributes:
        card_id: The decided card.
        decision: What was recorded.
        previous: The decision it replaced, restored on undo.
    """

    card_id: int
    decision: Decision
    previous: DecisionRecord | None = None


@dataclass(frozen=True)
class PreviewTexts:
    """Human-readable "next review in ..." labels for the three answer buttons."""

    hard: str
    medium: str
    easy: str

    def as_tuple(self) -> tuple[str, str, str]:
        return (self.hard, self.medium, self.easy)


@dataclass
class SessionSummary:
    """Aggregate persisted when a study session completes."""

    session_id: str | None
    kind: SessionKind
    studied: int = 0
    correct: int = 0
    graduated: int = 0  # learning -> review transitions this session
    started_at: datetime | None = None
    elapsed: timedelta = field(default_factory=timedelta)

    @property
    def accuracy(self) -> float | None:
        if self.studied == 0:
            return None
        return self.correct / self.studied
