"""
Interval engine: SM-2 style scheduling with an in-session learning phase.

Learning phase (card stays in the current session):
- HARD resets repetitions and lowers ease.
- MEDIUM counts a repetition.
- EASY counts a repetition and graduates once the threshold is reached.

Review phase (time based):
- HARD sends the card back to learning at the front of the session.
- MEDIUM schedules a short review.
- EASY follows the fixed 3/7 day ladder, then grows by the ease factor.

This is a pure computation module with no I/O.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone

from wordloop.domain import constants as c
from wordloop.domain.models import CardProgress, PreviewTexts, Quality, StudyDirection

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class IntervalPolicy:
    """
    Tunable parameters of the interval engine.

    Defaults come from ``wordloop.domain.constants``.
    """

    ease_delta_hard: float = c.EASE_DELTA_HARD
    ease_delta_medium: float = c.EASE_DELTA_MEDIUM
    ease_delta_easy: float = c.EASE_DELTA_EASY
    min_ease_factor: float = c.MIN_EASE_FACTOR
    max_ease_factor: float = c.MAX_EASE_FACTOR
    initial_ease_factor: float = c.DEFAULT_EASE_FACTOR
    graduation_repetitions: int = c.GRADUATION_REPETITIONS
    graduation_interval_days: float = c.GRADUATION_INTERVAL_DAYS
    step_hard: timedelta = c.LEARNING_STEP_HARD
    step_medium: timedelta = c.LEARNING_STEP_MEDIUM
    step_easy: timedelta = c.LEARNING_STEP_EASY
    review_medium_interval_days: float = c.REVIEW_MEDIUM_INTERVAL_DAYS
    second_review_interval_days: float = c.SECOND_REVIEW_INTERVAL_DAYS
    third_review_interval_days: float = c.THIRD_REVIEW_INTERVAL_DAYS

    def ease_delta(self, quality: Quality) -> float:
        if quality is Quality.HARD:
            return self.ease_delta_hard
        if quality is Quality.MEDIUM:
            return self.ease_delta_medium
        return self.ease_delta_easy

    def learning_step(self, quality: Quality) -> timedelta:
        if quality is Quality.HARD:
            return self.step_hard
        if quality is Quality.MEDIUM:
            return self.step_medium
        return self.step_easy


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class IntervalEngine:
    """
    Computes the next CardProgress for an answer.

    Stateless and side-effect free: every method returns new values and never
    mutates its inputs.
    """

    def __init__(self, policy: IntervalPolicy | None = None):
        self.policy = policy or IntervalPolicy()

    def initial_progress(
        self,
        card_id: int,
        direction: StudyDirection,
        now: datetime | None = None,
        session_position: int | None = None,
    ) -> CardProgress:
        """
        Bootstrap record for a freshly selected card: learning phase, due now.
        """
        now = now or utc_now()
        return CardProgress(
            card_id=card_id,
            direction=direction,
            repetitions=0,
            ease_factor=self.policy.initial_ease_factor,
            interval_days=0.0,
            next_review_at=now,
            last_review_at=None,
            learning_phase=True,
            session_position=session_position,
            is_mastered=False,
        )

    def next_state(
        self,
        current: CardProgress,
        quality: Quality,
        now: datetime | None = None,
        session_position: int | None = None,
    ) -> CardProgress:
        """
        Apply one answer to a card.

        Args:
            current: Progress before the answer.
            quality: Learner's rating.
            now: Reference time; defaults to the current UTC time.
            session_position: Queue index to record if the card stays in
                the learning phase. Defaults to the card's current position,
                or the front of the session for lapsed review cards.

        Returns:
            A new CardProgress; ``current`` is left untouched.
        """
        now = now or utc_now()
        if current.learning_phase:
            result = self._answer_learning(current, quality, now, session_position)
        else:
            result = self._answer_review(current, quality, now, session_position)

        logger.debug(
            f"card={current.card_id} {current.direction.value} quality={quality.name} "
            f"reps {current.repetitions}->{result.repetitions} "
            f"interval={result.interval_days:.4f}d learning={result.learning_phase}"
        )
        return result

    def preview_texts(
        self, current: CardProgress, now: datetime | None = None
    ) -> PreviewTexts:
        """Labels for the HARD/MEDIUM/EASY buttons, computed without side effects."""
        now = now or utc_now()
        texts = [
            describe_delay(self.next_state(current, quality, now).next_review_at - now)
            for quality in (Quality.HARD, Quality.MEDIUM, Quality.EASY)
        ]
        return PreviewTexts(*texts)

    def will_graduate(self, current: CardProgress, quality: Quality) -> bool:
        return (
            current.learning_phase
            and quality is Quality.EASY
            and current.repetitions + 1 >= self.policy.graduation_repetitions
        )

    def _answer_learning(
        self,
        current: CardProgress,
        quality: Quality,
        now: datetime,
        session_position: int | None,
    ) -> CardProgress:
        ease = self._adjust_ease(current.ease_factor, quality)

        if self.will_graduate(current, quality):
            interval_days = self.policy.graduation_interval_days
            logger.info(
                f"Card {current.card_id} ({current.direction.value}) graduated to review"
            )
            return replace(
                current,
                repetitions=current.repetitions + 1,
                ease_factor=ease,
                interval_days=interval_days,
                next_review_at=now + timedelta(days=interval_days),
                last_review_at=now,
                learning_phase=False,
                session_position=None,
            )

        step = self.policy.learning_step(quality)
        repetitions = current.repetitions + 1 if quality.is_pass else 0
        if session_position is None:
            session_position = current.session_position
        return replace(
            current,
            repetitions=repetitions,
            ease_factor=ease,
            interval_days=step / ONE_DAY,
            next_review_at=now + step,
            last_review_at=now,
            learning_phase=True,
            session_position=session_position,
        )

    def _answer_review(
        self,
        current: CardProgress,
        quality: Quality,
        now: datetime,
        session_position: int | None,
    ) -> CardProgress:
        ease = self._adjust_ease(current.ease_factor, quality)

        if quality is Quality.HARD:
            # Lapse: back into the learning phase, retried early in this session
            step = self.policy.step_hard
            return replace(
                current,
                repetitions=0,
                ease_factor=ease,
                interval_days=step / ONE_DAY,
                next_review_at=now + step,
                last_review_at=now,
                learning_phase=True,
                session_position=(
                    c.FRONT_OF_SESSION if session_position is None else session_position
                ),
            )

        repetitions = current.repetitions + 1
        if quality is Quality.MEDIUM:
            interval_days = self.policy.review_medium_interval_days
        else:
            interval_days = max(
                self._easy_review_interval(current, repetitions, ease),
                self.policy.review_medium_interval_days,
            )

        return replace(
            current,
            repetitions=repetitions,
            ease_factor=ease,
            interval_days=interval_days,
            next_review_at=now + timedelta(days=interval_days),
            last_review_at=now,
            learning_phase=False,
            session_position=None,
        )

    def _easy_review_interval(
        self, current: CardProgress, repetitions: int, ease: float
    ) -> float:
        """Fixed ladder for the first reviews, multiplicative growth afterwards."""
        if repetitions == 3:
            return self.policy.second_review_interval_days
        if repetitions == 4:
            return self.policy.third_review_interval_days
        return max(current.interval_days, 0.0) * ease

    def _adjust_ease(self, ease_factor: float, quality: Quality) -> float:
        adjusted = ease_factor + self.policy.ease_delta(quality)
        adjusted = min(adjusted, self.policy.max_ease_factor)
        return max(adjusted, self.policy.min_ease_factor)


def describe_delay(delay: timedelta) -> str:
    """
    Render a delay as a short relative phrase, e.g. "in 10 minutes".
    """
    total_seconds = int(round(delay.total_seconds()))
    if total_seconds <= 0:
        return "now"

    minutes = total_seconds // 60
    hours = minutes // 60
    days = hours // 24
    weeks = days // 7
    months = days // 30

    if total_seconds < 60:
        return _plural(total_seconds, "second")
    if minutes < 60:
        return _plural(minutes, "minute")
    if hours < 24:
        return _plural(hours, "hour")
    if days < 7:
        return _plural(days, "day")
    if weeks < 4:
        return _plural(weeks, "week")
    if months >= 1:
        return _plural(months, "month")
    return _plural(days, "day")


def _plural(count: int, unit: str) -> str:
    suffix = "" if count == 1 else "s"
    return f"in {count} {unit}{suffix}"
