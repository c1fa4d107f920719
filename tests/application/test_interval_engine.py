from datetime import timedelta

import pytest

from wordloop.application.interval_engine import IntervalEngine, IntervalPolicy, describe_delay
from wordloop.domain.models import LearningPhase, Quality, ReviewPhase, StudyDirection

QUALITIES = [Quality.HARD, Quality.MEDIUM, Quality.EASY]


# --- Learning phase ---


def test_fresh_card_hard_resets_and_lowers_ease(engine, clock, make_learning):
    card = make_learning(1, position=3)

    result = engine.next_state(card, Quality.HARD, now=clock.now)

    assert result.repetitions == 0
    assert result.ease_factor == pytest.approx(2.3)
    assert result.interval_days == pytest.approx(5 / (24 * 60))
    assert result.next_review_at == clock.now + timedelta(minutes=5)
    assert result.last_review_at == clock.now
    assert result.learning_phase is True
    assert result.session_position == 3


def test_fresh_card_medium_counts_repetition_with_neutral_ease(engine, clock, make_learning):
    card = make_learning(1)

    result = engine.next_state(card, Quality.MEDIUM, now=clock.now)

    assert result.repetitions == 1
    assert result.ease_factor == pytest.approx(2.5)
    assert result.next_review_at == clock.now + timedelta(minutes=10)
    assert result.learning_phase is True


def test_first_easy_stays_in_learning(engine, clock, make_learning):
    card = make_learning(1)

    result = engine.next_state(card, Quality.EASY, now=clock.now)

    assert result.repetitions == 1
    assert result.learning_phase is True
    assert result.next_review_at == clock.now + timedelta(minutes=15)
    # Already at the ease ceiling
    assert result.ease_factor == pytest.approx(2.5)


def test_second_easy_graduates(engine, clock, make_learning):
    card = make_learning(1, position=4, repetitions=1, ease_factor=2.0)

    result = engine.next_state(card, Quality.EASY, now=clock.now)

    assert result.repetitions == 2
    assert result.learning_phase is False
    assert result.session_position is None
    assert result.interval_days == 1.0
    assert result.next_review_at == clock.now + timedelta(days=1)
    assert result.ease_factor == pytest.approx(2.1)
    assert isinstance(result.phase, ReviewPhase)


def test_medium_never_graduates(engine, clock, make_learning):
    card = make_learning(1, repetitions=5)

    result = engine.next_state(card, Quality.MEDIUM, now=clock.now)

    assert result.learning_phase is True
    assert result.repetitions == 6


def test_explicit_session_position_is_recorded(engine, clock, make_learning):
    card = make_learning(1, position=0)

    result = engine.next_state(card, Quality.HARD, now=clock.now, session_position=7)

    assert result.session_position == 7
    assert result.phase == LearningPhase(session_position=7)


def test_graduation_threshold_is_configurable(clock, make_learning):
    engine = IntervalEngine(IntervalPolicy(graduation_repetitions=3))
    card = make_learning(1, repetitions=1)

    result = engine.next_state(card, Quality.EASY, now=clock.now)

    assert result.learning_phase is True
    assert engine.will_graduate(result, Quality.EASY)


# --- Review phase ---


def test_review_hard_lapses_back_to_front_of_session(engine, clock, make_review):
    card = make_review(1, repetitions=4, interval_days=7.0, ease_factor=2.4)

    result = engine.next_state(card, Quality.HARD, now=clock.now)

    assert result.learning_phase is True
    assert result.repetitions == 0
    assert result.session_position == 0
    assert result.ease_factor == pytest.approx(2.2)
    assert result.next_review_at == clock.now + timedelta(minutes=5)


def test_review_medium_schedules_one_day(engine, clock, make_review):
    card = make_review(1, repetitions=3, interval_days=3.0, ease_factor=2.0)

    result = engine.next_state(card, Quality.MEDIUM, now=clock.now)

    assert result.learning_phase is False
    assert result.repetitions == 4
    assert result.interval_days == 1.0
    assert result.ease_factor == pytest.approx(2.0)


@pytest.mark.parametrize(
    "repetitions,interval,expected",
    [
        (2, 1.0, 3.0),
        (3, 3.0, 7.0),
        (4, 7.0, 17.5),
        (6, 20.0, 50.0),
    ],
)
def test_review_easy_interval_ladder(engine, clock, make_review, repetitions, interval, expected):
    card = make_review(1, repetitions=repetitions, interval_days=interval, ease_factor=2.5)

    result = engine.next_state(card, Quality.EASY, now=clock.now)

    assert result.interval_days == pytest.approx(expected)
    assert result.next_review_at == clock.now + timedelta(days=expected)
    assert result.repetitions == repetitions + 1


def test_review_easy_never_shorter_than_medium(engine, clock, make_review):
    card = make_review(1, repetitions=1, interval_days=0.0)

    result = engine.next_state(card, Quality.EASY, now=clock.now)

    assert result.interval_days >= 1.0


def test_is_mastered_is_left_alone(engine, clock, make_review):
    card = make_review(1, repetitions=8, interval_days=40.0, is_mastered=True)

    for quality in QUALITIES:
        assert engine.next_state(card, quality, now=clock.now).is_mastered is True


def test_next_state_does_not_mutate_input(engine, clock, make_learning):
    card = make_learning(1, position=2, repetitions=1)
    snapshot = card

    engine.next_state(card, Quality.EASY, now=clock.now)

    assert card == snapshot
    assert card.learning_phase is True


# --- Invariants over a grid of starting states ---


def _states(make_learning, make_review):
    for ease in (1.3, 1.45, 2.0, 2.5):
        for reps in (0, 1, 2, 3, 4, 7):
            yield make_learning(1, repetitions=reps, ease_factor=ease)
            for interval in (0.0, 1.0, 3.0, 12.5):
                yield make_review(1, repetitions=reps, ease_factor=ease, interval_days=interval)


def test_ease_never_below_floor(engine, clock, make_learning, make_review):
    for state in _states(make_learning, make_review):
        for quality in QUALITIES:
            result = engine.next_state(state, quality, now=clock.now)
            assert result.ease_factor >= 1.3
            assert result.interval_days >= 0


def test_interval_monotonic_in_quality(engine, clock, make_learning, make_review):
    for state in _states(make_learning, make_review):
        hard, medium, easy = (
            engine.next_state(state, q, now=clock.now).interval_days for q in QUALITIES
        )
        assert hard <= medium <= easy


# --- Previews ---


def test_preview_texts_for_fresh_card(engine, clock, make_learning):
    texts = engine.preview_texts(make_learning(1), now=clock.now)

    assert texts.as_tuple() == ("in 5 minutes", "in 10 minutes", "in 15 minutes")


def test_preview_texts_before_graduation(engine, clock, make_learning):
    texts = engine.preview_texts(make_learning(1, repetitions=1), now=clock.now)

    assert texts.easy == "in 1 day"


def test_preview_texts_for_mature_review_card(engine, clock, make_review):
    card = make_review(1, repetitions=4, interval_days=7.0, ease_factor=2.5)

    texts = engine.preview_texts(card, now=clock.now)

    assert texts.hard == "in 5 minutes"
    assert texts.medium == "in 1 day"
    assert texts.easy == "in 2 weeks"


def test_preview_is_pure(engine, clock, make_learning):
    card = make_learning(1, repetitions=1)

    first = engine.preview_texts(card, now=clock.now)
    second = engine.preview_texts(card, now=clock.now)

    assert first == second
    assert card.repetitions == 1


@pytest.mark.parametrize(
    "delay,expected",
    [
        (timedelta(0), "now"),
        (timedelta(seconds=-5), "now"),
        (timedelta(seconds=30), "in 30 seconds"),
        (timedelta(minutes=1), "in 1 minute"),
        (timedelta(hours=3), "in 3 hours"),
        (timedelta(days=1), "in 1 day"),
        (timedelta(days=14), "in 2 weeks"),
        (timedelta(days=29), "in 29 days"),
        (timedelta(days=45), "in 1 month"),
        (timedelta(days=90), "in 3 months"),
    ],
)
def test_describe_delay(delay, expected):
    assert describe_delay(delay) == expected


def test_initial_progress_is_due_immediately(engine, clock):
    progress = engine.initial_progress(9, StudyDirection.TR_TO_EN, now=clock.now)

    assert progress.learning_phase is True
    assert progress.repetitions == 0
    assert progress.ease_factor == 2.5
    assert progress.is_due(clock.now)
    assert progress.last_review_at is None
