import pytest

from wordloop.application.session_queue import QueuePolicy, SessionQueue
from wordloop.domain.models import Quality

A, B, C, D, E = 1, 2, 3, 4, 5


def test_hard_then_easy_reordering_example(make_learning):
    queue = SessionQueue([A, B, C, D, E])

    move = queue.apply(make_learning(A), Quality.HARD)
    assert move.to_index == 2
    assert queue.cards == [B, C, A, D, E]

    move = queue.apply(make_learning(B), Quality.EASY)
    assert move.to_index == 4
    assert queue.cards == [C, A, D, E, B]
    assert queue.current == C


def test_medium_offset(make_learning):
    queue = SessionQueue([A, B, C, D, E, 6])

    queue.apply(make_learning(A), Quality.MEDIUM)

    # remaining=5, floor(5 * 0.8) = 4
    assert queue.cards == [B, C, D, E, A, 6]


@pytest.mark.parametrize("size", [1, 2, 3, 5, 8, 13, 50])
def test_reinsert_index_monotonic_in_quality(size):
    queue = SessionQueue(range(size))

    hard = queue.reinsert_index(Quality.HARD)
    medium = queue.reinsert_index(Quality.MEDIUM)
    easy = queue.reinsert_index(Quality.EASY)

    assert 0 <= hard <= medium <= easy <= size - 1


def test_single_card_stays_put(make_learning):
    queue = SessionQueue([A])

    move = queue.apply(make_learning(A), Quality.HARD)

    assert move.to_index == 0
    assert queue.cards == [A]
    assert queue.current == A


def test_graduated_card_is_evicted(make_review):
    queue = SessionQueue([A, B, C])

    move = queue.apply(make_review(A), Quality.EASY)

    assert move.evicted
    assert queue.cards == [B, C]
    assert A not in queue


def test_apply_rejects_non_current_card(make_learning):
    queue = SessionQueue([A, B])

    with pytest.raises(ValueError):
        queue.apply(make_learning(B), Quality.EASY)


def test_skip_current_moves_cursor_and_reinsert_stays_ahead(make_learning):
    queue = SessionQueue([A, B, C, D])

    assert queue.skip_current() == A
    assert queue.cursor == 1
    assert queue.current == B

    # remaining after cursor once B is out: [C, D] -> floor(2 * 0.6) = 1
    move = queue.apply(make_learning(B), Quality.HARD)
    assert move.to_index == 2
    assert queue.cards == [A, C, B, D]
    assert queue.current == C


def test_exhaustion_and_restart(make_review):
    queue = SessionQueue([A, B, C])
    queue.skip_current()
    queue.apply(make_review(B), Quality.EASY)
    queue.skip_current()

    assert queue.is_exhausted
    assert queue.current is None

    assert queue.restart([C, A]) is True
    assert queue.cards == [A, C]
    assert queue.cursor == 0
    assert queue.current == A


def test_restart_brings_back_evicted_batch_cards_and_ignores_strangers(make_review):
    queue = SessionQueue([A, B, C])
    queue.apply(make_review(A), Quality.EASY)

    assert queue.restart([A, 99]) is True
    assert queue.cards == [A]


def test_restart_with_nothing_left():
    queue = SessionQueue([A, B])

    assert queue.restart([]) is False
    assert len(queue) == 0
    assert queue.is_exhausted


def test_batch_is_fixed_and_deduplicated(make_learning):
    queue = SessionQueue([A, B, A, C])

    queue.apply(make_learning(A), Quality.EASY)

    assert queue.batch == (A, B, C)
    assert queue.cards == [B, C, A]


def test_custom_ratios():
    queue = SessionQueue(range(11), QueuePolicy(ratio_hard=0.1, ratio_medium=0.5, ratio_easy=0.9))

    assert queue.reinsert_index(Quality.HARD) == 1
    assert queue.reinsert_index(Quality.MEDIUM) == 5
    assert queue.reinsert_index(Quality.EASY) == 9
