from datetime import timedelta
from pathlib import Path

import pytest
from pydantic import ValidationError

from wordloop.application.config import WordloopConfig, resolve_config
from wordloop.application.interval_engine import IntervalPolicy
from wordloop.application.mastery import MasteryPolicy
from wordloop.application.session_queue import QueuePolicy


def write_config(home: Path, body: str, name: str = ".config/wordloop/config.toml") -> Path:
    path = home / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(body)
    return path


def test_defaults(mock_home):
    config = resolve_config()

    assert config.backend == "sqlite"
    assert config.database_path == mock_home / ".local/share/wordloop/wordloop.sqlite3"
    assert config.session_limit == 70
    assert config.checkpoint_every == 12
    assert config.undo_capacity == 5
    assert config.free_daily_limit == 15
    assert config.premium_daily_limit == 100
    assert config.interval_policy() == IntervalPolicy()
    assert config.queue_policy() == QueuePolicy()


def test_toml_file_is_read(mock_home):
    write_config(
        mock_home,
        'backend = "memory"\nsession_limit = 20\nreinsert_ratio_hard = 0.5\n',
    )

    config = resolve_config()

    assert config.backend == "memory"
    assert config.session_limit == 20
    assert config.queue_policy().ratio_hard == 0.5


def test_xdg_config_wins_over_dotfile(mock_home):
    write_config(mock_home, "session_limit = 10\n")
    write_config(mock_home, "session_limit = 99\n", name=".wordloop.toml")

    assert resolve_config().session_limit == 10


def test_dotfile_used_when_alone(mock_home):
    write_config(mock_home, "undo_capacity = 3\n", name=".wordloop.toml")

    assert resolve_config().undo_capacity == 3


def test_env_overrides_file(mock_home, monkeypatch):
    write_config(mock_home, "session_limit = 20\n")
    monkeypatch.setenv("WORDLOOP_SESSION_LIMIT", "30")

    assert resolve_config().session_limit == 30


def test_explicit_overrides_win_and_none_is_ignored(mock_home, monkeypatch):
    monkeypatch.setenv("WORDLOOP_SESSION_LIMIT", "30")

    config = resolve_config({"session_limit": 5, "database_path": None})

    assert config.session_limit == 5
    assert config.database_path.name == "wordloop.sqlite3"


def test_database_path_expands_user(mock_home):
    config = resolve_config({"database_path": "~/cards.db"})

    assert config.database_path == mock_home / "cards.db"


def test_engine_policy_from_config(mock_home):
    config = WordloopConfig(
        ease_delta_medium=-0.1,
        graduation_repetitions=3,
        graduation_interval_days=2.0,
        min_ease_factor=1.5,
        max_ease_factor=3.0,
        learning_step_hard_minutes=1,
        learning_step_medium_minutes=6,
        learning_step_easy_minutes=20,
        review_medium_interval_days=2.0,
        second_review_interval_days=4.0,
        third_review_interval_days=10.0,
    )

    policy = config.interval_policy()

    assert policy.ease_delta_medium == -0.1
    assert policy.graduation_repetitions == 3
    assert policy.graduation_interval_days == 2.0
    assert (policy.min_ease_factor, policy.max_ease_factor) == (1.5, 3.0)
    assert policy.step_hard == timedelta(minutes=1)
    assert policy.step_medium == timedelta(minutes=6)
    assert policy.step_easy == timedelta(minutes=20)
    assert policy.review_medium_interval_days == 2.0
    assert policy.second_review_interval_days == 4.0
    assert policy.third_review_interval_days == 10.0


def test_learning_steps_from_toml(mock_home):
    write_config(mock_home, "learning_step_hard_minutes = 2.5\n")

    assert resolve_config().interval_policy().step_hard == timedelta(minutes=2.5)


def test_mastery_policy_from_config(mock_home):
    assert resolve_config().mastery_policy() == MasteryPolicy()

    policy = WordloopConfig(mastery_repetitions=8, mastery_interval_days=60).mastery_policy()

    assert policy == MasteryPolicy(min_repetitions=8, min_interval_days=60.0)


def test_ease_bounds_must_be_ordered(mock_home):
    with pytest.raises(ValidationError, match="max_ease_factor"):
        WordloopConfig(min_ease_factor=2.0, max_ease_factor=1.5, initial_ease_factor=1.8)


def test_initial_ease_must_lie_within_bounds(mock_home):
    with pytest.raises(ValidationError, match="initial_ease_factor"):
        WordloopConfig(max_ease_factor=2.0)


@pytest.mark.parametrize(
    "field,value",
    [
        ("session_limit", 0),
        ("undo_capacity", -1),
        ("free_daily_limit", 0),
        ("graduation_repetitions", 0),
        ("checkpoint_every", -1),
        ("reinsert_ratio_easy", 1.5),
        ("reinsert_ratio_hard", -0.1),
        ("learning_step_medium_minutes", 0),
        ("graduation_interval_days", -1.0),
        ("min_ease_factor", 0),
        ("third_review_interval_days", 0),
        ("mastery_repetitions", 0),
        ("mastery_interval_days", -5),
        ("backend", "postgres"),
    ],
)
def test_invalid_values_rejected(mock_home, field, value):
    with pytest.raises(ValidationError):
        WordloopConfig(**{field: value})


def test_checkpoint_zero_disables(mock_home):
    assert WordloopConfig(checkpoint_every=0).checkpoint_every == 0
