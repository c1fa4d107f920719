from datetime import timedelta
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from wordloop.domain import constants as c

from .interval_engine import IntervalPolicy
from .mastery import MasteryPolicy
from .session_queue import QueuePolicy


def config_files() -> list[Path]:
    return [
        Path.home() / ".config/wordloop/config.toml",
        Path.home() / ".wordloop.toml",
    ]


class WordloopConfig(BaseSettings):
    """
    Configuration model for wordloop.
    Supports loading from:
    1. Environment variables (WORDLOOP_*)
    2. Config file (~/.config/wordloop/config.toml)
    3. Manual overrides (CLI or embedding application)
    """

    model_config = SettingsConfigDict(
        env_prefix="WORDLOOP_",
        extra="ignore",
    )

    # Storage
    backend: Literal["memory", "sqlite"] = "sqlite"
    database_path: Path = Field(
        default_factory=lambda: Path.home() / ".local/share/wordloop" / c.DEFAULT_DATABASE_NAME
    )

    # Session
    session_limit: int = c.DEFAULT_SESSION_LIMIT
    checkpoint_every: int = c.DEFAULT_CHECKPOINT_EVERY

    # Selection
    undo_capacity: int = c.UNDO_CAPACITY
    free_daily_limit: int = c.FREE_DAILY_SELECTIONS
    premium_daily_limit: int = c.PREMIUM_DAILY_SELECTIONS

    # Interval engine
    graduation_repetitions: int = c.GRADUATION_REPETITIONS
    graduation_interval_days: float = c.GRADUATION_INTERVAL_DAYS
    initial_ease_factor: float = c.DEFAULT_EASE_FACTOR
    min_ease_factor: float = c.MIN_EASE_FACTOR
    max_ease_factor: float = c.MAX_EASE_FACTOR
    ease_delta_hard: float = c.EASE_DELTA_HARD
    ease_delta_medium: float = c.EASE_DELTA_MEDIUM
    ease_delta_easy: float = c.EASE_DELTA_EASY
    learning_step_hard_minutes: float = c.LEARNING_STEP_HARD.total_seconds() / 60
    learning_step_medium_minutes: float = c.LEARNING_STEP_MEDIUM.total_seconds() / 60
    learning_step_easy_minutes: float = c.LEARNING_STEP_EASY.total_seconds() / 60
    review_medium_interval_days: float = c.REVIEW_MEDIUM_INTERVAL_DAYS
    second_review_interval_days: float = c.SECOND_REVIEW_INTERVAL_DAYS
    third_review_interval_days: float = c.THIRD_REVIEW_INTERVAL_DAYS

    # Mastery
    mastery_repetitions: int = c.MASTERY_REPETITIONS
    mastery_interval_days: float = c.MASTERY_INTERVAL_DAYS

    # Session queue
    reinsert_ratio_hard: float = c.REINSERT_RATIO_HARD
    reinsert_ratio_medium: float = c.REINSERT_RATIO_MEDIUM
    reinsert_ratio_easy: float = c.REINSERT_RATIO_EASY

    verbose: int = 1

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        # First existing file wins
        toml_file = next((f for f in config_files() if f.exists()), None)

        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (init_settings, env_settings)

    @field_validator("database_path", mode="before")
    @classmethod
    def resolve_database_path(cls, v: Any) -> Path:
        return Path(v).expanduser()

    @field_validator(
        "session_limit",
        "undo_capacity",
        "free_daily_limit",
        "premium_daily_limit",
        "graduation_repetitions",
        "mastery_repetitions",
    )
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("checkpoint_every")
    @classmethod
    def must_not_be_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must be zero (disabled) or positive")
        return v

    @field_validator("reinsert_ratio_hard", "reinsert_ratio_medium", "reinsert_ratio_easy")
    @classmethod
    def ratio_in_unit_interval(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("ratio must be between 0 and 1")
        return v

    @field_validator(
        "graduation_interval_days",
        "initial_ease_factor",
        "min_ease_factor",
        "max_ease_factor",
        "learning_step_hard_minutes",
        "learning_step_medium_minutes",
        "learning_step_easy_minutes",
        "review_medium_interval_days",
        "second_review_interval_days",
        "third_review_interval_days",
        "mastery_interval_days",
    )
    @classmethod
    def must_be_positive_number(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @model_validator(mode="after")
    def ease_bounds_ordered(self) -> "WordloopConfig":
        if self.max_ease_factor < self.min_ease_factor:
            raise ValueError("max_ease_factor must not be below min_ease_factor")
        if not self.min_ease_factor <= self.initial_ease_factor <= self.max_ease_factor:
            raise ValueError("initial_ease_factor must lie within the ease bounds")
        return self

    def interval_policy(self) -> IntervalPolicy:
        return IntervalPolicy(
            ease_delta_hard=self.ease_delta_hard,
            ease_delta_medium=self.ease_delta_medium,
            ease_delta_easy=self.ease_delta_easy,
            min_ease_factor=self.min_ease_factor,
            max_ease_factor=self.max_ease_factor,
            initial_ease_factor=self.initial_ease_factor,
            graduation_repetitions=self.graduation_repetitions,
            graduation_interval_days=self.graduation_interval_days,
            step_hard=timedelta(minutes=self.learning_step_hard_minutes),
            step_medium=timedelta(minutes=self.learning_step_medium_minutes),
            step_easy=timedelta(minutes=self.learning_step_easy_minutes),
            review_medium_interval_days=self.review_medium_interval_days,
            second_review_interval_days=self.second_review_interval_days,
            third_review_interval_days=self.third_review_interval_days,
        )

    def mastery_policy(self) -> MasteryPolicy:
        return MasteryPolicy(
            min_repetitions=self.mastery_repetitions,
            min_interval_days=self.mastery_interval_days,
        )

    def queue_policy(self) -> QueuePolicy:
        return QueuePolicy(
            ratio_hard=self.reinsert_ratio_hard,
            ratio_medium=self.reinsert_ratio_medium,
            ratio_easy=self.reinsert_ratio_easy,
        )


def resolve_config(overrides: dict[str, Any] | None = None) -> WordloopConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in WordloopConfig
    2. ~/.config/wordloop/config.toml (if exists)
    3. Environment variables (WORDLOOP_*)
    4. overrides (non-None values only)
    """
    cleaned = {k: v for k, v in (overrides or {}).items() if v is not None}
    return WordloopConfig(**cleaned)
