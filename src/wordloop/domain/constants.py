"""Centralized constants for wordloop.

All tuning numbers and configuration defaults live here so every layer
imports from a single source of truth. Anything policy-like is also exposed
for override through ``IntervalPolicy``, ``QueuePolicy`` and the config model.
"""

from datetime import timedelta

# ---------- Ease factor ----------
DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3
MAX_EASE_FACTOR = 2.5

EASE_DELTA_HARD = -0.2
EASE_DELTA_MEDIUM = 0.0
EASE_DELTA_EASY = 0.1

# ---------- Learning phase ----------
# Cards stay in the session; these only drive next_review_at and button previews.
LEARNING_STEP_HARD = timedelta(minutes=5)
LEARNING_STEP_MEDIUM = timedelta(minutes=10)
LEARNING_STEP_EASY = timedelta(minutes=15)

GRADUATION_REPETITIONS = 2
GRADUATION_INTERVAL_DAYS = 1.0
FRONT_OF_SESSION = 0

# ---------- Review phase ----------
REVIEW_MEDIUM_INTERVAL_DAYS = 1.0
SECOND_REVIEW_INTERVAL_DAYS = 3.0  # applied at repetition 3
THIRD_REVIEW_INTERVAL_DAYS = 7.0  # applied at repetition 4

# ---------- Session queue ----------
REINSERT_RATIO_HARD = 0.60
REINSERT_RATIO_MEDIUM = 0.80
REINSERT_RATIO_EASY = 1.0

DEFAULT_SESSION_LIMIT = 70
DEFAULT_CHECKPOINT_EVERY = 12

# ---------- Selection ----------
UNDO_CAPACITY = 5
FREE_DAILY_SELECTIONS = 15
PREMIUM_DAILY_SELECTIONS = 100

# ---------- Storage ----------
DEFAULT_DATABASE_NAME = "wordloop.sqlite3"

# ---------- Mastery ----------
MASTERY_REPETITIONS = 5
MASTERY_INTERVAL_DAYS = 30.0
