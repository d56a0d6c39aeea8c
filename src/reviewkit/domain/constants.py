"""Centralized constants for reviewkit.

All magic numbers and scheduling defaults live here so every layer
imports from a single source of truth.
"""

# ---------- SM-2 ----------
DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3
MIN_QUALITY = 0
MAX_QUALITY = 5
PASSING_QUALITY = 3  # q >= 3 counts as a successful recall
FIRST_INTERVAL = 1  # days
SECOND_INTERVAL = 6  # days
FAILED_INTERVAL = 1  # days
EASE_DECIMALS = 2

# ---------- Deck buckets ----------
MATURE_REPETITIONS = 3  # "review" bucket threshold
MASTERED_REPETITIONS = 5  # reporting label only

# ---------- Study sessions ----------
DEFAULT_REVIEW_LIMIT = 20
DEFAULT_NEW_LIMIT = 10
SECONDS_PER_CARD = 10

# ---------- Review submission ----------
DEFAULT_MAX_RETRIES = 3

QUALITY_LABELS = ["Blackout", "Wrong", "Hard", "Good", "Easy", "Perfect"]
