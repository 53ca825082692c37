"""Centralized constants for lingoflow.

All magic numbers and configuration defaults live here so every layer
imports from a single source of truth.
"""

from datetime import timedelta

# ---------- Subscription ----------
BILLING_PERIOD = timedelta(days=30)
INACTIVITY_WINDOW = timedelta(days=30)

# ---------- SM-2 ----------
DEFAULT_EASE = 2.5
MIN_EASE = 1.3
FAILURE_EASE_PENALTY = 0.2
PASSING_GRADE = 3
MIN_GRADE = 0
MAX_GRADE = 5
FIRST_INTERVAL_DAYS = 1
SECOND_INTERVAL_DAYS = 6

# ---------- Extraction ----------
DEFAULT_CARD_LIMIT = 30
KNOWN_TERM_NOVELTY = 0.1
WORD_NOVELTY = 1.0
COLLOCATION_NOVELTY = 1.2
MIN_COLLOCATION_FREQUENCY = 2
STARRED_BONUS = 5.0
MIN_LEMMA_LENGTH = 2
FALLBACK_POS = "noun"
PHRASE_TAG = "phrase"
EXAMPLE_PROMPT = "Use {term} in a sentence."

# ---------- CEFR heuristic ----------
CEFR_FREQUENT_THRESHOLD = 5
CEFR_LONG_TERM_LENGTH = 12

# ---------- Images ----------
PLACEHOLDER_IMAGE_URL = "https://picsum.photos/seed/placeholder/400/400"
PLACEHOLDER_IMAGE_POOL = [f"https://picsum.photos/seed/lingo{i}/400/400" for i in range(1, 11)]

# ---------- HTTP ----------
REQUEST_TIMEOUT = 30.0

# ---------- Analytics ----------
MINUTES_PER_EVENT = 3
