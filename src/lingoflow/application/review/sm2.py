"""
SM-2 scheduling step.

This is a pure computation module with no I/O.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from lingoflow.domain.constants import (
    FAILURE_EASE_PENALTY,
    FIRST_INTERVAL_DAYS,
    MAX_GRADE,
    MIN_EASE,
    MIN_GRADE,
    PASSING_GRADE,
    SECOND_INTERVAL_DAYS,
)

SECONDS_PER_DAY = 86400.0


@dataclass(frozen=True)
class ScheduleStep:
    """Scheduling state produced by one graded recall."""

    strength: int
    ease: float
    interval_days: float  # Unrounded; next_due_at uses the rounded value
    next_due_at: datetime


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def ease_delta(grade: int) -> float:
    miss = MAX_GRADE - grade
    return 0.1 - miss * (0.08 + miss * 0.02)


def compute_schedule(
    strength: int,
    ease: float,
    next_due_at: datetime | None,
    grade: int,
    now: datetime,
) -> ScheduleStep:
    """
    Calculate the next scheduling state using SM-2.

    Args:
        strength: Consecutive successful recalls so far.
        ease: Current ease factor (minimum 1.3).
        next_due_at: The card's current due date, None if never reviewed.
        grade: Recall quality 0-5 (0=complete blackout, 5=perfect).
        now: Review time.

    Returns:
        ScheduleStep with the updated strength, ease, interval and due date.
    """
    if not MIN_GRADE <= grade <= MAX_GRADE:
        raise ValueError(f"grade must be between {MIN_GRADE} and {MAX_GRADE}, got {grade}")

    if grade < PASSING_GRADE:
        # Incorrect: reset
        new_strength = 0
        new_ease = max(MIN_EASE, ease - FAILURE_EASE_PENALTY)
        interval_days = float(FIRST_INTERVAL_DAYS)
    else:
        new_strength = strength + 1
        if new_strength == 1:
            interval_days = float(FIRST_INTERVAL_DAYS)
        elif new_strength == 2:
            interval_days = float(SECOND_INTERVAL_DAYS)
        else:
            previous = 1.0
            if next_due_at is not None:
                previous = max(1.0, (next_due_at - now).total_seconds() / SECONDS_PER_DAY)
            # Grown by the ease in effect before this review
            interval_days = previous * ease
        new_ease = max(MIN_EASE, ease + ease_delta(grade))

    return ScheduleStep(
        strength=new_strength,
        ease=new_ease,
        interval_days=interval_days,
        next_due_at=now + timedelta(days=round_half_up(interval_days)),
    )
