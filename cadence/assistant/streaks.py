"""Consecutive-day streak arithmetic.

Pure functions over :class:`StreakRecord`; persistence is the caller's job.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from ..datetime_utils import days_between
from .models import StreakRecord


def initial_record(habit_id: str, *, now: datetime | None = None) -> StreakRecord:
    """Zeroed record for a habit that has never been completed."""
    return StreakRecord(habit_id=habit_id, last_updated=now or datetime.now())


def update_with_completion(
    record: StreakRecord,
    completed_at: datetime,
    *,
    now: datetime | None = None,
) -> StreakRecord:
    """Apply one completion to ``record`` and return the updated copy.

    A second completion on the same calendar day only bumps the total. A completion
    on the day after the last one extends the streak. Anything else (a gap, a
    backdated completion or the very first completion) starts a new streak of one.
    """
    updated_at = now or datetime.now()
    last = record.last_completion_date

    if last is not None and days_between(last, completed_at) == 0:
        return replace(
            record,
            total_completions=record.total_completions + 1,
            last_updated=updated_at,
        )

    if last is not None and days_between(last, completed_at) == 1:
        current = record.current_streak + 1
        start = record.current_streak_start_date or completed_at
    else:
        current = 1
        start = completed_at

    return replace(
        record,
        current_streak=current,
        longest_streak=max(record.longest_streak, current),
        current_streak_start_date=start,
        last_completion_date=completed_at,
        total_completions=record.total_completions + 1,
        last_updated=updated_at,
    )
