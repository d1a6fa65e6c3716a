"""Shared datetime helpers: local time, calendar-day arithmetic and spoken wording."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta

# (upper bound hour exclusive, label); hours at or past the last bound wrap to night
_TIME_OF_DAY_BUCKETS: tuple[tuple[int, str], ...] = (
    (6, "night"),
    (12, "morning"),
    (17, "afternoon"),
    (21, "evening"),
)

_DURATION_UNITS: tuple[tuple[str, int], ...] = (
    ("day", 86400),
    ("hour", 3600),
    ("minute", 60),
)


def calendar_day(value: datetime | date) -> date:
    """Return the local calendar day for a datetime (naive values are taken as local)."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone()
        return value.date()
    return value


def days_between(earlier: datetime | date, later: datetime | date) -> int:
    """Count calendar-day boundaries between two moments (negative if ``later`` is earlier)."""
    return (calendar_day(later) - calendar_day(earlier)).days


def is_same_day(a: datetime | date, b: datetime | date) -> bool:
    return calendar_day(a) == calendar_day(b)


def start_of_day(dt: datetime) -> datetime:
    return datetime.combine(dt.date(), time.min, tzinfo=dt.tzinfo)


def describe_relative_day(value: datetime | date, now: datetime | None = None) -> str:
    """Describe a date for speech: today, yesterday, ``n days ago`` within a week, else D/M/Y."""
    reference = now or datetime.now()
    delta = days_between(value, reference)
    if delta == 0:
        return "today"
    if delta == 1:
        return "yesterday"
    if 1 < delta < 7:
        return f"{delta} days ago"
    day = calendar_day(value)
    return f"{day.day}/{day.month}/{day.year}"


def describe_duration(duration: timedelta) -> str:
    """Describe a duration using its largest nonzero unit, e.g. ``1 hour`` or ``3 days``."""
    total = int(abs(duration.total_seconds()))
    for unit, size in _DURATION_UNITS:
        amount = total // size
        if amount > 0:
            return f"{amount} {unit}{'' if amount == 1 else 's'}"
    return f"{total} second{'' if total == 1 else 's'}"


def format_clock_time(dt: datetime) -> str:
    """Format a time like ``7:05 PM``."""
    hour = dt.hour
    period = "PM" if hour >= 12 else "AM"
    display_hour = hour % 12 or 12
    return f"{display_hour}:{dt.minute:02d} {period}"


def time_of_day_bucket(dt: datetime) -> str:
    """Map an hour to morning/afternoon/evening/night."""
    for bound, label in _TIME_OF_DAY_BUCKETS:
        if dt.hour < bound:
            return label
    return "night"
