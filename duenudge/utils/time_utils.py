"""Time and timezone utilities."""

import math
from datetime import datetime, time, timedelta
from typing import Tuple
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta

from duenudge.db.models import UserProfile
from duenudge.utils.constants import (
    DEFAULT_LEAD_MINUTES,
    DEFAULT_PEAK_ENERGY_HOURS,
    LEAD_TIME_BUCKETS,
    PEAK_ENERGY_HOURS,
    SHORT_TASK_LEAD_MINUTES,
    SHORT_TASK_MAX_MINUTES,
)


def to_local(dt: datetime, tz: str) -> datetime:
    """Express a datetime on the wall clock of `tz`.

    Naive datetimes are taken to already be local to `tz`.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=ZoneInfo(tz))
    return dt.astimezone(ZoneInfo(tz))


def parse_hhmm(value: str) -> Tuple[int, int]:
    """Parse an HH:MM string into (hour, minute)."""
    parsed = time.fromisoformat(value)
    return parsed.hour, parsed.minute


def minute_of_day(dt: datetime) -> int:
    return dt.hour * 60 + dt.minute


def at_time_of_day(dt: datetime, hour: int, minute: int = 0) -> datetime:
    """Same calendar day as `dt`, at the given wall-clock time."""
    return dt.replace(hour=hour, minute=minute, second=0, microsecond=0)


def start_of_day(dt: datetime) -> datetime:
    """Local midnight of the day containing `dt`."""
    return at_time_of_day(dt, 0, 0)


def add_days(dt: datetime, days: int) -> datetime:
    """Move by whole calendar days, keeping the wall-clock time."""
    return dt + relativedelta(days=days)


def shift(dt: datetime, delta: timedelta) -> datetime:
    """Move by an absolute duration, keeping the datetime's zone.

    Plain arithmetic on zone-aware datetimes is wall-clock arithmetic; going
    through UTC keeps "2 hours before" exactly two elapsed hours across DST.
    """
    if dt.tzinfo is None:
        return dt + delta
    return (dt.astimezone(ZoneInfo("UTC")) + delta).astimezone(dt.tzinfo)


def has_specific_time(due_date: datetime) -> bool:
    """A due date at exactly midnight is treated as date-only."""
    return not (due_date.hour == 0 and due_date.minute == 0)


def peak_energy_hours(preference: str | None) -> Tuple[int, int]:
    """Get the [start, end) hours of the user's peak energy window."""
    return PEAK_ENERGY_HOURS.get(preference or "", DEFAULT_PEAK_ENERGY_HOURS)


def lead_time_for_duration(duration_minutes: int | None) -> int:
    """Get the final-reminder lead time (minutes) for a task duration.

    Examples:
        None -> 15
        20 -> 10
        45 -> 15
        90 -> 20
        180 -> 30
    """
    if not duration_minutes:
        return DEFAULT_LEAD_MINUTES

    for bucket in LEAD_TIME_BUCKETS:
        if duration_minutes >= bucket.min_duration_minutes:
            return bucket.lead_minutes

    if duration_minutes <= SHORT_TASK_MAX_MINUTES:
        return SHORT_TASK_LEAD_MINUTES

    return DEFAULT_LEAD_MINUTES


def is_within_work_hours(dt: datetime, profile: UserProfile) -> bool:
    """Check if a local datetime falls within the profile's work hours."""
    start_hour, start_min = parse_hhmm(profile.work_hours_start)
    end_hour, end_min = parse_hhmm(profile.work_hours_end)

    value = minute_of_day(dt)
    return start_hour * 60 + start_min <= value <= end_hour * 60 + end_min


def is_in_quiet_hours(dt: datetime, quiet_start: str, quiet_end: str) -> bool:
    """Check if a local datetime falls within quiet hours.

    Args:
        dt: The datetime to check, already on the user's wall clock
        quiet_start: Start time in HH:MM format (24-hour)
        quiet_end: End time in HH:MM format (24-hour)

    Returns:
        True if the datetime is within quiet hours (both bounds inclusive)
    """
    start_hour, start_min = parse_hhmm(quiet_start)
    end_hour, end_min = parse_hhmm(quiet_end)

    value = minute_of_day(dt)
    start = start_hour * 60 + start_min
    end = end_hour * 60 + end_min

    # Handle overnight quiet hours (e.g., 22:00 to 07:00)
    if start > end:
        return value >= start or value <= end
    return start <= value <= end


def adjust_to_work_hours(
    dt: datetime, profile: UserProfile, is_work_task: bool
) -> datetime:
    """Clamp a candidate time into work hours for work tasks."""
    if not is_work_task:
        return dt

    start_hour, start_min = parse_hhmm(profile.work_hours_start)
    end_hour, end_min = parse_hhmm(profile.work_hours_end)

    value = minute_of_day(dt)
    if value < start_hour * 60 + start_min:
        return at_time_of_day(dt, start_hour, start_min)
    if value > end_hour * 60 + end_min:
        return at_time_of_day(dt, end_hour, end_min)
    return dt


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'s' if count > 1 else ''}"


def format_time_remaining(target: datetime, now: datetime) -> str:
    """Format the distance to a due date.

    Examples:
        "Due in 2 hours"
        "Due 3 days ago"
        "Due now"
    """
    if target.tzinfo is not None and now.tzinfo is not None:
        # Same-zone subtraction ignores DST offsets
        target = target.astimezone(ZoneInfo("UTC"))
        now = now.astimezone(ZoneInfo("UTC"))

    diff_mins = math.floor((target - now).total_seconds() / 60)

    if diff_mins < 0:
        overdue_mins = abs(diff_mins)
        overdue_hours = overdue_mins // 60
        overdue_days = overdue_hours // 24

        if overdue_days > 0:
            return f"Due {_plural(overdue_days, 'day')} ago"
        elif overdue_hours > 0:
            return f"Due {_plural(overdue_hours, 'hour')} ago"
        return f"Due {_plural(overdue_mins, 'minute')} ago"

    diff_hours = diff_mins // 60
    diff_days = diff_hours // 24

    if diff_days > 0:
        return f"Due in {_plural(diff_days, 'day')}"
    elif diff_hours > 0:
        return f"Due in {_plural(diff_hours, 'hour')}"
    elif diff_mins > 0:
        return f"Due in {_plural(diff_mins, 'minute')}"

    return "Due now"
