"""Tests for time utilities."""

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from duenudge.db.models import UserProfile
from duenudge.utils.time_utils import (
    adjust_to_work_hours,
    format_time_remaining,
    has_specific_time,
    is_in_quiet_hours,
    is_within_work_hours,
    lead_time_for_duration,
    peak_energy_hours,
    shift,
    start_of_day,
    to_local,
)

UTC = ZoneInfo("UTC")


def test_to_local_naive_is_taken_as_local():
    """Naive datetimes are already on the target wall clock."""
    local = to_local(datetime(2026, 3, 15, 9, 0), "America/New_York")

    assert local.hour == 9
    assert local.tzinfo == ZoneInfo("America/New_York")


def test_has_specific_time():
    """Midnight means date-only."""
    assert not has_specific_time(datetime(2026, 3, 15, 0, 0, tzinfo=UTC))
    assert has_specific_time(datetime(2026, 3, 15, 0, 1, tzinfo=UTC))
    assert has_specific_time(datetime(2026, 3, 15, 15, 0, tzinfo=UTC))


def test_peak_energy_hours():
    """Test peak energy windows."""
    assert peak_energy_hours("morning") == (8, 12)
    assert peak_energy_hours("afternoon") == (12, 17)
    assert peak_energy_hours("evening") == (17, 21)
    assert peak_energy_hours(None) == (9, 12)
    assert peak_energy_hours("night") == (9, 12)


def test_lead_time_for_duration():
    """Lead time is a step function of duration."""
    assert lead_time_for_duration(None) == 15
    assert lead_time_for_duration(0) == 15
    assert lead_time_for_duration(10) == 10
    assert lead_time_for_duration(30) == 10
    assert lead_time_for_duration(45) == 15
    assert lead_time_for_duration(60) == 20
    assert lead_time_for_duration(90) == 20
    assert lead_time_for_duration(120) == 30
    assert lead_time_for_duration(480) == 30


def test_is_in_quiet_hours_overnight():
    """Quiet hours spanning midnight."""
    assert is_in_quiet_hours(datetime(2026, 3, 15, 23, 30, tzinfo=UTC), "22:00", "07:00")
    assert is_in_quiet_hours(datetime(2026, 3, 15, 3, 0, tzinfo=UTC), "22:00", "07:00")
    assert not is_in_quiet_hours(datetime(2026, 3, 15, 8, 0, tzinfo=UTC), "22:00", "07:00")
    assert not is_in_quiet_hours(datetime(2026, 3, 15, 21, 59, tzinfo=UTC), "22:00", "07:00")


def test_is_in_quiet_hours_bounds_inclusive():
    """Both ends of the window count as quiet."""
    assert is_in_quiet_hours(datetime(2026, 3, 15, 22, 0, tzinfo=UTC), "22:00", "07:00")
    assert is_in_quiet_hours(datetime(2026, 3, 15, 7, 0, tzinfo=UTC), "22:00", "07:00")
    assert not is_in_quiet_hours(datetime(2026, 3, 15, 7, 1, tzinfo=UTC), "22:00", "07:00")


def test_is_in_quiet_hours_same_day():
    """Quiet hours within a single day."""
    assert is_in_quiet_hours(datetime(2026, 3, 15, 13, 0, tzinfo=UTC), "12:00", "14:00")
    assert not is_in_quiet_hours(datetime(2026, 3, 15, 23, 0, tzinfo=UTC), "12:00", "14:00")


def test_is_within_work_hours():
    """Test work hours window."""
    profile = UserProfile(work_hours_start="09:00", work_hours_end="18:00")

    assert is_within_work_hours(datetime(2026, 3, 16, 9, 0, tzinfo=UTC), profile)
    assert is_within_work_hours(datetime(2026, 3, 16, 18, 0, tzinfo=UTC), profile)
    assert not is_within_work_hours(datetime(2026, 3, 16, 8, 59, tzinfo=UTC), profile)
    assert not is_within_work_hours(datetime(2026, 3, 16, 18, 1, tzinfo=UTC), profile)


def test_adjust_to_work_hours():
    """Work tasks are clamped, everything else passes through."""
    profile = UserProfile(work_hours_start="09:30", work_hours_end="17:00")
    early = datetime(2026, 3, 16, 7, 0, tzinfo=UTC)
    late = datetime(2026, 3, 16, 17, 30, tzinfo=UTC)
    inside = datetime(2026, 3, 16, 11, 15, tzinfo=UTC)

    assert adjust_to_work_hours(early, profile, True) == datetime(2026, 3, 16, 9, 30, tzinfo=UTC)
    assert adjust_to_work_hours(late, profile, True) == datetime(2026, 3, 16, 17, 0, tzinfo=UTC)
    assert adjust_to_work_hours(inside, profile, True) == inside
    assert adjust_to_work_hours(early, profile, False) == early


def test_shift_is_absolute_across_dst():
    """Two hours before a time right after the DST jump is two real hours."""
    tz = ZoneInfo("America/New_York")
    # Clocks went from 02:00 to 03:00 EDT on March 8, 2026
    due = datetime(2026, 3, 8, 4, 0, tzinfo=tz)

    earlier = shift(due, -timedelta(hours=2))

    assert earlier.hour == 1
    assert due.astimezone(UTC) - earlier.astimezone(UTC) == timedelta(hours=2)


def test_start_of_day():
    """Test local midnight."""
    dt = datetime(2026, 3, 15, 17, 42, 10, tzinfo=UTC)
    assert start_of_day(dt) == datetime(2026, 3, 15, tzinfo=UTC)


def test_format_time_remaining_future():
    """Future due dates use the largest non-zero unit."""
    now = datetime(2026, 3, 15, 12, 0, tzinfo=UTC)

    assert format_time_remaining(now + timedelta(minutes=5), now) == "Due in 5 minutes"
    assert format_time_remaining(now + timedelta(minutes=1), now) == "Due in 1 minute"
    assert format_time_remaining(now + timedelta(hours=3, minutes=20), now) == "Due in 3 hours"
    assert format_time_remaining(now + timedelta(days=2, hours=3), now) == "Due in 2 days"
    assert format_time_remaining(now + timedelta(days=1), now) == "Due in 1 day"


def test_format_time_remaining_past():
    """Overdue dates read as "ago"."""
    now = datetime(2026, 3, 15, 12, 0, tzinfo=UTC)

    assert format_time_remaining(now - timedelta(hours=2), now) == "Due 2 hours ago"
    assert format_time_remaining(now - timedelta(days=3, hours=1), now) == "Due 3 days ago"
    assert format_time_remaining(now - timedelta(minutes=1), now) == "Due 1 minute ago"
    assert format_time_remaining(now - timedelta(seconds=30), now) == "Due 1 minute ago"


def test_format_time_remaining_now():
    """Less than a minute ahead is "now"."""
    now = datetime(2026, 3, 15, 12, 0, tzinfo=UTC)

    assert format_time_remaining(now, now) == "Due now"
    assert format_time_remaining(now + timedelta(seconds=30), now) == "Due now"
