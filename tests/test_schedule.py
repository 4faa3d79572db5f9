"""Tests for the notification decision engine."""

from datetime import datetime
from zoneinfo import ZoneInfo

from duenudge.db.models import NotificationPreferences, Task, UserProfile
from duenudge.engine.schedule import calculate_schedule, classify_due_date, due_phase

UTC = ZoneInfo("UTC")
NY = ZoneInfo("America/New_York")
NOW = datetime(2026, 3, 16, 10, 0, tzinfo=UTC)


def make_task(**kwargs):
    fields = {
        "id": "t1",
        "title": "Quarterly report",
        "status": "not_started",
        "priority": "high",
    }
    fields.update(kwargs)
    return Task(**fields)


def times(schedule):
    return [n.time for n in schedule.notifications]


def types(schedule):
    return [n.type for n in schedule.notifications]


def test_classify_due_date():
    """Phases are decided by calendar day."""
    assert classify_due_date(None, NOW) == "undated"
    assert classify_due_date(datetime(2026, 3, 15, 23, 59, tzinfo=UTC), NOW) == "overdue"
    assert classify_due_date(datetime(2026, 3, 16, 8, 0, tzinfo=UTC), NOW) == "today"
    assert classify_due_date(datetime(2026, 3, 17, 0, 0, tzinfo=UTC), NOW) == "future"


def test_due_phase_uses_profile_timezone():
    """Late evening UTC can already be tomorrow elsewhere."""
    task = make_task(due_date=datetime(2026, 3, 16, 12, 0, tzinfo=UTC))
    now = datetime(2026, 3, 17, 2, 0, tzinfo=UTC)

    assert due_phase(task, UserProfile(), now) == "overdue"
    # 22:00 on the 16th in New York
    assert due_phase(task, UserProfile(timezone="America/New_York"), now) == "today"


def test_work_task_with_time_and_duration():
    """2 hour reminder plus a duration-based final reminder."""
    task = make_task(
        due_date=datetime(2026, 3, 16, 15, 0, tzinfo=UTC),
        estimated_duration=90,
        category="work",
    )
    profile = UserProfile(work_hours_start="09:00", work_hours_end="18:00")

    schedule = calculate_schedule(task, profile, now=NOW)

    assert times(schedule) == [
        datetime(2026, 3, 16, 13, 0, tzinfo=UTC),
        datetime(2026, 3, 16, 14, 40, tzinfo=UTC),
    ]
    assert types(schedule) == ["reminder", "final-reminder"]
    assert schedule.notifications[1].reason == "20min final reminder"
    assert all(n.priority == "high" for n in schedule.notifications)


def test_high_priority_with_time_default_frequency():
    """Advance notice, 2 hour reminder and final reminder."""
    task = make_task(due_date=datetime(2026, 3, 17, 15, 0, tzinfo=UTC))

    schedule = calculate_schedule(task, UserProfile(), now=NOW)

    assert times(schedule) == [
        datetime(2026, 3, 16, 15, 0, tzinfo=UTC),
        datetime(2026, 3, 17, 13, 0, tzinfo=UTC),
        datetime(2026, 3, 17, 14, 45, tzinfo=UTC),
    ]
    assert types(schedule) == ["advance-notice", "reminder", "final-reminder"]


def test_reduced_frequency_drops_advance_notice():
    """A 0.5 multiplier keeps only the reminders close to the deadline."""
    task = make_task(due_date=datetime(2026, 3, 17, 15, 0, tzinfo=UTC))
    preferences = NotificationPreferences(frequency_multiplier=0.5)

    schedule = calculate_schedule(task, UserProfile(), preferences=preferences, now=NOW)

    assert times(schedule) == [
        datetime(2026, 3, 17, 13, 0, tzinfo=UTC),
        datetime(2026, 3, 17, 14, 45, tzinfo=UTC),
    ]


def test_increased_frequency_adds_early_warning():
    """A 2.0 multiplier adds the 6 hour warning, still sorted by time."""
    task = make_task(due_date=datetime(2026, 3, 17, 15, 0, tzinfo=UTC))
    preferences = NotificationPreferences(frequency_multiplier=2.0)

    schedule = calculate_schedule(task, UserProfile(), preferences=preferences, now=NOW)

    assert times(schedule) == [
        datetime(2026, 3, 16, 15, 0, tzinfo=UTC),
        datetime(2026, 3, 17, 9, 0, tzinfo=UTC),
        datetime(2026, 3, 17, 13, 0, tzinfo=UTC),
        datetime(2026, 3, 17, 14, 45, tzinfo=UTC),
    ]
    assert schedule.notifications[1].reason == "6hr early warning for high priority"


def test_medium_priority_with_time():
    """Medium tasks get a single 2 hour reminder."""
    task = make_task(priority="medium", due_date=datetime(2026, 3, 16, 15, 0, tzinfo=UTC))

    schedule = calculate_schedule(task, UserProfile(), now=NOW)

    assert times(schedule) == [datetime(2026, 3, 16, 13, 0, tzinfo=UTC)]
    assert schedule.notifications[0].priority == "medium"


def test_medium_priority_with_time_increased_frequency():
    """Extra frequency adds a 15 minute final reminder."""
    task = make_task(priority="medium", due_date=datetime(2026, 3, 16, 15, 0, tzinfo=UTC))
    preferences = NotificationPreferences(frequency_multiplier=1.5)

    schedule = calculate_schedule(task, UserProfile(), preferences=preferences, now=NOW)

    assert times(schedule) == [
        datetime(2026, 3, 16, 13, 0, tzinfo=UTC),
        datetime(2026, 3, 16, 14, 45, tzinfo=UTC),
    ]
    assert types(schedule) == ["reminder", "final-reminder"]


def test_medium_priority_date_only():
    """Date-only medium tasks get a morning reminder on the due date."""
    task = make_task(priority="medium", due_date=datetime(2026, 3, 17, tzinfo=UTC))

    schedule = calculate_schedule(task, UserProfile(), now=NOW)

    assert times(schedule) == [datetime(2026, 3, 17, 9, 0, tzinfo=UTC)]
    assert types(schedule) == ["reminder"]


def test_date_only_work_task_is_not_clamped():
    """Fixed slots on date-only tasks ignore work hours."""
    task = make_task(
        priority="medium", due_date=datetime(2026, 3, 17, tzinfo=UTC), category="work"
    )
    profile = UserProfile(work_hours_start="10:00", work_hours_end="17:00")

    schedule = calculate_schedule(task, profile, now=NOW)

    assert times(schedule) == [datetime(2026, 3, 17, 9, 0, tzinfo=UTC)]


def test_high_priority_date_only_future():
    """Three slots on the day plus a morning heads-up the day before."""
    task = make_task(due_date=datetime(2026, 3, 18, tzinfo=UTC))

    schedule = calculate_schedule(task, UserProfile(), now=NOW)

    assert times(schedule) == [
        datetime(2026, 3, 17, 9, 0, tzinfo=UTC),
        datetime(2026, 3, 18, 9, 0, tzinfo=UTC),
        datetime(2026, 3, 18, 14, 0, tzinfo=UTC),
        datetime(2026, 3, 18, 18, 0, tzinfo=UTC),
    ]
    assert types(schedule) == ["advance-notice", "reminder", "reminder", "reminder"]


def test_high_priority_date_only_due_today():
    """Past slots are skipped and there is no advance notice."""
    task = make_task(due_date=datetime(2026, 3, 16, tzinfo=UTC))

    schedule = calculate_schedule(task, UserProfile(), now=NOW)

    assert times(schedule) == [
        datetime(2026, 3, 16, 14, 0, tzinfo=UTC),
        datetime(2026, 3, 16, 18, 0, tzinfo=UTC),
    ]


def test_high_priority_date_only_reduced():
    """Reduced frequency keeps only the morning slot."""
    task = make_task(due_date=datetime(2026, 3, 18, tzinfo=UTC))
    preferences = NotificationPreferences(frequency_multiplier=0.5)

    schedule = calculate_schedule(task, UserProfile(), preferences=preferences, now=NOW)

    assert times(schedule) == [datetime(2026, 3, 18, 9, 0, tzinfo=UTC)]


def test_overdue_high_priority():
    """One overdue reminder, four hours out."""
    task = make_task(due_date=datetime(2026, 3, 15, 15, 0, tzinfo=UTC))

    schedule = calculate_schedule(task, UserProfile(), overdue_count=1, now=NOW)

    assert times(schedule) == [datetime(2026, 3, 16, 14, 0, tzinfo=UTC)]
    assert types(schedule) == ["overdue"]
    assert schedule.notifications[0].reason == "Overdue high priority - reminder 2 of 3"
    assert schedule.notifications[0].content.body.endswith("Reminder 2 of 3.")


def test_overdue_interval_scales_with_frequency():
    """Doubling the frequency halves the interval."""
    task = make_task(due_date=datetime(2026, 3, 15, 15, 0, tzinfo=UTC))
    preferences = NotificationPreferences(frequency_multiplier=2.0)

    schedule = calculate_schedule(
        task, UserProfile(), overdue_count=1, preferences=preferences, now=NOW
    )

    assert times(schedule) == [datetime(2026, 3, 16, 12, 0, tzinfo=UTC)]


def test_overdue_daily_cap():
    """No more overdue reminders once three were sent today."""
    task = make_task(due_date=datetime(2026, 3, 15, 15, 0, tzinfo=UTC))

    schedule = calculate_schedule(task, UserProfile(), overdue_count=3, now=NOW)

    assert schedule.is_empty


def test_overdue_medium_priority():
    """Medium overdue tasks get one reminder at the next 09:00."""
    task = make_task(priority="medium", due_date=datetime(2026, 3, 14, tzinfo=UTC))

    schedule = calculate_schedule(task, UserProfile(), now=NOW)
    assert times(schedule) == [datetime(2026, 3, 17, 9, 0, tzinfo=UTC)]

    early = datetime(2026, 3, 16, 8, 0, tzinfo=UTC)
    schedule = calculate_schedule(task, UserProfile(), now=early)
    assert times(schedule) == [datetime(2026, 3, 16, 9, 0, tzinfo=UTC)]


def test_empty_schedules():
    """Low priority, completed and muted tasks get nothing."""
    due = datetime(2026, 3, 17, 15, 0, tzinfo=UTC)

    low = make_task(priority="low", due_date=due)
    assert calculate_schedule(low, UserProfile(), now=NOW).is_empty

    completed = make_task(status="completed", due_date=due)
    assert calculate_schedule(completed, UserProfile(), now=NOW).is_empty

    muted = NotificationPreferences(disabled_priorities=frozenset({"high"}))
    schedule = calculate_schedule(
        make_task(due_date=due), UserProfile(), preferences=muted, now=NOW
    )
    assert schedule.is_empty
    assert schedule.task_id == "t1"
    assert schedule.task_title == "Quarterly report"


def test_quiet_hours_drop_candidates():
    """A reminder landing inside overnight quiet hours is dropped."""
    # 2h before is 06:00, inside the default 22:00 - 07:00 window
    task = make_task(due_date=datetime(2026, 3, 17, 8, 0, tzinfo=UTC))

    schedule = calculate_schedule(task, UserProfile(), now=NOW)

    assert times(schedule) == [datetime(2026, 3, 17, 7, 45, tzinfo=UTC)]


def test_minimum_lead_time():
    """Candidates too close to now are dropped."""
    task = make_task(due_date=datetime(2026, 3, 16, 10, 20, tzinfo=UTC))

    # Final reminder at 10:05 is not strictly after now + 5 minutes
    assert calculate_schedule(task, UserProfile(), now=NOW).is_empty

    preferences = NotificationPreferences(minimum_lead_time=2)
    schedule = calculate_schedule(task, UserProfile(), preferences=preferences, now=NOW)
    assert times(schedule) == [datetime(2026, 3, 16, 10, 5, tzinfo=UTC)]


def test_work_task_clamped_into_work_hours():
    """Late candidates snap back to the end of the work day."""
    task = make_task(due_date=datetime(2026, 3, 16, 19, 0, tzinfo=UTC), category="work")
    profile = UserProfile(work_hours_start="09:00", work_hours_end="17:00")

    schedule = calculate_schedule(task, profile, now=NOW)

    assert times(schedule) == [
        datetime(2026, 3, 16, 17, 0, tzinfo=UTC),
        datetime(2026, 3, 16, 17, 0, tzinfo=UTC),
    ]
    assert types(schedule) == ["reminder", "final-reminder"]


def test_undated_high_priority_peak_energy():
    """Undated high priority tasks get a nudge in tomorrow's peak window."""
    task = make_task()

    schedule = calculate_schedule(task, UserProfile(peak_energy_time="morning"), now=NOW)
    assert times(schedule) == [datetime(2026, 3, 17, 8, 0, tzinfo=UTC)]
    assert types(schedule) == ["daily-summary"]

    schedule = calculate_schedule(task, UserProfile(), now=NOW)
    assert times(schedule) == [datetime(2026, 3, 17, 9, 0, tzinfo=UTC)]


def test_undated_work_task_clamped():
    """The peak window nudge respects work hours for work tasks."""
    task = make_task(category="work")
    profile = UserProfile(
        work_hours_start="13:00", work_hours_end="18:00", peak_energy_time="morning"
    )

    schedule = calculate_schedule(task, profile, now=NOW)

    assert times(schedule) == [datetime(2026, 3, 17, 13, 0, tzinfo=UTC)]


def test_undated_medium_priority_is_empty():
    """Only high priority undated tasks are nudged."""
    task = make_task(priority="medium")
    assert calculate_schedule(task, UserProfile(), now=NOW).is_empty


def test_times_are_in_profile_timezone():
    """Reminders are computed on the user's wall clock."""
    # 15:00 EDT
    task = make_task(due_date=datetime(2026, 3, 16, 19, 0, tzinfo=UTC))
    profile = UserProfile(timezone="America/New_York")
    now = datetime(2026, 3, 16, 14, 0, tzinfo=UTC)

    schedule = calculate_schedule(task, profile, now=now)

    assert [(t.hour, t.minute) for t in times(schedule)] == [(13, 0), (14, 45)]
    assert all(t.tzinfo == NY for t in times(schedule))


def test_quiet_hours_use_profile_timezone():
    """Quiet hours are local, not UTC."""
    # Due 08:00 EDT, now 06:00 EDT; the 2h reminder at 06:00 EDT is quiet
    task = make_task(due_date=datetime(2026, 3, 17, 12, 0, tzinfo=UTC))
    profile = UserProfile(timezone="America/New_York")

    schedule = calculate_schedule(task, profile, now=NOW)

    assert [(t.day, t.hour, t.minute) for t in times(schedule)] == [
        (16, 8, 0),
        (17, 7, 45),
    ]
    assert types(schedule) == ["advance-notice", "final-reminder"]


def test_calculation_is_deterministic():
    """Same inputs, same schedule."""
    task = make_task(due_date=datetime(2026, 3, 18, 15, 0, tzinfo=UTC), estimated_duration=20)

    first = calculate_schedule(task, UserProfile(), now=NOW)
    second = calculate_schedule(task, UserProfile(), now=NOW)

    assert first == second


def test_overdue_counts_up_to_cap():
    """Counts 0, 1 and 2 each yield one reminder, 3 yields none."""
    task = make_task(due_date=datetime(2026, 3, 14, 15, 0, tzinfo=UTC))

    for count in range(3):
        schedule = calculate_schedule(task, UserProfile(), overdue_count=count, now=NOW)
        assert types(schedule) == ["overdue"]

    assert calculate_schedule(task, UserProfile(), overdue_count=3, now=NOW).is_empty


def test_notifications_respect_gates_and_order():
    """Across a mix of tasks every notification is admissible and sorted."""
    preferences = NotificationPreferences(frequency_multiplier=2.0, minimum_lead_time=30)
    profile = UserProfile(work_hours_start="10:00", work_hours_end="16:00")
    tasks = [
        make_task(due_date=datetime(2026, 3, 16, 11, 0, tzinfo=UTC)),
        make_task(due_date=datetime(2026, 3, 17, 8, 0, tzinfo=UTC), category="work"),
        make_task(due_date=datetime(2026, 3, 18, tzinfo=UTC), estimated_duration=240),
        make_task(priority="medium", due_date=datetime(2026, 3, 16, 23, 0, tzinfo=UTC)),
        make_task(due_date=datetime(2026, 3, 12, 9, 0, tzinfo=UTC)),
        make_task(category="work"),
    ]

    for task in tasks:
        schedule = calculate_schedule(task, profile, preferences=preferences, now=NOW)
        notification_times = times(schedule)

        assert notification_times == sorted(notification_times)
        for when in notification_times:
            assert when > datetime(2026, 3, 16, 10, 30, tzinfo=UTC)
            assert not (when.hour >= 22 or (when.hour, when.minute) <= (7, 0))
