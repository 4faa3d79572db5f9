"""Batch schedule calculation and aggregation."""

from datetime import datetime
from typing import Iterable, List, Mapping
from zoneinfo import ZoneInfo

from duenudge.db.models import (
    CHECK_IN,
    OVERDUE_ALERT,
    NotificationPreferences,
    NotificationSchedule,
    NotificationSummary,
    OutgoingNotification,
    Task,
    UserProfile,
)
from duenudge.engine.schedule import calculate_schedule, due_phase
from duenudge.utils.constants import CHECK_IN_DAYS, OVERDUE_ALERT_HOUR
from duenudge.utils.time_utils import (
    add_days,
    at_time_of_day,
    is_in_quiet_hours,
    parse_hhmm,
    start_of_day,
    to_local,
)


def calculate_all(
    tasks: Iterable[Task],
    profile: UserProfile,
    overdue_counts: Mapping[str, int] | None = None,
    preferences: NotificationPreferences | None = None,
    now: datetime | None = None,
) -> List[NotificationSchedule]:
    """Calculate schedules for every open task, dropping empty ones."""
    if overdue_counts is None:
        overdue_counts = {}
    if now is None:
        now = datetime.now(ZoneInfo("UTC"))

    schedules = (
        calculate_schedule(task, profile, overdue_counts.get(task.id, 0), preferences, now)
        for task in tasks
        if task.status != "completed"
    )
    return [schedule for schedule in schedules if not schedule.is_empty]


def summarize(schedules: Iterable[NotificationSchedule]) -> NotificationSummary:
    """Count notifications overall, by priority and by type."""
    summary = NotificationSummary()

    for schedule in schedules:
        for notification in schedule.notifications:
            summary.total += 1
            summary.by_priority[notification.priority] = (
                summary.by_priority.get(notification.priority, 0) + 1
            )
            summary.by_type[notification.type] = (
                summary.by_type.get(notification.type, 0) + 1
            )

    return summary


def has_schedule_changed(old_task: Task | None, new_task: Task) -> bool:
    """Check whether a task change invalidates its schedule."""
    if old_task is None:
        return True
    return old_task.fingerprint() != new_task.fingerprint()


def build_overdue_alert(
    tasks: Iterable[Task],
    profile: UserProfile,
    now: datetime | None = None,
    preferences: NotificationPreferences | None = None,
) -> OutgoingNotification | None:
    """Build the single morning alert listing overdue tasks.

    Tasks of muted priorities are left out of the count.

    Returns:
        Notification at the next 09:00 local time, or None if nothing is overdue
    """
    if now is None:
        now = datetime.now(ZoneInfo("UTC"))
    if preferences is None:
        preferences = NotificationPreferences()

    overdue = [
        task
        for task in tasks
        if task.status != "completed"
        and task.priority not in preferences.disabled_priorities
        and due_phase(task, profile, now) == "overdue"
    ]
    if not overdue:
        return None

    local_now = to_local(now, profile.timezone)
    when = at_time_of_day(local_now, OVERDUE_ALERT_HOUR)
    if when <= local_now:
        when = add_days(when, 1)

    count = len(overdue)
    high_count = sum(1 for task in overdue if task.priority == "high")

    if high_count > 0:
        body = (
            f"You have {high_count} overdue high-priority "
            f"task{'s' if high_count > 1 else ''}"
        )
    else:
        body = f"You have {count} overdue task{'s' if count > 1 else ''}"

    return OutgoingNotification(
        task_id=None,
        kind=OVERDUE_ALERT,
        time=when,
        title=f"⚠️ {count} task{'s' if count > 1 else ''} need attention",
        body=body,
        urgency_level="overdue",
    )


def build_check_ins(
    profile: UserProfile,
    preferences: NotificationPreferences | None = None,
    now: datetime | None = None,
    days: int = CHECK_IN_DAYS,
) -> List[OutgoingNotification]:
    """Spread `check_in_frequency` prompts evenly over each day's work hours.

    The first prompt of a day lands on the start of work hours. Times already
    past or inside quiet hours are skipped.
    """
    if now is None:
        now = datetime.now(ZoneInfo("UTC"))
    if preferences is None:
        preferences = NotificationPreferences()

    frequency = profile.check_in_frequency
    start_hour, start_min = parse_hhmm(profile.work_hours_start)
    end_hour, end_min = parse_hhmm(profile.work_hours_end)
    start_minute = start_hour * 60 + start_min
    end_minute = end_hour * 60 + end_min
    if frequency <= 0 or end_minute <= start_minute:
        return []

    interval = (end_minute - start_minute) / frequency
    local_now = to_local(now, profile.timezone)
    check_ins = []

    for day in range(days):
        day_start = add_days(start_of_day(local_now), day)
        for i in range(frequency):
            hour, minute = divmod(int(start_minute + interval * i), 60)
            when = at_time_of_day(day_start, hour, minute)
            if when <= local_now:
                continue
            if is_in_quiet_hours(
                when, preferences.quiet_hours_start, preferences.quiet_hours_end
            ):
                continue

            check_ins.append(
                OutgoingNotification(
                    task_id=None,
                    kind=CHECK_IN,
                    time=when,
                    title="Time for a check-in! ✨",
                    body="How's your energy and mood right now?",
                    urgency_level="low",
                )
            )

    return check_ins
