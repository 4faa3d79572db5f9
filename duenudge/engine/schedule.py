"""Notification decision engine.

Turns one task snapshot plus the user's profile and preferences into an
ordered list of reminders. The calculation is pure: the only state it needs,
the number of overdue reminders already delivered today, is passed in by the
caller.
"""

from datetime import datetime, timedelta
from typing import Literal
from zoneinfo import ZoneInfo

from duenudge.db.models import (
    NotificationPreferences,
    NotificationSchedule,
    NotificationType,
    ScheduledNotification,
    Task,
    UserProfile,
)
from duenudge.engine.content import generate_content
from duenudge.utils.constants import (
    DATE_ONLY_HIGH_PRIORITY_SLOTS,
    EXTRA_NOTIFICATIONS_THRESHOLD,
    MAX_OVERDUE_REMINDERS_PER_DAY,
    MORNING_REMINDER_HOUR,
    OVERDUE_REMINDER_INTERVAL_HOURS,
    REDUCED_NOTIFICATIONS_THRESHOLD,
)
from duenudge.utils.time_utils import (
    add_days,
    adjust_to_work_hours,
    at_time_of_day,
    has_specific_time,
    is_in_quiet_hours,
    lead_time_for_duration,
    peak_energy_hours,
    shift,
    start_of_day,
    to_local,
)

DuePhase = Literal["undated", "overdue", "today", "future"]


def classify_due_date(due_date: datetime | None, now: datetime) -> DuePhase:
    """Classify a due date by calendar day relative to `now`.

    Both datetimes must be on the same wall clock.
    """
    if due_date is None:
        return "undated"

    due_day = start_of_day(due_date)
    today = start_of_day(now)

    if due_day < today:
        return "overdue"
    if due_day == today:
        return "today"
    return "future"


def due_phase(task: Task, profile: UserProfile, now: datetime) -> DuePhase:
    """Calendar phase of a task's due date in the profile's timezone."""
    local_now = to_local(now, profile.timezone)
    due = to_local(task.due_date, profile.timezone) if task.due_date else None
    return classify_due_date(due, local_now)


def calculate_schedule(
    task: Task,
    profile: UserProfile,
    overdue_count: int = 0,
    preferences: NotificationPreferences | None = None,
    now: datetime | None = None,
) -> NotificationSchedule:
    """Calculate the notification schedule for a task.

    Takes into account:
    - Priority (low never notifies, disabled priorities are skipped)
    - Whether the due date carries a specific time of day
    - Estimated duration (final reminder lead time)
    - Work category (clamped into work hours)
    - Peak energy time (undated high priority tasks)
    - Frequency multiplier, minimum lead time and quiet hours

    Args:
        task: Task snapshot
        profile: User's work hours, energy preference and timezone
        overdue_count: Overdue reminders already delivered today for this task
        preferences: Notification preferences, defaults when None
        now: Reference time, captured once for the whole calculation

    Returns:
        Schedule whose notifications are sorted ascending by time
    """
    if preferences is None:
        preferences = NotificationPreferences()
    if now is None:
        now = datetime.now(ZoneInfo("UTC"))

    now = to_local(now, profile.timezone)
    schedule = NotificationSchedule(task_id=task.id, task_title=task.title)

    if task.status == "completed":
        return schedule

    if task.priority in preferences.disabled_priorities:
        return schedule

    # Low priority never gets automatic notifications
    if task.priority == "low":
        return schedule

    earliest = shift(now, timedelta(minutes=preferences.minimum_lead_time))

    def admissible(when: datetime) -> bool:
        if is_in_quiet_hours(
            when, preferences.quiet_hours_start, preferences.quiet_hours_end
        ):
            return False
        return when > earliest

    if task.due_date is None:
        # Undated high priority: nudge during tomorrow's peak energy window
        if task.priority == "high":
            peak_start, _ = peak_energy_hours(profile.peak_energy_time)
            when = at_time_of_day(add_days(now, 1), peak_start)
            when = adjust_to_work_hours(when, profile, task.is_work)
            if admissible(when):
                schedule.notifications.append(
                    ScheduledNotification(
                        time=when,
                        reason="High priority task without deadline - peak energy reminder",
                        type="daily-summary",
                        priority="high",
                        content=generate_content(task, "daily-summary", None, now=now),
                    )
                )
        return schedule

    due_date = to_local(task.due_date, profile.timezone)
    phase = classify_due_date(due_date, now)
    specific_time = has_specific_time(due_date)
    clamp_to_work_hours = task.is_work and specific_time

    def add_notification(
        when: datetime, reason: str, notification_type: NotificationType
    ) -> None:
        adjusted = adjust_to_work_hours(when, profile, clamp_to_work_hours)
        if not admissible(adjusted):
            return

        schedule.notifications.append(
            ScheduledNotification(
                time=adjusted,
                reason=reason,
                type=notification_type,
                priority=task.priority,
                content=generate_content(
                    task, notification_type, due_date, overdue_count, now
                ),
            )
        )

    if phase == "overdue":
        if task.priority == "high":
            # Every 4 hours (scaled), capped per day; the caller re-invokes
            # once the previous reminder has been delivered
            if overdue_count < MAX_OVERDUE_REMINDERS_PER_DAY:
                interval = (
                    timedelta(hours=OVERDUE_REMINDER_INTERVAL_HOURS)
                    / preferences.frequency_multiplier
                )
                add_notification(
                    shift(now, interval),
                    f"Overdue high priority - reminder {overdue_count + 1} "
                    f"of {MAX_OVERDUE_REMINDERS_PER_DAY}",
                    "overdue",
                )
        elif task.priority == "medium":
            when = at_time_of_day(now, MORNING_REMINDER_HOUR)
            if when <= now:
                when = add_days(when, 1)
            add_notification(when, "Overdue medium priority - daily reminder", "overdue")

        return schedule

    add_extra = preferences.frequency_multiplier >= EXTRA_NOTIFICATIONS_THRESHOLD
    reduce = preferences.frequency_multiplier <= REDUCED_NOTIFICATIONS_THRESHOLD

    if task.priority == "high":
        if specific_time:
            lead_time = lead_time_for_duration(task.estimated_duration)

            if not reduce:
                when = shift(due_date, -timedelta(hours=24))
                if when > now:
                    add_notification(
                        when, "24hr advance notice for high priority", "advance-notice"
                    )

            when = shift(due_date, -timedelta(hours=2))
            if when > now:
                add_notification(when, "2hr reminder before scheduled time", "reminder")

            when = shift(due_date, -timedelta(minutes=lead_time))
            if when > now:
                add_notification(when, f"{lead_time}min final reminder", "final-reminder")

            if add_extra:
                when = shift(due_date, -timedelta(hours=6))
                if when > now:
                    add_notification(
                        when, "6hr early warning for high priority", "reminder"
                    )
        else:
            slots = (
                DATE_ONLY_HIGH_PRIORITY_SLOTS[:1]
                if reduce
                else DATE_ONLY_HIGH_PRIORITY_SLOTS
            )
            for hour, minute, label in slots:
                when = at_time_of_day(due_date, hour, minute)
                if when > now:
                    add_notification(
                        when, f"High priority due date - {label} reminder", "reminder"
                    )

            if not reduce and phase != "today":
                when = at_time_of_day(add_days(due_date, -1), MORNING_REMINDER_HOUR)
                if when > now:
                    add_notification(
                        when, "24hr advance notice for high priority", "advance-notice"
                    )

    elif task.priority == "medium":
        if specific_time:
            when = shift(due_date, -timedelta(hours=2))
            if when > now:
                add_notification(when, "2hr reminder for medium priority task", "reminder")

            if add_extra:
                when = shift(due_date, -timedelta(minutes=15))
                if when > now:
                    add_notification(
                        when, "15min final reminder for medium priority", "final-reminder"
                    )
        else:
            when = at_time_of_day(due_date, MORNING_REMINDER_HOUR)
            if when > now:
                add_notification(
                    when, "Medium priority due date - morning reminder", "reminder"
                )

    # Work-hour clamping can reorder candidates
    schedule.notifications.sort(key=lambda n: n.time)

    return schedule
