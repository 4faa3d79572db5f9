"""Notification copy for computed reminders."""

from datetime import datetime
from zoneinfo import ZoneInfo

from duenudge.db.models import NotificationContent, NotificationType, Task
from duenudge.utils.constants import MAX_OVERDUE_REMINDERS_PER_DAY
from duenudge.utils.time_utils import format_time_remaining


def _high_priority_content(
    task: Task,
    notification_type: NotificationType,
    remaining: str | None,
    overdue_count: int,
) -> NotificationContent:
    if notification_type == "advance-notice":
        return NotificationContent(
            title="🔴 High priority task due soon!",
            body=f'"{task.title}" - {remaining}',
            urgency_level="urgent",
            time_remaining=remaining,
            action_text="Plan now",
        )
    if notification_type == "final-reminder":
        return NotificationContent(
            title=f"🚨 Starting Soon: {task.title}",
            body=f"{remaining} - This needs your attention now!",
            urgency_level="urgent",
            time_remaining=remaining,
            action_text="Start immediately",
        )
    if notification_type == "overdue":
        return NotificationContent(
            title="💪 Ready to tackle this?",
            body=(
                f'"{task.title}" - {remaining}. '
                f"Reminder {overdue_count + 1} of {MAX_OVERDUE_REMINDERS_PER_DAY}."
            ),
            urgency_level="overdue",
            time_remaining=remaining,
            action_text="Complete now",
        )
    if notification_type == "daily-summary":
        return NotificationContent(
            title=f"🎯 High Priority: {task.title}",
            body="Consider tackling this during your peak energy time",
            urgency_level="urgent",
            action_text="View task",
        )
    return NotificationContent(
        title=f"⚠️ High priority: {task.title}",
        body=remaining or "Action required",
        urgency_level="urgent",
        time_remaining=remaining,
        action_text="Start now",
    )


def _medium_priority_content(
    task: Task, notification_type: NotificationType, remaining: str | None
) -> NotificationContent:
    if notification_type == "reminder":
        return NotificationContent(
            title=f"📋 Reminder: {task.title}",
            body=remaining or "Scheduled for today",
            urgency_level="normal",
            time_remaining=remaining,
            action_text="View",
        )
    if notification_type == "overdue":
        return NotificationContent(
            title="💪 Ready to tackle this?",
            body=f'"{task.title}" - {remaining}',
            urgency_level="overdue",
            time_remaining=remaining,
            action_text="Complete",
        )
    return NotificationContent(
        title=f"📋 {task.title}",
        body=remaining or "Task reminder",
        urgency_level="normal",
        time_remaining=remaining,
    )


def generate_content(
    task: Task,
    notification_type: NotificationType,
    due_date: datetime | None,
    overdue_count: int = 0,
    now: datetime | None = None,
) -> NotificationContent:
    """Build title, body and urgency for a notification.

    High priority copy is urgent and carries an action verb, medium is a
    gentle reminder, and anything else gets a minimal card.

    Args:
        task: The task being reminded about
        notification_type: Which kind of reminder this is
        due_date: The task's due date, or None for undated tasks
        overdue_count: Overdue reminders already sent today
        now: Reference time for the "time remaining" text
    """
    if now is None:
        now = datetime.now(ZoneInfo("UTC"))

    remaining = format_time_remaining(due_date, now) if due_date else None

    if task.priority == "high":
        return _high_priority_content(task, notification_type, remaining, overdue_count)

    if task.priority == "medium":
        return _medium_priority_content(task, notification_type, remaining)

    return NotificationContent(
        title=f"📌 {task.title}",
        body=remaining or "Task reminder",
        urgency_level="low",
        time_remaining=remaining,
    )
