"""Message text formatters."""

from html import escape
from typing import List

from duenudge.db.models import (
    NotificationPreferences,
    NotificationSummary,
    OutgoingNotification,
    PendingNotification,
    UserProfile,
)
from duenudge.utils.time_utils import to_local

URGENCY_EMOJI = {
    "urgent": "🚨",
    "normal": "🔔",
    "low": "📌",
    "overdue": "💥",
}


def format_notification_message(notification: OutgoingNotification) -> str:
    """Format a notification as it is delivered."""
    lines = [f"<b>{escape(notification.title)}</b>", escape(notification.body)]

    if notification.action_text:
        lines.append(f"\n👉 <i>{escape(notification.action_text)}</i>")

    return "\n".join(lines)


def format_pending_list(pending: List[PendingNotification], profile: UserProfile) -> str:
    """Format the sink's pending notifications."""
    if not pending:
        return "No notifications are scheduled."

    lines = [f"<b>Scheduled Notifications ({len(pending)})</b>\n"]

    for entry in pending:
        notification = entry.notification
        emoji = URGENCY_EMOJI.get(notification.urgency_level, "🔔")
        when = to_local(notification.time, profile.timezone)
        lines.append(
            f"{emoji} {when.strftime('%b %d, %I:%M %p')} - "
            f"{escape(notification.title)} <i>({notification.kind})</i>"
        )

    return "\n".join(lines)


def format_summary_message(summary: NotificationSummary) -> str:
    """Format a batch summary of computed schedules."""
    if summary.total == 0:
        return "Nothing to remind you about right now."

    lines = [f"<b>📊 {summary.total} notifications planned</b>\n"]

    lines.append("<b>By priority</b>")
    for priority in ("high", "medium", "low"):
        count = summary.by_priority.get(priority, 0)
        if count:
            lines.append(f"• {priority.title()}: {count}")

    lines.append("\n<b>By type</b>")
    for kind, count in sorted(summary.by_type.items()):
        lines.append(f"• {kind}: {count}")

    return "\n".join(lines)


def format_settings_message(
    preferences: NotificationPreferences, profile: UserProfile
) -> str:
    """Format the current profile and notification preferences."""
    disabled = ", ".join(sorted(preferences.disabled_priorities)) or "none"
    return (
        "<b>⚙️ Settings</b>\n\n"
        f"Work hours: {profile.work_hours_start} - {profile.work_hours_end}\n"
        f"Peak energy: {profile.peak_energy_time or 'not set'}\n"
        f"Check-ins: {profile.check_in_frequency} per work day\n"
        f"Timezone: {profile.timezone}\n\n"
        f"Quiet hours: {preferences.quiet_hours_start} - {preferences.quiet_hours_end}\n"
        f"Frequency: {preferences.frequency_multiplier:g}x\n"
        f"Minimum lead time: {preferences.minimum_lead_time} min\n"
        f"Muted priorities: {disabled}"
    )


def format_welcome_message() -> str:
    """Format the welcome message for /start."""
    return """
<b>Welcome to DueNudge!</b> 🔔

I plan reminders for your tasks based on priority, due time and how long they take, and I keep quiet during your quiet hours.

<b>Quick Start:</b>
• /pending - See what's scheduled
• /summary - Overview of planned reminders
• /settings - Your current preferences
• /help - Full command list
""".strip()


def format_help_message() -> str:
    """Format the help message."""
    return """
<b>DueNudge Commands 🔔</b>

<b>Reminders:</b>
/pending - Scheduled notifications
/summary - Planned reminders by priority and type
/dismiss &lt;task_id&gt; - Silence a task for the rest of today

<b>Preferences:</b>
/settings - View all settings
/quiet &lt;start&gt; &lt;end&gt; - Set quiet hours (e.g., 22:00 07:00)
/frequency &lt;0.5-2&gt; - Fewer (0.5) or more (1.5+) reminders
/mute &lt;priority&gt; - Stop reminders for high/medium/low
/unmute &lt;priority&gt; - Resume reminders for a priority
/leadtime &lt;minutes&gt; - Minimum notice before a reminder

<b>Profile:</b>
/timezone &lt;zone&gt; - Set your timezone (e.g., Europe/London)
/workhours &lt;start&gt; &lt;end&gt; - Set work hours (e.g., 09:00 17:00)
/energy &lt;morning|afternoon|evening&gt; - When you do your best work
/checkins &lt;0-12&gt; - Mood check-ins per work day

<b>Tips:</b>
• Low priority tasks never get automatic reminders
• Work tasks are kept inside your work hours
• Overdue high priority tasks get up to 3 nudges a day
""".strip()
