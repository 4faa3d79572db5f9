"""Constants and default values."""

from dataclasses import dataclass


@dataclass
class LeadTimeBucket:
    """Lead time applied to tasks at least this long."""

    min_duration_minutes: int
    lead_minutes: int


# Checked top to bottom; short tasks and the fallback are handled separately
LEAD_TIME_BUCKETS = [
    LeadTimeBucket(120, 30),  # 2+ hours
    LeadTimeBucket(60, 20),  # 1-2 hours
]
SHORT_TASK_MAX_MINUTES = 30
SHORT_TASK_LEAD_MINUTES = 10
DEFAULT_LEAD_MINUTES = 15

# Peak energy windows as [start, end) hours
PEAK_ENERGY_HOURS = {
    "morning": (8, 12),
    "afternoon": (12, 17),
    "evening": (17, 21),
}
DEFAULT_PEAK_ENERGY_HOURS = (9, 12)

# Frequency multiplier thresholds
MIN_FREQUENCY_MULTIPLIER = 0.5
MAX_FREQUENCY_MULTIPLIER = 2.0
EXTRA_NOTIFICATIONS_THRESHOLD = 1.5
REDUCED_NOTIFICATIONS_THRESHOLD = 0.5

# Overdue cadence
MAX_OVERDUE_REMINDERS_PER_DAY = 3
OVERDUE_REMINDER_INTERVAL_HOURS = 4

# Fixed wall-clock reminder slots (hour, minute, label)
DATE_ONLY_HIGH_PRIORITY_SLOTS = [
    (9, 0, "morning"),
    (14, 0, "afternoon"),
    (18, 0, "evening"),
]
MORNING_REMINDER_HOUR = 9
OVERDUE_ALERT_HOUR = 9

# Days of check-in prompts kept scheduled ahead
CHECK_IN_DAYS = 7

# Default notification preferences
DEFAULT_FREQUENCY_MULTIPLIER = 1.0
DEFAULT_MINIMUM_LEAD_TIME = 5
DEFAULT_QUIET_START = "22:00"
DEFAULT_QUIET_END = "07:00"

# Default profile
DEFAULT_WORK_HOURS_START = "09:00"
DEFAULT_WORK_HOURS_END = "17:00"
DEFAULT_CHECK_IN_FREQUENCY = 3
MAX_CHECK_IN_FREQUENCY = 12

# Default timezone
DEFAULT_TIMEZONE = "UTC"

PRIORITIES = ("high", "medium", "low")
WORK_CATEGORY = "work"
