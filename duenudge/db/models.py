"""Data models."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, time
from typing import Any, Literal, Mapping

from dateutil.parser import isoparse

from duenudge.utils.constants import (
    DEFAULT_CHECK_IN_FREQUENCY,
    DEFAULT_FREQUENCY_MULTIPLIER,
    DEFAULT_MINIMUM_LEAD_TIME,
    DEFAULT_QUIET_END,
    DEFAULT_QUIET_START,
    DEFAULT_TIMEZONE,
    DEFAULT_WORK_HOURS_END,
    DEFAULT_WORK_HOURS_START,
    MAX_FREQUENCY_MULTIPLIER,
    MIN_FREQUENCY_MULTIPLIER,
    PRIORITIES,
    WORK_CATEGORY,
)

logger = logging.getLogger(__name__)


Priority = Literal["high", "medium", "low"]
TaskStatus = Literal["not_started", "in_progress", "completed"]
NotificationType = Literal[
    "advance-notice", "reminder", "final-reminder", "overdue", "daily-summary"
]
UrgencyLevel = Literal["urgent", "normal", "low", "overdue"]
PeakEnergyTime = Literal["morning", "afternoon", "evening"]

# Notification kinds owned by the dispatcher, not the calculator
OVERDUE_ALERT = "overdue-alert"
CHECK_IN = "check-in"


@dataclass(frozen=True)
class Task:
    """Read-only snapshot of a task owned by the task store."""

    id: str
    title: str
    status: TaskStatus
    priority: Priority
    due_date: datetime | None = None
    estimated_duration: int | None = None  # minutes
    category: str | None = None

    @property
    def is_work(self) -> bool:
        return self.category == WORK_CATEGORY

    def fingerprint(self) -> tuple:
        """The fields whose change invalidates a computed schedule."""
        return (
            self.due_date.isoformat() if self.due_date else None,
            self.priority,
            self.status,
            self.estimated_duration,
            self.category,
            self.title,
        )

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Task":
        """Build a task from a store record (ISO-8601 due date string)."""
        due = record.get("due_date")
        return cls(
            id=str(record["id"]),
            title=record["title"],
            status=record["status"],
            priority=record["priority"],
            due_date=isoparse(due) if due else None,
            estimated_duration=record.get("estimated_duration"),
            category=record.get("category"),
        )


@dataclass
class UserProfile:
    """Work-hour and energy preferences of the user."""

    work_hours_start: str = DEFAULT_WORK_HOURS_START  # HH:MM format
    work_hours_end: str = DEFAULT_WORK_HOURS_END  # HH:MM format
    peak_energy_time: PeakEnergyTime | None = None
    check_in_frequency: int = DEFAULT_CHECK_IN_FREQUENCY
    timezone: str = DEFAULT_TIMEZONE


def _valid_hhmm(value: Any) -> bool:
    try:
        time.fromisoformat(value)
    except (TypeError, ValueError):
        return False
    return True


@dataclass(frozen=True)
class NotificationPreferences:
    """User-tunable notification behaviour."""

    frequency_multiplier: float = DEFAULT_FREQUENCY_MULTIPLIER  # 0.5 - 2.0
    minimum_lead_time: int = DEFAULT_MINIMUM_LEAD_TIME  # minutes
    disabled_priorities: frozenset = field(default_factory=frozenset)
    quiet_hours_start: str = DEFAULT_QUIET_START  # HH:MM format
    quiet_hours_end: str = DEFAULT_QUIET_END  # HH:MM format

    @classmethod
    def from_record(cls, record: Mapping[str, Any] | None) -> "NotificationPreferences":
        """Read the flat key-value preference record.

        Each key falls back to its default on its own when missing or invalid.
        """
        if not record:
            return cls()

        defaults = cls()
        values: dict[str, Any] = {}

        raw = record.get("frequencyMultiplier")
        if raw is not None:
            try:
                multiplier = float(raw)
                if multiplier != multiplier:  # NaN
                    raise ValueError(raw)
                values["frequency_multiplier"] = min(
                    max(multiplier, MIN_FREQUENCY_MULTIPLIER), MAX_FREQUENCY_MULTIPLIER
                )
            except (TypeError, ValueError):
                logger.warning(f"Ignoring invalid frequencyMultiplier: {raw!r}")

        raw = record.get("minimumLeadTime")
        if raw is not None:
            try:
                lead = int(raw)
                if lead < 0:
                    raise ValueError(raw)
                values["minimum_lead_time"] = lead
            except (TypeError, ValueError):
                logger.warning(f"Ignoring invalid minimumLeadTime: {raw!r}")

        raw = record.get("disabledPriorities")
        if raw is not None:
            if isinstance(raw, (list, tuple, set, frozenset)):
                values["disabled_priorities"] = frozenset(
                    p for p in raw if p in PRIORITIES
                )
            else:
                logger.warning(f"Ignoring invalid disabledPriorities: {raw!r}")

        for key, attr in (
            ("quietHoursStart", "quiet_hours_start"),
            ("quietHoursEnd", "quiet_hours_end"),
        ):
            raw = record.get(key)
            if raw is None:
                continue
            if _valid_hhmm(raw):
                values[attr] = raw
            else:
                logger.warning(f"Ignoring invalid {key}: {raw!r}")

        return cls(
            frequency_multiplier=values.get(
                "frequency_multiplier", defaults.frequency_multiplier
            ),
            minimum_lead_time=values.get("minimum_lead_time", defaults.minimum_lead_time),
            disabled_priorities=values.get(
                "disabled_priorities", defaults.disabled_priorities
            ),
            quiet_hours_start=values.get("quiet_hours_start", defaults.quiet_hours_start),
            quiet_hours_end=values.get("quiet_hours_end", defaults.quiet_hours_end),
        )

    def to_record(self) -> dict[str, Any]:
        """Inverse of from_record."""
        return {
            "frequencyMultiplier": self.frequency_multiplier,
            "minimumLeadTime": self.minimum_lead_time,
            "disabledPriorities": sorted(self.disabled_priorities),
            "quietHoursStart": self.quiet_hours_start,
            "quietHoursEnd": self.quiet_hours_end,
        }


@dataclass(frozen=True)
class NotificationContent:
    """Copy shown to the user."""

    title: str
    body: str
    urgency_level: UrgencyLevel
    time_remaining: str | None = None
    action_text: str | None = None


@dataclass(frozen=True)
class ScheduledNotification:
    """One computed notification for a task."""

    time: datetime  # user's local zone
    reason: str
    type: NotificationType
    priority: Priority
    content: NotificationContent


@dataclass
class NotificationSchedule:
    """All notifications for one task, ascending by time."""

    task_id: str
    task_title: str
    notifications: list[ScheduledNotification] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.notifications


@dataclass
class NotificationSummary:
    """Counts over a set of schedules."""

    total: int = 0
    by_priority: dict[str, int] = field(
        default_factory=lambda: {p: 0 for p in PRIORITIES}
    )
    by_type: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class OutgoingNotification:
    """A notification handed to the delivery sink."""

    task_id: str | None
    kind: str  # NotificationType, OVERDUE_ALERT or CHECK_IN
    time: datetime
    title: str
    body: str
    urgency_level: str
    action_text: str | None = None


@dataclass(frozen=True)
class PendingNotification:
    """A notification the sink has not delivered yet."""

    handle: str
    notification: OutgoingNotification


@dataclass(frozen=True)
class DispatchRecord:
    """Dispatcher bookkeeping for one submitted handle."""

    handle: str
    task_id: str
    kind: str
    scheduled_for: datetime


@dataclass(frozen=True)
class TaskSnapshot:
    """What the dispatcher last scheduled a task from."""

    task_id: str
    fingerprint: str
    phase: str  # undated / overdue / today / future
