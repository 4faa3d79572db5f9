"""Dispatcher - keeps the delivery sink in step with the task list.

The dispatcher never decides timing or copy itself. It detects which tasks
need a new schedule, cancels what was submitted for them before, asks the
calculator again and submits the result to the sink.
"""

import asyncio
import json
import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Protocol, Tuple
from zoneinfo import ZoneInfo

from duenudge.db.models import (
    CHECK_IN,
    OVERDUE_ALERT,
    DispatchRecord,
    NotificationPreferences,
    OutgoingNotification,
    Task,
    TaskSnapshot,
    UserProfile,
)
from duenudge.delivery.sink import NotificationSink
from duenudge.engine.batch import build_check_ins, build_overdue_alert
from duenudge.engine.schedule import calculate_schedule, due_phase
from duenudge.engine.state import DispatchStateStore
from duenudge.utils.time_utils import is_in_quiet_hours, to_local

logger = logging.getLogger(__name__)


class TaskStore(Protocol):
    async def get_tasks(self) -> List[Task]: ...


class ProfileStore(Protocol):
    async def get_profile(self) -> UserProfile: ...


class PreferenceStore(Protocol):
    async def get_preferences(self) -> NotificationPreferences: ...


def fingerprint_key(task: Task) -> str:
    """Serialised fingerprint, stable across restarts."""
    return json.dumps(task.fingerprint())


class Dispatcher:
    """Orchestrates cancel-then-reschedule around the schedule calculator."""

    def __init__(
        self,
        sink: NotificationSink,
        state: DispatchStateStore,
        tasks: TaskStore | None = None,
        profiles: ProfileStore | None = None,
        preferences: PreferenceStore | None = None,
    ):
        self.sink = sink
        self.state = state
        self.tasks = tasks
        self.profiles = profiles
        self.preferences = preferences
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def _resolve(
        self,
        profile: UserProfile | None,
        preferences: NotificationPreferences | None,
    ) -> Tuple[UserProfile, NotificationPreferences]:
        if profile is None:
            profile = await self.profiles.get_profile() if self.profiles else UserProfile()
        if preferences is None:
            preferences = (
                await self.preferences.get_preferences()
                if self.preferences
                else NotificationPreferences()
            )
        return profile, preferences

    # Bookkeeping helpers (caller holds the task's lock)

    async def _cancel_pending(self, task_id: str) -> int:
        """Cancel every recorded handle for a task."""
        records = await self.state.get_records(task_id)
        cancelled = 0

        for record in records:
            try:
                await self.sink.cancel(record.handle)
                cancelled += 1
            except Exception as e:
                logger.error(f"Failed to cancel notification {record.handle}: {e}")
            await self.state.remove_record(record.handle)

        if records:
            logger.info(f"Cancelled {cancelled} notifications for task {task_id}")
        return cancelled

    async def _reap_delivered(
        self, task_id: str, profile: UserProfile, now: datetime
    ) -> int:
        """Forget records whose time has passed.

        Delivered overdue reminders are credited to the counter of the day
        they fired on.

        Returns:
            Number of records still pending
        """
        pending = 0

        for record in await self.state.get_records(task_id):
            if record.scheduled_for > now:
                pending += 1
                continue

            if record.kind == "overdue":
                fired_on = to_local(record.scheduled_for, profile.timezone).date()
                await self.state.increment_overdue_count(task_id, fired_on)
            await self.state.remove_record(record.handle)

        return pending

    async def _reschedule(
        self,
        task: Task,
        profile: UserProfile,
        preferences: NotificationPreferences,
        now: datetime,
    ) -> int:
        await self._reap_delivered(task.id, profile, now)
        await self._cancel_pending(task.id)

        await self.state.set_snapshot(
            TaskSnapshot(
                task_id=task.id,
                fingerprint=fingerprint_key(task),
                phase=due_phase(task, profile, now),
            )
        )

        if task.status == "completed":
            logger.info(f'Task "{task.title}" completed, notifications cancelled')
            return 0

        today = to_local(now, profile.timezone).date()
        if await self.state.is_dismissed(task.id, today):
            return 0

        overdue_count = await self.state.get_overdue_count(task.id, today)
        schedule = calculate_schedule(task, profile, overdue_count, preferences, now)

        scheduled = 0
        for notification in schedule.notifications:
            outgoing = OutgoingNotification(
                task_id=task.id,
                kind=notification.type,
                time=notification.time,
                title=notification.content.title,
                body=notification.content.body,
                urgency_level=notification.content.urgency_level,
                action_text=notification.content.action_text,
            )

            try:
                handle = await self.sink.schedule(outgoing)
            except Exception as e:
                logger.error(f"Failed to schedule notification for task {task.id}: {e}")
                continue

            if handle is None:
                continue

            await self.state.add_record(
                DispatchRecord(
                    handle=handle,
                    task_id=task.id,
                    kind=notification.type,
                    scheduled_for=notification.time,
                )
            )
            scheduled += 1

        if scheduled:
            logger.info(f'Scheduled {scheduled} notifications for task "{task.title}"')
        return scheduled

    async def _needs_reschedule(
        self, task: Task, profile: UserProfile, now: datetime
    ) -> bool:
        pending = await self._reap_delivered(task.id, profile, now)
        snapshot = await self.state.get_snapshot(task.id)

        if snapshot is None:
            return True
        if snapshot.fingerprint != fingerprint_key(task):
            return True
        # Date drift, e.g. "due tomorrow" became "due today" or overdue
        if snapshot.phase != due_phase(task, profile, now):
            return True
        return pending == 0 and task.status != "completed"

    # Public API

    async def reschedule_task(
        self,
        task: Task,
        profile: UserProfile | None = None,
        preferences: NotificationPreferences | None = None,
        now: datetime | None = None,
    ) -> int:
        """Cancel a task's notifications and submit a fresh schedule.

        Returns:
            Number of notifications submitted
        """
        if now is None:
            now = datetime.now(ZoneInfo("UTC"))
        profile, preferences = await self._resolve(profile, preferences)

        async with self._locks[task.id]:
            return await self._reschedule(task, profile, preferences, now)

    async def on_task_saved(
        self,
        task: Task,
        profile: UserProfile | None = None,
        preferences: NotificationPreferences | None = None,
        now: datetime | None = None,
    ) -> bool:
        """React to a task create/update event.

        Returns:
            True if the task was rescheduled
        """
        if now is None:
            now = datetime.now(ZoneInfo("UTC"))
        profile, preferences = await self._resolve(profile, preferences)

        async with self._locks[task.id]:
            snapshot = await self.state.get_snapshot(task.id)
            if snapshot is not None and snapshot.fingerprint == fingerprint_key(task):
                return False

            await self._reschedule(task, profile, preferences, now)
            return True

    async def on_task_deleted(self, task_id: str) -> None:
        """React to a task delete event."""
        async with self._locks[task_id]:
            await self._cancel_pending(task_id)
            await self.state.forget_task(task_id)
        self._locks.pop(task_id, None)
        logger.info(f"Stopped tracking deleted task {task_id}")

    async def sync_tasks(
        self,
        tasks: Iterable[Task],
        profile: UserProfile | None = None,
        preferences: NotificationPreferences | None = None,
        now: datetime | None = None,
    ) -> int:
        """Reconcile against a full task list.

        Changed tasks are rescheduled, tasks missing from the list are
        treated as deleted.

        Returns:
            Number of tasks rescheduled
        """
        if now is None:
            now = datetime.now(ZoneInfo("UTC"))
        profile, preferences = await self._resolve(profile, preferences)

        tasks = list(tasks)
        changed = 0

        for task in tasks:
            try:
                if await self.on_task_saved(task, profile, preferences, now):
                    changed += 1
            except Exception as e:
                logger.error(f"Error processing task {task.id}: {e}")

        await self._drop_vanished({task.id for task in tasks})
        return changed

    async def _drop_vanished(self, current_ids: set) -> None:
        for task_id in await self.state.tracked_task_ids() - current_ids:
            try:
                await self.on_task_deleted(task_id)
            except Exception as e:
                logger.error(f"Error cancelling deleted task {task_id}: {e}")

    async def dismiss_task(
        self,
        task_id: str,
        profile: UserProfile | None = None,
        now: datetime | None = None,
    ) -> int:
        """Silence a task for the rest of the local day.

        Returns:
            Number of pending notifications cancelled
        """
        if now is None:
            now = datetime.now(ZoneInfo("UTC"))
        profile, _ = await self._resolve(profile, NotificationPreferences())

        async with self._locks[task_id]:
            cancelled = await self._cancel_pending(task_id)
            await self.state.dismiss(task_id, to_local(now, profile.timezone).date())

        logger.info(f"Dismissed task {task_id} for today")
        return cancelled

    async def reset_daily_counters(
        self, profile: UserProfile, now: datetime
    ) -> bool:
        """Start a new day's overdue counters after local midnight.

        Returns:
            True if a reset happened
        """
        today = to_local(now, profile.timezone).date()
        if await self.state.get_last_reset_day() == today:
            return False

        await self.state.prune_before(today)
        await self.state.set_last_reset_day(today)
        logger.info("Reset overdue reminder counts for new day")
        return True

    async def sweep(self, now: datetime | None = None) -> int:
        """Hourly full re-evaluation.

        This runs every SWEEP_INTERVAL seconds and:
        1. Resets daily overdue counters after local midnight
        2. Reschedules tasks that changed, drifted to another calendar phase
           or have nothing pending any more
        3. Cancels notifications of tasks that no longer exist
        4. Refreshes the aggregate overdue alert
        5. Rebuilds the week of check-in prompts when the day or the
           work hours changed

        Returns:
            Number of tasks rescheduled
        """
        if now is None:
            now = datetime.now(ZoneInfo("UTC"))
        if self.tasks is None:
            raise RuntimeError("Sweep needs a task store")

        profile, preferences = await self._resolve(None, None)
        tasks = await self.tasks.get_tasks()

        await self.reset_daily_counters(profile, now)

        rescheduled = 0
        for task in tasks:
            try:
                async with self._locks[task.id]:
                    if await self._needs_reschedule(task, profile, now):
                        await self._reschedule(task, profile, preferences, now)
                        rescheduled += 1
            except Exception as e:
                logger.error(f"Error processing task {task.id}: {e}")
                continue

        await self._drop_vanished({task.id for task in tasks})

        try:
            await self.refresh_overdue_alert(tasks, profile, preferences, now)
        except Exception as e:
            logger.error(f"Failed to refresh overdue alert: {e}")

        try:
            await self.refresh_check_ins(profile, preferences, now)
        except Exception as e:
            logger.error(f"Failed to refresh check-ins: {e}")

        logger.info(f"Sweep complete: {len(tasks)} tasks, {rescheduled} rescheduled")
        return rescheduled

    async def refresh_overdue_alert(
        self,
        tasks: Iterable[Task],
        profile: UserProfile,
        preferences: NotificationPreferences,
        now: datetime,
    ) -> str | None:
        """Replace the aggregate overdue alert.

        Returns:
            Handle of the new alert, or None if none was scheduled
        """
        await self.sink.cancel_all_of_type(OVERDUE_ALERT)

        alert = build_overdue_alert(tasks, profile, now, preferences)
        if alert is None:
            return None

        if is_in_quiet_hours(
            alert.time, preferences.quiet_hours_start, preferences.quiet_hours_end
        ):
            logger.info("Overdue alert falls in quiet hours, skipped")
            return None

        return await self.sink.schedule(alert)

    async def refresh_check_ins(
        self,
        profile: UserProfile,
        preferences: NotificationPreferences,
        now: datetime,
    ) -> int:
        """Replace the pending check-in prompts if their inputs changed.

        Returns:
            Number of check-ins submitted, 0 when the current set was kept
        """
        key = "|".join(
            [
                to_local(now, profile.timezone).date().isoformat(),
                profile.timezone,
                profile.work_hours_start,
                profile.work_hours_end,
                str(profile.check_in_frequency),
                preferences.quiet_hours_start,
                preferences.quiet_hours_end,
            ]
        )
        if await self.state.get_check_in_key() == key:
            return 0

        await self.sink.cancel_all_of_type(CHECK_IN)

        scheduled = 0
        for check_in in build_check_ins(profile, preferences, now):
            try:
                await self.sink.schedule(check_in)
                scheduled += 1
            except Exception as e:
                logger.error(f"Failed to schedule check-in at {check_in.time}: {e}")

        await self.state.set_check_in_key(key)
        logger.info(f"Scheduled {scheduled} check-ins")
        return scheduled

    async def startup_recovery(self, now: datetime | None = None) -> int:
        """Recovery on startup: forget handles the sink lost.

        Sinks backed by in-process timers lose their queue on restart. Stale
        records are dropped and their tasks marked for the next sweep.

        Returns:
            Number of stale records dropped
        """
        if now is None:
            now = datetime.now(ZoneInfo("UTC"))

        try:
            live = {pending.handle for pending in await self.sink.list_pending()}
        except Exception as e:
            logger.error(f"Startup recovery error: {e}")
            return 0

        # Check-ins have no records; rebuild them on the next sweep
        await self.state.set_check_in_key("")

        stale = 0
        for record in await self.state.all_records():
            if record.handle in live or record.scheduled_for <= now:
                continue
            await self.state.remove_record(record.handle)
            await self.state.clear_snapshot(record.task_id)
            stale += 1

        if stale:
            logger.info(f"Startup recovery: dropped {stale} lost notifications")
        return stale
