"""Database repository - all SQL queries."""

import json
import logging
from datetime import date
from pathlib import Path
from typing import List, Protocol, Set

import aiosqlite
from dateutil.parser import isoparse

from duenudge.db.models import (
    DispatchRecord,
    NotificationPreferences,
    Task,
    TaskSnapshot,
    UserProfile,
)
from duenudge.utils.constants import DEFAULT_TIMEZONE

logger = logging.getLogger(__name__)

LAST_RESET_KEY = "overdue_counts_last_reset"
CHECK_IN_KEY = "check_in_schedule"


class TaskListener(Protocol):
    async def on_task_saved(self, task: Task) -> object: ...

    async def on_task_deleted(self, task_id: str) -> object: ...


class Repository:
    """Database access layer.

    Serves as task store, profile store, preference store and the
    dispatcher's persistent state store.
    """

    def __init__(self, db_path: Path, default_timezone: str = DEFAULT_TIMEZONE):
        self.db_path = db_path
        self.default_timezone = default_timezone
        self._db: aiosqlite.Connection | None = None
        self._task_listeners: List[TaskListener] = []

    async def connect(self) -> None:
        """Open database connection."""
        self._db = await aiosqlite.connect(self.db_path)
        self._db.row_factory = aiosqlite.Row
        logger.info(f"Connected to database at {self.db_path}")

    async def close(self) -> None:
        """Close database connection."""
        if self._db:
            await self._db.close()
            logger.info("Database connection closed")

    @property
    def db(self) -> aiosqlite.Connection:
        """Get the database connection."""
        if self._db is None:
            raise RuntimeError("Database not connected")
        return self._db

    def add_task_listener(self, listener: TaskListener) -> None:
        """Register an object told about every task write."""
        self._task_listeners.append(listener)

    # Task operations

    async def get_tasks(self) -> List[Task]:
        """Get all tasks."""
        async with self.db.execute("SELECT * FROM tasks ORDER BY due_date") as cursor:
            rows = await cursor.fetchall()
            return [Task.from_record(dict(row)) for row in rows]

    async def get_task(self, task_id: str) -> Task | None:
        """Get a task by ID."""
        async with self.db.execute(
            "SELECT * FROM tasks WHERE id = ?", (task_id,)
        ) as cursor:
            row = await cursor.fetchone()
            if row:
                return Task.from_record(dict(row))
            return None

    async def save_task(self, task: Task) -> None:
        """Insert or update a task."""
        await self.db.execute(
            """
            INSERT INTO tasks (id, title, due_date, status, priority, estimated_duration, category)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                title = excluded.title,
                due_date = excluded.due_date,
                status = excluded.status,
                priority = excluded.priority,
                estimated_duration = excluded.estimated_duration,
                category = excluded.category,
                updated_at = datetime('now')
            """,
            (
                task.id,
                task.title,
                task.due_date.isoformat() if task.due_date else None,
                task.status,
                task.priority,
                task.estimated_duration,
                task.category,
            ),
        )
        await self.db.commit()

        for listener in self._task_listeners:
            try:
                await listener.on_task_saved(task)
            except Exception as e:
                logger.error(f"Task listener failed for saved task {task.id}: {e}")

    async def delete_task(self, task_id: str) -> None:
        """Delete a task."""
        await self.db.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
        await self.db.commit()

        for listener in self._task_listeners:
            try:
                await listener.on_task_deleted(task_id)
            except Exception as e:
                logger.error(f"Task listener failed for deleted task {task_id}: {e}")

    # Profile operations

    async def get_profile(self) -> UserProfile:
        """Get the user profile, defaults if none was saved."""
        async with self.db.execute("SELECT * FROM profile WHERE id = 1") as cursor:
            row = await cursor.fetchone()
            if row is None:
                return UserProfile(timezone=self.default_timezone)
            return UserProfile(
                work_hours_start=row["work_hours_start"],
                work_hours_end=row["work_hours_end"],
                peak_energy_time=row["peak_energy_time"],
                check_in_frequency=row["check_in_frequency"],
                timezone=row["timezone"],
            )

    async def save_profile(self, profile: UserProfile) -> None:
        """Insert or update the user profile."""
        await self.db.execute(
            """
            INSERT INTO profile (id, work_hours_start, work_hours_end, peak_energy_time,
                                 check_in_frequency, timezone)
            VALUES (1, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                work_hours_start = excluded.work_hours_start,
                work_hours_end = excluded.work_hours_end,
                peak_energy_time = excluded.peak_energy_time,
                check_in_frequency = excluded.check_in_frequency,
                timezone = excluded.timezone
            """,
            (
                profile.work_hours_start,
                profile.work_hours_end,
                profile.peak_energy_time,
                profile.check_in_frequency,
                profile.timezone,
            ),
        )
        await self.db.commit()

    # Preference operations

    async def get_preferences(self) -> NotificationPreferences:
        """Get notification preferences.

        Unparseable values are skipped and fall back to defaults.
        """
        record = {}
        async with self.db.execute("SELECT key, value FROM preferences") as cursor:
            for row in await cursor.fetchall():
                try:
                    record[row["key"]] = json.loads(row["value"])
                except json.JSONDecodeError:
                    logger.warning(f"Ignoring unparseable preference {row['key']}")

        return NotificationPreferences.from_record(record)

    async def save_preferences(self, preferences: NotificationPreferences) -> None:
        """Write every preference key."""
        await self.db.executemany(
            """
            INSERT INTO preferences (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """,
            [(key, json.dumps(value)) for key, value in preferences.to_record().items()],
        )
        await self.db.commit()

    # Dispatcher state: handles

    async def get_records(self, task_id: str) -> List[DispatchRecord]:
        async with self.db.execute(
            "SELECT * FROM dispatched_notifications WHERE task_id = ? ORDER BY scheduled_for",
            (task_id,),
        ) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_record(row) for row in rows]

    async def all_records(self) -> List[DispatchRecord]:
        async with self.db.execute(
            "SELECT * FROM dispatched_notifications ORDER BY scheduled_for"
        ) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_record(row) for row in rows]

    async def add_record(self, record: DispatchRecord) -> None:
        await self.db.execute(
            """
            INSERT OR REPLACE INTO dispatched_notifications (handle, task_id, kind, scheduled_for)
            VALUES (?, ?, ?, ?)
            """,
            (
                record.handle,
                record.task_id,
                record.kind,
                record.scheduled_for.isoformat(),
            ),
        )
        await self.db.commit()

    async def remove_record(self, handle: str) -> None:
        await self.db.execute(
            "DELETE FROM dispatched_notifications WHERE handle = ?", (handle,)
        )
        await self.db.commit()

    # Dispatcher state: snapshots

    async def get_snapshot(self, task_id: str) -> TaskSnapshot | None:
        async with self.db.execute(
            "SELECT * FROM task_snapshots WHERE task_id = ?", (task_id,)
        ) as cursor:
            row = await cursor.fetchone()
            if row:
                return TaskSnapshot(
                    task_id=row["task_id"],
                    fingerprint=row["fingerprint"],
                    phase=row["phase"],
                )
            return None

    async def set_snapshot(self, snapshot: TaskSnapshot) -> None:
        await self.db.execute(
            "INSERT OR REPLACE INTO task_snapshots (task_id, fingerprint, phase) VALUES (?, ?, ?)",
            (snapshot.task_id, snapshot.fingerprint, snapshot.phase),
        )
        await self.db.commit()

    async def clear_snapshot(self, task_id: str) -> None:
        await self.db.execute("DELETE FROM task_snapshots WHERE task_id = ?", (task_id,))
        await self.db.commit()

    async def tracked_task_ids(self) -> Set[str]:
        async with self.db.execute(
            """
            SELECT task_id FROM task_snapshots
            UNION
            SELECT task_id FROM dispatched_notifications
            """
        ) as cursor:
            rows = await cursor.fetchall()
            return {row["task_id"] for row in rows}

    async def forget_task(self, task_id: str) -> None:
        await self.db.execute("DELETE FROM task_snapshots WHERE task_id = ?", (task_id,))
        await self.db.execute(
            "DELETE FROM dispatched_notifications WHERE task_id = ?", (task_id,)
        )
        await self.db.commit()

    # Dispatcher state: daily counters and dismissals

    async def get_overdue_count(self, task_id: str, day: date) -> int:
        async with self.db.execute(
            "SELECT count FROM overdue_counts WHERE task_id = ? AND day = ?",
            (task_id, day.isoformat()),
        ) as cursor:
            row = await cursor.fetchone()
            return row["count"] if row else 0

    async def increment_overdue_count(self, task_id: str, day: date) -> int:
        async with self.db.execute(
            """
            INSERT INTO overdue_counts (task_id, day, count) VALUES (?, ?, 1)
            ON CONFLICT(task_id, day) DO UPDATE SET count = count + 1
            RETURNING count
            """,
            (task_id, day.isoformat()),
        ) as cursor:
            row = await cursor.fetchone()
        await self.db.commit()
        return row["count"]

    async def prune_before(self, day: date) -> None:
        """Drop counters and dismissals of earlier days."""
        await self.db.execute("DELETE FROM overdue_counts WHERE day < ?", (day.isoformat(),))
        await self.db.execute("DELETE FROM dismissals WHERE day < ?", (day.isoformat(),))
        await self.db.commit()

    async def get_last_reset_day(self) -> date | None:
        async with self.db.execute(
            "SELECT value FROM dispatcher_meta WHERE key = ?", (LAST_RESET_KEY,)
        ) as cursor:
            row = await cursor.fetchone()
            return date.fromisoformat(row["value"]) if row else None

    async def set_last_reset_day(self, day: date) -> None:
        await self.db.execute(
            "INSERT OR REPLACE INTO dispatcher_meta (key, value) VALUES (?, ?)",
            (LAST_RESET_KEY, day.isoformat()),
        )
        await self.db.commit()

    async def get_check_in_key(self) -> str | None:
        async with self.db.execute(
            "SELECT value FROM dispatcher_meta WHERE key = ?", (CHECK_IN_KEY,)
        ) as cursor:
            row = await cursor.fetchone()
            return row["value"] if row else None

    async def set_check_in_key(self, key: str) -> None:
        await self.db.execute(
            "INSERT OR REPLACE INTO dispatcher_meta (key, value) VALUES (?, ?)",
            (CHECK_IN_KEY, key),
        )
        await self.db.commit()

    async def dismiss(self, task_id: str, day: date) -> None:
        await self.db.execute(
            "INSERT OR IGNORE INTO dismissals (task_id, day) VALUES (?, ?)",
            (task_id, day.isoformat()),
        )
        await self.db.commit()

    async def is_dismissed(self, task_id: str, day: date) -> bool:
        async with self.db.execute(
            "SELECT 1 FROM dismissals WHERE task_id = ? AND day = ?",
            (task_id, day.isoformat()),
        ) as cursor:
            return await cursor.fetchone() is not None

    # Helper methods

    def _row_to_record(self, row: aiosqlite.Row) -> DispatchRecord:
        """Convert a database row to a DispatchRecord."""
        return DispatchRecord(
            handle=row["handle"],
            task_id=row["task_id"],
            kind=row["kind"],
            scheduled_for=isoparse(row["scheduled_for"]),
        )
