"""Dispatcher state store."""

from datetime import date
from typing import Dict, List, Protocol, Set, Tuple

from duenudge.db.models import DispatchRecord, TaskSnapshot


class DispatchStateStore(Protocol):
    """Bookkeeping the dispatcher needs between runs.

    Holds the handles submitted per task, what each task was last scheduled
    from, per-day overdue reminder counters, per-day dismissals and the inputs
    the pending check-ins were built from.
    """

    async def get_records(self, task_id: str) -> List[DispatchRecord]: ...

    async def all_records(self) -> List[DispatchRecord]: ...

    async def add_record(self, record: DispatchRecord) -> None: ...

    async def remove_record(self, handle: str) -> None: ...

    async def get_snapshot(self, task_id: str) -> TaskSnapshot | None: ...

    async def set_snapshot(self, snapshot: TaskSnapshot) -> None: ...

    async def clear_snapshot(self, task_id: str) -> None: ...

    async def tracked_task_ids(self) -> Set[str]: ...

    async def forget_task(self, task_id: str) -> None: ...

    async def get_overdue_count(self, task_id: str, day: date) -> int: ...

    async def increment_overdue_count(self, task_id: str, day: date) -> int: ...

    async def prune_before(self, day: date) -> None: ...

    async def get_last_reset_day(self) -> date | None: ...

    async def set_last_reset_day(self, day: date) -> None: ...

    async def get_check_in_key(self) -> str | None: ...

    async def set_check_in_key(self, key: str) -> None: ...

    async def dismiss(self, task_id: str, day: date) -> None: ...

    async def is_dismissed(self, task_id: str, day: date) -> bool: ...


class InMemoryStateStore:
    """Process-local state store."""

    def __init__(self) -> None:
        self._records: Dict[str, DispatchRecord] = {}
        self._snapshots: Dict[str, TaskSnapshot] = {}
        self._overdue_counts: Dict[Tuple[str, date], int] = {}
        self._dismissed: Set[Tuple[str, date]] = set()
        self._last_reset_day: date | None = None
        self._check_in_key: str | None = None

    async def get_records(self, task_id: str) -> List[DispatchRecord]:
        return [r for r in self._records.values() if r.task_id == task_id]

    async def all_records(self) -> List[DispatchRecord]:
        return list(self._records.values())

    async def add_record(self, record: DispatchRecord) -> None:
        self._records[record.handle] = record

    async def remove_record(self, handle: str) -> None:
        self._records.pop(handle, None)

    async def get_snapshot(self, task_id: str) -> TaskSnapshot | None:
        return self._snapshots.get(task_id)

    async def set_snapshot(self, snapshot: TaskSnapshot) -> None:
        self._snapshots[snapshot.task_id] = snapshot

    async def clear_snapshot(self, task_id: str) -> None:
        self._snapshots.pop(task_id, None)

    async def tracked_task_ids(self) -> Set[str]:
        return set(self._snapshots) | {r.task_id for r in self._records.values()}

    async def forget_task(self, task_id: str) -> None:
        self._snapshots.pop(task_id, None)
        self._records = {
            handle: r for handle, r in self._records.items() if r.task_id != task_id
        }

    async def get_overdue_count(self, task_id: str, day: date) -> int:
        return self._overdue_counts.get((task_id, day), 0)

    async def increment_overdue_count(self, task_id: str, day: date) -> int:
        key = (task_id, day)
        self._overdue_counts[key] = self._overdue_counts.get(key, 0) + 1
        return self._overdue_counts[key]

    async def prune_before(self, day: date) -> None:
        """Drop counters and dismissals of earlier days."""
        self._overdue_counts = {
            key: count for key, count in self._overdue_counts.items() if key[1] >= day
        }
        self._dismissed = {key for key in self._dismissed if key[1] >= day}

    async def get_last_reset_day(self) -> date | None:
        return self._last_reset_day

    async def set_last_reset_day(self, day: date) -> None:
        self._last_reset_day = day

    async def get_check_in_key(self) -> str | None:
        return self._check_in_key

    async def set_check_in_key(self, key: str) -> None:
        self._check_in_key = key

    async def dismiss(self, task_id: str, day: date) -> None:
        self._dismissed.add((task_id, day))

    async def is_dismissed(self, task_id: str, day: date) -> bool:
        return (task_id, day) in self._dismissed
