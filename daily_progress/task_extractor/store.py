"""Per-day task records persisted in a JSON key-value file."""
from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, cast

from .parser import TaskEntry

logger = logging.getLogger(__name__)

KEY_PREFIX = "progress_"


def progress_key(day: date) -> str:
    return f"{KEY_PREFIX}{day.isoformat()}"


def completion_percentage(completed: int, total: int) -> int:
    """Whole-number percentage, halves rounded up; zero when ``total`` is zero."""

    if total <= 0:
        return 0
    return (200 * completed + total) // (2 * total)


@dataclass
class TrackedTask:
    id: int
    entry: TaskEntry
    completed: bool = False

    @property
    def task_name(self) -> str:
        return self.entry.task_name

    @property
    def time_range(self) -> str | None:
        return self.entry.time_range

    @property
    def text(self) -> str:
        return self.entry.full_text

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "text": self.text,
            "taskName": self.task_name,
            "timeRange": self.time_range,
            "kind": self.entry.kind,
            "completed": self.completed,
        }


@dataclass
class DailyTaskRecord:
    day: date
    tasks: list[TrackedTask] = field(default_factory=list)

    @property
    def completed_count(self) -> int:
        return sum(1 for task in self.tasks if task.completed)

    @property
    def total_count(self) -> int:
        return len(self.tasks)

    @property
    def percentage(self) -> int:
        return completion_percentage(self.completed_count, self.total_count)

    def find(self, task_id: int) -> TrackedTask:
        for task in self.tasks:
            if task.id == task_id:
                return task
        raise KeyError(task_id)

    def to_dict(self) -> dict[str, object]:
        return {
            "date": self.day.isoformat(),
            "tasks": [task.to_dict() for task in self.tasks],
            "completedCount": self.completed_count,
            "totalCount": self.total_count,
            "percentage": self.percentage,
        }


def build_record(day: date, entries: Iterable[TaskEntry]) -> DailyTaskRecord:
    tasks = [TrackedTask(id=index, entry=entry) for index, entry in enumerate(entries)]
    return DailyTaskRecord(day=day, tasks=tasks)


def task_from_dict(data: Mapping[str, Any], fallback_id: int) -> TrackedTask:
    task_name = str(data.get("taskName") or "").strip()
    time_range = data.get("timeRange") or None
    text = str(data.get("text") or "").strip()
    if time_range:
        kind = str(data.get("kind") or "time_range")
        entry = TaskEntry.timed(task_name, str(time_range), kind=kind)
    else:
        kind = str(data.get("kind") or "plain")
        entry = TaskEntry.untimed(task_name, full_text=text or None, kind=kind)
    task_id = data.get("id", fallback_id)
    return TrackedTask(id=int(task_id), entry=entry, completed=bool(data.get("completed")))


def record_from_dict(data: Mapping[str, Any]) -> DailyTaskRecord:
    """Rebuild a record; raises ``ValueError`` on malformed input."""

    try:
        day = date.fromisoformat(str(data["date"]))
        raw_tasks = data.get("tasks") or []
        if not isinstance(raw_tasks, list):
            raise TypeError("tasks must be a list")
        tasks = [task_from_dict(item, index) for index, item in enumerate(raw_tasks)]
    except (KeyError, TypeError, AttributeError) as exc:
        raise ValueError(f"malformed progress record: {exc}") from exc
    return DailyTaskRecord(day=day, tasks=tasks)


def ensure_store() -> dict[str, Any]:
    return {}


def load_store(path: Path) -> dict[str, Any]:
    if not path.exists():
        return ensure_store()
    with path.open("r", encoding="utf-8") as fh:
        return cast(dict[str, Any], json.load(fh))


def save_store(path: Path, store: Mapping[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(store, fh, indent=2, sort_keys=True, ensure_ascii=False)


def get_record(store: Mapping[str, Any], day: date) -> DailyTaskRecord | None:
    data = store.get(progress_key(day))
    if data is None:
        return None
    if not isinstance(data, Mapping):
        logger.warning("Ignoring malformed record %s", progress_key(day))
        return None
    try:
        return record_from_dict(data)
    except ValueError as exc:
        logger.warning("Ignoring malformed record %s: %s", progress_key(day), exc)
        return None


def put_record(store: dict[str, Any], record: DailyTaskRecord) -> None:
    store[progress_key(record.day)] = record.to_dict()


def toggle_task(
    record: DailyTaskRecord,
    task_id: int,
    completed: bool | None = None,
) -> TrackedTask:
    task = record.find(task_id)
    task.completed = (not task.completed) if completed is None else completed
    return task


def clear_record(store: dict[str, Any], day: date) -> bool:
    return store.pop(progress_key(day), None) is not None


def export_progress(store: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in sorted(store.items()) if key.startswith(KEY_PREFIX)}
