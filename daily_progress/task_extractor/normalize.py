"""Normalization helpers."""
from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, date, datetime

from .parser import TaskEntry


def now_iso() -> str:
    return datetime.now(UTC).replace(microsecond=0).isoformat()


def today() -> date:
    return datetime.now().date()


def task_key(entry: TaskEntry) -> str:
    return entry.task_name.lower()


def dedupe_entries(entries: Iterable[TaskEntry]) -> list[TaskEntry]:
    """Keep the first entry per lower-cased task name, preserving order."""

    seen = set()
    result: list[TaskEntry] = []
    for entry in entries:
        key = task_key(entry)
        if key not in seen:
            seen.add(key)
            result.append(entry)
    return result


def parse_iso_date(value: str) -> date:
    return date.fromisoformat(value.strip())
