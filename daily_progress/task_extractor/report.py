"""Daily and aggregate completion statistics over a date range."""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Protocol

from .normalize import today as current_day
from .store import completion_percentage, get_record

logger = logging.getLogger(__name__)

WEEKLY = "weekly"
MONTHLY = "monthly"
REPORT_KINDS = (WEEKLY, MONTHLY)


class RecordSummary(Protocol):
    completed_count: int
    total_count: int


@dataclass(frozen=True)
class ReportRow:
    day: date
    completed_count: int
    total_count: int
    percentage: int

    def to_dict(self) -> dict[str, object]:
        return {
            "date": self.day.isoformat(),
            "completedCount": self.completed_count,
            "totalCount": self.total_count,
            "percentage": self.percentage,
        }


@dataclass
class ReportSummary:
    start: date
    end: date
    rows: list[ReportRow] = field(default_factory=list)

    @property
    def has_data(self) -> bool:
        return bool(self.rows)

    @property
    def total_completed(self) -> int:
        return sum(row.completed_count for row in self.rows)

    @property
    def total_tasks(self) -> int:
        return sum(row.total_count for row in self.rows)

    @property
    def average_percentage(self) -> float | None:
        """Mean of the row percentages, or ``None`` when no day has a record."""
        if not self.rows:
            return None
        return sum(row.percentage for row in self.rows) / len(self.rows)


def iter_days(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def build_row(day: date, summary: RecordSummary) -> ReportRow:
    completed = int(summary.completed_count)
    total = int(summary.total_count)
    return ReportRow(
        day=day,
        completed_count=completed,
        total_count=total,
        percentage=completion_percentage(completed, total),
    )


def build_report(
    start: date,
    end: date,
    lookup: Callable[[date], RecordSummary | None],
) -> ReportSummary:
    report = ReportSummary(start=start, end=end)
    for day in iter_days(start, end):
        summary = lookup(day)
        if summary is None:
            continue
        report.rows.append(build_row(day, summary))
    logger.debug("Report %s..%s: %d days with data", start, end, len(report.rows))
    return report


def get_report_data(store: Mapping[str, Any], start: date, end: date) -> list[ReportRow]:
    return build_report(start, end, lambda day: get_record(store, day)).rows


def weekly_window(today: date) -> tuple[date, date]:
    return today - timedelta(days=7), today


def monthly_window(today: date) -> tuple[date, date]:
    return today.replace(day=1), today


def report_window(kind: str, today: date) -> tuple[date, date]:
    if kind == WEEKLY:
        return weekly_window(today)
    if kind == MONTHLY:
        return monthly_window(today)
    raise ValueError(f"unknown report kind: {kind}")


def build_named_report(
    store: Mapping[str, Any],
    kind: str,
    today: date | None = None,
) -> ReportSummary:
    start, end = report_window(kind, today or current_day())
    return build_report(start, end, lambda day: get_record(store, day))
