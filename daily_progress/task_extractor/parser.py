"""Pattern tiers that turn a surviving line into a task entry."""
from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

TIME_TOKEN = r"(?<!\d)\d{1,2}:\d{2}"
RANGE_SEPARATOR = r"[-–]"

TIME_RANGE_RE = re.compile(
    rf"(?P<start>{TIME_TOKEN})\s*{RANGE_SEPARATOR}\s*(?P<end>{TIME_TOKEN})\s*(?P<rest>.*)$"
)
SINGLE_TIME_RE = re.compile(
    rf"^(?P<time>{TIME_TOKEN})\s+(?!\s*{RANGE_SEPARATOR}\s*{TIME_TOKEN})(?P<rest>.+)$"
)
BRACKETED_RE = re.compile(r"^(?P<prefix>.+?)[\(\[](?P<content>.+?)[\)\]]?$")
BARE_NUMERIC_RE = re.compile(r"^\d+[:.\-\s]*\d*$")
MERIDIEM_RE = re.compile(r"^(?:am|pm)$", re.IGNORECASE)
ALPHA_RE = re.compile(r"[A-Za-z]")

CLOSING_BRACKETS = {"(": ")", "[": "]"}


@dataclass(frozen=True)
class TaskEntry:
    """A task-like line with its optional time window."""

    task_name: str
    time_range: str | None
    full_text: str
    kind: str = "plain"

    def __post_init__(self) -> None:
        if not self.task_name.strip():
            raise ValueError("task_name must not be empty")

    @classmethod
    def timed(cls, task_name: str, time_range: str, kind: str = "time_range") -> TaskEntry:
        name = task_name.strip()
        return cls(
            task_name=name,
            time_range=time_range,
            full_text=f"{time_range} ({name})",
            kind=kind,
        )

    @classmethod
    def untimed(cls, task_name: str, full_text: str | None = None, kind: str = "plain") -> TaskEntry:
        name = task_name.strip()
        return cls(task_name=name, time_range=None, full_text=full_text or name, kind=kind)

    def to_dict(self) -> dict[str, str | None]:
        return {
            "taskName": self.task_name,
            "timeRange": self.time_range,
            "fullText": self.full_text,
        }


def unwrap_brackets(value: str) -> str:
    """Strip one enclosing ``(...)`` or ``[...]`` pair from ``value``."""

    cleaned = value.strip()
    closing = CLOSING_BRACKETS.get(cleaned[:1])
    if closing is None:
        return cleaned
    inner = cleaned[1:]
    if inner.endswith(closing):
        inner = inner[:-1]
    return inner.strip()


def parse_time_range(text: str) -> TaskEntry | None:
    match = TIME_RANGE_RE.search(text)
    if not match:
        return None
    description = unwrap_brackets(match.group("rest"))
    if not description:
        return None
    time_range = f"{match.group('start')} - {match.group('end')}"
    return TaskEntry.timed(description, time_range, kind="time_range")


def parse_single_time(text: str) -> TaskEntry | None:
    match = SINGLE_TIME_RE.match(text)
    if not match:
        return None
    remainder = unwrap_brackets(match.group("rest"))
    if len(remainder) <= 2 or MERIDIEM_RE.match(remainder):
        return None
    return TaskEntry.timed(remainder, match.group("time"), kind="single_time")


def parse_bracketed(text: str) -> TaskEntry | None:
    match = BRACKETED_RE.match(text)
    if not match:
        return None
    content = match.group("content").strip()
    if len(content) <= 2:
        return None
    return TaskEntry.untimed(content, full_text=text, kind="bracketed")


def parse_plain(text: str) -> TaskEntry | None:
    if not ALPHA_RE.search(text):
        return None
    if BARE_NUMERIC_RE.match(text):
        return None
    if not any(len(word) > 2 for word in text.split(" ")):
        return None
    return TaskEntry.untimed(text, kind="plain")


TIERS: tuple[Callable[[str], TaskEntry | None], ...] = (
    parse_time_range,
    parse_single_time,
    parse_bracketed,
    parse_plain,
)


def parse_task(text: str) -> TaskEntry | None:
    cleaned = text.strip()
    if not cleaned:
        return None
    for tier in TIERS:
        entry = tier(cleaned)
        if entry is not None:
            return entry
    logger.debug("No pattern matched: %r", cleaned)
    return None
