"""Markdown rendering of task lists and progress reports."""
from __future__ import annotations

from pathlib import Path

from .normalize import now_iso
from .report import MONTHLY, WEEKLY, ReportSummary
from .store import DailyTaskRecord, completion_percentage

REPORT_TITLES = {
    WEEKLY: "Weekly Report (Last 7 Days)",
    MONTHLY: "Monthly Report",
}


def format_progress(completed: int, total: int) -> str:
    return f"{completion_percentage(completed, total)}% ({completed}/{total})"


def format_task_line(task_id: int, name: str, time_range: str | None, completed: bool) -> str:
    box = "x" if completed else " "
    prefix = f"`{time_range}` " if time_range else ""
    return f"- [{box}] #{task_id} {prefix}{name}"


def render_tasks(record: DailyTaskRecord) -> str:
    lines = [f"# Tasks for {record.day.isoformat()} ({record.day.strftime('%A')})", ""]
    if not record.tasks:
        lines.append("_No tasks available for this date._")
        lines.append("")
        return "\n".join(lines)
    lines.append(f"**Progress:** {format_progress(record.completed_count, record.total_count)}")
    lines.append("")
    for task in record.tasks:
        lines.append(format_task_line(task.id, task.task_name, task.time_range, task.completed))
    lines.append("")
    return "\n".join(lines)


def render_report(summary: ReportSummary, title: str) -> str:
    lines = [f"# {title}", "", f"_{summary.start.isoformat()} to {summary.end.isoformat()}_", ""]
    average = summary.average_percentage
    if average is None:
        lines.append("_No data available for this period._")
        lines.append("")
        return "\n".join(lines)
    lines.append(f"**Tasks completed:** {summary.total_completed}")
    lines.append(f"**Total tasks:** {summary.total_tasks}")
    lines.append(f"**Average completion:** {int(average + 0.5)}%")
    lines.append("")
    lines.append("| Date | Completed | Total | Percentage |")
    lines.append("| --- | --- | --- | --- |")
    for row in summary.rows:
        lines.append(
            f"| {row.day.isoformat()} | {row.completed_count} | "
            f"{row.total_count} | {row.percentage}% |"
        )
    lines.append("")
    lines.append(f"_Generated: {now_iso()}_")
    lines.append("")
    return "\n".join(lines)


def write_report(summary: ReportSummary, title: str, output_path: Path) -> str:
    content = render_report(summary, title)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(content, encoding="utf-8")
    return content
