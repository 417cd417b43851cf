#!/usr/bin/env python3
"""CLI entrypoint for the schedule progress tracker."""
from __future__ import annotations

import argparse
import json
import logging
import os
from datetime import date
from pathlib import Path

from daily_progress.task_extractor import (
    normalize,
    pipeline,
    renderer,
    report,
    sources,
    store,
)


class TrackerPaths:
    def __init__(self, root: Path, index_dir: Path | None = None) -> None:
        self.root = root
        self.index_dir = (index_dir or root / "_progress").resolve()
        self.store_path = self.index_dir / "progress.json"
        self.export_path = self.index_dir / "progress_data.json"

logger = logging.getLogger("daily_progress.task_extractor.cli")


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )


def resolve_root(path: str | None) -> Path:
    if path:
        return Path(path).expanduser().resolve()
    env_value = os.environ.get("TRACKER_ROOT")
    if env_value:
        return Path(env_value).expanduser().resolve()
    return Path.cwd()


def resolve_date(value: str | None) -> date:
    if not value:
        return normalize.today()
    try:
        return normalize.parse_iso_date(value)
    except ValueError as exc:
        raise SystemExit(f"Invalid date (expected YYYY-MM-DD): {value}") from exc


def load_record(paths: TrackerPaths, day: date) -> store.DailyTaskRecord:
    store_data = store.load_store(paths.store_path)
    record = store.get_record(store_data, day)
    return record or store.DailyTaskRecord(day=day)


def command_extract(args: argparse.Namespace) -> None:
    paths = TrackerPaths(resolve_root(args.root))
    source = Path(args.file).expanduser()
    if not source.is_file():
        raise SystemExit(f"File not found: {source}")
    day = resolve_date(args.date)
    logger.info("Processing %s for %s", source, day.isoformat())
    try:
        entries = pipeline.extract_file(
            source,
            min_pdf_chars=args.min_pdf_chars,
            pdf_backends=parse_backend_list(args.pdf_backends),
        )
    except (sources.UnsupportedSourceError, sources.SourceDecodeError) as exc:
        raise SystemExit(f"Error processing file: {exc}") from exc
    record = store.build_record(day, entries)
    store_data = store.load_store(paths.store_path)
    store.put_record(store_data, record)
    store.save_store(paths.store_path, store_data)
    logger.info("Successfully extracted %d tasks", record.total_count)
    print(renderer.render_tasks(record))


def command_show(args: argparse.Namespace) -> None:
    paths = TrackerPaths(resolve_root(args.root))
    record = load_record(paths, resolve_date(args.date))
    print(renderer.render_tasks(record))


def command_toggle(args: argparse.Namespace) -> None:
    paths = TrackerPaths(resolve_root(args.root))
    day = resolve_date(args.date)
    store_data = store.load_store(paths.store_path)
    record = store.get_record(store_data, day)
    if record is None:
        raise SystemExit(f"No tasks stored for {day.isoformat()}")
    try:
        task = store.toggle_task(record, args.task_id, args.completed)
    except KeyError as exc:
        raise SystemExit(f"No task with id {args.task_id} on {day.isoformat()}") from exc
    store.put_record(store_data, record)
    store.save_store(paths.store_path, store_data)
    state = "done" if task.completed else "pending"
    logger.info("Marked #%d %s as %s", task.id, task.task_name, state)
    print(renderer.render_tasks(record))


def command_clear(args: argparse.Namespace) -> None:
    paths = TrackerPaths(resolve_root(args.root))
    day = resolve_date(args.date)
    store_data = store.load_store(paths.store_path)
    if store.clear_record(store_data, day):
        store.save_store(paths.store_path, store_data)
        logger.info("Tasks cleared for %s", day.isoformat())
    else:
        logger.info("No tasks stored for %s", day.isoformat())


def command_report(args: argparse.Namespace) -> None:
    paths = TrackerPaths(resolve_root(args.root))
    store_data = store.load_store(paths.store_path)
    today = resolve_date(args.today)
    summary = report.build_named_report(store_data, args.kind, today)
    title = renderer.REPORT_TITLES[args.kind]
    if args.output:
        output_path = Path(args.output).expanduser()
        content = renderer.write_report(summary, title, output_path)
        logger.info("Report written to %s (%d characters)", output_path, len(content))
    else:
        print(renderer.render_report(summary, title))


def command_export(args: argparse.Namespace) -> None:
    paths = TrackerPaths(resolve_root(args.root))
    store_data = store.load_store(paths.store_path)
    exported = store.export_progress(store_data)
    output_path = Path(args.output).expanduser() if args.output else paths.export_path
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", encoding="utf-8") as fh:
        json.dump(exported, fh, indent=2, ensure_ascii=False)
    logger.info("Exported %d days to %s", len(exported), output_path)


def parse_backend_list(value: str | None) -> list[str] | None:
    if not value:
        return None
    parts = [entry.strip() for entry in value.split(",") if entry.strip()]
    return parts or None


def build_parser() -> argparse.ArgumentParser:
    parser_obj = argparse.ArgumentParser(description="Track daily schedule progress")
    parser_obj.add_argument("--root", help="Data root (defaults to TRACKER_ROOT or cwd)")
    parser_obj.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser_obj.add_subparsers(dest="command")

    extract_parser = subparsers.add_parser("extract", help="Extract tasks from a document")
    extract_parser.add_argument("file", help="Schedule document (pdf, docx, xlsx, xls, txt, html or an image)")
    extract_parser.add_argument("--date", help="Day to store the tasks under (YYYY-MM-DD)")
    extract_parser.add_argument(
        "--pdf-backends",
        help="Comma-separated PDF extraction backend order (overrides TRACKER_PDF_BACKENDS)",
    )
    extract_parser.add_argument(
        "--min-pdf-chars",
        type=int,
        help="Minimum characters required from a PDF (overrides TRACKER_MIN_PDF_CHARS)",
    )
    extract_parser.set_defaults(func=command_extract)

    show_parser = subparsers.add_parser("show", help="Show the task list for a day")
    show_parser.add_argument("--date", help="Day to show (YYYY-MM-DD)")
    show_parser.set_defaults(func=command_show)

    toggle_parser = subparsers.add_parser("toggle", help="Toggle completion of a task")
    toggle_parser.add_argument("task_id", type=int, help="Task id as shown by 'show'")
    toggle_parser.add_argument("--date", help="Day of the task (YYYY-MM-DD)")
    state_group = toggle_parser.add_mutually_exclusive_group()
    state_group.add_argument("--done", dest="completed", action="store_const", const=True)
    state_group.add_argument("--undo", dest="completed", action="store_const", const=False)
    toggle_parser.set_defaults(func=command_toggle, completed=None)

    clear_parser = subparsers.add_parser("clear", help="Clear all tasks for a day")
    clear_parser.add_argument("--date", help="Day to clear (YYYY-MM-DD)")
    clear_parser.set_defaults(func=command_clear)

    report_parser = subparsers.add_parser("report", help="Render a progress report")
    report_parser.add_argument("kind", choices=report.REPORT_KINDS)
    report_parser.add_argument("--today", help="Override the report end date (YYYY-MM-DD)")
    report_parser.add_argument("--output", help="Write the Markdown report to this file")
    report_parser.set_defaults(func=command_report)

    export_parser = subparsers.add_parser("export", help="Export all stored progress as JSON")
    export_parser.add_argument("--output", help="Destination file")
    export_parser.set_defaults(func=command_export)

    return parser_obj


def main(argv: list[str] | None = None) -> None:
    parser_obj = build_parser()
    args = parser_obj.parse_args(argv)
    if not getattr(args, "command", None):
        parser_obj.print_help()
        return
    configure_logging(args.verbose)
    args.func(args)


if __name__ == "__main__":
    main()
