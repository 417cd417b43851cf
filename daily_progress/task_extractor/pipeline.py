"""Line extraction: noise filter, pattern tiers, then dedupe."""
from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence
from pathlib import Path

from . import sources
from .noise import DEFAULT_POLICY, NoiseRule, matching_rule, name_policy
from .normalize import dedupe_entries
from .parser import TaskEntry, parse_task

logger = logging.getLogger(__name__)

SPREADSHEET_HEADER_ROWS = 2


def classify_lines(
    raw_lines: Iterable[str],
    policy: Sequence[NoiseRule] = DEFAULT_POLICY,
) -> Iterator[TaskEntry]:
    """Yield an entry for every line that is neither noise nor unmatched."""

    name_rules = name_policy(policy)
    candidates = noise = unmatched = 0
    for raw_line in raw_lines:
        if not raw_line or not raw_line.strip():
            continue
        line = raw_line.strip()
        candidates += 1
        rule = matching_rule(line, policy)
        if rule is not None:
            noise += 1
            logger.debug("Discarded %r (%s)", line, rule.name)
            continue
        entry = parse_task(line)
        if entry is None:
            unmatched += 1
            continue
        rule = matching_rule(entry.task_name, name_rules)
        if rule is not None:
            noise += 1
            logger.debug("Discarded task name %r from %r (%s)", entry.task_name, line, rule.name)
            continue
        yield entry
    logger.debug(
        "Classified %d candidate lines: %d noise, %d unmatched",
        candidates,
        noise,
        unmatched,
    )


def extract(
    raw_lines: Iterable[str],
    *,
    policy: Sequence[NoiseRule] = DEFAULT_POLICY,
) -> list[TaskEntry]:
    entries = list(classify_lines(raw_lines, policy))
    unique = dedupe_entries(entries)
    logger.debug("Kept %d of %d parsed entries after dedupe", len(unique), len(entries))
    return unique


def spreadsheet_candidates(
    rows: Iterable[Sequence[object]],
    *,
    header_rows: int = SPREADSHEET_HEADER_ROWS,
) -> Iterator[str]:
    """Yield every string cell past column 0, then the whole row joined."""

    for row_index, row in enumerate(rows):
        if row_index < header_rows or not row:
            continue
        for cell_index, cell in enumerate(row):
            if cell_index >= 1 and isinstance(cell, str):
                yield cell
        yield " ".join(sources.cell_text(cell) for cell in row)


def extract_rows(
    rows: Iterable[Sequence[object]],
    *,
    header_rows: int = SPREADSHEET_HEADER_ROWS,
    policy: Sequence[NoiseRule] = DEFAULT_POLICY,
) -> list[TaskEntry]:
    return extract(spreadsheet_candidates(rows, header_rows=header_rows), policy=policy)


def extract_file(
    path: str | Path,
    *,
    min_pdf_chars: int | None = None,
    pdf_backends: Iterable[str] | None = None,
) -> list[TaskEntry]:
    source = Path(path)
    sources.ensure_supported(source)
    if sources.is_spreadsheet(source):
        entries = extract_rows(sources.produce_rows(source))
    else:
        lines = sources.produce_lines(
            source,
            min_pdf_chars=min_pdf_chars,
            pdf_backends=pdf_backends,
        )
        entries = extract(lines)
    logger.info("Extracted %d tasks from %s", len(entries), source.name)
    return entries
