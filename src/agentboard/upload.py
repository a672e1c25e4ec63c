"""Upload pipeline: exported files in, persisted date groups out.

    files -> classify header -> chat logs are upserted directly
                             -> reports are parsed, dated, grouped by date
                                -> merged per date -> one batch per date

Each date group is written in its own transaction. A failed group is
counted and logged; groups already written stay written.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import date
from pathlib import Path

from agentboard.db import get_ingested_file, log_ingestion, persist_records, upsert_chat_logs
from agentboard.merge import NameNormalizer, group_by_date, merge_sources
from agentboard.models import Diagnostics, FileKind, ParsedFile, UploadSummary
from agentboard.parser import (
    classify,
    classify_columns,
    parse_chat_log,
    parse_report,
    read_header,
    read_text,
)

logger = logging.getLogger(__name__)


def process_uploads(
    db_path: Path,
    uploads: list[tuple[str, str]],
    normalize: NameNormalizer | None = None,
    diagnostics: Diagnostics | None = None,
    changed: set[str] | None = None,
) -> UploadSummary:
    """Classify, merge and persist a set of (file name, text content) uploads.

    When `changed` is given, only chat logs named in it are written, and
    only date groups containing at least one changed report are rewritten.
    Unchanged reports are still parsed so a changed rating file is merged
    with its unchanged performance partner instead of on its own.
    """
    summary = UploadSummary(total_files=len(uploads))
    reports: list[tuple[ParsedFile, FileKind]] = []
    dates_to_write: set[date] = set()
    report_dates: dict[str, date] = {}

    for name, content in uploads:
        is_changed = changed is None or name in changed

        if classify_columns(read_header(content)) is FileKind.CHAT_LOG:
            if not is_changed:
                continue
            entries = parse_chat_log(content, diagnostics)
            try:
                summary.chat_log_rows += upsert_chat_logs(db_path, entries)
            except sqlite3.Error:
                logger.exception("Failed to store chat log %s", name)
                summary.skipped_files.append(name)
                continue
            summary.rows_by_file[name] = len(entries)
            continue

        parsed = parse_report(content)
        if parsed.extracted_date is None:
            logger.warning("No report date found in %s, skipping", name)
            if diagnostics is not None:
                diagnostics.add(f"skipped {name}: no report date")
            summary.skipped_files.append(name)
            continue

        kind = classify(parsed)
        if kind is FileKind.UNKNOWN:
            logger.warning("Unrecognized report columns in %s, skipping", name)
            if diagnostics is not None:
                diagnostics.add(f"skipped {name}: unrecognized columns")
            summary.skipped_files.append(name)
            continue

        reports.append((parsed, kind))
        if is_changed:
            dates_to_write.add(parsed.extracted_date)
            report_dates[name] = parsed.extracted_date
            summary.rows_by_file[name] = len(parsed.rows)

    for day, sources in sorted(group_by_date(reports).items()):
        if day not in dates_to_write:
            continue
        merged = merge_sources(
            *sources, normalize=normalize, record_date=day, diagnostics=diagnostics,
        )
        if not merged:
            logger.info("No agent rows for %s, nothing to store", day)
            continue
        try:
            batch_id = persist_records(db_path, day, list(merged.values()))
        except sqlite3.Error:
            logger.exception("Failed to store records for %s", day)
            summary.failed_groups += 1
            for name, report_date in report_dates.items():
                if report_date == day:
                    summary.rows_by_file.pop(name, None)
            continue
        logger.info("Stored %d agents for %s as batch %s", len(merged), day, batch_id)
        summary.succeeded_groups += 1
        summary.batch_ids.append(batch_id)

    return summary


def ingest_files(
    db_path: Path,
    paths: list[Path],
    full: bool = False,
    normalize: NameNormalizer | None = None,
    diagnostics: Diagnostics | None = None,
) -> UploadSummary:
    """Ingest export files from disk, skipping unchanged files unless full=True."""
    uploads: list[tuple[str, str]] = []
    changed: set[str] = set()
    stats: dict[str, tuple[int, float]] = {}

    for file_path in paths:
        file_key = str(file_path)
        file_stat = file_path.stat()
        stats[file_key] = (file_stat.st_size, file_stat.st_mtime)

        existing = None if full else get_ingested_file(db_path, file_key)
        if existing is None or existing["file_mtime"] != file_stat.st_mtime:
            changed.add(file_key)

        uploads.append((file_key, read_text(file_path)))

    summary = process_uploads(
        db_path, uploads, normalize=normalize, diagnostics=diagnostics, changed=changed,
    )
    summary.unchanged_files = len(paths) - len(changed)

    for file_key, count in summary.rows_by_file.items():
        size, mtime = stats[file_key]
        log_ingestion(db_path, file_key, size, mtime, count)

    return summary
