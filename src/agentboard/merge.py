"""Merge performance and rating rows into one AgentRecord per agent."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date

from agentboard.errors import ConfigError
from agentboard.models import (
    AgentRecord,
    Diagnostics,
    FileKind,
    ParsedFile,
    RawRow,
    RowSource,
)
from agentboard.parser import AGENT_COLUMN, clean_field, is_summary_row, to_float, to_int
from agentboard.timecodec import parse_duration

logger = logging.getLogger(__name__)

NameNormalizer = Callable[[str], str]

# Source column -> AgentRecord field
_SCORE_COLUMNS = {
    "Score 1": "score_1",
    "Score 2": "score_2",
    "Score 3": "score_3",
    "Score 4": "score_4",
    "Score 5": "score_5",
}


def _apply_performance(
    record: AgentRecord, row: RawRow, diagnostics: Diagnostics | None,
) -> None:
    # Empty cells leave whatever an earlier row already set
    if row.get("Chats"):
        record.chats = to_int(row["Chats"], diagnostics)
    if row.get("Avg. Chat Time"):
        record.avg_chat_seconds = parse_duration(clean_field(row["Avg. Chat Time"]), diagnostics)
    if row.get("Total Chat Time"):
        record.total_chat_seconds = parse_duration(
            clean_field(row["Total Chat Time"]), diagnostics,
        )
    if row.get("Last Message Sent by Agent"):
        record.last_message_sent_count = to_int(row["Last Message Sent by Agent"], diagnostics)


def _apply_rating(
    record: AgentRecord, row: RawRow, diagnostics: Diagnostics | None,
) -> None:
    if row.get("Avg. Score"):
        record.avg_score = to_float(row["Avg. Score"], diagnostics)
    if row.get("Rating Times"):
        record.rating_times = to_int(row["Rating Times"], diagnostics)
    for column, attr in _SCORE_COLUMNS.items():
        if row.get(column):
            setattr(record, attr, to_int(row[column], diagnostics))


def merge_sources(
    *sources: RowSource,
    normalize: NameNormalizer | None = None,
    record_date: date | None = None,
    diagnostics: Diagnostics | None = None,
) -> dict[str, AgentRecord]:
    """Fold row sources into per-agent records, ordered by descending chats.

    Each source only writes the fields its role allows; a COMBINED source
    writes both sides in a single pass. Agents present on one side only keep
    zero defaults for the other.
    """
    merged: dict[str, AgentRecord] = {}

    for source in sources:
        for row in source.rows:
            if is_summary_row(row):
                continue
            name = row[AGENT_COLUMN]
            if normalize is not None:
                name = normalize(name)

            record = merged.get(name)
            if record is None:
                record = AgentRecord(agent=name, date=record_date)
                merged[name] = record

            if source.has_performance:
                _apply_performance(record, row, diagnostics)
            if source.has_rating:
                _apply_rating(record, row, diagnostics)

    if diagnostics is not None:
        for record in merged.values():
            if record.has_score_mismatch():
                logger.warning(
                    "Score counts for %s sum to %d but rating times is %d",
                    record.agent, record.score_sum, record.rating_times,
                )
                diagnostics.add(
                    f"score mismatch for {record.agent}: "
                    f"{record.score_sum} stars vs {record.rating_times} ratings"
                )

    ordered = sorted(merged.values(), key=lambda r: r.chats, reverse=True)
    return {r.agent: r for r in ordered}


def merge_rows(
    performance_rows: list[RawRow],
    rating_rows: list[RawRow],
    normalize: NameNormalizer | None = None,
    record_date: date | None = None,
    diagnostics: Diagnostics | None = None,
) -> dict[str, AgentRecord]:
    """Two-pass merge: performance fields from one row-set, rating fields from the other."""
    return merge_sources(
        RowSource.performance(performance_rows),
        RowSource.rating(rating_rows),
        normalize=normalize,
        record_date=record_date,
        diagnostics=diagnostics,
    )


def group_by_date(
    parsed_files: list[tuple[ParsedFile, FileKind]],
) -> dict[date, list[RowSource]]:
    """Pair up each date's performance and rating files into row sources.

    Undated files and anything that isn't a performance or rating report
    are left out. When a date has several files of one kind, the last one
    wins. A date with only one kind of file is merged against itself.
    """
    groups: dict[date, dict[FileKind, ParsedFile]] = {}
    for parsed, kind in parsed_files:
        if parsed.extracted_date is None:
            continue
        if kind not in (FileKind.PERFORMANCE, FileKind.RATING):
            continue
        group = groups.setdefault(parsed.extracted_date, {})
        if kind in group:
            logger.warning(
                "Replacing earlier %s file for %s", kind.value, parsed.extracted_date,
            )
        group[kind] = parsed

    result: dict[date, list[RowSource]] = {}
    for day, group in groups.items():
        performance_rows = group[FileKind.PERFORMANCE].rows if FileKind.PERFORMANCE in group else []
        rating_rows = group[FileKind.RATING].rows if FileKind.RATING in group else []
        if performance_rows and rating_rows:
            result[day] = [
                RowSource.performance(performance_rows),
                RowSource.rating(rating_rows),
            ]
        elif performance_rows or rating_rows:
            result[day] = [RowSource.combined(performance_rows or rating_rows)]
    return result


def get_name_normalizer(policy: str) -> NameNormalizer | None:
    """Agent-name normalization for a configured policy.

    "exact" keeps names as exported, so "Ayse" and "ayse " are different
    agents. "casefold" trims and case-folds them into one.
    """
    if policy == "exact":
        return None
    if policy == "casefold":
        return lambda name: name.strip().casefold()
    raise ConfigError(f"Unknown name policy: {policy!r} (expected 'exact' or 'casefold')")
