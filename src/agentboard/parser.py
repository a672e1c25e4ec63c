"""CSV parser: reads exported report and chat-log files into rows and records.

Report exports carry a two-line metadata preamble before the real header:

    Agent Report
    Time Range:11/04/2025~11/04/2025
    Agent,Chats,Avg. Chat Time,...

The report date comes from the second line. Chat-log exports have no
preamble and start directly with their header.
"""

from __future__ import annotations

import io
import logging
import re
from datetime import date, datetime
from pathlib import Path

import pandas as pd

from agentboard.models import ChatLogEntry, Diagnostics, FileKind, ParsedFile, RawRow
from agentboard.timecodec import parse_duration

logger = logging.getLogger(__name__)

AGENT_COLUMN = "Agent"

# Columns that identify each export kind
CHAT_LOG_COLUMNS = ("Start Time", "Waiting Time", "Content")
PERFORMANCE_COLUMN = "Chats"
RATING_COLUMN = "Avg. Score"

_TIME_RANGE_RE = re.compile(r"Time Range:(\d{2}/\d{2}/\d{4})")
_ANNOTATION_RE = re.compile(r"\s*\(.*?\)")
_INT_RE = re.compile(r"\s*([+-]?\d+)")
_FLOAT_RE = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+))")

_SUMMARY_MARKERS = ("Total", "Average")
_PREAMBLE_LINES = 2


# ---------------------------------------------------------------------------
# Row cleaning
# ---------------------------------------------------------------------------


def clean_field(value: object) -> str:
    """Strip parenthetical annotations like ' (Avg.)' and surrounding whitespace."""
    if value is None:
        return ""
    return _ANNOTATION_RE.sub("", str(value)).strip()


def is_summary_row(row: RawRow, name_column: str = AGENT_COLUMN) -> bool:
    """True for rows that must never be merged: blank agent, or a Total/Average line."""
    name = row.get(name_column)
    if not name or not str(name).strip():
        return True
    return any(marker in name for marker in _SUMMARY_MARKERS)


def to_int(value: object, diagnostics: Diagnostics | None = None) -> int:
    """Leading integer of a cleaned cell, 0 when there is none."""
    text = clean_field(value)
    match = _INT_RE.match(text)
    if match:
        return int(match.group(1))
    if text and diagnostics is not None:
        diagnostics.add(f"unparseable integer: {text!r}")
    return 0


def to_float(value: object, diagnostics: Diagnostics | None = None) -> float:
    """Leading decimal number of a cleaned cell, 0.0 when there is none."""
    text = clean_field(value)
    match = _FLOAT_RE.match(text)
    if match:
        return float(match.group(1))
    if text and diagnostics is not None:
        diagnostics.add(f"unparseable number: {text!r}")
    return 0.0


# ---------------------------------------------------------------------------
# Report files
# ---------------------------------------------------------------------------


def _extract_report_date(line: str) -> date | None:
    """MM/DD/YYYY from a 'Time Range:' line, or None."""
    match = _TIME_RANGE_RE.search(line)
    if not match:
        return None
    try:
        return datetime.strptime(match.group(1), "%m/%d/%Y").date()
    except ValueError:
        logger.warning("Invalid report date %r", match.group(1))
        return None


def _read_table(text: str) -> tuple[list[str], list[RawRow]]:
    """Parse header-plus-data CSV text into (columns, rows of strings)."""
    try:
        df = pd.read_csv(
            io.StringIO(text),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            on_bad_lines="skip",
            index_col=False,
        )
    except pd.errors.EmptyDataError:
        return [], []

    df = df.fillna("")
    columns = [str(c) for c in df.columns]
    rows = [
        {str(k): str(v) for k, v in record.items()}
        for record in df.to_dict(orient="records")
    ]
    return columns, rows


def parse_report(content: str) -> ParsedFile:
    """Parse one exported report file.

    The date is read from the second line; the first two lines are then
    dropped and the remainder is parsed as CSV with a header row. A file
    without a recognizable date still yields its rows, with
    extracted_date=None, so callers can decide to skip it.
    """
    lines = content.splitlines()
    extracted_date = None
    if len(lines) > 1:
        extracted_date = _extract_report_date(lines[1])

    body = "\n".join(lines[_PREAMBLE_LINES:])
    columns, rows = _read_table(body)
    return ParsedFile(rows=rows, extracted_date=extracted_date, columns=columns)


def read_header(content: str) -> list[str]:
    """Column names of the very first line, without skipping any preamble."""
    first_line = next(iter(content.splitlines()), "")
    columns, _ = _read_table(first_line)
    return columns


def read_text(file_path: Path) -> str:
    """Read an export as text; tolerates a UTF-8 byte order mark."""
    return Path(file_path).read_text(encoding="utf-8-sig")


def discover_csv_files(path: Path) -> list[Path]:
    """All *.csv files under a directory, sorted. A single file is returned as-is."""
    path = Path(path)
    if path.is_file():
        return [path]
    results = [p for p in path.rglob("*") if p.is_file() and p.suffix.lower() == ".csv"]
    results.sort()
    return results


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def classify_columns(columns: list[str]) -> FileKind:
    """Decide the export kind from its column names.

    Precedence is CHAT_LOG > PERFORMANCE > RATING > UNKNOWN; a file with
    both Chats and Avg. Score columns is PERFORMANCE.
    """
    present = set(columns)
    if all(c in present for c in CHAT_LOG_COLUMNS):
        return FileKind.CHAT_LOG
    if PERFORMANCE_COLUMN in present:
        return FileKind.PERFORMANCE
    if RATING_COLUMN in present:
        return FileKind.RATING
    return FileKind.UNKNOWN


def classify(parsed: ParsedFile) -> FileKind:
    """Classify a parsed file by its header, falling back to the first row's keys."""
    columns = parsed.columns
    if not columns and parsed.rows:
        columns = list(parsed.rows[0].keys())
    return classify_columns(columns)


# ---------------------------------------------------------------------------
# Chat logs
# ---------------------------------------------------------------------------


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    ts = pd.to_datetime(value, errors="coerce")
    if pd.isna(ts):
        return None
    return ts.to_pydatetime()


def _optional(value: str | None) -> str | None:
    return value if value else None


def parse_chat_log(
    content: str, diagnostics: Diagnostics | None = None,
) -> list[ChatLogEntry]:
    """Parse a chat transcript export. Rows without an ID are dropped."""
    _, rows = _read_table(content)

    entries: list[ChatLogEntry] = []
    for row in rows:
        chat_id = row.get("ID", "").strip()
        if not chat_id:
            continue
        # A zero rating means "not rated"
        rating = to_int(row.get("Rating"), diagnostics) or None
        category = row.get("Category", "")
        entries.append(ChatLogEntry(
            chat_id=chat_id,
            agent_name=_optional(row.get("Agent")),
            visitor_name=_optional(row.get("Name")),
            department=_optional(row.get("Department")),
            start_time=_parse_timestamp(row.get("Start Time")),
            end_time=_parse_timestamp(row.get("End Time")),
            duration_seconds=parse_duration(row.get("Duration"), diagnostics),
            wait_time_seconds=parse_duration(row.get("Waiting Time"), diagnostics),
            rating=rating,
            transcript=_optional(row.get("Content")),
            tags=[category] if category else [],
        ))
    return entries
