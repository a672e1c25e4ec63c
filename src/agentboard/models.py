"""Shared data models: the contract between parser, merger, database, and consumers.

Parser produces ParsedFile objects. Merger turns their rows into AgentRecords.
Database persists AgentRecords per (agent, date) and hands them back to the
aggregator on read.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
import datetime as dt

from agentboard.timecodec import format_duration

RawRow = dict[str, str]


class FileKind(enum.Enum):
    """What an exported CSV file contains, decided from its header."""

    PERFORMANCE = "performance"
    RATING = "rating"
    CHAT_LOG = "chat_log"
    UNKNOWN = "unknown"


class SourceRole(enum.Enum):
    PERFORMANCE = "performance"
    RATING = "rating"
    COMBINED = "combined"


@dataclass
class ParsedFile:
    """One exported report file after the metadata preamble is stripped."""

    rows: list[RawRow]
    extracted_date: dt.date | None
    columns: list[str] = field(default_factory=list)


@dataclass
class RowSource:
    """A row-set tagged with the fields it is allowed to populate.

    A single export carrying both column sets is merged as COMBINED,
    filling performance and rating fields in one pass.
    """

    role: SourceRole
    rows: list[RawRow]

    @classmethod
    def performance(cls, rows: list[RawRow]) -> RowSource:
        return cls(SourceRole.PERFORMANCE, rows)

    @classmethod
    def rating(cls, rows: list[RawRow]) -> RowSource:
        return cls(SourceRole.RATING, rows)

    @classmethod
    def combined(cls, rows: list[RawRow]) -> RowSource:
        return cls(SourceRole.COMBINED, rows)

    @property
    def has_performance(self) -> bool:
        return self.role in (SourceRole.PERFORMANCE, SourceRole.COMBINED)

    @property
    def has_rating(self) -> bool:
        return self.role in (SourceRole.RATING, SourceRole.COMBINED)


@dataclass
class AgentRecord:
    """Per-agent, per-day metrics. The unit of merge, storage, and aggregation."""

    agent: str
    chats: int = 0
    avg_chat_seconds: int = 0
    total_chat_seconds: int = 0
    last_message_sent_count: int = 0
    avg_score: float = 0.0
    rating_times: int = 0
    score_1: int = 0
    score_2: int = 0
    score_3: int = 0
    score_4: int = 0
    score_5: int = 0
    date: dt.date | None = None
    # Set once the record has been persisted
    id: int | None = None
    batch_id: str | None = None

    @property
    def avg_chat_time(self) -> str:
        return format_duration(self.avg_chat_seconds)

    @property
    def total_chat_time(self) -> str:
        return format_duration(self.total_chat_seconds)

    @property
    def score_sum(self) -> int:
        return self.score_1 + self.score_2 + self.score_3 + self.score_4 + self.score_5

    def has_score_mismatch(self) -> bool:
        """True when the star counts don't add up to rating_times."""
        return self.score_sum != self.rating_times

    def to_dict(self) -> dict:
        """Plain dict for JSON output, durations in both seconds and display text."""
        return {
            "id": self.id,
            "batch_id": self.batch_id,
            "agent": self.agent,
            "date": self.date.isoformat() if self.date else None,
            "chats": self.chats,
            "avg_chat_seconds": self.avg_chat_seconds,
            "avg_chat_time": self.avg_chat_time,
            "total_chat_seconds": self.total_chat_seconds,
            "total_chat_time": self.total_chat_time,
            "last_message_sent_count": self.last_message_sent_count,
            "avg_score": round(self.avg_score, 2),
            "rating_times": self.rating_times,
            "score_1": self.score_1,
            "score_2": self.score_2,
            "score_3": self.score_3,
            "score_4": self.score_4,
            "score_5": self.score_5,
        }


@dataclass
class ChatLogEntry:
    """A single conversation from a chat transcript export."""

    chat_id: str
    agent_name: str | None
    visitor_name: str | None
    department: str | None
    start_time: dt.datetime | None
    end_time: dt.datetime | None
    duration_seconds: int
    wait_time_seconds: int
    rating: int | None
    transcript: str | None
    tags: list[str] = field(default_factory=list)


@dataclass
class Diagnostics:
    """Non-fatal data-quality findings collected in strict mode."""

    messages: list[str] = field(default_factory=list)

    def add(self, message: str) -> None:
        self.messages.append(message)

    def __len__(self) -> int:
        return len(self.messages)


@dataclass
class UploadSummary:
    """Outcome of one upload: counts only, no per-row detail."""

    total_files: int = 0
    succeeded_groups: int = 0
    failed_groups: int = 0
    chat_log_rows: int = 0
    skipped_files: list[str] = field(default_factory=list)
    unchanged_files: int = 0
    batch_ids: list[str] = field(default_factory=list)
    # Files that were written, with their row counts
    rows_by_file: dict[str, int] = field(default_factory=dict)

    @property
    def any_loaded(self) -> bool:
        return self.succeeded_groups > 0 or self.chat_log_rows > 0
