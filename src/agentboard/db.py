"""SQLite database layer: stores merged agent records and chat logs.

Report rows are append-only: each upload of a date group becomes a new
batch, and readers deduplicate per (agent, date) by highest id.
"""

from __future__ import annotations

import sqlite3
import uuid
from datetime import date, datetime, timedelta
from pathlib import Path

from agentboard.models import AgentRecord, ChatLogEntry

CHAT_LOG_CHUNK_SIZE = 50

_SCHEMA = """
CREATE TABLE IF NOT EXISTS reports (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    batch_id TEXT NOT NULL,
    report_date TEXT NOT NULL,
    agent_name TEXT NOT NULL,
    chats_count INTEGER DEFAULT 0,
    avg_chat_seconds INTEGER DEFAULT 0,
    total_chat_seconds INTEGER DEFAULT 0,
    last_message_sent INTEGER DEFAULT 0,
    avg_score REAL DEFAULT 0,
    rating_times INTEGER DEFAULT 0,
    score_1 INTEGER DEFAULT 0,
    score_2 INTEGER DEFAULT 0,
    score_3 INTEGER DEFAULT 0,
    score_4 INTEGER DEFAULT 0,
    score_5 INTEGER DEFAULT 0,
    created_at TEXT DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_reports_date ON reports(report_date);
CREATE INDEX IF NOT EXISTS idx_reports_batch ON reports(batch_id);

CREATE TABLE IF NOT EXISTS chat_logs (
    chat_id TEXT PRIMARY KEY,
    agent_name TEXT,
    visitor_name TEXT,
    department TEXT,
    start_time TEXT,
    end_time TEXT,
    duration_seconds INTEGER DEFAULT 0,
    wait_time_seconds INTEGER DEFAULT 0,
    rating INTEGER,
    transcript TEXT,
    tags TEXT
);

CREATE TABLE IF NOT EXISTS ingest_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    source_file TEXT NOT NULL UNIQUE,
    file_size INTEGER,
    file_mtime REAL,
    record_count INTEGER,
    ingested_at TEXT DEFAULT (datetime('now'))
);
"""


def init_db(db_path: Path) -> None:
    """Create tables if they don't exist."""
    con = sqlite3.connect(db_path)
    try:
        con.executescript(_SCHEMA)
        con.commit()
    finally:
        con.close()


def get_connection(db_path: Path) -> sqlite3.Connection:
    """Get a connection with row_factory = sqlite3.Row."""
    con = sqlite3.connect(db_path)
    con.row_factory = sqlite3.Row
    return con


def _row_to_record(row: sqlite3.Row) -> AgentRecord:
    return AgentRecord(
        id=row["id"],
        batch_id=row["batch_id"],
        agent=row["agent_name"],
        date=date.fromisoformat(row["report_date"]),
        chats=row["chats_count"],
        avg_chat_seconds=row["avg_chat_seconds"],
        total_chat_seconds=row["total_chat_seconds"],
        last_message_sent_count=row["last_message_sent"],
        avg_score=row["avg_score"],
        rating_times=row["rating_times"],
        score_1=row["score_1"],
        score_2=row["score_2"],
        score_3=row["score_3"],
        score_4=row["score_4"],
        score_5=row["score_5"],
    )


def persist_records(
    db_path: Path, report_date: date, records: list[AgentRecord],
) -> str:
    """Insert one date group as a new batch in a single transaction.

    Returns the new batch_id. On any sqlite3.Error the whole group is
    rolled back and the error propagates.
    """
    batch_id = uuid.uuid4().hex
    con = get_connection(db_path)
    try:
        with con:
            con.executemany(
                """INSERT INTO reports (
                    batch_id, report_date, agent_name, chats_count,
                    avg_chat_seconds, total_chat_seconds, last_message_sent,
                    avg_score, rating_times,
                    score_1, score_2, score_3, score_4, score_5
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                [
                    (
                        batch_id,
                        report_date.isoformat(),
                        r.agent,
                        r.chats,
                        r.avg_chat_seconds,
                        r.total_chat_seconds,
                        r.last_message_sent_count,
                        r.avg_score,
                        r.rating_times,
                        r.score_1,
                        r.score_2,
                        r.score_3,
                        r.score_4,
                        r.score_5,
                    )
                    for r in records
                ],
            )
        return batch_id
    finally:
        con.close()


def fetch_records(
    db_path: Path,
    start: date | None = None,
    end: date | None = None,
    batch_id: str | None = None,
) -> list[AgentRecord]:
    """Records matching an inclusive date range and/or a batch id, in id order."""
    clauses = []
    params: list = []
    if start is not None:
        clauses.append("report_date >= ?")
        params.append(start.isoformat())
    if end is not None:
        clauses.append("report_date <= ?")
        params.append(end.isoformat())
    if batch_id is not None:
        clauses.append("batch_id = ?")
        params.append(batch_id)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

    con = get_connection(db_path)
    try:
        rows = con.execute(
            f"SELECT * FROM reports {where} ORDER BY id", params,
        ).fetchall()
        return [_row_to_record(r) for r in rows]
    finally:
        con.close()


def fetch_latest_batch(db_path: Path) -> str | None:
    """The most recently written batch, whatever report date it covers."""
    con = get_connection(db_path)
    try:
        row = con.execute(
            "SELECT batch_id FROM reports ORDER BY id DESC LIMIT 1"
        ).fetchone()
        return row["batch_id"] if row else None
    finally:
        con.close()


def list_batches(db_path: Path) -> list[dict]:
    """Upload history, most recently written batch first.

    Returns: [{batch_id, report_date, agent_count, total_chats}]
    """
    con = get_connection(db_path)
    try:
        rows = con.execute(
            """SELECT
                batch_id,
                report_date,
                COUNT(*) AS agent_count,
                COALESCE(SUM(chats_count), 0) AS total_chats,
                MAX(id) AS last_id
            FROM reports
            GROUP BY batch_id, report_date
            ORDER BY last_id DESC"""
        ).fetchall()
        return [
            {
                "batch_id": r["batch_id"],
                "report_date": r["report_date"],
                "agent_count": r["agent_count"],
                "total_chats": r["total_chats"],
            }
            for r in rows
        ]
    finally:
        con.close()


def upsert_chat_logs(db_path: Path, entries: list[ChatLogEntry]) -> int:
    """Insert or replace chat logs keyed on chat_id, in chunks of 50.

    Each chunk commits on its own; a failure leaves earlier chunks written.
    Returns count of entries written.
    """
    con = get_connection(db_path)
    try:
        for i in range(0, len(entries), CHAT_LOG_CHUNK_SIZE):
            chunk = entries[i:i + CHAT_LOG_CHUNK_SIZE]
            with con:
                con.executemany(
                    """INSERT OR REPLACE INTO chat_logs (
                        chat_id, agent_name, visitor_name, department,
                        start_time, end_time, duration_seconds,
                        wait_time_seconds, rating, transcript, tags
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    [
                        (
                            e.chat_id,
                            e.agent_name,
                            e.visitor_name,
                            e.department,
                            e.start_time.isoformat() if e.start_time else None,
                            e.end_time.isoformat() if e.end_time else None,
                            e.duration_seconds,
                            e.wait_time_seconds,
                            e.rating,
                            e.transcript,
                            ",".join(e.tags) if e.tags else None,
                        )
                        for e in chunk
                    ],
                )
        return len(entries)
    finally:
        con.close()


def _row_to_chat(row: sqlite3.Row) -> ChatLogEntry:
    return ChatLogEntry(
        chat_id=row["chat_id"],
        agent_name=row["agent_name"],
        visitor_name=row["visitor_name"],
        department=row["department"],
        start_time=datetime.fromisoformat(row["start_time"]) if row["start_time"] else None,
        end_time=datetime.fromisoformat(row["end_time"]) if row["end_time"] else None,
        duration_seconds=row["duration_seconds"],
        wait_time_seconds=row["wait_time_seconds"],
        rating=row["rating"],
        transcript=row["transcript"],
        tags=row["tags"].split(",") if row["tags"] else [],
    )


def fetch_chat_logs(
    db_path: Path,
    start: date | None = None,
    end: date | None = None,
) -> list[ChatLogEntry]:
    """Chat logs whose start time falls in an inclusive date range.

    With a range, logs without a start time are left out.
    """
    clauses = []
    params: list = []
    if start is not None:
        clauses.append("start_time >= ?")
        params.append(start.isoformat())
    if end is not None:
        # start_time is an ISO timestamp, so compare against the next day
        clauses.append("start_time < ?")
        params.append((end + timedelta(days=1)).isoformat())
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

    con = get_connection(db_path)
    try:
        rows = con.execute(
            f"SELECT * FROM chat_logs {where} ORDER BY start_time, chat_id", params,
        ).fetchall()
        return [_row_to_chat(r) for r in rows]
    finally:
        con.close()


def log_ingestion(
    db_path: Path,
    source_file: str,
    file_size: int,
    file_mtime: float,
    record_count: int,
) -> None:
    """Record a file in the ingest_log. INSERT OR REPLACE on source_file."""
    con = get_connection(db_path)
    try:
        con.execute(
            """INSERT OR REPLACE INTO ingest_log
                (source_file, file_size, file_mtime, record_count)
            VALUES (?, ?, ?, ?)""",
            (source_file, file_size, file_mtime, record_count),
        )
        con.commit()
    finally:
        con.close()


def get_ingested_file(db_path: Path, source_file: str) -> dict | None:
    """Check if a file has been ingested.

    Returns {source_file, file_size, file_mtime} or None.
    """
    con = get_connection(db_path)
    try:
        row = con.execute(
            "SELECT source_file, file_size, file_mtime FROM ingest_log WHERE source_file = ?",
            (source_file,),
        ).fetchone()
        if row is None:
            return None
        return dict(row)
    finally:
        con.close()
