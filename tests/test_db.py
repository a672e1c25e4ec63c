"""Tests for the SQLite database layer."""

import sqlite3
from datetime import date, datetime

import pytest

from agentboard.db import (
    fetch_chat_logs,
    fetch_latest_batch,
    fetch_records,
    get_ingested_file,
    init_db,
    list_batches,
    log_ingestion,
    persist_records,
    upsert_chat_logs,
)
from agentboard.models import AgentRecord, ChatLogEntry


def _make_record(agent="Ayse", chats=10, avg_score=4.5, rating_times=4):
    """Helper to build an AgentRecord with sensible defaults."""
    return AgentRecord(
        agent=agent,
        chats=chats,
        avg_chat_seconds=300,
        total_chat_seconds=chats * 300,
        last_message_sent_count=chats - 1,
        avg_score=avg_score,
        rating_times=rating_times,
        score_5=2,
        score_4=2,
    )


def _make_chat(chat_id="c-1", rating=5, start_time=datetime(2025, 11, 4, 9, 0)):
    return ChatLogEntry(
        chat_id=chat_id,
        agent_name="Ayse",
        visitor_name="Visitor",
        department="Sales",
        start_time=start_time,
        end_time=None,
        duration_seconds=120,
        wait_time_seconds=5,
        rating=rating,
        transcript="hello",
        tags=["Billing"],
    )


def test_init_db_creates_tables(tmp_db):
    """init_db creates all expected tables."""
    init_db(tmp_db)
    con = sqlite3.connect(tmp_db)
    tables = {
        row[0]
        for row in con.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        ).fetchall()
    }
    con.close()

    assert {"reports", "chat_logs", "ingest_log"}.issubset(tables)


def test_init_db_idempotent(tmp_db):
    init_db(tmp_db)
    init_db(tmp_db)


def test_persist_and_fetch_round_trip(tmp_db):
    init_db(tmp_db)
    batch_id = persist_records(tmp_db, date(2025, 11, 4), [_make_record()])

    records = fetch_records(tmp_db, batch_id=batch_id)
    assert len(records) == 1
    r = records[0]
    assert r.agent == "Ayse"
    assert r.date == date(2025, 11, 4)
    assert r.batch_id == batch_id
    assert r.id is not None
    assert r.chats == 10
    assert r.avg_chat_seconds == 300
    assert r.total_chat_seconds == 3000
    assert r.last_message_sent_count == 9
    assert r.avg_score == 4.5
    assert (r.score_5, r.score_4, r.score_1) == (2, 2, 0)


def test_persist_is_append_only(tmp_db):
    init_db(tmp_db)
    first = persist_records(tmp_db, date(2025, 11, 4), [_make_record(chats=1)])
    second = persist_records(tmp_db, date(2025, 11, 4), [_make_record(chats=2)])

    assert first != second
    records = fetch_records(tmp_db)
    assert [r.chats for r in records] == [1, 2]
    assert records[0].id < records[1].id


def test_persist_failure_rolls_back_group(tmp_db):
    init_db(tmp_db)
    bad = _make_record(agent=None)
    with pytest.raises(sqlite3.IntegrityError):
        persist_records(tmp_db, date(2025, 11, 4), [_make_record(), bad])
    assert fetch_records(tmp_db) == []


def test_fetch_by_date_range(tmp_db):
    init_db(tmp_db)
    for day in (1, 2, 3, 4):
        persist_records(tmp_db, date(2025, 11, day), [_make_record(chats=day)])

    records = fetch_records(tmp_db, start=date(2025, 11, 2), end=date(2025, 11, 3))
    assert [r.chats for r in records] == [2, 3]

    open_ended = fetch_records(tmp_db, start=date(2025, 11, 3))
    assert [r.chats for r in open_ended] == [3, 4]


def test_fetch_latest_batch(tmp_db):
    init_db(tmp_db)
    assert fetch_latest_batch(tmp_db) is None

    first = persist_records(tmp_db, date(2025, 11, 5), [_make_record()])
    assert fetch_latest_batch(tmp_db) == first

    # A backfill of an older day is still the most recent write
    backfill = persist_records(tmp_db, date(2025, 11, 1), [_make_record()])
    assert fetch_latest_batch(tmp_db) == backfill

    rewrite = persist_records(tmp_db, date(2025, 11, 5), [_make_record()])
    assert fetch_latest_batch(tmp_db) == rewrite


def test_list_batches(tmp_db):
    init_db(tmp_db)
    older = persist_records(tmp_db, date(2025, 11, 1), [_make_record("A", chats=3)])
    newer = persist_records(
        tmp_db, date(2025, 11, 2), [_make_record("A", chats=3), _make_record("B", chats=4)],
    )

    history = list_batches(tmp_db)
    assert [b["batch_id"] for b in history] == [newer, older]
    assert history[0]["report_date"] == "2025-11-02"
    assert history[0]["agent_count"] == 2
    assert history[0]["total_chats"] == 7


def test_list_batches_in_write_order(tmp_db):
    init_db(tmp_db)
    recent_day = persist_records(tmp_db, date(2025, 11, 5), [_make_record()])
    backfill = persist_records(tmp_db, date(2025, 11, 1), [_make_record()])

    history = list_batches(tmp_db)
    assert [b["batch_id"] for b in history] == [backfill, recent_day]


def test_upsert_chat_logs_replaces_on_chat_id(tmp_db):
    init_db(tmp_db)
    assert upsert_chat_logs(tmp_db, [_make_chat("c-1", 3), _make_chat("c-2")]) == 2
    upsert_chat_logs(tmp_db, [_make_chat("c-1", 5)])

    assert len(fetch_chat_logs(tmp_db)) == 2
    con = sqlite3.connect(tmp_db)
    rating, tags = con.execute(
        "SELECT rating, tags FROM chat_logs WHERE chat_id = 'c-1'"
    ).fetchone()
    con.close()
    assert rating == 5
    assert tags == "Billing"


def test_upsert_chat_logs_chunks(tmp_db):
    init_db(tmp_db)
    entries = [_make_chat(f"c-{i}") for i in range(120)]
    assert upsert_chat_logs(tmp_db, entries) == 120
    assert len(fetch_chat_logs(tmp_db)) == 120


def test_fetch_chat_logs_round_trip(tmp_db):
    init_db(tmp_db)
    upsert_chat_logs(tmp_db, [_make_chat("c-1", rating=4)])

    (entry,) = fetch_chat_logs(tmp_db)
    assert entry.chat_id == "c-1"
    assert entry.start_time == datetime(2025, 11, 4, 9, 0)
    assert entry.end_time is None
    assert entry.wait_time_seconds == 5
    assert entry.rating == 4
    assert entry.tags == ["Billing"]


def test_fetch_chat_logs_by_date_range(tmp_db):
    init_db(tmp_db)
    upsert_chat_logs(tmp_db, [
        _make_chat("early", start_time=datetime(2025, 11, 3, 23, 59)),
        _make_chat("morning", start_time=datetime(2025, 11, 4, 0, 0)),
        _make_chat("night", start_time=datetime(2025, 11, 4, 23, 59, 59)),
        _make_chat("late", start_time=datetime(2025, 11, 5, 0, 0)),
        _make_chat("undated", start_time=None),
    ])

    day = fetch_chat_logs(tmp_db, start=date(2025, 11, 4), end=date(2025, 11, 4))
    assert [e.chat_id for e in day] == ["morning", "night"]
    assert len(fetch_chat_logs(tmp_db)) == 5


def test_ingest_log(tmp_db):
    init_db(tmp_db)
    assert get_ingested_file(tmp_db, "/exports/a.csv") is None

    log_ingestion(tmp_db, "/exports/a.csv", 100, 1700000000.0, 3)
    log_ingestion(tmp_db, "/exports/a.csv", 120, 1700000500.0, 4)

    row = get_ingested_file(tmp_db, "/exports/a.csv")
    assert row == {
        "source_file": "/exports/a.csv",
        "file_size": 120,
        "file_mtime": 1700000500.0,
    }
