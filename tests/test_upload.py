"""Tests for the upload pipeline: classify, group by date, merge, persist."""

import os
import sqlite3
import time
from datetime import date
from unittest.mock import patch

from conftest import CHAT_LOG_CSV, COMBINED_CSV, NO_DATE_CSV, PERFORMANCE_CSV, RATING_CSV

from agentboard import upload
from agentboard.db import fetch_chat_logs, fetch_records, get_ingested_file, init_db
from agentboard.merge import get_name_normalizer
from agentboard.models import Diagnostics
from agentboard.parser import discover_csv_files
from agentboard.upload import ingest_files, process_uploads

UNKNOWN_CSV = """Some Report
Time Range:11/04/2025~11/04/2025
Agent,Department
Ayse Yilmaz,Sales
"""


class TestProcessUploads:
    def test_performance_and_rating_same_day(self, tmp_db):
        init_db(tmp_db)
        summary = process_uploads(tmp_db, [
            ("perf.csv", PERFORMANCE_CSV),
            ("rating.csv", RATING_CSV),
        ])

        assert summary.total_files == 2
        assert summary.succeeded_groups == 1
        assert summary.failed_groups == 0
        assert len(summary.batch_ids) == 1

        records = {r.agent: r for r in fetch_records(tmp_db)}
        assert set(records) == {"Ayse Yilmaz", "Mehmet Kaya"}
        assert records["Ayse Yilmaz"].chats == 42
        assert records["Ayse Yilmaz"].avg_score == 4.5
        assert records["Ayse Yilmaz"].date == date(2025, 11, 4)

    def test_one_batch_per_date(self, tmp_db):
        init_db(tmp_db)
        summary = process_uploads(tmp_db, [
            ("perf.csv", PERFORMANCE_CSV),
            ("rating.csv", RATING_CSV),
            ("combined.csv", COMBINED_CSV),
        ])
        assert summary.succeeded_groups == 2
        dates = {r.date for r in fetch_records(tmp_db)}
        assert dates == {date(2025, 11, 4), date(2025, 11, 5)}

    def test_combined_file_self_merges(self, tmp_db):
        init_db(tmp_db)
        process_uploads(tmp_db, [("combined.csv", COMBINED_CSV)])
        zeynep = {r.agent: r for r in fetch_records(tmp_db)}["Zeynep Demir"]
        assert zeynep.chats == 8
        assert zeynep.avg_score == 4.0
        assert zeynep.rating_times == 2

    def test_undated_file_skipped(self, tmp_db):
        init_db(tmp_db)
        summary = process_uploads(tmp_db, [
            ("nodate.csv", NO_DATE_CSV),
            ("perf.csv", PERFORMANCE_CSV),
        ])
        assert summary.skipped_files == ["nodate.csv"]
        assert summary.succeeded_groups == 1

    def test_unknown_file_skipped(self, tmp_db):
        init_db(tmp_db)
        summary = process_uploads(tmp_db, [("other.csv", UNKNOWN_CSV)])
        assert summary.skipped_files == ["other.csv"]
        assert not summary.any_loaded
        assert fetch_records(tmp_db) == []

    def test_chat_logs_upserted(self, tmp_db):
        init_db(tmp_db)
        summary = process_uploads(tmp_db, [("chats.csv", CHAT_LOG_CSV)])
        assert summary.chat_log_rows == 2
        assert summary.succeeded_groups == 0
        assert summary.any_loaded
        assert len(fetch_chat_logs(tmp_db)) == 2

        process_uploads(tmp_db, [("chats.csv", CHAT_LOG_CSV)])
        assert len(fetch_chat_logs(tmp_db)) == 2

    def test_reupload_appends_new_batch(self, tmp_db):
        init_db(tmp_db)
        process_uploads(tmp_db, [("perf.csv", PERFORMANCE_CSV)])
        process_uploads(tmp_db, [("perf.csv", PERFORMANCE_CSV)])
        records = fetch_records(tmp_db)
        assert len(records) == 4
        assert len({r.batch_id for r in records}) == 2

    def test_partial_failure_keeps_written_groups(self, tmp_db):
        init_db(tmp_db)
        real_persist = upload.persist_records

        def flaky(db_path, day, records):
            if day == date(2025, 11, 5):
                raise sqlite3.OperationalError("disk I/O error")
            return real_persist(db_path, day, records)

        with patch("agentboard.upload.persist_records", side_effect=flaky):
            summary = process_uploads(tmp_db, [
                ("perf.csv", PERFORMANCE_CSV),
                ("combined.csv", COMBINED_CSV),
            ])

        assert summary.succeeded_groups == 1
        assert summary.failed_groups == 1
        assert "combined.csv" not in summary.rows_by_file
        assert {r.date for r in fetch_records(tmp_db)} == {date(2025, 11, 4)}

    def test_name_policy_applied(self, tmp_db):
        init_db(tmp_db)
        process_uploads(
            tmp_db, [("perf.csv", PERFORMANCE_CSV)], normalize=get_name_normalizer("casefold"),
        )
        assert {r.agent for r in fetch_records(tmp_db)} == {"ayse yilmaz", "mehmet kaya"}

    def test_diagnostics_list_skipped_files(self, tmp_db):
        init_db(tmp_db)
        diagnostics = Diagnostics()
        process_uploads(tmp_db, [("nodate.csv", NO_DATE_CSV)], diagnostics=diagnostics)
        assert any("nodate.csv" in m for m in diagnostics.messages)

    def test_changed_limits_written_dates(self, tmp_db):
        """An unchanged performance file still pairs with a changed rating file."""
        init_db(tmp_db)
        summary = process_uploads(
            tmp_db,
            [("perf.csv", PERFORMANCE_CSV), ("rating.csv", RATING_CSV), ("combined.csv", COMBINED_CSV)],
            changed={"rating.csv"},
        )
        assert summary.succeeded_groups == 1
        records = fetch_records(tmp_db)
        assert {r.date for r in records} == {date(2025, 11, 4)}
        ayse = {r.agent: r for r in records}["Ayse Yilmaz"]
        assert ayse.chats == 42
        assert ayse.avg_score == 4.5


class TestIngestFiles:
    def test_ingest_directory(self, tmp_db, export_dir):
        init_db(tmp_db)
        summary = ingest_files(tmp_db, discover_csv_files(export_dir))

        assert summary.total_files == 3
        assert summary.succeeded_groups == 1
        assert summary.chat_log_rows == 2
        assert get_ingested_file(tmp_db, str(export_dir / "rating-1104.csv")) is not None

    def test_unchanged_files_skipped(self, tmp_db, export_dir):
        init_db(tmp_db)
        files = discover_csv_files(export_dir)
        ingest_files(tmp_db, files)

        summary = ingest_files(tmp_db, files)
        assert summary.unchanged_files == 3
        assert summary.succeeded_groups == 0
        assert len(fetch_records(tmp_db)) == 2

    def test_full_reingests(self, tmp_db, export_dir):
        init_db(tmp_db)
        files = discover_csv_files(export_dir)
        ingest_files(tmp_db, files)

        summary = ingest_files(tmp_db, files, full=True)
        assert summary.unchanged_files == 0
        assert summary.succeeded_groups == 1
        assert len(fetch_records(tmp_db)) == 4

    def test_modified_file_rewrites_its_day(self, tmp_db, export_dir):
        init_db(tmp_db)
        files = discover_csv_files(export_dir)
        ingest_files(tmp_db, files)

        rating = export_dir / "rating-1104.csv"
        rating.write_text(RATING_CSV.replace("4.5,10,7", "4.0,10,7"))
        stat = rating.stat()
        # Make sure the mtime moves even on coarse-grained filesystems
        os.utime(rating, (stat.st_atime, time.time() + 10))

        summary = ingest_files(tmp_db, files)
        assert summary.succeeded_groups == 1
        latest = [r for r in fetch_records(tmp_db) if r.agent == "Ayse Yilmaz"][-1]
        assert latest.avg_score == 4.0
        assert latest.chats == 42
