"""Route handlers: maps URLs to query functions and JSON responses."""

from __future__ import annotations

from datetime import date

from flask import Blueprint, current_app, jsonify, request

from agentboard.merge import get_name_normalizer
from agentboard.models import Diagnostics
from agentboard.upload import process_uploads
from agentboard.web import queries

bp = Blueprint("dashboard", __name__)


def _date_arg(name: str) -> date | None:
    """Parse an optional YYYY-MM-DD query argument; ValueError on bad input."""
    value = request.args.get(name)
    if not value:
        return None
    return date.fromisoformat(value)


def _selection():
    start = _date_arg("start")
    end = _date_arg("end")
    return {
        "start": start,
        "end": end,
        "batch_id": request.args.get("batch"),
        "hidden": current_app.config["HIDDEN_AGENTS"],
    }


@bp.errorhandler(ValueError)
def bad_request(error):
    return jsonify({"error": str(error)}), 400


@bp.route("/api/agents")
def agents():
    """Aggregated per-agent table for ?start=&end=, ?batch=, or the latest batch."""
    db_path = current_app.config["DB_PATH"]
    return jsonify(queries.get_agent_table(db_path, **_selection()))


@bp.route("/api/summary")
def summary():
    """Team totals for the same selection as /api/agents."""
    db_path = current_app.config["DB_PATH"]
    return jsonify(queries.get_team_summary(db_path, **_selection()))


@bp.route("/api/batches")
def batches():
    """Upload history, most recently written first."""
    db_path = current_app.config["DB_PATH"]
    return jsonify(queries.get_batch_history(db_path))


@bp.route("/api/trend")
def trend():
    """Per-date team totals for ?start=&end= (all dates when omitted)."""
    db_path = current_app.config["DB_PATH"]
    return jsonify(queries.get_daily_trend(
        db_path,
        start=_date_arg("start"),
        end=_date_arg("end"),
        hidden=current_app.config["HIDDEN_AGENTS"],
    ))


@bp.route("/api/agents/<path:name>/history")
def agent_history(name):
    """One agent's daily records for ?start=&end=."""
    db_path = current_app.config["DB_PATH"]
    return jsonify(queries.get_agent_history(
        db_path, name, start=_date_arg("start"), end=_date_arg("end"),
    ))


@bp.route("/api/chat-activity")
def chat_activity():
    """Hourly chat volume and waiting-time buckets from stored chat logs."""
    db_path = current_app.config["DB_PATH"]
    return jsonify(queries.get_chat_activity(
        db_path,
        start=_date_arg("start"),
        end=_date_arg("end"),
        hidden=current_app.config["HIDDEN_AGENTS"],
    ))


@bp.route("/api/upload", methods=["POST"])
def upload():
    """Accept one or more CSV exports as multipart 'files' and ingest them."""
    db_path = current_app.config["DB_PATH"]
    files = request.files.getlist("files")
    uploads = [
        (f.filename, f.read().decode("utf-8-sig", errors="replace"))
        for f in files
        if f.filename and f.filename.lower().endswith(".csv")
    ]
    if not uploads:
        return jsonify({"error": "No CSV files uploaded"}), 400

    diagnostics = Diagnostics() if current_app.config["STRICT"] else None
    result = process_uploads(
        db_path,
        uploads,
        normalize=get_name_normalizer(current_app.config["NAME_POLICY"]),
        diagnostics=diagnostics,
    )
    body = {
        "total": len(files),
        "succeeded": result.succeeded_groups,
        "failed": result.failed_groups,
        "chat_logs": result.chat_log_rows,
        "skipped": len(result.skipped_files) + len(files) - len(uploads),
    }
    if diagnostics is not None:
        body["diagnostics"] = diagnostics.messages
    status = 200 if result.any_loaded else 422
    return jsonify(body), status
