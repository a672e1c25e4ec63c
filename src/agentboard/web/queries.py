"""Read-side query functions for the dashboard API.

Each function takes db_path as first argument, fetches persisted records,
and re-aggregates them on every call. Nothing is cached. Hidden agents are
filtered out before aggregation so they never leak into team totals.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path

from agentboard.aggregate import (
    aggregate_by_agent,
    daily_trend,
    dedupe_records,
    exclude_agents,
    exclude_chat_logs,
    hourly_activity,
    summarize_team,
    wait_time_distribution,
)
from agentboard.db import fetch_chat_logs, fetch_latest_batch, fetch_records, list_batches
from agentboard.models import AgentRecord


def _range_scope(start: date | None, end: date | None) -> dict:
    return {
        "mode": "range",
        "start": start.isoformat() if start else None,
        "end": end.isoformat() if end else None,
    }


def _select_records(
    db_path: Path,
    start: date | None,
    end: date | None,
    batch_id: str | None,
) -> tuple[list[AgentRecord], dict]:
    """Fetch and deduplicate the records a view asks for.

    A date range wins over a batch id; with neither, the latest batch is used.
    """
    if start is not None or end is not None:
        records = fetch_records(db_path, start=start, end=end)
        scope = _range_scope(start, end)
    else:
        if batch_id is None:
            batch_id = fetch_latest_batch(db_path)
        records = fetch_records(db_path, batch_id=batch_id) if batch_id else []
        scope = {"mode": "batch", "batch_id": batch_id}
    return dedupe_records(records), scope


def get_agent_table(
    db_path: Path,
    start: date | None = None,
    end: date | None = None,
    batch_id: str | None = None,
    hidden: list[str] | None = None,
) -> dict:
    """Per-agent aggregated rows for a range or a batch.

    Returns:
        {scope: {...}, agents: [record dicts, descending chats]}
    """
    records, scope = _select_records(db_path, start, end, batch_id)
    records = exclude_agents(records, hidden or [])
    aggregated = aggregate_by_agent(records)
    return {
        "scope": scope,
        "agents": [r.to_dict() for r in aggregated.values()],
    }


def get_team_summary(
    db_path: Path,
    start: date | None = None,
    end: date | None = None,
    batch_id: str | None = None,
    hidden: list[str] | None = None,
) -> dict:
    """Team-wide totals for the same selection as get_agent_table."""
    records, scope = _select_records(db_path, start, end, batch_id)
    records = exclude_agents(records, hidden or [])
    aggregated = list(aggregate_by_agent(records).values())
    summary = summarize_team(aggregated)
    summary["scope"] = scope
    return summary


def get_batch_history(db_path: Path) -> list[dict]:
    """Upload history for the batches page."""
    return list_batches(db_path)


def get_daily_trend(
    db_path: Path,
    start: date | None = None,
    end: date | None = None,
    hidden: list[str] | None = None,
) -> dict:
    """Per-date team totals over a range (all dates when open-ended).

    Returns:
        {scope: {...}, days: [{date, chats, rating_times, avg_score,
                               avg_chat_seconds, avg_chat_time}]}
    """
    records = dedupe_records(fetch_records(db_path, start=start, end=end))
    records = exclude_agents(records, hidden or [])
    return {"scope": _range_scope(start, end), "days": daily_trend(records)}


def get_agent_history(
    db_path: Path,
    agent: str,
    start: date | None = None,
    end: date | None = None,
) -> dict:
    """One agent's day-by-day records over a range, plus their weighted total.

    Returns:
        {agent, scope: {...}, days: [record dicts, oldest first], total: record dict | None}
    """
    records = dedupe_records(fetch_records(db_path, start=start, end=end))
    days = sorted((r for r in records if r.agent == agent), key=lambda r: r.date)
    total = aggregate_by_agent(days).get(agent)
    return {
        "agent": agent,
        "scope": _range_scope(start, end),
        "days": [r.to_dict() for r in days],
        "total": total.to_dict() if total else None,
    }


def get_chat_activity(
    db_path: Path,
    start: date | None = None,
    end: date | None = None,
    hidden: list[str] | None = None,
) -> dict:
    """Chat-log activity: chats per hour of day and waiting-time buckets.

    Returns:
        {scope: {...}, total: int, hourly: [{hour, chats}], wait_times: {label: count}}
    """
    entries = exclude_chat_logs(fetch_chat_logs(db_path, start=start, end=end), hidden or [])
    return {
        "scope": _range_scope(start, end),
        "total": len(entries),
        "hourly": hourly_activity(entries),
        "wait_times": wait_time_distribution(entries),
    }
