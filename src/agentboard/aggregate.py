"""Range aggregation over persisted per-agent, per-day records.

All functions are pure. They take records already fetched from the
database and return new records or plain dicts. Nothing here is cached;
every read re-aggregates.

Averages are always weighted: chat time by chat count, score by rating
count. Averaging per-day averages directly would let a day with two
ratings count as much as a day with two hundred.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from agentboard.models import AgentRecord, ChatLogEntry


def dedupe_records(records: list[AgentRecord]) -> list[AgentRecord]:
    """Keep one record per (agent, date): the one with the highest id.

    Storage is append-only, so re-uploading a day writes a second copy;
    the newest write wins. Records without an id rank lowest, and among
    equal ids the later one in the list wins.
    """
    latest: dict[tuple, AgentRecord] = {}
    for record in records:
        key = (record.agent, record.date)
        current = latest.get(key)
        if current is None or (record.id or 0) >= (current.id or 0):
            latest[key] = record
    return list(latest.values())


def _hidden_matcher(hidden: list[str]):
    needles = [h.lower() for h in hidden if h and h.strip()]
    return lambda name: any(n in (name or "").lower() for n in needles)


def exclude_agents(records: list[AgentRecord], hidden: list[str]) -> list[AgentRecord]:
    """Drop records whose agent name contains any hidden entry (case-insensitive)."""
    is_hidden = _hidden_matcher(hidden)
    return [r for r in records if not is_hidden(r.agent)]


def exclude_chat_logs(entries: list[ChatLogEntry], hidden: list[str]) -> list[ChatLogEntry]:
    """Same rule as exclude_agents, applied to a chat log's agent_name."""
    is_hidden = _hidden_matcher(hidden)
    return [e for e in entries if not is_hidden(e.agent_name)]


@dataclass
class _Accumulator:
    record: AgentRecord
    chat_seconds_weighted: int
    score_weighted: float

    @classmethod
    def start(cls, record: AgentRecord) -> _Accumulator:
        return cls(
            record=replace(record, id=None, batch_id=None),
            chat_seconds_weighted=record.avg_chat_seconds * record.chats,
            score_weighted=record.avg_score * record.rating_times,
        )

    def add(self, other: AgentRecord) -> None:
        acc = self.record
        self.chat_seconds_weighted += other.avg_chat_seconds * other.chats
        self.score_weighted += other.avg_score * other.rating_times

        acc.chats += other.chats
        acc.rating_times += other.rating_times
        acc.total_chat_seconds += other.total_chat_seconds
        acc.last_message_sent_count += other.last_message_sent_count
        acc.score_1 += other.score_1
        acc.score_2 += other.score_2
        acc.score_3 += other.score_3
        acc.score_4 += other.score_4
        acc.score_5 += other.score_5

        acc.avg_chat_seconds = (
            self.chat_seconds_weighted // acc.chats if acc.chats > 0 else 0
        )
        acc.avg_score = (
            self.score_weighted / acc.rating_times if acc.rating_times > 0 else 0.0
        )
        if other.date is not None and (acc.date is None or other.date > acc.date):
            acc.date = other.date


def aggregate_by_agent(records: list[AgentRecord]) -> dict[str, AgentRecord]:
    """Combine each agent's records across dates into one record.

    Counts and total chat time are summed, avg_chat_seconds is weighted
    by chats, avg_score by rating_times, and date becomes the latest date
    seen. Input should already be deduplicated. Output is ordered by
    descending chats.
    """
    accumulators: dict[str, _Accumulator] = {}
    for record in records:
        acc = accumulators.get(record.agent)
        if acc is None:
            accumulators[record.agent] = _Accumulator.start(record)
        else:
            acc.add(record)

    combined = sorted(
        (a.record for a in accumulators.values()),
        key=lambda r: r.chats,
        reverse=True,
    )
    return {r.agent: r for r in combined}


def summarize_team(records: list[AgentRecord]) -> dict:
    """Team-wide totals for a set of (usually aggregated) agent records.

    Returns:
        {agent_count, total_chats, total_ratings, avg_score,
         avg_chat_seconds, total_chat_seconds, star_distribution}
    """
    total_chats = sum(r.chats for r in records)
    total_ratings = sum(r.rating_times for r in records)
    score_weighted = sum(r.avg_score * r.rating_times for r in records)
    chat_weighted = sum(r.avg_chat_seconds * r.chats for r in records)

    return {
        "agent_count": len(records),
        "total_chats": total_chats,
        "total_ratings": total_ratings,
        "avg_score": round(score_weighted / total_ratings, 2) if total_ratings else 0.0,
        "avg_chat_seconds": chat_weighted // total_chats if total_chats else 0,
        "total_chat_seconds": sum(r.total_chat_seconds for r in records),
        "star_distribution": {
            "5": sum(r.score_5 for r in records),
            "4": sum(r.score_4 for r in records),
            "3": sum(r.score_3 for r in records),
            "2": sum(r.score_2 for r in records),
            "1": sum(r.score_1 for r in records),
        },
    }


def daily_trend(records: list[AgentRecord]) -> list[dict]:
    """Team totals per report date, oldest first.

    Within a day the same weighting applies as across a range: score by
    rating_times, chat time by chats. Input should already be deduplicated.
    """
    days: dict = {}
    for record in records:
        if record.date is None:
            continue
        acc = days.get(record.date)
        if acc is None:
            days[record.date] = _Accumulator.start(record)
        else:
            acc.add(record)

    trend = []
    for day in sorted(days):
        total = days[day].record
        trend.append({
            "date": day.isoformat(),
            "chats": total.chats,
            "rating_times": total.rating_times,
            "avg_score": round(total.avg_score, 2),
            "avg_chat_seconds": total.avg_chat_seconds,
            "avg_chat_time": total.avg_chat_time,
        })
    return trend


def hourly_activity(entries: list[ChatLogEntry]) -> list[dict]:
    """Chat count per hour of day (0-23) by start time; logs without one are skipped."""
    counts = [0] * 24
    for entry in entries:
        if entry.start_time is not None:
            counts[entry.start_time.hour] += 1
    return [{"hour": hour, "chats": count} for hour, count in enumerate(counts)]


# Upper bound in seconds (exclusive) -> label; the last bucket is open-ended
WAIT_TIME_BUCKETS = (
    (30, "<30s"),
    (60, "30s-1m"),
    (120, "1m-2m"),
    (300, "2m-5m"),
    (None, ">5m"),
)


def wait_time_distribution(entries: list[ChatLogEntry]) -> dict[str, int]:
    """Count chat logs per waiting-time bucket, in bucket order."""
    buckets = {label: 0 for _, label in WAIT_TIME_BUCKETS}
    for entry in entries:
        wait = entry.wait_time_seconds or 0
        for limit, label in WAIT_TIME_BUCKETS:
            if limit is None or wait < limit:
                buckets[label] += 1
                break
    return buckets
