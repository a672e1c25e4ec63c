"""CLI entrypoint: agentboard ingest, stats, batches, hide, unhide, serve."""

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path

import click

from agentboard.config import load_config, save_config_value
from agentboard.db import init_db
from agentboard.errors import ConfigError
from agentboard.merge import get_name_normalizer
from agentboard.models import Diagnostics
from agentboard.parser import discover_csv_files
from agentboard.timecodec import format_duration
from agentboard.upload import ingest_files
from agentboard.web import queries


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _parse_date(ctx, param, value):
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise click.BadParameter("expected YYYY-MM-DD") from None


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log progress at INFO level.")
@click.pass_context
def cli(ctx, verbose: bool):
    """agentboard: call-center agent performance dashboard."""
    try:
        config = load_config()
    except ConfigError as e:
        raise click.ClickException(str(e)) from None
    _setup_logging("INFO" if verbose else config.log_level)
    ctx.obj = config


@cli.command()
@click.argument("paths", nargs=-1, type=click.Path(exists=True, path_type=Path))
@click.option("--full", is_flag=True, help="Re-ingest every file, even unchanged ones.")
@click.option("--strict", is_flag=True, help="Report data-quality problems found while parsing.")
@click.pass_obj
def ingest(config, paths: tuple[Path, ...], full: bool, strict: bool):
    """Parse exported CSV reports and chat logs into SQLite."""
    db_path = config.db_path
    init_db(db_path)

    roots = list(paths) or [config.upload_dir]
    csv_files: list[Path] = []
    for root in roots:
        if not root.exists():
            click.echo(f"No such path: {root}")
            continue
        csv_files.extend(discover_csv_files(root))
    if not csv_files:
        click.echo(f"No CSV files found in {', '.join(str(r) for r in roots)}")
        return

    diagnostics = Diagnostics() if (strict or config.strict) else None
    summary = ingest_files(
        db_path,
        csv_files,
        full=full,
        normalize=get_name_normalizer(config.name_policy),
        diagnostics=diagnostics,
    )

    click.echo(
        f"Stored {summary.succeeded_groups} report days "
        f"from {summary.total_files} files."
    )
    if summary.chat_log_rows:
        click.echo(f"Stored {summary.chat_log_rows} chat log rows.")
    if summary.failed_groups:
        click.echo(f"Failed to store {summary.failed_groups} report days.")
    if summary.skipped_files:
        click.echo(f"Skipped {len(summary.skipped_files)} files without a usable report.")
    if summary.unchanged_files:
        click.echo(f"Skipped {summary.unchanged_files} unchanged files.")
    if diagnostics is not None and diagnostics.messages:
        click.echo(f"\n{len(diagnostics)} data-quality warnings:")
        for message in diagnostics.messages:
            click.echo(f"  {message}")


@cli.command()
@click.option("--start", default=None, callback=_parse_date, help="First day (YYYY-MM-DD).")
@click.option("--end", default=None, callback=_parse_date, help="Last day (YYYY-MM-DD).")
@click.option("--batch", "batch_id", default=None, help="Show a single batch.")
@click.pass_obj
def stats(config, start: date | None, end: date | None, batch_id: str | None):
    """Print per-agent statistics for a date range, a batch, or the latest batch."""
    db_path = config.db_path

    if not db_path.exists():
        click.echo("No data yet. Run 'agentboard ingest' first.")
        return
    init_db(db_path)

    table = queries.get_agent_table(
        db_path, start=start, end=end, batch_id=batch_id, hidden=config.hidden_agents,
    )
    agents = table["agents"]
    if not agents:
        click.echo("No agent data found. Run 'agentboard ingest' first.")
        return

    team = queries.get_team_summary(
        db_path, start=start, end=end, batch_id=batch_id, hidden=config.hidden_agents,
    )
    click.echo(
        f"{team['agent_count']} agents, {team['total_chats']} chats, "
        f"{team['total_ratings']} ratings. "
        f"Avg score: {team['avg_score']:.2f}. "
        f"Avg chat time: {format_duration(team['avg_chat_seconds'])}."
    )
    click.echo("")
    for a in agents:
        click.echo(
            f"  {a['agent']}: {a['chats']} chats, "
            f"avg {a['avg_chat_time']}, total {a['total_chat_time']}, "
            f"score {a['avg_score']:.2f} ({a['rating_times']} ratings)"
        )


@cli.command()
@click.pass_obj
def batches(config):
    """List uploaded batches, most recently written first."""
    db_path = config.db_path
    if not db_path.exists():
        click.echo("No data yet. Run 'agentboard ingest' first.")
        return
    init_db(db_path)

    history = queries.get_batch_history(db_path)
    if not history:
        click.echo("No batches found.")
        return
    for b in history:
        click.echo(
            f"{b['report_date']}  {b['batch_id']}  "
            f"{b['agent_count']} agents, {b['total_chats']} chats"
        )


@cli.command()
@click.argument("name", required=False)
@click.pass_obj
def hide(config, name: str | None):
    """Hide an agent from tables and totals. Without NAME, list hidden agents."""
    hidden = list(config.hidden_agents)
    if name is None:
        if not hidden:
            click.echo("No hidden agents.")
        for entry in hidden:
            click.echo(entry)
        return

    name = name.strip()
    if not name:
        raise click.BadParameter("agent name must not be blank", param_hint="NAME")
    if any(h.lower() == name.lower() for h in hidden):
        click.echo(f"{name} is already hidden.")
        return
    hidden.append(name)
    save_config_value("hidden_agents", hidden)
    click.echo(f"Hidden {name}. {len(hidden)} agents hidden.")


@cli.command()
@click.argument("name")
@click.pass_obj
def unhide(config, name: str):
    """Show a previously hidden agent again."""
    hidden = [h for h in config.hidden_agents if h.lower() != name.strip().lower()]
    if len(hidden) == len(config.hidden_agents):
        click.echo(f"{name} is not hidden.")
        return
    save_config_value("hidden_agents", hidden)
    click.echo(f"Unhid {name}. {len(hidden)} agents hidden.")


@cli.command()
@click.option("--port", default=None, type=int, help="Port to serve on (default: 8788).")
@click.pass_obj
def serve(config, port: int | None):
    """Start the dashboard API server."""
    serve_port = port or config.port

    click.echo(f"Starting dashboard API at http://localhost:{serve_port}")
    click.echo("Press Ctrl+C to stop.")

    from agentboard.web.app import create_app

    app = create_app(config)
    app.run(host="localhost", port=serve_port)
