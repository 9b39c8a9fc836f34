"""Entry points for the command-line interface.

The ``cronplus`` command inspects and maintains the cron table: list the
scheduled jobs, list the known recurrences, fire due jobs and unschedule jobs.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

import typer

import cronplus as cp
from ..errors import NoPendingFiring
from ..host import Host, get_default_host
from ..job import JobConfig, JobScheduler
from .. import metrics
from ..runner import CronRunner


app = typer.Typer(help="Inspect and maintain cronplus jobs")


def _host() -> Host:
    try:
        return get_default_host()
    except RuntimeError:
        return cp.initialize()


def _format_ts(ts: int) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


@app.callback()
def _global_options(
    metrics_port: Optional[int] = typer.Option(
        None,
        "--metrics-port",
        help="Expose Prometheus metrics on PORT before executing the command",
    ),
    site: Optional[int] = typer.Option(
        None,
        "--site",
        help="Run the command in the context of site ID",
    ),
) -> None:
    """Handle global options for the CLI."""

    if metrics_port is not None:
        metrics.serve(metrics_port)

    if site is not None:
        try:
            _host().tenants.switch_to(site)
        except ValueError as exc:
            raise typer.BadParameter(str(exc)) from exc


@app.command("list")
def list_jobs() -> None:
    """List scheduled jobs on the active site."""

    entries = list(_host().engine.entries())
    if not entries:
        typer.echo("no scheduled jobs")
        return
    for entry in entries:
        schedule = entry["schedule"] or "single"
        typer.echo(f"{entry['name']}\t{_format_ts(entry['timestamp'])}\t{schedule}")


@app.command("schedules")
def list_schedules() -> None:
    """List the known recurrences and their intervals."""

    recurrences = _host().engine.known_recurrences()
    for key, info in sorted(recurrences.items(), key=lambda item: item[1]["interval"]):
        typer.echo(f"{key}\t{info['interval']}\t{info['display']}")


@app.command("run")
def run_due(
    now: Optional[int] = typer.Option(None, "--now", help="Treat TS as the current time"),
    all_sites: bool = typer.Option(
        True,
        "--all-sites/--current-site",
        help="On a multisite network, fire due jobs on every site or only the active one",
    ),
) -> None:
    """Fire every job that is due."""

    fired = CronRunner(_host()).tick(now, all_sites=all_sites)
    typer.echo(f"{fired} job(s) fired")


@app.command("unschedule")
def unschedule(
    name: str,
    timestamp: Optional[int] = typer.Option(
        None, "--timestamp", help="Only remove the occurrence firing at TS"
    ),
    next_only: bool = typer.Option(
        False, "--next", help="Only remove the next pending occurrence"
    ),
    args: List[str] = typer.Option([], "--arg", help="Job argument (repeatable)"),
) -> None:
    """Remove ``NAME`` from the cron table."""

    job = JobScheduler(JobConfig(name=name, args=tuple(args)), host=_host())
    if timestamp is None and not next_only:
        removed = job.unschedule_all()
        typer.echo(f"{removed} occurrence(s) of {name} removed")
        return

    when = timestamp if timestamp is not None else job.next_scheduled()
    if when is None:
        typer.echo(f"error: {NoPendingFiring(name)}", err=True)
        raise typer.Exit(code=1)
    if not job.unschedule_at(when):
        typer.echo(f"error: {name} is not scheduled at {when}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"{name} unscheduled")


def main(args: list[str] | None = None) -> None:
    """CLI entry point used by ``console_scripts`` or directly."""

    cp.initialize()
    app(args, standalone_mode=False)


__all__ = ["app", "main"]
