"""
Recurring reindex schedules.

Schedules live in the scheduled_jobs table; `schedule start` hands the
enabled ones to APScheduler.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="Manage scheduled reindex jobs",
    no_args_is_help=True,
)


def _get_job(session, name: str):
    from sqlalchemy import select

    from searchreindex.persistence.models import ScheduledJob

    stmt = select(ScheduledJob).where(ScheduledJob.name == name)
    job = session.execute(stmt).scalar_one_or_none()

    if job is None:
        err_console.print(f"[red]No schedule named[/red] {name}")
        raise typer.Exit(1)

    return job


def _summarize(values: list[str] | None) -> str:
    values = values or []
    if not values:
        return "[dim]all[/dim]"

    text = ", ".join(values[:3])
    if len(values) > 3:
        text += f" (+{len(values) - 3})"
    return text


@app.command("list")
def list_schedules() -> None:
    """Show every schedule with its scope and last result."""
    from sqlalchemy import select

    from searchreindex.persistence.db import get_session
    from searchreindex.persistence.models import ScheduledJob

    with get_session() as session:
        jobs = session.execute(select(ScheduledJob).order_by(ScheduledJob.name)).scalars().all()

        if not jobs:
            console.print("[dim]No schedules configured yet[/dim]")
            console.print("Add one with: [yellow]searchreindex schedule add[/yellow]")
            return

        table = Table(title="Reindex Schedules", header_style="bold magenta")
        table.add_column("Schedule", style="cyan")
        table.add_column("State", justify="center")
        table.add_column("When")
        table.add_column("Types")
        table.add_column("Indexes")
        table.add_column("Last Run")

        for job in jobs:
            state = "[green]Enabled[/green]" if job.enabled else "[yellow]Disabled[/yellow]"

            if job.cron_expression:
                when = job.cron_expression
            elif job.time_of_day:
                when = f"{job.schedule_type} {job.time_of_day} {job.timezone}"
            else:
                when = job.schedule_type

            last_run = "[dim]Never[/dim]"
            if job.last_run_at:
                last_run = f"{job.last_run_at.strftime('%Y-%m-%d %H:%M')} {job.last_status or ''}".strip()

            table.add_row(
                job.name,
                state,
                when,
                _summarize(job.content_types_json),
                _summarize(job.indexes_json),
                last_run,
            )

        console.print(table)


@app.command("add")
def add_schedule(
    name: str = typer.Argument(..., help="Schedule name"),
    content_types: Optional[list[str]] = typer.Option(
        None,
        "--type",
        "-t",
        help="Content type to reindex (repeatable, default: all)",
    ),
    indexes: Optional[list[str]] = typer.Option(
        None,
        "--index",
        "-i",
        help="Index to write to (repeatable, default: all)",
    ),
    batch_size: Optional[int] = typer.Option(
        None,
        "--batch-size",
        "-b",
        min=1,
        help="Documents per step (default: search.batch_size)",
    ),
    daily: Optional[str] = typer.Option(
        None,
        "--daily",
        help="Run daily at HH:MM (e.g., '03:00')",
    ),
    weekday: Optional[str] = typer.Option(
        None,
        "--weekday",
        help="Run weekdays at HH:MM",
    ),
    hourly: bool = typer.Option(
        False,
        "--hourly",
        help="Run every hour",
    ),
    cron: Optional[str] = typer.Option(
        None,
        "--cron",
        help="Cron expression",
    ),
    jitter: int = typer.Option(
        0,
        "--jitter",
        min=0,
        max=60,
        help="Start up to this many minutes late",
    ),
    timezone: str = typer.Option(
        "UTC",
        "--timezone",
        "-tz",
        help="Timezone for --daily and --weekday",
    ),
) -> None:
    """Schedule a recurring reindex.

    Examples:
        searchreindex schedule add nightly --daily 03:00
        searchreindex schedule add pages_hourly -t Page --hourly --jitter 10
    """
    from searchreindex.core.scheduler.service import parse_time_of_day
    from searchreindex.persistence.db import get_session
    from searchreindex.persistence.models import ScheduledJob

    if sum(1 for choice in (daily, weekday, hourly, cron) if choice) != 1:
        err_console.print("[red]Pick one frequency:[/red] --daily, --weekday, --hourly or --cron")
        raise typer.Exit(1)

    if daily:
        schedule_type, time_of_day = "daily", daily
    elif weekday:
        schedule_type, time_of_day = "weekday", weekday
    elif hourly:
        schedule_type, time_of_day = "hourly", None
    else:
        schedule_type, time_of_day = "cron", None

    if time_of_day is not None:
        try:
            parse_time_of_day(time_of_day)
        except ValueError as e:
            err_console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)

    with get_session() as session:
        from sqlalchemy import select

        existing = session.execute(
            select(ScheduledJob).where(ScheduledJob.name == name)
        ).scalar_one_or_none()

        if existing:
            err_console.print(f"[red]A schedule named {name} exists already[/red]")
            raise typer.Exit(1)

        session.add(
            ScheduledJob(
                name=name,
                enabled=True,
                content_types_json=list(content_types) if content_types else None,
                indexes_json=list(indexes) if indexes else None,
                batch_size=batch_size,
                schedule_type=schedule_type,
                time_of_day=time_of_day,
                cron_expression=cron,
                timezone=timezone,
                jitter_minutes=jitter,
            )
        )

    when = f"{schedule_type} {time_of_day} {timezone}" if time_of_day else (cron or schedule_type)
    console.print(f"[green]OK[/green] {name} will reindex {when}")
    if jitter:
        console.print(f"[dim]Starts up to {jitter} minutes late[/dim]")


@app.command("sync")
def sync_schedules(ctx: typer.Context) -> None:
    """Create or update schedules from the scheduler section of app.yaml."""
    from searchreindex.core.scheduler import sync_config_schedules

    written = sync_config_schedules(ctx.obj.scheduler.schedules)
    console.print(f"[green]OK[/green] Synced {written} schedule(s) from configuration")


@app.command("pause")
def pause_schedule(
    name: str = typer.Argument(..., help="Schedule name"),
) -> None:
    """Stop a schedule from firing without deleting it."""
    from searchreindex.persistence.db import get_session

    with get_session() as session:
        _get_job(session, name).enabled = False

    console.print(f"[yellow]Paused[/yellow] {name}")


@app.command("resume")
def resume_schedule(
    name: str = typer.Argument(..., help="Schedule name"),
) -> None:
    """Let a paused schedule fire again."""
    from searchreindex.persistence.db import get_session

    with get_session() as session:
        _get_job(session, name).enabled = True

    console.print(f"[green]Resumed[/green] {name}")


@app.command("run-now")
def run_schedule_now(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Schedule name"),
) -> None:
    """Run a scheduled job immediately in this process."""
    from searchreindex.core.errors import ReindexError
    from searchreindex.core.scheduler import SchedulerService
    from searchreindex.persistence.db import get_session

    with get_session() as session:
        _get_job(session, name)

    console.print(f"Running schedule [cyan]{name}[/cyan] now")

    config = ctx.obj
    try:
        run_id = SchedulerService(config.scheduler.datastore_url).trigger_now(name, config)
    except ReindexError as e:
        err_console.print(f"[red]Scheduled run failed:[/red] {e}")
        raise typer.Exit(1)

    if run_id is None:
        console.print("[yellow]Skipped[/yellow] (disabled or already running)")
    else:
        console.print(f"[green]OK[/green] Completed run {run_id}")


@app.command("delete")
def delete_schedule(
    name: str = typer.Argument(..., help="Schedule name"),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Skip confirmation",
    ),
) -> None:
    """Remove a schedule. Runs it started are kept."""
    if not force and not typer.confirm(f"Remove schedule {name}?"):
        raise typer.Abort()

    from searchreindex.persistence.db import get_session

    with get_session() as session:
        session.delete(_get_job(session, name))

    console.print(f"Removed schedule {name}")


@app.command("start")
def start_scheduler(ctx: typer.Context) -> None:
    """Run enabled schedules until interrupted."""
    from searchreindex.core.scheduler import SchedulerService

    config = ctx.obj
    if not config.scheduler.enabled:
        err_console.print("[red]Scheduler is disabled in configuration[/red]")
        raise typer.Exit(1)

    console.print("Scheduler running, Ctrl+C stops it")

    asyncio.run(SchedulerService(config.scheduler.datastore_url).start())
