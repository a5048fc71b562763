"""
Reindex commands for starting, stepping and inspecting runs.
"""

from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from searchreindex.core.errors import (
    ConfigurationMismatchError,
    InvalidBatchSizeError,
    ReindexError,
    RunNotFoundError,
)

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="Start, step and inspect reindex runs",
    no_args_is_help=True,
)


def _runner(ctx: typer.Context):
    from searchreindex.core.orchestrator import create_runner

    return create_runner(ctx.obj)


def _print_progress(progress) -> None:
    style = {
        "COMPLETED": "green",
        "FAILED": "red",
    }.get(progress.status, "yellow")

    console.print(f"[bold]Run {progress.run_id}:[/bold] {progress.title}")
    console.print(f"[dim]Status:[/dim] [{style}]{progress.status}[/{style}]")
    console.print(
        f"[dim]Steps:[/dim] {progress.completed_steps}/{progress.total_steps} "
        f"({progress.percent_complete:.1f}%)"
    )
    if progress.error_message:
        console.print(f"[dim]Last error:[/dim] [red]{progress.error_message}[/red]")


def _drive(runner, progress, max_steps: int | None = None):
    """Step a run to completion with a progress bar."""
    from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

    steps = 0
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        TimeElapsedColumn(),
        console=console,
    ) as bar:
        task = bar.add_task(
            f"[cyan]Run {progress.run_id}[/cyan]",
            total=progress.total_steps,
            completed=progress.completed_steps,
        )

        while not progress.is_complete and (max_steps is None or steps < max_steps):
            progress = runner.run(progress.run_id, max_steps=1)
            steps += 1
            bar.update(task, completed=progress.completed_steps)

    return progress


@app.command("start")
def start_run(
    ctx: typer.Context,
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
        help="Documents per step (default: search.batch_size)",
    ),
    run_now: bool = typer.Option(
        False,
        "--run",
        help="Step the run to completion after starting it",
    ),
) -> None:
    """Start a new reindex run.

    Examples:
        searchreindex reindex start
        searchreindex reindex start -t Page -i main -b 50 --run
    """
    from searchreindex.core.jobs import RunScope

    config = ctx.obj

    try:
        scope = RunScope.create(
            content_types,
            indexes,
            batch_size,
            default_batch_size=config.search.batch_size,
        )
        runner = _runner(ctx)
        progress = runner.start(scope)
    except (InvalidBatchSizeError, ConfigurationMismatchError) as e:
        err_console.print(f"[red]Cannot start run:[/red] {e}")
        raise typer.Exit(1)

    console.print(f"[green]OK[/green] Started run {progress.run_id}: {progress.title}")
    console.print(f"[dim]Total steps:[/dim] {progress.total_steps}")

    if not run_now:
        if not progress.is_complete:
            console.print(f"Continue with: [yellow]searchreindex reindex run {progress.run_id}[/yellow]")
        return

    try:
        progress = _drive(runner, progress)
    except ReindexError as e:
        err_console.print(f"[red]Run failed:[/red] {e}")
        raise typer.Exit(1)

    console.print()
    _print_progress(progress)


@app.command("step")
def step_run(
    ctx: typer.Context,
    run_id: int = typer.Argument(..., help="Run ID"),
    steps: int = typer.Option(
        1,
        "--steps",
        "-n",
        min=1,
        help="Number of steps to execute",
    ),
) -> None:
    """Execute single steps of a run without retrying."""
    runner = _runner(ctx)

    try:
        progress = runner.status(run_id)
        for _ in range(steps):
            if progress.is_complete:
                break
            progress = runner.step(run_id)
    except RunNotFoundError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    except Exception as e:
        err_console.print(f"[red]Step failed:[/red] {e}")
        err_console.print(f"[dim]The checkpoint is unchanged. Retry with:[/dim] searchreindex reindex step {run_id}")
        raise typer.Exit(1)

    _print_progress(progress)


@app.command("run")
def resume_run(
    ctx: typer.Context,
    run_id: int = typer.Argument(..., help="Run ID"),
    max_steps: Optional[int] = typer.Option(
        None,
        "--max-steps",
        "-n",
        min=1,
        help="Stop after this many steps",
    ),
) -> None:
    """Step a run until it completes, retrying failed steps."""
    runner = _runner(ctx)

    try:
        progress = _drive(runner, runner.status(run_id), max_steps=max_steps)
    except RunNotFoundError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    except ReindexError as e:
        err_console.print(f"[red]Run failed:[/red] {e}")
        raise typer.Exit(1)

    _print_progress(progress)


@app.command("status")
def show_status(
    ctx: typer.Context,
    run_id: int = typer.Argument(..., help="Run ID"),
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Print progress as JSON",
    ),
) -> None:
    """Show progress of a run."""
    try:
        progress = _runner(ctx).status(run_id)
    except RunNotFoundError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    if as_json:
        from searchreindex.core.logging import json_dumps

        console.print_json(json_dumps(progress.to_dict()))
        return

    _print_progress(progress)


@app.command("list")
def list_runs(
    ctx: typer.Context,
    limit: int = typer.Option(
        20,
        "--limit",
        "-n",
        help="Number of runs to show",
    ),
) -> None:
    """List recent reindex runs."""
    runs = _runner(ctx).recent(limit)

    if not runs:
        console.print("[dim]No reindex runs yet.[/dim]")
        return

    table = Table(title="Reindex Runs", show_header=True, header_style="bold magenta")
    table.add_column("ID", justify="right")
    table.add_column("Title", style="cyan")
    table.add_column("Status", justify="center")
    table.add_column("Steps", justify="right")
    table.add_column("Progress", justify="right")
    table.add_column("Took", justify="right")

    for progress in runs:
        table.add_row(
            str(progress.run_id),
            progress.title,
            progress.status,
            f"{progress.completed_steps}/{progress.total_steps}",
            f"{progress.percent_complete:.0f}%",
            f"{progress.duration_seconds:.1f}s" if progress.duration_seconds is not None else "-",
        )

    console.print(table)
