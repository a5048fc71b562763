"""
SearchReindex CLI - Main entry point.

Resumable, checkpointed reindexing of search indexes from the
command line, with scheduling support.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.traceback import install as install_rich_traceback

from searchreindex import __app_name__, __version__
from searchreindex.core.config.loader import ConfigError, load_app_config
from searchreindex.core.logging import setup_logging
from searchreindex.persistence.db import get_engine

# .env may set SEARCHREINDEX_DATABASE_URL and friends
load_dotenv()

install_rich_traceback(show_locals=False, width=120)

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name=__app_name__,
    help="Resumable, checkpointed search reindexing",
    rich_markup_mode="rich",
    no_args_is_help=True,
    pretty_exceptions_show_locals=False,
)


def version_callback(value: bool) -> None:
    """--version handler."""
    if value:
        console.print(f"[bold cyan]{__app_name__}[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to app.yaml (default: configs/app.yaml or $SEARCHREINDEX_CONFIG)",
    ),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """SearchReindex - Rebuild search indexes in resumable steps."""
    try:
        config = load_app_config(config_path)
    except ConfigError as e:
        err_console.print(f"[red]Configuration error:[/red] {e}")
        if e.details:
            err_console.print(f"[dim]{e.details}[/dim]")
        raise typer.Exit(1)

    setup_logging(
        level=config.logging.level,
        log_file=config.logging.file,
        json_format=config.logging.json_format,
        rich_console=config.logging.rich_console,
    )
    get_engine(config.database.url, echo=config.database.echo, pool_size=config.database.pool_size)

    ctx.obj = config


# =============================================================================
# Import and register subcommand modules
# =============================================================================

from .commands import db, documents, reindex, schedule  # noqa: E402

app.add_typer(reindex.app, name="reindex", help="Start, step and inspect reindex runs")
app.add_typer(documents.app, name="documents", help="Manage source documents")
app.add_typer(schedule.app, name="schedule", help="Manage scheduled reindex jobs")
app.add_typer(db.app, name="db", help="Database operations")


# =============================================================================
# Init Command
# =============================================================================


@app.command()
def init(
    ctx: typer.Context,
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Replace configs/app.yaml with the default",
    ),
) -> None:
    """Set up a project in the current directory.

    Writes configs/app.yaml unless one exists (or --force is given) and
    creates any missing tables.
    """
    from searchreindex.persistence.db import init_db

    config = ctx.obj

    for dir_path in (Path("configs"), Path("data"), Path("logs")):
        dir_path.mkdir(parents=True, exist_ok=True)

    config_file = Path("configs/app.yaml")
    if force or not config_file.exists():
        _write_default_config(config_file)

    init_db(config.database.url)

    console.print()
    console.print(Panel.fit(
        f"[bold green]Project initialized[/bold green] ({config.database.url})\n\n"
        "Load documents, then rebuild the indexes:\n"
        "  [yellow]searchreindex documents import pages.yaml --type Page[/yellow]\n"
        "  [yellow]searchreindex reindex start --run[/yellow]",
        title="[bold]searchreindex init[/bold]",
        border_style="green",
    ))


def _write_default_config(path: Path) -> None:
    default_config = """\
# searchreindex: index layout, sources and runtime settings

config_dir: configs
data_dir: data

database:
  url: ${SEARCHREINDEX_DATABASE_URL:-sqlite:///data/searchreindex.db}
  echo: false

logging:
  level: INFO
  file: logs/searchreindex.log
  json_format: true
  rich_console: true

search:
  batch_size: 100
  stage: live
  indexes:
    main:
      content_types: [Page, File]
  sources:
    Page:
      kind: table
    File:
      kind: table

runner:
  max_attempts: 3
  min_wait: 1
  max_wait: 30

scheduler:
  enabled: true
  datastore_url: sqlite:///data/schedules.db
  schedules: []
"""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(default_config, encoding="utf-8")


# =============================================================================
# Validate Command
# =============================================================================


@app.command()
def validate(
    path: Optional[Path] = typer.Argument(
        None,
        help="app.yaml to check (default: the active configuration file)",
    ),
) -> None:
    """Check an app.yaml for field errors and an inconsistent search layout."""
    from searchreindex.core.config.loader import resolve_config_path, validate_app_config_file

    path = resolve_config_path(path)
    problems = validate_app_config_file(path)

    if problems:
        err_console.print(f"[red]{len(problems)} problem(s) in {path}:[/red]")
        for problem in problems:
            err_console.print(f"  - {problem}")
        raise typer.Exit(1)

    console.print(f"[green]OK[/green] {path} is valid")


# =============================================================================
# Status Command
# =============================================================================


@app.command()
def status() -> None:
    """Show recent runs and index statistics."""
    from rich.table import Table

    from searchreindex.persistence.db import get_session, table_names
    from searchreindex.persistence.repo import IndexedDocumentRepository, RunRepository

    if "reindex_runs" not in table_names():
        err_console.print("[red]SearchReindex not initialized. Run:[/red] searchreindex init")
        raise typer.Exit(1)

    console.print()
    console.print("[bold]SearchReindex Status[/bold]")
    console.print()

    with get_session() as session:
        runs = RunRepository(session).get_recent(limit=5)

        if runs:
            run_table = Table(title="Recent Runs", show_header=True, header_style="bold magenta")
            run_table.add_column("ID", justify="right")
            run_table.add_column("Title", style="cyan")
            run_table.add_column("Status", justify="center")
            run_table.add_column("Steps", justify="right")
            run_table.add_column("Started", justify="right")

            for run in runs:
                run_table.add_row(
                    str(run.id),
                    run.title,
                    run.status,
                    f"{run.completed_steps}/{run.total_steps}",
                    run.started_at.strftime("%Y-%m-%d %H:%M"),
                )

            console.print(run_table)
        else:
            console.print("[dim]No reindex runs yet. Start one with:[/dim] searchreindex reindex start")

        console.print()

        index_counts = IndexedDocumentRepository(session).count_by_index()
        if index_counts:
            index_table = Table(title="Indexes", show_header=True, header_style="bold magenta")
            index_table.add_column("Index", style="cyan")
            index_table.add_column("Documents", justify="right")

            for name, count in sorted(index_counts.items()):
                index_table.add_row(name, str(count))

            console.print(index_table)
        else:
            console.print("[dim]No documents indexed yet.[/dim]")


# =============================================================================
# Entry Point
# =============================================================================


def run() -> None:
    """Run the CLI application."""
    app()


if __name__ == "__main__":
    run()
