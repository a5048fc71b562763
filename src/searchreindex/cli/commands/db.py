"""
Schema commands for the reindex database.

`db init` creates tables straight from the models; `db migrate` goes
through Alembic and is the way to upgrade an existing database.
"""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="Database operations",
    no_args_is_help=True,
)


@app.command("init")
def init_database(
    ctx: typer.Context,
    drop_existing: bool = typer.Option(
        False,
        "--drop",
        help="Drop every table first, losing documents and run checkpoints",
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Skip confirmation",
    ),
) -> None:
    """Create missing tables."""
    from searchreindex.persistence.db import drop_db, init_db

    config = ctx.obj

    if drop_existing:
        if not yes and not typer.confirm(f"Drop all tables in {config.database.url}?", default=False):
            raise typer.Abort()

        drop_db(config.database.url)
        console.print("[yellow]Dropped all tables[/yellow]")

    init_db(config.database.url)
    console.print(f"[green]OK[/green] Schema ready in {config.database.url}")


def _alembic_config(ctx: typer.Context):
    """Alembic config bound to this package's migrations and the active database."""
    from pathlib import Path

    from alembic.config import Config

    import searchreindex.persistence as persistence

    alembic_cfg = Config()
    alembic_cfg.set_main_option("script_location", str(Path(persistence.__file__).parent / "migrations"))
    alembic_cfg.attributes["database_url"] = ctx.obj.database.url
    return alembic_cfg


@app.command("migrate")
def run_migrations(
    ctx: typer.Context,
    revision: str = typer.Option(
        "head",
        "--revision",
        "-r",
        help="Alembic revision to upgrade to",
    ),
) -> None:
    """Upgrade the schema with Alembic migrations."""
    from alembic import command

    try:
        command.upgrade(_alembic_config(ctx), revision)
    except Exception as e:
        err_console.print(f"[red]Could not upgrade to {revision}:[/red] {e}")
        raise typer.Exit(1)

    console.print(f"[green]OK[/green] Schema upgraded to {revision}")


@app.command("current")
def show_current(ctx: typer.Context) -> None:
    """Print the Alembic revision the database is at."""
    from alembic import command

    command.current(_alembic_config(ctx), verbose=True)


@app.command("stats")
def show_stats() -> None:
    """Show row counts per table."""
    from sqlalchemy import func, select

    from searchreindex.persistence.db import get_session, table_names
    from searchreindex.persistence.models import Base

    existing = table_names()

    table = Table(title="Database", show_header=True, header_style="bold magenta")
    table.add_column("Table", style="cyan")
    table.add_column("Rows", justify="right")

    with get_session() as session:
        for name, model_table in sorted(Base.metadata.tables.items()):
            if name not in existing:
                table.add_row(name, "[dim]missing[/dim]")
                continue
            count = session.execute(select(func.count()).select_from(model_table)).scalar_one()
            table.add_row(name, str(count))

    console.print(table)
