"""
Source document commands.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import orjson
import typer
import yaml
from rich.console import Console
from rich.table import Table

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="Manage source documents",
    no_args_is_help=True,
)

# Record keys stored in their own columns; everything else goes to fields
_RESERVED_KEYS = {"id", "source_id", "title", "body", "published"}


def _load_records(path: Path) -> list[dict[str, Any]]:
    """Load a JSON or YAML list of records."""
    text = path.read_text(encoding="utf-8")

    if path.suffix.lower() == ".json":
        data = orjson.loads(text)
    else:
        data = yaml.safe_load(text)

    if isinstance(data, dict) and "documents" in data:
        data = data["documents"]

    if not isinstance(data, list):
        raise ValueError("Expected a list of records")

    for position, record in enumerate(data):
        if not isinstance(record, dict):
            raise ValueError(f"Record {position} is not a mapping")
        if "source_id" not in record and "id" not in record:
            raise ValueError(f"Record {position} has no 'id' or 'source_id'")

    return data


@app.command("import")
def import_documents(
    file: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        readable=True,
        help="JSON or YAML file with a list of records",
    ),
    content_type: str = typer.Option(
        ...,
        "--type",
        "-t",
        help="Content type of the records",
    ),
) -> None:
    """Import records into the source document table.

    Each record needs an 'id' (or 'source_id'). 'title', 'body' and
    'published' are stored in their own columns, other keys as fields.
    Existing records with the same id are updated.
    """
    from searchreindex.persistence.db import get_session
    from searchreindex.persistence.repo import SourceDocumentRepository

    try:
        records = _load_records(file)
    except (ValueError, yaml.YAMLError, orjson.JSONDecodeError) as e:
        err_console.print(f"[red]Cannot read {file}:[/red] {e}")
        raise typer.Exit(1)

    created = updated = 0

    with get_session() as session:
        repo = SourceDocumentRepository(session)

        for record in records:
            source_id = record.get("source_id", record.get("id"))
            _, is_new = repo.upsert(
                content_type=content_type,
                source_id=str(source_id),
                title=record.get("title"),
                body=record.get("body"),
                fields={k: v for k, v in record.items() if k not in _RESERVED_KEYS} or None,
                published=bool(record.get("published", True)),
            )
            if is_new:
                created += 1
            else:
                updated += 1

    console.print(f"[green]OK[/green] Imported {len(records)} {content_type} record(s)")
    console.print(f"[dim]Created:[/dim] {created}  [dim]Updated:[/dim] {updated}")


@app.command("count")
def count_documents() -> None:
    """Show source and indexed document counts."""
    from searchreindex.persistence.db import get_session
    from searchreindex.persistence.repo import IndexedDocumentRepository, SourceDocumentRepository

    with get_session() as session:
        source_counts = SourceDocumentRepository(session).count_by_content_type()
        index_counts = IndexedDocumentRepository(session).count_by_index()

    if not source_counts and not index_counts:
        console.print("[dim]No documents yet.[/dim]")
        return

    table = Table(title="Documents", show_header=True, header_style="bold magenta")
    table.add_column("Kind")
    table.add_column("Name", style="cyan")
    table.add_column("Count", justify="right")

    for content_type, count in sorted(source_counts.items()):
        table.add_row("source", content_type, str(count))

    for index_name, count in sorted(index_counts.items()):
        table.add_row("index", index_name, str(count))

    console.print(table)
