"""deepdocs docs CLI commands.

Commands:
  deepdocs docs list                       — show all documents with index status
  deepdocs docs tag <id> --category X      — set category and/or tags
  deepdocs docs show <id> [--chars 5000]   — metadata plus a preview of the extracted text
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from deepdocs.cli.common import (
    console,
    load_cli_config,
    make_extractor,
    make_pipeline,
    open_repo,
    resolve_db,
)
from deepdocs.cli.errors import err_invalid_config, err_not_found
from deepdocs.db.models import IndexStatus
from deepdocs.errors import InvalidConfiguration, NotFound
from deepdocs.ingest.extract import PREVIEW_CHARS, ExtractionStatus

docs_app = typer.Typer(
    name="docs",
    help="Inspect and annotate documents (list, show, tag).",
    add_completion=False,
)

_STATUS_STYLE = {
    IndexStatus.INDEXED: "[green]✓ indexed[/]",
    IndexStatus.STALE: "[yellow]~ stale[/]",
    IndexStatus.NOT_INDEXED: "[red]✗ not indexed[/]",
}


@docs_app.command("list")
def docs_list_cmd(
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the library database."),
    ] = None,
    category: Annotated[
        str | None,
        typer.Option("--category", help="Only show documents in this category."),
    ] = None,
) -> None:
    """List all documents with category, tags and index status."""
    cfg = load_cli_config()
    conn, repo = open_repo(resolve_db(db, cfg))
    try:
        docs = repo.list_documents()
        if category is not None:
            docs = [d for d in docs if d.category == category]
        if not docs:
            console.print("[yellow]No documents found.[/]  Add some with: deepdocs add <path>")
            raise typer.Exit(0)

        try:
            pipeline = make_pipeline(repo, cfg)
        except InvalidConfiguration as exc:
            console.print(err_invalid_config(str(exc)))
            raise typer.Exit(1)

        table = Table(title="Documents", show_header=True, header_style="bold")
        table.add_column("ID", justify="right")
        table.add_column("Name", style="bold")
        table.add_column("Category")
        table.add_column("Tags")
        table.add_column("Chunks", justify="right")
        table.add_column("Status")

        for doc in docs:
            status = pipeline.index_status(doc)
            table.add_row(
                str(doc.id),
                Text(doc.name),
                Text(doc.category),
                Text(", ".join(doc.tag_list)),
                str(repo.count_chunks(doc.id)),
                _STATUS_STYLE[status],
            )
        console.print(table)
    finally:
        conn.close()


@docs_app.command("tag")
def docs_tag_cmd(
    document_id: Annotated[int, typer.Argument(help="Document id (see: deepdocs docs list).")],
    category: Annotated[
        str | None,
        typer.Option("--category", help="New category (empty string clears it)."),
    ] = None,
    tags: Annotated[
        str | None,
        typer.Option("--tags", help="Comma-separated tags, replacing the current ones."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the library database."),
    ] = None,
) -> None:
    """Set the category and/or tags of a document."""
    if category is None and tags is None:
        console.print("[yellow]Nothing to change.[/] Pass --category and/or --tags.")
        raise typer.Exit(0)

    cfg = load_cli_config()
    conn, repo = open_repo(resolve_db(db, cfg))
    try:
        if tags is not None:
            tags = ",".join(t.strip() for t in tags.split(",") if t.strip())
        try:
            doc = repo.update_document(document_id, category=category, tags=tags)
        except NotFound as exc:
            console.print(err_not_found(exc.kind, exc.ident))
            raise typer.Exit(1)
        console.print(
            f"[green]✓[/] {escape(doc.name)}: category={escape(doc.category or '-')}  "
            f"tags={escape(', '.join(doc.tag_list) or '-')}"
        )
    finally:
        conn.close()


_PREVIEW_PROBLEMS = {
    ExtractionStatus.MISSING: (
        "[yellow]File not found on disk.[/] Drop moved or deleted files with: deepdocs prune"
    ),
    ExtractionStatus.UNSUPPORTED: "[yellow]No preview for this file type.[/]",
    ExtractionStatus.EMPTY: "[yellow]No text could be extracted from this file.[/]",
}


@docs_app.command("show")
def docs_show_cmd(
    document_id: Annotated[int, typer.Argument(help="Document id (see: deepdocs docs list).")],
    chars: Annotated[
        int,
        typer.Option("--chars", min=1, help="Maximum number of preview characters."),
    ] = PREVIEW_CHARS,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the library database."),
    ] = None,
) -> None:
    """Show a document's details and the start of its extracted text."""
    cfg = load_cli_config()
    conn, repo = open_repo(resolve_db(db, cfg))
    try:
        doc = repo.get_document(document_id)
        if doc is None:
            console.print(err_not_found("document", document_id))
            raise typer.Exit(1)

        try:
            pipeline = make_pipeline(repo, cfg)
        except InvalidConfiguration as exc:
            console.print(err_invalid_config(str(exc)))
            raise typer.Exit(1)

        console.print(f"[bold]{escape(doc.name)}[/]  [dim]#{doc.id}[/]")
        console.print(f"  Path:      {escape(doc.path)}")
        console.print(f"  Size:      {_format_size(doc.size)}")
        console.print(f"  Modified:  {escape(doc.last_modified or '-')}")
        console.print(f"  Category:  {escape(doc.category or '-')}")
        console.print(f"  Tags:      {escape(', '.join(doc.tag_list) or '-')}")
        console.print(f"  Chunks:    {repo.count_chunks(doc.id)}")
        console.print(f"  Status:    {_STATUS_STYLE[pipeline.index_status(doc)]}")
        console.print()

        result = make_extractor(cfg).preview(doc.path, limit=chars)
        if result.status is ExtractionStatus.FAILED:
            console.print(f"[red]Could not read the file:[/] {escape(result.error or '')}")
            return
        if not result.has_content:
            console.print(_PREVIEW_PROBLEMS[result.status])
            return

        body = Text(result.text)
        if result.truncated:
            body.append("...", style="dim")
        title = "Preview (OCR)" if result.used_ocr else "Preview"
        console.print(Panel(body, title=title, border_style="blue"))
    finally:
        conn.close()


def _format_size(size: int | None) -> str:
    if size is None:
        return "-"
    for unit in ("B", "KB", "MB"):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"
