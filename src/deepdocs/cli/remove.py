"""deepdocs remove / prune — document lifecycle management.

Removing a document deletes its row, its chunks and its collection
memberships in one transaction. The file on disk is never touched.

Usage:
  deepdocs remove 4 9
  deepdocs remove 4 --yes
  deepdocs prune            drop documents whose file was moved or deleted
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape

from deepdocs.cli.common import console, load_cli_config, open_repo, resolve_db
from deepdocs.cli.errors import err_not_found
from deepdocs.ingest.scanner import prune_missing


def remove_cmd(
    ids: Annotated[list[int], typer.Argument(help="Document ids to remove.")],
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the library database."),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Remove documents and all their index data from the library."""
    cfg = load_cli_config()
    conn, repo = open_repo(resolve_db(db, cfg))
    try:
        docs = []
        for doc_id in ids:
            doc = repo.get_document(doc_id)
            if doc is None:
                console.print(err_not_found("document", doc_id))
                raise typer.Exit(1)
            docs.append(doc)

        chunk_count = sum(repo.count_chunks(d.id) for d in docs)
        console.print(f"\nRemove {len(docs)} document(s):")
        for doc in docs:
            console.print(f"  [bold]{escape(doc.name)}[/]  [dim]{escape(doc.path)}[/]")
        console.print(f"  Chunks: {chunk_count}")

        if not yes:
            if not typer.confirm("Confirm removal?", default=False):
                console.print("[dim]Cancelled.[/]")
                raise typer.Exit(0)

        removed = repo.delete_documents(d.id for d in docs)
        console.print(f"\n[green]✓[/] Removed {removed} document(s), {chunk_count} chunks deleted")
    finally:
        conn.close()


def prune_cmd(
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the library database."),
    ] = None,
) -> None:
    """Remove documents whose file no longer exists on disk."""
    cfg = load_cli_config()
    conn, repo = open_repo(resolve_db(db, cfg))
    try:
        removed = prune_missing(repo)
        if not removed:
            console.print("[green]✓[/] All document files are present.")
            return
        console.print(f"[green]✓[/] Pruned {len(removed)} missing document(s): "
                      + ", ".join(str(i) for i in removed))
    finally:
        conn.close()
