"""deepdocs status command.

Shows a library overview: database, embedding model, documents by index
status and collections.
"""

from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape
from rich.panel import Panel

from deepdocs.cli.common import console, make_pipeline, open_repo, resolve_db
from deepdocs.config import ConfigError, DeepDocsConfig, load_config
from deepdocs.db.models import IndexStatus
from deepdocs.db.repository import Repository


def status_cmd(
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the library database."),
    ] = None,
) -> None:
    """Show library status: documents, index state and collections."""
    # status works even with a broken deepdocs.yaml
    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(f"[yellow]Config ignored:[/] {escape(str(exc))}")
        cfg = DeepDocsConfig()

    db_path = resolve_db(db, cfg)
    _show_library_panel(db_path, cfg)

    if not db_path.exists():
        console.print(
            Panel(
                "[yellow]No database found.[/]\n"
                "  Run:  deepdocs add <file-or-folder>",
                title="[bold]Documents[/]",
                expand=False,
            )
        )
        return

    conn, repo = open_repo(db_path)
    try:
        _show_documents_panel(repo, cfg)
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Panel renderers
# ---------------------------------------------------------------------------


def _show_library_panel(db_path: Path, cfg: DeepDocsConfig) -> None:
    db_info = escape(str(db_path))
    if db_path.exists():
        size_mb = db_path.stat().st_size / (1024 * 1024)
        db_info = f"{escape(str(db_path))} ({size_mb:.1f} MB)"
    lines = [
        f"Database:   {db_info}",
        f"Embedding:  {escape(cfg.embedding.model)}",
        f"Chunking:   {cfg.chunking.size} chars, overlap {cfg.chunking.overlap}",
        f"Answers:    {escape(cfg.generation.model)}",
    ]
    console.print(Panel("\n".join(lines), title="[bold]Library[/]", expand=False))


def _show_documents_panel(repo: Repository, cfg: DeepDocsConfig) -> None:
    docs = repo.list_documents()
    pipeline = make_pipeline(repo, cfg)
    counts = Counter(pipeline.index_status(d) for d in docs)
    missing = sum(1 for d in docs if not Path(d.path).exists())
    collections = repo.list_collections()

    lines = [
        f"Documents: [bold]{len(docs)}[/]  |  Chunks: [bold]{repo.count_chunks():,}[/]",
        f"  [green]✓[/] indexed      {counts[IndexStatus.INDEXED]}",
        f"  [yellow]~[/] stale        {counts[IndexStatus.STALE]}",
        f"  [red]✗[/] not indexed  {counts[IndexStatus.NOT_INDEXED]}",
        f"Collections: [bold]{len(collections)}[/]",
    ]
    if counts[IndexStatus.STALE] or counts[IndexStatus.NOT_INDEXED]:
        lines.append("\n  Run:  deepdocs index")
    if missing:
        lines.append(f"  [yellow]{missing} file(s) missing on disk.[/] Run:  deepdocs prune")

    console.print(Panel("\n".join(lines), title="[bold]Documents[/]", expand=False))
