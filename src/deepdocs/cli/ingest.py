"""deepdocs add / index — register files and build their embeddings.

  deepdocs add ~/Papers notes.md        register + index new files
  deepdocs add ~/Papers --no-index      register only
  deepdocs index                        (re)index every document that needs it
  deepdocs index 3 7 --workers 2        index selected documents
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from deepdocs.cli.common import console, load_cli_config, make_pipeline, open_repo, resolve_db
from deepdocs.cli.errors import err_embedding_failure, err_invalid_config, err_not_found
from deepdocs.db.repository import Repository
from deepdocs.errors import EmbeddingFailure, InvalidConfiguration, NotFound
from deepdocs.ingest.pipeline import IndexingPipeline, IndexReport
from deepdocs.ingest.scanner import add_paths


def add_cmd(
    paths: Annotated[
        list[Path],
        typer.Argument(help="Files or folders to add (folders are scanned recursively)."),
    ],
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the library database (created if missing)."),
    ] = None,
    exclude: Annotated[
        list[str] | None,
        typer.Option("--exclude", help="Glob pattern to skip (repeatable)."),
    ] = None,
    no_index: Annotated[
        bool,
        typer.Option("--no-index", help="Register files without extracting or embedding."),
    ] = False,
    workers: Annotated[
        int,
        typer.Option("--workers", "-w", min=1, help="Documents indexed in parallel."),
    ] = 2,
) -> None:
    """Add files to the library and index them for semantic search."""
    cfg = load_cli_config()
    conn, repo = open_repo(resolve_db(db, cfg), must_exist=False)
    try:
        added = add_paths(repo, paths, exclude=exclude or [])
        if not added:
            console.print("[yellow]No new files found.[/]")
            raise typer.Exit(0)
        console.print(f"[green]✓[/] Added {len(added)} document(s)")

        if no_index:
            return
        pipeline = _pipeline_or_exit(repo, cfg)
        report = _run_indexing(pipeline, [d.id for d in added], workers)
        _print_report(report, repo)
        if report.failed:
            raise typer.Exit(1)
    finally:
        conn.close()


def index_cmd(
    ids: Annotated[
        list[int] | None,
        typer.Argument(help="Document ids to index (default: all documents)."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the library database."),
    ] = None,
    workers: Annotated[
        int,
        typer.Option("--workers", "-w", min=1, help="Documents indexed in parallel."),
    ] = 2,
) -> None:
    """Chunk and embed documents that are new or changed on disk."""
    cfg = load_cli_config()
    conn, repo = open_repo(resolve_db(db, cfg))
    try:
        if ids:
            for doc_id in ids:
                if repo.get_document(doc_id) is None:
                    console.print(err_not_found("document", doc_id))
                    raise typer.Exit(1)
            targets = list(ids)
        else:
            targets = [d.id for d in repo.list_documents()]

        if not targets:
            console.print("[yellow]Library is empty.[/] Add files with: deepdocs add <path>")
            raise typer.Exit(0)

        pipeline = _pipeline_or_exit(repo, cfg)
        report = _run_indexing(pipeline, targets, workers)
        _print_report(report, repo)
        if report.failed:
            raise typer.Exit(1)
    finally:
        conn.close()


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _pipeline_or_exit(repo: Repository, cfg) -> IndexingPipeline:
    try:
        return make_pipeline(repo, cfg)
    except InvalidConfiguration as exc:
        console.print(err_invalid_config(str(exc)))
        raise typer.Exit(1)


def _run_indexing(pipeline: IndexingPipeline, ids: list[int], workers: int) -> IndexReport:
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        transient=True,
        console=console,
    ) as prog:
        task = prog.add_task("Indexing…", total=len(ids))

        def _on_done(_doc_id: int, _written: int | None) -> None:
            prog.advance(task)

        return pipeline.ensure_indexed_many(ids, workers=workers, on_done=_on_done)


def _print_report(report: IndexReport, repo: Repository) -> None:
    indexed = sum(1 for n in report.written.values() if n > 0)
    skipped = len(report.written) - indexed
    console.print(
        f"[green]✓[/] Indexed {indexed} document(s), {report.total_chunks} chunks"
        + (f"  [dim]({skipped} unchanged or without text)[/]" if skipped else "")
    )
    for doc_id, exc in sorted(report.failed.items()):
        doc = repo.get_document(doc_id)
        label = escape(doc.name) if doc else f"#{doc_id}"
        if isinstance(exc, EmbeddingFailure):
            console.print(f"  [red]✗[/] {label}")
            console.print(err_embedding_failure(str(exc)))
        elif isinstance(exc, NotFound):
            console.print(err_not_found(exc.kind, exc.ident))
        else:
            console.print(f"  [red]✗[/] {label}: {escape(str(exc))}")
