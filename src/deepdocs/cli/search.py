"""deepdocs search / ask — query the library.

  deepdocs search "tax return 2023"
  deepdocs search "invoice" --collection 2 --top-k 10
  deepdocs ask "When does my lease end?"
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from deepdocs.cli.common import console, load_cli_config, make_embedder, open_repo, resolve_db
from deepdocs.cli.errors import (
    err_embedding_failure,
    err_generation_failure,
    err_invalid_config,
    err_no_api_key,
    err_not_found,
    warn_unindexed,
)
from deepdocs.db.repository import Repository
from deepdocs.errors import EmbeddingFailure, GenerationFailure, InvalidConfiguration, NotFound
from deepdocs.rag.answer import answer
from deepdocs.rag.llm_client import provider_of, validate_api_key
from deepdocs.rag.retriever import search, search_in_collection


def search_cmd(
    query: Annotated[str, typer.Argument(help="What you are looking for, in plain words.")],
    top_k: Annotated[
        int | None,
        typer.Option("--top-k", "-k", help="Maximum number of documents to show."),
    ] = None,
    collection: Annotated[
        int | None,
        typer.Option("--collection", "-c", help="Only search documents in this collection."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the library database."),
    ] = None,
) -> None:
    """Semantic search: rank documents by their best-matching passage."""
    cfg = load_cli_config()
    k = top_k if top_k is not None else cfg.retrieval.top_k
    conn, repo = open_repo(resolve_db(db, cfg))
    try:
        embedder = make_embedder(cfg)
        try:
            if collection is not None:
                results = search_in_collection(
                    collection, query, repo, embedder,
                    top_k=k, snippet_chars=cfg.retrieval.snippet_chars,
                )
            else:
                results = search(
                    query, repo, embedder,
                    top_k=k, snippet_chars=cfg.retrieval.snippet_chars,
                )
        except NotFound as exc:
            console.print(err_not_found(exc.kind, exc.ident))
            raise typer.Exit(1)
        except EmbeddingFailure as exc:
            console.print(err_embedding_failure(str(exc)))
            raise typer.Exit(1)
        except InvalidConfiguration as exc:
            console.print(err_invalid_config(str(exc)))
            raise typer.Exit(1)

        if not results:
            console.print("[yellow]No matching documents.[/]")
            _hint_unindexed(repo)
            raise typer.Exit(0)

        table = Table(title=f"Results for “{escape(query)}”", show_header=True, header_style="bold")
        table.add_column("#", justify="right")
        table.add_column("Score", justify="right")
        table.add_column("Document", style="bold")
        table.add_column("Snippet", overflow="fold")
        for i, r in enumerate(results, start=1):
            doc_cell = Text.assemble(r.document.name, "\n", (r.document.path, "dim"))
            table.add_row(str(i), f"{r.score:.3f}", doc_cell, Text(r.snippet))
        console.print(table)
        _hint_unindexed(repo)
    finally:
        conn.close()


def ask_cmd(
    question: Annotated[str, typer.Argument(help="Question about your documents.")],
    top_k: Annotated[
        int | None,
        typer.Option("--top-k", "-k", help="Number of documents used as sources."),
    ] = None,
    collection: Annotated[
        int | None,
        typer.Option("--collection", "-c", help="Only use documents in this collection."),
    ] = None,
    model: Annotated[
        str | None,
        typer.Option("--model", help="LiteLLM model string (overrides generation.model)."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the library database."),
    ] = None,
) -> None:
    """Answer a question using only your documents, with numbered sources."""
    cfg = load_cli_config()
    llm_model = model or cfg.generation.model
    try:
        validate_api_key(llm_model)
    except EnvironmentError:
        console.print(err_no_api_key(provider_of(llm_model)))
        raise typer.Exit(1)

    conn, repo = open_repo(resolve_db(db, cfg))
    try:
        try:
            result = answer(
                question,
                repo,
                make_embedder(cfg),
                llm_model,
                top_k=top_k if top_k is not None else cfg.retrieval.top_k,
                collection_id=collection,
                max_tokens=cfg.generation.max_tokens,
            )
        except NotFound as exc:
            console.print(err_not_found(exc.kind, exc.ident))
            raise typer.Exit(1)
        except EmbeddingFailure as exc:
            console.print(err_embedding_failure(str(exc)))
            raise typer.Exit(1)
        except GenerationFailure as exc:
            console.print(err_generation_failure(str(exc)))
            raise typer.Exit(1)
        except InvalidConfiguration as exc:
            console.print(err_invalid_config(str(exc)))
            raise typer.Exit(1)

        console.print(Panel(Text(result.text), title="Answer", border_style="green"))
        if result.sources:
            console.print("[bold]Sources[/]")
            for src in result.sources:
                console.print(
                    f"  \\[{src.idx}] {escape(src.name)}  [dim]{escape(src.path)}  ({src.score:.3f})[/]"
                )
    finally:
        conn.close()


def _hint_unindexed(repo: Repository) -> None:
    missing = sum(1 for d in repo.list_documents() if not repo.has_chunks(d.id))
    if missing:
        console.print(warn_unindexed(missing))
