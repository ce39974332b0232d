"""deepdocs rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from deepdocs.cli.errors import err_no_db
    console.print(err_no_db(".deepdocs.db"))
    raise typer.Exit(1)
"""

from __future__ import annotations

from rich.markup import escape


def err_no_api_key(provider: str) -> str:
    """No API key for *provider*.

    Example:
        No API key for 'openai'. Set:  export OPENAI_API_KEY=sk-...
    """
    return (
        f"[red]Error:[/] No API key for '{escape(provider)}'.\n"
        f"  Set:  export {provider.upper()}_API_KEY=sk-...\n"
        "  Or use a local model:  export DEEPDOCS_GENERATION_MODEL=ollama/llama3"
    )


def err_no_db(db_path: str = ".deepdocs.db") -> str:
    """No library database at *db_path*."""
    return (
        f"[red]Error:[/] No database found at '{escape(db_path)}'.\n"
        "  Run:  deepdocs add <file-or-folder>"
    )


def err_document_not_found(document_id: object) -> str:
    return (
        f"[red]Error:[/] Document {document_id} not found.\n"
        "  List documents with:  deepdocs docs list"
    )


def err_collection_not_found(collection_id: object) -> str:
    return (
        f"[red]Error:[/] Collection {collection_id} not found.\n"
        "  List collections with:  deepdocs collections list"
    )


def err_not_found(kind: str, ident: object) -> str:
    """Dispatch a NotFound error to the matching message."""
    if kind == "collection":
        return err_collection_not_found(ident)
    return err_document_not_found(ident)


def err_embedding_failure(detail: str) -> str:
    """The local embedding model could not be loaded or failed."""
    return (
        f"[red]Error:[/] Embedding failed: {escape(detail)}\n"
        "  Check that sentence-transformers is installed and the model name in\n"
        "  deepdocs.yaml (embedding.model) is correct. The first run downloads the model."
    )


def err_generation_failure(detail: str) -> str:
    """The answer model could not be reached or refused the request."""
    return (
        f"[red]Error:[/] Answer generation failed: {escape(detail)}\n"
        "  Check your network and API key, or pick another model with --model."
    )


def err_invalid_backup(detail: str) -> str:
    """A restore source failed validation; the library was left as it was."""
    return (
        f"[red]Error:[/] Cannot restore: {escape(detail)}\n"
        "  Pass a file written by:  deepdocs export-db <path>"
    )


def err_invalid_config(detail: str) -> str:
    return (
        f"[red]Error:[/] Invalid configuration: {escape(detail)}\n"
        "  Fix deepdocs.yaml or ~/.deepdocs/config.yaml and try again."
    )


def warn_unindexed(count: int) -> str:
    """Some documents have no chunks yet, so search cannot find them."""
    return (
        f"[yellow]Note:[/] {count} document(s) are not indexed yet.\n"
        "  Run:  deepdocs index"
    )
