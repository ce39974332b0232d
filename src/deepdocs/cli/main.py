"""deepdocs CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Annotated

import typer
from rich.logging import RichHandler

from deepdocs.cli.backup import export_db_cmd, import_db_cmd
from deepdocs.cli.collections import collections_app
from deepdocs.cli.common import console
from deepdocs.cli.docs import docs_app
from deepdocs.cli.ingest import add_cmd, index_cmd
from deepdocs.cli.remove import prune_cmd, remove_cmd
from deepdocs.cli.search import ask_cmd, search_cmd
from deepdocs.cli.status import status_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("deepdocs")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"deepdocs {_installed_version()}")
        raise typer.Exit()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # Model downloads and HTTP retries are noisy below WARNING.
    for name in ("sentence_transformers", "httpx", "LiteLLM"):
        logging.getLogger(name).setLevel(logging.WARNING)


app = typer.Typer(
    name="deepdocs",
    help=(
        "deepdocs — personal document manager with local semantic search.\n\n"
        "  deepdocs add      Register files and index them.\n"
        "  deepdocs search   Find documents by meaning, not keywords.\n"
        "  deepdocs ask      Answer a question from your documents."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging."),
    ] = False,
) -> None:
    """deepdocs — personal document manager with local semantic search."""
    _setup_logging(verbose)


app.command("add")(add_cmd)
app.command("index")(index_cmd)
app.command("search")(search_cmd)
app.command("ask")(ask_cmd)
app.command("remove")(remove_cmd)
app.command("prune")(prune_cmd)
app.command("status")(status_cmd)
app.command("export-db")(export_db_cmd)
app.command("import-db")(import_db_cmd)
app.add_typer(docs_app, name="docs")
app.add_typer(collections_app, name="collections")


@app.command("version")
def version_cmd() -> None:
    """Show the installed deepdocs version."""
    typer.echo(f"deepdocs {_installed_version()}")


if __name__ == "__main__":
    app()
