"""deepdocs export-db / import-db — copy the whole library in or out.

  deepdocs export-db ~/backups/docs-2024-05.db
  deepdocs import-db ~/backups/docs-2024-05.db --yes

Only the database is copied: document files stay where they are and are
referenced by absolute path.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape

from deepdocs.cli.common import console, load_cli_config, resolve_db
from deepdocs.cli.errors import err_invalid_backup, err_no_db
from deepdocs.db.backup import export_database, import_database, validate_backup
from deepdocs.errors import InvalidBackup


def export_db_cmd(
    target: Annotated[Path, typer.Argument(help="File to write the backup to.")],
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the library database."),
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite TARGET if it exists."),
    ] = False,
) -> None:
    """Write a standalone copy of the library database."""
    cfg = load_cli_config()
    db_path = resolve_db(db, cfg)
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)
    try:
        written = export_database(db_path, target, overwrite=force)
    except FileExistsError:
        console.print(
            f"[red]Error:[/] '{escape(str(target))}' already exists.\n"
            "  Pick another path or pass --force to overwrite it."
        )
        raise typer.Exit(1)
    console.print(f"[green]✓[/] Library exported to {escape(str(written))}")


def import_db_cmd(
    source: Annotated[Path, typer.Argument(help="Backup file written by export-db.")],
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the library database."),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Replace the library database with a backup."""
    cfg = load_cli_config()
    db_path = resolve_db(db, cfg)
    try:
        validate_backup(source)
    except InvalidBackup as exc:
        console.print(err_invalid_backup(str(exc)))
        raise typer.Exit(1)

    if db_path.exists() and not yes:
        console.print(f"This replaces every document and collection in {escape(str(db_path))}.")
        if not typer.confirm("Restore the backup?", default=False):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)

    try:
        count = import_database(source, db_path)
    except InvalidBackup as exc:
        console.print(err_invalid_backup(str(exc)))
        raise typer.Exit(1)
    console.print(f"[green]✓[/] Restored {count} document(s) into {escape(str(db_path))}")
