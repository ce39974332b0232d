"""deepdocs collections CLI commands.

Commands:
  deepdocs collections create <name>         — new collection
  deepdocs collections list                  — all collections with member counts
  deepdocs collections show <id>             — members of one collection
  deepdocs collections update <id> ...       — rename / describe / recolor
  deepdocs collections delete <id>           — delete (documents are kept)
  deepdocs collections add <id> <doc>...     — add documents
  deepdocs collections drop <id> <doc>       — remove one document
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.errors import StyleSyntaxError
from rich.markup import escape
from rich.style import Style
from rich.table import Table
from rich.text import Text

from deepdocs.cli.common import console, load_cli_config, open_repo, resolve_db
from deepdocs.cli.errors import err_collection_not_found, err_invalid_config, err_not_found
from deepdocs.errors import InvalidConfiguration, NotFound

collections_app = typer.Typer(
    name="collections",
    help="Group documents into collections and search within them.",
    add_completion=False,
)

_DbOption = Annotated[
    Path | None,
    typer.Option("--db", help="Path to the library database."),
]


@collections_app.command("create")
def collections_create_cmd(
    name: Annotated[str, typer.Argument(help="Collection name.")],
    description: Annotated[str, typer.Option("--description", "-d")] = "",
    color: Annotated[str | None, typer.Option("--color", help="Display color, e.g. #3b82f6.")] = None,
    db: _DbOption = None,
) -> None:
    """Create a new, empty collection."""
    cfg = load_cli_config()
    conn, repo = open_repo(resolve_db(db, cfg), must_exist=False)
    try:
        try:
            coll = repo.create_collection(name, description=description, color=color)
        except InvalidConfiguration as exc:
            console.print(err_invalid_config(str(exc)))
            raise typer.Exit(1)
        console.print(f"[green]✓[/] Created collection {coll.id}: [bold]{escape(coll.name)}[/]")
    finally:
        conn.close()


@collections_app.command("list")
def collections_list_cmd(db: _DbOption = None) -> None:
    """List collections, newest first."""
    cfg = load_cli_config()
    conn, repo = open_repo(resolve_db(db, cfg))
    try:
        colls = repo.list_collections()
        if not colls:
            console.print(
                "[yellow]No collections yet.[/]\n"
                "  Create one with: deepdocs collections create <name>"
            )
            raise typer.Exit(0)

        table = Table(title="Collections", show_header=True, header_style="bold")
        table.add_column("ID", justify="right")
        table.add_column("Name", style="bold")
        table.add_column("Description")
        table.add_column("Documents", justify="right")
        table.add_column("Created")
        for c in colls:
            name = Text(c.name, style=_color_style(c.color))
            table.add_row(
                str(c.id),
                name,
                Text(c.description),
                str(len(repo.collection_document_ids(c.id))),
                c.created_at or "",
            )
        console.print(table)
    finally:
        conn.close()


@collections_app.command("show")
def collections_show_cmd(
    collection_id: Annotated[int, typer.Argument(help="Collection id.")],
    db: _DbOption = None,
) -> None:
    """Show the documents in a collection."""
    cfg = load_cli_config()
    conn, repo = open_repo(resolve_db(db, cfg))
    try:
        coll = repo.get_collection(collection_id)
        if coll is None:
            console.print(err_collection_not_found(collection_id))
            raise typer.Exit(1)
        docs = repo.list_collection_documents(collection_id)
        header = Text(coll.name, style="bold")
        if coll.description:
            header.append(f"  {coll.description}", style="dim")
        console.print(header)
        if not docs:
            console.print("  [dim](empty)[/]")
            return
        for doc in docs:
            console.print(f"  {doc.id:>4}  {escape(doc.name)}  [dim]{escape(doc.path)}[/]")
    finally:
        conn.close()


@collections_app.command("update")
def collections_update_cmd(
    collection_id: Annotated[int, typer.Argument(help="Collection id.")],
    name: Annotated[str | None, typer.Option("--name")] = None,
    description: Annotated[str | None, typer.Option("--description", "-d")] = None,
    color: Annotated[str | None, typer.Option("--color")] = None,
    db: _DbOption = None,
) -> None:
    """Change name, description or color; omitted fields keep their value."""
    cfg = load_cli_config()
    conn, repo = open_repo(resolve_db(db, cfg))
    try:
        try:
            coll = repo.update_collection(
                collection_id, name=name, description=description, color=color
            )
        except NotFound as exc:
            console.print(err_not_found(exc.kind, exc.ident))
            raise typer.Exit(1)
        except InvalidConfiguration as exc:
            console.print(err_invalid_config(str(exc)))
            raise typer.Exit(1)
        console.print(f"[green]✓[/] Updated collection {coll.id}: [bold]{escape(coll.name)}[/]")
    finally:
        conn.close()


@collections_app.command("delete")
def collections_delete_cmd(
    collection_id: Annotated[int, typer.Argument(help="Collection id.")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt.")] = False,
    db: _DbOption = None,
) -> None:
    """Delete a collection. Its documents stay in the library."""
    cfg = load_cli_config()
    conn, repo = open_repo(resolve_db(db, cfg))
    try:
        coll = repo.get_collection(collection_id)
        if coll is None:
            console.print(err_collection_not_found(collection_id))
            raise typer.Exit(1)
        if not yes and not typer.confirm(f"Delete collection '{coll.name}'?", default=False):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)
        repo.delete_collection(collection_id)
        console.print(f"[green]✓[/] Deleted collection: {escape(coll.name)}")
    finally:
        conn.close()


@collections_app.command("add")
def collections_add_cmd(
    collection_id: Annotated[int, typer.Argument(help="Collection id.")],
    document_ids: Annotated[list[int], typer.Argument(help="Document ids to add.")],
    db: _DbOption = None,
) -> None:
    """Add documents to a collection (already-present members are skipped)."""
    cfg = load_cli_config()
    conn, repo = open_repo(resolve_db(db, cfg))
    try:
        try:
            added = repo.add_to_collection(collection_id, document_ids)
        except NotFound as exc:
            console.print(err_not_found(exc.kind, exc.ident))
            raise typer.Exit(1)
        skipped = len(set(document_ids)) - added
        console.print(
            f"[green]✓[/] Added {added} document(s)"
            + (f"  [dim]({skipped} already in collection)[/]" if skipped else "")
        )
    finally:
        conn.close()


@collections_app.command("drop")
def collections_drop_cmd(
    collection_id: Annotated[int, typer.Argument(help="Collection id.")],
    document_id: Annotated[int, typer.Argument(help="Document id to remove from it.")],
    db: _DbOption = None,
) -> None:
    """Remove one document from a collection (the document itself is kept)."""
    cfg = load_cli_config()
    conn, repo = open_repo(resolve_db(db, cfg))
    try:
        if repo.get_collection(collection_id) is None:
            console.print(err_collection_not_found(collection_id))
            raise typer.Exit(1)
        if repo.remove_from_collection(collection_id, document_id):
            console.print(f"[green]✓[/] Removed document {document_id} from collection")
        else:
            console.print(f"[yellow]Document {document_id} is not in this collection.[/]")
    finally:
        conn.close()


def _color_style(color: str | None) -> Style | str:
    """Style for a collection's display color; unknown colors render plain."""
    if not color:
        return ""
    try:
        return Style.parse(color)
    except StyleSyntaxError:
        return ""
