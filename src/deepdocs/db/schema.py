"""Database schema initialization."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from deepdocs.db.connection import Database

CURRENT_VERSION = 1


def initialize(conn: sqlite3.Connection) -> None:
    """Initialize the database schema via the migration runner (idempotent)."""
    from deepdocs.db.migrations import run_migrations

    run_migrations(conn)


def open_db(db_path: Path | str) -> sqlite3.Connection:
    """Open (or create) the library database and run migrations."""
    conn = Database(db_path).connect()
    initialize(conn)
    return conn
