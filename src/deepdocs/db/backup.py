"""Whole-library backup and restore.

Both directions use SQLite's online backup API, so a consistent snapshot is
taken even while the library is open elsewhere (WAL pages included).

  export_database(db, target)   library → standalone backup file
  import_database(source, db)   backup file → library (replaces it)

Restoring validates the backup first: it must be an SQLite file with the
deepdocs tables and a schema version this build understands. Older backups
are migrated forward after the copy.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from deepdocs.db.connection import Database
from deepdocs.db.schema import CURRENT_VERSION, initialize
from deepdocs.errors import InvalidBackup

logger = logging.getLogger(__name__)

REQUIRED_TABLES = frozenset(
    {"schema_version", "documents", "document_chunks", "collections", "collection_documents"}
)


def export_database(db_path: Path | str, target: Path | str, overwrite: bool = False) -> Path:
    """Copy the library at *db_path* into a new file at *target*.

    Raises:
        FileNotFoundError: If *db_path* does not exist.
        FileExistsError: If *target* exists and *overwrite* is False.
    """
    db_path, target = Path(db_path), Path(target)
    if not db_path.exists():
        raise FileNotFoundError(db_path)
    if target.exists():
        if not overwrite:
            raise FileExistsError(target)
        target.unlink()

    src = Database(db_path).connect()
    try:
        dest = sqlite3.connect(target)
        try:
            src.backup(dest)
            # A backup file should be self-contained, not depend on a -wal sidecar.
            dest.execute("PRAGMA journal_mode = DELETE")
        finally:
            dest.close()
    finally:
        src.close()
    logger.info("Exported %s to %s", db_path, target)
    return target


def validate_backup(source: Path | str) -> int:
    """Check that *source* is a deepdocs database; return its schema version.

    Raises:
        InvalidBackup: If the file is missing, not SQLite, lacks deepdocs
            tables, or was written by a newer schema.
    """
    source = Path(source)
    if not source.is_file():
        raise InvalidBackup(f"{source} does not exist")
    try:
        conn = sqlite3.connect(_read_only_uri(source), uri=True)
    except sqlite3.Error as exc:
        raise InvalidBackup(f"{source}: {exc}") from exc
    try:
        tables = {
            row[0]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
        }
        missing = REQUIRED_TABLES - tables
        if missing:
            raise InvalidBackup(
                f"{source} is not a deepdocs library (missing: {', '.join(sorted(missing))})"
            )
        version = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()[0] or 0
    except sqlite3.DatabaseError as exc:
        raise InvalidBackup(f"{source} is not an SQLite database: {exc}") from exc
    finally:
        conn.close()

    if version > CURRENT_VERSION:
        raise InvalidBackup(
            f"{source} uses schema version {version}; this deepdocs supports {CURRENT_VERSION}"
        )
    return version


def import_database(source: Path | str, db_path: Path | str) -> int:
    """Replace the library at *db_path* with the backup at *source*.

    The library file is created if needed. Its previous content is
    overwritten page by page in one backup step.

    Returns:
        Number of documents in the restored library.

    Raises:
        InvalidBackup: If *source* fails validation; *db_path* is untouched.
    """
    source, db_path = Path(source), Path(db_path)
    validate_backup(source)
    if source.resolve() == db_path.resolve():
        raise InvalidBackup(f"{source} is the library itself")

    src = sqlite3.connect(_read_only_uri(source), uri=True)
    try:
        dest = Database(db_path).connect()
        try:
            src.backup(dest)
            initialize(dest)
            count = dest.execute("SELECT COUNT(*) FROM documents").fetchone()[0]
        finally:
            dest.close()
    finally:
        src.close()
    logger.info("Restored %s from %s (%d documents)", db_path, source, count)
    return count


def _read_only_uri(path: Path) -> str:
    return f"{path.resolve().as_uri()}?mode=ro"
