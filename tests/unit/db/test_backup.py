"""Tests for library export / import."""

from __future__ import annotations

import sqlite3

import pytest

from deepdocs.db.backup import export_database, import_database, validate_backup
from deepdocs.db.models import Chunk, Document
from deepdocs.db.repository import Repository
from deepdocs.db.schema import CURRENT_VERSION, open_db
from deepdocs.errors import InvalidBackup


@pytest.fixture
def library(tmp_path):
    """A closed library file with two documents, a chunk and a collection."""
    path = tmp_path / "library.db"
    conn = open_db(path)
    repo = Repository(conn)
    a = repo.insert_document(Document(path="/docs/a.txt", name="a.txt", category="tax"))
    b = repo.insert_document(Document(path="/docs/b.txt", name="b.txt"))
    repo.insert_chunk(Chunk(document_id=a, chunk_index=0, text="aaa", embedding=[1.0, 0.0]))
    coll = repo.create_collection("Tax")
    repo.add_to_collection(coll.id, [a, b])
    conn.close()
    return path


def _count(path, table: str) -> int:
    conn = sqlite3.connect(path)
    try:
        return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
    finally:
        conn.close()


def test_export_writes_standalone_copy(library, tmp_path):
    target = tmp_path / "backup.db"
    assert export_database(library, target) == target
    assert _count(target, "documents") == 2
    assert _count(target, "document_chunks") == 1
    assert _count(target, "collection_documents") == 2
    assert not (tmp_path / "backup.db-wal").exists()


def test_export_of_open_library_sees_committed_rows(tmp_db, tmp_path):
    Repository(tmp_db).insert_document(Document(path="/x.txt", name="x.txt"))
    target = tmp_path / "backup.db"
    export_database(tmp_path / ".deepdocs.db", target)
    assert _count(target, "documents") == 1


def test_export_refuses_to_overwrite(library, tmp_path):
    target = tmp_path / "backup.db"
    target.write_text("keep me", encoding="utf-8")
    with pytest.raises(FileExistsError):
        export_database(library, target)
    assert target.read_text(encoding="utf-8") == "keep me"


def test_export_overwrite(library, tmp_path):
    target = tmp_path / "backup.db"
    target.write_text("old", encoding="utf-8")
    export_database(library, target, overwrite=True)
    assert _count(target, "documents") == 2


def test_export_missing_library(tmp_path):
    with pytest.raises(FileNotFoundError):
        export_database(tmp_path / "nope.db", tmp_path / "backup.db")


def test_import_replaces_library(library, tmp_path):
    backup = export_database(library, tmp_path / "backup.db")

    other = tmp_path / "other.db"
    conn = open_db(other)
    Repository(conn).insert_document(Document(path="/other/z.txt", name="z.txt"))
    conn.close()

    assert import_database(backup, other) == 2

    conn = open_db(other)
    try:
        repo = Repository(conn)
        names = [d.name for d in repo.list_documents()]
        assert names == ["a.txt", "b.txt"]
        assert repo.get_document_by_path("/other/z.txt") is None
        assert repo.count_chunks() == 1
        assert [c.name for c in repo.list_collections()] == ["Tax"]
    finally:
        conn.close()


def test_import_creates_missing_library(library, tmp_path):
    backup = export_database(library, tmp_path / "backup.db")
    fresh = tmp_path / "sub-fresh.db"
    assert import_database(backup, fresh) == 2
    assert _count(fresh, "documents") == 2


def test_validate_returns_schema_version(library):
    assert validate_backup(library) == CURRENT_VERSION


def test_validate_rejects_missing_file(tmp_path):
    with pytest.raises(InvalidBackup, match="does not exist"):
        validate_backup(tmp_path / "nope.db")


def test_validate_rejects_non_sqlite_file(tmp_path):
    bogus = tmp_path / "notes.db"
    bogus.write_text("this is not a database, just some text " * 50, encoding="utf-8")
    with pytest.raises(InvalidBackup, match="not an SQLite database"):
        validate_backup(bogus)


def test_validate_rejects_foreign_sqlite_file(tmp_path):
    foreign = tmp_path / "foreign.db"
    conn = sqlite3.connect(foreign)
    conn.execute("CREATE TABLE notes (id INTEGER PRIMARY KEY, body TEXT)")
    conn.commit()
    conn.close()
    with pytest.raises(InvalidBackup, match="not a deepdocs library"):
        validate_backup(foreign)


def test_validate_rejects_newer_schema(library):
    conn = sqlite3.connect(library)
    conn.execute("INSERT INTO schema_version (version) VALUES (?)", (CURRENT_VERSION + 1,))
    conn.commit()
    conn.close()
    with pytest.raises(InvalidBackup, match="schema version"):
        validate_backup(library)


def test_import_invalid_backup_leaves_library_untouched(library, tmp_path):
    bogus = tmp_path / "bogus.db"
    bogus.write_text("garbage " * 100, encoding="utf-8")
    with pytest.raises(InvalidBackup):
        import_database(bogus, library)
    assert _count(library, "documents") == 2


def test_import_library_onto_itself_rejected(library):
    with pytest.raises(InvalidBackup, match="library itself"):
        import_database(library, library)
