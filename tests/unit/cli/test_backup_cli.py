"""Tests for deepdocs export-db / import-db."""

from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from deepdocs.cli.main import app
from deepdocs.db.repository import Repository
from deepdocs.db.schema import open_db

runner = CliRunner()


@pytest.fixture
def db(cli_env: Path) -> Path:
    docs = cli_env / "docs"
    docs.mkdir()
    (docs / "a.txt").write_text("aaa", encoding="utf-8")
    (docs / "b.txt").write_text("bbb", encoding="utf-8")
    db = cli_env / "lib.db"
    result = runner.invoke(app, ["add", str(docs), "--db", str(db)])
    assert result.exit_code == 0, result.output
    return db


def _doc_names(db: Path) -> list[str]:
    conn = open_db(db)
    try:
        return [d.name for d in Repository(conn).list_documents()]
    finally:
        conn.close()


def test_export_then_import_round_trip(db, cli_env):
    backup = cli_env / "backup.db"
    result = runner.invoke(app, ["export-db", str(backup), "--db", str(db)])
    assert result.exit_code == 0, result.output
    assert "exported" in result.output

    restored = cli_env / "restored.db"
    result = runner.invoke(app, ["import-db", str(backup), "--db", str(restored)])
    assert result.exit_code == 0, result.output
    assert "Restored 2 document(s)" in result.output
    assert _doc_names(restored) == ["a.txt", "b.txt"]


def test_export_existing_target_needs_force(db, cli_env):
    backup = cli_env / "backup.db"
    backup.write_text("old", encoding="utf-8")
    result = runner.invoke(app, ["export-db", str(backup), "--db", str(db)])
    assert result.exit_code == 1
    assert "--force" in result.output

    result = runner.invoke(app, ["export-db", str(backup), "--db", str(db), "--force"])
    assert result.exit_code == 0, result.output


def test_export_without_library_exits_1(cli_env):
    result = runner.invoke(app, ["export-db", "out.db", "--db", str(cli_env / "missing.db")])
    assert result.exit_code == 1
    assert "No database found" in result.output


def test_import_asks_before_replacing(db, cli_env):
    backup = cli_env / "backup.db"
    runner.invoke(app, ["export-db", str(backup), "--db", str(db)])
    result = runner.invoke(app, ["import-db", str(backup), "--db", str(db)], input="n\n")
    assert result.exit_code == 0
    assert "Cancelled" in result.output


def test_import_invalid_file_exits_1(db, cli_env):
    bogus = cli_env / "bogus.db"
    bogus.write_text("not a database " * 100, encoding="utf-8")
    result = runner.invoke(app, ["import-db", str(bogus), "--db", str(db), "--yes"])
    assert result.exit_code == 1
    assert "Cannot restore" in result.output
    assert _doc_names(db) == ["a.txt", "b.txt"]
