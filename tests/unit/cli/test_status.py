"""Tests for deepdocs status command."""

from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from deepdocs.cli.main import app

runner = CliRunner()


def test_status_without_db(cli_env: Path) -> None:
    result = runner.invoke(app, ["status", "--db", str(cli_env / "none.db")])
    assert result.exit_code == 0
    assert "No database found" in result.output
    assert "all-MiniLM-L6-v2" in result.output


def test_status_counts_documents(cli_env: Path) -> None:
    docs = cli_env / "docs"
    docs.mkdir()
    (docs / "a.txt").write_text("aaa", encoding="utf-8")
    (docs / "b.txt").write_text("bbb", encoding="utf-8")
    db = cli_env / "lib.db"
    runner.invoke(app, ["add", str(docs / "a.txt"), "--db", str(db)])
    runner.invoke(app, ["add", str(docs / "b.txt"), "--no-index", "--db", str(db)])
    (docs / "a.txt").unlink()

    result = runner.invoke(app, ["status", "--db", str(db)])

    assert result.exit_code == 0, result.output
    assert "Documents: 2" in result.output
    assert "not indexed  1" in result.output
    assert "1 file(s) missing on disk" in result.output
    assert "deepdocs index" in result.output


def test_status_tolerates_broken_config(cli_env: Path) -> None:
    (cli_env / "deepdocs.yaml").write_text("chunking: [oops\n", encoding="utf-8")
    result = runner.invoke(app, ["status", "--db", str(cli_env / "none.db")])
    assert result.exit_code == 0
    assert "Config ignored" in result.output
