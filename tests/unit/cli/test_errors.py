"""Tests for deepdocs rich error messages."""

from __future__ import annotations

import pytest

from deepdocs.cli.errors import (
    err_collection_not_found,
    err_document_not_found,
    err_embedding_failure,
    err_generation_failure,
    err_invalid_backup,
    err_invalid_config,
    err_no_api_key,
    err_no_db,
    err_not_found,
    warn_unindexed,
)


def _has_action(msg: str) -> bool:
    """Every error must contain a cause AND an actionable instruction."""
    lower = msg.lower()
    return any(kw in lower for kw in ["run:", "set:", "export ", "deepdocs ", "fix ", "check "])


def test_err_no_api_key_contains_env_var() -> None:
    assert "OPENAI_API_KEY" in err_no_api_key("openai")
    assert "ANTHROPIC_API_KEY" in err_no_api_key("Anthropic")


def test_err_no_api_key_unknown_provider_fallback() -> None:
    assert "MYPROVIDER_API_KEY" in err_no_api_key("myprovider")


def test_err_no_db_mentions_path() -> None:
    assert "lib.db" in err_no_db("lib.db")


def test_err_not_found_dispatch() -> None:
    assert err_not_found("collection", 3) == err_collection_not_found(3)
    assert err_not_found("document", 3) == err_document_not_found(3)


@pytest.mark.parametrize(
    "msg",
    [
        err_no_api_key("openai"),
        err_no_db(),
        err_document_not_found(1),
        err_collection_not_found(1),
        err_embedding_failure("boom"),
        err_generation_failure("timeout"),
        err_invalid_backup("x.db is not a deepdocs library"),
        err_invalid_config("bad"),
        warn_unindexed(2),
    ],
)
def test_every_message_has_action(msg: str) -> None:
    assert _has_action(msg)
