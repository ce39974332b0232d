"""Tests for grounded question answering."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from deepdocs.db.models import Chunk, Document
from deepdocs.errors import NotFound
from deepdocs.rag.answer import NO_SOURCES_ANSWER, answer, build_messages
from deepdocs.rag.retriever import search

QUESTION = "when does the lease end"
MODEL = "openai/gpt-4o-mini"


@pytest.fixture
def indexed(repo, fake_model):
    """Two documents: the lease (close to the question) and a recipe."""
    fake_model.vectors[QUESTION] = [1.0, 0.0]
    lease = repo.insert_document(Document(path="/docs/lease.pdf", name="lease.pdf"))
    recipe = repo.insert_document(Document(path="/docs/recipe.md", name="recipe.md"))
    repo.insert_chunk(Chunk(lease, 0, "The lease ends on 31 May 2026.", [0.9, 0.1]))
    repo.insert_chunk(Chunk(recipe, 0, "Whisk two eggs.", [0.1, 0.9]))
    return lease, recipe


def test_answer_cites_numbered_sources(repo, embedder, indexed):
    lease, recipe = indexed
    with patch("deepdocs.rag.answer.complete", return_value=" It ends on 31 May 2026 [1]. ") as mock:
        result = answer(QUESTION, repo, embedder, MODEL, top_k=2)

    assert result.text == "It ends on 31 May 2026 [1]."
    assert [s.idx for s in result.sources] == [1, 2]
    assert [s.document_id for s in result.sources] == [lease, recipe]
    assert result.sources[0].name == "lease.pdf"
    assert result.sources[0].path == "/docs/lease.pdf"

    kwargs = mock.call_args.kwargs
    assert kwargs["model"] == MODEL
    user_msg = kwargs["messages"][-1]["content"]
    assert "[1] lease.pdf" in user_msg
    assert "[2] recipe.md" in user_msg
    assert QUESTION in user_msg


def test_no_results_skips_llm(repo, embedder):
    with patch("deepdocs.rag.answer.complete") as mock:
        result = answer(QUESTION, repo, embedder, MODEL)
    mock.assert_not_called()
    assert result.text == NO_SOURCES_ANSWER
    assert result.sources == []


def test_empty_completion_falls_back(repo, embedder, indexed):
    with patch("deepdocs.rag.answer.complete", return_value="   "):
        result = answer(QUESTION, repo, embedder, MODEL)
    assert result.text == NO_SOURCES_ANSWER
    assert result.sources


def test_collection_scope(repo, embedder, indexed):
    lease, recipe = indexed
    coll = repo.create_collection("kitchen")
    repo.add_to_collection(coll.id, [recipe])
    with patch("deepdocs.rag.answer.complete", return_value="Not in the documents."):
        result = answer(QUESTION, repo, embedder, MODEL, collection_id=coll.id)
    assert [s.document_id for s in result.sources] == [recipe]


def test_unknown_collection_raises(repo, embedder, indexed):
    with patch("deepdocs.rag.answer.complete") as mock:
        with pytest.raises(NotFound):
            answer(QUESTION, repo, embedder, MODEL, collection_id=123)
    mock.assert_not_called()


def test_build_messages_has_system_rules(repo, embedder, indexed):
    results = search(QUESTION, repo, embedder, top_k=1)
    messages = build_messages(QUESTION, results)
    assert messages[0]["role"] == "system"
    assert "ONLY" in messages[0]["content"]
    assert messages[1]["content"].startswith("Sources:")
