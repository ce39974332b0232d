"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from deepdocs.db.connection import Database
from deepdocs.db.repository import Repository
from deepdocs.db.schema import initialize


class FakeModel:
    """Stand-in for a SentenceTransformer.

    Maps text to a 3-d vector by counting the letters a, b and c. Texts in
    *vectors* get a fixed vector instead.
    """

    def __init__(self, vectors: dict[str, list[float]] | None = None) -> None:
        self.vectors = vectors or {}
        self.calls: list[list[str]] = []

    def encode(self, texts, batch_size=32, normalize_embeddings=False, show_progress_bar=False):
        self.calls.append(list(texts))
        out = []
        for t in texts:
            if t in self.vectors:
                out.append(list(self.vectors[t]))
            else:
                low = t.lower()
                out.append([float(low.count("a")), float(low.count("b")), float(low.count("c")) + 0.1])
        return out


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".deepdocs.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def repo(tmp_db):
    return Repository(tmp_db)


@pytest.fixture
def fake_model():
    return FakeModel()


@pytest.fixture
def embedder(fake_model):
    """EmbeddingProvider backed by FakeModel (no model download)."""
    from deepdocs.ingest.embedder import EmbeddingProvider

    return EmbeddingProvider("fake-model", loader=lambda name: fake_model)


@pytest.fixture
def cli_env(tmp_path, monkeypatch, embedder):
    """Run CLI commands inside tmp_path with no user config and the fake model."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("deepdocs.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml")
    for var in ("DEEPDOCS_GENERATION_MODEL", "DEEPDOCS_EMBEDDING_MODEL", "DEEPDOCS_DB"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr(
        "deepdocs.cli.common.get_embedding_provider", lambda *args, **kwargs: embedder
    )
    return tmp_path
