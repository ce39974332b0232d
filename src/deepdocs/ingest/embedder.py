"""Local embedding provider — sentence-transformers, lazily loaded once.

The model is mean-pooled and its output L2-normalised
(``normalize_embeddings=True``); callers must not re-normalise.
Loading takes seconds, so it happens on first use and at most once per
provider, guarded by a lock with double-checked acquisition.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from typing import Any

from deepdocs.errors import EmbeddingFailure

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "sentence-transformers/all-MiniLM-L6-v2"


def _load_sentence_transformer(model_name: str) -> Any:
    from sentence_transformers import SentenceTransformer

    return SentenceTransformer(model_name)


class EmbeddingProvider:
    """Embed text with a local model that is created on first use.

    Args:
        model_name: Hugging Face model id understood by sentence-transformers.
        batch_size: Batch size passed to ``encode()`` by ``embed_many()``.
        loader: Factory ``model_name -> model``; the model must offer
            ``encode(list[str], normalize_embeddings=..., batch_size=...)``.
    """

    def __init__(
        self,
        model_name: str = DEFAULT_MODEL,
        batch_size: int = 32,
        loader: Callable[[str], Any] | None = None,
    ) -> None:
        self.model_name = model_name
        self.batch_size = batch_size
        self._loader = loader or _load_sentence_transformer
        self._model: Any = None
        self._lock = threading.Lock()

    @property
    def loaded(self) -> bool:
        return self._model is not None

    def _get_model(self) -> Any:
        if self._model is None:
            with self._lock:
                if self._model is None:
                    logger.info("Loading embedding model %s", self.model_name)
                    try:
                        self._model = self._loader(self.model_name)
                    except Exception as exc:
                        raise EmbeddingFailure(
                            f"Could not load embedding model '{self.model_name}': {exc}"
                        ) from exc
        return self._model

    def embed(self, text: str | None) -> list[float] | None:
        """Return the embedding of *text*, or None if it is empty/whitespace.

        Raises:
            EmbeddingFailure: If the model cannot be loaded or inference fails.
        """
        if not text or not text.strip():
            return None
        return self._encode([text])[0]

    def embed_many(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed several non-blank texts in batches, preserving order.

        Raises:
            EmbeddingFailure: If any text is blank, or on model failure.
        """
        if not texts:
            return []
        for i, text in enumerate(texts):
            if not text or not text.strip():
                raise EmbeddingFailure(f"Cannot embed blank text at position {i}")
        return self._encode(list(texts))

    def _encode(self, texts: list[str]) -> list[list[float]]:
        model = self._get_model()
        try:
            vectors = model.encode(
                texts,
                batch_size=self.batch_size,
                normalize_embeddings=True,
                show_progress_bar=False,
            )
        except Exception as exc:
            raise EmbeddingFailure(f"Embedding failed: {exc}") from exc
        result = [[float(x) for x in vec] for vec in vectors]
        if len(result) != len(texts) or any(not vec for vec in result):
            raise EmbeddingFailure(
                f"Model returned {len(result)} vectors for {len(texts)} inputs"
            )
        return result


# ------------------------------------------------------------------
# Process-wide providers (one per model name)
# ------------------------------------------------------------------

_providers: dict[str, EmbeddingProvider] = {}
_providers_lock = threading.Lock()


def get_embedding_provider(
    model_name: str = DEFAULT_MODEL, batch_size: int = 32
) -> EmbeddingProvider:
    """Return the shared provider for *model_name*, creating it once."""
    provider = _providers.get(model_name)
    if provider is None:
        with _providers_lock:
            provider = _providers.get(model_name)
            if provider is None:
                provider = EmbeddingProvider(model_name, batch_size=batch_size)
                _providers[model_name] = provider
    return provider
