"""Semantic retriever: exhaustive cosine scoring, best chunk per document.

  1. Embed the query (blank query → no results).
  2. Load candidate chunks: all, or only those of the given documents.
  3. Score every chunk: cos(q, c); zero vectors score 0.0.
  4. Keep the best chunk per document.
  5. Rank documents by that score, descending; keep top_k.
  6. Attach a snippet (first 200 chars of the chunk, "..." if cut).

Tie-breaks: candidates are visited in (document_id, chunk_index) order and a
chunk only replaces the current best on a strictly higher score, so the lowest
chunk index wins ties within a document. The final sort is stable, so documents
with equal scores keep ascending document-id order.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from deepdocs.db.models import Chunk, QueryResult
from deepdocs.db.repository import Repository
from deepdocs.db.vectors import cosine_similarity
from deepdocs.errors import InvalidConfiguration, NotFound
from deepdocs.ingest.embedder import EmbeddingProvider

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 5
SNIPPET_CHARS = 200
_ELLIPSIS = "..."


def search(
    query: str,
    repo: Repository,
    embedder: EmbeddingProvider,
    top_k: int = DEFAULT_TOP_K,
    document_ids: Iterable[int] | None = None,
    snippet_chars: int = SNIPPET_CHARS,
) -> list[QueryResult]:
    """Return up to *top_k* documents ranked by their best-matching chunk.

    Args:
        query: Free-text query.
        repo: Open Repository.
        embedder: Provider used to embed the query (same model as the index).
        top_k: Maximum number of results (>= 1).
        document_ids: Restrict the search to these documents; None = all.
        snippet_chars: Snippet length before the ellipsis.

    Raises:
        InvalidConfiguration: If *top_k* < 1.
        EmbeddingFailure: If the model cannot embed the query.
    """
    if top_k < 1:
        raise InvalidConfiguration(f"top_k must be >= 1, got {top_k}")

    query_vector = embedder.embed(query)
    if query_vector is None:
        return []

    candidates = repo.list_chunks(document_ids)
    if not candidates:
        return []

    best = _best_per_document(query_vector, candidates)
    ranked = sorted(best.values(), key=lambda pair: pair[1], reverse=True)

    results: list[QueryResult] = []
    for chunk, score in ranked:
        if len(results) == top_k:
            break
        document = repo.get_document(chunk.document_id)
        if document is None:
            # Deleted between the chunk read and now; the next one moves up.
            continue
        results.append(
            QueryResult(
                document=document,
                chunk=chunk,
                score=score,
                snippet=make_snippet(chunk.text, snippet_chars),
            )
        )
    logger.debug("Query %r: %d candidates, %d results", query, len(candidates), len(results))
    return results


def search_in_collection(
    collection_id: int,
    query: str,
    repo: Repository,
    embedder: EmbeddingProvider,
    top_k: int = DEFAULT_TOP_K,
    snippet_chars: int = SNIPPET_CHARS,
) -> list[QueryResult]:
    """Like ``search()`` but limited to the members of one collection.

    Raises:
        NotFound: If the collection does not exist.
    """
    if repo.get_collection(collection_id) is None:
        raise NotFound("collection", collection_id)
    member_ids = repo.collection_document_ids(collection_id)
    if not member_ids:
        return []
    return search(
        query,
        repo,
        embedder,
        top_k=top_k,
        document_ids=member_ids,
        snippet_chars=snippet_chars,
    )


# ------------------------------------------------------------------
# Scoring helpers
# ------------------------------------------------------------------


def _best_per_document(
    query_vector: list[float], candidates: list[Chunk]
) -> dict[int, tuple[Chunk, float]]:
    """Max-reduce chunk scores per document (first seen wins ties).

    Dict insertion order follows first appearance of each document.
    """
    best: dict[int, tuple[Chunk, float]] = {}
    for chunk in candidates:
        score = cosine_similarity(query_vector, chunk.embedding)
        current = best.get(chunk.document_id)
        if current is None or score > current[1]:
            best[chunk.document_id] = (chunk, score)
    return best


def make_snippet(text: str, limit: int = SNIPPET_CHARS) -> str:
    """Truncate *text* to *limit* characters, appending "..." only if cut."""
    if len(text) <= limit:
        return text
    return text[:limit] + _ELLIPSIS
