"""Answer a question from the user's own documents.

Retrieves the best chunk of the top-k documents, numbers them as sources and
asks the generation model to answer using only those sources, citing them as
[1], [2], ... If nothing relevant is indexed the model is not called.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from deepdocs.db.models import QueryResult
from deepdocs.db.repository import Repository
from deepdocs.ingest.embedder import EmbeddingProvider
from deepdocs.rag.llm_client import complete
from deepdocs.rag.retriever import DEFAULT_TOP_K, search, search_in_collection

logger = logging.getLogger(__name__)

NO_SOURCES_ANSWER = (
    "I couldn't find anything about that in your documents. "
    "Try indexing more files or rephrasing the question."
)

_SYSTEM_PROMPT = (
    "You answer questions about the user's personal documents. "
    "Use ONLY the numbered sources provided. Cite sources inline as [1], [2]. "
    "If the sources do not contain the answer, say that it is not in the "
    "documents. Do not invent facts."
)

# Per-source cap on chunk text placed in the prompt.
_SOURCE_CHARS = 1500


@dataclass
class Source:
    """A numbered source shown alongside an answer."""

    idx: int
    document_id: int
    name: str
    path: str
    score: float
    snippet: str


@dataclass
class Answer:
    text: str
    sources: list[Source] = field(default_factory=list)


def answer(
    question: str,
    repo: Repository,
    embedder: EmbeddingProvider,
    model: str,
    top_k: int = DEFAULT_TOP_K,
    collection_id: int | None = None,
    max_tokens: int = 1024,
) -> Answer:
    """Retrieve sources for *question* and generate a grounded answer.

    Args:
        question: The user's question.
        repo: Open Repository.
        embedder: Provider for the question embedding.
        model: LiteLLM model string used for generation.
        top_k: Number of documents to use as sources.
        collection_id: Restrict retrieval to one collection.
        max_tokens: Output token cap for the answer.

    Raises:
        NotFound: If *collection_id* does not exist.
        EmbeddingFailure: If the question cannot be embedded.
        GenerationFailure: If the LLM call fails after retries.
    """
    if collection_id is not None:
        results = search_in_collection(collection_id, question, repo, embedder, top_k=top_k)
    else:
        results = search(question, repo, embedder, top_k=top_k)

    if not results:
        return Answer(text=NO_SOURCES_ANSWER)

    sources = [_to_source(i, r) for i, r in enumerate(results, start=1)]
    messages = build_messages(question, results)
    logger.info("Answering with %d sources via %s", len(sources), model)
    text = complete(model=model, messages=messages, max_tokens=max_tokens).strip()
    return Answer(text=text or NO_SOURCES_ANSWER, sources=sources)


def build_messages(question: str, results: list[QueryResult]) -> list[dict]:
    """Build the chat messages: system rules + numbered sources + question."""
    blocks = "\n\n".join(
        f"[{i}] {r.document.name}\n{r.chunk.text[:_SOURCE_CHARS]}"
        for i, r in enumerate(results, start=1)
    )
    return [
        {"role": "system", "content": _SYSTEM_PROMPT},
        {"role": "user", "content": f"Sources:\n\n{blocks}\n\nQuestion: {question}"},
    ]


def _to_source(idx: int, result: QueryResult) -> Source:
    return Source(
        idx=idx,
        document_id=result.document.id,
        name=result.document.name,
        path=result.document.path,
        score=result.score,
        snippet=result.snippet,
    )
