"""Indexing pipeline — make sure a document has an up-to-date chunk set.

Per document:
  1. Compute IndexStatus (chunk presence + document vector + file fingerprint).
     INDEXED → nothing to do.
  2. Extract text; blank → no chunks (stale chunks of an emptied file are dropped).
  3. Chunk (fixed window, default 1000 chars / 100 overlap).
  4. Embed every chunk before touching the store, so a model failure leaves
     the previous state intact.
  5. One transaction: delete old chunks, insert new rows 0..n-1, store the mean
     vector and fingerprint on the document.
"""

from __future__ import annotations

import hashlib
import logging
import sqlite3
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path

from deepdocs.db.models import Chunk, Document, IndexStatus
from deepdocs.db.repository import Repository
from deepdocs.db.vectors import mean_vector
from deepdocs.errors import DeepDocsError, NotFound
from deepdocs.ingest.chunker import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_OVERLAP,
    chunk_text,
    validate_window,
)
from deepdocs.ingest.embedder import EmbeddingProvider
from deepdocs.ingest.extract import TextExtractor

logger = logging.getLogger(__name__)


def content_fingerprint(path: str | Path) -> str | None:
    """SHA-256 of the file bytes, or None if the file cannot be read."""
    p = Path(path)
    h = hashlib.sha256()
    try:
        with p.open("rb") as fh:
            for block in iter(lambda: fh.read(65536), b""):
                h.update(block)
    except OSError:
        return None
    return h.hexdigest()


@dataclass
class IndexReport:
    """Outcome of a bulk indexing run.

    Attributes:
        written: document id → number of chunks written (0 = skipped / no content).
        failed: document id → the error that aborted that document.
    """

    written: dict[int, int] = field(default_factory=dict)
    failed: dict[int, Exception] = field(default_factory=dict)

    @property
    def total_chunks(self) -> int:
        return sum(self.written.values())


class IndexingPipeline:
    """Extract → chunk → embed → persist, idempotently, per document.

    Args:
        repo: Open Repository.
        embedder: Embedding provider (shared, lazily loaded model).
        extractor: Text extractor; defaults to ``TextExtractor()``.
        chunk_size: Window length in characters.
        overlap: Characters shared by consecutive windows.

    Raises:
        InvalidConfiguration: If ``overlap >= chunk_size``.
    """

    def __init__(
        self,
        repo: Repository,
        embedder: EmbeddingProvider,
        extractor: TextExtractor | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        overlap: int = DEFAULT_OVERLAP,
    ) -> None:
        validate_window(chunk_size, overlap)
        self._repo = repo
        self._embedder = embedder
        self._extractor = extractor or TextExtractor()
        self.chunk_size = chunk_size
        self.overlap = overlap

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def index_status(self, document: Document) -> IndexStatus:
        """Return the IndexStatus of *document* against its file on disk."""
        return self._status(document, content_fingerprint(document.path))

    def _status(self, document: Document, fingerprint: str | None) -> IndexStatus:
        if not self._repo.has_chunks(document.id):
            return IndexStatus.NOT_INDEXED
        if document.embedding is None:
            return IndexStatus.STALE
        if document.content_hash and fingerprint and document.content_hash != fingerprint:
            return IndexStatus.STALE
        return IndexStatus.INDEXED

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------

    def ensure_indexed(self, document_id: int) -> int:
        """Index *document_id* unless its chunk set is current.

        Returns:
            Number of chunks written; 0 if already indexed or no content.

        Raises:
            NotFound: If the document does not exist.
            EmbeddingFailure: If the model fails; nothing is written.
        """
        document = self._repo.get_document(document_id)
        if document is None:
            raise NotFound("document", document_id)

        fingerprint = content_fingerprint(document.path)
        status = self._status(document, fingerprint)
        if status is IndexStatus.INDEXED:
            logger.debug("Document %s already indexed", document_id)
            return 0

        result = self._extractor.extract_result(document.path)
        if not result.has_content:
            logger.info("No text for %s (%s)", document.path, result.status.value)
            if status is IndexStatus.STALE:
                with self._repo.transaction():
                    self._repo.delete_chunks(document_id)
                    self._repo.set_document_embedding(document_id, None, fingerprint)
            return 0

        pieces = chunk_text(result.text, self.chunk_size, self.overlap)
        vectors = self._embedder.embed_many(pieces)
        doc_vector = mean_vector(vectors)

        with self._repo.transaction():
            current = self._repo.get_document(document_id)
            if current is None:
                raise NotFound("document", document_id)
            if self._status(current, fingerprint) is IndexStatus.INDEXED:
                # Another worker finished this document while we were embedding.
                return 0
            self._repo.delete_chunks(document_id)
            for index, (text, vector) in enumerate(zip(pieces, vectors)):
                self._repo.insert_chunk(
                    Chunk(document_id=document_id, chunk_index=index, text=text, embedding=vector)
                )
            self._repo.set_document_embedding(document_id, doc_vector, fingerprint)

        logger.info("Indexed %s: %d chunks", document.path, len(pieces))
        return len(pieces)

    def ensure_indexed_many(
        self,
        document_ids: Iterable[int],
        workers: int = 4,
        on_done: Callable[[int, int | None], None] | None = None,
    ) -> IndexReport:
        """Index several documents concurrently.

        Extraction and embedding run on a thread pool; store writes are
        serialised by the repository lock. A failing document is recorded in
        the report and does not stop the others.

        Args:
            document_ids: Documents to index.
            workers: Thread pool size (>= 1).
            on_done: Called as ``on_done(document_id, chunks_or_None)`` after
                each document; None signals a failure.
        """
        report = IndexReport()
        ids = list(dict.fromkeys(document_ids))
        if not ids:
            return report

        with ThreadPoolExecutor(max_workers=max(1, workers)) as pool:
            futures = {pool.submit(self.ensure_indexed, doc_id): doc_id for doc_id in ids}
            for future in as_completed(futures):
                doc_id = futures[future]
                try:
                    written = future.result()
                except (DeepDocsError, sqlite3.Error) as exc:
                    logger.error("Indexing document %s failed: %s", doc_id, exc)
                    report.failed[doc_id] = exc
                    if on_done:
                        on_done(doc_id, None)
                    continue
                report.written[doc_id] = written
                if on_done:
                    on_done(doc_id, written)
        return report
