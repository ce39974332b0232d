"""deepdocs ingest pipeline — extraction, chunking, embedding, indexing."""

from deepdocs.ingest.chunker import chunk_text
from deepdocs.ingest.embedder import EmbeddingProvider, get_embedding_provider
from deepdocs.ingest.extract import ExtractionResult, ExtractionStatus, TextExtractor
from deepdocs.ingest.pipeline import IndexingPipeline, IndexReport
from deepdocs.ingest.scanner import add_paths, iter_files, prune_missing

__all__ = [
    "chunk_text",
    "EmbeddingProvider",
    "get_embedding_provider",
    "ExtractionResult",
    "ExtractionStatus",
    "TextExtractor",
    "IndexingPipeline",
    "IndexReport",
    "add_paths",
    "iter_files",
    "prune_missing",
]
