"""Domain models for the deepdocs database layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class IndexStatus(str, Enum):
    """Whether a document's chunk set matches its file on disk."""

    NOT_INDEXED = "not_indexed"
    INDEXED = "indexed"
    STALE = "stale"


@dataclass
class Document:
    path: str
    name: str
    size: int | None = None
    last_modified: str | None = None
    category: str = ""
    tags: str = ""
    embedding: list[float] | None = None
    content_hash: str | None = None
    id: int | None = None  # set after insert; None for unsaved documents

    @property
    def tag_list(self) -> list[str]:
        return [t.strip() for t in self.tags.split(",") if t.strip()]


@dataclass
class Chunk:
    document_id: int
    chunk_index: int
    text: str
    embedding: list[float] = field(default_factory=list)
    id: int | None = None


@dataclass
class Collection:
    name: str
    description: str = ""
    color: str | None = None
    created_at: str | None = None
    id: int | None = None


@dataclass
class QueryResult:
    """One ranked search hit: a document with its best-matching chunk."""

    document: Document
    chunk: Chunk
    score: float
    snippet: str
