"""Repository pattern for all deepdocs database operations.

Single interface for: documents, chunks (the persisted vector index),
collections and collection membership. Rows are parsed into the dataclasses of
``deepdocs.db.models`` here; nothing above this layer sees ``sqlite3.Row``.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager

from deepdocs.db.models import Chunk, Collection, Document
from deepdocs.db.vectors import deserialize_vector, serialize_vector
from deepdocs.errors import InvalidConfiguration, NotFound

logger = logging.getLogger(__name__)

_DOC_COLUMNS = (
    "id, name, path, size, last_modified, category, tags, embedding, content_hash"
)
_CHUNK_COLUMNS = "id, document_id, chunk_index, content, embedding"
_COLLECTION_COLUMNS = "id, name, description, color, created_at"


class Repository:
    """Data access layer for all deepdocs database entities.

    Wraps an open sqlite3.Connection. The connection is owned by the caller and
    must be closed after use. Every method is serialised through a re-entrant
    lock so the repository can be shared by indexing worker threads.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with the schema initialised
                (see deepdocs.db.schema.initialize).
        """
        self._conn = conn
        self._lock = threading.RLock()
        self._depth = 0

    @property
    def conn(self) -> sqlite3.Connection:
        return self._conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Hold the repository lock for an all-or-nothing unit of work.

        Commits when the outermost block exits normally and rolls back if any
        exception escapes. Nested blocks join the outer transaction.
        """
        with self._lock:
            self._depth += 1
            try:
                yield self._conn
            except BaseException:
                self._depth -= 1
                if self._depth == 0:
                    self._conn.rollback()
                raise
            self._depth -= 1
            if self._depth == 0:
                self._conn.commit()

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def insert_document(self, document: Document) -> int:
        """Insert a document unless its path is already known.

        Re-inserting an existing path is a no-op.

        Returns:
            The id of the new or already existing row.
        """
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO documents (name, path, size, last_modified, category, tags)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    document.name,
                    document.path,
                    document.size,
                    document.last_modified,
                    document.category,
                    document.tags,
                ),
            )
            row = conn.execute(
                "SELECT id FROM documents WHERE path = ?", (document.path,)
            ).fetchone()
        return row["id"]

    def get_document(self, document_id: int) -> Document | None:
        """Return a document by id, or None if not found."""
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_DOC_COLUMNS} FROM documents WHERE id = ?", (document_id,)
            ).fetchone()
        return _row_to_document(row) if row else None

    def get_document_by_path(self, path: str) -> Document | None:
        """Return a document by its absolute path, or None if not found."""
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_DOC_COLUMNS} FROM documents WHERE path = ?", (path,)
            ).fetchone()
        return _row_to_document(row) if row else None

    def list_documents(self) -> list[Document]:
        """Return all documents ordered by id (insertion order)."""
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {_DOC_COLUMNS} FROM documents ORDER BY id"
            ).fetchall()
        return [_row_to_document(r) for r in rows]

    def update_document(
        self,
        document_id: int,
        category: str | None = None,
        tags: str | None = None,
    ) -> Document:
        """Change category and/or tags; None leaves a field untouched.

        Raises:
            NotFound: If *document_id* does not exist.
        """
        with self.transaction() as conn:
            if self.get_document(document_id) is None:
                raise NotFound("document", document_id)
            if category is not None:
                conn.execute(
                    "UPDATE documents SET category = ? WHERE id = ?", (category, document_id)
                )
            if tags is not None:
                conn.execute(
                    "UPDATE documents SET tags = ? WHERE id = ?", (tags, document_id)
                )
            return self.get_document(document_id)

    def set_document_embedding(
        self,
        document_id: int,
        embedding: Sequence[float] | None,
        content_hash: str | None = None,
    ) -> None:
        """Store the whole-document vector (None clears it) and fingerprint."""
        with self.transaction() as conn:
            conn.execute(
                "UPDATE documents SET embedding = ?, content_hash = ? WHERE id = ?",
                (
                    serialize_vector(embedding) if embedding is not None else None,
                    content_hash,
                    document_id,
                ),
            )

    def delete_documents(self, document_ids: Iterable[int]) -> int:
        """Delete documents with their chunks and memberships atomically.

        Unknown ids are ignored.

        Returns:
            Number of document rows deleted.
        """
        ids = list(document_ids)
        if not ids:
            return 0
        placeholders = ",".join("?" * len(ids))
        with self.transaction() as conn:
            conn.execute(
                f"DELETE FROM document_chunks WHERE document_id IN ({placeholders})", ids
            )
            conn.execute(
                f"DELETE FROM collection_documents WHERE document_id IN ({placeholders})", ids
            )
            cur = conn.execute(f"DELETE FROM documents WHERE id IN ({placeholders})", ids)
        return cur.rowcount

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    def insert_chunk(self, chunk: Chunk) -> int:
        """Insert one chunk row. Returns the new rowid."""
        with self.transaction() as conn:
            cur = conn.execute(
                """
                INSERT INTO document_chunks (document_id, chunk_index, content, embedding)
                VALUES (?, ?, ?, ?)
                """,
                (
                    chunk.document_id,
                    chunk.chunk_index,
                    chunk.text,
                    serialize_vector(chunk.embedding),
                ),
            )
        chunk.id = cur.lastrowid
        return cur.lastrowid

    def list_chunks(self, document_ids: Iterable[int] | None = None) -> list[Chunk]:
        """Return chunks ordered by (document_id, chunk_index).

        Args:
            document_ids: Restrict to these documents. None means every chunk;
                an empty iterable yields an empty list.
        """
        sql = f"SELECT {_CHUNK_COLUMNS} FROM document_chunks"
        params: list[int] = []
        if document_ids is not None:
            params = list(document_ids)
            if not params:
                return []
            sql += f" WHERE document_id IN ({','.join('?' * len(params))})"
        sql += " ORDER BY document_id, chunk_index"
        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
        return [_row_to_chunk(r) for r in rows]

    def count_chunks(self, document_id: int | None = None) -> int:
        """Return the number of chunks of *document_id* (or of all documents)."""
        with self._lock:
            if document_id is None:
                return self._conn.execute("SELECT COUNT(*) FROM document_chunks").fetchone()[0]
            return self._conn.execute(
                "SELECT COUNT(*) FROM document_chunks WHERE document_id = ?", (document_id,)
            ).fetchone()[0]

    def has_chunks(self, document_id: int) -> bool:
        with self._lock:
            row = self._conn.execute(
                "SELECT 1 FROM document_chunks WHERE document_id = ? LIMIT 1", (document_id,)
            ).fetchone()
        return row is not None

    def delete_chunks(self, document_id: int) -> int:
        """Delete every chunk of *document_id*. Returns the number removed."""
        with self.transaction() as conn:
            cur = conn.execute(
                "DELETE FROM document_chunks WHERE document_id = ?", (document_id,)
            )
        return cur.rowcount

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def create_collection(
        self, name: str, description: str = "", color: str | None = None
    ) -> Collection:
        """Create a collection and return it with id and timestamp set.

        Raises:
            InvalidConfiguration: If *name* is blank.
        """
        if not name or not name.strip():
            raise InvalidConfiguration("Collection name must not be empty")
        with self.transaction() as conn:
            cur = conn.execute(
                "INSERT INTO collections (name, description, color) VALUES (?, ?, ?)",
                (name.strip(), description, color),
            )
            return self.get_collection(cur.lastrowid)

    def get_collection(self, collection_id: int) -> Collection | None:
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_COLLECTION_COLUMNS} FROM collections WHERE id = ?", (collection_id,)
            ).fetchone()
        return _row_to_collection(row) if row else None

    def list_collections(self) -> list[Collection]:
        """Return all collections, newest first."""
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {_COLLECTION_COLUMNS} FROM collections ORDER BY created_at DESC, id DESC"
            ).fetchall()
        return [_row_to_collection(r) for r in rows]

    def update_collection(
        self,
        collection_id: int,
        name: str | None = None,
        description: str | None = None,
        color: str | None = None,
    ) -> Collection:
        """Update the given fields; None keeps the stored value.

        Raises:
            NotFound: If *collection_id* does not exist.
            InvalidConfiguration: If *name* is given but blank.
        """
        if name is not None and not name.strip():
            raise InvalidConfiguration("Collection name must not be empty")
        with self.transaction() as conn:
            if self.get_collection(collection_id) is None:
                raise NotFound("collection", collection_id)
            conn.execute(
                """
                UPDATE collections
                SET name = COALESCE(?, name),
                    description = COALESCE(?, description),
                    color = COALESCE(?, color)
                WHERE id = ?
                """,
                (name.strip() if name is not None else None, description, color, collection_id),
            )
            return self.get_collection(collection_id)

    def delete_collection(self, collection_id: int) -> bool:
        """Delete a collection and its memberships (documents are kept).

        Returns:
            True if a collection was deleted.
        """
        with self.transaction() as conn:
            conn.execute(
                "DELETE FROM collection_documents WHERE collection_id = ?", (collection_id,)
            )
            cur = conn.execute("DELETE FROM collections WHERE id = ?", (collection_id,))
        return cur.rowcount > 0

    # ------------------------------------------------------------------
    # Collection membership
    # ------------------------------------------------------------------

    def add_to_collection(self, collection_id: int, document_ids: Iterable[int]) -> int:
        """Ensure each document is a member of the collection.

        Existing memberships are left alone (idempotent).

        Returns:
            Number of memberships newly created.

        Raises:
            NotFound: If the collection or one of the documents does not exist.
        """
        ids = list(document_ids)
        added = 0
        with self.transaction() as conn:
            if self.get_collection(collection_id) is None:
                raise NotFound("collection", collection_id)
            for document_id in ids:
                if self.get_document(document_id) is None:
                    raise NotFound("document", document_id)
                cur = conn.execute(
                    """
                    INSERT OR IGNORE INTO collection_documents (collection_id, document_id)
                    VALUES (?, ?)
                    """,
                    (collection_id, document_id),
                )
                added += cur.rowcount
        return added

    def remove_from_collection(self, collection_id: int, document_id: int) -> bool:
        """Drop one membership. Returns True if a row was removed."""
        with self.transaction() as conn:
            cur = conn.execute(
                "DELETE FROM collection_documents WHERE collection_id = ? AND document_id = ?",
                (collection_id, document_id),
            )
        return cur.rowcount > 0

    def collection_document_ids(self, collection_id: int) -> list[int]:
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT document_id FROM collection_documents
                WHERE collection_id = ? ORDER BY document_id
                """,
                (collection_id,),
            ).fetchall()
        return [r["document_id"] for r in rows]

    def list_collection_documents(self, collection_id: int) -> list[Document]:
        """Return the member documents of a collection ordered by id."""
        with self._lock:
            rows = self._conn.execute(
                f"""
                SELECT {", ".join("d." + c.strip() for c in _DOC_COLUMNS.split(","))}
                FROM documents d
                JOIN collection_documents cd ON d.id = cd.document_id
                WHERE cd.collection_id = ?
                ORDER BY d.id
                """,
                (collection_id,),
            ).fetchall()
        return [_row_to_document(r) for r in rows]


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _parse_vector(raw: str | None, what: str) -> list[float] | None:
    try:
        return deserialize_vector(raw)
    except ValueError:
        logger.warning("Ignoring malformed embedding on %s", what)
        return None


def _row_to_document(row: sqlite3.Row) -> Document:
    return Document(
        id=row["id"],
        name=row["name"],
        path=row["path"],
        size=row["size"],
        last_modified=row["last_modified"],
        category=row["category"] or "",
        tags=row["tags"] or "",
        embedding=_parse_vector(row["embedding"], f"document {row['id']}"),
        content_hash=row["content_hash"],
    )


def _row_to_chunk(row: sqlite3.Row) -> Chunk:
    return Chunk(
        id=row["id"],
        document_id=row["document_id"],
        chunk_index=row["chunk_index"],
        text=row["content"],
        embedding=_parse_vector(row["embedding"], f"chunk {row['id']}") or [],
    )


def _row_to_collection(row: sqlite3.Row) -> Collection:
    return Collection(
        id=row["id"],
        name=row["name"],
        description=row["description"] or "",
        color=row["color"],
        created_at=row["created_at"],
    )
