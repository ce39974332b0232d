"""Tests for the Repository pattern."""

from __future__ import annotations

import sqlite3

import pytest

from deepdocs.db.models import Chunk, Document
from deepdocs.db.repository import Repository
from deepdocs.errors import InvalidConfiguration, NotFound


def _doc(path="/docs/a.txt", name=None, **kw) -> Document:
    return Document(path=path, name=name or path.rsplit("/", 1)[-1], size=10, **kw)


def _chunk(document_id, index=0, text="hello world", embedding=None) -> Chunk:
    return Chunk(
        document_id=document_id,
        chunk_index=index,
        text=text,
        embedding=embedding if embedding is not None else [1.0, 0.0],
    )


# ------------------------------------------------------------------
# Documents
# ------------------------------------------------------------------

def test_insert_and_get_document(repo):
    doc_id = repo.insert_document(_doc(category="tax", tags="2023,home"))
    doc = repo.get_document(doc_id)
    assert doc is not None
    assert doc.path == "/docs/a.txt"
    assert doc.name == "a.txt"
    assert doc.category == "tax"
    assert doc.tag_list == ["2023", "home"]
    assert doc.embedding is None


def test_insert_existing_path_is_noop(repo):
    first = repo.insert_document(_doc())
    second = repo.insert_document(_doc(category="other"))
    assert first == second
    assert len(repo.list_documents()) == 1
    assert repo.get_document(first).category == ""


def test_get_document_not_found(repo):
    assert repo.get_document(999) is None


def test_get_document_by_path(repo):
    repo.insert_document(_doc(path="/docs/b.md"))
    assert repo.get_document_by_path("/docs/b.md").name == "b.md"
    assert repo.get_document_by_path("/nope") is None


def test_list_documents_in_insertion_order(repo):
    repo.insert_document(_doc(path="/z.txt"))
    repo.insert_document(_doc(path="/a.txt"))
    assert [d.path for d in repo.list_documents()] == ["/z.txt", "/a.txt"]


def test_update_document_partial(repo):
    doc_id = repo.insert_document(_doc(category="old", tags="x"))
    doc = repo.update_document(doc_id, tags="y,z")
    assert doc.category == "old"
    assert doc.tag_list == ["y", "z"]


def test_update_document_unknown_raises(repo):
    with pytest.raises(NotFound) as exc_info:
        repo.update_document(42, category="x")
    assert exc_info.value.kind == "document"
    assert exc_info.value.ident == 42


def test_set_document_embedding_and_clear(repo):
    doc_id = repo.insert_document(_doc())
    repo.set_document_embedding(doc_id, [0.5, 0.5], content_hash="abc")
    doc = repo.get_document(doc_id)
    assert doc.embedding == [0.5, 0.5]
    assert doc.content_hash == "abc"

    repo.set_document_embedding(doc_id, None)
    doc = repo.get_document(doc_id)
    assert doc.embedding is None
    assert doc.content_hash is None


def test_malformed_embedding_reads_as_none(repo, tmp_db):
    doc_id = repo.insert_document(_doc())
    tmp_db.execute("UPDATE documents SET embedding = 'garbage' WHERE id = ?", (doc_id,))
    tmp_db.commit()
    assert repo.get_document(doc_id).embedding is None


def test_delete_documents_removes_chunks_and_memberships(repo):
    doc_id = repo.insert_document(_doc())
    keep_id = repo.insert_document(_doc(path="/docs/keep.txt"))
    repo.insert_chunk(_chunk(doc_id))
    repo.insert_chunk(_chunk(keep_id))
    coll = repo.create_collection("c")
    repo.add_to_collection(coll.id, [doc_id, keep_id])

    assert repo.delete_documents([doc_id, 12345]) == 1

    assert repo.get_document(doc_id) is None
    assert repo.count_chunks(doc_id) == 0
    assert repo.count_chunks(keep_id) == 1
    assert repo.collection_document_ids(coll.id) == [keep_id]


def test_delete_documents_empty_list(repo):
    assert repo.delete_documents([]) == 0


# ------------------------------------------------------------------
# Chunks
# ------------------------------------------------------------------

def test_insert_chunk_sets_id(repo):
    doc_id = repo.insert_document(_doc())
    chunk = _chunk(doc_id)
    rowid = repo.insert_chunk(chunk)
    assert chunk.id == rowid
    assert rowid >= 1


def test_list_chunks_ordered_by_document_and_index(repo):
    d1 = repo.insert_document(_doc(path="/1.txt"))
    d2 = repo.insert_document(_doc(path="/2.txt"))
    repo.insert_chunk(_chunk(d2, 0, "d2-0"))
    repo.insert_chunk(_chunk(d1, 1, "d1-1"))
    repo.insert_chunk(_chunk(d1, 0, "d1-0", embedding=[0.25, 0.75]))

    chunks = repo.list_chunks()
    assert [c.text for c in chunks] == ["d1-0", "d1-1", "d2-0"]
    assert chunks[0].embedding == [0.25, 0.75]


def test_list_chunks_filtered_ids_in_any_order(repo):
    d1 = repo.insert_document(_doc(path="/1.txt"))
    d2 = repo.insert_document(_doc(path="/2.txt"))
    d3 = repo.insert_document(_doc(path="/3.txt"))
    for doc_id in (d3, d1, d2):
        repo.insert_chunk(_chunk(doc_id, 1, f"{doc_id}-1"))
        repo.insert_chunk(_chunk(doc_id, 0, f"{doc_id}-0"))

    chunks = repo.list_chunks([d3, d1])

    assert [(c.document_id, c.chunk_index) for c in chunks] == [(d1, 0), (d1, 1), (d3, 0), (d3, 1)]


def test_list_chunks_filtered(repo):
    d1 = repo.insert_document(_doc(path="/1.txt"))
    d2 = repo.insert_document(_doc(path="/2.txt"))
    repo.insert_chunk(_chunk(d1))
    repo.insert_chunk(_chunk(d2))
    assert {c.document_id for c in repo.list_chunks([d2])} == {d2}
    assert repo.list_chunks([]) == []


def test_duplicate_chunk_index_rejected(repo):
    doc_id = repo.insert_document(_doc())
    repo.insert_chunk(_chunk(doc_id, 0))
    with pytest.raises(sqlite3.IntegrityError):
        repo.insert_chunk(_chunk(doc_id, 0))


def test_count_has_delete_chunks(repo):
    doc_id = repo.insert_document(_doc())
    assert repo.has_chunks(doc_id) is False
    repo.insert_chunk(_chunk(doc_id, 0))
    repo.insert_chunk(_chunk(doc_id, 1))
    assert repo.has_chunks(doc_id) is True
    assert repo.count_chunks(doc_id) == 2
    assert repo.count_chunks() == 2
    assert repo.delete_chunks(doc_id) == 2
    assert repo.has_chunks(doc_id) is False


# ------------------------------------------------------------------
# Transactions
# ------------------------------------------------------------------

def test_transaction_rolls_back_on_error(repo):
    doc_id = repo.insert_document(_doc())
    with pytest.raises(RuntimeError):
        with repo.transaction():
            repo.insert_chunk(_chunk(doc_id, 0))
            repo.insert_chunk(_chunk(doc_id, 1))
            raise RuntimeError("boom")
    assert repo.count_chunks(doc_id) == 0


def test_nested_transaction_commits_once(repo, tmp_path):
    doc_id = repo.insert_document(_doc())
    with repo.transaction():
        repo.insert_chunk(_chunk(doc_id, 0))
        with repo.transaction():
            repo.insert_chunk(_chunk(doc_id, 1))
    # Visible from a second connection: the outer block committed.
    other = sqlite3.connect(tmp_path / ".deepdocs.db")
    try:
        assert other.execute("SELECT COUNT(*) FROM document_chunks").fetchone()[0] == 2
    finally:
        other.close()


# ------------------------------------------------------------------
# Collections
# ------------------------------------------------------------------

def test_create_and_get_collection(repo):
    coll = repo.create_collection("  Taxes ", description="yearly", color="#ff0000")
    assert coll.id is not None
    assert coll.name == "Taxes"
    assert coll.created_at
    assert repo.get_collection(coll.id).description == "yearly"


@pytest.mark.parametrize("name", ["", "   "])
def test_create_collection_blank_name_rejected(repo, name):
    with pytest.raises(InvalidConfiguration):
        repo.create_collection(name)


def test_list_collections_newest_first(repo):
    a = repo.create_collection("a")
    b = repo.create_collection("b")
    assert [c.id for c in repo.list_collections()] == [b.id, a.id]


def test_update_collection_keeps_omitted_fields(repo):
    coll = repo.create_collection("a", description="desc", color="blue")
    updated = repo.update_collection(coll.id, name="renamed")
    assert updated.name == "renamed"
    assert updated.description == "desc"
    assert updated.color == "blue"


def test_update_collection_unknown_raises(repo):
    with pytest.raises(NotFound):
        repo.update_collection(7, name="x")


def test_update_collection_blank_name_rejected(repo):
    coll = repo.create_collection("a")
    with pytest.raises(InvalidConfiguration):
        repo.update_collection(coll.id, name=" ")


def test_delete_collection_keeps_documents(repo):
    doc_id = repo.insert_document(_doc())
    coll = repo.create_collection("c")
    repo.add_to_collection(coll.id, [doc_id])
    assert repo.delete_collection(coll.id) is True
    assert repo.get_collection(coll.id) is None
    assert repo.get_document(doc_id) is not None
    assert repo.delete_collection(coll.id) is False


def test_add_to_collection_idempotent(repo):
    doc_id = repo.insert_document(_doc())
    coll = repo.create_collection("c")
    assert repo.add_to_collection(coll.id, [doc_id]) == 1
    assert repo.add_to_collection(coll.id, [doc_id]) == 0
    assert repo.collection_document_ids(coll.id) == [doc_id]


def test_add_to_unknown_collection_raises(repo):
    doc_id = repo.insert_document(_doc())
    with pytest.raises(NotFound) as exc_info:
        repo.add_to_collection(99, [doc_id])
    assert exc_info.value.kind == "collection"


def test_add_unknown_document_is_atomic(repo):
    doc_id = repo.insert_document(_doc())
    coll = repo.create_collection("c")
    with pytest.raises(NotFound):
        repo.add_to_collection(coll.id, [doc_id, 999])
    assert repo.collection_document_ids(coll.id) == []


def test_remove_from_collection(repo):
    doc_id = repo.insert_document(_doc())
    coll = repo.create_collection("c")
    repo.add_to_collection(coll.id, [doc_id])
    assert repo.remove_from_collection(coll.id, doc_id) is True
    assert repo.remove_from_collection(coll.id, doc_id) is False


def test_list_collection_documents(repo):
    d1 = repo.insert_document(_doc(path="/1.txt"))
    d2 = repo.insert_document(_doc(path="/2.txt"))
    repo.insert_document(_doc(path="/3.txt"))
    coll = repo.create_collection("c")
    repo.add_to_collection(coll.id, [d2, d1])
    assert [d.id for d in repo.list_collection_documents(coll.id)] == [d1, d2]


def test_repository_exposes_connection(tmp_db):
    assert Repository(tmp_db).conn is tmp_db
