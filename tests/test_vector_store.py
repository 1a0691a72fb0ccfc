import math

import pytest

from rag_core.errors import DimensionMismatch, ErrorKind, StorageError
from rag_core.models import Chunk, Document
from rag_core.retrieval import cosine_similarity, rank_chunks
from rag_core.vector_store import VectorStore


def _doc(path: str = "/vault/a.md") -> Document:
    return Document(id=path, path=path, indexed_at=1_700_000_000_000)


def _chunk(chunk_id: str, embedding, doc_id: str = "/vault/a.md", index: int = 0) -> Chunk:
    return Chunk(
        id=chunk_id,
        document_id=doc_id,
        content=f"content {chunk_id}",
        embedding=list(embedding),
        chunk_index=index,
        metadata={"fileName": doc_id.rsplit("/", 1)[-1]},
    )


class TestCosineSimilarity:
    def test_self_similarity_is_one(self):
        assert cosine_similarity([0.3, 0.4, 0.5], [0.3, 0.4, 0.5]) == pytest.approx(1.0)

    def test_symmetric(self):
        a, b = [1.0, 2.0, 0.5], [0.2, -1.0, 3.0]
        assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))

    def test_orthogonal_and_opposite(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
        assert cosine_similarity([1.0, 1.0], [-1.0, -1.0]) == pytest.approx(-1.0)

    def test_dimension_mismatch(self):
        with pytest.raises(DimensionMismatch) as excinfo:
            cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0])
        assert excinfo.value.kind is ErrorKind.DIMENSION_MISMATCH

    def test_zero_vector_gives_zero_not_nan(self):
        value = cosine_similarity([0.0, 0.0], [1.0, 2.0])
        assert value == 0.0
        assert not math.isnan(value)


def test_rank_chunks_orders_and_breaks_ties_by_id():
    chunks = [
        _chunk("c", [1.0, 0.0]),
        _chunk("a", [1.0, 0.0]),
        _chunk("b", [0.0, 1.0]),
    ]

    results = rank_chunks([1.0, 0.0], chunks, top_k=3)

    assert [r.chunk.id for r in results] == ["a", "c", "b"]


def test_rank_chunks_non_positive_top_k():
    assert rank_chunks([1.0], [_chunk("a", [1.0])], top_k=0) == []
    assert rank_chunks([1.0], [_chunk("a", [1.0])], top_k=-2) == []


def test_document_and_chunk_round_trip(store):
    store.save_document(_doc())
    original = _chunk("c1", [0.1, 0.2, 0.3])
    store.save_chunk(original)

    (loaded,) = store.get_all_chunks()

    assert loaded == original
    assert store.document_exists("/vault/a.md")
    assert not store.document_exists("/vault/missing.md")


def test_chunk_upsert_replaces_by_id(store):
    store.save_document(_doc())
    store.save_chunk(_chunk("c1", [1.0, 0.0]))
    store.save_chunk(_chunk("c1", [0.0, 1.0], index=4))

    chunks = store.get_all_chunks()

    assert len(chunks) == 1
    assert chunks[0].embedding == [0.0, 1.0]
    assert chunks[0].chunk_index == 4


def test_document_upsert_keeps_chunks(store):
    store.save_document(_doc())
    store.save_chunk(_chunk("c1", [1.0, 0.0]))

    store.save_document(Document(id="/vault/a.md", path="/vault/a.md", indexed_at=1))

    assert store.get_stats().chunk_count == 1


def test_delete_document_cascades_to_chunks(store):
    store.save_document(_doc("/vault/a.md"))
    store.save_document(_doc("/vault/b.md"))
    store.save_chunk(_chunk("a1", [1.0], doc_id="/vault/a.md"))
    store.save_chunk(_chunk("a2", [1.0], doc_id="/vault/a.md", index=1))
    store.save_chunk(_chunk("b1", [1.0], doc_id="/vault/b.md"))

    store.delete_document("/vault/a.md")

    assert not store.document_exists("/vault/a.md")
    assert [c.id for c in store.get_all_chunks()] == ["b1"]
    stats = store.get_stats()
    assert (stats.document_count, stats.chunk_count) == (1, 1)


def test_chunk_without_document_violates_foreign_key(store):
    with pytest.raises(StorageError) as excinfo:
        store.save_chunk(_chunk("orphan", [1.0], doc_id="/vault/none.md"))
    assert excinfo.value.kind is ErrorKind.STORAGE_ERROR


def test_search_returns_top_k_by_similarity(store):
    store.save_document(_doc())
    store.save_chunk(_chunk("far", [0.0, 1.0]))
    store.save_chunk(_chunk("near", [0.9, 0.1]))
    store.save_chunk(_chunk("exact", [1.0, 0.0]))

    results = store.search([1.0, 0.0], top_k=2)

    assert [r.chunk.id for r in results] == ["exact", "near"]
    assert results[0].similarity == pytest.approx(1.0)
    assert results[0].similarity >= results[1].similarity


def test_search_on_empty_store(store):
    assert store.search([1.0, 0.0]) == []


def test_search_with_mismatched_query_dimension(store):
    store.save_document(_doc())
    store.save_chunk(_chunk("c1", [1.0, 0.0]))

    with pytest.raises(DimensionMismatch):
        store.search([1.0, 0.0, 0.0])


def test_file_database_persists_across_instances(tmp_path):
    path = tmp_path / "nested" / "store.db"
    with VectorStore(path) as first:
        first.save_document(_doc())
        first.save_chunk(_chunk("c1", [0.5, 0.5]))

    with VectorStore(path) as second:
        assert second.document_exists("/vault/a.md")
        assert second.get_stats().chunk_count == 1
