# =============================================================================
# Unit Tests — Vector Store (ChromaDB backend)
# =============================================================================
#
# Uses ChromaDB's in-process mode (no external services needed), with a
# fresh collection per test. pgvector is not exercised here because it
# requires a running PostgreSQL instance.
# =============================================================================

import asyncio

import pytest

from pdfmate.config import Settings
from pdfmate.errors import CollectionNotFoundError
from pdfmate.services.vectorstore import (
    ChromaVectorStore,
    PgVectorStore,
    VectorRecord,
    VectorSearchResult,
    get_vector_store,
)


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _record(point_id: str, vector: list[float], content: str, page: int | None = 1) -> VectorRecord:
    return VectorRecord(
        point_id=point_id,
        vector=vector,
        content=content,
        payload={"source_file_id": "file-1", "page_number": page},
    )


class TestChromaUpsert:
    def test_returns_record_count(self, chroma_store, collection_name):
        written = chroma_store.upsert(collection_name, [
            _record("p1", [1.0, 0.0, 0.0], "Revenue grew"),
            _record("p2", [0.0, 1.0, 0.0], "Costs fell"),
        ])
        assert written == 2
        assert chroma_store.count(collection_name) == 2

    def test_repeated_upsert_is_idempotent(self, chroma_store, collection_name):
        records = [
            _record("p1", [1.0, 0.0, 0.0], "Revenue grew"),
            _record("p2", [0.0, 1.0, 0.0], "Costs fell"),
        ]
        chroma_store.upsert(collection_name, records)
        chroma_store.upsert(collection_name, records)

        assert chroma_store.count(collection_name) == 2

    def test_upsert_overwrites_by_id(self, chroma_store, collection_name):
        chroma_store.upsert(collection_name, [_record("p1", [1.0, 0.0, 0.0], "old text")])
        chroma_store.upsert(collection_name, [_record("p1", [1.0, 0.0, 0.0], "new text")])

        results = _run(chroma_store.query(collection_name, [1.0, 0.0, 0.0], k=5))
        assert [r.content for r in results] == ["new text"]

    def test_duplicate_ids_in_one_batch(self, chroma_store, collection_name):
        written = chroma_store.upsert(collection_name, [
            _record("p1", [1.0, 0.0, 0.0], "first"),
            _record("p1", [1.0, 0.0, 0.0], "second"),
        ])
        assert written == 1
        assert chroma_store.count(collection_name) == 1

    def test_empty_batch_creates_nothing(self, chroma_store, collection_name):
        assert chroma_store.upsert(collection_name, []) == 0
        with pytest.raises(CollectionNotFoundError):
            _run(chroma_store.query(collection_name, [1.0, 0.0, 0.0], k=2))


class TestChromaQuery:
    def _seed(self, store, name):
        store.upsert(name, [
            _record("p1", [1.0, 0.0, 0.0], "Revenue increased by 15%", page=1),
            _record("p2", [0.7, 0.7, 0.0], "Revenue and costs", page=2),
            _record("p3", [0.0, 0.0, 1.0], "Unrelated appendix", page=3),
        ])

    def test_ordered_by_similarity(self, chroma_store, collection_name):
        self._seed(chroma_store, collection_name)
        results = _run(chroma_store.query(collection_name, [1.0, 0.0, 0.0], k=3))

        assert all(isinstance(r, VectorSearchResult) for r in results)
        assert [r.point_id for r in results] == ["p1", "p2", "p3"]
        scores = [r.similarity_score for r in results]
        assert scores == sorted(scores, reverse=True)
        assert results[0].similarity_score == pytest.approx(1.0, abs=1e-3)

    def test_at_most_k_results(self, chroma_store, collection_name):
        self._seed(chroma_store, collection_name)
        assert len(_run(chroma_store.query(collection_name, [1.0, 0.0, 0.0], k=2))) == 2

    def test_fewer_records_than_k(self, chroma_store, collection_name):
        self._seed(chroma_store, collection_name)
        assert len(_run(chroma_store.query(collection_name, [1.0, 0.0, 0.0], k=10))) == 3

    def test_non_positive_k(self, chroma_store, collection_name):
        self._seed(chroma_store, collection_name)
        assert _run(chroma_store.query(collection_name, [1.0, 0.0, 0.0], k=0)) == []

    def test_payload_returned(self, chroma_store, collection_name):
        self._seed(chroma_store, collection_name)
        top = _run(chroma_store.query(collection_name, [0.0, 0.0, 1.0], k=1))[0]

        assert top.page_number == 3
        assert top.metadata["source_file_id"] == "file-1"

    def test_missing_page_number(self, chroma_store, collection_name):
        chroma_store.upsert(collection_name, [_record("p1", [1.0, 0.0, 0.0], "text", page=None)])
        top = _run(chroma_store.query(collection_name, [1.0, 0.0, 0.0], k=1))[0]
        assert top.page_number is None

    def test_missing_collection(self, chroma_store, collection_name):
        with pytest.raises(CollectionNotFoundError):
            _run(chroma_store.query(collection_name, [1.0, 0.0, 0.0], k=2))

    def test_count_of_missing_collection(self, chroma_store, collection_name):
        assert chroma_store.count(collection_name) == 0

    def test_count_per_source_file(self, chroma_store, collection_name):
        other = VectorRecord(
            point_id="c",
            vector=[0.0, 0.0, 1.0],
            content="other file",
            payload={"source_file_id": "file-2", "page_number": 1},
        )
        chroma_store.upsert(collection_name, [
            _record("a", [1.0, 0.0, 0.0], "first"),
            _record("b", [0.0, 1.0, 0.0], "second"),
            other,
        ])

        assert chroma_store.count(collection_name) == 3
        assert chroma_store.count(collection_name, source_file_id="file-1") == 2
        assert chroma_store.count(collection_name, source_file_id="file-3") == 0
        assert chroma_store.count(f"{collection_name}-missing", source_file_id="file-1") == 0


class TestGetVectorStore:
    def test_chroma(self):
        store = get_vector_store(Settings(vectorstore_type="chroma", chroma_url=None))
        assert isinstance(store, ChromaVectorStore)

    def test_pgvector(self):
        store = get_vector_store(Settings(vectorstore_type="pgvector"))
        assert isinstance(store, PgVectorStore)

    def test_override(self):
        store = get_vector_store(Settings(vectorstore_type="pgvector"), override_type="chroma")
        assert isinstance(store, ChromaVectorStore)

    def test_unknown_type(self):
        with pytest.raises(ValueError, match="Unknown vector store type"):
            get_vector_store(Settings(vectorstore_type="qdrant"))
