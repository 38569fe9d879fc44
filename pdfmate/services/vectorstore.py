# =============================================================================
# Vector Index — Pluggable Backend Protocol
# =============================================================================
#
# A common interface over named vector collections, with implementations for
# pgvector (PostgreSQL) and ChromaDB.
#
# CONTRACT:
#   upsert(collection, records) — creates the collection on first use, then
#       inserts or overwrites each record by its point_id. Repeating an
#       upsert leaves exactly one record per id, which is what makes job
#       retries and duplicate deliveries safe.
#   query(collection, vector, k) — at most k results, highest cosine
#       similarity first. Raises CollectionNotFoundError if nothing has ever
#       been upserted into the collection.
#
# Mixed sync/async interface:
# - upsert() is sync → called by Celery workers during ingestion
# - query() is async → called by FastAPI handlers during chat
#
# ARCHITECTURE:
#   VectorStore (Protocol)
#   ├── PgVectorStore     — PostgreSQL + pgvector extension
#   │   ├── upsert()      — INSERT ... ON CONFLICT DO UPDATE (sync session)
#   │   └── query()       — cosine_distance ordering (async session)
#   └── ChromaVectorStore — ChromaDB (in-process or client/server)
#       ├── upsert()      — collection.upsert()
#       └── query()       — asyncio.to_thread() wrapper
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Protocol
from urllib.parse import urlparse

import chromadb
from chromadb.errors import ChromaError
from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import OperationalError

from pdfmate.config import Settings
from pdfmate.db.engine import async_session_factory, get_sync_session
from pdfmate.db.models import ChunkVector, VectorCollection
from pdfmate.errors import CollectionNotFoundError, RetryableError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class VectorRecord:
    """One (id, vector, payload) tuple to store, plus the chunk text."""

    point_id: str
    vector: list[float]
    content: str
    payload: dict = field(default_factory=dict)


@dataclass
class VectorSearchResult:
    """A single nearest-neighbour hit: the stored text, payload and score."""

    point_id: str
    content: str
    page_number: int | None
    similarity_score: float  # cosine similarity, higher = more relevant
    metadata: dict = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class VectorStore(Protocol):
    """Interface every vector index backend provides."""

    def upsert(self, collection: str, records: list[VectorRecord]) -> int:
        """
        Insert or overwrite records by point_id. Sync (for Celery).

        Returns:
            Number of distinct records written.
        """
        ...

    async def query(
        self,
        collection: str,
        vector: list[float],
        k: int,
    ) -> list[VectorSearchResult]:
        """
        Nearest-neighbour search. Async (for FastAPI).

        Raises:
            CollectionNotFoundError: If the collection does not exist.
        """
        ...

    def count(self, collection: str, source_file_id: str | None = None) -> int:
        """
        Number of records in the collection, optionally only those ingested
        from one uploaded file. 0 if the collection does not exist.

        Raises:
            RetryableError: The backend is unreachable.
        """
        ...


# ---------------------------------------------------------------------------
# Implementation 1: pgvector (PostgreSQL)
# ---------------------------------------------------------------------------


class PgVectorStore:
    """
    pgvector-backed vector store.

    Collections are rows in `vector_collections`; records live in
    `chunk_vectors` keyed by (collection, point_id).
    """

    def __init__(self, dimensions: int) -> None:
        self._dimensions = dimensions

    def upsert(self, collection: str, records: list[VectorRecord]) -> int:
        records = _dedupe(records)
        if not records:
            return 0

        try:
            with get_sync_session() as session:
                session.execute(
                    pg_insert(VectorCollection)
                    .values(name=collection, dimensions=self._dimensions)
                    .on_conflict_do_nothing(index_elements=[VectorCollection.name])
                )

                stmt = pg_insert(ChunkVector).values([
                    {
                        "collection": collection,
                        "point_id": record.point_id,
                        "content": record.content,
                        "embedding": record.vector,
                        "payload": record.payload,
                    }
                    for record in records
                ])
                stmt = stmt.on_conflict_do_update(
                    index_elements=[ChunkVector.collection, ChunkVector.point_id],
                    set_={
                        "content": stmt.excluded.content,
                        "embedding": stmt.excluded.embedding,
                        "payload": stmt.excluded.payload,
                        "updated_at": func.now(),
                    },
                )
                session.execute(stmt)
        except OperationalError as exc:
            raise RetryableError(f"Vector index unavailable: {exc}") from exc

        logger.info(
            "Upserted %d records into pgvector collection '%s'",
            len(records), collection,
        )
        return len(records)

    async def query(
        self,
        collection: str,
        vector: list[float],
        k: int,
    ) -> list[VectorSearchResult]:
        """
        Cosine similarity search.

        pgvector's cosine_distance() is in [0, 2]; similarity is 1 - distance.
        """
        if k <= 0:
            return []

        try:
            async with async_session_factory() as session:
                if await session.get(VectorCollection, collection) is None:
                    raise CollectionNotFoundError(
                        f"Collection '{collection}' does not exist"
                    )

                distance = ChunkVector.embedding.cosine_distance(vector)
                stmt = (
                    select(ChunkVector, distance.label("distance"))
                    .where(ChunkVector.collection == collection)
                    .order_by(distance)
                    .limit(k)
                )
                rows = (await session.execute(stmt)).all()
        except OperationalError as exc:
            raise RetryableError(f"Vector index unavailable: {exc}") from exc

        logger.debug(
            "pgvector query returned %d rows (collection=%s, k=%d)",
            len(rows), collection, k,
        )

        return [
            VectorSearchResult(
                point_id=row.point_id,
                content=row.content,
                page_number=(row.payload or {}).get("page_number"),
                similarity_score=round(1.0 - distance_value, 4),
                metadata=row.payload or {},
            )
            for row, distance_value in rows
        ]

    def count(self, collection: str, source_file_id: str | None = None) -> int:
        stmt = (
            select(func.count())
            .select_from(ChunkVector)
            .where(ChunkVector.collection == collection)
        )
        if source_file_id is not None:
            stmt = stmt.where(ChunkVector.payload["source_file_id"].astext == source_file_id)

        try:
            with get_sync_session() as session:
                return session.scalar(stmt) or 0
        except OperationalError as exc:
            raise RetryableError(f"Vector index unavailable: {exc}") from exc


# ---------------------------------------------------------------------------
# Implementation 2: ChromaDB
# ---------------------------------------------------------------------------


class ChromaVectorStore:
    """
    ChromaDB-backed vector store.

    - In-process (CHROMA_URL unset): data lives in the current process
    - Client/server (CHROMA_URL set): optional token sent as X-Chroma-Token
    """

    def __init__(
        self,
        url: str | None = None,
        api_key: str | None = None,
        client: object | None = None,
    ) -> None:
        if client is not None:
            self._client = client
        elif url:
            parsed = urlparse(url)
            use_ssl = parsed.scheme == "https"
            headers = {"X-Chroma-Token": api_key} if api_key else None
            self._client = chromadb.HttpClient(
                host=parsed.hostname or "localhost",
                port=parsed.port or (443 if use_ssl else 8000),
                ssl=use_ssl,
                headers=headers,
            )
        else:
            self._client = chromadb.Client()

    def upsert(self, collection: str, records: list[VectorRecord]) -> int:
        records = _dedupe(records)
        if not records:
            return 0

        # Cosine distance to match the pgvector backend
        target = self._client.get_or_create_collection(
            name=collection,
            metadata={"hnsw:space": "cosine"},
        )
        target.upsert(
            ids=[r.point_id for r in records],
            embeddings=[r.vector for r in records],
            documents=[r.content for r in records],
            metadatas=[_sanitise_chroma_metadata(r.payload) for r in records],
        )

        logger.info(
            "Upserted %d records into Chroma collection '%s'",
            len(records), collection,
        )
        return len(records)

    async def query(
        self,
        collection: str,
        vector: list[float],
        k: int,
    ) -> list[VectorSearchResult]:
        """
        Similarity search in ChromaDB.

        The Chroma client is synchronous, so the call runs in a worker
        thread to keep the event loop free.
        """
        if k <= 0:
            return []

        def _sync_query() -> list[VectorSearchResult]:
            try:
                target = self._client.get_collection(name=collection)
            except (ValueError, ChromaError) as exc:
                raise CollectionNotFoundError(
                    f"Collection '{collection}' does not exist"
                ) from exc

            n_results = min(k, target.count())
            if n_results == 0:
                return []

            results = target.query(
                query_embeddings=[vector],
                n_results=n_results,
                include=["documents", "metadatas", "distances"],
            )

            hits: list[VectorSearchResult] = []
            for i, point_id in enumerate(results["ids"][0]):
                distance = results["distances"][0][i]
                metadata = dict(results["metadatas"][0][i] or {})
                page_number = metadata.get("page_number")
                hits.append(VectorSearchResult(
                    point_id=point_id,
                    content=results["documents"][0][i] or "",
                    page_number=page_number if isinstance(page_number, int) else None,
                    similarity_score=round(1.0 - distance, 4),
                    metadata=metadata,
                ))

            hits.sort(key=lambda hit: hit.similarity_score, reverse=True)
            return hits

        return await asyncio.to_thread(_sync_query)

    def count(self, collection: str, source_file_id: str | None = None) -> int:
        try:
            target = self._client.get_collection(name=collection)
        except (ValueError, ChromaError):
            return 0
        if source_file_id is None:
            return target.count()
        return len(target.get(where={"source_file_id": source_file_id}, include=[])["ids"])


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------


def get_vector_store(
    settings: Settings,
    override_type: str | None = None,
) -> PgVectorStore | ChromaVectorStore:
    """
    Build the configured vector store backend.

    - "pgvector" → PgVectorStore (default, shares the job-tracking database)
    - "chroma" → ChromaVectorStore
    """
    store_type = override_type or settings.vectorstore_type

    if store_type == "chroma":
        logger.info("Using ChromaDB vector store (url=%s)", settings.chroma_url or "in-process")
        return ChromaVectorStore(url=settings.chroma_url, api_key=settings.chroma_api_key)

    if store_type != "pgvector":
        raise ValueError(
            f"Unknown vector store type '{store_type}'. "
            "Supported types: ['chroma', 'pgvector']"
        )

    logger.info("Using pgvector vector store")
    return PgVectorStore(dimensions=settings.embedding_dimensions)


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _dedupe(records: list[VectorRecord]) -> list[VectorRecord]:
    """Keep the last record per point_id, preserving first-seen order."""
    by_id: dict[str, VectorRecord] = {}
    for record in records:
        by_id[record.point_id] = record
    return list(by_id.values())


def _sanitise_chroma_metadata(metadata: dict) -> dict:
    """
    Sanitise metadata for ChromaDB compatibility.

    ChromaDB only accepts str, int, float and bool values:
    - None → dropped
    - list → comma-separated string
    - anything else → str()
    """
    sanitised = {}
    for key, value in metadata.items():
        if value is None:
            continue
        if isinstance(value, list):
            sanitised[key] = ",".join(str(v) for v in value)
        elif isinstance(value, (str, int, float, bool)):
            sanitised[key] = value
        else:
            sanitised[key] = str(value)
    return sanitised
