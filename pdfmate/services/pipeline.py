# =============================================================================
# Ingestion Pipeline — Job State Machine
# =============================================================================
#
# One ingestion job moves through:
#
#   received → extracting → embedding → upserting → completed
#       │           │            │           │
#       └───────────┴────────────┴───────────┴──→ failed
#
# Each stage returns a StageResult holding either its value or the error it
# hit. Stages never decide whether a job is retried; run() stops at the
# first failed stage and reports whether the error is retryable. The Celery
# task (workers/tasks.py) turns that into a retry or a terminal failure.
#
#   malformed payload / extraction failure / FatalError → failed, no retry
#   RetryableError (rate limit, timeout, index down)    → failed, retryable
#
# Every chunk is upserted under a point_id derived from (file_id,
# sequence_index), in a single upsert per job, so re-running a job after a
# partial failure or a duplicate delivery overwrites instead of duplicating.
# =============================================================================

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from pydantic import ValidationError

from pdfmate.errors import InputError, PdfMateError, UpstreamError, is_retryable
from pdfmate.models.jobs import IngestionJobDescriptor
from pdfmate.services.chunker import DocumentChunk
from pdfmate.services.embedder import EmbeddingClient
from pdfmate.services.extractor import PdfExtractor
from pdfmate.services.vectorstore import VectorRecord, VectorStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class JobStage(str, enum.Enum):
    RECEIVED = "received"
    EXTRACTING = "extracting"
    EMBEDDING = "embedding"
    UPSERTING = "upserting"
    COMPLETED = "completed"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class StageResult(Generic[T]):
    """Outcome of one stage: a value, or the error that stopped it."""

    stage: JobStage
    value: T | None = None
    error: PdfMateError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, stage: JobStage, value: T) -> StageResult[T]:
        return cls(stage=stage, value=value)

    @classmethod
    def failure(cls, stage: JobStage, error: PdfMateError) -> StageResult[T]:
        return cls(stage=stage, error=error)


@dataclass
class EmbeddingRecord:
    """A chunk paired with its vector, bound for one collection."""

    chunk: DocumentChunk
    vector: list[float]
    collection: str

    def to_vector_record(self) -> VectorRecord:
        return VectorRecord(
            point_id=self.chunk.point_id,
            vector=self.vector,
            content=self.chunk.text,
            payload={
                "source_file_id": self.chunk.source_file_id,
                "sequence_index": self.chunk.sequence_index,
                "page_number": self.chunk.page_number,
                **self.chunk.metadata,
            },
        )


@dataclass
class IngestionOutcome:
    """Final state of one pipeline run."""

    job_id: str
    stage: JobStage  # COMPLETED or FAILED
    failed_stage: JobStage | None = None
    file_id: str | None = None
    chunk_count: int = 0
    error: PdfMateError | None = None
    duration_ms: float = 0.0
    stages: list[JobStage] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.stage == JobStage.COMPLETED

    @property
    def retryable(self) -> bool:
        return self.error is not None and is_retryable(self.error)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class IngestionPipeline:
    """Runs one ingestion job end to end. Synchronous (Celery workers)."""

    def __init__(
        self,
        extractor: PdfExtractor,
        embedder: EmbeddingClient,
        vector_store: VectorStore,
    ) -> None:
        self._extractor = extractor
        self._embedder = embedder
        self._vector_store = vector_store

    def run(self, payload: dict | str, job_id: str | None = None) -> IngestionOutcome:
        """
        Ingest the file described by `payload`.

        Never raises for classified failures (PdfMateError); those come back
        as a FAILED outcome. Anything else propagates to the caller.
        """
        start = time.perf_counter()
        stages: list[JobStage] = [JobStage.RECEIVED]

        received = self._receive(payload)
        if not received.ok:
            return self._fail(job_id or "unknown", received, stages, start)

        descriptor = received.value
        job_id = job_id or descriptor.job_id
        logger.info("[%s] Ingesting %s into '%s'", job_id, descriptor.file_id, descriptor.collection)

        stages.append(JobStage.EXTRACTING)
        extracted = self._extract(descriptor)
        if not extracted.ok:
            return self._fail(job_id, extracted, stages, start, descriptor.file_id)
        chunks = extracted.value

        stages.append(JobStage.EMBEDDING)
        embedded = self._embed(chunks, descriptor.collection)
        if not embedded.ok:
            return self._fail(job_id, embedded, stages, start, descriptor.file_id)

        stages.append(JobStage.UPSERTING)
        upserted = self._upsert(descriptor.collection, embedded.value)
        if not upserted.ok:
            return self._fail(job_id, upserted, stages, start, descriptor.file_id)

        stages.append(JobStage.COMPLETED)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "[%s] Ingestion complete: %d chunks in %.0f ms",
            job_id, upserted.value, duration_ms,
        )
        return IngestionOutcome(
            job_id=job_id,
            stage=JobStage.COMPLETED,
            file_id=descriptor.file_id,
            chunk_count=upserted.value,
            duration_ms=duration_ms,
            stages=stages,
        )

    # -----------------------------------------------------------------------
    # Stages
    # -----------------------------------------------------------------------

    def _receive(self, payload: Any) -> StageResult[IngestionJobDescriptor]:
        try:
            if isinstance(payload, (str, bytes)):
                descriptor = IngestionJobDescriptor.model_validate_json(payload)
            else:
                descriptor = IngestionJobDescriptor.model_validate(payload)
        except ValidationError as exc:
            return StageResult.failure(
                JobStage.RECEIVED, InputError(f"Malformed job payload: {exc}"),
            )
        return StageResult.success(JobStage.RECEIVED, descriptor)

    def _extract(self, descriptor: IngestionJobDescriptor) -> StageResult[list[DocumentChunk]]:
        try:
            chunks = self._extractor.extract(descriptor.file_path, source_file_id=descriptor.file_id)
        except PdfMateError as exc:
            return StageResult.failure(JobStage.EXTRACTING, exc)
        return StageResult.success(JobStage.EXTRACTING, chunks)

    def _embed(
        self,
        chunks: list[DocumentChunk],
        collection: str,
    ) -> StageResult[list[EmbeddingRecord]]:
        try:
            vectors = self._embedder.embed_batch([chunk.text for chunk in chunks])
        except UpstreamError as exc:
            return StageResult.failure(JobStage.EMBEDDING, exc)

        records = [
            EmbeddingRecord(chunk=chunk, vector=vector, collection=collection)
            for chunk, vector in zip(chunks, vectors, strict=True)
        ]
        return StageResult.success(JobStage.EMBEDDING, records)

    def _upsert(self, collection: str, records: list[EmbeddingRecord]) -> StageResult[int]:
        try:
            written = self._vector_store.upsert(
                collection, [record.to_vector_record() for record in records],
            )
        except UpstreamError as exc:
            return StageResult.failure(JobStage.UPSERTING, exc)
        return StageResult.success(JobStage.UPSERTING, written)

    # -----------------------------------------------------------------------

    def _fail(
        self,
        job_id: str,
        result: StageResult,
        stages: list[JobStage],
        start: float,
        file_id: str | None = None,
    ) -> IngestionOutcome:
        outcome = IngestionOutcome(
            job_id=job_id,
            stage=JobStage.FAILED,
            failed_stage=result.stage,
            file_id=file_id,
            error=result.error,
            duration_ms=(time.perf_counter() - start) * 1000,
            stages=[*stages, JobStage.FAILED],
        )
        logger.warning(
            "[%s] Ingestion failed at %s (%s, retryable=%s): %s",
            job_id, result.stage.value, type(result.error).__name__,
            outcome.retryable, result.error,
        )
        return outcome

