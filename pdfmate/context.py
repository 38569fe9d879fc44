# =============================================================================
# Service Context — Process-wide Clients
# =============================================================================
#
# Every long-lived client (document store, extractor, embedding client,
# vector store, LLM provider, job queue) is built once per process and
# passed around explicitly:
#
#   FastAPI      → lifespan stores it on app.state, routes use Depends()
#   Celery       → built in worker_process_init (see workers/tasks.py)
#   tests        → construct a ServiceContext with fakes directly
#
# The LLM provider is optional: workers never call it, and an API process
# without LLM credentials still accepts uploads (query routes answer 503).
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass

from pdfmate.config import Settings
from pdfmate.services.embedder import EmbeddingClient
from pdfmate.services.extractor import PdfExtractor
from pdfmate.services.llm import LLMProvider, build_llm_provider
from pdfmate.services.pipeline import IngestionPipeline
from pdfmate.services.responder import QueryResponder
from pdfmate.services.storage import DocumentStore
from pdfmate.services.vectorstore import VectorStore, get_vector_store
from pdfmate.workers.queue import JobQueue

logger = logging.getLogger(__name__)


@dataclass
class ServiceContext:
    settings: Settings
    document_store: DocumentStore
    extractor: PdfExtractor
    embedder: EmbeddingClient
    vector_store: VectorStore
    job_queue: JobQueue
    llm: LLMProvider | None = None

    def pipeline(self) -> IngestionPipeline:
        return IngestionPipeline(
            extractor=self.extractor,
            embedder=self.embedder,
            vector_store=self.vector_store,
        )

    def responder(self) -> QueryResponder:
        """
        Raises:
            RuntimeError: No LLM provider is configured.
        """
        if self.llm is None:
            raise RuntimeError("No LLM provider configured")
        return QueryResponder(
            embedder=self.embedder,
            vector_store=self.vector_store,
            llm=self.llm,
            extractor=self.extractor,
            collection=self.settings.collection_name,
            top_k=self.settings.retrieval_top_k,
            summary_max_chars=self.settings.summary_max_chars,
            flashcard_count=self.settings.flashcard_count,
        )


def build_context(settings: Settings, with_llm: bool = True) -> ServiceContext:
    """
    Build every client from settings.

    Raises:
        ValueError: Missing embedding credentials or an unknown backend type.
    """
    llm: LLMProvider | None = None
    if with_llm:
        try:
            llm = build_llm_provider(settings)
        except ValueError as exc:
            logger.warning("LLM provider unavailable, query routes disabled: %s", exc)

    context = ServiceContext(
        settings=settings,
        document_store=DocumentStore(settings.upload_dir),
        extractor=PdfExtractor(
            policy=settings.chunking_policy,
            chunk_size=settings.chunk_size,
            chunk_overlap=settings.chunk_overlap,
        ),
        embedder=EmbeddingClient.from_settings(settings),
        vector_store=get_vector_store(settings),
        job_queue=JobQueue(queue_name=settings.ingest_queue_name),
        llm=llm,
    )
    logger.info(
        "Service context ready (vectorstore=%s, collection=%s, llm=%s)",
        settings.vectorstore_type, settings.collection_name,
        type(llm).__name__ if llm else "none",
    )
    return context
