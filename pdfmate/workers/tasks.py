# =============================================================================
# Celery Task Definitions — Document Ingestion
# =============================================================================
#
# `ingest_document` runs one IngestionPipeline job and maps its outcome onto
# queue behaviour and the ingestion_jobs row:
#
#   outcome                     job row             Celery
#   ──────────────────────────  ──────────────────  ─────────────────────────
#   completed                   succeeded           SUCCESS (summary dict)
#   failed, retryable           pending (+ error)   RETRY with backoff
#   failed, retries exhausted   failed              FAILURE (dead job)
#   failed, not retryable       failed              FAILURE, no retry
#   unexpected exception        pending / failed    RETRY, then FAILURE
#
# Backoff doubles per attempt: ingest_retry_backoff * 2**retries seconds.
#
# IMPORTANT: Celery workers are SYNCHRONOUS.
# - Do NOT use `async/await` in Celery tasks
# - Do NOT use the async SQLAlchemy engine (use the sync engine instead)
# =============================================================================

from __future__ import annotations

import logging
from typing import Any

from celery.signals import worker_process_init
from sqlalchemy import update

from pdfmate.config import settings
from pdfmate.context import ServiceContext, build_context
from pdfmate.db.engine import get_sync_session
from pdfmate.db.models import IngestionJob, JobStatus
from pdfmate.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Worker Context
# ---------------------------------------------------------------------------
# Built once per worker process. Prefork children get it from the
# worker_process_init signal; solo/threads pools build it on first use.
# ---------------------------------------------------------------------------

_context: ServiceContext | None = None


@worker_process_init.connect
def _init_worker_context(**_kwargs: Any) -> None:
    global _context
    _context = build_context(settings, with_llm=False)


def get_worker_context() -> ServiceContext:
    global _context
    if _context is None:
        _context = build_context(settings, with_llm=False)
    return _context


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _update_job_status(job_id: str, status: JobStatus, **values: Any) -> None:
    """
    Update an ingestion_jobs row in its own committed session, so the
    status is visible to the API even if the task fails right after.
    """
    with get_sync_session() as session:
        session.execute(
            update(IngestionJob)
            .where(IngestionJob.job_id == job_id)
            .values(status=status, **values)
        )


def _retry_countdown(retries: int) -> int:
    return settings.ingest_retry_backoff * (2 ** retries)


def _job_id_from(payload: Any) -> str:
    if isinstance(payload, dict) and payload.get("job_id"):
        return str(payload["job_id"])
    return "unknown"


# ---------------------------------------------------------------------------
# Ingestion Task
# ---------------------------------------------------------------------------


@celery_app.task(
    bind=True,
    name="ingest_document",
    max_retries=settings.ingest_max_retries,
)
def ingest_document(self, payload: dict | str) -> dict:
    """
    Ingest one uploaded PDF: extract → embed → upsert.

    Args:
        self: Bound task (request.id is the job id, request.retries the
            number of earlier attempts).
        payload: IngestionJobDescriptor as a dict or JSON string.

    Returns:
        dict with the job id, file id and chunk count.
    """
    job_id = self.request.id or _job_id_from(payload)
    retries = self.request.retries or 0
    attempt = retries + 1
    retries_left = retries < self.max_retries

    logger.info(
        "[%s] Starting ingestion (attempt %d/%d, vectorstore=%s)",
        job_id, attempt, self.max_retries + 1, settings.vectorstore_type,
    )

    try:
        _update_job_status(job_id, JobStatus.PROCESSING, attempts=attempt)
        outcome = get_worker_context().pipeline().run(payload, job_id=job_id)
    except Exception as exc:
        logger.exception("[%s] Unexpected ingestion error: %s", job_id, exc)
        if not retries_left:
            _update_job_status(job_id, JobStatus.FAILED, error_message=str(exc)[:1000])
            raise
        raise self.retry(exc=exc, countdown=_retry_countdown(retries))

    if outcome.succeeded:
        _update_job_status(
            job_id,
            JobStatus.SUCCEEDED,
            chunk_count=outcome.chunk_count,
            error_message=None,
        )
        summary = {
            "job_id": job_id,
            "file_id": outcome.file_id,
            "status": JobStatus.SUCCEEDED.value,
            "chunk_count": outcome.chunk_count,
            "duration_ms": round(outcome.duration_ms, 1),
        }
        logger.info("[%s] Ingestion complete: %s", job_id, summary)
        return summary

    error = outcome.error
    error_message = f"{outcome.failed_stage.value}: {error}"[:1000]

    if outcome.retryable and retries_left:
        countdown = _retry_countdown(retries)
        logger.warning(
            "[%s] Retryable failure at %s, retrying in %ds: %s",
            job_id, outcome.failed_stage.value, countdown, error,
        )
        _update_job_status(job_id, JobStatus.PENDING, error_message=error_message)
        raise self.retry(exc=error, countdown=countdown)

    if outcome.retryable:
        logger.error(
            "[%s] Retries exhausted after %d attempts, job is dead: %s",
            job_id, attempt, error,
        )
    else:
        logger.error("[%s] Permanent failure at %s: %s", job_id, outcome.failed_stage.value, error)

    _update_job_status(job_id, JobStatus.FAILED, error_message=error_message)
    raise error
