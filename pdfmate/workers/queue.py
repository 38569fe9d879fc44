# =============================================================================
# Job Queue — Producer Side
# =============================================================================
#
# Publishes ingestion jobs to the Celery broker and reports their state.
# The task is addressed by name ("ingest_document") so the API process never
# imports the worker module or its heavy dependencies.
#
# The job id doubles as the Celery task id, so the id returned by the upload
# endpoint can be used to look up the task state directly.
# =============================================================================

from __future__ import annotations

import logging

from celery import Celery
from celery.result import AsyncResult
from kombu.exceptions import OperationalError

from pdfmate.errors import RetryableError
from pdfmate.models.jobs import IngestionJobDescriptor
from pdfmate.workers.celery_app import celery_app

logger = logging.getLogger(__name__)

INGEST_TASK_NAME = "ingest_document"


class JobQueue:
    """Durable FIFO of ingestion jobs backed by Celery on Redis."""

    def __init__(self, queue_name: str, app: Celery | None = None) -> None:
        self._queue_name = queue_name
        self._app = app or celery_app

    def enqueue(self, descriptor: IngestionJobDescriptor) -> str:
        """
        Publish a job. Returns its id once the broker has accepted it.

        Raises:
            RetryableError: The broker is unreachable.
        """
        try:
            self._app.send_task(
                INGEST_TASK_NAME,
                kwargs={"payload": descriptor.model_dump(mode="json")},
                task_id=descriptor.job_id,
                queue=self._queue_name,
            )
        except OperationalError as exc:
            logger.error("[%s] Could not publish job: %s", descriptor.job_id, exc)
            raise RetryableError(f"Job queue unavailable: {exc}") from exc

        logger.info(
            "[%s] Enqueued ingestion of %s on '%s'",
            descriptor.job_id, descriptor.file_id, self._queue_name,
        )
        return descriptor.job_id

    def status(self, job_id: str) -> str:
        """Celery task state: PENDING, STARTED, RETRY, SUCCESS or FAILURE."""
        return AsyncResult(job_id, app=self._app).state
