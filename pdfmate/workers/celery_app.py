# =============================================================================
# Celery Application Configuration
# =============================================================================
#
# ┌──────────┐     ┌───────┐     ┌──────────────┐     ┌───────┐
# │ FastAPI  │────▶│ Redis │────▶│ Celery Worker│────▶│ Redis │
# │(producer)│     │(broker)│    │  (consumer)  │     │(result)│
# └──────────┘     └───────┘     └──────────────┘     └───────┘
#    db 0 ──────────┘                                    └── db 1
#
# Delivery is at-least-once: a job is acknowledged only after the task
# returns, and a job whose worker dies is re-queued. The ingestion task is
# idempotent (stable point ids), so a second delivery is harmless.
#
# Run a worker with:
#   celery -A pdfmate.workers.celery_app worker --loglevel=info
# =============================================================================

from celery import Celery

from pdfmate.config import settings

celery_app = Celery(
    "pdfmate.workers",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

celery_app.conf.update(
    # --- Serialization ---
    # JSON only; pickle can execute arbitrary code when deserialising.
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",

    # --- Routing ---
    task_default_queue=settings.ingest_queue_name,

    # --- Reliability ---
    # Ack after completion so a crashed worker's job is redelivered.
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    # Long-running jobs: one at a time per worker process.
    worker_prefetch_multiplier=1,

    # --- Concurrency ---
    # Jobs processed in parallel per worker (pool size).
    worker_concurrency=settings.worker_concurrency,

    # --- Timeouts ---
    task_soft_time_limit=300,
    task_time_limit=600,

    # --- Results ---
    # Job state (PENDING/STARTED/SUCCESS/FAILURE) is kept for a day.
    task_track_started=True,
    result_expires=86400,

    include=["pdfmate.workers.tasks"],
)
