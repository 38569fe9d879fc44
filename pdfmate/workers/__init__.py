# =============================================================================
# Workers Package — Background Ingestion on Celery
# =============================================================================
#   - celery_app.py: Celery application configuration
#   - queue.py: JobQueue, the producer side used by the upload route
#   - tasks.py: the ingest_document task (consumer side)
#
# Ingestion is slow (Docling parsing, embedding API calls, vector upserts),
# so uploads only enqueue a job and return 202; workers do the rest.
# =============================================================================
