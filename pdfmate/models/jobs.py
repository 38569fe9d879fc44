# =============================================================================
# Job Payload Models — Pydantic V2 Schemas
# =============================================================================
#
# The descriptor is what travels through the broker. It is serialised to
# JSON by the producer (api/upload.py) and validated again by the worker,
# so a malformed payload is caught before any work starts.
# =============================================================================

import uuid
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field


def new_job_id() -> str:
    """Generate a job identifier (also used as the Celery task id)."""
    return uuid.uuid4().hex


class IngestionJobDescriptor(BaseModel):
    """Everything a worker needs to ingest one uploaded file."""

    job_id: str = Field(default_factory=new_job_id, min_length=1)
    file_id: str = Field(min_length=1, description="Public id of the uploaded file")
    file_path: str = Field(min_length=1, description="Path of the stored PDF")
    collection: str = Field(min_length=1, description="Target vector collection")
    enqueued_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = ConfigDict(extra="ignore", frozen=True)
