# =============================================================================
# API Response Models — Pydantic V2 Schemas
# =============================================================================
#
# These models define the shape of data coming OUT of the API. Embedding
# vectors never leave the server; only chunk text and payload metadata do.
# =============================================================================

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from pdfmate.db.models import JobStatus


class HealthResponse(BaseModel):
    """Response for GET /health — confirms the API is running."""

    status: str = "ok"
    version: str
    service: str


class UploadResponse(BaseModel):
    """
    Response for POST /upload/pdf.

    The file is stored and queued; it becomes searchable through /chat once
    the ingestion job has succeeded.
    """

    file_id: str = Field(description="Generated identifier of the stored file")
    filename: str = Field(description="Original filename as uploaded")
    job_id: str = Field(description="Ingestion job id for status polling")
    status: str = Field(default="pending")
    pdf_url: str = Field(description="URL serving the stored PDF")
    redirect_url: str = Field(default="/chat")
    message: str = Field(default="File uploaded successfully")


class IngestionJobResponse(BaseModel):
    """State of one ingestion job."""

    job_id: str
    status: JobStatus
    attempts: int
    chunk_count: int | None = None
    error_message: str | None = None
    enqueued_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DocumentStatusResponse(BaseModel):
    """Response for GET /documents/{file_id} — upload details and jobs."""

    file_id: str
    original_name: str
    size_bytes: int
    uploaded_at: datetime
    jobs: list[IngestionJobResponse] = Field(default_factory=list)
    queue_state: str | None = Field(
        default=None,
        description="Broker-side state of the latest job (PENDING, STARTED, RETRY, SUCCESS, FAILURE)",
    )
    indexed_chunks: int | None = Field(
        default=None,
        description="Chunks of this file currently searchable through /chat",
    )


class SummaryResponse(BaseModel):
    """Response for GET /summary."""

    status: Literal["success"] = "success"
    summary: str


class Flashcard(BaseModel):
    """One question/answer card."""

    question: str
    answer: str


class FlashcardsResponse(BaseModel):
    """Response for GET /flashcards."""

    status: Literal["success"] = "success"
    flashcards: list[Flashcard]


class SourceChunk(BaseModel):
    """A retrieved chunk returned alongside a chat answer."""

    point_id: str = Field(description="Stable id of the chunk in the vector index")
    content: str = Field(description="The chunk text, verbatim")
    page_number: int | None = Field(default=None, description="1-indexed PDF page")
    similarity_score: float = Field(description="Cosine similarity, higher is closer")
    metadata: dict | None = Field(default=None)


class ChatResponse(BaseModel):
    """Response for GET /chat."""

    status: Literal["success"] = "success"
    message: str = Field(description="The generated answer")
    docs: list[SourceChunk] = Field(default_factory=list)
