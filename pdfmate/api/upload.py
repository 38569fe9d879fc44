# =============================================================================
# Upload API — PDF Upload and Ingestion Status
# =============================================================================
#
# ENDPOINTS:
#   POST /upload/pdf          — store the PDF, queue ingestion, return 202
#   GET  /documents/{file_id} — upload details, ingestion job states and the
#                               number of its chunks already in the index
#
# The upload is acknowledged once the file is on disk and the job has been
# accepted by the broker. It becomes searchable through /chat only after the
# worker has finished; summaries and flashcards work immediately because
# they read the stored file directly.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from pdfmate.api.deps import get_context, http_error
from pdfmate.context import ServiceContext
from pdfmate.db.engine import get_async_session
from pdfmate.db.models import IngestionJob, JobStatus
from pdfmate.db.models import UploadedFile as UploadedFileRow
from pdfmate.errors import PdfMateError, RetryableError
from pdfmate.models.jobs import IngestionJobDescriptor
from pdfmate.models.responses import (
    DocumentStatusResponse,
    IngestionJobResponse,
    UploadResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Upload"])


# ---------------------------------------------------------------------------
# POST /upload/pdf — Upload a PDF
# ---------------------------------------------------------------------------


@router.post(
    "/upload/pdf",
    response_model=UploadResponse,
    status_code=202,
    summary="Upload a PDF for ingestion",
    description=(
        "Store a PDF (multipart field `pdf`) and queue it for background "
        "ingestion. Returns immediately with the file id and job id."
    ),
)
async def upload_pdf(
    request: Request,
    pdf: UploadFile | None = File(default=None, description="The PDF to upload"),
    context: ServiceContext = Depends(get_context),
    session: AsyncSession = Depends(get_async_session),
) -> UploadResponse:
    if pdf is None:
        raise HTTPException(status_code=400, detail="No file uploaded")

    raw_bytes = await pdf.read()
    original_name = pdf.filename or ""

    try:
        stored = await asyncio.to_thread(
            context.document_store.save, raw_bytes, original_name,
        )
    except PdfMateError as exc:
        logger.warning("Rejected upload '%s': %s", original_name, exc)
        raise http_error(exc) from exc

    descriptor = IngestionJobDescriptor(
        file_id=stored.id,
        file_path=str(stored.storage_path),
        collection=context.settings.collection_name,
    )

    job = IngestionJob(
        job_id=descriptor.job_id,
        file_id=stored.id,
        file_path=descriptor.file_path,
        collection=descriptor.collection,
        status=JobStatus.PENDING,
        attempts=0,
        enqueued_at=descriptor.enqueued_at,
    )
    session.add(UploadedFileRow(
        id=stored.id,
        original_name=stored.original_name,
        storage_path=str(stored.storage_path),
        size_bytes=stored.size_bytes,
        uploaded_at=stored.uploaded_at,
    ))
    session.add(job)
    # Commit before publishing so the worker always finds the job row
    await session.commit()

    try:
        await asyncio.to_thread(context.job_queue.enqueue, descriptor)
    except RetryableError as exc:
        job.status = JobStatus.FAILED
        job.error_message = str(exc)[:1000]
        await session.commit()
        raise HTTPException(
            status_code=503,
            detail="Ingestion queue unavailable. Please retry the upload.",
        ) from exc

    base_url = (context.settings.public_base_url or str(request.base_url)).rstrip("/")
    pdf_url = f"{base_url}/uploads/{quote(stored.id)}"

    logger.info(
        "[%s] Upload accepted: %s (%d bytes) → %s",
        descriptor.job_id, original_name, stored.size_bytes, stored.id,
    )

    return UploadResponse(
        file_id=stored.id,
        filename=stored.original_name,
        job_id=descriptor.job_id,
        status=JobStatus.PENDING.value,
        pdf_url=pdf_url,
    )


# ---------------------------------------------------------------------------
# GET /documents/{file_id} — Upload and ingestion status
# ---------------------------------------------------------------------------


@router.get(
    "/documents/{file_id}",
    response_model=DocumentStatusResponse,
    summary="Get upload and ingestion status",
)
async def get_document_status(
    file_id: str,
    context: ServiceContext = Depends(get_context),
    session: AsyncSession = Depends(get_async_session),
) -> DocumentStatusResponse:
    row = await session.get(UploadedFileRow, file_id)
    if row is None:
        raise HTTPException(status_code=404, detail=f"PDF not found: {file_id!r}")

    queue_state: str | None = None
    if row.jobs:
        latest = row.jobs[-1]
        try:
            queue_state = await asyncio.to_thread(context.job_queue.status, latest.job_id)
        except RedisError as exc:
            logger.warning("[%s] Could not read queue state: %s", latest.job_id, exc)

    indexed_chunks: int | None = None
    try:
        indexed_chunks = await asyncio.to_thread(
            context.vector_store.count, context.settings.collection_name, row.id,
        )
    except RetryableError as exc:
        logger.warning("Could not count indexed chunks for %s: %s", row.id, exc)

    return DocumentStatusResponse(
        file_id=row.id,
        original_name=row.original_name,
        size_bytes=row.size_bytes,
        uploaded_at=row.uploaded_at,
        jobs=[IngestionJobResponse.model_validate(job) for job in row.jobs],
        queue_state=queue_state,
        indexed_chunks=indexed_chunks,
    )
