# =============================================================================
# Study API — Whole-Document Summary and Flashcards
# =============================================================================
#
# ENDPOINTS:
#   GET /summary?file=<file_id>     — in-depth summary of one PDF
#   GET /flashcards?file=<file_id>  — question/answer cards for one PDF
#
# Both read the stored PDF directly, so they work as soon as the upload has
# returned, without waiting for ingestion.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from pdfmate.api.deps import get_context, http_error, require_responder
from pdfmate.context import ServiceContext
from pdfmate.errors import PdfMateError
from pdfmate.models.responses import Flashcard, FlashcardsResponse, SummaryResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Study"])


def _require_file(file: str | None) -> str:
    if not file or not file.strip():
        raise HTTPException(status_code=400, detail="No file specified")
    return file


@router.get(
    "/summary",
    response_model=SummaryResponse,
    summary="Summarise an uploaded PDF",
)
async def summary_endpoint(
    file: str | None = Query(default=None, description="File id returned by /upload/pdf"),
    context: ServiceContext = Depends(get_context),
) -> SummaryResponse:
    file_id = _require_file(file)
    responder = require_responder(context)
    try:
        path = context.document_store.resolve(file_id)
        summary = await responder.summarise(path)
    except PdfMateError as exc:
        logger.error("Summary failed for %s: %s", file_id, exc)
        raise http_error(exc) from exc

    logger.info("Summary generated for %s (%d chars)", file_id, len(summary))
    return SummaryResponse(summary=summary)


@router.get(
    "/flashcards",
    response_model=FlashcardsResponse,
    summary="Generate flashcards from an uploaded PDF",
)
async def flashcards_endpoint(
    file: str | None = Query(default=None, description="File id returned by /upload/pdf"),
    context: ServiceContext = Depends(get_context),
) -> FlashcardsResponse:
    file_id = _require_file(file)
    responder = require_responder(context)
    try:
        path = context.document_store.resolve(file_id)
        cards = await responder.flashcards(path)
    except PdfMateError as exc:
        logger.error("Flashcards failed for %s: %s", file_id, exc)
        raise http_error(exc) from exc

    return FlashcardsResponse(flashcards=[Flashcard(**card) for card in cards])
