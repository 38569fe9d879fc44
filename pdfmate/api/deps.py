# =============================================================================
# API Dependencies — Service Context and Error Mapping
# =============================================================================
#
# Routes never build clients themselves. The lifespan in main.py stores a
# ServiceContext on app.state and routes receive it through Depends(), so
# tests swap in fakes with app.dependency_overrides.
#
# ERROR MAPPING (PdfMateError → HTTP):
#   DocumentNotFoundError → 404
#   InputError            → 400
#   ExtractionError       → 422
#   UpstreamError         → 502
#   no LLM configured     → 503
# =============================================================================

from __future__ import annotations

import logging

from fastapi import HTTPException, Request

from pdfmate.context import ServiceContext
from pdfmate.errors import (
    DocumentNotFoundError,
    ExtractionError,
    InputError,
    PdfMateError,
    UpstreamError,
)
from pdfmate.services.responder import QueryResponder

logger = logging.getLogger(__name__)


def get_context(request: Request) -> ServiceContext:
    """FastAPI dependency returning the process-wide ServiceContext."""
    return request.app.state.context


def require_responder(context: ServiceContext) -> QueryResponder:
    """
    Return a QueryResponder, or raise 503 when no LLM provider could be
    configured at startup.

    Called from the handler body once request parameters have been checked,
    so a malformed request is answered with 400 even without an LLM.
    """
    try:
        return context.responder()
    except RuntimeError as exc:
        raise HTTPException(
            status_code=503,
            detail=(
                "LLM service not configured. Set LLM_API_KEY or "
                "ANTHROPIC_API_KEY in .env"
            ),
        ) from exc


def http_error(exc: PdfMateError) -> HTTPException:
    """Translate an application error into the HTTPException to raise."""
    if isinstance(exc, DocumentNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, InputError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, ExtractionError):
        return HTTPException(status_code=422, detail=f"Failed to extract text from PDF: {exc}")
    if isinstance(exc, UpstreamError):
        return HTTPException(status_code=502, detail=f"Upstream service error: {exc}")
    return HTTPException(status_code=500, detail=str(exc))
