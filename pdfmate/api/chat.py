# =============================================================================
# Chat API — Retrieval-Augmented Q&A
# =============================================================================
#
# GET /chat?message=<question>
#
# Retrieves the top-k chunks across every ingested PDF and asks the LLM to
# answer from them only. Before anything has been ingested the answer says
# the information is not available; that is a 200, not an error.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from pdfmate.api.deps import get_context, http_error, require_responder
from pdfmate.context import ServiceContext
from pdfmate.errors import PdfMateError
from pdfmate.models.responses import ChatResponse, SourceChunk

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Chat"])


@router.get(
    "/chat",
    response_model=ChatResponse,
    summary="Ask a question about the uploaded PDFs",
)
async def chat_endpoint(
    message: str | None = Query(default=None, description="The user's question"),
    context: ServiceContext = Depends(get_context),
) -> ChatResponse:
    if not message or not message.strip():
        raise HTTPException(status_code=400, detail="No message specified")
    responder = require_responder(context)

    try:
        result = await responder.answer(message)
    except PdfMateError as exc:
        logger.error("Chat failed for query %.80r: %s", message, exc)
        raise http_error(exc) from exc

    return ChatResponse(
        message=result.answer,
        docs=[
            SourceChunk(
                point_id=chunk.point_id,
                content=chunk.content,
                page_number=chunk.page_number,
                similarity_score=chunk.similarity_score,
                metadata=chunk.metadata,
            )
            for chunk in result.retrieved_chunks
        ],
    )
