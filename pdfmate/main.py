# =============================================================================
# Application Entry Point
# =============================================================================
#
# Run with:
#   uvicorn pdfmate.main:app --host 0.0.0.0 --port 8000
#
# STARTUP (lifespan):
#   1. Build the ServiceContext (clients constructed once per process)
#   2. Create database tables (and the pgvector extension)
#   3. Ensure the upload directory exists
#
# Stored PDFs are served read-only under /uploads.
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pdfmate.api import chat, study, upload
from pdfmate.api.files import UploadedFiles
from pdfmate.config import settings
from pdfmate.context import build_context
from pdfmate.db.engine import async_engine, init_db
from pdfmate.models.responses import HealthResponse

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    app.state.context = build_context(settings)
    await init_db()
    app.state.context.document_store.ensure_root()
    logger.info("%s %s started", settings.app_name, settings.app_version)
    try:
        yield
    finally:
        await async_engine.dispose()


app = FastAPI(
    title="pdfmate",
    version=settings.app_version,
    description="Upload PDFs, then chat with them, summarise them or turn them into flashcards.",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.cors_origins.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(upload.router)
app.include_router(study.router)
app.include_router(chat.router)

# check_dir=False: the directory is created by the lifespan above
app.mount(
    "/uploads",
    UploadedFiles(directory=settings.upload_dir, check_dir=False),
    name="uploads",
)


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health() -> HealthResponse:
    return HealthResponse(version=settings.app_version, service=settings.app_name)
