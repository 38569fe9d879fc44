# =============================================================================
# Database Engine & Session Management
# =============================================================================
#
# Two engines share one PostgreSQL database:
#   - async engine (asyncpg)  → FastAPI request handlers
#   - sync engine (psycopg2)  → Celery workers, created lazily
#
# SESSION LIFECYCLE (request dependency):
#   create → yield → commit (or rollback on error) → close
# Handlers may commit early when a row must be visible to a worker before
# the request finishes (see api/upload.py).
# =============================================================================

import logging
from collections.abc import AsyncGenerator, Generator
from contextlib import contextmanager
from functools import lru_cache

from sqlalchemy import create_engine, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session, sessionmaker

from pdfmate.config import settings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Async Engine
# ---------------------------------------------------------------------------
async_engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=5,
    max_overflow=10,
)

async_session_factory = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ---------------------------------------------------------------------------
# Sync Engine — For Celery Workers (Lazy Initialization)
# ---------------------------------------------------------------------------
# Created on first use. Workers always need it; the API process only when
# it counts pgvector records for GET /documents/{file_id}.
# ---------------------------------------------------------------------------


@lru_cache
def _sync_session_factory() -> sessionmaker[Session]:
    engine = create_engine(
        settings.database_url_sync,
        echo=settings.debug,
        pool_size=5,
        max_overflow=10,
    )
    return sessionmaker(bind=engine, expire_on_commit=False)


@contextmanager
def get_sync_session() -> Generator[Session, None, None]:
    """Worker-side session: committed on exit, rolled back if the block raises."""
    with _sync_session_factory().begin() as session:
        yield session


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that provides a database session per request."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """
    Create the pgvector extension and all tables if they do not exist.

    Called once from the FastAPI lifespan.
    """
    from pdfmate.db.models import Base

    async with async_engine.begin() as conn:
        if settings.vectorstore_type == "pgvector":
            await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready")
