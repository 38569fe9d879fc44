# =============================================================================
# Database Models — SQLAlchemy ORM
# =============================================================================
#
# SCHEMA OVERVIEW:
#
# ┌────────────────────┐       ┌─────────────────────────────────┐
# │  uploaded_files    │       │  ingestion_jobs                 │
# ├────────────────────┤       ├─────────────────────────────────┤
# │ id (PK, file id)   │──1:N─▶│ job_id (PK)                     │
# │ original_name      │       │ file_id (FK → uploaded_files)   │
# │ storage_path       │       │ file_path, collection           │
# │ size_bytes         │       │ status, attempts, chunk_count   │
# │ uploaded_at        │       │ error_message                   │
# └────────────────────┘       │ enqueued_at, updated_at         │
#                              └─────────────────────────────────┘
#
# ┌────────────────────┐       ┌─────────────────────────────────┐
# │ vector_collections │       │  chunk_vectors                  │
# ├────────────────────┤       ├─────────────────────────────────┤
# │ name (PK)          │──1:N─▶│ collection (PK, FK)             │
# │ dimensions         │       │ point_id (PK)                   │
# │ created_at         │       │ content, embedding, payload     │
# └────────────────────┘       └─────────────────────────────────┘
#
# The vector tables are only used by the pgvector backend. The composite
# primary key (collection, point_id) is what makes re-ingestion an upsert.
# =============================================================================

import enum
from datetime import datetime

from pgvector.sqlalchemy import Vector
from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from pdfmate.config import settings


class Base(DeclarativeBase):
    """SQLAlchemy declarative base class."""

    pass


class JobStatus(str, enum.Enum):
    """
    Ingestion job state as seen by API clients.

        PENDING → PROCESSING → SUCCEEDED
                             → FAILED
                             → PENDING (retry scheduled)
    """

    PENDING = "pending"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class UploadedFile(Base):
    """An uploaded PDF stored on disk. Immutable after creation."""

    __tablename__ = "uploaded_files"

    # Generated storage filename, also the public file identifier
    id: Mapped[str] = mapped_column(String(512), primary_key=True)
    original_name: Mapped[str] = mapped_column(String(500), nullable=False)
    storage_path: Mapped[str] = mapped_column(Text, nullable=False)
    size_bytes: Mapped[int] = mapped_column(Integer, nullable=False)
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    jobs: Mapped[list["IngestionJob"]] = relationship(
        "IngestionJob",
        back_populates="file",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="IngestionJob.enqueued_at",
    )

    def __repr__(self) -> str:
        return f"<UploadedFile(id='{self.id}', original_name='{self.original_name}')>"


class IngestionJob(Base):
    """Tracks one queued ingestion of an uploaded file."""

    __tablename__ = "ingestion_jobs"

    # Same value as the Celery task id
    job_id: Mapped[str] = mapped_column(String(64), primary_key=True)

    file_id: Mapped[str] = mapped_column(
        String(512),
        ForeignKey("uploaded_files.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    file_path: Mapped[str] = mapped_column(Text, nullable=False)
    collection: Mapped[str] = mapped_column(String(255), nullable=False)

    status: Mapped[JobStatus] = mapped_column(
        Enum(JobStatus),
        nullable=False,
        default=JobStatus.PENDING,
    )
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    chunk_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    enqueued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    file: Mapped[UploadedFile] = relationship("UploadedFile", back_populates="jobs")

    def __repr__(self) -> str:
        return f"<IngestionJob(job_id='{self.job_id}', status={self.status})>"


class VectorCollection(Base):
    """A named vector collection (pgvector backend only)."""

    __tablename__ = "vector_collections"

    name: Mapped[str] = mapped_column(String(255), primary_key=True)
    dimensions: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )


class ChunkVector(Base):
    """One embedded chunk stored in a pgvector collection."""

    __tablename__ = "chunk_vectors"

    collection: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("vector_collections.name", ondelete="CASCADE"),
        primary_key=True,
    )
    point_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    embedding = mapped_column(Vector(settings.embedding_dimensions), nullable=False)
    payload: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
