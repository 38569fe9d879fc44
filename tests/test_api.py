# =============================================================================
# Integration Tests — HTTP Surface
# =============================================================================
#
# The FastAPI app is driven with TestClient outside its lifespan, so no
# database, Redis or LLM credentials are needed. The ServiceContext and the
# database session are swapped via app.dependency_overrides.
# =============================================================================

from __future__ import annotations

import json
from datetime import UTC, datetime
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from pdfmate.api.deps import get_context
from pdfmate.config import Settings
from pdfmate.context import ServiceContext
from pdfmate.db.engine import get_async_session
from pdfmate.db.models import IngestionJob, JobStatus
from pdfmate.db.models import UploadedFile as UploadedFileRow
from pdfmate.errors import ExtractionError, RetryableError
from pdfmate.main import app
from pdfmate.services.storage import DocumentStore
from pdfmate.services.vectorstore import VectorRecord


class FakeSession:
    """Just enough of AsyncSession for the upload routes."""

    def __init__(self) -> None:
        self.added: list = []
        self.commits = 0
        self.rows: dict = {}

    def add(self, obj) -> None:
        self.added.append(obj)

    async def commit(self) -> None:
        self.commits += 1

    async def rollback(self) -> None:
        pass

    async def get(self, model, key):
        return self.rows.get(key)


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def context(tmp_path, fake_embedder, chroma_store, collection_name, make_llm) -> ServiceContext:
    settings = Settings(
        upload_dir=str(tmp_path / "uploads"),
        collection_name=collection_name,
        public_base_url=None,
        retrieval_top_k=2,
    )
    job_queue = MagicMock()
    job_queue.enqueue.side_effect = lambda descriptor: descriptor.job_id
    job_queue.status.return_value = "PENDING"
    return ServiceContext(
        settings=settings,
        document_store=DocumentStore(settings.upload_dir),
        extractor=MagicMock(),
        embedder=fake_embedder,
        vector_store=chroma_store,
        job_queue=job_queue,
        llm=make_llm("Generated answer."),
    )


@pytest.fixture
def client(context, session):
    app.dependency_overrides[get_context] = lambda: context
    app.dependency_overrides[get_async_session] = lambda: session
    yield TestClient(app)
    app.dependency_overrides.clear()


def _upload(client, content: bytes = b"%PDF-1.4 test", name: str = "notes.pdf"):
    return client.post(
        "/upload/pdf",
        files={"pdf": (name, content, "application/pdf")},
    )


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert response.json()["service"] == "pdfmate"


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------


class TestUpload:
    def test_accepted(self, client, context, session):
        response = _upload(client)

        assert response.status_code == 202
        body = response.json()
        assert body["filename"] == "notes.pdf"
        assert body["status"] == "pending"
        assert body["redirect_url"] == "/chat"
        assert body["file_id"].endswith("-notes.pdf")
        assert body["pdf_url"] == f"http://testserver/uploads/{body['file_id']}"

        stored = context.document_store.resolve(body["file_id"])
        assert stored.read_bytes() == b"%PDF-1.4 test"

        descriptor = context.job_queue.enqueue.call_args.args[0]
        assert descriptor.job_id == body["job_id"]
        assert descriptor.file_id == body["file_id"]
        assert descriptor.collection == context.settings.collection_name

        # Rows committed before the job is published
        assert session.commits >= 1
        assert {type(obj) for obj in session.added} == {UploadedFileRow, IngestionJob}

    def test_public_base_url(self, client, context):
        context.settings.public_base_url = "https://pdfmate.example.com/"
        body = _upload(client).json()
        assert body["pdf_url"] == f"https://pdfmate.example.com/uploads/{body['file_id']}"

    def test_missing_file(self, client, context):
        response = client.post("/upload/pdf")
        assert response.status_code == 400
        context.job_queue.enqueue.assert_not_called()

    def test_empty_file(self, client, context):
        response = _upload(client, content=b"")
        assert response.status_code == 400
        context.job_queue.enqueue.assert_not_called()

    def test_queue_unavailable(self, client, context, session):
        context.job_queue.enqueue.side_effect = RetryableError("redis down")

        response = _upload(client)

        assert response.status_code == 503
        job = next(obj for obj in session.added if isinstance(obj, IngestionJob))
        assert job.status == JobStatus.FAILED

    def test_same_name_uploads_get_unique_ids(self, client):
        ids = {_upload(client, name="same.pdf").json()["file_id"] for _ in range(10)}
        assert len(ids) == 10


# ---------------------------------------------------------------------------
# Document status
# ---------------------------------------------------------------------------


class TestDocumentStatus:
    def test_unknown_file(self, client):
        assert client.get("/documents/missing.pdf").status_code == 404

    def test_known_file(self, client, session):
        now = datetime.now(UTC)
        job = SimpleNamespace(
            job_id="job-1",
            status=JobStatus.SUCCEEDED,
            attempts=1,
            chunk_count=3,
            error_message=None,
            enqueued_at=now,
            updated_at=now,
        )
        session.rows["1-abc-notes.pdf"] = SimpleNamespace(
            id="1-abc-notes.pdf",
            original_name="notes.pdf",
            size_bytes=12,
            uploaded_at=now,
            jobs=[job],
        )

        body = client.get("/documents/1-abc-notes.pdf").json()

        assert body["file_id"] == "1-abc-notes.pdf"
        assert body["jobs"][0]["status"] == "succeeded"
        assert body["jobs"][0]["chunk_count"] == 3
        assert body["queue_state"] == "PENDING"
        assert body["indexed_chunks"] == 0

    def test_indexed_chunks_counted_per_file(self, client, context, session, fake_embedder):
        now = datetime.now(UTC)
        session.rows["1-abc-notes.pdf"] = SimpleNamespace(
            id="1-abc-notes.pdf",
            original_name="notes.pdf",
            size_bytes=12,
            uploaded_at=now,
            jobs=[],
        )
        context.vector_store.upsert(context.settings.collection_name, [
            VectorRecord(
                point_id=f"p{i}",
                vector=fake_embedder.embed(f"page {i}"),
                content=f"page {i}",
                payload={"page_number": i + 1, "source_file_id": file_id},
            )
            for i, file_id in enumerate(["1-abc-notes.pdf", "1-abc-notes.pdf", "2-def-other.pdf"])
        ])

        body = client.get("/documents/1-abc-notes.pdf").json()

        assert body["indexed_chunks"] == 2
        assert body["queue_state"] is None


# ---------------------------------------------------------------------------
# Summary and flashcards
# ---------------------------------------------------------------------------


class TestSummary:
    def test_missing_param(self, client):
        assert client.get("/summary").status_code == 400

    def test_unknown_file(self, client):
        assert client.get("/summary", params={"file": "nope.pdf"}).status_code == 404

    def test_path_traversal_rejected(self, client):
        assert client.get("/summary", params={"file": "../secret.pdf"}).status_code == 404

    def test_success(self, client, context, make_llm):
        file_id = _upload(client).json()["file_id"]
        context.extractor.extract_text.return_value = "Document text."
        context.llm = make_llm("A summary.")

        response = client.get("/summary", params={"file": file_id})

        assert response.status_code == 200
        assert response.json() == {"status": "success", "summary": "A summary."}

    def test_unextractable(self, client, context):
        file_id = _upload(client).json()["file_id"]
        context.extractor.extract_text.side_effect = ExtractionError("No extractable text")

        assert client.get("/summary", params={"file": file_id}).status_code == 422

    def test_llm_failure(self, client, context):
        file_id = _upload(client).json()["file_id"]
        context.extractor.extract_text.return_value = "Document text."
        context.llm.complete.side_effect = RetryableError("overloaded")

        assert client.get("/summary", params={"file": file_id}).status_code == 502

    def test_llm_not_configured(self, client, context):
        context.llm = None
        assert client.get("/summary", params={"file": "x.pdf"}).status_code == 503

    def test_missing_param_without_llm(self, client, context):
        context.llm = None
        assert client.get("/summary").status_code == 400
        assert client.get("/flashcards").status_code == 400


class TestFlashcards:
    def test_success(self, client, context, make_llm):
        file_id = _upload(client).json()["file_id"]
        context.extractor.extract_text.return_value = "Document text."
        cards = [{"question": "Q1", "answer": "A1"}, {"question": "Q2", "answer": "A2"}]
        context.llm = make_llm(f"```json\n{json.dumps(cards)}\n```")

        response = client.get("/flashcards", params={"file": file_id})

        assert response.status_code == 200
        assert response.json() == {"status": "success", "flashcards": cards}

    def test_unparseable_output_falls_back(self, client, context, make_llm):
        file_id = _upload(client).json()["file_id"]
        context.extractor.extract_text.return_value = "Document text."
        context.llm = make_llm("I made some flashcards for you!")

        body = client.get("/flashcards", params={"file": file_id}).json()

        assert body["flashcards"] == [{
            "question": "Error parsing flashcards",
            "answer": "The response format was invalid. Please try again.",
        }]

    def test_missing_param(self, client):
        assert client.get("/flashcards").status_code == 400


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


class TestChat:
    def test_missing_message(self, client):
        assert client.get("/chat").status_code == 400
        assert client.get("/chat", params={"message": "  "}).status_code == 400

    def test_empty_collection(self, client):
        response = client.get("/chat", params={"message": "What is in my PDF?"})

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "success"
        assert body["message"] == "Generated answer."
        assert body["docs"] == []

    def test_returns_retrieved_docs(self, client, context, fake_embedder):
        texts = ["Alpha page text", "Beta page text", "Gamma page text"]
        context.vector_store.upsert(context.settings.collection_name, [
            VectorRecord(
                point_id=f"p{i}",
                vector=fake_embedder.embed(text),
                content=text,
                payload={"page_number": i + 1, "source_file_id": "f"},
            )
            for i, text in enumerate(texts)
        ])

        body = client.get("/chat", params={"message": "alpha"}).json()

        assert len(body["docs"]) == 2
        assert {"point_id", "content", "page_number", "similarity_score", "metadata"} <= set(body["docs"][0])
        scores = [doc["similarity_score"] for doc in body["docs"]]
        assert scores == sorted(scores, reverse=True)

    def test_upstream_failure(self, client, context):
        context.llm.complete.side_effect = RetryableError("timeout")
        assert client.get("/chat", params={"message": "hi"}).status_code == 502

    def test_llm_not_configured(self, client, context):
        context.llm = None
        assert client.get("/chat", params={"message": "hi"}).status_code == 503

    def test_missing_message_without_llm(self, client, context):
        context.llm = None
        assert client.get("/chat").status_code == 400

