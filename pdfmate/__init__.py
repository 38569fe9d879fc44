# =============================================================================
# pdfmate — PDF Study Assistant
# =============================================================================
# Upload a PDF, ingest it into a vector index in the background, then ask for
# a summary, a deck of flashcards, or chat with the document.
#
# Package structure:
#   pdfmate/
#   ├── api/          → FastAPI route handlers (upload, study, chat)
#   ├── db/           → Database engine, sessions, and ORM models
#   ├── models/       → Pydantic V2 schemas (API responses, job payloads)
#   ├── services/     → Business logic (storage, parsing, chunking,
#   │                    embedding, vector store, LLM, query responder,
#   │                    ingestion pipeline)
#   └── workers/      → Celery app, job queue and ingestion task
# =============================================================================
