# =============================================================================
# Services Package — Business Logic
# =============================================================================
# Core logic, separated from API handlers and workers:
#   - storage.py: uploaded PDFs on disk (DocumentStore)
#   - parser.py: PDF parsing with Docling, text grouped by page
#   - chunker.py: page chunks or tiktoken windows with stable point ids
#   - extractor.py: PdfExtractor facade (parse + chunk, ExtractionError)
#   - embedder.py: EmbeddingClient (OpenAI-compatible, batched)
#   - vectorstore.py: pluggable vector index (pgvector, Chroma)
#   - pipeline.py: ingestion state machine (IngestionPipeline)
#   - llm.py: multi-provider LLM abstraction (Anthropic, OpenAI-compatible)
#   - json_extract.py: tolerant JSON extraction from model output
#   - responder.py: chat, summaries and flashcards (QueryResponder)
# =============================================================================
