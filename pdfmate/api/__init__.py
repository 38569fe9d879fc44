# =============================================================================
# API Package — FastAPI Route Handlers
# =============================================================================
#   - deps.py: dependencies (service context, responder, error mapping)
#   - upload.py: PDF upload and ingestion status
#   - study.py: whole-document summary and flashcards
#   - chat.py: retrieval-augmented chat over every ingested chunk
# =============================================================================
