# =============================================================================
# Database Package — Engine, Sessions, ORM Models
# =============================================================================
#   - engine.py: async engine (FastAPI) + lazy sync engine (Celery)
#   - models.py: uploaded files, ingestion jobs, pgvector collections
# =============================================================================
