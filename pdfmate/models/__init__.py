# =============================================================================
# Models Package — Pydantic V2 Schemas
# =============================================================================
# API response schemas and the ingestion job payload. These are separate
# from the database models in pdfmate/db/models.py.
# =============================================================================
