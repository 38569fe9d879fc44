# =============================================================================
# Error Taxonomy
# =============================================================================
#
#   PdfMateError
#   ├── InputError               — bad caller input, rejected with a 4xx
#   │   └── DocumentNotFoundError — unknown file identifier (404)
#   ├── ExtractionError          — PDF unreadable or without text, no retry
#   ├── UpstreamError            — embedding / LLM / vector index failures
#   │   ├── RetryableError       — rate limits, timeouts, connection drops
#   │   └── FatalError           — auth failures, malformed requests
#   ├── CollectionNotFoundError  — vector collection not created yet
#   └── ParseError               — model output that is not valid JSON
#
# Every class takes a single message argument so Celery can serialise and
# rebuild them in the result backend.
# =============================================================================


class PdfMateError(Exception):
    """Base class for all application errors."""


class InputError(PdfMateError):
    """Missing or invalid caller input (file, query parameter, payload)."""


class DocumentNotFoundError(InputError):
    """No uploaded file exists for the requested identifier."""


class ExtractionError(PdfMateError):
    """The PDF could not be parsed or produced no extractable text."""


class UpstreamError(PdfMateError):
    """An external service (embeddings, LLM, vector index) failed."""


class RetryableError(UpstreamError):
    """Transient upstream failure; the operation may succeed if repeated."""


class FatalError(UpstreamError):
    """Permanent upstream failure; repeating the operation will not help."""


class CollectionNotFoundError(PdfMateError):
    """The requested vector collection does not exist yet."""


class ParseError(PdfMateError):
    """Model output could not be parsed into the expected structure."""


def is_retryable(error: BaseException) -> bool:
    """Whether the job queue should re-deliver a job that failed with `error`."""
    return isinstance(error, RetryableError)
