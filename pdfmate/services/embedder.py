# =============================================================================
# Embedding Client — Batch Vector Generation (Provider-Agnostic)
# =============================================================================
#
# Generates embeddings through any OpenAI-compatible embeddings endpoint
# (OpenAI itself, or another provider via EMBEDDING_BASE_URL).
#
# FAILURE CLASSIFICATION:
#   RetryableError — rate limits (429), timeouts, connection errors, 5xx
#   FatalError     — empty input, auth failures, bad requests, other 4xx
#
# No retry loop lives here beyond the SDK's own. Ingestion retries are the
# job queue's responsibility (see workers/tasks.py); the query path makes a
# single attempt.
#
# TOKEN LIMITS:
# - Each text: max 8,191 tokens (a PDF page is well within this)
# - Texts are sent in sub-batches of embedding_batch_size (default 100)
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Sequence

import openai
from openai import OpenAI

from pdfmate.config import Settings
from pdfmate.errors import FatalError, RetryableError, UpstreamError

logger = logging.getLogger(__name__)

_RETRYABLE_ERRORS = (
    openai.RateLimitError,
    openai.APIConnectionError,  # includes APITimeoutError
    openai.InternalServerError,
)


def classify_openai_error(exc: openai.OpenAIError) -> UpstreamError:
    """Map an OpenAI SDK error onto RetryableError or FatalError."""
    if isinstance(exc, _RETRYABLE_ERRORS):
        return RetryableError(f"Embedding service unavailable: {exc}")
    if isinstance(exc, openai.APIStatusError) and exc.status_code >= 500:
        return RetryableError(f"Embedding service error: {exc}")
    return FatalError(f"Embedding request rejected: {exc}")


class EmbeddingClient:
    """
    Maps text to fixed-length vectors via a hosted embedding model.

    Constructed once per process (see context.py) and shared; the OpenAI
    client manages its own connection pool and is thread-safe.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        dimensions: int | None = None,
        batch_size: int = 100,
        base_url: str | None = None,
        client: OpenAI | None = None,
    ) -> None:
        if client is None:
            if not api_key:
                raise ValueError(
                    "No API key configured for embeddings. "
                    "Set OPENAI_API_KEY or LLM_API_KEY in .env"
                )
            client_kwargs: dict = {"api_key": api_key}
            if base_url:
                client_kwargs["base_url"] = base_url
            client = OpenAI(**client_kwargs)

        self._client = client
        self._model = model
        self._dimensions = dimensions
        self._batch_size = max(batch_size, 1)

        logger.info(
            "Initialized embedding client (model=%s, base_url=%s)",
            model, base_url or "https://api.openai.com/v1",
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> EmbeddingClient:
        return cls(
            api_key=settings.openai_api_key or settings.llm_api_key or "",
            model=settings.embedding_model,
            dimensions=settings.embedding_dimensions,
            batch_size=settings.embedding_batch_size,
            base_url=settings.embedding_base_url,
        )

    def embed(self, text: str) -> list[float]:
        """Embed a single text (used for user queries)."""
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        """
        Embed many texts, returning vectors in the SAME ORDER as the input.

        Raises:
            FatalError: Empty/blank input or a permanent API rejection.
            RetryableError: Transient API failure.
        """
        if not texts:
            return []
        for position, text in enumerate(texts):
            if not text or not text.strip():
                raise FatalError(f"Cannot embed empty text (position {position})")

        all_embeddings: list[list[float]] = [[] for _ in texts]

        for i in range(0, len(texts), self._batch_size):
            batch = list(texts[i : i + self._batch_size])
            logger.info(
                "Embedding batch %d-%d of %d texts (model=%s)",
                i + 1, i + len(batch), len(texts), self._model,
            )

            create_kwargs: dict = {"model": self._model, "input": batch}
            if self._dimensions:
                create_kwargs["dimensions"] = self._dimensions

            try:
                response = self._client.embeddings.create(**create_kwargs)
            except openai.OpenAIError as exc:
                error = classify_openai_error(exc)
                logger.warning("Embedding batch failed (%s): %s", type(error).__name__, exc)
                raise error from exc

            if len(response.data) != len(batch):
                raise RetryableError(
                    f"Embedding service returned {len(response.data)} vectors "
                    f"for {len(batch)} inputs"
                )

            # Items carry their input index; sort so a reordered response
            # cannot pair a vector with the wrong text.
            for item in sorted(response.data, key=lambda x: x.index):
                all_embeddings[i + item.index] = item.embedding

        logger.info("Generated %d embeddings (model=%s)", len(texts), self._model)
        return all_embeddings
