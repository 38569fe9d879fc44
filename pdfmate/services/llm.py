# =============================================================================
# Multi-Provider LLM Abstraction — Pluggable Completion Backend
# =============================================================================
#
# A common interface for LLM completions, with concrete implementations for
# Anthropic (Claude) and any OpenAI-compatible API (OpenAI, DeepSeek, Qwen,
# Gemini's OpenAI endpoint, ...).
#
# Every SDK exception is translated before it leaves this module:
#   RetryableError — rate limits, timeouts, connection errors, 5xx
#   FatalError     — auth failures, bad requests, other 4xx
# so callers never need to import a vendor SDK to handle failures.
#
# Async only: completions are requested from FastAPI handlers. Ingestion
# workers never call the LLM.
#
# ARCHITECTURE:
#   LLMProvider (Protocol)
#   ├── AnthropicProvider        — system prompt as top-level kwarg
#   ├── OpenAICompatibleProvider — system prompt as first message
#   └── build_llm_provider()     — factory, reads from Settings
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import anthropic
import openai
from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from pdfmate.config import Settings
from pdfmate.errors import FatalError, RetryableError, UpstreamError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class LLMResponse:
    """One completion, whichever SDK produced it."""

    content: str
    model: str
    input_tokens: int
    output_tokens: int


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class LLMProvider(Protocol):
    """Interface every completion backend provides."""

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """
        Run one chat completion.

        Args:
            messages: "user" / "assistant" turns; the system prompt is passed
                separately.
            system: Instructions that frame the whole exchange.
            temperature: Per-call sampling temperature, None for the default.
            max_tokens: Per-call output cap, None for the default.

        Raises:
            RetryableError: Transient provider failure.
            FatalError: Request rejected by the provider.
        """
        ...


# ---------------------------------------------------------------------------
# Error Classification
# ---------------------------------------------------------------------------


def _classify(
    exc: Exception,
    retryable: tuple[type[Exception], ...],
    status_error: type[Exception],
) -> UpstreamError:
    if isinstance(exc, retryable):
        return RetryableError(f"LLM provider unavailable: {exc}")
    if isinstance(exc, status_error) and getattr(exc, "status_code", 0) >= 500:
        return RetryableError(f"LLM provider error: {exc}")
    return FatalError(f"LLM request rejected: {exc}")


_ANTHROPIC_RETRYABLE = (
    anthropic.RateLimitError,
    anthropic.APIConnectionError,
    anthropic.InternalServerError,
)

_OPENAI_RETRYABLE = (
    openai.RateLimitError,
    openai.APIConnectionError,
    openai.InternalServerError,
)


# ---------------------------------------------------------------------------
# Implementation 1: Anthropic (Claude)
# ---------------------------------------------------------------------------


class AnthropicProvider:
    """
    Anthropic Claude provider using the native async SDK.

    Anthropic takes system prompts as a top-level `system=` kwarg, NOT as a
    message with role "system".
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        temperature: float = 0.2,
        max_tokens: int = 4096,
        client: AsyncAnthropic | None = None,
    ) -> None:
        if client is None:
            if not api_key:
                raise ValueError(
                    "No Anthropic API key configured. Set LLM_API_KEY or "
                    "ANTHROPIC_API_KEY in .env"
                )
            client = AsyncAnthropic(api_key=api_key)

        self._client = client
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens

        logger.info("Initialized AnthropicProvider (model=%s)", self._model)

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        kwargs: dict = {
            "model": self._model,
            "messages": messages,
            "max_tokens": max_tokens or self._max_tokens,
            "temperature": self._temperature if temperature is None else temperature,
        }
        if system:
            kwargs["system"] = system

        try:
            response = await self._client.messages.create(**kwargs)
        except anthropic.AnthropicError as exc:
            error = _classify(exc, _ANTHROPIC_RETRYABLE, anthropic.APIStatusError)
            logger.warning("Anthropic completion failed (%s): %s", type(error).__name__, exc)
            raise error from exc

        return LLMResponse(
            content=next(
                (block.text for block in response.content if block.type == "text"), "",
            ),
            model=response.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )


# ---------------------------------------------------------------------------
# Implementation 2: OpenAI-Compatible
# ---------------------------------------------------------------------------


class OpenAICompatibleProvider:
    """
    Chat completions against OpenAI or anything speaking its wire format.

    Gemini, for example:
        LLM_PROVIDER=openai_compatible
        LLM_BASE_URL=https://generativelanguage.googleapis.com/v1beta/openai/
        LLM_MODEL=gemini-2.0-flash
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 4096,
        client: AsyncOpenAI | None = None,
    ) -> None:
        if client is None:
            if not api_key:
                raise ValueError(
                    "No API key configured for OpenAI-compatible provider. "
                    "Set LLM_API_KEY in .env"
                )
            client_kwargs: dict = {"api_key": api_key}
            if base_url:
                client_kwargs["base_url"] = base_url
            client = AsyncOpenAI(**client_kwargs)

        self._client = client
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens

        logger.info(
            "Initialized OpenAICompatibleProvider (model=%s, base_url=%s)",
            self._model,
            base_url or "https://api.openai.com/v1",
        )

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        chat: list[dict[str, str]] = []
        if system:
            chat.append({"role": "system", "content": system})
        chat.extend(messages)

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=chat,
                max_tokens=max_tokens or self._max_tokens,
                temperature=self._temperature if temperature is None else temperature,
            )
        except openai.OpenAIError as exc:
            error = _classify(exc, _OPENAI_RETRYABLE, openai.APIStatusError)
            logger.warning("Completion failed (%s): %s", type(error).__name__, exc)
            raise error from exc

        usage = response.usage
        return LLMResponse(
            content=response.choices[0].message.content or "",
            model=response.model or self._model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        )


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------


def build_llm_provider(
    settings: Settings,
) -> AnthropicProvider | OpenAICompatibleProvider:
    """
    Build the configured LLM provider.

    Reads `llm_provider` from settings:
    - "anthropic" → AnthropicProvider (Claude)
    - "openai_compatible" → OpenAICompatibleProvider

    Raises:
        ValueError: Unknown provider type or no API key configured.
    """
    if settings.llm_provider == "openai_compatible":
        return OpenAICompatibleProvider(
            api_key=settings.llm_api_key or settings.openai_api_key or "",
            model=settings.llm_model,
            base_url=settings.llm_base_url,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
        )

    if settings.llm_provider != "anthropic":
        raise ValueError(
            f"Unknown LLM provider '{settings.llm_provider}'. "
            "Supported providers: ['anthropic', 'openai_compatible']"
        )

    return AnthropicProvider(
        api_key=settings.llm_api_key or settings.anthropic_api_key or "",
        model=settings.llm_model,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
    )
