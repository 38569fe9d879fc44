# =============================================================================
# Query Responder — Chat (RAG), Summaries and Flashcards
# =============================================================================
#
# The read side of the system. Three surfaces share one LLM provider:
#
#   answer(query)        — embed → top-k retrieval → grounded completion
#   summarise(path)      — full PDF text → in-depth summary
#   flashcards(path)     — full PDF text → N question/answer cards as JSON
#
# Chat never fails because nothing has been ingested yet: a missing
# collection is treated as zero retrieved chunks and the model is told the
# context is empty, so it answers that the information is not available.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path

from pdfmate.errors import CollectionNotFoundError, InputError, ParseError, UpstreamError
from pdfmate.services.embedder import EmbeddingClient
from pdfmate.services.extractor import PdfExtractor
from pdfmate.services.json_extract import extract_json
from pdfmate.services.llm import LLMProvider
from pdfmate.services.vectorstore import VectorSearchResult, VectorStore

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

CHAT_SYSTEM_PROMPT = """\
You are an intelligent AI assistant that helps users by answering questions \
based on the content of the uploaded PDF documents.
Always provide clear, concise, and accurate answers referencing only the \
information contained in the PDFs.
If the answer is not found in the documents, politely say that the \
information is not available in the uploaded content.
Avoid making up answers or providing unrelated information.
Respond in a friendly and helpful tone."""

SUMMARY_PROMPT = (
    "Summarize the following PDF content clearly and concisely in depth:\n\n"
    "{content}"
)

FLASHCARD_PROMPT = """\
You are a flashcard generator.

TASK:
From the given text, create exactly {count} flashcards.

FORMAT:
Return ONLY valid JSON. Do not include explanations, notes, or markdown formatting.
The JSON must be an array of objects with "question" and "answer".

Example:
[
  {{ "question": "What is photosynthesis?", "answer": "The process by which plants make food using sunlight." }},
  {{ "question": "Who discovered gravity?", "answer": "Sir Isaac Newton" }}
]

CONTENT:
{content}
"""

FLASHCARD_PARSE_FALLBACK = [
    {
        "question": "Error parsing flashcards",
        "answer": "The response format was invalid. Please try again.",
    },
]


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class QueryResult:
    """A chat answer and the chunks it was grounded on."""

    answer: str
    retrieved_chunks: list[VectorSearchResult] = field(default_factory=list)
    model: str = ""


# ---------------------------------------------------------------------------
# Responder
# ---------------------------------------------------------------------------


class QueryResponder:
    """Builds prompts from stored documents and calls the LLM."""

    def __init__(
        self,
        embedder: EmbeddingClient,
        vector_store: VectorStore,
        llm: LLMProvider,
        extractor: PdfExtractor,
        collection: str,
        top_k: int = 2,
        summary_max_chars: int = 100_000,
        flashcard_count: int = 10,
    ) -> None:
        self._embedder = embedder
        self._vector_store = vector_store
        self._llm = llm
        self._extractor = extractor
        self._collection = collection
        self._top_k = top_k
        self._summary_max_chars = summary_max_chars
        self._flashcard_count = flashcard_count

    # -----------------------------------------------------------------------
    # Chat
    # -----------------------------------------------------------------------

    async def answer(self, query: str) -> QueryResult:
        """
        Answer a free-text question from the ingested chunks.

        Raises:
            InputError: Blank query.
            UpstreamError: Embedding or LLM failure.
        """
        if not query or not query.strip():
            raise InputError("Query must not be empty")

        vector = await asyncio.to_thread(self._embedder.embed, query)

        try:
            chunks = await self._vector_store.query(self._collection, vector, self._top_k)
        except CollectionNotFoundError:
            logger.info("Collection '%s' not created yet, answering without context", self._collection)
            chunks = []

        logger.info("Chat query retrieved %d chunks: %.80s", len(chunks), query)

        user_message = (
            f"context:\n{_format_context(chunks)}\n\n"
            f"User question: {query}"
        )
        content, model = await self._complete(user_message, system=CHAT_SYSTEM_PROMPT)
        return QueryResult(answer=content, retrieved_chunks=chunks, model=model)

    # -----------------------------------------------------------------------
    # Whole-document surfaces
    # -----------------------------------------------------------------------

    async def summarise(self, file_path: str | Path) -> str:
        """
        Summarise one stored PDF.

        Raises:
            ExtractionError: The PDF has no extractable text.
            UpstreamError: LLM failure or empty response.
        """
        text = await self._document_text(file_path)
        content, _ = await self._complete(SUMMARY_PROMPT.format(content=text))
        return content

    async def flashcards(self, file_path: str | Path) -> list[dict]:
        """
        Generate question/answer flashcards for one stored PDF.

        Output that cannot be parsed into a list of cards is replaced with a
        single placeholder card instead of failing the request.
        """
        text = await self._document_text(file_path)
        prompt = FLASHCARD_PROMPT.format(count=self._flashcard_count, content=text)
        content, _ = await self._complete(prompt)

        try:
            cards = _parse_flashcards(content)
        except ParseError as exc:
            logger.warning("Failed to parse flashcards, returning fallback: %s", exc)
            return [dict(card) for card in FLASHCARD_PARSE_FALLBACK]

        logger.info("Generated %d flashcards for %s", len(cards), Path(file_path).name)
        return cards

    # -----------------------------------------------------------------------
    # Internal Helpers
    # -----------------------------------------------------------------------

    async def _document_text(self, file_path: str | Path) -> str:
        text = await asyncio.to_thread(self._extractor.extract_text, file_path)
        if len(text) > self._summary_max_chars:
            logger.info(
                "Truncating %s from %d to %d characters",
                Path(file_path).name, len(text), self._summary_max_chars,
            )
            text = text[: self._summary_max_chars]
        return text

    async def _complete(self, user_message: str, system: str | None = None) -> tuple[str, str]:
        response = await self._llm.complete(
            messages=[{"role": "user", "content": user_message}],
            system=system,
        )
        if not response.content or not response.content.strip():
            raise UpstreamError(f"Model {response.model} returned an empty response")

        logger.info(
            "Completion done: model=%s, tokens=%d+%d",
            response.model, response.input_tokens, response.output_tokens,
        )
        return response.content, response.model


def _format_context(chunks: list[VectorSearchResult]) -> str:
    """
    Format retrieved chunks as numbered context for the LLM.

        [1] (page 12):
        Revenue for Q3 2024 was $4.2 billion...

        ---

        [2] (page 15):
        ...
    """
    if not chunks:
        return "(no documents have been ingested yet)"

    sections = []
    for i, chunk in enumerate(chunks, 1):
        page_label = f" (page {chunk.page_number})" if chunk.page_number else ""
        sections.append(f"[{i}]{page_label}:\n{chunk.content}")
    return "\n\n---\n\n".join(sections)


def _parse_flashcards(content: str) -> list[dict]:
    """Read a JSON array of {"question", "answer"} objects from model output."""
    parsed = extract_json(content)
    if isinstance(parsed, dict):
        parsed = parsed.get("flashcards", parsed)
    if not isinstance(parsed, list):
        raise ParseError(f"Expected a JSON array of flashcards, got {type(parsed).__name__}")
    if not all(isinstance(item, dict) for item in parsed):
        raise ParseError("Flashcard array contains entries that are not objects")

    # Missing fields become empty strings so every card fits the response model
    return [
        {"question": str(item.get("question") or ""), "answer": str(item.get("answer") or "")}
        for item in parsed
    ]
