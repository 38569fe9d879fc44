# =============================================================================
# Shared Test Fixtures
# =============================================================================
#
# Fakes for the external services so the suite runs without API keys,
# Redis or PostgreSQL:
#   - FakeEmbedder: deterministic letter-frequency vectors
#   - fake LLM: AsyncMock returning a fixed LLMResponse
#   - fake Docling converter: pages of text items with provenance
#   - Chroma in-process with a fresh collection per test
# =============================================================================

from __future__ import annotations

import math
import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from docling_core.types.doc.labels import DocItemLabel

from pdfmate.services.llm import LLMResponse
from pdfmate.services.vectorstore import ChromaVectorStore


class FakeEmbedder:
    """
    Embeds text as normalised a-z letter counts.

    Similar texts get similar vectors, which is enough to check retrieval
    ordering without a real model.
    """

    def __init__(self) -> None:
        self.calls: list[list[str]] = []

    def embed(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [_letter_vector(text) for text in texts]


def _letter_vector(text: str) -> list[float]:
    counts = [0.01] * 26
    for char in text.lower():
        if "a" <= char <= "z":
            counts[ord(char) - ord("a")] += 1.0
    norm = math.sqrt(sum(c * c for c in counts))
    return [c / norm for c in counts]


def make_docling_document(pages: dict[int, list[str]], tables: dict[int, str] | None = None):
    """Build an object shaped like a DoclingDocument for parse_pdf()."""
    items = []
    for page_no in sorted(set(pages) | set(tables or {})):
        prov = [SimpleNamespace(page_no=page_no)]
        items.append((SimpleNamespace(label=DocItemLabel.PAGE_HEADER, text="Running header", prov=prov), 0))
        for text in pages.get(page_no, []):
            items.append((SimpleNamespace(label=DocItemLabel.TEXT, text=text, prov=prov), 1))
        if tables and page_no in tables:
            markdown = tables[page_no]
            items.append((
                SimpleNamespace(
                    label=DocItemLabel.TABLE,
                    text="",
                    prov=prov,
                    export_to_markdown=lambda doc=None, md=markdown: md,
                ),
                1,
            ))
    return SimpleNamespace(iterate_items=lambda: list(items))


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def make_llm():
    """Factory: make_llm("answer text") → LLM provider double."""

    def _make(content: str = "A helpful answer.") -> MagicMock:
        llm = MagicMock()
        llm.complete = AsyncMock(return_value=LLMResponse(
            content=content,
            model="fake-llm",
            input_tokens=10,
            output_tokens=5,
        ))
        return llm

    return _make


@pytest.fixture
def chroma_store() -> ChromaVectorStore:
    return ChromaVectorStore()


@pytest.fixture
def collection_name() -> str:
    return f"test-{uuid.uuid4().hex}"


@pytest.fixture
def docling_pages():
    """
    Patch the Docling converter to return the given pages.

    Usage: docling_pages({1: ["text"], 2: ["more"]})
    """
    patchers = []

    def _install(pages: dict[int, list[str]], tables: dict[int, str] | None = None) -> MagicMock:
        converter = MagicMock()
        converter.convert.return_value = SimpleNamespace(
            document=make_docling_document(pages, tables),
        )
        patcher = patch("pdfmate.services.parser._get_converter", return_value=converter)
        patcher.start()
        patchers.append(patcher)
        return converter

    yield _install

    for patcher in patchers:
        patcher.stop()


@pytest.fixture
def pdf_file(tmp_path):
    """A non-empty file standing in for a stored PDF (Docling is faked)."""
    path = tmp_path / "1700000000000-abcdef123456-report.pdf"
    path.write_bytes(b"%PDF-1.4\n% fake test document\n")
    return path
