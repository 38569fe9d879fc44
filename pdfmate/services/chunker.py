# =============================================================================
# Chunker — Page Chunks and Token Windows (tiktoken)
# =============================================================================
#
# Turns a ParsedDocument into an ordered list of DocumentChunk.
#
# POLICIES:
#   "page"   — one chunk per page with text. Page numbers are kept for
#              citation and boundaries never move between runs.
#   "tokens" — each page is cut into windows of chunk_size tokens with
#              chunk_overlap tokens of overlap. Windows never cross pages,
#              so every chunk still has exactly one page number.
#
# Both policies are deterministic: the same parsed document always yields
# the same chunks with the same sequence indices.
# =============================================================================

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field

import tiktoken

from pdfmate.services.parser import ParsedDocument

logger = logging.getLogger(__name__)

CHUNKING_POLICIES = ("page", "tokens")

# Namespace for point ids; changing it would orphan every stored vector
_POINT_NAMESPACE = uuid.UUID("6f1c1a3e-2d0b-5b7e-9a51-4c3f0e8d2b17")


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DocumentChunk:
    """
    A bounded unit of extracted text, the atomic retrieval granularity.

    Never mutated after creation. `point_id` is derived from
    (source_file_id, sequence_index) so re-ingesting a file overwrites its
    previous vectors instead of duplicating them.
    """

    source_file_id: str
    sequence_index: int  # 0-indexed position within the document
    text: str
    page_number: int | None = None  # 1-indexed
    token_count: int | None = None
    metadata: dict = field(default_factory=dict, compare=False)

    @property
    def point_id(self) -> str:
        return make_point_id(self.source_file_id, self.sequence_index)


def make_point_id(source_file_id: str, sequence_index: int) -> str:
    """Stable vector id for the chunk at `sequence_index` of a file."""
    return str(uuid.uuid5(_POINT_NAMESPACE, f"{source_file_id}:{sequence_index}"))


# ---------------------------------------------------------------------------
# Tiktoken Encoder — Cached Singleton
# ---------------------------------------------------------------------------
# cl100k_base is the encoding used by text-embedding-3-small, so token
# counts match what the embedding model sees.
# ---------------------------------------------------------------------------

_encoder: tiktoken.Encoding | None = None


def _get_encoder() -> tiktoken.Encoding:
    """Lazily initialize and cache the tiktoken encoder."""
    global _encoder
    if _encoder is None:
        _encoder = tiktoken.get_encoding("cl100k_base")
    return _encoder


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def chunk_document(
    parsed_doc: ParsedDocument,
    source_file_id: str,
    policy: str = "page",
    chunk_size: int = 512,
    chunk_overlap: int = 50,
) -> list[DocumentChunk]:
    """
    Split a parsed document into ordered chunks.

    Args:
        parsed_doc: Output of parse_pdf().
        source_file_id: Id of the uploaded file the chunks belong to.
        policy: "page" or "tokens".
        chunk_size: Maximum tokens per chunk ("tokens" policy only).
        chunk_overlap: Token overlap between windows ("tokens" policy only).

    Returns:
        Chunks in page order with sequence_index 0..n-1.
    """
    if policy not in CHUNKING_POLICIES:
        raise ValueError(
            f"Unknown chunking policy '{policy}'. "
            f"Supported policies: {list(CHUNKING_POLICIES)}"
        )
    if policy == "tokens" and chunk_overlap >= chunk_size:
        raise ValueError("chunk_overlap must be smaller than chunk_size")

    texts: list[tuple[int, str, int | None]] = []
    for page in parsed_doc.pages:
        page_text = page.text.strip()
        if not page_text:
            continue
        if policy == "page":
            texts.append((page.page_number, page_text, None))
        else:
            for window_text, token_count in _token_windows(
                page_text, chunk_size, chunk_overlap,
            ):
                texts.append((page.page_number, window_text, token_count))

    chunks = [
        DocumentChunk(
            source_file_id=source_file_id,
            sequence_index=index,
            text=text,
            page_number=page_number,
            token_count=token_count,
            metadata={"source": parsed_doc.filename},
        )
        for index, (page_number, text, token_count) in enumerate(texts)
    ]

    logger.info(
        "Chunked '%s' into %d chunks (policy=%s, pages=%d)",
        parsed_doc.filename, len(chunks), policy, len(parsed_doc.pages),
    )
    return chunks


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _token_windows(
    text: str,
    chunk_size: int,
    chunk_overlap: int,
) -> list[tuple[str, int]]:
    """Slide a chunk_size window over the tokens of `text`."""
    encoder = _get_encoder()
    tokens = encoder.encode(text)
    step = max(chunk_size - chunk_overlap, 1)

    windows: list[tuple[str, int]] = []
    for start in range(0, len(tokens), step):
        end = min(start + chunk_size, len(tokens))
        window = tokens[start:end]
        decoded = encoder.decode(window).strip()
        if decoded:
            windows.append((decoded, len(window)))
        if end >= len(tokens):
            break
    return windows
