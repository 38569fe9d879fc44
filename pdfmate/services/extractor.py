# =============================================================================
# Text/Chunk Extractor — PDF file → ordered DocumentChunk list
# =============================================================================
#
# Thin facade over parser.py and chunker.py that owns input validation and
# turns every parsing failure into ExtractionError:
#
#   missing file / empty file / Docling failure / no text  →  ExtractionError
#
# The ingestion pipeline treats ExtractionError as terminal (no retry), and
# the summary/flashcards endpoints map it to 422.
# =============================================================================

from __future__ import annotations

import logging
from pathlib import Path

from pdfmate.errors import ExtractionError
from pdfmate.services.chunker import DocumentChunk, chunk_document
from pdfmate.services.parser import ParsedDocument, parse_pdf

logger = logging.getLogger(__name__)


class PdfExtractor:
    """Turns a stored PDF into chunks (ingestion) or plain text (summaries)."""

    def __init__(
        self,
        policy: str = "page",
        chunk_size: int = 512,
        chunk_overlap: int = 50,
    ) -> None:
        self._policy = policy
        self._chunk_size = chunk_size
        self._chunk_overlap = chunk_overlap

    def extract(
        self,
        file_path: str | Path,
        source_file_id: str | None = None,
    ) -> list[DocumentChunk]:
        """
        Extract ordered chunks from a PDF.

        Args:
            file_path: Path of the stored PDF.
            source_file_id: Id recorded on every chunk. Defaults to the
                file name, which is the upload id for stored files.

        Raises:
            ExtractionError: File missing/empty, unparseable, or no text.
        """
        path = Path(file_path)
        parsed = self._parse(path)
        chunks = chunk_document(
            parsed,
            source_file_id=source_file_id or path.name,
            policy=self._policy,
            chunk_size=self._chunk_size,
            chunk_overlap=self._chunk_overlap,
        )
        if not chunks:
            raise ExtractionError(f"No extractable text in '{path.name}'")
        return chunks

    def extract_text(self, file_path: str | Path) -> str:
        """Return the whole document text, pages separated by blank lines."""
        path = Path(file_path)
        text = self._parse(path).text.strip()
        if not text:
            raise ExtractionError(f"No extractable text in '{path.name}'")
        return text

    def _parse(self, path: Path) -> ParsedDocument:
        if not path.is_file():
            raise ExtractionError(f"PDF file not found at: {path}")

        size = path.stat().st_size
        if size == 0:
            raise ExtractionError(f"PDF file is empty: {path.name}")
        logger.debug("Extracting %s (%.2f KB)", path.name, size / 1024)

        try:
            parsed = parse_pdf(path)
        except (RuntimeError, FileNotFoundError) as exc:
            raise ExtractionError(str(exc)) from exc

        if not parsed.pages:
            raise ExtractionError(f"No extractable text in '{path.name}'")
        return parsed
