# =============================================================================
# PDF Parser — Docling Document Intelligence
# =============================================================================
#
# Parses a PDF with Docling and groups the extracted text by page. Each
# document item carries provenance (page number), which is what lets the
# chunker emit one chunk per page with a citable page number.
#
# Tables are exported as markdown so the LLM sees rows and columns instead of
# a flat run of cell values.
#
# Downstream code only sees our own dataclasses (ParsedPage, ParsedDocument),
# never Docling types.
# =============================================================================

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path

from docling.datamodel.base_models import InputFormat
from docling.datamodel.pipeline_options import PdfPipelineOptions
from docling.document_converter import DocumentConverter, PdfFormatOption
from docling_core.types.doc.labels import DocItemLabel

logger = logging.getLogger(__name__)

# Running headers/footers repeat on every page and add noise to retrieval
_SKIPPED_LABELS = {DocItemLabel.PAGE_HEADER, DocItemLabel.PAGE_FOOTER}


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class ParsedPage:
    """All text found on one PDF page, in reading order."""

    page_number: int  # 1-indexed
    text: str


@dataclass
class ParsedDocument:
    """The result of parsing a PDF: non-empty pages in page order."""

    pages: list[ParsedPage] = field(default_factory=list)
    page_count: int = 0
    filename: str = ""

    @property
    def text(self) -> str:
        return "\n\n".join(page.text for page in self.pages)


# ---------------------------------------------------------------------------
# Docling Converter — Lazy Singleton
# ---------------------------------------------------------------------------
# Initialisation loads layout models into memory, so one converter is kept
# per process and reused for every document.
# ---------------------------------------------------------------------------

_converter: DocumentConverter | None = None


def _get_converter() -> DocumentConverter:
    """Lazily initialize and cache the Docling DocumentConverter."""
    global _converter
    if _converter is None:
        logger.info(
            "Initializing Docling DocumentConverter "
            "(first use, may take a few seconds)..."
        )
        pipeline_options = PdfPipelineOptions()
        pipeline_options.do_table_structure = True
        # Text layer only; scanned PDFs without text fail extraction
        pipeline_options.do_ocr = False

        _converter = DocumentConverter(
            format_options={
                InputFormat.PDF: PdfFormatOption(
                    pipeline_options=pipeline_options,
                ),
            }
        )
        logger.info("Docling DocumentConverter initialized")
    return _converter


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_pdf(file_path: str | Path) -> ParsedDocument:
    """
    Parse a PDF file with Docling, grouping text by page.

    Items without provenance are attached to the page of the preceding item
    (or page 1 at the start of the document).

    Raises:
        FileNotFoundError: If the file does not exist.
        RuntimeError: If Docling fails to convert the document.
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"PDF not found: {file_path}")

    logger.info("Parsing PDF: %s", path.name)
    converter = _get_converter()

    try:
        result = converter.convert(str(path))
    except Exception as exc:
        raise RuntimeError(
            f"Docling failed to parse '{path.name}': {exc}"
        ) from exc

    document = result.document
    page_texts: dict[int, list[str]] = defaultdict(list)
    pages_seen: set[int] = set()
    current_page = 1

    for item, _level in document.iterate_items():
        prov = getattr(item, "prov", None)
        if prov:
            current_page = prov[0].page_no
        pages_seen.add(current_page)

        label = getattr(item, "label", None)
        if label in _SKIPPED_LABELS:
            continue

        if label == DocItemLabel.TABLE:
            text = _table_to_markdown(item, document)
        else:
            text = (getattr(item, "text", "") or "").strip()

        if text:
            page_texts[current_page].append(text)

    pages = [
        ParsedPage(page_number=page_no, text="\n\n".join(parts))
        for page_no, parts in sorted(page_texts.items())
    ]
    page_count = max(pages_seen) if pages_seen else 0

    logger.info(
        "Parsed '%s': %d pages with text out of %d",
        path.name, len(pages), page_count,
    )

    return ParsedDocument(pages=pages, page_count=page_count, filename=path.name)


def _table_to_markdown(table_item: object, document: object) -> str:
    """
    Convert a Docling TableItem to a markdown-formatted string.

    Falls back to the item's plain text if the export fails.
    """
    try:
        if hasattr(table_item, "export_to_markdown"):
            return table_item.export_to_markdown(doc=document).strip()
    except Exception as exc:
        logger.warning("Table export to markdown failed: %s", exc)

    text = getattr(table_item, "text", "")
    return text.strip() if text else ""
