"""PDF parser — extracts the plain text of every page with PyMuPDF.

Layout is not reconstructed: pages are read in PyMuPDF's text order and
joined with blank lines so that the chunker sees paragraph boundaries.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from pdfqa.exceptions import ParseError
from pdfqa.ingest.base import BaseParser
from pdfqa.types import ParseResult

if TYPE_CHECKING:
    from pathlib import Path

__all__ = ["PdfParser"]

logger = logging.getLogger(__name__)

# PyMuPDF text extraction flags: preserve ligatures + whitespace, suppress images
_TEXT_FLAGS = 11

_MULTI_BLANK_RE = re.compile(r"\n{3,}")


class PdfParser(BaseParser):
    """Parser for PDF documents."""

    MAX_FILE_SIZE: int = 200 * 1024 * 1024  # 200 MB

    def parse(self, path: Path) -> ParseResult:
        """Extract the text of a PDF file.

        Args:
            path: Path to the .pdf file.

        Returns:
            ParseResult with the text of all pages and the page count.

        Raises:
            ParseError: If the PDF cannot be opened or read.
        """
        try:
            import pymupdf
        except ImportError as e:
            msg = "pymupdf is required for PDF parsing: pip install pymupdf"
            raise ParseError(msg) from e

        if not path.exists():
            msg = f"PDF file not found: {path.name}"
            raise ParseError(msg)

        _check_pdf_safety(path, self.MAX_FILE_SIZE)

        logger.info("Parsing PDF file: %s", path)

        try:
            doc = pymupdf.open(str(path))
        except (RuntimeError, ValueError, OSError) as e:
            logger.debug("PDF open failure (%s): %s", type(e).__name__, e, exc_info=True)
            msg = f"Failed to open PDF file {path.name}: {e}"
            raise ParseError(msg) from e

        try:
            page_count = len(doc)
            pages: list[str] = []
            for page in doc:
                page_text = page.get_text("text", flags=_TEXT_FLAGS).strip()
                if page_text:
                    pages.append(page_text)

            pdf_meta = doc.metadata or {}
            title = pdf_meta.get("title", "") or path.stem
        except (RuntimeError, ValueError) as e:
            msg = f"Failed to extract text from {path.name}: {e}"
            raise ParseError(msg) from e
        finally:
            doc.close()

        content = _MULTI_BLANK_RE.sub("\n\n", "\n\n".join(pages))
        logger.info("Parsed %s: %d pages, %d chars", path.name, page_count, len(content))

        return ParseResult(
            doc_id=_make_doc_id(path),
            content=content,
            title=title,
            source_path=str(path),
            page_count=page_count,
        )

    def supported_extensions(self) -> frozenset[str]:
        """Return supported file extensions."""
        return frozenset({".pdf"})


def _make_doc_id(path: Path) -> str:
    """Generate a document ID from the file path."""
    return path.stem.lower().replace("-", "_").replace(" ", "_") + "_pdf"


def _check_pdf_safety(path: Path, max_size: int) -> None:
    """Validate PDF magic header and file size.

    Raises:
        ParseError: If the file is not a valid PDF or exceeds size limit.
    """
    file_size = path.stat().st_size
    if file_size > max_size:
        msg = f"PDF file {path.name} ({file_size} bytes) exceeds maximum size ({max_size} bytes)"
        raise ParseError(msg)

    try:
        with path.open("rb") as f:
            header = f.read(5)
    except OSError as e:
        msg = f"Cannot read PDF file {path.name}: {e}"
        raise ParseError(msg) from e

    if header != b"%PDF-":
        msg = f"File {path.name} is not a valid PDF (missing %PDF- header)"
        raise ParseError(msg)
