"""Plain text parser — for text that was already extracted from a PDF."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pdfqa.exceptions import ParseError
from pdfqa.ingest.base import BaseParser
from pdfqa.types import ParseResult

if TYPE_CHECKING:
    from pathlib import Path

__all__ = ["TextParser"]

logger = logging.getLogger(__name__)

MAX_FILE_SIZE: int = 50 * 1024 * 1024  # 50 MB

# Form feed separates pages in pdftotext output
_PAGE_BREAK = "\f"


class TextParser(BaseParser):
    """Parser for plain text files.

    The page count is taken from form-feed page breaks when present.
    """

    def parse(self, path: Path) -> ParseResult:
        """Read a text file into a ParseResult.

        Raises:
            ParseError: If the file cannot be read.
        """
        if not path.is_file():
            msg = f"Text file not found: {path}"
            raise ParseError(msg)

        if path.stat().st_size > MAX_FILE_SIZE:
            msg = f"Text file {path.name} exceeds maximum size ({MAX_FILE_SIZE} bytes)"
            raise ParseError(msg)

        try:
            raw = path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            logger.warning("UTF-8 decode failed for %s, retrying with replacement", path.name)
            raw = path.read_bytes().decode("utf-8", errors="replace")
        except OSError as e:
            msg = f"Cannot read text file {path.name}: {e}"
            raise ParseError(msg) from e

        if raw.startswith("\ufeff"):
            raw = raw[1:]

        page_count = raw.count(_PAGE_BREAK) + 1 if raw.strip() else 0
        content = raw.replace(_PAGE_BREAK, "\n\n").replace("\r\n", "\n")

        return ParseResult(
            doc_id=path.stem.lower().replace("-", "_").replace(" ", "_") + "_txt",
            content=content,
            title=path.stem,
            source_path=str(path),
            page_count=page_count,
        )

    def supported_extensions(self) -> frozenset[str]:
        """Return supported file extensions."""
        return frozenset({".txt", ".text"})
