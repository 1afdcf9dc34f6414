"""Ingestion — text extraction from PDF and plain text files."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pdfqa.exceptions import ParseError
from pdfqa.ingest.base import BaseParser
from pdfqa.ingest.pdf import PdfParser
from pdfqa.ingest.text import TextParser

if TYPE_CHECKING:
    from pathlib import Path

__all__ = ["BaseParser", "PdfParser", "TextParser", "get_parser_for"]

_PARSERS: tuple[type[BaseParser], ...] = (PdfParser, TextParser)


def get_parser_for(path: Path) -> BaseParser:
    """Return a parser instance that handles the file's extension.

    Raises:
        ParseError: If no parser supports the file.
    """
    for cls in _PARSERS:
        parser = cls()
        if parser.can_parse(path):
            return parser
    raise ParseError(f"Unsupported format: {path.suffix or path.name!r}")
