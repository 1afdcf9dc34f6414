"""Tests for pdfqa.ingest.pdf — PdfParser."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from pdfqa.exceptions import ParseError
from pdfqa.ingest import PdfParser, TextParser, get_parser_for
from pdfqa.types import ParseResult

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def parser() -> PdfParser:
    return PdfParser()


@pytest.fixture
def result(parser: PdfParser, handbook_pdf: Path) -> ParseResult:
    return parser.parse(handbook_pdf)


# ── ParseResult fields ─────────────────────────────────────────────


class TestParseResultFields:
    def test_returns_parse_result(self, result: ParseResult):
        assert isinstance(result, ParseResult)

    def test_doc_id_from_filename(self, result: ParseResult):
        assert result.doc_id == "handbook_pdf"

    def test_title_from_metadata(self, result: ParseResult):
        assert result.title == "Store Handbook"

    def test_source_path_set(self, result: ParseResult, handbook_pdf: Path):
        assert result.source_path == str(handbook_pdf)

    def test_page_count(self, result: ParseResult):
        assert result.page_count == 2


# ── Content ─────────────────────────────────────────────────────────


class TestContent:
    def test_text_of_every_page(self, result: ParseResult):
        assert "1. Introduction" in result.content
        assert "Refunds are accepted within 30 days of purchase." in result.content

    def test_pages_in_order(self, result: ParseResult):
        assert result.content.index("2. Shipping") < result.content.index("3. Refund Policy")

    def test_pages_separated_by_blank_line(self, result: ParseResult):
        between = result.content.split("3. Refund Policy")[0]
        assert between.endswith("\n\n")

    def test_no_runs_of_blank_lines(self, result: ParseResult):
        assert "\n\n\n" not in result.content


# ── Errors ──────────────────────────────────────────────────────────


class TestErrors:
    def test_missing_file_raises(self, parser: PdfParser, tmp_path: Path):
        with pytest.raises(ParseError, match="not found"):
            parser.parse(tmp_path / "missing.pdf")

    def test_non_pdf_content_raises(self, parser: PdfParser, tmp_path: Path):
        fake = tmp_path / "fake.pdf"
        fake.write_text("definitely not a pdf", encoding="utf-8")
        with pytest.raises(ParseError, match="not a valid PDF"):
            parser.parse(fake)

    def test_oversize_file_raises(self, tmp_path: Path, handbook_pdf: Path):
        parser = PdfParser()
        parser.MAX_FILE_SIZE = 10
        with pytest.raises(ParseError, match="exceeds maximum size"):
            parser.parse(handbook_pdf)


# ── Parser selection ────────────────────────────────────────────────


class TestGetParserFor:
    def test_pdf_extension(self, tmp_path: Path):
        assert isinstance(get_parser_for(tmp_path / "a.PDF"), PdfParser)

    def test_text_extension(self, tmp_path: Path):
        assert isinstance(get_parser_for(tmp_path / "a.txt"), TextParser)

    def test_unsupported_extension_raises(self, tmp_path: Path):
        with pytest.raises(ParseError, match="Unsupported format"):
            get_parser_for(tmp_path / "a.docx")
