"""Tests for the HierarchicalChunker."""

from __future__ import annotations

import re

import pytest

from pdfqa.chunk.hierarchical import (
    HierarchicalChunker,
    _estimate_page,
    _split_sections,
    split_by_words,
)
from pdfqa.exceptions import ChunkError
from pdfqa.tokens import count_tokens

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def chunker() -> HierarchicalChunker:
    return HierarchicalChunker()


def _squash(text: str) -> str:
    return re.sub(r"\s+", "", text)


# ---------------------------------------------------------------------------
# Empty input
# ---------------------------------------------------------------------------


class TestEmptyInput:
    def test_empty_content_returns_empty(self, chunker):
        result = chunker.chunk("", "doc")
        assert result.chunks == []
        assert result.stats is None

    def test_whitespace_only_returns_empty(self, chunker):
        result = chunker.chunk("   \n\n\t  ", "doc")
        assert result.chunks == []
        assert result.stats is None

    def test_invalid_ceiling_raises(self):
        with pytest.raises(ChunkError, match="max_tokens"):
            HierarchicalChunker(max_tokens=0)


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


class TestSections:
    def test_short_text_single_chunk(self, chunker):
        result = chunker.chunk("Just a short note about nothing.", "notes", total_pages=1)
        assert len(result.chunks) == 1
        chunk = result.chunks[0]
        assert chunk.level == 1
        assert chunk.title == "notes"
        assert chunk.page_number == 1
        assert chunk.token_count == count_tokens(chunk.text)

    def test_numbered_headings_become_titles(self, chunker):
        text = "1. Intro\nHello world.\n\n2. Scope\nThis covers scope.\n\n3. Terms\nDefinitions."
        result = chunker.chunk(text, "doc")
        assert [c.title for c in result.chunks] == ["1. Intro", "2. Scope", "3. Terms"]
        assert all(c.level == 1 for c in result.chunks)

    def test_heading_line_kept_in_text(self, chunker):
        result = chunker.chunk("1. Intro\nHello world.", "doc")
        assert result.chunks[0].text.startswith("1. Intro")

    def test_preamble_titled_with_source_name(self):
        sections = _split_sections("Cover page text\n\n1. Intro\nBody", "handbook")
        assert sections[0].title == "handbook"
        assert sections[0].text == "Cover page text"
        assert sections[1].title == "1. Intro"

    def test_heading_must_start_line(self):
        sections = _split_sections("See section 2. Body for more.", "doc")
        assert len(sections) == 1
        assert sections[0].title == "doc"


# ---------------------------------------------------------------------------
# Recursive splitting
# ---------------------------------------------------------------------------


class TestRecursiveSplitting:
    def test_long_section_split_under_ceiling(self, chunker):
        text = "1. Intro\nHello world.\n\n2. Body\n" + ("word " * 1000)
        result = chunker.chunk(text, "doc", total_pages=1)

        assert len(result.chunks) >= 2
        assert all(c.token_count <= 300 for c in result.chunks)
        assert result.chunks[0].title == "1. Intro"
        assert result.chunks[0].level == 1

    def test_paragraph_level_keeps_section_title(self):
        chunker = HierarchicalChunker(max_tokens=40)
        paragraphs = [f"Paragraph {i} talks briefly about topic {i}." for i in range(12)]
        text = "1. Topics\n" + "\n\n".join(paragraphs)
        result = chunker.chunk(text, "doc")

        assert len(result.chunks) > 1
        assert all(c.level == 2 for c in result.chunks)
        assert all(c.title == "1. Topics" for c in result.chunks)
        assert all(c.token_count <= 40 for c in result.chunks)

    def test_sentence_level_for_long_paragraph(self):
        chunker = HierarchicalChunker(max_tokens=30)
        sentences = " ".join(f"Sentence number {i} is here." for i in range(20))
        result = chunker.chunk(sentences, "doc")

        assert {c.level for c in result.chunks} == {3}
        assert all(c.token_count <= 30 for c in result.chunks)

    def test_word_level_titles_are_numbered(self):
        chunker = HierarchicalChunker(max_tokens=20)
        result = chunker.chunk("1. Wall\n" + "alpha " * 100, "doc")

        word_chunks = [c for c in result.chunks if c.level == 4]
        assert word_chunks
        assert word_chunks[0].title.startswith("1. Wall.")
        assert [c.title for c in word_chunks] == [
            f"1. Wall.{n}" for n in range(1, len(word_chunks) + 1)
        ]

    def test_lone_oversize_word_is_kept(self):
        chunker = HierarchicalChunker(max_tokens=2)
        giant = "supercalifragilisticexpialidocious" * 3
        result = chunker.chunk(giant, "doc")

        assert len(result.chunks) == 1
        assert result.chunks[0].text == giant
        assert result.chunks[0].token_count > 2

    def test_reconstructs_source_text(self, chunker):
        text = (
            "Preface line.\n\n1. Intro\nHello world. Another sentence!\n\n"
            "2. Body\n" + ("lorem ipsum dolor sit amet. " * 200) + "\n\n3. End\nBye."
        )
        result = chunker.chunk(text, "doc", total_pages=4)
        joined = "".join(c.text for c in result.chunks)
        assert _squash(joined) == _squash(text)


class TestSplitByWords:
    def test_groups_stay_under_ceiling(self):
        groups = split_by_words("word " * 250, 50)
        assert len(groups) >= 5
        assert all(count_tokens(g) <= 50 for g in groups)
        assert " ".join(groups).split() == ["word"] * 250


# ---------------------------------------------------------------------------
# Ids, pages and stats
# ---------------------------------------------------------------------------


class TestChunkMetadata:
    def test_chunk_ids_unique_and_ordered(self, chunker):
        text = "\n\n".join(f"{i}. Part\nBody of part {i}." for i in range(1, 8))
        result = chunker.chunk(text, "My Report")
        ids = [c.chunk_id for c in result.chunks]
        assert len(set(ids)) == len(ids)
        assert ids == sorted(ids)
        assert ids[0].startswith("my_report_chunk_0000_")

    def test_idempotent(self, chunker):
        text = "1. Intro\nHello world.\n\n2. Body\n" + ("word " * 700)
        first = chunker.chunk(text, "doc", total_pages=3)
        second = chunker.chunk(text, "doc", total_pages=3)
        assert first.chunks == second.chunks

    def test_pages_are_proportional(self, chunker):
        text = "\n\n".join(f"{i}. Part\n" + ("text " * 50) for i in range(1, 11))
        result = chunker.chunk(text, "doc", total_pages=10)
        pages = [c.page_number for c in result.chunks]
        assert pages[0] == 1
        assert pages == sorted(pages)
        assert max(pages) <= 10
        assert max(pages) > 1

    def test_estimate_page_clamps(self):
        assert _estimate_page(0, 1000, 10) == 1
        assert _estimate_page(500, 1000, 10) == 5
        assert _estimate_page(10, 0, 10) == 1
        assert _estimate_page(10, 100, 0) == 1

    def test_stats(self, chunker):
        text = "1. Intro\nHello world.\n\n2. Body\n" + ("word " * 1000)
        result = chunker.chunk(text, "doc", total_pages=2)
        stats = result.stats
        assert stats is not None
        assert stats.total_chunks == len(result.chunks)
        assert stats.total_tokens == sum(c.token_count for c in result.chunks)
        assert sum(stats.chunks_by_level.values()) == len(result.chunks)
        assert sum(stats.chunks_by_page.values()) == len(result.chunks)
        assert stats.average_chunk_size > 0
