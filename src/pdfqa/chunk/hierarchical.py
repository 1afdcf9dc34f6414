"""Hierarchical chunker with a token ceiling.

Splits extracted text into Chunk objects in four levels, each level only
applied to units that are still over the ceiling:
1. Numbered-heading sections ("1. Introduction")
2. Paragraph groups (blank-line boundaries)
3. Sentence groups
4. Word groups, titled ``title.N`` (terminal; a lone oversize word is kept)

Every level packs its units greedily: a unit joins the running group while
the group stays within the ceiling, otherwise the group is flushed.
"""

from __future__ import annotations

import hashlib
import logging
import math
import re
from collections import Counter
from dataclasses import dataclass
from typing import TYPE_CHECKING

from pdfqa.chunk.base import BaseChunker
from pdfqa.exceptions import ChunkError
from pdfqa.tokens import count_tokens, count_words
from pdfqa.types import Chunk, ChunkingResult, ChunkingStats

if TYPE_CHECKING:
    from collections.abc import Callable

__all__ = ["DEFAULT_MAX_TOKENS", "HierarchicalChunker", "split_by_words"]

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 300

# Numbered heading at line start: "1. Intro", "12. Results"
_HEADING_RE = re.compile(r"^\d+\.[^\S\n]+.*$", re.MULTILINE)

_PARAGRAPH_RE = re.compile(r"\n\s*\n")
_SENTENCE_RE = re.compile(r"(?<=[.!?])\s+")

_SLUG_RE = re.compile(r"[^a-z0-9]+")


def _split_paragraphs(text: str) -> list[str]:
    return [p.strip() for p in _PARAGRAPH_RE.split(text) if p.strip()]


def _split_sentences(text: str) -> list[str]:
    return [s.strip() for s in _SENTENCE_RE.split(text) if s.strip()]


def _split_words(text: str) -> list[str]:
    return text.split()


def _greedy_pack(units: list[str], joiner: str, max_tokens: int) -> list[str]:
    """Pack units into groups that stay within max_tokens where possible.

    A unit that is oversize on its own still forms its own group.
    """
    groups: list[str] = []
    current = ""

    for unit in units:
        candidate = f"{current}{joiner}{unit}" if current else unit
        if current and count_tokens(candidate) > max_tokens:
            groups.append(current)
            current = unit
        else:
            current = candidate

    if current:
        groups.append(current)

    return groups


def split_by_words(text: str, max_tokens: int) -> list[str]:
    """Word-level split used as the last resort for oversize text."""
    return _greedy_pack(_split_words(text), " ", max_tokens)


@dataclass(frozen=True)
class _SplitLevel:
    """One level of the reduction hierarchy."""

    level: int
    split: Callable[[str], list[str]]
    joiner: str
    numbered_titles: bool = False


_SPLIT_LEVELS: tuple[_SplitLevel, ...] = (
    _SplitLevel(level=2, split=_split_paragraphs, joiner="\n\n"),
    _SplitLevel(level=3, split=_split_sentences, joiner=" "),
    _SplitLevel(level=4, split=_split_words, joiner=" ", numbered_titles=True),
)


@dataclass(frozen=True)
class _Section:
    title: str
    text: str
    offset: int


@dataclass(frozen=True)
class _Piece:
    text: str
    title: str
    level: int
    page: int


def _split_sections(text: str, source_name: str) -> list[_Section]:
    """Partition text at numbered headings.

    The heading line stays in the section text so that the chunks
    reproduce the whole document.
    """
    matches = list(_HEADING_RE.finditer(text))
    sections: list[_Section] = []

    if not matches:
        stripped = text.strip()
        return [_Section(title=source_name, text=stripped, offset=0)] if stripped else []

    preamble = text[: matches[0].start()].strip()
    if preamble:
        sections.append(_Section(title=source_name, text=preamble, offset=0))

    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
        body = text[match.start() : end].strip()
        if body:
            sections.append(_Section(title=match.group(0).strip(), text=body, offset=match.start()))

    return sections


def _estimate_page(offset: int, text_length: int, total_pages: int) -> int:
    """Proportional-offset page estimate, clamped to >= 1."""
    if text_length <= 0 or total_pages <= 0:
        return 1
    return max(1, math.ceil((offset / text_length) * total_pages))


def _doc_slug(source_name: str) -> str:
    slug = _SLUG_RE.sub("_", source_name.lower()).strip("_")
    return slug or "doc"


def _generate_chunk_id(slug: str, index: int, text: str) -> str:
    """Generate a deterministic unique chunk ID."""
    content_hash = hashlib.sha256(text.encode("utf-8")).hexdigest()[:8]
    return f"{slug}_chunk_{index:04d}_{content_hash}"


def _build_stats(chunks: list[Chunk]) -> ChunkingStats | None:
    if not chunks:
        return None
    total_chars = sum(len(c.text) for c in chunks)
    return ChunkingStats(
        total_chunks=len(chunks),
        total_tokens=sum(c.token_count for c in chunks),
        average_chunk_size=total_chars / len(chunks),
        chunks_by_level=dict(Counter(c.level for c in chunks)),
        chunks_by_page=dict(Counter(c.page_number for c in chunks)),
    )


class HierarchicalChunker(BaseChunker):
    """Section → paragraph → sentence → word chunker with a token ceiling.

    Chunking is best-effort: absent or blank input yields an empty result
    instead of an error.
    """

    def __init__(self, max_tokens: int = DEFAULT_MAX_TOKENS) -> None:
        if max_tokens < 1:
            raise ChunkError(f"max_tokens must be >= 1, got {max_tokens}")
        self.max_tokens = max_tokens

    def chunk(self, text: str, source_name: str, total_pages: int = 0) -> ChunkingResult:
        """Split extracted text into chunks.

        Args:
            text: Raw extracted text.
            source_name: Document name; titles text before the first heading.
            total_pages: Page count used for proportional page estimates.

        Returns:
            ChunkingResult; empty with ``stats=None`` for blank input.

        Raises:
            ChunkError: If chunking fails unexpectedly.
        """
        if not isinstance(text, str) or not text.strip():
            return ChunkingResult(chunks=[], stats=None)

        try:
            return self._do_chunk(text, source_name or "document", total_pages)
        except ChunkError:
            raise
        except Exception as e:
            logger.error("Failed to chunk %s: %s", source_name, e)
            raise ChunkError(f"Failed to chunk {source_name}: {e}") from e

    def _do_chunk(self, text: str, source_name: str, total_pages: int) -> ChunkingResult:
        """Internal chunking implementation."""
        pieces: list[_Piece] = []

        for section in _split_sections(text, source_name):
            page = _estimate_page(section.offset, len(text), total_pages)
            if count_tokens(section.text) <= self.max_tokens:
                pieces.append(_Piece(section.text, section.title, 1, page))
            else:
                pieces.extend(self._reduce(section.text, section.title, page, depth=0))

        slug = _doc_slug(source_name)
        chunks: list[Chunk] = []
        for piece in pieces:
            chunk_text = piece.text.strip()
            if not chunk_text:
                continue
            chunks.append(
                Chunk(
                    chunk_id=_generate_chunk_id(slug, len(chunks), chunk_text),
                    text=chunk_text,
                    title=piece.title,
                    page_number=piece.page,
                    level=piece.level,
                    token_count=count_tokens(chunk_text),
                    word_count=count_words(chunk_text),
                )
            )

        logger.info(
            "Chunked %s into %d chunks (max_tokens=%d)", source_name, len(chunks), self.max_tokens
        )
        return ChunkingResult(chunks=chunks, stats=_build_stats(chunks))

    def _reduce(self, text: str, title: str, page: int, depth: int) -> list[_Piece]:
        """Split oversize text at the level for ``depth``, recursing on groups still too big."""
        split_level = _SPLIT_LEVELS[depth]
        is_last = depth == len(_SPLIT_LEVELS) - 1
        groups = _greedy_pack(split_level.split(text), split_level.joiner, self.max_tokens)

        pieces: list[_Piece] = []
        for part, group in enumerate(groups, start=1):
            if is_last or count_tokens(group) <= self.max_tokens:
                group_title = f"{title}.{part}" if split_level.numbered_titles else title
                pieces.append(_Piece(group, group_title, split_level.level, page))
            else:
                pieces.extend(self._reduce(group, title, page, depth + 1))

        return pieces
