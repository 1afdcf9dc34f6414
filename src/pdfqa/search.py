"""Similarity search over embedded chunks with a lexical fallback.

Vector search ranks chunks by cosine similarity between the query embedding
and each chunk's embedding. When no chunk has an embedding, or the query
cannot be embedded, chunks are ranked by keyword occurrences instead. Both
paths then select the best candidates that fit a token budget.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

from pdfqa.types import SearchOutcome, SearchResult

if TYPE_CHECKING:
    from collections.abc import Sequence

    from pdfqa.embed.base import BaseEmbedder
    from pdfqa.types import Chunk

__all__ = [
    "VectorSearchEngine",
    "cosine_similarity",
    "lexical_rank",
    "select_within_budget",
]

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 5
DEFAULT_MAX_TOKENS = 3000
_MIN_KEYWORD_LENGTH = 3


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity in [-1, 1]; 0.0 when either vector has zero norm.

    Raises:
        ValueError: If the vectors differ in length.
    """
    if len(a) != len(b):
        raise ValueError(f"Vector length mismatch: {len(a)} != {len(b)}")

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    norm = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if norm == 0.0:
        return 0.0
    return float(np.clip(np.dot(va, vb) / norm, -1.0, 1.0))


def _keyword_score(text: str, keywords: list[str]) -> float:
    lowered = text.lower()
    hits = sum(lowered.count(word) for word in keywords)
    return hits / max(len(text) / 100, 1)


def lexical_rank(query: str, chunks: list[Chunk]) -> list[SearchResult]:
    """Rank chunks by keyword hits, normalised by chunk length.

    Keywords are the lowercased query words longer than two characters.
    """
    keywords = [w for w in query.lower().split() if len(w) >= _MIN_KEYWORD_LENGTH]
    scored = [(chunk, _keyword_score(chunk.text, keywords)) for chunk in chunks]
    scored.sort(key=lambda pair: pair[1], reverse=True)
    return [SearchResult(chunk=c.with_similarity(score), score=score) for c, score in scored]


def select_within_budget(
    ranked: list[SearchResult], top_k: int, max_tokens: int
) -> tuple[list[SearchResult], int]:
    """Take ranked results in order while their token total fits ``max_tokens``.

    The first candidate is always taken, even alone over budget. Selection
    stops at the first candidate that would overflow.
    """
    selected: list[SearchResult] = []
    total = 0
    for result in ranked[:top_k]:
        tokens = result.chunk.token_count
        if total + tokens > max_tokens:
            if not selected:
                selected.append(result)
                total += tokens
            break
        selected.append(result)
        total += tokens
    return selected, total


class VectorSearchEngine:
    """Ranks chunks against a question and picks the ones to show the model."""

    def __init__(self, embedder: BaseEmbedder | None) -> None:
        self._embedder = embedder

    def find_similar_chunks(
        self,
        query: str,
        chunks: list[Chunk],
        top_k: int = DEFAULT_TOP_K,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> SearchOutcome:
        """Return the top chunks for ``query`` within a token budget.

        Never raises for embedding trouble; it degrades to keyword ranking.
        """
        if not chunks:
            return SearchOutcome(results=[], total_tokens=0, method="lexical")

        embedded = [c for c in chunks if c.has_embedding]
        if not embedded or self._embedder is None:
            logger.info("No embedded chunks available, using keyword search")
            return self._lexical(query, chunks, top_k, max_tokens)

        try:
            query_embedding = list(self._embedder.embed_query(query))
            ranked = [
                (chunk, cosine_similarity(query_embedding, chunk.embedding)) for chunk in embedded
            ]
        except Exception as e:  # noqa: BLE001
            logger.warning("Vector search failed, using keyword search: %s", e)
            return self._lexical(query, chunks, top_k, max_tokens)

        ranked.sort(key=lambda pair: pair[1], reverse=True)
        results = [SearchResult(chunk=c.with_similarity(s), score=s) for c, s in ranked]
        selected, total = select_within_budget(results, top_k, max_tokens)

        logger.debug(
            "Vector search selected %d of %d chunks (%d tokens)",
            len(selected),
            len(embedded),
            total,
        )
        return SearchOutcome(
            results=selected,
            total_tokens=total,
            query_embedding=query_embedding,
            method="vector",
        )

    def _lexical(
        self, query: str, chunks: list[Chunk], top_k: int, max_tokens: int
    ) -> SearchOutcome:
        selected, total = select_within_budget(lexical_rank(query, chunks), top_k, max_tokens)
        return SearchOutcome(results=selected, total_tokens=total, method="lexical")
