"""Pipeline data contracts for pdfqa.

Frozen dataclasses that flow between pipeline stages:
  PDF → ParseResult → list[Chunk] → embedded list[Chunk] → SearchResult / SummaryChunk
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Literal

__all__ = [
    "FINAL_SUMMARY_ID",
    "FINAL_SUMMARY_TITLE",
    "Backend",
    "ChatAnswer",
    "Chunk",
    "ChunkStoreStats",
    "ChunkingResult",
    "ChunkingStats",
    "ConversationMessage",
    "EmbeddingBatchResult",
    "ParseResult",
    "SearchOutcome",
    "SearchResult",
    "ServiceResponse",
    "SummarizationResult",
    "SummaryChunk",
    "SummaryStats",
]

Backend = Literal["primary", "local"]

FINAL_SUMMARY_ID = "final_summary"
FINAL_SUMMARY_TITLE = "Final Document Summary"


@dataclass(frozen=True)
class ParseResult:
    """Output of a parser: plain extracted text plus document facts."""

    doc_id: str
    content: str
    title: str = ""
    source_path: str = ""
    page_count: int = 0


@dataclass(frozen=True)
class Chunk:
    """A contiguous span of source text, the unit of retrieval and summarization."""

    chunk_id: str
    text: str
    title: str
    page_number: int
    level: int
    token_count: int
    word_count: int
    embedding: tuple[float, ...] = field(default_factory=tuple)
    similarity: float | None = None
    from_cache: bool = False

    @property
    def has_embedding(self) -> bool:
        return len(self.embedding) > 0

    def with_embedding(self, embedding: tuple[float, ...], from_cache: bool = False) -> Chunk:
        """Return a copy carrying an embedding vector."""
        return replace(self, embedding=tuple(embedding), from_cache=from_cache)

    def with_similarity(self, similarity: float) -> Chunk:
        """Return a copy carrying a query-time similarity score."""
        return replace(self, similarity=similarity)


@dataclass(frozen=True)
class ChunkingStats:
    """Side output of the chunker."""

    total_chunks: int
    total_tokens: int
    average_chunk_size: float
    chunks_by_level: dict[int, int] = field(default_factory=dict)
    chunks_by_page: dict[int, int] = field(default_factory=dict)


@dataclass(frozen=True)
class ChunkingResult:
    """Chunks in document order plus stats (``None`` when nothing was produced)."""

    chunks: list[Chunk] = field(default_factory=list)
    stats: ChunkingStats | None = None


@dataclass(frozen=True)
class SummaryChunk:
    """A summary of a batch of chunks or of earlier summaries."""

    summary_id: str
    title: str
    text: str
    page_number: int
    level: int
    token_count: int
    word_count: int
    summary_type: Literal["summary", "final_summary"] = "summary"
    source_chunk_ids: tuple[str, ...] = ()
    summary_index: int = 0

    @property
    def is_final(self) -> bool:
        return self.summary_type == "final_summary"

    def as_final(self) -> SummaryChunk:
        """Relabel this summary as the terminal document summary."""
        return replace(
            self,
            summary_id=FINAL_SUMMARY_ID,
            title=FINAL_SUMMARY_TITLE,
            summary_type="final_summary",
        )


@dataclass(frozen=True)
class SummarizationResult:
    """Outcome of a full map-reduce summarization run."""

    summaries: list[SummaryChunk]
    final_summary: SummaryChunk | None
    total_processed: int
    processing_steps: int
    from_cache: int
    newly_generated: int
    backend: Backend
    rate_limit_hit: bool = False
    fallback_used: bool = False


@dataclass(frozen=True)
class SummaryStats:
    """Aggregate view over the summary store."""

    total: int
    intermediate: int
    final: int
    total_tokens: int
    average_length: float


@dataclass(frozen=True)
class ChunkStoreStats:
    """Aggregate view over the chunk store."""

    total: int
    with_embeddings: int
    chunks_by_level: dict[int, int] = field(default_factory=dict)
    chunks_by_page: dict[int, int] = field(default_factory=dict)


@dataclass(frozen=True)
class SearchResult:
    """A search result: chunk (with similarity attached) + relevance score."""

    chunk: Chunk
    score: float


@dataclass(frozen=True)
class SearchOutcome:
    """Selected results for one query."""

    results: list[SearchResult]
    total_tokens: int
    query_embedding: list[float] = field(default_factory=list)
    method: Literal["vector", "lexical"] = "vector"


@dataclass(frozen=True)
class EmbeddingBatchResult:
    """Chunks returned by the embedding service with cache counters."""

    chunks: list[Chunk]
    from_cache: int
    newly_generated: int
    total_batches: int = 0
    batch_size: int = 0
    processing_time: float = 0.0


@dataclass(frozen=True)
class ConversationMessage:
    """One turn of the rolling chat history."""

    message_id: str
    role: Literal["user", "assistant"]
    content: str
    token_count: int = 0
    timestamp: str = ""


@dataclass(frozen=True)
class ChatAnswer:
    """Answer to a question with the chunks used as sources."""

    answer: str
    sources: list[SearchResult]
    message_id: str
    total_tokens: int = 0


@dataclass(frozen=True)
class ServiceResponse:
    """Structured result of a boundary operation; never raised, always returned."""

    success: bool
    message: str = ""
    payload: object | None = None
    requires_api_key: bool = False
