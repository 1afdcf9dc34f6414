"""Pipeline orchestrator for pdfqa.

Composes parser → chunker → embedder → store, plus search, answering and
summarization, via constructor injection. Every public operation returns a
``ServiceResponse`` instead of raising, so callers (the CLI, or any other
front end) handle one shape for success and failure alike.
"""

from __future__ import annotations

import functools
import logging
from collections import Counter
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from pdfqa.chat import ConversationAnswerer, new_message_id
from pdfqa.chunk.hierarchical import HierarchicalChunker
from pdfqa.embed.service import EmbeddingService
from pdfqa.exceptions import (
    AuthorizationError,
    MissingCredentialsError,
    PdfqaError,
    RateLimitError,
    ValidationError,
)
from pdfqa.ingest import get_parser_for
from pdfqa.registry import default_registry
from pdfqa.search import VectorSearchEngine
from pdfqa.summarize.backends import LocalSummarizer, RemoteSummarizer
from pdfqa.summarize.summarizer import BatchSummarizer
from pdfqa.types import ChatAnswer, ChunkStoreStats, ServiceResponse

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from pdfqa.chunk.base import BaseChunker
    from pdfqa.config import PdfqaConfig
    from pdfqa.ingest.base import BaseParser
    from pdfqa.store.base import BaseChunkStore, BaseSummaryStore
    from pdfqa.types import (
        Backend,
        Chunk,
        ChunkingResult,
        ConversationMessage,
        ParseResult,
        SummaryChunk,
    )

__all__ = ["Pipeline", "ProcessedDocument"]

logger = logging.getLogger(__name__)

_F = TypeVar("_F", bound="Callable[..., ServiceResponse]")

_CREDENTIAL_ERRORS = (MissingCredentialsError, AuthorizationError, RateLimitError)


@dataclass(frozen=True)
class ProcessedDocument:
    """A parsed document and its chunks."""

    parse: ParseResult
    chunking: ChunkingResult


def _boundary(operation: str) -> Callable[[_F], _F]:
    """Turn exceptions raised by a pipeline operation into a failed ServiceResponse."""

    def decorator(fn: _F) -> _F:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> ServiceResponse:
            try:
                return fn(*args, **kwargs)
            except PdfqaError as e:
                logger.error("%s failed: %s", operation, e)
                return ServiceResponse(
                    success=False,
                    message=str(e),
                    requires_api_key=isinstance(e, _CREDENTIAL_ERRORS),
                )
            except Exception as e:
                logger.exception("Unexpected error in %s", operation)
                return ServiceResponse(success=False, message=f"{operation} failed: {e}")

        return wrapper  # type: ignore[return-value]

    return decorator


def _validate_chunks(chunks: list[Chunk]) -> None:
    if not chunks:
        raise ValidationError("No chunks provided")
    invalid = [c.chunk_id for c in chunks if not c.chunk_id or not c.text.strip()]
    if invalid:
        raise ValidationError(f"Invalid chunks (missing id or text): {invalid[:5]}")


class Pipeline:
    """Orchestrates document processing, retrieval and summarization.

    All dependencies are injected via the constructor, making the pipeline
    fully testable with fake implementations.

    Usage::

        pipeline = Pipeline.from_config(config, chunk_store, summary_cache, saved)
        response = pipeline.ingest(Path("report.pdf"))
        answer = pipeline.ask("What is the refund policy?")
    """

    def __init__(
        self,
        chunker: BaseChunker,
        embedding_service: EmbeddingService,
        chunk_store: BaseChunkStore,
        search_engine: VectorSearchEngine,
        answerer: ConversationAnswerer,
        summarizer: BatchSummarizer,
        config: PdfqaConfig,
        parser_for: Callable[[Path], BaseParser] = get_parser_for,
    ) -> None:
        self.chunker = chunker
        self.embedding_service = embedding_service
        self.chunk_store = chunk_store
        self.search_engine = search_engine
        self.answerer = answerer
        self.summarizer = summarizer
        self.config = config
        self._parser_for = parser_for

    @classmethod
    def from_config(
        cls,
        config: PdfqaConfig,
        chunk_store: BaseChunkStore,
        summary_cache: BaseSummaryStore,
        saved_summaries: BaseSummaryStore,
    ) -> Pipeline:
        """Build providers from config through the registry and wire them together."""
        embedder = default_registry.create("embedding", config.embedding.provider, config)
        chat_completer = default_registry.create("llm", config.llm.provider, config)

        sc = config.summarize
        primary_completer = default_registry.create(
            "llm",
            sc.primary_provider,
            config,
            model=sc.primary_model,
            base_url=sc.primary_base_url,
            api_key_env=sc.primary_api_key_env,
        )
        local_completer = default_registry.create(
            "llm",
            sc.local_provider,
            config,
            model=sc.local_model,
            base_url=sc.local_base_url,
            api_key_env="",
        )

        return cls(
            chunker=HierarchicalChunker(max_tokens=config.chunk.max_tokens),
            embedding_service=EmbeddingService(embedder, chunk_store),
            chunk_store=chunk_store,
            search_engine=VectorSearchEngine(embedder),
            answerer=ConversationAnswerer(
                chat_completer,
                max_tokens=config.llm.max_tokens,
                temperature=config.llm.temperature,
                history_turns=config.chat.history_turns,
            ),
            summarizer=BatchSummarizer(
                primary=RemoteSummarizer(primary_completer, batch_tokens=sc.batch_tokens),
                local=LocalSummarizer(local_completer, max_input_chars=sc.local_max_input_chars),
                cache=summary_cache,
                saved=saved_summaries,
                config=sc,
            ),
            config=config,
        )

    # -- processing --------------------------------------------------------

    @_boundary("process_text")
    def process_text(self, text: str, source_name: str, total_pages: int = 0) -> ServiceResponse:
        """Chunk raw text. Payload: ``ChunkingResult``."""
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("No text provided")

        result = self.chunker.chunk(text, source_name, total_pages)
        return ServiceResponse(
            success=True,
            message=f"Created {len(result.chunks)} chunks from {source_name}",
            payload=result,
        )

    @_boundary("process_pdf")
    def process_pdf(self, path: Path) -> ServiceResponse:
        """Extract and chunk a document file. Payload: ``ProcessedDocument``."""
        parsed = self._parser_for(path).parse(path)
        if not parsed.content.strip():
            raise ValidationError(f"No text could be extracted from {path.name}")

        chunking = self.chunker.chunk(
            parsed.content, parsed.title or path.stem, parsed.page_count
        )
        return ServiceResponse(
            success=True,
            message=f"Extracted {parsed.page_count} pages into {len(chunking.chunks)} chunks",
            payload=ProcessedDocument(parse=parsed, chunking=chunking),
        )

    @_boundary("generate_embeddings")
    def generate_embeddings(self, chunks: list[Chunk]) -> ServiceResponse:
        """Embed chunks, reusing stored vectors. Payload: ``EmbeddingBatchResult``.

        Chunks whose embedding failed are stored too, so keyword search
        still covers them.
        """
        _validate_chunks(chunks)
        result = self.embedding_service.get_or_create_embeddings(chunks)

        unembedded = [c for c in result.chunks if not c.has_embedding]
        if unembedded:
            self.chunk_store.upsert(unembedded)

        return ServiceResponse(
            success=True,
            message=(
                f"Embeddings ready: {result.from_cache} from cache, "
                f"{result.newly_generated} new, {len(unembedded)} without embedding"
            ),
            payload=result,
        )

    @_boundary("ingest")
    def ingest(self, path: Path) -> ServiceResponse:
        """Replace the indexed document with ``path``: extract, chunk, embed, store.

        Payload: ``ProcessedDocument`` with embedded chunks.
        """
        processed = self.process_pdf(path)
        if not processed.success:
            return processed
        document: ProcessedDocument = processed.payload  # type: ignore[assignment]

        new_ids = {c.chunk_id for c in document.chunking.chunks}
        stale = [c.chunk_id for c in self._stored_chunks() if c.chunk_id not in new_ids]
        if stale:
            cleared = self.clear_chunks(stale)
            if not cleared.success:
                return cleared

        embedded = self.generate_embeddings(document.chunking.chunks)
        if not embedded.success:
            return embedded

        logger.info("Ingested %s", path)
        return ServiceResponse(
            success=True,
            message=f"{processed.message}; {embedded.message}",
            payload=document,
        )

    # -- question answering ------------------------------------------------

    @_boundary("ask")
    def ask(
        self,
        question: str,
        chunks: list[Chunk] | None = None,
        history: list[ConversationMessage] | None = None,
    ) -> ServiceResponse:
        """Answer a question from the stored (or given) chunks. Payload: ``ChatAnswer``."""
        if not question or not question.strip():
            raise ValidationError("Question is required")

        candidates = chunks if chunks is not None else self._stored_chunks()
        if not candidates:
            raise ValidationError("No chunks available for search")

        self.answerer.check_credentials()

        outcome = self.search_engine.find_similar_chunks(
            question,
            candidates,
            top_k=self.config.search.top_k,
            max_tokens=self.config.search.max_tokens,
        )
        if not outcome.results:
            return ServiceResponse(
                success=False, message="No relevant content found in the document."
            )

        answer = self.answerer.generate_answer(question, outcome.results, history)
        return ServiceResponse(
            success=True,
            message=f"Answered from {len(outcome.results)} sources ({outcome.method} search)",
            payload=ChatAnswer(
                answer=answer,
                sources=outcome.results,
                message_id=new_message_id(),
                total_tokens=outcome.total_tokens,
            ),
        )

    # -- summaries ---------------------------------------------------------

    @_boundary("summarize")
    def summarize(
        self, chunks: list[Chunk] | None = None, backend: Backend = "primary"
    ) -> ServiceResponse:
        """Summarize the stored (or given) chunks. Payload: ``SummarizationResult``."""
        if backend not in ("primary", "local"):
            raise ValidationError(f"Unknown backend {backend!r}; use 'primary' or 'local'")
        candidates = chunks if chunks is not None else self._stored_chunks()
        if candidates:
            _validate_chunks(candidates)

        result = self.summarizer.summarize(candidates, backend=backend)
        return ServiceResponse(
            success=True,
            message=(
                f"Summarized {result.total_processed} chunks in {result.processing_steps} "
                f"rounds ({result.from_cache} cached, {result.newly_generated} new)"
            ),
            payload=result,
        )

    @_boundary("save_summaries")
    def save_summaries(
        self, summaries: list[SummaryChunk], final: SummaryChunk | None
    ) -> ServiceResponse:
        saved, saved_final = self.summarizer.save_summaries(summaries, final)
        total = saved + int(saved_final)
        return ServiceResponse(
            success=True,
            message=f"Saved {total} summary chunks",
            payload={"saved_summaries": saved, "saved_final": saved_final, "total_saved": total},
        )

    @_boundary("summary_stats")
    def summary_stats(self) -> ServiceResponse:
        return ServiceResponse(success=True, payload=self.summarizer.summary_stats())

    @_boundary("clear_summaries")
    def clear_summaries(self) -> ServiceResponse:
        removed = self.summarizer.clear_summaries()
        return ServiceResponse(
            success=True, message=f"Deleted {removed} summaries", payload=removed
        )

    # -- chunk queries -----------------------------------------------------

    def _stored_chunks(self) -> list[Chunk]:
        return self.chunk_store.all_chunks()

    @_boundary("get_chunks")
    def get_chunks(
        self,
        page: int | None = None,
        level: int | None = None,
        chunk_id: str | None = None,
    ) -> ServiceResponse:
        """Stored chunks, optionally filtered. Payload: ``list[Chunk]``."""
        if chunk_id is not None:
            chunks = self.chunk_store.find_by_ids([chunk_id])
        else:
            chunks = self._stored_chunks()
        if page is not None:
            chunks = [c for c in chunks if c.page_number == page]
        if level is not None:
            chunks = [c for c in chunks if c.level == level]
        return ServiceResponse(success=True, message=f"{len(chunks)} chunks", payload=chunks)

    @_boundary("chunk_stats")
    def chunk_stats(self) -> ServiceResponse:
        chunks = self._stored_chunks()
        stats = ChunkStoreStats(
            total=len(chunks),
            with_embeddings=sum(1 for c in chunks if c.has_embedding),
            chunks_by_level=dict(Counter(c.level for c in chunks)),
            chunks_by_page=dict(Counter(c.page_number for c in chunks)),
        )
        return ServiceResponse(success=True, payload=stats)

    @_boundary("clear_chunks")
    def clear_chunks(self, ids: list[str] | None = None) -> ServiceResponse:
        removed = self.chunk_store.delete_by_ids(ids)
        return ServiceResponse(success=True, message=f"Deleted {removed} chunks", payload=removed)
