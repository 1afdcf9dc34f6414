"""Cache-aware, paced embedding of chunks.

Chunks already embedded in the chunk store are reused. The rest are embedded
one at a time in small groups with short pauses so a remote provider is not
flooded; a chunk whose embedding fails is kept without a vector.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from pdfqa.exceptions import PdfqaError
from pdfqa.types import EmbeddingBatchResult

if TYPE_CHECKING:
    from collections.abc import Callable

    from pdfqa.embed.base import BaseEmbedder
    from pdfqa.store.base import BaseChunkStore
    from pdfqa.types import Chunk

__all__ = ["EmbeddingService", "group_size_for"]

logger = logging.getLogger(__name__)

DELAY_BETWEEN_CHUNKS = 0.05
DELAY_BETWEEN_GROUPS = 0.2


def group_size_for(total: int) -> int:
    """Smaller groups for bigger documents."""
    if total > 100:
        return 20
    if total > 50:
        return 25
    return 30


class EmbeddingService:
    """Attach embeddings to chunks, reusing stored vectors where possible."""

    def __init__(
        self,
        embedder: BaseEmbedder,
        store: BaseChunkStore,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._embedder = embedder
        self._store = store
        self._sleep = sleep

    def get_or_create_embeddings(self, chunks: list[Chunk]) -> EmbeddingBatchResult:
        """Return every input chunk, embedded where possible, in input order.

        Raises:
            StoreError: If the chunk store cannot be read or written.
        """
        started = time.monotonic()
        if not chunks:
            return EmbeddingBatchResult(chunks=[], from_cache=0, newly_generated=0)

        cached = {
            c.chunk_id: c
            for c in self._store.find_by_ids([c.chunk_id for c in chunks])
            if c.has_embedding
        }
        missing = [c for c in chunks if c.chunk_id not in cached]

        size = group_size_for(len(missing))
        groups = [missing[i : i + size] for i in range(0, len(missing), size)]
        created: dict[str, Chunk] = {}

        for group_index, group in enumerate(groups):
            logger.info(
                "Embedding group %d/%d (%d chunks)", group_index + 1, len(groups), len(group)
            )
            for position, chunk in enumerate(group):
                created[chunk.chunk_id] = self._embed_one(chunk)
                if position < len(group) - 1:
                    self._sleep(DELAY_BETWEEN_CHUNKS)
            if group_index < len(groups) - 1:
                self._sleep(DELAY_BETWEEN_GROUPS)

        results: list[Chunk] = []
        for chunk in chunks:
            hit = cached.get(chunk.chunk_id)
            if hit is not None:
                results.append(hit.with_embedding(hit.embedding, from_cache=True))
            else:
                results.append(created[chunk.chunk_id])

        newly_generated = sum(1 for c in created.values() if c.has_embedding)
        logger.info(
            "Embeddings ready: %d from cache, %d new, %d failed",
            len(cached),
            newly_generated,
            len(created) - newly_generated,
        )
        return EmbeddingBatchResult(
            chunks=results,
            from_cache=len(cached),
            newly_generated=newly_generated,
            total_batches=len(groups),
            batch_size=size,
            processing_time=time.monotonic() - started,
        )

    def _embed_one(self, chunk: Chunk) -> Chunk:
        try:
            vector = self._embedder.embed_query(chunk.text)
        except PdfqaError as e:
            logger.warning("Embedding failed for %s: %s", chunk.chunk_id, e)
            return chunk.with_embedding((), from_cache=False)

        embedded = chunk.with_embedding(tuple(vector), from_cache=False)
        self._store.upsert([embedded])
        return embedded
