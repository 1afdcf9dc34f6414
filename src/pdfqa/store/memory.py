"""Process-local stores, used when no project directory is involved."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pdfqa.store.base import BaseChunkStore, BaseSummaryStore

if TYPE_CHECKING:
    from pdfqa.types import Chunk, SummaryChunk

__all__ = ["InMemoryChunkStore", "InMemorySummaryStore"]

logger = logging.getLogger(__name__)


class InMemoryChunkStore(BaseChunkStore):
    """Dict-backed chunk store; insertion order is document order."""

    def __init__(self) -> None:
        self._chunks: dict[str, Chunk] = {}

    def find_by_ids(self, ids: list[str]) -> list[Chunk]:
        return [self._chunks[i] for i in ids if i in self._chunks]

    def upsert(self, chunks: list[Chunk]) -> int:
        for chunk in chunks:
            self._chunks[chunk.chunk_id] = chunk
        return len(chunks)

    def delete_by_ids(self, ids: list[str] | None = None) -> int:
        if ids is None:
            removed = len(self._chunks)
            self._chunks.clear()
            return removed
        removed = 0
        for chunk_id in ids:
            if self._chunks.pop(chunk_id, None) is not None:
                removed += 1
        return removed

    def all_chunks(self) -> list[Chunk]:
        return list(self._chunks.values())


class InMemorySummaryStore(BaseSummaryStore):
    """Dict-backed summary store."""

    def __init__(self) -> None:
        self._summaries: dict[str, SummaryChunk] = {}

    def get(self, key: str) -> SummaryChunk | None:
        return self._summaries.get(key)

    def upsert(self, key: str, summary: SummaryChunk) -> None:
        self._summaries[key] = summary

    def delete_all(self) -> int:
        removed = len(self._summaries)
        self._summaries.clear()
        return removed

    def all_summaries(self) -> list[SummaryChunk]:
        return list(self._summaries.values())
