"""Abstract base classes for chunk and summary persistence."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pdfqa.types import Chunk, SummaryChunk

__all__ = ["BaseChunkStore", "BaseSummaryStore"]

logger = logging.getLogger(__name__)


class BaseChunkStore(ABC):
    """Keyed storage for chunks, with or without embeddings."""

    @abstractmethod
    def find_by_ids(self, ids: list[str]) -> list[Chunk]:
        """Return the stored chunks among ``ids``; unknown ids are skipped.

        Raises:
            StoreError: If the lookup fails.
        """

    @abstractmethod
    def upsert(self, chunks: list[Chunk]) -> int:
        """Insert or replace chunks by id. Returns the number written.

        Raises:
            StoreError: If storage fails.
        """

    @abstractmethod
    def delete_by_ids(self, ids: list[str] | None = None) -> int:
        """Delete the given chunks, or every chunk when ``ids`` is None.

        Returns:
            Number of chunks deleted.

        Raises:
            StoreError: If deletion fails.
        """

    @abstractmethod
    def all_chunks(self) -> list[Chunk]:
        """Return every stored chunk in document order.

        Raises:
            StoreError: If the read fails.
        """

    def count(self) -> int:
        return len(self.all_chunks())


class BaseSummaryStore(ABC):
    """Summaries keyed by cache key (or by summary id for saved trees)."""

    @abstractmethod
    def get(self, key: str) -> SummaryChunk | None:
        """Return the summary stored under ``key``, if any."""

    @abstractmethod
    def upsert(self, key: str, summary: SummaryChunk) -> None:
        """Store ``summary`` under ``key``, replacing any previous value.

        Raises:
            StoreError: If storage fails.
        """

    @abstractmethod
    def delete_all(self) -> int:
        """Remove every summary. Returns the number removed."""

    @abstractmethod
    def all_summaries(self) -> list[SummaryChunk]:
        """Return every stored summary."""

    def count(self) -> int:
        return len(self.all_summaries())
