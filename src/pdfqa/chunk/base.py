"""Abstract base class for chunking strategies."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pdfqa.types import ChunkingResult

__all__ = ["BaseChunker"]

logger = logging.getLogger(__name__)


class BaseChunker(ABC):
    """Base class for all chunking strategies.

    Subclasses split raw extracted text into an ordered list of ``Chunk`` objects.
    """

    @abstractmethod
    def chunk(self, text: str, source_name: str, total_pages: int = 0) -> ChunkingResult:
        """Split extracted document text into chunks.

        Args:
            text: Raw text extracted from the document.
            source_name: Document name, used as the title of untitled text.
            total_pages: Page count of the source, used for page estimates.

        Returns:
            ChunkingResult with chunks in document order and stats.

        Raises:
            ChunkError: If chunking fails unexpectedly.
        """
