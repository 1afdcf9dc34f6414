"""Abstract base class for embedding providers."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pdfqa.types import Chunk

__all__ = ["BaseEmbedder"]

logger = logging.getLogger(__name__)


class BaseEmbedder(ABC):
    """Base class for all embedding providers.

    Subclasses map text to fixed-dimension vectors.
    """

    @abstractmethod
    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for a list of texts.

        Args:
            texts: Texts to embed.

        Returns:
            One vector per input, in input order.

        Raises:
            EmbeddingError: If embedding generation fails.
        """

    @abstractmethod
    def embed_query(self, text: str) -> list[float]:
        """Generate an embedding for a search query.

        Args:
            text: Query text.

        Returns:
            Embedding vector as a list of floats.

        Raises:
            EmbeddingError: If embedding generation fails.
        """

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Return the dimensionality of the embedding vectors."""

    def embed_chunks(self, chunks: list[Chunk]) -> list[Chunk]:
        """Return copies of the chunks with embedding vectors attached.

        Raises:
            EmbeddingError: If embedding generation fails.
        """
        if not chunks:
            return []
        vectors = self.embed_texts([c.text for c in chunks])
        return [
            chunk.with_embedding(tuple(vec)) for chunk, vec in zip(chunks, vectors, strict=True)
        ]
