"""Ollama embedding provider using the /api/embed endpoint."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING
from urllib.error import HTTPError

from pdfqa._http import post_json
from pdfqa.embed.base import BaseEmbedder
from pdfqa.exceptions import EmbeddingError

if TYPE_CHECKING:
    from pdfqa.config import PdfqaConfig

__all__ = ["OllamaEmbedder"]

logger = logging.getLogger(__name__)

_DEFAULT_BASE_URL = "http://localhost:11434"


class OllamaEmbedder(BaseEmbedder):
    """Embedding provider using a local Ollama instance.

    Calls ``/api/embed`` in batches of ``batch_size`` texts.

    Config fields used::

        [embedding]
        provider = "ollama"
        model = "nomic-embed-text"
        base_url = ""           # empty = http://localhost:11434
        batch_size = 64
    """

    _DEFAULT_TIMEOUT = 120  # seconds

    def __init__(self, config: PdfqaConfig) -> None:
        self._model = config.embedding.model
        self._base_url = (config.embedding.base_url or _DEFAULT_BASE_URL).rstrip("/")
        self._batch_size = config.embedding.batch_size
        self._dimension: int | None = None

        if self._batch_size < 1:
            raise EmbeddingError(f"batch_size must be >= 1, got {self._batch_size}")

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Embed texts via Ollama, ``batch_size`` at a time.

        Raises:
            EmbeddingError: If Ollama is not reachable or returns an error.
        """
        vectors: list[list[float]] = []
        for start in range(0, len(texts), self._batch_size):
            vectors.extend(self._call_embed(texts[start : start + self._batch_size]))

        logger.debug("Embedded %d texts via Ollama (%s)", len(vectors), self._model)
        return vectors

    def embed_query(self, text: str) -> list[float]:
        return self._call_embed([text])[0]

    @property
    def dimension(self) -> int:
        """Return the dimensionality of the embedding vectors.

        Warning:
            First access makes a network call to probe the model.
        """
        if self._dimension is None:
            self._dimension = len(self.embed_query("dimension probe"))
        return self._dimension

    def _call_embed(self, texts: list[str]) -> list[list[float]]:
        url = f"{self._base_url}/api/embed"
        try:
            data = post_json(
                url, {"model": self._model, "input": texts}, timeout=self._DEFAULT_TIMEOUT
            )
        except json.JSONDecodeError as e:
            raise EmbeddingError(f"Ollama returned invalid JSON from {url}") from e
        except HTTPError as e:
            raise EmbeddingError(f"Ollama API error (HTTP {e.code}): {e.reason}") from e
        except (TimeoutError, OSError) as e:
            raise EmbeddingError(
                f"Ollama not reachable at {self._base_url}. Is Ollama running? Error: {e}"
            ) from e

        embeddings: list[list[float]] = data.get("embeddings", [])
        if len(embeddings) != len(texts):
            raise EmbeddingError(
                f"Ollama returned {len(embeddings)} embeddings for {len(texts)} inputs"
            )

        if embeddings and self._dimension is None:
            self._dimension = len(embeddings[0])

        return embeddings
