"""Embedding engine: provider interface, concrete providers and the cached service."""

from pdfqa.embed.base import BaseEmbedder
from pdfqa.embed.ollama import OllamaEmbedder
from pdfqa.embed.openai_compat import OpenAICompatEmbedder
from pdfqa.embed.service import EmbeddingService
from pdfqa.registry import default_registry

__all__ = ["BaseEmbedder", "EmbeddingService", "OllamaEmbedder", "OpenAICompatEmbedder"]


def _make_chromadb(cfg, **_):  # type: ignore[no-untyped-def]
    from pdfqa.embed.chromadb_embed import ChromaDBEmbedder

    return ChromaDBEmbedder(cfg)


default_registry.register("embedding", "chromadb", _make_chromadb)
default_registry.register("embedding", "ollama", lambda cfg, **_: OllamaEmbedder(cfg))
default_registry.register("embedding", "openai", lambda cfg, **_: OpenAICompatEmbedder(cfg))
