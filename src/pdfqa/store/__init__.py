"""Chunk and summary persistence."""

from pdfqa.store.base import BaseChunkStore, BaseSummaryStore
from pdfqa.store.chroma import ChromaChunkStore
from pdfqa.store.json_summary import JsonSummaryStore
from pdfqa.store.memory import InMemoryChunkStore, InMemorySummaryStore

__all__ = [
    "BaseChunkStore",
    "BaseSummaryStore",
    "ChromaChunkStore",
    "InMemoryChunkStore",
    "InMemorySummaryStore",
    "JsonSummaryStore",
]
