"""Chunking engine — hierarchical token-bounded splitting."""

from pdfqa.chunk.base import BaseChunker
from pdfqa.chunk.hierarchical import HierarchicalChunker, split_by_words

__all__ = ["BaseChunker", "HierarchicalChunker", "split_by_words"]
