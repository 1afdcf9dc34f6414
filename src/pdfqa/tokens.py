"""Token counting shared by the chunker, summarizer and chat layer."""

from __future__ import annotations

import functools

import tiktoken

__all__ = ["count_tokens", "count_words"]


@functools.lru_cache(maxsize=1)
def _get_encoding() -> tiktoken.Encoding:
    """Get the tiktoken encoding, lazily initialized and thread-safe."""
    return tiktoken.get_encoding("cl100k_base")


def count_tokens(text: str) -> int:
    """Count tokens in text using cl100k_base encoding."""
    if not text:
        return 0
    return len(_get_encoding().encode(text))


def count_words(text: str) -> int:
    """Count whitespace-separated words."""
    return len(text.split())
