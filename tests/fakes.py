"""Offline stand-ins for providers, plus small builders shared by the tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pdfqa.embed.base import BaseEmbedder
from pdfqa.exceptions import EmbeddingError, MissingCredentialsError
from pdfqa.llm.base import BaseCompleter
from pdfqa.tokens import count_words
from pdfqa.types import Chunk

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path


class KeywordEmbedder(BaseEmbedder):
    """Bag-of-words embedder over a fixed vocabulary; deterministic and offline."""

    def __init__(self, vocabulary: list[str], fail_on: str | None = None) -> None:
        self.vocabulary = vocabulary
        self.fail_on = fail_on
        self.calls: list[str] = []

    def embed_query(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail_on is not None and self.fail_on in text:
            raise EmbeddingError(f"cannot embed {text!r}")
        lowered = text.lower()
        return [float(lowered.count(word)) for word in self.vocabulary]

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        return [self.embed_query(t) for t in texts]

    @property
    def dimension(self) -> int:
        return len(self.vocabulary)


class FakeCompleter(BaseCompleter):
    """Records prompts; replies with ``reply`` (a string or a function of the prompt)."""

    def __init__(
        self,
        reply: str | Callable[[str], str] = "A short summary.",
        error: Exception | None = None,
        missing_key: bool = False,
    ) -> None:
        self.reply = reply
        self.error = error
        self.missing_key = missing_key
        self.prompts: list[str] = []
        self.calls: list[dict[str, float]] = []

    @property
    def name(self) -> str:
        return "fake/model"

    def check_credentials(self) -> None:
        if self.missing_key:
            raise MissingCredentialsError("API key not configured: set FAKE_API_KEY")

    def complete(self, prompt: str, max_tokens: int = 400, temperature: float = 0.3) -> str:
        self.check_credentials()
        self.prompts.append(prompt)
        self.calls.append({"max_tokens": max_tokens, "temperature": temperature})
        if self.error is not None:
            raise self.error
        return self.reply(prompt) if callable(self.reply) else self.reply


def make_chunk(
    chunk_id: str = "doc_chunk_0000_aaaaaaaa",
    text: str = "Some chunk text.",
    title: str = "1. Intro",
    page_number: int = 1,
    level: int = 1,
    token_count: int | None = None,
    embedding: tuple[float, ...] = (),
) -> Chunk:
    return Chunk(
        chunk_id=chunk_id,
        text=text,
        title=title,
        page_number=page_number,
        level=level,
        token_count=token_count if token_count is not None else len(text.split()),
        word_count=count_words(text),
        embedding=embedding,
    )


# Text of the two-page handbook PDF, one list of lines per page.
HANDBOOK_PAGES: list[list[str]] = [
    [
        "1. Introduction",
        "This handbook describes the store policies for customers.",
        "It covers orders, shipping and returns.",
        "",
        "2. Shipping",
        "Orders ship within two business days.",
    ],
    [
        "3. Refund Policy",
        "Refunds are accepted within 30 days of purchase.",
        "Items must be unused and in their original packaging.",
    ],
]


def write_handbook_pdf(path: Path) -> Path:
    """Write a two-page PDF with numbered sections and a title in its metadata."""
    import pymupdf

    doc = pymupdf.open()
    for lines in HANDBOOK_PAGES:
        page = doc.new_page(width=595, height=842)  # A4
        y = 80.0
        for line in lines:
            if line:
                page.insert_text(pymupdf.Point(50, y), line, fontsize=11, fontname="helv")
            y += 18
    doc.set_metadata({"title": "Store Handbook", "author": "Support Team"})
    doc.save(str(path))
    doc.close()
    return path
