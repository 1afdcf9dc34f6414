"""ChromaDB chunk store using PersistentClient.

Embedded chunks live in the main collection with their vectors. Chunks
without a vector (not embedded yet, or embedding failed) live in a
``<name>_pending`` collection under a one-dimensional placeholder, so the
main collection's dimension is fixed by real embeddings only.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import chromadb

from pdfqa.exceptions import StoreError
from pdfqa.store.base import BaseChunkStore
from pdfqa.types import Chunk

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

__all__ = ["ChromaChunkStore"]

logger = logging.getLogger(__name__)

_PLACEHOLDER = [0.0]


def _chunk_metadata(chunk: Chunk) -> dict[str, str | int]:
    return {
        "title": chunk.title,
        "page_number": chunk.page_number,
        "level": chunk.level,
        "token_count": chunk.token_count,
        "word_count": chunk.word_count,
    }


def _chunk_from_record(
    chunk_id: str,
    document: str | None,
    meta: Mapping[str, Any] | None,
    embedding: Any = None,
) -> Chunk:
    meta = meta or {}
    vector: tuple[float, ...] = ()
    if embedding is not None:
        vector = tuple(float(v) for v in embedding)
    return Chunk(
        chunk_id=chunk_id,
        text=document or "",
        title=str(meta.get("title", "")),
        page_number=int(meta.get("page_number", 1) or 1),
        level=int(meta.get("level", 1) or 1),
        token_count=int(meta.get("token_count", 0) or 0),
        word_count=int(meta.get("word_count", 0) or 0),
        embedding=vector,
    )


class ChromaChunkStore(BaseChunkStore):
    """Chunk store backed by ChromaDB with file-based persistence.

    Usage::

        store = ChromaChunkStore(persist_path=project_root / ".pdfqa" / "chroma")
        store.upsert(chunks)
        cached = store.find_by_ids([c.chunk_id for c in chunks])
    """

    def __init__(self, persist_path: Path, collection_name: str = "pdfqa") -> None:
        self._persist_path = persist_path
        self._collection_name = collection_name

        try:
            self._client = chromadb.PersistentClient(path=str(persist_path))
            self._embedded = self._client.get_or_create_collection(
                name=collection_name,
                embedding_function=None,
                metadata={"hnsw:space": "cosine"},
            )
            self._pending = self._client.get_or_create_collection(
                name=f"{collection_name}_pending",
                embedding_function=None,
            )
        except Exception as e:
            raise StoreError(f"Failed to initialize ChromaDB at {persist_path}: {e}") from e

        logger.info(
            "ChromaDB store initialized at %s (collection=%s)", persist_path, collection_name
        )

    def upsert(self, chunks: list[Chunk]) -> int:
        if not chunks:
            return 0

        embedded = [c for c in chunks if c.has_embedding]
        pending = [c for c in chunks if not c.has_embedding]

        try:
            if embedded:
                ids = [c.chunk_id for c in embedded]
                self._embedded.upsert(
                    ids=ids,
                    embeddings=[list(c.embedding) for c in embedded],  # type: ignore[arg-type]
                    documents=[c.text for c in embedded],
                    metadatas=[_chunk_metadata(c) for c in embedded],  # type: ignore[arg-type]
                )
                self._pending.delete(ids=ids)
            if pending:
                ids = [c.chunk_id for c in pending]
                self._pending.upsert(
                    ids=ids,
                    embeddings=[_PLACEHOLDER for _ in pending],  # type: ignore[arg-type]
                    documents=[c.text for c in pending],
                    metadatas=[_chunk_metadata(c) for c in pending],  # type: ignore[arg-type]
                )
                self._embedded.delete(ids=ids)
        except Exception as e:
            raise StoreError(f"Failed to upsert {len(chunks)} chunks: {e}") from e

        logger.debug("Upserted %d chunks (%d embedded)", len(chunks), len(embedded))
        return len(chunks)

    def _read(self, ids: list[str] | None) -> list[Chunk]:
        chunks: list[Chunk] = []
        try:
            for collection, with_vectors in ((self._embedded, True), (self._pending, False)):
                include = ["documents", "metadatas"]
                if with_vectors:
                    include.append("embeddings")
                result = collection.get(ids=ids, include=include)  # type: ignore[arg-type]
                documents = result.get("documents") or []
                metadatas = result.get("metadatas") or []
                embeddings = result.get("embeddings") if with_vectors else None
                for i, chunk_id in enumerate(result["ids"]):
                    vector = embeddings[i] if embeddings is not None else None
                    chunks.append(
                        _chunk_from_record(
                            chunk_id,
                            documents[i] if i < len(documents) else None,
                            metadatas[i] if i < len(metadatas) else None,
                            vector,
                        )
                    )
        except Exception as e:
            raise StoreError(f"Failed to read chunks: {e}") from e
        return chunks

    def find_by_ids(self, ids: list[str]) -> list[Chunk]:
        if not ids:
            return []
        found = {c.chunk_id: c for c in self._read(ids)}
        return [found[i] for i in ids if i in found]

    def all_chunks(self) -> list[Chunk]:
        # Chunk ids embed a zero-padded position, so id order is document order.
        return sorted(self._read(None), key=lambda c: c.chunk_id)

    def count(self) -> int:
        try:
            return int(self._embedded.count()) + int(self._pending.count())
        except Exception as e:
            raise StoreError(f"Failed to count chunks: {e}") from e

    def delete_by_ids(self, ids: list[str] | None = None) -> int:
        if ids is not None and not ids:
            return 0

        removed = 0
        try:
            for collection in (self._embedded, self._pending):
                existing = collection.get(ids=ids, include=[])  # type: ignore[arg-type]
                target = list(existing["ids"])
                if target:
                    collection.delete(ids=target)
                    removed += len(target)
        except Exception as e:
            raise StoreError(f"Failed to delete chunks: {e}") from e

        logger.info("Deleted %d chunks", removed)
        return removed
