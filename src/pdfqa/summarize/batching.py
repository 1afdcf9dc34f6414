"""Batch packing, oversize pre-splitting and cache keys for summarization."""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from pdfqa.chunk.hierarchical import split_by_words
from pdfqa.tokens import count_tokens

if TYPE_CHECKING:
    from pdfqa.types import Backend, Chunk, SummaryChunk

__all__ = [
    "BATCH_SEPARATOR",
    "BatchUnit",
    "cache_key",
    "combine_text",
    "create_batches",
    "final_cache_key",
    "split_unit",
]

logger = logging.getLogger(__name__)

BATCH_SEPARATOR = "\n\n---\n\n"
LOCAL_CEILING_MARGIN = 100


@dataclass(frozen=True)
class BatchUnit:
    """One input to a summarization batch: an original chunk, a part of one, or a summary.

    ``source_ids`` are the original chunk ids this unit stands for.
    """

    unit_id: str
    title: str
    text: str
    token_count: int
    page_number: int
    source_ids: tuple[str, ...]

    @classmethod
    def from_chunk(cls, chunk: Chunk) -> BatchUnit:
        return cls(
            unit_id=chunk.chunk_id,
            title=chunk.title,
            text=chunk.text,
            token_count=chunk.token_count or count_tokens(chunk.text),
            page_number=chunk.page_number,
            source_ids=(chunk.chunk_id,),
        )

    @classmethod
    def from_summary(cls, summary: SummaryChunk) -> BatchUnit:
        return cls(
            unit_id=summary.summary_id,
            title=summary.title,
            text=summary.text,
            token_count=summary.token_count or count_tokens(summary.text),
            page_number=summary.page_number,
            source_ids=summary.source_chunk_ids,
        )


def split_unit(unit: BatchUnit, max_tokens: int) -> list[BatchUnit]:
    """Word-split an oversize unit into ``(Part N)`` pieces that keep its sources."""
    parts = split_by_words(unit.text, max_tokens)
    return [
        BatchUnit(
            unit_id=f"{unit.unit_id}_part{n}",
            title=f"{unit.title} (Part {n})",
            text=text,
            token_count=count_tokens(text),
            page_number=unit.page_number,
            source_ids=unit.source_ids,
        )
        for n, text in enumerate(parts, start=1)
    ]


def create_batches(
    units: list[BatchUnit],
    backend: Backend,
    batch_tokens: int = 1500,
    local_max_input_chars: int = 1024,
) -> list[list[BatchUnit]]:
    """Greedily pack units into batches under the backend's ceiling.

    The primary backend measures tokens against ``batch_tokens``; the local
    backend measures characters against ``local_max_input_chars`` minus a
    margin. An oversize unit closes the running batch and is then split into
    single-part batches (primary) or batched alone (local).
    """
    if backend == "primary":
        limit = batch_tokens

        def size(u: BatchUnit) -> int:
            return u.token_count

    else:
        limit = local_max_input_chars - LOCAL_CEILING_MARGIN

        def size(u: BatchUnit) -> int:
            return len(u.text)

    batches: list[list[BatchUnit]] = []
    current: list[BatchUnit] = []
    current_size = 0

    for unit in units:
        unit_size = size(unit)

        if unit_size > limit:
            logger.warning(
                "Unit %s (%d) exceeds %s batch limit (%d)", unit.unit_id, unit_size, backend, limit
            )
            if current:
                batches.append(current)
                current, current_size = [], 0
            if backend == "primary":
                batches.extend([part] for part in split_unit(unit, limit))
            else:
                batches.append([unit])
            continue

        if current and current_size + unit_size > limit:
            batches.append(current)
            current, current_size = [unit], unit_size
        else:
            current.append(unit)
            current_size += unit_size

    if current:
        batches.append(current)

    logger.debug("Created %d batches (limit %d, backend %s)", len(batches), limit, backend)
    return batches


def _key_body(units: list[BatchUnit]) -> str:
    ids = ",".join(sorted({i for u in units for i in u.source_ids}))
    digest = hashlib.sha256(combine_text(units).encode("utf-8")).hexdigest()[:16]
    return f"{ids}_{digest}"


def cache_key(units: list[BatchUnit], backend: Backend) -> str:
    """Deterministic key for a batch: backend, sorted source chunk ids, text digest.

    Summary ids repeat across documents, so keys name the original chunks the
    batch covers and hash its full titled text.
    """
    return f"{backend}_{_key_body(units)}"


def final_cache_key(units: list[BatchUnit], backend: Backend) -> str:
    return f"final_{backend}_{_key_body(units)}"


def combine_text(units: list[BatchUnit]) -> str:
    """Titled member texts joined into one summarization input."""
    return BATCH_SEPARATOR.join(f"[{u.title}]\n{u.text}" for u in units)
