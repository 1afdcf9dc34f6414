"""Summary store persisted as a single JSON file.

Summaries carry a list of source chunk ids, which Chroma metadata cannot
hold, so they live in ``.pdfqa/summaries.json`` instead.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from pdfqa.exceptions import StoreError
from pdfqa.store.base import BaseSummaryStore
from pdfqa.types import SummaryChunk

if TYPE_CHECKING:
    from pathlib import Path

__all__ = ["JsonSummaryStore", "summary_from_dict", "summary_to_dict"]

logger = logging.getLogger(__name__)


def summary_to_dict(summary: SummaryChunk) -> dict[str, Any]:
    return {
        "id": summary.summary_id,
        "title": summary.title,
        "text": summary.text,
        "page_number": summary.page_number,
        "level": summary.level,
        "token_count": summary.token_count,
        "word_count": summary.word_count,
        "type": summary.summary_type,
        "source_chunk_ids": list(summary.source_chunk_ids),
        "summary_index": summary.summary_index,
    }


def summary_from_dict(data: dict[str, Any]) -> SummaryChunk:
    """Deserialize a summary record.

    Raises:
        StoreError: If a required field is missing.
    """
    missing = [k for k in ("id", "text") if k not in data]
    if missing:
        raise StoreError(f"Summary record missing required fields: {missing}")
    summary_type = "final_summary" if data.get("type") == "final_summary" else "summary"
    return SummaryChunk(
        summary_id=str(data["id"]),
        title=str(data.get("title", "")),
        text=str(data["text"]),
        page_number=int(data.get("page_number", 1)),
        level=int(data.get("level", 0)),
        token_count=int(data.get("token_count", 0)),
        word_count=int(data.get("word_count", 0)),
        summary_type=summary_type,
        source_chunk_ids=tuple(str(i) for i in data.get("source_chunk_ids", [])),
        summary_index=int(data.get("summary_index", 0)),
    )


class JsonSummaryStore(BaseSummaryStore):
    """Summary store backed by a JSON object of ``key -> summary``.

    The file is read once on construction and rewritten on every change.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._summaries: dict[str, SummaryChunk] = {}
        if path.exists():
            self._load()

    def _load(self) -> None:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to load summaries from %s: %s", self._path, e)
            raise StoreError(f"Failed to load summaries from {self._path}: {e}") from e

        self._summaries = {
            key: summary_from_dict(record) for key, record in data.get("summaries", {}).items()
        }
        logger.debug("Loaded %d summaries from %s", len(self._summaries), self._path)

    def _save(self) -> None:
        data = {"summaries": {k: summary_to_dict(s) for k, s in self._summaries.items()}}
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
        except OSError as e:
            raise StoreError(f"Failed to save summaries to {self._path}: {e}") from e

    def get(self, key: str) -> SummaryChunk | None:
        return self._summaries.get(key)

    def upsert(self, key: str, summary: SummaryChunk) -> None:
        self._summaries[key] = summary
        self._save()

    def delete_all(self) -> int:
        removed = len(self._summaries)
        self._summaries.clear()
        self._save()
        logger.info("Deleted %d summaries", removed)
        return removed

    def all_summaries(self) -> list[SummaryChunk]:
        return list(self._summaries.values())
