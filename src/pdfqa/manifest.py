"""Active-document manifest for pdfqa.

A project indexes one document at a time. The manifest records which one,
with a SHA-256 content hash so re-adding an unchanged file is skipped.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from pdfqa.exceptions import ManifestError

if TYPE_CHECKING:
    from pathlib import Path

__all__ = [
    "DocumentEntry",
    "Manifest",
    "compute_hash",
    "load_manifest",
    "make_entry",
    "save_manifest",
]

logger = logging.getLogger(__name__)

HASH_CHUNK_SIZE = 65536


@dataclass(frozen=True)
class DocumentEntry:
    """Immutable record of the indexed document."""

    id: str
    path: str
    title: str
    hash: str
    added: str
    pages: int = 0
    chunks: int = 0


@dataclass
class Manifest:
    schema_version: str = "1"
    document: DocumentEntry | None = None

    def is_changed(self, current_hash: str) -> bool:
        """True when no document is indexed or its hash differs."""
        return self.document is None or self.document.hash != current_hash


def compute_hash(path: Path) -> str:
    """Compute SHA-256 hash of a file's contents."""
    h = hashlib.sha256()
    try:
        with path.open("rb") as f:
            while block := f.read(HASH_CHUNK_SIZE):
                h.update(block)
    except OSError as e:
        raise ManifestError(f"Failed to hash file {path}: {e}") from e
    return f"sha256:{h.hexdigest()}"


def _entry_to_dict(entry: DocumentEntry) -> dict[str, object]:
    return {
        "id": entry.id,
        "path": entry.path,
        "title": entry.title,
        "hash": entry.hash,
        "added": entry.added,
        "pages": entry.pages,
        "chunks": entry.chunks,
    }


def _entry_from_dict(data: dict[str, object]) -> DocumentEntry:
    required = ("id", "path", "hash", "added")
    missing = [k for k in required if k not in data]
    if missing:
        raise ManifestError(f"Document entry missing required fields: {missing}")
    return DocumentEntry(
        id=str(data["id"]),
        path=str(data["path"]),
        title=str(data.get("title", "")),
        hash=str(data["hash"]),
        added=str(data["added"]),
        pages=int(str(data.get("pages", 0))),
        chunks=int(str(data.get("chunks", 0))),
    )


def save_manifest(manifest: Manifest, path: Path) -> None:
    """Save manifest to a JSON file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data = {
        "schema_version": manifest.schema_version,
        "document": _entry_to_dict(manifest.document) if manifest.document else None,
    }
    try:
        path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
        logger.info("Saved manifest to %s", path)
    except OSError as e:
        logger.error("Failed to save manifest to %s: %s", path, e)
        raise ManifestError(f"Failed to save manifest to {path}: {e}") from e


def load_manifest(path: Path) -> Manifest:
    """Load manifest from a JSON file."""
    if not path.exists():
        raise ManifestError(f"Manifest file not found: {path}")

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Failed to load manifest from %s: %s", path, e)
        raise ManifestError(f"Failed to load manifest from {path}: {e}") from e
    if not isinstance(data, dict):
        raise ManifestError(f"Manifest {path} is not a JSON object")

    raw_doc = data.get("document")
    return Manifest(
        schema_version=str(data.get("schema_version", "1")),
        document=_entry_from_dict(raw_doc) if raw_doc else None,
    )


def make_entry(
    path: Path, doc_id: str, title: str = "", pages: int = 0, chunks: int = 0
) -> DocumentEntry:
    """Create a DocumentEntry for a file, hashing its current contents."""
    return DocumentEntry(
        id=doc_id,
        path=str(path),
        title=title,
        hash=compute_hash(path),
        added=datetime.now(UTC).isoformat(),
        pages=pages,
        chunks=chunks,
    )
