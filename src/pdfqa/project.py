"""Project manager for pdfqa.

Handles project initialization, status reporting, and project root discovery.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from pdfqa.config import PdfqaConfig, default_config, load_config, save_config
from pdfqa.exceptions import ProjectError
from pdfqa.manifest import DocumentEntry, Manifest, load_manifest, save_manifest

__all__ = [
    "CONFIG_FILE",
    "MANIFEST_FILE",
    "PDFQA_DIR",
    "ProjectManager",
    "ProjectStatus",
]

logger = logging.getLogger(__name__)

PDFQA_DIR = ".pdfqa"
CONFIG_FILE = "config.toml"
MANIFEST_FILE = "manifest.json"
CHROMA_DIR = "chroma"
SUMMARY_CACHE_FILE = "summary_cache.json"
SUMMARIES_FILE = "summaries.json"
HISTORY_FILE = "history.json"


@dataclass
class ProjectStatus:
    """Summary of the current project state."""

    initialized: bool
    root: Path
    document: DocumentEntry | None
    config: PdfqaConfig | None


class ProjectManager:
    """Manages the ``.pdfqa/`` directory of a project."""

    def __init__(self, root: Path | None = None) -> None:
        self.root = root or Path.cwd()

    @property
    def data_dir(self) -> Path:
        return self.root / PDFQA_DIR

    @property
    def config_path(self) -> Path:
        return self.data_dir / CONFIG_FILE

    @property
    def manifest_path(self) -> Path:
        return self.data_dir / MANIFEST_FILE

    @property
    def chroma_path(self) -> Path:
        return self.data_dir / CHROMA_DIR

    @property
    def summary_cache_path(self) -> Path:
        return self.data_dir / SUMMARY_CACHE_FILE

    @property
    def summaries_path(self) -> Path:
        return self.data_dir / SUMMARIES_FILE

    @property
    def history_path(self) -> Path:
        return self.data_dir / HISTORY_FILE

    @property
    def is_initialized(self) -> bool:
        return self.data_dir.is_dir() and self.config_path.exists() and self.manifest_path.exists()

    def init(self, name: str = "") -> Path:
        """Initialize a new pdfqa project.

        Creates ``.pdfqa/`` with a default config and an empty manifest.
        Safe to call on an already-initialized project (idempotent).

        Returns the ``.pdfqa/`` directory path.
        """
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.chroma_path.mkdir(parents=True, exist_ok=True)

        if self.config_path.exists():
            config = load_config(self.config_path)
            logger.info("Existing config found at %s", self.config_path)
        else:
            config = default_config()

        if name:
            config.project.name = name
        elif not config.project.name:
            config.project.name = self.root.name

        save_config(config, self.config_path)

        if not self.manifest_path.exists():
            save_manifest(Manifest(), self.manifest_path)

        logger.info("Initialized pdfqa project at %s", self.data_dir)
        return self.data_dir

    def require_initialized(self) -> None:
        if not self.is_initialized:
            raise ProjectError(f"No pdfqa project at {self.root}. Run 'pdfqa init' first.")

    def load_config(self) -> PdfqaConfig:
        self.require_initialized()
        return load_config(self.config_path)

    def load_manifest(self) -> Manifest:
        self.require_initialized()
        return load_manifest(self.manifest_path)

    def save_manifest(self, manifest: Manifest) -> None:
        save_manifest(manifest, self.manifest_path)

    def status(self) -> ProjectStatus:
        """Get current project status."""
        if not self.is_initialized:
            return ProjectStatus(initialized=False, root=self.root, document=None, config=None)

        return ProjectStatus(
            initialized=True,
            root=self.root,
            document=load_manifest(self.manifest_path).document,
            config=load_config(self.config_path),
        )

    @staticmethod
    def find_project_root(start: Path | None = None) -> Path | None:
        """Walk up from start directory to find a ``.pdfqa/`` directory.

        Returns the project root (parent of ``.pdfqa/``) or None if not found.
        """
        current = (start or Path.cwd()).resolve()
        while True:
            if (current / PDFQA_DIR).is_dir():
                return current
            parent = current.parent
            if parent == current:
                return None
            current = parent
