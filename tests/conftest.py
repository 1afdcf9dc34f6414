"""Shared fixtures for pdfqa tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from fakes import write_handbook_pdf

from pdfqa.config import PdfqaConfig, save_config
from pdfqa.manifest import Manifest, save_manifest
from pdfqa.project import CONFIG_FILE, MANIFEST_FILE, PDFQA_DIR
from pdfqa.store.memory import InMemoryChunkStore, InMemorySummaryStore

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def chunk_store() -> InMemoryChunkStore:
    return InMemoryChunkStore()


@pytest.fixture
def summary_cache() -> InMemorySummaryStore:
    return InMemorySummaryStore()


@pytest.fixture
def saved_summaries() -> InMemorySummaryStore:
    return InMemorySummaryStore()


@pytest.fixture
def sleeps() -> list[float]:
    """Collects delays passed to an injected sleep function."""
    return []


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A temporary directory simulating a project root."""
    return tmp_path


@pytest.fixture
def initialized_project(tmp_path: Path) -> Path:
    """A temporary project with .pdfqa/ already initialized."""
    data_dir = tmp_path / PDFQA_DIR
    data_dir.mkdir()

    config = PdfqaConfig()
    config.project.name = "test-project"
    save_config(config, data_dir / CONFIG_FILE)
    save_manifest(Manifest(), data_dir / MANIFEST_FILE)

    return tmp_path


@pytest.fixture
def sample_file(tmp_path: Path) -> Path:
    """A small sample file for hash testing."""
    f = tmp_path / "sample.txt"
    f.write_text("Hello, document world!", encoding="utf-8")
    return f


@pytest.fixture
def handbook_pdf(tmp_path: Path) -> Path:
    """A generated two-page handbook PDF."""
    return write_handbook_pdf(tmp_path / "handbook.pdf")
