"""Configuration system for pdfqa.

Manages project configuration via .pdfqa/config.toml with typed dataclasses
and sensible defaults for all values.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeVar

import tomli_w

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from pdfqa.exceptions import ConfigError

if TYPE_CHECKING:
    from pathlib import Path

_T = TypeVar("_T")

__all__ = [
    "ChatConfig",
    "ChunkConfig",
    "EmbeddingConfig",
    "LlmConfig",
    "PdfqaConfig",
    "ProjectConfig",
    "SearchConfig",
    "StoreConfig",
    "SummarizeConfig",
    "default_config",
    "load_config",
    "save_config",
]

logger = logging.getLogger(__name__)


@dataclass
class ProjectConfig:
    """[project] section."""

    name: str = ""
    description: str = ""


@dataclass
class ChunkConfig:
    """[chunk] section."""

    max_tokens: int = 300


@dataclass
class EmbeddingConfig:
    """[embedding] section."""

    provider: str = "chromadb"
    model: str = "all-MiniLM-L6-v2"
    api_key_env: str = ""
    base_url: str = ""
    batch_size: int = 64


@dataclass
class LlmConfig:
    """[llm] section: the model that answers questions."""

    provider: str = "openai"
    model: str = "gpt-4o-mini"
    api_key_env: str = "OPENAI_API_KEY"
    base_url: str = ""
    temperature: float = 0.3
    max_tokens: int = 400


@dataclass
class SummarizeConfig:
    """[summarize] section."""

    backend: str = "primary"
    primary_provider: str = "openai"
    primary_model: str = "mistral-large-latest"
    primary_base_url: str = "https://api.mistral.ai/v1"
    primary_api_key_env: str = "MISTRAL_API_KEY"
    local_provider: str = "ollama"
    local_model: str = "llama3.2"
    local_base_url: str = ""
    batch_tokens: int = 1500
    local_max_input_chars: int = 1024
    tokens_per_minute: int = 90_000
    window_seconds: float = 60.0
    estimate_multiplier: float = 1.5
    delay_between_requests: float = 3.0
    delay_after_two_batches: float = 6.0
    delay_after_rate_limit: float = 5.0
    local_delay: float = 0.5
    final_reduce_max: int = 5


@dataclass
class SearchConfig:
    """[search] section."""

    top_k: int = 5
    max_tokens: int = 3000


@dataclass
class ChatConfig:
    """[chat] section."""

    history_turns: int = 4


@dataclass
class StoreConfig:
    """[store] section."""

    collection_name: str = "pdfqa"


@dataclass
class PdfqaConfig:
    """Root configuration combining all sections."""

    project: ProjectConfig = field(default_factory=ProjectConfig)
    chunk: ChunkConfig = field(default_factory=ChunkConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    llm: LlmConfig = field(default_factory=LlmConfig)
    summarize: SummarizeConfig = field(default_factory=SummarizeConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    chat: ChatConfig = field(default_factory=ChatConfig)
    store: StoreConfig = field(default_factory=StoreConfig)


_SECTIONS: dict[str, type] = {
    "project": ProjectConfig,
    "chunk": ChunkConfig,
    "embedding": EmbeddingConfig,
    "llm": LlmConfig,
    "summarize": SummarizeConfig,
    "search": SearchConfig,
    "chat": ChatConfig,
    "store": StoreConfig,
}


def default_config() -> PdfqaConfig:
    """Return a config with all default values."""
    return PdfqaConfig()


def _config_to_dict(config: PdfqaConfig) -> dict[str, object]:
    """Convert PdfqaConfig to a nested dict suitable for TOML serialization."""
    return {name: dict(vars(getattr(config, name))) for name in _SECTIONS}


def save_config(config: PdfqaConfig, path: Path) -> None:
    """Save configuration to a TOML file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data = _config_to_dict(config)
    try:
        with path.open("wb") as f:
            tomli_w.dump(data, f)
        logger.info("Saved config to %s", path)
    except OSError as e:
        logger.error("Failed to save config to %s: %s", path, e)
        raise ConfigError(f"Failed to save config to {path}: {e}") from e


def _load_section(cls: type[_T], data: dict[str, object]) -> _T:
    """Load a dataclass section from a dict, ignoring unknown keys."""
    known_fields = {f.name for f in cls.__dataclass_fields__.values()}  # type: ignore[attr-defined]
    filtered = {k: v for k, v in data.items() if k in known_fields}
    try:
        return cls(**filtered)
    except TypeError as e:
        raise ConfigError(f"Invalid values in [{cls.__name__}]: {e}") from e


def load_config(path: Path) -> PdfqaConfig:
    """Load configuration from a TOML file.

    Missing sections or keys get default values.
    """
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        data = tomllib.loads(path.read_bytes().decode("utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.error("Failed to load config from %s: %s", path, e)
        raise ConfigError(f"Failed to load config from {path}: {e}") from e

    config = PdfqaConfig()
    for name, cls in _SECTIONS.items():
        if name in data:
            setattr(config, name, _load_section(cls, data[name]))

    logger.info("Loaded config from %s", path)
    return config
