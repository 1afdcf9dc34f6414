"""Tests for pdfqa.registry module — provider registry."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from pdfqa.exceptions import PluginError
from pdfqa.registry import ProviderRegistry

if TYPE_CHECKING:
    from pdfqa.config import PdfqaConfig


class TestProviderRegistry:
    def test_register_and_create(self):
        registry = ProviderRegistry()
        registry.register("embedding", "mock", lambda cfg: "mock_embedder")
        result = registry.create("embedding", "mock", _mock_config())
        assert result == "mock_embedder"

    def test_create_unknown_category_raises(self):
        registry = ProviderRegistry()
        with pytest.raises(PluginError, match="Unknown provider category"):
            registry.create("nonexistent", "mock", _mock_config())

    def test_create_unknown_name_raises(self):
        registry = ProviderRegistry()
        registry.register("llm", "ollama", lambda cfg: "ollama_completer")
        with pytest.raises(PluginError, match="Unknown provider 'openai'"):
            registry.create("llm", "openai", _mock_config())

    def test_duplicate_register_raises(self):
        registry = ProviderRegistry()
        registry.register("embedding", "ollama", lambda cfg: "first")
        with pytest.raises(PluginError, match="already registered"):
            registry.register("embedding", "ollama", lambda cfg: "second")

    def test_list_providers_empty_category(self):
        registry = ProviderRegistry()
        assert registry.list_providers("nonexistent") == []

    def test_list_providers_returns_sorted(self):
        registry = ProviderRegistry()
        registry.register("llm", "openai", lambda cfg: "openai")
        registry.register("llm", "ollama", lambda cfg: "ollama")
        registry.register("llm", "azure", lambda cfg: "azure")
        assert registry.list_providers("llm") == ["azure", "ollama", "openai"]

    def test_has_provider(self):
        registry = ProviderRegistry()
        registry.register("llm", "ollama", lambda cfg: "ollama")
        assert registry.has_provider("llm", "ollama") is True
        assert registry.has_provider("llm", "openai") is False
        assert registry.has_provider("embedding", "ollama") is False

    def test_factory_receives_config_and_overrides(self):
        registry = ProviderRegistry()
        received: list[tuple[PdfqaConfig, dict[str, Any]]] = []

        def factory(cfg: PdfqaConfig, **kw: Any) -> str:
            received.append((cfg, kw))
            return "created"

        registry.register("llm", "custom", factory)
        config = _mock_config()
        registry.create("llm", "custom", config, model="small", base_url="http://x")

        assert len(received) == 1
        assert received[0][0] is config
        assert received[0][1] == {"model": "small", "base_url": "http://x"}


class TestLazyAutoDiscovery:
    """Registry auto-discovers built-in providers on first use."""

    def test_default_registry_has_embedding_providers(self):
        from pdfqa.registry import default_registry

        assert default_registry.has_provider("embedding", "chromadb")
        assert default_registry.has_provider("embedding", "ollama")
        assert default_registry.has_provider("embedding", "openai")

    def test_default_registry_has_llm_providers(self):
        from pdfqa.registry import default_registry

        assert default_registry.list_providers("llm") == ["ollama", "openai"]

    def test_create_triggers_auto_discovery(self):
        from pdfqa.llm.ollama import OllamaCompleter
        from pdfqa.registry import default_registry

        result = default_registry.create("llm", "ollama", _mock_config(), model="llama3.2")
        assert isinstance(result, OllamaCompleter)
        assert result.name == "ollama/llama3.2"

    def test_auto_discover_false_does_not_import(self):
        registry = ProviderRegistry(auto_discover=False)
        with pytest.raises(PluginError, match="Unknown provider category"):
            registry.create("embedding", "chromadb", _mock_config())


def _mock_config() -> PdfqaConfig:
    from pdfqa.config import PdfqaConfig

    return PdfqaConfig()
