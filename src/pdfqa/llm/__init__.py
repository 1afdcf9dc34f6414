"""Language-model completion providers."""

from pdfqa.llm.base import BaseCompleter
from pdfqa.llm.ollama import OllamaCompleter
from pdfqa.llm.openai_compat import OpenAICompatCompleter
from pdfqa.registry import default_registry

__all__ = ["BaseCompleter", "OllamaCompleter", "OpenAICompatCompleter"]

default_registry.register("llm", "openai", lambda cfg, **kw: OpenAICompatCompleter(cfg, **kw))
default_registry.register("llm", "ollama", lambda cfg, **kw: OllamaCompleter(cfg, **kw))
