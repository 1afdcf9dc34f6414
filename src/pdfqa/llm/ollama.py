"""Ollama completion provider using the /api/generate endpoint."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING
from urllib.error import HTTPError

from pdfqa._http import post_json
from pdfqa.exceptions import CompletionError
from pdfqa.llm.base import BaseCompleter

if TYPE_CHECKING:
    from pdfqa.config import PdfqaConfig

__all__ = ["OllamaCompleter"]

logger = logging.getLogger(__name__)

_DEFAULT_BASE_URL = "http://localhost:11434"


class OllamaCompleter(BaseCompleter):
    """Completion provider backed by a local Ollama model. Needs no API key."""

    _DEFAULT_TIMEOUT = 300  # seconds; local models can be slow

    def __init__(
        self,
        config: PdfqaConfig,
        *,
        model: str | None = None,
        base_url: str | None = None,
        api_key_env: str | None = None,
    ) -> None:
        del api_key_env  # local models take no credential
        self._model = model or config.llm.model
        own_url = config.llm.base_url if config.llm.provider == "ollama" else ""
        self._base_url = (base_url or own_url or _DEFAULT_BASE_URL).rstrip("/")

    @property
    def name(self) -> str:
        return f"ollama/{self._model}"

    def complete(self, prompt: str, max_tokens: int = 400, temperature: float = 0.3) -> str:
        url = f"{self._base_url}/api/generate"
        payload = {
            "model": self._model,
            "prompt": prompt,
            "stream": False,
            "options": {"num_predict": max_tokens, "temperature": temperature},
        }

        try:
            data = post_json(url, payload, timeout=self._DEFAULT_TIMEOUT)
        except json.JSONDecodeError as e:
            raise CompletionError(f"Ollama returned invalid JSON from {url}") from e
        except HTTPError as e:
            raise CompletionError(f"Ollama API error (HTTP {e.code}): {e.reason}") from e
        except (TimeoutError, OSError) as e:
            raise CompletionError(
                f"Ollama not reachable at {self._base_url}. Is Ollama running? Error: {e}"
            ) from e

        text = str(data.get("response", "")).strip()
        if not text:
            raise CompletionError(f"Empty completion from {self.name}")
        return text
