"""OpenAI-compatible chat completion provider.

Works with any server implementing ``POST /chat/completions``: OpenAI,
Mistral, LiteLLM proxy, vLLM and similar.
"""

from __future__ import annotations

import json
import logging
import os
from typing import TYPE_CHECKING
from urllib.error import HTTPError

from pdfqa._http import post_json
from pdfqa.exceptions import (
    AuthorizationError,
    CompletionError,
    MissingCredentialsError,
    RateLimitError,
)
from pdfqa.llm.base import BaseCompleter

if TYPE_CHECKING:
    from pdfqa.config import PdfqaConfig

__all__ = ["OpenAICompatCompleter"]

logger = logging.getLogger(__name__)

_DEFAULT_BASE_URL = "https://api.openai.com/v1"


class OpenAICompatCompleter(BaseCompleter):
    """Completion provider using an OpenAI-compatible chat endpoint.

    Settings default to the ``[llm]`` section; keyword overrides let the
    summarizer point the same class at a different model and server.

    Config fields used::

        [llm]
        provider = "openai"
        model = "gpt-4o-mini"
        api_key_env = "OPENAI_API_KEY"
        base_url = ""            # empty = https://api.openai.com/v1
    """

    _DEFAULT_TIMEOUT = 120  # seconds

    def __init__(
        self,
        config: PdfqaConfig,
        *,
        model: str | None = None,
        base_url: str | None = None,
        api_key_env: str | None = None,
    ) -> None:
        self._model = model or config.llm.model
        self._base_url = (base_url or config.llm.base_url or _DEFAULT_BASE_URL).rstrip("/")
        self._api_key_env = config.llm.api_key_env if api_key_env is None else api_key_env
        self._api_key = os.environ.get(self._api_key_env) if self._api_key_env else None

    @property
    def name(self) -> str:
        return f"openai/{self._model}"

    def check_credentials(self) -> None:
        if self._api_key_env and not self._api_key:
            raise MissingCredentialsError(
                f"API key not configured: set the {self._api_key_env} environment variable"
            )

    def complete(self, prompt: str, max_tokens: int = 400, temperature: float = 0.3) -> str:
        self.check_credentials()

        url = f"{self._base_url}/chat/completions"
        payload = {
            "model": self._model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }

        try:
            data = post_json(url, payload, api_key=self._api_key, timeout=self._DEFAULT_TIMEOUT)
        except json.JSONDecodeError as e:
            raise CompletionError(f"Completion API returned invalid JSON from {url}") from e
        except HTTPError as e:
            if e.code in (401, 403):
                raise AuthorizationError(
                    f"Invalid API key for {self.name} (HTTP {e.code})"
                ) from e
            if e.code == 429:
                raise RateLimitError(f"Rate limit exceeded for {self.name}") from e
            raise CompletionError(f"Completion API error (HTTP {e.code}): {e.reason}") from e
        except (TimeoutError, OSError) as e:
            raise CompletionError(
                f"Completion API not reachable at {self._base_url}. Error: {e}"
            ) from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise CompletionError(f"Unexpected response format from {url}") from e

        text = (content or "").strip()
        if not text:
            raise CompletionError(f"Empty completion from {self.name}")

        logger.debug("Completion from %s: %d chars", self.name, len(text))
        return text
