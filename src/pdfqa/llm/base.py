"""Abstract base class for text-completion providers."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

__all__ = ["BaseCompleter"]

logger = logging.getLogger(__name__)


class BaseCompleter(ABC):
    """Base class for language-model completion providers.

    A completer turns a single prompt into generated text. Chat and
    summarization both build their own prompts and only need this.
    """

    @abstractmethod
    def complete(self, prompt: str, max_tokens: int = 400, temperature: float = 0.3) -> str:
        """Generate a completion for ``prompt``.

        Returns:
            The generated text, stripped and non-empty.

        Raises:
            MissingCredentialsError: If a required API key is not configured.
            AuthorizationError: If the provider rejects the credential.
            RateLimitError: If the provider reports rate limiting.
            CompletionError: On any other failure or an empty completion.
        """

    def check_credentials(self) -> None:  # noqa: B027
        """Raise ``MissingCredentialsError`` when a needed credential is absent.

        Providers that need no credential keep this no-op.
        """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable ``provider/model`` label for logs."""
