"""Summarization backends: a prompt, an input-size guard and a completer."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pdfqa.exceptions import CompletionError, SummarizationError
from pdfqa.tokens import count_tokens

if TYPE_CHECKING:
    from pdfqa.llm.base import BaseCompleter

__all__ = ["LocalSummarizer", "RemoteSummarizer", "SummaryBackend"]

logger = logging.getLogger(__name__)

SUMMARY_PROMPT = (
    "Please provide a comprehensive summary of the following text. Focus on the key "
    "points, main ideas, and important details. Make the summary clear, well-structured "
    "and under {limit} tokens (don't mention that in the answer):\n\n{text}"
)

# Tokens held back from the batch ceiling for the model's output.
OUTPUT_RESERVE_TOKENS = 500
CHARS_PER_TOKEN = 3.5


class SummaryBackend:
    """Summarizes one text through a completer after fitting it to the input limit."""

    label = "backend"
    target_tokens = 300
    max_tokens = 400
    temperature = 0.3

    def __init__(self, completer: BaseCompleter) -> None:
        self._completer = completer

    @property
    def completer(self) -> BaseCompleter:
        return self._completer

    def fit_input(self, text: str) -> str:
        return text

    def summarize(self, text: str) -> str:
        """Return a summary of ``text``.

        Raises:
            CompletionError: Subclasses such as ``RateLimitError`` pass through
                so the caller can tell failure kinds apart.
        """
        prompt = SUMMARY_PROMPT.format(limit=self.target_tokens, text=self.fit_input(text))
        logger.debug(
            "Calling %s (%s), prompt %d chars", self.label, self._completer.name, len(prompt)
        )
        return self._completer.complete(
            prompt, max_tokens=self.max_tokens, temperature=self.temperature
        )


class RemoteSummarizer(SummaryBackend):
    """Remote model with a token-based input cap of the batch ceiling minus an output reserve."""

    label = "primary"

    def __init__(self, completer: BaseCompleter, batch_tokens: int = 1500) -> None:
        super().__init__(completer)
        self._max_input_tokens = batch_tokens - OUTPUT_RESERVE_TOKENS

    def fit_input(self, text: str) -> str:
        tokens = count_tokens(text)
        if tokens <= self._max_input_tokens:
            return text
        max_chars = int(self._max_input_tokens * CHARS_PER_TOKEN)
        logger.info(
            "Truncating summary input from %d tokens to ~%d", tokens, self._max_input_tokens
        )
        return text[:max_chars] + "..."


class LocalSummarizer(SummaryBackend):
    """Local model with a character-based input cap.

    Its output is asked to stay short enough to fit the next round's
    character ceiling.
    """

    label = "local"
    target_tokens = 150
    max_tokens = 200

    def __init__(self, completer: BaseCompleter, max_input_chars: int = 1024) -> None:
        super().__init__(completer)
        self._max_input_chars = max_input_chars

    def fit_input(self, text: str) -> str:
        if len(text) <= self._max_input_chars:
            return text
        logger.info("Truncating summary input to %d chars for local model", self._max_input_chars)
        return text[: self._max_input_chars - 3] + "..."

    def summarize(self, text: str) -> str:
        """Summarize locally; any failure here has nowhere left to fall back to.

        Raises:
            SummarizationError: If the local model fails or returns nothing.
        """
        try:
            return super().summarize(text)
        except CompletionError as e:
            raise SummarizationError(f"Local summarization failed: {e}") from e
