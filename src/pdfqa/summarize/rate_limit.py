"""Rolling token budget guarding the remote summarization backend."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

__all__ = ["TokenBudget"]

logger = logging.getLogger(__name__)


class TokenBudget:
    """Token usage within a fixed window, reset once the window has elapsed.

    One instance is created per summarization run. ``batch_count`` counts
    the remote calls recorded in the current window and drives the
    throttling cadence.
    """

    def __init__(
        self,
        limit: int = 90_000,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self.window_start = clock()
        self.tokens_used = 0.0
        self.batch_count = 0

    def _reset_if_elapsed(self) -> None:
        now = self._clock()
        if now - self.window_start > self.window_seconds:
            logger.debug("Token window elapsed, resetting budget (%d used)", self.tokens_used)
            self.window_start = now
            self.tokens_used = 0.0
            self.batch_count = 0

    def can_spend(self, estimated_tokens: float) -> bool:
        """Whether a call estimated at ``estimated_tokens`` fits the current window."""
        self._reset_if_elapsed()
        fits = self.tokens_used + estimated_tokens <= self.limit
        if not fits:
            logger.warning(
                "Token budget would be exceeded: %.0f + %.0f > %d",
                self.tokens_used,
                estimated_tokens,
                self.limit,
            )
        return fits

    def record(self, tokens: float) -> None:
        """Account for a completed remote call."""
        self._reset_if_elapsed()
        self.tokens_used += tokens
        self.batch_count += 1

    def start_run(self) -> None:
        self.batch_count = 0
