"""Recursive map-reduce summarization of a chunked document.

Each round packs the current units into batches, summarizes every batch
(memoized in a summary cache), and feeds the batch summaries to the next
round until one summary remains. When a round yields a handful of
summaries, one extra call tries to reduce them straight to the final one.

The remote backend is guarded by a per-run token budget. Any refusal or
failure moves the rest of the run to the local backend.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from pdfqa.config import SummarizeConfig
from pdfqa.exceptions import PdfqaError, RateLimitError, SummarizationError
from pdfqa.summarize.batching import (
    BatchUnit,
    cache_key,
    combine_text,
    create_batches,
    final_cache_key,
)
from pdfqa.summarize.rate_limit import TokenBudget
from pdfqa.tokens import count_tokens, count_words
from pdfqa.types import (
    FINAL_SUMMARY_ID,
    FINAL_SUMMARY_TITLE,
    SummarizationResult,
    SummaryChunk,
    SummaryStats,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from pdfqa.store.base import BaseSummaryStore
    from pdfqa.summarize.backends import LocalSummarizer, RemoteSummarizer
    from pdfqa.types import Backend, Chunk

__all__ = ["BackendChoice", "BatchSummarizer"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackendChoice:
    """Which backend serves the next call, and why when it is not the requested one."""

    backend: Backend
    fallback_reason: str = ""
    rate_limited: bool = False

    @property
    def is_fallback(self) -> bool:
        return bool(self.fallback_reason)


@dataclass
class _RunState:
    budget: TokenBudget
    active: Backend
    from_cache: int = 0
    newly_generated: int = 0
    rate_limit_hit: bool = False
    fallback_used: bool = False
    summaries: list[SummaryChunk] = field(default_factory=list)


def _dedupe(ids: list[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(ids))


class BatchSummarizer:
    """Summarizes chunks into one final summary through repeated batching.

    Args:
        primary: Remote backend, or None when none is configured.
        local: Local backend, the fallback for every primary failure.
        cache: Batch-summary cache keyed by :func:`cache_key`.
        saved: Store for explicitly saved summary trees.
        config: ``[summarize]`` settings.
        sleep: Injectable delay function.
        clock: Injectable monotonic clock for the token budget.
    """

    def __init__(
        self,
        primary: RemoteSummarizer | None,
        local: LocalSummarizer,
        cache: BaseSummaryStore,
        saved: BaseSummaryStore,
        config: SummarizeConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._primary = primary
        self._local = local
        self._cache = cache
        self._saved = saved
        self._config = config or SummarizeConfig()
        self._sleep = sleep
        self._clock = clock

    # -- run ---------------------------------------------------------------

    def summarize(self, chunks: list[Chunk], backend: Backend = "primary") -> SummarizationResult:
        """Summarize ``chunks`` down to a single final summary.

        Raises:
            SummarizationError: On empty input, or when a batch fails on
                every available backend.
        """
        if not chunks:
            raise SummarizationError("No chunks provided for summarization")

        budget = TokenBudget(
            limit=self._config.tokens_per_minute,
            window_seconds=self._config.window_seconds,
            clock=self._clock,
        )
        budget.start_run()
        run = _RunState(budget=budget, active=backend)

        logger.info("Summarizing %d chunks (backend=%s)", len(chunks), backend)
        units = [BatchUnit.from_chunk(c) for c in chunks]

        if len(units) == 1:
            return self._summarize_single(units[0], run)

        step = 1
        while True:
            outputs = self._run_round(units, step, run)

            if len(outputs) == 1:
                logger.info("Round %d produced one summary, using it as final", step)
                return self._result(
                    run,
                    summaries=run.summaries[:-1],
                    final=outputs[0].as_final(),
                    total=len(chunks),
                    steps=step,
                )

            if len(outputs) <= self._config.final_reduce_max:
                final = self._reduce_to_final(outputs, run)
                if final is not None:
                    return self._result(run, run.summaries, final, total=len(chunks), steps=step)

            # Chunks may each fill a batch on their own; summaries must pack tighter.
            if step > 1 and len(outputs) >= len(units):
                logger.warning(
                    "Round %d did not reduce %d summaries, stopping without a final summary",
                    step,
                    len(units),
                )
                return self._result(run, run.summaries, None, total=len(chunks), steps=step)

            units = [BatchUnit.from_summary(s) for s in outputs]
            step += 1

    def _summarize_single(self, unit: BatchUnit, run: _RunState) -> SummarizationResult:
        key = final_cache_key([unit], run.active)
        cached = self._cache.get(key)
        if cached is not None:
            logger.info("Using cached summary for single chunk %s", unit.unit_id)
            run.from_cache += 1
            return self._result(run, [], cached.as_final(), total=1, steps=1)

        text = self._summarize_text(unit.text, run, context="single chunk")
        final = SummaryChunk(
            summary_id=FINAL_SUMMARY_ID,
            title=FINAL_SUMMARY_TITLE,
            text=text,
            page_number=unit.page_number,
            level=0,
            token_count=count_tokens(text),
            word_count=count_words(text),
            summary_type="final_summary",
            source_chunk_ids=unit.source_ids,
        )
        self._cache.upsert(key, final)
        run.newly_generated += 1
        return self._result(run, [], final, total=1, steps=1)

    def _run_round(self, units: list[BatchUnit], step: int, run: _RunState) -> list[SummaryChunk]:
        batches = create_batches(
            units,
            run.active,
            batch_tokens=self._config.batch_tokens,
            local_max_input_chars=self._config.local_max_input_chars,
        )
        logger.info("Round %d: %d units in %d batches", step, len(units), len(batches))

        outputs: list[SummaryChunk] = []
        for index, batch in enumerate(batches, start=1):
            summary, called = self._summarize_batch(batch, step, index, run)
            outputs.append(summary)
            run.summaries.append(summary)
            if called:
                self._throttle(index, len(batches), run)
        return outputs

    def _summarize_batch(
        self, batch: list[BatchUnit], step: int, index: int, run: _RunState
    ) -> tuple[SummaryChunk, bool]:
        """Summarize one batch; the flag tells whether a backend was called."""
        key = cache_key(batch, run.active)
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("Cache hit for batch %d.%d", step, index)
            run.from_cache += 1
            return cached, False

        try:
            text = self._summarize_text(combine_text(batch), run, context=f"batch {step}.{index}")
        except SummarizationError as e:
            raise SummarizationError(f"Failed to summarize batch {index}: {e}") from e

        summary = SummaryChunk(
            summary_id=f"summary_{step}_{index}",
            title=f"Summary {step}.{index}",
            text=text,
            page_number=batch[0].page_number,
            level=step,
            token_count=count_tokens(text),
            word_count=count_words(text),
            source_chunk_ids=_dedupe([i for unit in batch for i in unit.source_ids]),
            summary_index=index,
        )
        self._cache.upsert(key, summary)
        run.newly_generated += 1
        logger.debug("Batch %d.%d summarized: %d tokens", step, index, summary.token_count)
        return summary, True

    def _reduce_to_final(
        self, outputs: list[SummaryChunk], run: _RunState
    ) -> SummaryChunk | None:
        """One call over a few summaries; None when it fails so rounds continue."""
        units = [BatchUnit.from_summary(s) for s in outputs]
        key = final_cache_key(units, run.active)
        cached = self._cache.get(key)
        if cached is not None:
            logger.info("Using cached final summary")
            run.from_cache += 1
            return cached.as_final()

        logger.info("Creating final summary from %d summaries", len(outputs))
        try:
            text = self._summarize_text(combine_text(units), run, context="final summary")
        except SummarizationError as e:
            logger.warning("Final reduction failed, continuing with another round: %s", e)
            return None

        final = SummaryChunk(
            summary_id=FINAL_SUMMARY_ID,
            title=FINAL_SUMMARY_TITLE,
            text=text,
            page_number=units[0].page_number,
            level=0,
            token_count=count_tokens(text),
            word_count=count_words(text),
            summary_type="final_summary",
            source_chunk_ids=_dedupe([i for unit in units for i in unit.source_ids]),
        )
        self._cache.upsert(key, final)
        run.newly_generated += 1
        return final

    # -- backend policy ----------------------------------------------------

    def _choose_backend(self, text: str, run: _RunState) -> BackendChoice:
        if run.active == "local":
            return BackendChoice("local")
        if self._primary is None:
            return BackendChoice("local", fallback_reason="no primary backend configured")
        estimate = count_tokens(text) * self._config.estimate_multiplier
        if not run.budget.can_spend(estimate):
            return BackendChoice(
                "local", fallback_reason="token budget exhausted", rate_limited=True
            )
        return BackendChoice("primary")

    def _fall_back(self, run: _RunState, reason: str, rate_limited: bool) -> None:
        logger.warning("Falling back to local backend for the rest of the run: %s", reason)
        run.active = "local"
        run.fallback_used = True
        run.rate_limit_hit = run.rate_limit_hit or rate_limited

    def _summarize_text(self, text: str, run: _RunState, context: str) -> str:
        """Summarize through the chosen backend, falling back to local on any primary failure.

        Raises:
            SummarizationError: If the local backend fails too.
        """
        choice = self._choose_backend(text, run)
        if choice.is_fallback:
            self._fall_back(run, f"{choice.fallback_reason} ({context})", choice.rate_limited)

        if choice.backend == "primary" and self._primary is not None:
            estimate = count_tokens(text) * self._config.estimate_multiplier
            try:
                summary = self._primary.summarize(text)
            except RateLimitError as e:
                self._fall_back(run, f"rate limited on {context}: {e}", rate_limited=True)
                self._sleep(self._config.delay_after_rate_limit)
            except PdfqaError as e:
                self._fall_back(run, f"primary failed on {context}: {e}", rate_limited=False)
            else:
                run.budget.record(estimate)
                return summary

        return self._local.summarize(text)

    def _throttle(self, index: int, total: int, run: _RunState) -> None:
        if run.active == "local":
            self._sleep(self._config.local_delay)
            return
        if index >= total:
            return
        if run.budget.batch_count % 2 == 0:
            self._sleep(self._config.delay_after_two_batches)
        else:
            self._sleep(self._config.delay_between_requests)

    @staticmethod
    def _result(
        run: _RunState,
        summaries: list[SummaryChunk],
        final: SummaryChunk | None,
        total: int,
        steps: int,
    ) -> SummarizationResult:
        logger.info(
            "Summarization finished: %d summaries, %d cached, %d new, backend=%s",
            len(summaries),
            run.from_cache,
            run.newly_generated,
            run.active,
        )
        return SummarizationResult(
            summaries=list(summaries),
            final_summary=final,
            total_processed=total,
            processing_steps=steps,
            from_cache=run.from_cache,
            newly_generated=run.newly_generated,
            backend=run.active,
            rate_limit_hit=run.rate_limit_hit,
            fallback_used=run.fallback_used,
        )

    # -- saved summaries ---------------------------------------------------

    def save_summaries(
        self, summaries: list[SummaryChunk], final: SummaryChunk | None
    ) -> tuple[int, bool]:
        """Persist a summary tree under each summary's own id, skipping existing ids.

        Returns:
            Number of intermediate summaries saved and whether the final one was.
        """
        saved = 0
        for summary in summaries:
            if self._saved.get(summary.summary_id) is None:
                self._saved.upsert(summary.summary_id, summary)
                saved += 1
            else:
                logger.debug("Summary already saved: %s", summary.summary_id)

        saved_final = False
        if final is not None and self._saved.get(final.summary_id) is None:
            self._saved.upsert(final.summary_id, final)
            saved_final = True

        logger.info("Saved %d summaries (final saved: %s)", saved, saved_final)
        return saved, saved_final

    def summary_stats(self) -> SummaryStats:
        summaries = self._saved.all_summaries()
        finals = sum(1 for s in summaries if s.is_final)
        total_tokens = sum(s.token_count for s in summaries)
        average = sum(len(s.text) for s in summaries) / len(summaries) if summaries else 0.0
        return SummaryStats(
            total=len(summaries),
            intermediate=len(summaries) - finals,
            final=finals,
            total_tokens=total_tokens,
            average_length=average,
        )

    def clear_summaries(self, include_cache: bool = True) -> int:
        """Delete saved summaries (and the batch cache). Returns saved summaries removed."""
        removed = self._saved.delete_all()
        if include_cache:
            self._cache.delete_all()
        return removed
