"""Map-reduce summarization with a rate-limited primary backend and a local fallback."""

from pdfqa.summarize.backends import LocalSummarizer, RemoteSummarizer, SummaryBackend
from pdfqa.summarize.batching import BatchUnit, cache_key, create_batches, final_cache_key
from pdfqa.summarize.rate_limit import TokenBudget
from pdfqa.summarize.summarizer import BackendChoice, BatchSummarizer

__all__ = [
    "BackendChoice",
    "BatchSummarizer",
    "BatchUnit",
    "LocalSummarizer",
    "RemoteSummarizer",
    "SummaryBackend",
    "TokenBudget",
    "cache_key",
    "create_batches",
    "final_cache_key",
]
