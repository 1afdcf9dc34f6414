"""Custom exception hierarchy for pdfqa."""

__all__ = [
    "AuthorizationError",
    "ChunkError",
    "CompletionError",
    "ConfigError",
    "EmbeddingError",
    "ManifestError",
    "MissingCredentialsError",
    "ParseError",
    "PdfqaError",
    "PipelineError",
    "PluginError",
    "ProjectError",
    "RateLimitError",
    "StoreError",
    "SummarizationError",
    "ValidationError",
]


class PdfqaError(Exception):
    """Base exception for all pdfqa errors."""


class ConfigError(PdfqaError):
    """Raised when configuration loading or validation fails."""


class MissingCredentialsError(ConfigError):
    """Raised when a provider needs an API key that is not configured."""


class ManifestError(PdfqaError):
    """Raised when the document record cannot be read or written."""


class ProjectError(PdfqaError):
    """Raised when project initialization or discovery fails."""


class ParseError(PdfqaError):
    """Raised when text extraction from a document fails."""


class ChunkError(PdfqaError):
    """Raised when chunking operations fail."""


class EmbeddingError(PdfqaError):
    """Raised when embedding generation fails."""


class StoreError(PdfqaError):
    """Raised when chunk or summary store operations fail."""


class CompletionError(PdfqaError):
    """Raised when a language-model completion call fails."""


class AuthorizationError(CompletionError):
    """Raised when the completion provider rejects the credentials (HTTP 401/403)."""


class RateLimitError(CompletionError):
    """Raised when the completion provider throttles the request (HTTP 429)."""


class SummarizationError(PdfqaError):
    """Raised when the summarization run cannot complete."""


class ValidationError(PdfqaError):
    """Raised when a request payload is empty or malformed."""


class PipelineError(PdfqaError):
    """Raised when pipeline orchestration fails."""


class PluginError(PdfqaError):
    """Raised when provider loading or registration fails."""
