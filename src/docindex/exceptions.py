"""
Exceptions raised by the indexing core.
"""

from typing import Any


class DocIndexError(Exception):
    """Base exception for all indexing errors."""

    def __init__(self, message: str, code: int | None = None):
        self.message = message
        self.code = code
        super().__init__(self.message)


class ParseError(DocIndexError):
    """Raised when a source document is malformed."""

    def __init__(self, source_id: str, message: str):
        self.source_id = source_id
        super().__init__(f"Failed to parse '{source_id}': {message}", code=1001)


class ValidationError(DocIndexError):
    """Raised when a content unit violates structural rules."""

    def __init__(self, unit_name: str, errors: list[Any]):
        self.unit_name = unit_name
        self.errors = errors
        summary = "; ".join(str(e) for e in errors) or "invalid content"
        super().__init__(f"Validation failed for '{unit_name}': {summary}", code=1002)


class EmbeddingError(DocIndexError):
    """Raised when the embedding provider fails for a batch.

    Retried by the embeddings service and recorded as a failure once
    retries are exhausted.
    """

    def __init__(
        self,
        message: str,
        batch_index: int | None = None,
        attempts: int = 0,
    ):
        self.batch_index = batch_index
        self.attempts = attempts
        super().__init__(message, code=1003)


class TrackerPersistenceError(DocIndexError):
    """Raised when sync state cannot be read or written."""

    def __init__(self, message: str = "Failed to persist embedding sync state"):
        super().__init__(message, code=1004)


class ConfigError(DocIndexError):
    """Raised when configuration values are inconsistent."""

    def __init__(self, message: str):
        super().__init__(f"Configuration error: {message}", code=1005)
