"""
Error types raised by the reindex core and its host runner.
"""

from __future__ import annotations


class ReindexError(Exception):
    """Base class for all reindex errors."""


class InvalidBatchSizeError(ReindexError, ValueError):
    """Batch size is not a positive integer. Not retryable."""

    def __init__(self, batch_size: object):
        self.batch_size = batch_size
        super().__init__(f"Batch size must be greater than 0, got {batch_size!r}")


class ConfigurationMismatchError(ReindexError):
    """An explicit scope names an index or content type unknown to configuration."""

    def __init__(self, message: str, unknown: list[str] | None = None):
        self.unknown = unknown or []
        super().__init__(message)


class FetcherUnavailableError(ReindexError):
    """A planned content type no longer resolves to a fetcher."""

    def __init__(self, content_type: str):
        self.content_type = content_type
        super().__init__(f"No fetcher registered for content type: {content_type}")


class IndexWriteError(ReindexError):
    """The index service failed to write a chunk of documents."""

    def __init__(self, index_name: str, message: str):
        self.index_name = index_name
        super().__init__(f"Write to index '{index_name}' failed: {message}")


class RunNotFoundError(ReindexError):
    """No persisted run exists for the given id."""

    def __init__(self, run_id: int):
        self.run_id = run_id
        super().__init__(f"Reindex run not found: {run_id}")


class StepFailedError(ReindexError):
    """A step kept failing after all retry attempts were used."""

    def __init__(self, run_id: int, attempts: int, cause: BaseException):
        self.run_id = run_id
        self.attempts = attempts
        self.cause = cause
        super().__init__(f"Run {run_id} step failed after {attempts} attempt(s): {cause}")


class LockLostError(ReindexError):
    """Another holder took over a scheduled job's lock mid-run."""

    def __init__(self, lock_name: str, run_id: int):
        self.lock_name = lock_name
        self.run_id = run_id
        super().__init__(f"Lost lock {lock_name} while driving run {run_id}")
