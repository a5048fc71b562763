"""
Retry utilities with tenacity.

Provides the retry policy the runner wraps around each reindex step.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random_exponential,
)

from searchreindex.core.errors import (
    ConfigurationMismatchError,
    FetcherUnavailableError,
    InvalidBatchSizeError,
    RunNotFoundError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Default retry configuration
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_MIN_WAIT = 1  # seconds
DEFAULT_MAX_WAIT = 30  # seconds
DEFAULT_MULTIPLIER = 2

# Retrying these cannot succeed without a configuration change
NON_RETRYABLE: tuple[type[Exception], ...] = (
    InvalidBatchSizeError,
    ConfigurationMismatchError,
    FetcherUnavailableError,
    RunNotFoundError,
)


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        min_wait: float = DEFAULT_MIN_WAIT,
        max_wait: float = DEFAULT_MAX_WAIT,
        multiplier: float = DEFAULT_MULTIPLIER,
        jitter: bool = True,
        retry_exceptions: tuple[type[Exception], ...] | None = None,
        ignore_exceptions: tuple[type[Exception], ...] = NON_RETRYABLE,
    ):
        """Initialize retry configuration.

        Args:
            max_attempts: Maximum number of attempts
            min_wait: Minimum wait time in seconds
            max_wait: Maximum wait time in seconds
            multiplier: Exponential backoff multiplier
            jitter: Add random jitter to wait times
            retry_exceptions: Exception types to retry on
            ignore_exceptions: Exception types that are never retried
        """
        self.max_attempts = max_attempts
        self.min_wait = min_wait
        self.max_wait = max_wait
        self.multiplier = multiplier
        self.jitter = jitter
        self.retry_exceptions = retry_exceptions or (Exception,)
        self.ignore_exceptions = ignore_exceptions

    def should_retry(self, error: BaseException) -> bool:
        if isinstance(error, self.ignore_exceptions):
            return False
        return isinstance(error, self.retry_exceptions)


def build_retrying(config: RetryConfig | None = None) -> Retrying:
    """Build a tenacity Retrying controller from a RetryConfig.

    Usage:
        for attempt in build_retrying(config):
            with attempt:
                do_work()
    """
    if config is None:
        config = RetryConfig()

    if config.jitter:
        wait_strategy = wait_random_exponential(
            multiplier=config.multiplier,
            min=config.min_wait,
            max=config.max_wait,
        )
    else:
        wait_strategy = wait_exponential(
            multiplier=config.multiplier,
            min=config.min_wait,
            max=config.max_wait,
        )

    return Retrying(
        stop=stop_after_attempt(config.max_attempts),
        wait=wait_strategy,
        retry=retry_if_exception(config.should_retry),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


def call_with_retry(
    func: Callable[..., T],
    *args: Any,
    config: RetryConfig | None = None,
    **kwargs: Any,
) -> T:
    """Call a function, retrying according to config.

    Raises:
        The last exception once attempts are exhausted
    """
    for attempt in build_retrying(config):
        with attempt:
            return func(*args, **kwargs)
    raise RuntimeError("Retry loop exited without a result")  # pragma: no cover
