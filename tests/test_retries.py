"""Tests for the step retry policy."""

from __future__ import annotations

import pytest

from searchreindex.core.errors import ConfigurationMismatchError, RunNotFoundError
from searchreindex.core.retries import RetryConfig, call_with_retry


def _flaky(failures: int, error: Exception):
    """Callable that raises `error` for its first `failures` calls."""
    calls: list[int] = []

    def _call(value: int) -> int:
        calls.append(value)
        if len(calls) <= failures:
            raise error
        return value * 2

    return _call, calls


@pytest.fixture()
def no_wait() -> RetryConfig:
    return RetryConfig(max_attempts=3, min_wait=0, max_wait=0, jitter=False)


class TestShouldRetry:
    def test_ordinary_errors_are_retried(self) -> None:
        assert RetryConfig().should_retry(OSError("disk"))

    def test_configuration_errors_are_not(self) -> None:
        config = RetryConfig()
        assert not config.should_retry(ConfigurationMismatchError("unknown index", ["x"]))
        assert not config.should_retry(RunNotFoundError(3))

    def test_retry_exceptions_narrow_the_policy(self) -> None:
        config = RetryConfig(retry_exceptions=(OSError,))
        assert config.should_retry(OSError("disk"))
        assert not config.should_retry(KeyError("x"))


class TestCallWithRetry:
    def test_succeeds_after_transient_failures(self, no_wait: RetryConfig) -> None:
        func, calls = _flaky(2, OSError("busy"))

        assert call_with_retry(func, 5, config=no_wait) == 10
        assert calls == [5, 5, 5]

    def test_reraises_last_error_when_exhausted(self, no_wait: RetryConfig) -> None:
        func, calls = _flaky(5, OSError("busy"))

        with pytest.raises(OSError, match="busy"):
            call_with_retry(func, 1, config=no_wait)
        assert len(calls) == 3

    def test_non_retryable_error_fails_at_once(self, no_wait: RetryConfig) -> None:
        func, calls = _flaky(1, RunNotFoundError(9))

        with pytest.raises(RunNotFoundError):
            call_with_retry(func, 1, config=no_wait)
        assert calls == [1]

    def test_keyword_arguments_are_passed_through(self, no_wait: RetryConfig) -> None:
        def add(a: int, b: int = 0) -> int:
            return a + b

        assert call_with_retry(add, 1, b=2, config=no_wait) == 3
