"""
Unit tests for the retry policy.
"""

import pytest

from r2logs.exceptions import BackendError, DecodeError
from r2logs.monitoring.retry_handler import (
    ErrorCategory,
    ErrorClassifier,
    RetryConfig,
    RetryManager,
)


class Flaky:
    """Callable failing with the given errors before succeeding."""

    def __init__(self, *errors: Exception, result: str = "ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


def transient(message: str = "get failed: connection reset") -> BackendError:
    return BackendError(message, key="k", retryable=True)


def permanent() -> BackendError:
    return BackendError("get failed: AccessDenied", key="k", status_code=403)


class TestRetryConfig:
    """Tests for RetryConfig.calculate_delay."""

    def test_exponential_backoff(self) -> None:
        config = RetryConfig(base_delay_seconds=0.5, jitter=False)

        assert [config.calculate_delay(n) for n in range(4)] == [0.5, 1.0, 2.0, 4.0]

    def test_delay_is_capped(self) -> None:
        config = RetryConfig(base_delay_seconds=0.5, max_delay_seconds=8.0, jitter=False)

        assert config.calculate_delay(10) == 8.0

    def test_jitter_stays_in_bounds(self) -> None:
        config = RetryConfig(base_delay_seconds=1.0, jitter=True, jitter_factor=0.1)

        for _ in range(50):
            assert 0.9 <= config.calculate_delay(0) <= 1.1


class TestErrorClassifier:
    """Tests for ErrorClassifier.classify."""

    def test_retryable_backend_error(self) -> None:
        assert ErrorClassifier.classify(transient()) == ErrorCategory.TRANSIENT

    def test_throttled_backend_error(self) -> None:
        error = BackendError("SlowDown", status_code=429, retryable=True)

        assert ErrorClassifier.classify(error) == ErrorCategory.RATE_LIMITED

    def test_non_retryable_backend_error(self) -> None:
        """The flag wins over message patterns."""
        error = BackendError("timeout while signing", retryable=False)

        assert ErrorClassifier.classify(error) == ErrorCategory.PERMANENT

    def test_decode_error_is_permanent(self) -> None:
        error = DecodeError("Invalid gzip data", key="k")

        assert ErrorClassifier.classify(error) == ErrorCategory.PERMANENT

    def test_plain_exceptions_by_pattern(self) -> None:
        assert ErrorClassifier.classify(TimeoutError("timed out")) == ErrorCategory.TRANSIENT
        assert ErrorClassifier.classify(Exception("404 not found")) == ErrorCategory.PERMANENT
        assert ErrorClassifier.classify(Exception("Too Many Requests")) == (
            ErrorCategory.RATE_LIMITED
        )
        assert ErrorClassifier.classify(RuntimeError("???")) == ErrorCategory.UNKNOWN


class TestRetryManager:
    """Tests for RetryManager."""

    def test_success_first_attempt(self, retry_manager: RetryManager, sleeps) -> None:
        func = Flaky()

        result = retry_manager.execute_with_retry(func)

        assert result.success
        assert result.result == "ok"
        assert result.attempts == 1
        assert sleeps == []

    def test_transient_errors_are_retried(
        self, retry_manager: RetryManager, sleeps
    ) -> None:
        func = Flaky(transient(), transient())

        result = retry_manager.execute_with_retry(func)

        assert result.success
        assert result.attempts == 3
        assert sleeps == [0.5, 1.0]
        assert result.failures == [ErrorCategory.TRANSIENT, ErrorCategory.TRANSIENT]

    def test_retries_are_bounded(self, retry_manager: RetryManager, sleeps) -> None:
        func = Flaky(*[transient() for _ in range(10)])

        result = retry_manager.execute_with_retry(func)

        assert not result.success
        assert func.calls == 4  # first attempt + 3 retries
        assert len(sleeps) == 3
        assert isinstance(result.last_error, BackendError)

    def test_permanent_errors_are_not_retried(
        self, retry_manager: RetryManager, sleeps
    ) -> None:
        func = Flaky(permanent())

        result = retry_manager.execute_with_retry(func)

        assert not result.success
        assert func.calls == 1
        assert sleeps == []

    def test_rate_limited_waits_longer(self, retry_manager: RetryManager, sleeps) -> None:
        func = Flaky(BackendError("SlowDown", status_code=429, retryable=True))

        retry_manager.execute_with_retry(func)

        assert sleeps == [1.0]

    def test_call_returns_result(self, retry_manager: RetryManager) -> None:
        assert retry_manager.call(Flaky(transient(), result="body")) == "body"

    def test_call_raises_last_error(self, retry_manager: RetryManager) -> None:
        error = permanent()

        with pytest.raises(BackendError) as exc_info:
            retry_manager.call(Flaky(error))

        assert exc_info.value is error

    def test_zero_retries(self, sleeps) -> None:
        manager = RetryManager(RetryConfig(max_retries=0), sleep=sleeps.append)
        func = Flaky(transient())

        result = manager.execute_with_retry(func)

        assert not result.success
        assert func.calls == 1
        assert sleeps == []

    def test_to_dict(self, retry_manager: RetryManager) -> None:
        result = retry_manager.execute_with_retry(Flaky(transient()))

        assert result.to_dict() == {
            "success": True,
            "attempts": 2,
            "total_delay_seconds": 0.5,
            "last_error": str(result.last_error),
            "error_count": 1,
        }
