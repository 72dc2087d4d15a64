"""
Retry policy for list and get requests against object storage.

Provides:
- Exponential backoff with jitter, capped per wait
- Error classification (BackendError carries its own retryable flag)
- A manager shared by every worker thread of a retrieval
"""

import logging
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from ..config.constants import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_BASE_DELAY_SECONDS,
    DEFAULT_RETRY_MAX_DELAY_SECONDS,
)
from ..exceptions import BackendError, ConfigError, DecodeError

logger = logging.getLogger(__name__)


class ErrorCategory(Enum):
    """How a failed request should be treated."""

    TRANSIENT = "transient"
    RATE_LIMITED = "rate_limited"  # backend asked us to slow down
    PERMANENT = "permanent"
    UNKNOWN = "unknown"


RETRYABLE_CATEGORIES = frozenset(
    {ErrorCategory.TRANSIENT, ErrorCategory.RATE_LIMITED, ErrorCategory.UNKNOWN}
)


@dataclass
class RetryConfig:
    """Backoff schedule: base * 2**n seconds, capped, with +/- jitter."""

    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay_seconds: float = DEFAULT_RETRY_BASE_DELAY_SECONDS
    max_delay_seconds: float = DEFAULT_RETRY_MAX_DELAY_SECONDS
    exponential_base: float = 2.0
    jitter: bool = True
    jitter_factor: float = 0.1

    def calculate_delay(self, retry_number: int) -> float:
        """
        Seconds to wait before the given retry.

        Args:
            retry_number: 0 for the wait after the first failure

        Returns:
            Delay in seconds, never negative
        """
        backoff = self.base_delay_seconds * self.exponential_base**retry_number
        delay = min(backoff, self.max_delay_seconds)
        if self.jitter:
            spread = delay * self.jitter_factor
            delay = random.uniform(delay - spread, delay + spread)
        return max(0.0, delay)


@dataclass
class RetryResult:
    """Outcome of a request run under the retry policy."""

    success: bool = False
    result: Any = None
    attempts: int = 0
    total_delay_seconds: float = 0.0
    last_error: Optional[Exception] = None
    failures: list[ErrorCategory] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "attempts": self.attempts,
            "total_delay_seconds": round(self.total_delay_seconds, 2),
            "last_error": str(self.last_error) if self.last_error else None,
            "error_count": len(self.failures),
        }


class ErrorClassifier:
    """
    Decides whether a failed request is worth repeating.

    Storage errors arrive as BackendError, already marked retryable or not by
    the backend. Anything else is matched by message, first match wins.
    """

    MESSAGE_PATTERNS = (
        (
            ErrorCategory.PERMANENT,
            ("nosuchkey", "nosuchbucket", "not found", "404", "accessdenied",
             "access denied", "forbidden", "403", "unauthorized", "401",
             "bad request", "400"),
        ),
        (
            ErrorCategory.RATE_LIMITED,
            ("slowdown", "slow down", "too many requests", "rate limit", "429"),
        ),
        (
            ErrorCategory.TRANSIENT,
            ("timeout", "timed out", "connection reset", "connection refused",
             "connection aborted", "incomplete read", "unavailable", "503", "504"),
        ),
    )

    @classmethod
    def classify(cls, error: Exception) -> ErrorCategory:
        if isinstance(error, BackendError):
            if not error.retryable:
                return ErrorCategory.PERMANENT
            if error.status_code == 429:
                return ErrorCategory.RATE_LIMITED
            return ErrorCategory.TRANSIENT

        # Corrupt bodies and bad input fail the same way every time
        if isinstance(error, (DecodeError, ConfigError)):
            return ErrorCategory.PERMANENT

        text = f"{type(error).__name__} {error}".lower()
        for category, patterns in cls.MESSAGE_PATTERNS:
            if any(pattern in text for pattern in patterns):
                return category

        if isinstance(error, (TimeoutError, ConnectionError)):
            return ErrorCategory.TRANSIENT
        if isinstance(error, (ValueError, TypeError, KeyError)):
            return ErrorCategory.PERMANENT
        return ErrorCategory.UNKNOWN


class RetryManager:
    """
    Runs storage requests under the retry policy.

    Holds no per-request state, so one instance serves all worker threads.
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            config: Backoff schedule and retry limit
            sleep: Called with each delay (tests pass a recorder)
        """
        self.config = config or RetryConfig()
        self._sleep = sleep

    def _delay_for(self, retry_number: int, category: ErrorCategory) -> float:
        delay = self.config.calculate_delay(retry_number)
        if category == ErrorCategory.RATE_LIMITED:
            delay *= 2
        return delay

    def execute_with_retry(
        self,
        func: Callable[..., Any],
        *args,
        retry_on: Optional[frozenset[ErrorCategory]] = None,
        description: str = "request",
        **kwargs,
    ) -> RetryResult:
        """
        Call func until it succeeds, fails permanently or runs out of retries.

        Args:
            func: The request
            retry_on: Categories worth repeating (default: all but permanent)
            description: Names the request in log messages

        Returns:
            RetryResult; failures are recorded, never raised
        """
        retryable = RETRYABLE_CATEGORIES if retry_on is None else retry_on
        outcome = RetryResult()

        while True:
            outcome.attempts += 1
            try:
                outcome.result = func(*args, **kwargs)
            except Exception as e:
                category = ErrorClassifier.classify(e)
                outcome.failures.append(category)
                outcome.last_error = e
            else:
                outcome.success = True
                if outcome.attempts > 1:
                    logger.debug(f"{description} succeeded on attempt {outcome.attempts}")
                return outcome

            if category not in retryable:
                logger.debug(f"Not retrying {description}: {category.value} error")
                return outcome

            retries_done = outcome.attempts - 1
            if retries_done >= self.config.max_retries:
                logger.error(
                    f"{description} failed after {outcome.attempts} attempts: "
                    f"{outcome.last_error}"
                )
                return outcome

            delay = self._delay_for(retries_done, category)
            logger.warning(
                f"{description} failed ({category.value}): {outcome.last_error}; "
                f"retry {retries_done + 1}/{self.config.max_retries} in {delay:.2f}s"
            )
            outcome.total_delay_seconds += delay
            self._sleep(delay)

    def call(
        self,
        func: Callable[..., Any],
        *args,
        description: str = "request",
        **kwargs,
    ) -> Any:
        """
        Like execute_with_retry, but return func's result or raise its last error.
        """
        outcome = self.execute_with_retry(
            func, *args, description=description, **kwargs
        )
        if outcome.success:
            return outcome.result
        raise outcome.last_error or BackendError(f"{description} failed")
