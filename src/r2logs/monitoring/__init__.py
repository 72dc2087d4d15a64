"""Request retry policy for storage access."""

from .retry_handler import (
    ErrorCategory,
    ErrorClassifier,
    RetryConfig,
    RetryManager,
    RetryResult,
)

__all__ = [
    "ErrorCategory",
    "ErrorClassifier",
    "RetryConfig",
    "RetryManager",
    "RetryResult",
]
