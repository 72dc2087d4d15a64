"""
Pytest configuration and shared fixtures.
"""

import logging

import pytest

from logpush_fakes import FakeObjectStore
from r2logs.monitoring.retry_handler import RetryConfig, RetryManager

CREDENTIAL_ENV_VARS = [
    "CF_API_KEY",
    "CF_ACCOUNT_ID",
    "R2_ACCESS_KEY_ID",
    "R2_SECRET_ACCESS_KEY",
    "BUCKET_NAME",
    "R2_ENDPOINT",
    "R2LOGS_PARTITION_TEMPLATE",
    "R2LOGS_PARTITION_ROOT",
    "R2LOGS_MAX_WORKERS",
    "R2LOGS_MAX_RETRIES",
    "R2LOGS_RETRY_BASE_DELAY",
    "R2LOGS_CONNECT_TIMEOUT",
    "R2LOGS_READ_TIMEOUT",
]


@pytest.fixture
def fake_store() -> FakeObjectStore:
    """Empty in-memory bucket."""
    return FakeObjectStore()


@pytest.fixture
def sleeps() -> list[float]:
    """Delays requested by the retry manager."""
    return []


@pytest.fixture
def retry_manager(sleeps) -> RetryManager:
    """Retry manager that records delays instead of sleeping."""
    return RetryManager(
        RetryConfig(max_retries=3, base_delay_seconds=0.5, jitter=False),
        sleep=sleeps.append,
    )


@pytest.fixture
def clean_env(monkeypatch):
    """Remove r2logs variables from the environment."""
    for name in CREDENTIAL_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def credentials_env(clean_env):
    """Environment with a complete set of credentials."""
    clean_env.setenv("CF_ACCOUNT_ID", "0123456789abcdef")
    clean_env.setenv("R2_ACCESS_KEY_ID", "test-access-key")
    clean_env.setenv("R2_SECRET_ACCESS_KEY", "test-secret-key")
    clean_env.setenv("BUCKET_NAME", "logs")
    return clean_env


@pytest.fixture(autouse=True)
def reset_logging():
    """setup_logging() reconfigures the root logger; undo it after each test."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
