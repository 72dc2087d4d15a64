"""
Application settings and configuration management.

Supports loading from:
1. YAML config files, optionally SOPS-encrypted (--config)
2. Environment variables (fallback)

Settings are built once by the entry point and passed explicitly to the
pipeline; there is no module-level settings cache.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from ..exceptions import ConfigError
from .constants import (
    DEFAULT_CONNECT_TIMEOUT_SECONDS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_WORKERS,
    DEFAULT_PARTITION_TEMPLATE,
    DEFAULT_READ_TIMEOUT_SECONDS,
    DEFAULT_RETRY_BASE_DELAY_SECONDS,
    R2_ENDPOINT_TEMPLATE,
)


def _safe_int(key: str, default: int) -> int:
    """Safely parse int from env var, using default on error."""
    try:
        return int(os.environ.get(key, str(default)))
    except ValueError:
        return default


def _safe_float(key: str, default: float) -> float:
    """Safely parse float from env var, using default on error."""
    try:
        return float(os.environ.get(key, str(default)))
    except ValueError:
        return default


# =============================================================================
# Retrieval Settings
# =============================================================================


@dataclass
class RetrievalSettings:
    """
    Tuning for the retrieval pipeline.

    Controls how many requests run against the bucket at once and how
    transient backend failures are retried.
    """

    max_workers: int = DEFAULT_MAX_WORKERS
    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay_seconds: float = DEFAULT_RETRY_BASE_DELAY_SECONDS
    connect_timeout_seconds: float = DEFAULT_CONNECT_TIMEOUT_SECONDS
    read_timeout_seconds: float = DEFAULT_READ_TIMEOUT_SECONDS

    def validate(self) -> list[str]:
        """Validate settings values. Returns list of errors."""
        errors = []

        if self.max_workers < 1:
            errors.append(f"retrieval.max_workers must be >= 1, got {self.max_workers}")
        if self.max_retries < 0:
            errors.append(f"retrieval.max_retries must be >= 0, got {self.max_retries}")
        if self.base_delay_seconds < 0:
            errors.append(
                f"retrieval.base_delay_seconds must be >= 0, "
                f"got {self.base_delay_seconds}"
            )
        if self.connect_timeout_seconds <= 0:
            errors.append(
                f"retrieval.connect_timeout_seconds must be > 0, "
                f"got {self.connect_timeout_seconds}"
            )
        if self.read_timeout_seconds <= 0:
            errors.append(
                f"retrieval.read_timeout_seconds must be > 0, "
                f"got {self.read_timeout_seconds}"
            )

        return errors

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> "RetrievalSettings":
        """Create from configuration dictionary."""
        return cls(
            max_workers=int(config.get("max_workers", DEFAULT_MAX_WORKERS)),
            max_retries=int(config.get("max_retries", DEFAULT_MAX_RETRIES)),
            base_delay_seconds=float(
                config.get("base_delay_seconds", DEFAULT_RETRY_BASE_DELAY_SECONDS)
            ),
            connect_timeout_seconds=float(
                config.get("connect_timeout_seconds", DEFAULT_CONNECT_TIMEOUT_SECONDS)
            ),
            read_timeout_seconds=float(
                config.get("read_timeout_seconds", DEFAULT_READ_TIMEOUT_SECONDS)
            ),
        )

    @classmethod
    def from_env(cls) -> "RetrievalSettings":
        """Create from environment variables."""
        return cls(
            max_workers=_safe_int("R2LOGS_MAX_WORKERS", DEFAULT_MAX_WORKERS),
            max_retries=_safe_int("R2LOGS_MAX_RETRIES", DEFAULT_MAX_RETRIES),
            base_delay_seconds=_safe_float(
                "R2LOGS_RETRY_BASE_DELAY", DEFAULT_RETRY_BASE_DELAY_SECONDS
            ),
            connect_timeout_seconds=_safe_float(
                "R2LOGS_CONNECT_TIMEOUT", DEFAULT_CONNECT_TIMEOUT_SECONDS
            ),
            read_timeout_seconds=_safe_float(
                "R2LOGS_READ_TIMEOUT", DEFAULT_READ_TIMEOUT_SECONDS
            ),
        )


# =============================================================================
# Main Settings
# =============================================================================


@dataclass
class Settings:
    """Credentials, bucket identity and layout of the Logpush bucket."""

    # Cloudflare Settings
    cloudflare_api_key: str = ""
    cloudflare_account_id: str = ""

    # R2 Settings
    r2_access_key_id: str = ""
    r2_secret_access_key: str = ""
    bucket_name: str = ""
    r2_endpoint: str = ""

    # Logpush layout
    partition_template: str = DEFAULT_PARTITION_TEMPLATE
    partition_root: str = ""

    retrieval: RetrievalSettings = field(default_factory=RetrievalSettings)

    @property
    def endpoint_url(self) -> str:
        """S3 API endpoint, derived from the account ID unless overridden."""
        if self.r2_endpoint:
            return self.r2_endpoint
        return R2_ENDPOINT_TEMPLATE.format(account_id=self.cloudflare_account_id)

    def validate(self) -> list[str]:
        """Validate required settings are present. Returns list of errors."""
        errors = []

        if not self.cloudflare_account_id and not self.r2_endpoint:
            errors.append("CF_ACCOUNT_ID is not set (or set R2_ENDPOINT)")

        if not self.r2_access_key_id:
            errors.append("R2_ACCESS_KEY_ID is not set")

        if not self.r2_secret_access_key:
            errors.append("R2_SECRET_ACCESS_KEY is not set")

        if not self.bucket_name:
            errors.append("BUCKET_NAME is not set")

        if not self.partition_template:
            errors.append("partition template must not be empty")

        # Validate nested settings
        errors.extend(self.retrieval.validate())

        return errors

    def require_valid(self) -> None:
        """Raise ConfigError listing every problem found by validate()."""
        errors = self.validate()
        if errors:
            raise ConfigError("Invalid configuration", errors=errors)

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> "Settings":
        """Create Settings from configuration dictionary (e.g., from SOPS)."""
        cf = config.get("cloudflare") or {}
        r2 = config.get("r2") or {}
        partition = config.get("partition") or {}
        retrieval = config.get("retrieval") or {}

        return cls(
            cloudflare_api_key=cf.get("api_key", ""),
            cloudflare_account_id=cf.get("account_id", ""),
            r2_access_key_id=r2.get("access_key_id", ""),
            r2_secret_access_key=r2.get("secret_access_key", ""),
            bucket_name=r2.get("bucket_name", ""),
            r2_endpoint=r2.get("endpoint", ""),
            partition_template=partition.get("template", DEFAULT_PARTITION_TEMPLATE),
            partition_root=partition.get("root", ""),
            retrieval=RetrievalSettings.from_dict(retrieval),
        )

    @classmethod
    def from_env(cls) -> "Settings":
        """Create Settings from environment variables."""
        return cls(
            cloudflare_api_key=os.environ.get("CF_API_KEY", ""),
            cloudflare_account_id=os.environ.get("CF_ACCOUNT_ID", ""),
            r2_access_key_id=os.environ.get("R2_ACCESS_KEY_ID", ""),
            r2_secret_access_key=os.environ.get("R2_SECRET_ACCESS_KEY", ""),
            bucket_name=os.environ.get("BUCKET_NAME", ""),
            r2_endpoint=os.environ.get("R2_ENDPOINT", ""),
            partition_template=os.environ.get(
                "R2LOGS_PARTITION_TEMPLATE", DEFAULT_PARTITION_TEMPLATE
            ),
            partition_root=os.environ.get("R2LOGS_PARTITION_ROOT", ""),
            retrieval=RetrievalSettings.from_env(),
        )


def load_settings(config_path: Optional[str] = None) -> Settings:
    """
    Build a Settings instance.

    Loads from the given YAML config file (decrypting it with SOPS when it
    carries SOPS metadata), otherwise from environment variables.

    Args:
        config_path: Optional path to a YAML or SOPS-encrypted config file

    Returns:
        Settings instance (not yet validated)

    Raises:
        ConfigError: If the config file cannot be read or decrypted
    """
    if config_path:
        from .sops_loader import load_config_file

        path = Path(config_path)
        try:
            config = load_config_file(path)
        except (FileNotFoundError, RuntimeError, ValueError) as e:
            raise ConfigError(f"Failed to load config from {path}: {e}") from e
        try:
            return Settings.from_dict(config)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid value in config {path}: {e}") from e

    return Settings.from_env()
