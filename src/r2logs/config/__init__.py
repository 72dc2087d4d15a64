"""Configuration module."""

from .constants import (
    DEFAULT_LOOKBACK_MINUTES,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_WORKERS,
    DEFAULT_PARTITION_TEMPLATE,
    R2_ENDPOINT_TEMPLATE,
)
from .settings import RetrievalSettings, Settings, load_settings
from .sops_loader import check_sops_installed, decrypt_sops_file, load_config_file

__all__ = [
    # Defaults
    "DEFAULT_LOOKBACK_MINUTES",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_MAX_WORKERS",
    "DEFAULT_PARTITION_TEMPLATE",
    "R2_ENDPOINT_TEMPLATE",
    # Settings
    "Settings",
    "RetrievalSettings",
    "load_settings",
    # Config loading
    "load_config_file",
    "decrypt_sops_file",
    "check_sops_installed",
]
