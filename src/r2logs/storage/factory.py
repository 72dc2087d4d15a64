"""
Object store factory.

Builds the storage backend named by configuration from a Settings instance.
"""

import logging
from typing import Callable

from ..config.settings import Settings
from ..exceptions import ConfigError
from .base import ObjectStore

logger = logging.getLogger(__name__)

# Registry of available backends: name -> builder taking Settings
_BACKEND_REGISTRY: dict[str, Callable[[Settings], ObjectStore]] = {}


def register_backend(
    backend_type: str, builder: Callable[[Settings], ObjectStore]
) -> None:
    """
    Register a storage backend builder.

    Args:
        backend_type: Backend identifier (e.g., 'r2')
        builder: Callable creating the backend from Settings
    """
    _BACKEND_REGISTRY[backend_type.lower()] = builder
    logger.debug(f"Registered storage backend: {backend_type}")


def _build_r2(settings: Settings) -> ObjectStore:
    from .r2 import R2ObjectStore

    retrieval = settings.retrieval
    return R2ObjectStore(
        bucket_name=settings.bucket_name,
        endpoint_url=settings.endpoint_url,
        access_key_id=settings.r2_access_key_id,
        secret_access_key=settings.r2_secret_access_key,
        max_pool_connections=retrieval.max_workers,
        connect_timeout=retrieval.connect_timeout_seconds,
        read_timeout=retrieval.read_timeout_seconds,
    )


register_backend("r2", _build_r2)


def create_object_store(settings: Settings, backend_type: str = "r2") -> ObjectStore:
    """
    Create an object store for the configured bucket.

    Args:
        settings: Validated settings
        backend_type: Registered backend name

    Returns:
        ObjectStore instance

    Raises:
        ConfigError: If backend type is not registered
    """
    backend_type = backend_type.lower()
    if backend_type not in _BACKEND_REGISTRY:
        available = ", ".join(sorted(_BACKEND_REGISTRY)) or "none"
        raise ConfigError(
            f"Unknown storage backend: '{backend_type}'. "
            f"Available backends: {available}"
        )

    store = _BACKEND_REGISTRY[backend_type](settings)
    logger.info(f"Using {backend_type} object store at {store.endpoint}")
    return store
