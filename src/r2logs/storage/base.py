"""
Abstract base class for object storage backends.

Provides the read-only interface the retrieval pipeline needs: paginated
prefix listing and (ranged) object reads.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import BinaryIO, Iterator, Optional


@dataclass(frozen=True)
class ObjectSummary:
    """One entry of a bucket listing."""

    key: str
    size: int
    last_modified: Optional[datetime] = None


class ObjectStore(ABC):
    """
    Abstract base class for object storage backends.

    Implementations must be safe to call from several threads at once and
    must translate their transport errors into BackendError, including
    errors raised while reading a body returned by open_object().
    """

    @property
    @abstractmethod
    def endpoint(self) -> str:
        """Return a human-readable location of the bucket."""
        pass

    @abstractmethod
    def list_objects(self, prefix: str) -> Iterator[ObjectSummary]:
        """
        List every object under a prefix, following pagination.

        Args:
            prefix: Key prefix to list

        Yields:
            ObjectSummary per object, in backend order

        Raises:
            BackendError: If a listing request fails
        """
        pass

    @abstractmethod
    def open_object(self, key: str, start: int = 0) -> BinaryIO:
        """
        Open an object for streaming.

        Args:
            key: Object key
            start: Byte offset to start reading from

        Returns:
            Readable body supporting read(size) and close()

        Raises:
            BackendError: If the request fails
        """
        pass

    def close(self) -> None:
        """Release connections held by the backend."""
        pass

    def __enter__(self) -> "ObjectStore":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit - ensures resources are released."""
        self.close()
