"""
Object download and streaming decompression.

Bodies are decoded as they arrive: the first record of an object is
available before the rest of it has been downloaded.
"""

import gzip
import logging
import zlib
from dataclasses import dataclass
from typing import Iterator, Optional

from ..exceptions import BackendError, DecodeError
from ..monitoring.retry_handler import RetryManager
from ..storage.base import ObjectStore
from .lister import StoredObject

logger = logging.getLogger(__name__)

# Bytes requested per read from an uncompressed body
READ_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class LogRecord:
    """
    One log line.

    Attributes:
        line: Line content without its terminator
        key: Key of the object the line came from
        line_number: 1-based position within that object
    """

    line: bytes
    key: str
    line_number: int


class ResumableBody:
    """
    Forward-only object body that survives dropped connections.

    Counts the bytes handed out; when a read fails with a retryable
    BackendError the object is re-requested from that offset.
    """

    def __init__(
        self,
        store: ObjectStore,
        key: str,
        body,
        retry_manager: RetryManager,
        size: Optional[int] = None,
    ):
        self._store = store
        self._key = key
        self._body = body
        self._retry_manager = retry_manager
        self._size = size
        self.offset = 0
        self.closed = False

    def read(self, size: int = -1) -> bytes:
        if self._body is None:
            return b""
        try:
            data = self._body.read(size)
        except BackendError as e:
            if not e.retryable:
                raise
            logger.warning(
                f"Download of '{self._key}' interrupted at byte {self.offset}: {e}"
            )
            data = self._retry_manager.call(
                self._resume_read, size, description=f"resume '{self._key}'"
            )
        self.offset += len(data)
        return data

    def _resume_read(self, size: int) -> bytes:
        self._close_body()
        if self._size is not None and self.offset >= self._size:
            self._body = None
            return b""
        self._body = self._store.open_object(self._key, start=self.offset)
        return self._body.read(size)

    def _close_body(self) -> None:
        if self._body is not None:
            self._body.close()
            self._body = None

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._close_body()


def _iter_plain_lines(body) -> Iterator[bytes]:
    """Split an uncompressed body into lines, keeping terminators."""
    pending = b""
    while True:
        chunk = body.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        pending += chunk
        *lines, pending = pending.split(b"\n")
        for line in lines:
            yield line + b"\n"
    if pending:
        yield pending


class ObjectFetcher:
    """Opens Logpush objects and decodes them into LogRecords."""

    def __init__(
        self, store: ObjectStore, retry_manager: Optional[RetryManager] = None
    ):
        self.store = store
        self.retry_manager = retry_manager or RetryManager()

    def open(self, obj: StoredObject) -> ResumableBody:
        """
        Issue the GET for an object.

        Raises:
            BackendError: If the request fails after retries
        """
        body = self.retry_manager.call(
            self.store.open_object, obj.key, description=f"get '{obj.key}'"
        )
        return ResumableBody(
            self.store, obj.key, body, self.retry_manager, size=obj.size or None
        )

    def iter_records(self, obj: StoredObject, body) -> Iterator[LogRecord]:
        """
        Decode an opened body into records, in file order.

        The body is closed when iteration ends, fails or is abandoned.

        Raises:
            DecodeError: If the data is not valid gzip or the last line is
                not terminated
            BackendError: If the download cannot be resumed
        """
        line_number = 0
        try:
            if obj.key.endswith(".gz"):
                stream = gzip.GzipFile(fileobj=body, mode="rb")
            else:
                stream = _iter_plain_lines(body)

            for line in stream:
                line_number += 1
                if not line.endswith(b"\n"):
                    raise DecodeError(
                        "Object ends in the middle of a line", obj.key, line_number
                    )
                yield LogRecord(line=line[:-1], key=obj.key, line_number=line_number)

            logger.debug(f"Decoded {line_number} lines from {obj.key}")
        except (gzip.BadGzipFile, EOFError, zlib.error) as e:
            raise DecodeError(
                f"Invalid gzip data: {e}", obj.key, line_number + 1
            ) from e
        finally:
            body.close()

    def fetch(self, obj: StoredObject) -> Iterator[LogRecord]:
        """Open an object and decode it into records."""
        return self.iter_records(obj, self.open(obj))
