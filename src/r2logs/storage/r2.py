"""
Cloudflare R2 object storage backend.

Talks to R2 through its S3-compatible API with a boto3 client. botocore's
own retries are disabled; the retrieval pipeline retries requests itself so
that it can resume interrupted downloads with ranged GETs.
"""

import logging
from typing import BinaryIO, Iterator

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    IncompleteReadError,
    ReadTimeoutError,
    ResponseStreamingError,
)
from urllib3.exceptions import HTTPError as URLLib3HTTPError

from ..config.constants import (
    DEFAULT_CONNECT_TIMEOUT_SECONDS,
    DEFAULT_MAX_WORKERS,
    DEFAULT_READ_TIMEOUT_SECONDS,
    R2_REGION,
)
from ..exceptions import BackendError
from .base import ObjectStore, ObjectSummary

logger = logging.getLogger(__name__)

# HTTP statuses worth repeating a request for
RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}

# S3 error codes worth repeating a request for, whatever the status
RETRYABLE_ERROR_CODES = {
    "InternalError",
    "RequestTimeout",
    "ServiceUnavailable",
    "SlowDown",
    "Throttling",
}

# botocore transport errors that mean the connection, not the request, failed
RETRYABLE_BOTOCORE_ERRORS = (
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    IncompleteReadError,
    ReadTimeoutError,
    ResponseStreamingError,
)


def translate_error(error: Exception, action: str, key: str) -> BackendError:
    """
    Convert a boto3/botocore/urllib3 exception into a BackendError.

    Args:
        error: Exception raised by the client or a response body
        action: What was being done, e.g. "list" or "get"
        key: Object key or listing prefix involved

    Returns:
        BackendError with status code and retryable flag filled in
    """
    if isinstance(error, ClientError):
        details = error.response.get("Error", {})
        code = details.get("Code", "")
        status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        message = details.get("Message") or str(error)
        retryable = status in RETRYABLE_STATUS_CODES or code in RETRYABLE_ERROR_CODES
        return BackendError(
            f"{action} failed: {code or 'error'}: {message}",
            key=key,
            status_code=status,
            retryable=retryable,
        )

    retryable = isinstance(error, RETRYABLE_BOTOCORE_ERRORS) or isinstance(
        error, URLLib3HTTPError
    )
    return BackendError(
        f"{action} failed: {type(error).__name__}: {error}",
        key=key,
        retryable=retryable,
    )


class R2Body:
    """
    Response body of a GET request.

    Wraps botocore's StreamingBody so that errors raised mid-read surface as
    BackendError like every other storage failure.
    """

    def __init__(self, stream, key: str):
        self._stream = stream
        self.key = key
        self.closed = False

    def read(self, size: int = -1) -> bytes:
        try:
            if size is None or size < 0:
                return self._stream.read()
            return self._stream.read(size)
        except (BotoCoreError, URLLib3HTTPError) as e:
            raise translate_error(e, "read", self.key) from e

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._stream.close()


class R2ObjectStore(ObjectStore):
    """
    Read-only access to an R2 bucket.

    The boto3 client is thread-safe; its connection pool is sized to the
    number of worker threads using it.
    """

    def __init__(
        self,
        bucket_name: str,
        endpoint_url: str,
        access_key_id: str = "",
        secret_access_key: str = "",
        max_pool_connections: int = DEFAULT_MAX_WORKERS,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT_SECONDS,
        read_timeout: float = DEFAULT_READ_TIMEOUT_SECONDS,
        client=None,
    ):
        """
        Initialize R2 backend.

        Args:
            bucket_name: Bucket holding the Logpush objects
            endpoint_url: S3 API endpoint of the account
            access_key_id: R2 access key ID
            secret_access_key: R2 secret access key
            max_pool_connections: HTTP connection pool size
            connect_timeout: Seconds to wait for a connection
            read_timeout: Seconds to wait for data on a connection
            client: Pre-built S3 client (used instead of creating one)
        """
        self.bucket_name = bucket_name
        self.endpoint_url = endpoint_url

        if client is None:
            config = Config(
                signature_version="s3v4",
                max_pool_connections=max_pool_connections,
                connect_timeout=connect_timeout,
                read_timeout=read_timeout,
                retries={"total_max_attempts": 1, "mode": "standard"},
                tcp_keepalive=True,
            )
            client = boto3.client(
                "s3",
                endpoint_url=endpoint_url,
                aws_access_key_id=access_key_id,
                aws_secret_access_key=secret_access_key,
                region_name=R2_REGION,
                config=config,
            )
        self._client = client

        logger.debug(
            f"Initialized R2 store for bucket '{bucket_name}' at {endpoint_url} "
            f"(max_pool_connections={max_pool_connections})"
        )

    @property
    def endpoint(self) -> str:
        return f"{self.endpoint_url.rstrip('/')}/{self.bucket_name}"

    def list_objects(self, prefix: str) -> Iterator[ObjectSummary]:
        paginator = self._client.get_paginator("list_objects_v2")
        try:
            for page_number, page in enumerate(
                paginator.paginate(Bucket=self.bucket_name, Prefix=prefix), start=1
            ):
                contents = page.get("Contents", [])
                logger.debug(
                    f"Listed page {page_number} of '{prefix}': {len(contents)} objects"
                )
                for item in contents:
                    yield ObjectSummary(
                        key=item["Key"],
                        size=item.get("Size", 0),
                        last_modified=item.get("LastModified"),
                    )
        except (BotoCoreError, ClientError, URLLib3HTTPError) as e:
            raise translate_error(e, "list", prefix) from e

    def open_object(self, key: str, start: int = 0) -> BinaryIO:
        params = {"Bucket": self.bucket_name, "Key": key}
        if start:
            params["Range"] = f"bytes={start}-"

        logger.debug(f"GET {key} from byte {start}")
        try:
            response = self._client.get_object(**params)
        except (BotoCoreError, ClientError, URLLib3HTTPError) as e:
            raise translate_error(e, "get", key) from e
        return R2Body(response["Body"], key)

    def close(self) -> None:
        self._client.close()

