"""
Unit tests for the R2 object store, using botocore's Stubber.
"""

import io
from datetime import datetime, timezone

import boto3
import pytest
from botocore.exceptions import ResponseStreamingError
from botocore.response import StreamingBody
from botocore.stub import Stubber
from urllib3.exceptions import ProtocolError

from r2logs.config.settings import Settings
from r2logs.exceptions import BackendError, ConfigError
from r2logs.storage.factory import create_object_store
from r2logs.storage.r2 import R2Body, R2ObjectStore

ENDPOINT = "https://0123456789abcdef.r2.cloudflarestorage.com"
BUCKET = "logs"


def streaming_body(data: bytes) -> StreamingBody:
    return StreamingBody(io.BytesIO(data), len(data))


@pytest.fixture
def s3_client():
    return boto3.client(
        "s3",
        endpoint_url=ENDPOINT,
        aws_access_key_id="test-access-key",
        aws_secret_access_key="test-secret-key",
        region_name="auto",
    )


@pytest.fixture
def stubber(s3_client):
    with Stubber(s3_client) as stub:
        yield stub
        stub.assert_no_pending_responses()


@pytest.fixture
def store(s3_client) -> R2ObjectStore:
    return R2ObjectStore(bucket_name=BUCKET, endpoint_url=ENDPOINT, client=s3_client)


class TestListObjects:
    """Tests for R2ObjectStore.list_objects."""

    def test_follows_pagination(self, store: R2ObjectStore, stubber: Stubber) -> None:
        modified = datetime(2024, 1, 11, 15, 5, tzinfo=timezone.utc)
        stubber.add_response(
            "list_objects_v2",
            {
                "Contents": [{"Key": "p/a.log.gz", "Size": 10, "LastModified": modified}],
                "IsTruncated": True,
                "NextContinuationToken": "page-2",
            },
            {"Bucket": BUCKET, "Prefix": "p/"},
        )
        stubber.add_response(
            "list_objects_v2",
            {
                "Contents": [{"Key": "p/b.log.gz", "Size": 20}],
                "IsTruncated": False,
            },
            {"Bucket": BUCKET, "Prefix": "p/", "ContinuationToken": "page-2"},
        )

        summaries = list(store.list_objects("p/"))

        assert [s.key for s in summaries] == ["p/a.log.gz", "p/b.log.gz"]
        assert summaries[0].size == 10
        assert summaries[0].last_modified == modified
        assert summaries[1].last_modified is None

    def test_empty_prefix(self, store: R2ObjectStore, stubber: Stubber) -> None:
        stubber.add_response(
            "list_objects_v2", {"IsTruncated": False}, {"Bucket": BUCKET, "Prefix": "p/"}
        )

        assert list(store.list_objects("p/")) == []

    def test_throttling_is_retryable(self, store: R2ObjectStore, stubber: Stubber) -> None:
        stubber.add_client_error(
            "list_objects_v2", service_error_code="SlowDown", http_status_code=503
        )

        with pytest.raises(BackendError) as exc_info:
            list(store.list_objects("p/"))

        assert exc_info.value.retryable
        assert exc_info.value.status_code == 503
        assert exc_info.value.key == "p/"

    def test_access_denied_is_permanent(
        self, store: R2ObjectStore, stubber: Stubber
    ) -> None:
        stubber.add_client_error(
            "list_objects_v2", service_error_code="AccessDenied", http_status_code=403
        )

        with pytest.raises(BackendError) as exc_info:
            list(store.list_objects("p/"))

        assert not exc_info.value.retryable
        assert "AccessDenied" in str(exc_info.value)


class TestOpenObject:
    """Tests for R2ObjectStore.open_object."""

    def test_reads_body(self, store: R2ObjectStore, stubber: Stubber) -> None:
        stubber.add_response(
            "get_object",
            {"Body": streaming_body(b"hello\n")},
            {"Bucket": BUCKET, "Key": "p/a.log.gz"},
        )

        body = store.open_object("p/a.log.gz")

        assert body.read(3) == b"hel"
        assert body.read() == b"lo\n"
        body.close()
        assert body.closed

    def test_ranged_get_when_resuming(
        self, store: R2ObjectStore, stubber: Stubber
    ) -> None:
        stubber.add_response(
            "get_object",
            {"Body": streaming_body(b"lo\n")},
            {"Bucket": BUCKET, "Key": "p/a.log.gz", "Range": "bytes=3-"},
        )

        assert store.open_object("p/a.log.gz", start=3).read() == b"lo\n"

    def test_missing_object(self, store: R2ObjectStore, stubber: Stubber) -> None:
        stubber.add_client_error(
            "get_object", service_error_code="NoSuchKey", http_status_code=404
        )

        with pytest.raises(BackendError) as exc_info:
            store.open_object("p/a.log.gz")

        assert exc_info.value.status_code == 404
        assert not exc_info.value.retryable


class BrokenStream:
    """Stream failing on the first read."""

    def __init__(self, error: Exception):
        self.error = error
        self.closed = False

    def read(self, size: int = -1) -> bytes:
        raise self.error

    def close(self) -> None:
        self.closed = True


class TestR2Body:
    """Tests for error translation while reading a body."""

    def test_streaming_error_is_retryable(self) -> None:
        body = R2Body(BrokenStream(ResponseStreamingError(error="reset")), "p/a.log.gz")

        with pytest.raises(BackendError) as exc_info:
            body.read(1024)

        assert exc_info.value.retryable
        assert exc_info.value.key == "p/a.log.gz"

    def test_urllib3_error_is_retryable(self) -> None:
        body = R2Body(BrokenStream(ProtocolError("Connection broken")), "p/a.log.gz")

        with pytest.raises(BackendError) as exc_info:
            body.read()

        assert exc_info.value.retryable

    def test_close_is_idempotent(self) -> None:
        stream = BrokenStream(ValueError())
        body = R2Body(stream, "k")

        body.close()
        body.close()

        assert stream.closed


class TestClientConfiguration:
    """Tests for the boto3 client built by R2ObjectStore."""

    def test_client_settings(self) -> None:
        store = R2ObjectStore(
            bucket_name=BUCKET,
            endpoint_url=ENDPOINT,
            access_key_id="key",
            secret_access_key="secret",
            max_pool_connections=12,
        )
        config = store._client.meta.config

        assert store._client.meta.endpoint_url == ENDPOINT
        assert store._client.meta.region_name == "auto"
        assert config.signature_version == "s3v4"
        assert config.max_pool_connections == 12
        assert store.endpoint == f"{ENDPOINT}/{BUCKET}"
        store.close()

    def test_factory_builds_r2_store(self, credentials_env) -> None:
        settings = Settings.from_env()
        settings.retrieval.max_workers = 3

        with create_object_store(settings) as store:
            assert isinstance(store, R2ObjectStore)
            assert store.bucket_name == "logs"
            assert store._client.meta.config.max_pool_connections == 3

    def test_factory_rejects_unknown_backend(self, credentials_env) -> None:
        with pytest.raises(ConfigError, match="Unknown storage backend"):
            create_object_store(Settings.from_env(), backend_type="gcs")
