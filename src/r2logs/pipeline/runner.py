"""
Retrieval pipeline orchestration.

Wires the stages together:
    time range -> partition prefixes -> matching objects -> records

Objects are opened concurrently, a bounded number at a time, and streamed
strictly in chronological order.
"""

import logging
import sys
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Iterator, Optional

from ..config.settings import RetrievalSettings
from ..logpush.keys import CandidateKey, PartitionScheme, enumerate_candidates
from ..logpush.timerange import TimeRange
from ..monitoring.retry_handler import RetryConfig, RetryManager
from ..storage.base import ObjectStore
from .assembler import LogAssembler
from .fetcher import LogRecord, ObjectFetcher
from .lister import ObjectLister, StoredObject

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Third-party loggers that are chatty at INFO/DEBUG
NOISY_LOGGERS = ("botocore", "boto3", "urllib3", "s3transfer")


def setup_logging(level: int = logging.WARNING) -> None:
    """
    Send diagnostics to stderr.

    Stdout is reserved for log data.
    """
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        stream=sys.stderr,
        force=True,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def _close_opened_body(future: Future) -> None:
    if future.cancelled() or future.exception() is not None:
        return
    future.result().close()


class RetrievalPipeline:
    """
    Retrieves the Logpush records of a time range from an object store.

    Example:
        pipeline = RetrievalPipeline(store, PartitionScheme(), RetrievalSettings())
        for record in pipeline.retrieve(time_range):
            sys.stdout.buffer.write(record.line + b"\\n")
    """

    def __init__(
        self,
        store: ObjectStore,
        scheme: PartitionScheme,
        settings: Optional[RetrievalSettings] = None,
        pretty: bool = False,
        retry_manager: Optional[RetryManager] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            store: Backend holding the Logpush objects
            scheme: Partition layout of the bucket
            settings: Concurrency and retry tuning
            pretty: Pretty-print JSON records
            retry_manager: Retry policy (built from settings if not given)
        """
        self.store = store
        self.scheme = scheme
        self.settings = settings or RetrievalSettings()
        self.retry_manager = retry_manager or RetryManager(
            RetryConfig(
                max_retries=self.settings.max_retries,
                base_delay_seconds=self.settings.base_delay_seconds,
            )
        )

        self.lister = ObjectLister(
            store, self.retry_manager, max_workers=self.settings.max_workers
        )
        self.fetcher = ObjectFetcher(store, self.retry_manager)
        self.assembler = LogAssembler(pretty=pretty)

    def resolve(self, time_range: TimeRange) -> list[CandidateKey]:
        """Partition prefixes that may hold objects for the range."""
        candidates = enumerate_candidates(time_range, self.scheme)
        logger.debug(
            f"Resolved {time_range} to prefixes: "
            f"{[candidate.prefix for candidate in candidates]}"
        )
        return candidates

    def list_objects(self, time_range: TimeRange) -> list[StoredObject]:
        """
        Objects overlapping the range, in chronological order.

        Raises:
            BackendError: If a listing fails after retries
        """
        objects = self.lister.list_objects(self.resolve(time_range), time_range)
        if not objects:
            logger.warning(
                f"No logs found for {time_range}. Please check the time range."
            )
        return objects

    def retrieve(self, time_range: TimeRange) -> Iterator[LogRecord]:
        """
        Records of every object overlapping the range.

        Listing happens immediately; objects are downloaded as the returned
        iterator is consumed. Closing the iterator cancels pending downloads.

        Raises:
            BackendError: If listing or downloading fails after retries
            DecodeError: If an object is corrupt (raised while iterating)
        """
        objects = self.list_objects(time_range)
        return self.stream(objects)

    def stream(self, objects: list[StoredObject]) -> Iterator[LogRecord]:
        """Download and decode the given objects, in order."""
        return self.assembler.assemble(self._fetch_in_order(objects))

    def _fetch_in_order(self, objects: list[StoredObject]):
        """
        Open objects concurrently, yield them in list order.

        At most max_workers bodies are open at once, counting the one being
        read. Bodies that are opened ahead of their turn stay unread until
        every earlier object has been streamed.
        """
        if not objects:
            return

        max_workers = self.settings.max_workers
        pool = ThreadPoolExecutor(
            max_workers=min(max_workers, len(objects)),
            thread_name_prefix="r2logs-get",
        )
        pending = iter(objects)
        window: deque[tuple[StoredObject, Future]] = deque()

        try:
            while True:
                while len(window) < max_workers:
                    obj = next(pending, None)
                    if obj is None:
                        break
                    window.append((obj, pool.submit(self.fetcher.open, obj)))
                if not window:
                    break

                obj, future = window.popleft()
                body = future.result()
                logger.debug(f"Opened {obj.key} ({obj.size} bytes)")
                yield obj, self.fetcher.iter_records(obj, body)
        finally:
            pool.shutdown(wait=False, cancel_futures=True)
            for _, future in window:
                future.cancel()
                future.add_done_callback(_close_opened_body)
