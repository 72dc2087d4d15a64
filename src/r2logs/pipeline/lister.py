"""
Resolve candidate partitions into the Logpush objects that overlap a time range.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..config.constants import DEFAULT_MAX_WORKERS
from ..exceptions import KeyParseError
from ..logpush.keys import CandidateKey, parse_object_key
from ..logpush.timerange import TimeRange
from ..monitoring.retry_handler import RetryManager
from ..storage.base import ObjectStore, ObjectSummary

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredObject:
    """
    A Logpush object known to exist in the bucket.

    Attributes:
        key: Full object key
        size: Size in bytes (compressed)
        encoded_range: Time range recovered from the object name
        last_modified: Upload time reported by the backend, if any
    """

    key: str
    size: int
    encoded_range: TimeRange
    last_modified: Optional[datetime] = None


class ObjectLister:
    """
    Lists candidate prefixes concurrently and keeps the matching objects.

    Output order is the candidate order, then the backend's listing order
    within each prefix.
    """

    def __init__(
        self,
        store: ObjectStore,
        retry_manager: Optional[RetryManager] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ):
        self.store = store
        self.retry_manager = retry_manager or RetryManager()
        self.max_workers = max_workers

    def _list_prefix(self, prefix: str) -> list[ObjectSummary]:
        summaries = self.retry_manager.call(
            lambda: list(self.store.list_objects(prefix)),
            description=f"list '{prefix}'",
        )
        logger.debug(f"Prefix '{prefix}': {len(summaries)} objects")
        return summaries

    def list_objects(
        self, candidates: list[CandidateKey], time_range: TimeRange
    ) -> list[StoredObject]:
        """
        Find the objects under the candidate prefixes that overlap a time range.

        Args:
            candidates: Partition prefixes, oldest first
            time_range: Requested range

        Returns:
            Matching objects, chronological by partition

        Raises:
            BackendError: If a prefix cannot be listed after retries
        """
        if not candidates:
            return []

        pool = ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(candidates)),
            thread_name_prefix="r2logs-list",
        )
        try:
            prefixes = [candidate.prefix for candidate in candidates]
            listings = list(pool.map(self._list_prefix, prefixes))
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        objects = []
        seen = set()
        skipped = 0
        for summaries in listings:
            for summary in summaries:
                if summary.key in seen:
                    continue
                seen.add(summary.key)

                try:
                    encoded_range = parse_object_key(summary.key)
                except KeyParseError as e:
                    logger.warning(f"Skipping object: {e}")
                    skipped += 1
                    continue

                if not encoded_range.intersects(time_range):
                    continue

                objects.append(
                    StoredObject(
                        key=summary.key,
                        size=summary.size,
                        encoded_range=encoded_range,
                        last_modified=summary.last_modified,
                    )
                )

        logger.info(
            f"Found {len(objects)} objects in {len(candidates)} partitions "
            f"({len(seen)} listed, {skipped} unparsable)"
        )
        return objects
