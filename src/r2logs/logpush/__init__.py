"""Logpush time ranges and object key layout."""

from .keys import (
    CandidateKey,
    PartitionScheme,
    enumerate_candidates,
    parse_object_key,
)
from .timerange import (
    TimeRange,
    default_time_range,
    ensure_utc,
    format_timestamp,
    parse_timestamp,
)

__all__ = [
    # Time ranges
    "TimeRange",
    "default_time_range",
    "ensure_utc",
    "format_timestamp",
    "parse_timestamp",
    # Key layout
    "CandidateKey",
    "PartitionScheme",
    "enumerate_candidates",
    "parse_object_key",
]
