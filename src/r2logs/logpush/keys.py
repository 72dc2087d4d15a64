"""
Logpush object key layout.

Turns a time range into the partition prefixes that can hold its objects,
and recovers the time range encoded in a Logpush object name.

Objects are written as::

    <root><partition>/<start>_<end>_<suffix>.log.gz

where the partition is a UTC date (and optionally hour) rendered with the
destination path template, e.g. ``date=2024-01-11/hour=15/``.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from ..config.constants import (
    DEFAULT_PARTITION_TEMPLATE,
    LOGPUSH_OBJECT_PATTERN,
    LOGPUSH_PATH_TOKENS,
    LOGPUSH_TIMESTAMP_FORMAT,
)
from ..exceptions import ConfigError, KeyParseError
from .timerange import TimeRange

HOURLY = timedelta(hours=1)
DAILY = timedelta(days=1)

# strftime directives, with optional glibc "-" flag
_DIRECTIVE_PATTERN = re.compile(r"%-?([A-Za-z%])")
_TOKEN_PATTERN = re.compile(r"\{[A-Z_]+\}")

# Directives finer than an hour cannot name a partition
_SUB_HOUR_DIRECTIVES = {"M", "S", "f", "s", "T", "R", "X", "c"}


@dataclass(frozen=True)
class PartitionScheme:
    """
    Partition prefix layout of a Logpush destination.

    Attributes:
        template: strftime template for one partition, e.g. ``date=%Y-%m-%d/hour=%H/``.
            Cloudflare's ``{DATE}`` and ``{HOUR}`` path tokens are accepted.
        root: Fixed path prepended to every prefix (may be empty)
    """

    template: str = DEFAULT_PARTITION_TEMPLATE
    root: str = ""

    def __post_init__(self):
        template = self.template.strip().lstrip("/")
        for token, directive in LOGPUSH_PATH_TOKENS.items():
            template = template.replace(token, directive)
        if template and not template.endswith("/"):
            template += "/"

        root = self.root.strip().strip("/")
        if root:
            root += "/"

        object.__setattr__(self, "template", template)
        object.__setattr__(self, "root", root)
        self._validate()

    def _validate(self) -> None:
        errors = []
        if not self.template:
            raise ConfigError(
                "Invalid partition template", errors=["template is empty"]
            )

        unknown = _TOKEN_PATTERN.findall(self.template)
        if unknown:
            errors.append(f"unsupported path token(s): {', '.join(unknown)}")

        directives = set(_DIRECTIVE_PATTERN.findall(self.template))
        if "F" in directives:
            directives |= {"Y", "m", "d"}
        missing = [d for d in ("Y", "m", "d") if d not in directives]
        if missing:
            errors.append(
                "template must contain the full date, missing "
                + ", ".join(f"%{d}" for d in missing)
            )
        too_fine = sorted(directives & _SUB_HOUR_DIRECTIVES)
        if too_fine:
            errors.append(
                "partitions finer than one hour are not supported: "
                + ", ".join(f"%{d}" for d in too_fine)
            )

        if errors:
            raise ConfigError(
                f"Invalid partition template '{self.template}'", errors=errors
            )

    @property
    def granularity(self) -> timedelta:
        """Width of one partition: one hour when the template has %H, else one day."""
        if "H" in _DIRECTIVE_PATTERN.findall(self.template):
            return HOURLY
        return DAILY

    def floor(self, dt: datetime) -> datetime:
        """Start of the partition containing dt."""
        if self.granularity == HOURLY:
            return dt.replace(minute=0, second=0, microsecond=0)
        return dt.replace(hour=0, minute=0, second=0, microsecond=0)

    def prefix_for(self, dt: datetime) -> str:
        """Storage key prefix of the partition containing dt."""
        return self.root + self.floor(dt).strftime(self.template)


@dataclass(frozen=True)
class CandidateKey:
    """A partition prefix to list, and the interval it covers."""

    prefix: str
    bucket: TimeRange


def enumerate_candidates(
    time_range: TimeRange, scheme: PartitionScheme
) -> list[CandidateKey]:
    """
    List the partitions touched by a time range, oldest first.

    Walks from the partition containing the start to the partition
    containing the end, both inclusive. An empty range yields nothing.
    """
    if time_range.is_empty:
        return []

    step = scheme.granularity
    cursor = scheme.floor(time_range.start)
    last = scheme.floor(time_range.end)

    candidates = []
    while cursor <= last:
        candidates.append(
            CandidateKey(
                prefix=scheme.prefix_for(cursor),
                bucket=TimeRange(start=cursor, end=cursor + step),
            )
        )
        cursor += step
    return candidates


def _parse_key_timestamp(key: str, value: str) -> datetime:
    try:
        return datetime.strptime(value, LOGPUSH_TIMESTAMP_FORMAT).replace(
            tzinfo=timezone.utc
        )
    except ValueError as e:
        raise KeyParseError(key, f"invalid timestamp '{value}'") from e


def parse_object_key(key: str) -> TimeRange:
    """
    Recover the time range encoded in a Logpush object key.

    Only the basename is inspected, e.g.
    ``20240111T150000Z_20240111T150500Z_0a1b2c3d.log.gz``.

    Raises:
        KeyParseError: If the name does not follow the Logpush convention
    """
    basename = key.rsplit("/", 1)[-1]
    match = LOGPUSH_OBJECT_PATTERN.match(basename)
    if not match:
        raise KeyParseError(key, "name is not <start>_<end>_<suffix>.log.gz")

    start = _parse_key_timestamp(key, match.group("start"))
    end = _parse_key_timestamp(key, match.group("end"))
    if start > end:
        raise KeyParseError(key, "start is after end")
    return TimeRange(start=start, end=end)
