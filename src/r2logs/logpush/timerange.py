"""
Half-open UTC time ranges and timestamp parsing.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from dateutil import parser as date_parser

from ..config.constants import DEFAULT_LOOKBACK_MINUTES
from ..exceptions import ConfigError


def ensure_utc(dt: datetime) -> datetime:
    """
    Normalize a datetime to UTC, truncated to whole seconds.

    Naive datetimes are taken to already be in UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)
    return dt.replace(microsecond=0)


def format_timestamp(dt: datetime) -> str:
    """Render a UTC datetime as ISO 8601 with a Z suffix."""
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class TimeRange:
    """
    Half-open interval [start, end) of UTC instants.

    Attributes:
        start: Inclusive lower bound
        end: Exclusive upper bound
    """

    start: datetime
    end: datetime

    def __post_init__(self):
        # Frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "start", ensure_utc(self.start))
        object.__setattr__(self, "end", ensure_utc(self.end))
        if self.start > self.end:
            raise ConfigError(
                f"Start time {format_timestamp(self.start)} is after "
                f"end time {format_timestamp(self.end)}"
            )

    @property
    def is_empty(self) -> bool:
        return self.start == self.end

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def contains(self, ts: datetime) -> bool:
        """Check whether an instant falls inside the range."""
        ts = ensure_utc(ts)
        return self.start <= ts < self.end

    def intersects(self, other: "TimeRange") -> bool:
        """
        Check whether two ranges share at least one instant.

        Empty ranges intersect nothing.
        """
        if self.is_empty or other.is_empty:
            return False
        return self.start < other.end and other.start < self.end

    def __str__(self) -> str:
        return f"[{format_timestamp(self.start)}, {format_timestamp(self.end)})"


def parse_timestamp(value: str) -> datetime:
    """
    Parse a user-supplied timestamp.

    Accepts ISO 8601 / RFC 3339 (``2024-01-11T15:00:00Z``), timestamps
    without an offset (taken as UTC) and bare dates (midnight UTC).

    Raises:
        ConfigError: If the value is not a recognizable timestamp
    """
    text = value.strip()
    try:
        dt = date_parser.isoparse(text)
    except (ValueError, OverflowError) as e:
        raise ConfigError(
            f"Invalid timestamp '{value}'. "
            f"Use ISO 8601 (YYYY-MM-DDTHH:MM:SSZ) or YYYY-MM-DD: {e}"
        ) from e
    return ensure_utc(dt)


def default_time_range(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> TimeRange:
    """
    Build a time range, filling in missing bounds.

    End defaults to now; start defaults to end minus the lookback window.

    Args:
        start: Optional inclusive start
        end: Optional exclusive end
        now: Reference instant (defaults to the current time)

    Returns:
        TimeRange
    """
    lookback = timedelta(minutes=DEFAULT_LOOKBACK_MINUTES)
    if end is None:
        end = now if now is not None else datetime.now(timezone.utc)
    end = ensure_utc(end)
    if start is None:
        start = end - lookback
    return TimeRange(start=start, end=end)
