"""
Constants for Logpush object layout, R2 access and retrieval defaults.
"""

import re

# =============================================================================
# Time Range Defaults
# =============================================================================

# Window retrieved when no start time is given
DEFAULT_LOOKBACK_MINUTES = 5

# Timestamp format used in Logpush object names, e.g. 20240111T150000Z
LOGPUSH_TIMESTAMP_FORMAT = "%Y%m%dT%H%M%SZ"

# =============================================================================
# Logpush Object Layout
# =============================================================================

# Default partition prefix (strftime directives), hourly granularity
DEFAULT_PARTITION_TEMPLATE = "date=%Y-%m-%d/hour=%H/"

# Cloudflare destination path tokens and their strftime equivalents
#   {DATE} is what Logpush substitutes with the UTC day, e.g. 20240111
LOGPUSH_PATH_TOKENS = {
    "{DATE}": "%Y%m%d",
    "{HOUR}": "%H",
}

# Object basename: <start>_<end>_<suffix>.log.gz
LOGPUSH_OBJECT_PATTERN = re.compile(
    r"^(?P<start>\d{8}T\d{6}Z)_(?P<end>\d{8}T\d{6}Z)_(?P<suffix>[0-9A-Za-z]+)"
    r"\.log(?:\.gz)?$"
)

# =============================================================================
# R2 Access
# =============================================================================

R2_ENDPOINT_TEMPLATE = "https://{account_id}.r2.cloudflarestorage.com"
R2_REGION = "auto"

DEFAULT_CONNECT_TIMEOUT_SECONDS = 5
DEFAULT_READ_TIMEOUT_SECONDS = 60

# =============================================================================
# Retrieval
# =============================================================================

DEFAULT_MAX_WORKERS = 8  # Simultaneous list/get requests
DEFAULT_MAX_RETRIES = 3  # Retries after the first attempt
DEFAULT_RETRY_BASE_DELAY_SECONDS = 0.5
DEFAULT_RETRY_MAX_DELAY_SECONDS = 8.0

# Pretty-print indentation for JSON records
PRETTY_INDENT = 2
