"""
Custom exceptions for r2logs.

Provides the error taxonomy used across the retrieval pipeline:
- ConfigError: bad credentials, settings or time range (before any network call)
- BackendError: object storage request failed after retries
- DecodeError: an object's body is corrupt or ends mid-line
- KeyParseError: an object key does not follow the Logpush naming convention
"""


class R2LogsError(Exception):
    """
    Base exception for all r2logs errors.

    All other exceptions inherit from this class,
    allowing for broad exception catching when needed.
    """

    pass


class ConfigError(R2LogsError):
    """
    Raised when configuration or user input is invalid.

    Covers missing credentials, a missing bucket name, an invalid
    partition template, and malformed or reversed time ranges.

    Attributes:
        errors: Individual problems found (may be empty)
        message: Detailed error message
    """

    def __init__(self, message: str, errors: list[str] | None = None):
        self.message = message
        self.errors = errors or []
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message with one line per problem."""
        if self.errors:
            details = "\n".join(f"  - {error}" for error in self.errors)
            return f"{self.message}\n{details}"
        return self.message


class BackendError(R2LogsError):
    """
    Raised when a list or get request against object storage fails.

    Attributes:
        key: Object key or listing prefix involved (optional)
        status_code: HTTP status code returned by the backend (optional)
        retryable: Whether repeating the request may succeed
        message: Detailed error message
    """

    def __init__(
        self,
        message: str,
        key: str | None = None,
        status_code: int | None = None,
        retryable: bool = False,
    ):
        self.message = message
        self.key = key
        self.status_code = status_code
        self.retryable = retryable
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message with key and status context."""
        parts = [self.message]
        if self.key is not None:
            parts.append(f"key='{self.key}'")
        if self.status_code:
            parts.append(f"HTTP {self.status_code}")
        return " - ".join(parts)


class DecodeError(R2LogsError):
    """
    Raised when an object's body cannot be decoded into log lines.

    Used for invalid gzip data, truncated streams and bodies whose
    last line has no terminator.

    Attributes:
        key: The object key being decoded
        line_number: Line where decoding failed (optional)
        message: Detailed error message
    """

    def __init__(
        self,
        message: str,
        key: str,
        line_number: int | None = None,
    ):
        self.message = message
        self.key = key
        self.line_number = line_number
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message with object and line context."""
        if self.line_number is not None:
            return f"{self.message} (key='{self.key}', line {self.line_number})"
        return f"{self.message} (key='{self.key}')"


class KeyParseError(R2LogsError):
    """
    Raised when an object key does not encode a Logpush time range.

    Never fatal: the lister logs it and skips the object.

    Attributes:
        key: The offending object key
        reason: Why parsing failed
    """

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Cannot parse object key '{key}': {reason}")
