"""
Merge per-object record streams into the output stream.
"""

import json
import logging
from typing import Iterable, Iterator

from ..config.constants import PRETTY_INDENT
from .fetcher import LogRecord
from .lister import StoredObject

logger = logging.getLogger(__name__)


def pretty_format(line: bytes) -> bytes:
    """
    Re-serialize a JSON line with indentation.

    Key order and non-ASCII characters are preserved, so formatting the
    output again gives the same bytes.

    Raises:
        ValueError: If the line is not UTF-8 encoded JSON
    """
    parsed = json.loads(line.decode("utf-8"))
    return json.dumps(parsed, indent=PRETTY_INDENT, ensure_ascii=False).encode("utf-8")


def _close(iterable) -> None:
    close = getattr(iterable, "close", None)
    if close is not None:
        close()


class LogAssembler:
    """
    Concatenates records object by object, optionally pretty-printing them.

    Objects come out in the order given; lines keep their order within an
    object. Records are never interleaved across objects.
    """

    def __init__(self, pretty: bool = False):
        self.pretty = pretty

    def format_record(self, record: LogRecord) -> LogRecord:
        """Pretty-print a record, passing it through unchanged if it is not JSON."""
        if not self.pretty:
            return record
        try:
            line = pretty_format(record.line)
        except ValueError as e:
            # UnicodeDecodeError and JSONDecodeError are both ValueErrors
            logger.warning(
                f"Line {record.line_number} of {record.key} is not valid JSON, "
                f"writing it unchanged: {e}"
            )
            return record
        return LogRecord(line=line, key=record.key, line_number=record.line_number)

    def assemble(
        self, fetches: Iterable[tuple[StoredObject, Iterable[LogRecord]]]
    ) -> Iterator[LogRecord]:
        """
        Stream the records of each object in turn.

        Args:
            fetches: (object, records) pairs in chronological object order

        Yields:
            LogRecord, formatted when pretty-printing is enabled
        """
        try:
            for obj, records in fetches:
                logger.debug(f"Streaming {obj.key}")
                try:
                    for record in records:
                        yield self.format_record(record)
                finally:
                    _close(records)
        finally:
            _close(fetches)
