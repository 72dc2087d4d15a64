"""
Unit tests for LogAssembler and pretty-printing.
"""

import json
import logging
from datetime import datetime, timezone

import pytest

from r2logs.logpush.keys import parse_object_key
from r2logs.pipeline.assembler import LogAssembler, pretty_format
from r2logs.pipeline.fetcher import LogRecord
from r2logs.pipeline.lister import StoredObject

KEY_A = "date=2024-01-11/hour=15/20240111T150000Z_20240111T150500Z_aaaa.log.gz"
KEY_B = "date=2024-01-11/hour=15/20240111T150500Z_20240111T151000Z_bbbb.log.gz"


def stored(key: str) -> StoredObject:
    return StoredObject(key=key, size=0, encoded_range=parse_object_key(key))


def records(key: str, *lines: bytes) -> list[LogRecord]:
    return [LogRecord(line=line, key=key, line_number=i) for i, line in enumerate(lines, 1)]


class TestPrettyFormat:
    """Tests for pretty_format."""

    def test_indents_and_keeps_key_order(self) -> None:
        line = b'{"z": 1, "a": {"b": [1, 2]}}'

        assert pretty_format(line) == (
            b'{\n  "z": 1,\n  "a": {\n    "b": [\n      1,\n      2\n    ]\n  }\n}'
        )

    def test_keeps_non_ascii(self) -> None:
        line = '{"ClientCountry": "ø", "path": "/caf\\u00e9"}'.encode("utf-8")

        pretty = pretty_format(line)

        assert "ø" in pretty.decode("utf-8")
        assert "/café" in pretty.decode("utf-8")

    @pytest.mark.parametrize(
        "line",
        [
            b'{"RayID": "81f8", "EdgeResponseStatus": 200, "tags": []}',
            b'[1, "two", {"three": null}]',
            b'"just a string"',
            '{"emoji": "\U0001f600"}'.encode("utf-8"),
        ],
    )
    def test_idempotent(self, line: bytes) -> None:
        once = pretty_format(line)

        assert pretty_format(once) == once
        assert json.loads(once) == json.loads(line)

    def test_invalid_json_raises_value_error(self) -> None:
        with pytest.raises(ValueError):
            pretty_format(b"not json")
        with pytest.raises(ValueError):
            pretty_format(b'{"bad": "\xff"}')


class TestLogAssembler:
    """Tests for LogAssembler.assemble."""

    def test_objects_in_given_order_lines_in_file_order(self) -> None:
        assembler = LogAssembler()
        fetches = [
            (stored(KEY_A), iter(records(KEY_A, b"a1", b"a2"))),
            (stored(KEY_B), iter(records(KEY_B, b"b1"))),
        ]

        output = list(assembler.assemble(fetches))

        assert [r.line for r in output] == [b"a1", b"a2", b"b1"]
        assert [r.key for r in output] == [KEY_A, KEY_A, KEY_B]

    def test_raw_mode_passes_records_through(self) -> None:
        original = records(KEY_A, b'{"a": 1}')

        output = list(LogAssembler().assemble([(stored(KEY_A), original)]))

        assert output == original

    def test_pretty_mode(self) -> None:
        assembler = LogAssembler(pretty=True)

        output = list(assembler.assemble([(stored(KEY_A), records(KEY_A, b'{"a":1}'))]))

        assert output[0].line == b'{\n  "a": 1\n}'
        assert output[0].key == KEY_A
        assert output[0].line_number == 1

    def test_invalid_json_passes_through_with_warning(self, caplog) -> None:
        assembler = LogAssembler(pretty=True)
        lines = records(KEY_A, b'{"a": 1}', b"not json", b"\xff\xfe", b"")

        with caplog.at_level(logging.WARNING, logger="r2logs.pipeline.assembler"):
            output = list(assembler.assemble([(stored(KEY_A), lines)]))

        assert [r.line for r in output[1:]] == [b"not json", b"\xff\xfe", b""]
        assert len(output) == 4
        assert f"Line 2 of {KEY_A}" in caplog.text
        assert f"Line 3 of {KEY_A}" in caplog.text

    def test_closing_output_closes_inner_iterators(self) -> None:
        closed = []

        def object_records(key: str):
            try:
                yield from records(key, b"1", b"2", b"3")
            finally:
                closed.append(key)

        def fetches():
            try:
                yield stored(KEY_A), object_records(KEY_A)
                yield stored(KEY_B), object_records(KEY_B)
            finally:
                closed.append("fetches")

        output = LogAssembler().assemble(fetches())
        assert next(output).line == b"1"
        output.close()

        assert closed == [KEY_A, "fetches"]

    def test_empty_input(self) -> None:
        assert list(LogAssembler(pretty=True).assemble([])) == []
