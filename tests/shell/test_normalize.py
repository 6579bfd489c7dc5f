"""Tests for the shell literal normalizer."""

from __future__ import annotations

import pytest

from mongopad.shell import normalize_literals


@pytest.mark.parametrize(
    ("source", "expected"),
    [
        ('{_id: ObjectId("65a1f0c2e4b0a1b2c3d4e5f6")}', '{_id: "65a1f0c2e4b0a1b2c3d4e5f6"}'),
        ("{_id: new ObjectId('abc')}", '{_id: "abc"}'),
        ("{_id: ObjectId()}", '{_id: ""}'),
        ('{at: ISODate("2024-01-01T00:00:00Z")}', '{at: new Date("2024-01-01T00:00:00Z")}'),
        ("{at: ISODate( )}", "{at: new Date()}"),
        ('{n: NumberLong("9007199254740993")}', "{n: 9007199254740993}"),
        ("{n: NumberInt(-42)}", "{n: -42}"),
        ('{d: NumberDecimal("12.50")}', "{d: 12.50}"),
        ('{u: UUID("0e3f2c1a-8f6b-4c57-9b8b-1a2b3c4d5e6f")}', '{u: "0e3f2c1a-8f6b-4c57-9b8b-1a2b3c4d5e6f"}'),
        ('{b: BinData(0, "AAEC")}', '{b: "AAEC"}'),
        ("{ts: Timestamp(1700000000, 3)}", '{ts: {"t": 1700000000, "i": 3}}'),
    ],
)
def test_wrappers_are_rewritten(source: str, expected: str) -> None:
    assert normalize_literals(source) == expected


def test_multiple_wrappers_in_one_pass() -> None:
    source = '{_id: ObjectId("a"), n: NumberInt(1)}, {created: ISODate("2024-05-01")}'

    assert normalize_literals(source) == '{_id: "a", n: 1}, {created: new Date("2024-05-01")}'


def test_wrapper_names_inside_strings_are_left_alone() -> None:
    source = '{note: "ObjectId(\\"x\\") stays", other: \'NumberInt(5)\'}'

    assert normalize_literals(source) == source


def test_identifiers_that_merely_end_with_a_wrapper_name_are_untouched() -> None:
    source = '{myObjectId: 1, legacyUUID: "x"}'

    assert normalize_literals(source) == source


@pytest.mark.parametrize(
    "source",
    [
        "",
        '{status: "active", age: {$gt: 21}}',
        "[{$match: {}}, {$limit: 5}]",
        '{at: new Date("2024-01-01")}',
        "{'quoted key': [1, 2.5, -3e2, true, null]}",
    ],
)
def test_wrapper_free_input_is_unchanged_and_idempotent(source: str) -> None:
    once = normalize_literals(source)

    assert once == source
    assert normalize_literals(once) == once


def test_normalized_output_is_stable() -> None:
    once = normalize_literals('{a: ObjectId("x"), t: Timestamp(1, 2), d: ISODate()}')

    assert normalize_literals(once) == once
