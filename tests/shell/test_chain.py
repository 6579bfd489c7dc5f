"""Tests for chained-modifier scanning and post-process paths."""

from __future__ import annotations

import pytest

from mongopad.errors import ArgumentParseError, MalformedQuery, UnbalancedDelimiters
from mongopad.shell import (
    ChainedModifier,
    FieldSegment,
    IndexSegment,
    apply_post_path,
    parse_post_path,
    scan_modifiers,
)


def test_modifiers_are_returned_in_order_with_parsed_args() -> None:
    modifiers = scan_modifiers(".limit(2).skip(1).sort({_id: -1})")

    assert modifiers == (
        ChainedModifier("limit", (2,)),
        ChainedModifier("skip", (1,)),
        ChainedModifier("sort", ({"_id": -1},)),
    )


def test_unknown_modifiers_are_kept_for_the_dispatcher_to_ignore() -> None:
    modifiers = scan_modifiers(" .pretty() . toArray( ) .project({name: 1})")

    assert [modifier.method for modifier in modifiers] == ["pretty", "toArray", "project"]
    assert modifiers[2].args == ({"name": 1},)


def test_modifier_args_are_normalized() -> None:
    (modifier,) = scan_modifiers('.min({_id: ObjectId("abc"), at: NumberLong(5)})')

    assert modifier == ChainedModifier("min", ({"_id": "abc", "at": 5},))


def test_nested_parentheses_in_modifier_args() -> None:
    (modifier,) = scan_modifiers('.comment("why (not)")')

    assert modifier.args == ("why (not)",)


def test_empty_remainder_has_no_modifiers() -> None:
    assert scan_modifiers("") == ()
    assert scan_modifiers("   ") == ()


@pytest.mark.parametrize("remainder", [".limit", "limit(1)", ".limit(1) extra", ".inprog.length"])
def test_non_call_text_is_malformed(remainder: str) -> None:
    with pytest.raises(MalformedQuery):
        scan_modifiers(remainder)


def test_bad_modifier_arguments_raise() -> None:
    with pytest.raises(ArgumentParseError):
        scan_modifiers(".sort({_id: })")
    with pytest.raises(UnbalancedDelimiters):
        scan_modifiers(".sort({_id: 1)")


def test_post_path_segments() -> None:
    assert parse_post_path(".inprog.length") == (FieldSegment("inprog"), FieldSegment("length"))
    assert parse_post_path(".result[0].name") == (
        FieldSegment("result"),
        IndexSegment(0),
        FieldSegment("name"),
    )
    assert parse_post_path('["ok"]') == (FieldSegment("ok"),)
    assert parse_post_path("") == ()


@pytest.mark.parametrize("remainder", [".", ".inprog.", "[x]", ".limit(1)", "inprog"])
def test_invalid_post_path_is_malformed(remainder: str) -> None:
    with pytest.raises(MalformedQuery):
        parse_post_path(remainder)


def test_apply_post_path_walks_mappings_and_sequences() -> None:
    reply = {"inprog": [{"opid": 1}, {"opid": 2}], "ok": 1.0, "name": "abc"}

    assert apply_post_path(reply, parse_post_path(".inprog.length")) == 2
    assert apply_post_path(reply, parse_post_path(".inprog[1].opid")) == 2
    assert apply_post_path(reply, parse_post_path(".name.length")) == 3
    assert apply_post_path(reply, ()) is reply


@pytest.mark.parametrize("path", [".missing.length", ".inprog[5].opid", ".ok.value", ".inprog.opid"])
def test_missing_segments_short_circuit_to_none(path: str) -> None:
    reply = {"inprog": [{"opid": 1}], "ok": 1.0}

    assert apply_post_path(reply, parse_post_path(path)) is None
