"""Scan what follows the primary call: chained cursor calls or a property-access path."""

from __future__ import annotations

import re
from typing import Any, Mapping, Sequence

from ..errors import MalformedQuery
from .literals import parse_arguments
from .models import ChainedModifier, FieldSegment, IndexSegment, PathSegment
from .normalize import normalize_literals
from .tokenizer import IDENTIFIER, scan_arguments

_CHAIN_CALL = re.compile(rf"\s*\.\s*(?P<method>{IDENTIFIER})\s*\(")
_PATH_TOKEN = re.compile(
    rf"""\s*(?:\.\s*(?P<field>{IDENTIFIER})"""
    r"""|\[\s*(?P<index>\d+)\s*\]"""
    r"""|\[\s*(?P<quote>["'])(?P<key>[^"']*)(?P=quote)\s*\])"""
)


def scan_modifiers(remainder: str) -> tuple[ChainedModifier, ...]:
    """Parse every `.name(args)` call in `remainder`, left to right."""

    modifiers: list[ChainedModifier] = []
    pos = 0
    while remainder[pos:].strip():
        match = _CHAIN_CALL.match(remainder, pos)
        if not match:
            raise MalformedQuery(f"Unexpected text after call: {_excerpt(remainder[pos:])}")
        args_raw, pos = scan_arguments(remainder, match.end() - 1)
        modifiers.append(
            ChainedModifier(
                method=match.group("method"),
                args=parse_arguments(normalize_literals(args_raw)),
            )
        )
    return tuple(modifiers)


def parse_post_path(remainder: str) -> tuple[PathSegment, ...]:
    """Parse a `.field[0].other` style access path."""

    segments: list[PathSegment] = []
    pos = 0
    while remainder[pos:].strip():
        match = _PATH_TOKEN.match(remainder, pos)
        if not match:
            raise MalformedQuery(f"Invalid property path: {_excerpt(remainder[pos:])}")
        if match.group("field") is not None:
            segments.append(FieldSegment(match.group("field")))
        elif match.group("index") is not None:
            segments.append(IndexSegment(int(match.group("index"))))
        else:
            segments.append(FieldSegment(match.group("key")))
        pos = match.end()
    return tuple(segments)


def apply_post_path(value: Any, path: Sequence[PathSegment]) -> Any:
    """Walk `path` through `value`; a missing segment yields `None`."""

    current = value
    for segment in path:
        if current is None:
            return None
        if isinstance(segment, IndexSegment):
            if isinstance(current, (list, tuple)) and segment.index < len(current):
                current = current[segment.index]
            else:
                return None
        elif isinstance(current, Mapping):
            current = current.get(segment.name)
        elif segment.name == "length" and isinstance(current, (list, tuple, str)):
            current = len(current)
        else:
            return None
    return current


def _excerpt(text: str) -> str:
    return repr(text.strip()[:40])


__all__ = ["apply_post_path", "parse_post_path", "scan_modifiers"]
