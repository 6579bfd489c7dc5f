"""Rewrite shell-only literal constructors into portable literal syntax.

The rewrite is a single left-to-right pass. Quoted strings are copied through untouched so a
wrapper name that only appears inside a string value is never rewritten. Numeric wrappers collapse
to bare numbers, which drops the 32/64-bit and decimal tagging the shell would have kept.
"""

from __future__ import annotations

import re
from typing import Callable

_NEW = r"(?:\bnew\s+)?"
_QUOTED = r"""["']"""

_RULES: tuple[tuple[str, str, Callable[[re.Match[str]], str]], ...] = (
    (
        "string",
        r""""(?:\\.|[^"\\])*"|'(?:\\.|[^'\\])*'""",
        lambda m: m.group("string"),
    ),
    (
        "object_id",
        rf"{_NEW}\bObjectId\s*\(\s*{_QUOTED}(?P<object_id_value>[^\"']*){_QUOTED}\s*\)",
        lambda m: f'"{m.group("object_id_value")}"',
    ),
    (
        "object_id_empty",
        rf"{_NEW}\bObjectId\s*\(\s*\)",
        lambda m: '""',
    ),
    (
        "iso_date",
        rf"{_NEW}\bISODate\s*\(\s*{_QUOTED}(?P<iso_date_value>[^\"']+){_QUOTED}\s*\)",
        lambda m: f'new Date("{m.group("iso_date_value")}")',
    ),
    (
        "iso_date_empty",
        rf"{_NEW}\bISODate\s*\(\s*\)",
        lambda m: "new Date()",
    ),
    (
        "integer",
        rf"{_NEW}\b(?:NumberLong|NumberInt)\s*\(\s*{_QUOTED}?(?P<integer_value>[-+]?\d+){_QUOTED}?\s*\)",
        lambda m: m.group("integer_value"),
    ),
    (
        "decimal",
        rf"{_NEW}\bNumberDecimal\s*\(\s*{_QUOTED}?(?P<decimal_value>[^\"')]+?){_QUOTED}?\s*\)",
        lambda m: m.group("decimal_value").strip(),
    ),
    (
        "uuid",
        rf"{_NEW}\bUUID\s*\(\s*{_QUOTED}(?P<uuid_value>[^\"']+){_QUOTED}\s*\)",
        lambda m: f'"{m.group("uuid_value")}"',
    ),
    (
        "binary",
        rf"{_NEW}\bBinData\s*\(\s*\d+\s*,\s*{_QUOTED}(?P<binary_value>[^\"']+){_QUOTED}\s*\)",
        lambda m: f'"{m.group("binary_value")}"',
    ),
    (
        "timestamp",
        rf"{_NEW}\bTimestamp\s*\(\s*(?P<timestamp_t>\d+)\s*,\s*(?P<timestamp_i>\d+)\s*\)",
        lambda m: f'{{"t": {m.group("timestamp_t")}, "i": {m.group("timestamp_i")}}}',
    ),
)

_PATTERN = re.compile("|".join(f"(?P<{name}>{pattern})" for name, pattern, _ in _RULES))
_REPLACERS = {name: replace for name, _, replace in _RULES}


def normalize_literals(text: str) -> str:
    """Return `text` with shell wrapper constructors rewritten."""

    if not text:
        return text
    return _PATTERN.sub(_substitute, text)


def _substitute(match: re.Match[str]) -> str:
    name = match.lastgroup
    if name is None:  # pragma: no cover - every alternative is named
        return match.group(0)
    return _REPLACERS[name](match)


__all__ = ["normalize_literals"]
