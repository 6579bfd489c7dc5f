"""Locate the primary `db.*(...)` call and split off its argument text."""

from __future__ import annotations

import re

from ..errors import MalformedQuery, UnbalancedDelimiters
from .models import ParsedCall, TargetKind

IDENTIFIER = r"[A-Za-z_$][\w$]*"

_ADMIN_CALL = re.compile(r"^db\s*\.\s*(?P<method>currentOp|runCommand|adminCommand)\s*\(")
_GET_COLLECTION_PREFIX = re.compile(r"^db\s*\.\s*getCollection\s*\(")
_GET_COLLECTION_CALL = re.compile(
    rf"""^db\s*\.\s*getCollection\s*\(\s*(?P<quote>["'])(?P<collection>[^"']+)(?P=quote)\s*\)"""
    rf"""\s*\.\s*(?P<method>{IDENTIFIER})\s*\("""
)
_COLLECTION_CALL = re.compile(
    rf"^db\s*\.\s*(?P<collection>{IDENTIFIER})\s*\.\s*(?P<method>{IDENTIFIER})\s*\("
)

_ADMIN_KINDS = {
    "currentOp": TargetKind.CURRENT_OP,
    "runCommand": TargetKind.RUN_COMMAND,
    "adminCommand": TargetKind.ADMIN_COMMAND,
}

_OPENERS = "({["
_CLOSERS = ")}]"
_QUOTES = "\"'"


def clean_query(text: str) -> str:
    """Drop whole-line `//` comments, surrounding whitespace, and a trailing semicolon."""

    lines = [line for line in text.splitlines() if not line.strip().startswith("//")]
    cleaned = "\n".join(lines).strip()
    if cleaned.endswith(";"):
        cleaned = cleaned[:-1].rstrip()
    return cleaned


def tokenize(text: str) -> ParsedCall:
    """Split a cleaned query into its primary call, raw arguments, and remainder."""

    query = clean_query(text)
    if not query:
        raise MalformedQuery("Provide a query to execute.")

    match = _ADMIN_CALL.match(query)
    if match:
        method = match.group("method")
        return _build(query, match, _ADMIN_KINDS[method], method, None)

    if _GET_COLLECTION_PREFIX.match(query):
        match = _GET_COLLECTION_CALL.match(query)
        if not match:
            raise MalformedQuery(
                'Invalid getCollection query format. Expected: db.getCollection("name").method(args)'
            )
        return _build(
            query,
            match,
            TargetKind.GET_COLLECTION_METHOD,
            match.group("method"),
            match.group("collection"),
        )

    match = _COLLECTION_CALL.match(query)
    if match:
        return _build(
            query,
            match,
            TargetKind.COLLECTION_METHOD,
            match.group("method"),
            match.group("collection"),
        )

    raise MalformedQuery("Unsupported query format. Use db.collection.method(args) syntax.")


def scan_arguments(text: str, open_index: int) -> tuple[str, int]:
    """Return the text inside the parenthesis at `open_index` and the index just past its closer.

    Depth is tracked across parentheses, braces, and brackets. Characters inside single- or
    double-quoted strings are skipped, including backslash-escaped quotes.
    """

    depth = 0
    quote: str | None = None
    index = open_index
    length = len(text)
    while index < length:
        char = text[index]
        if quote is not None:
            if char == "\\":
                index += 2
                continue
            if char == quote:
                quote = None
        elif char in _QUOTES:
            quote = char
        elif char in _OPENERS:
            depth += 1
        elif char in _CLOSERS:
            depth -= 1
            if depth == 0:
                return text[open_index + 1 : index], index + 1
        index += 1
    if quote is not None:
        raise UnbalancedDelimiters(f"Unterminated string starting in: {text[open_index:][:40]!r}")
    raise UnbalancedDelimiters(f"Unbalanced brackets in: {text[open_index:][:40]!r}")


def _build(
    query: str,
    match: re.Match[str],
    kind: TargetKind,
    method: str,
    collection: str | None,
) -> ParsedCall:
    args_raw, end = scan_arguments(query, match.end() - 1)
    return ParsedCall(
        target_kind=kind,
        method=method,
        args_raw=args_raw,
        remainder=query[end:].strip(),
        collection=collection,
    )


__all__ = ["IDENTIFIER", "clean_query", "scan_arguments", "tokenize"]
