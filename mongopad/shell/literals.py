"""Grammar-driven parser for shell argument literals.

Only data literals are accepted: objects (quoted or bare keys), arrays, strings, numbers, booleans,
`null`/`undefined`, `new Date(...)` and `/regex/flags`. Nothing in the argument text is ever
evaluated as code.
"""

from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from typing import Any

from bson.regex import Regex
from lark import Lark, Token, Transformer, v_args
from lark.exceptions import UnexpectedCharacters, UnexpectedInput, UnexpectedToken, VisitError

from ..errors import ArgumentParseError

LITERAL_GRAMMAR = r"""
    sequence: (value ("," value)* ","?)?

    ?value: document
          | array
          | STRING -> string
          | NUMBER -> number
          | REGEX -> regex
          | IDENT -> keyword
          | IDENT IDENT "(" value? ")" -> constructor

    document: "{" (pair ("," pair)* ","?)? "}"
    pair: key ":" value
    ?key: STRING -> string
        | IDENT -> name
        | NUMBER -> number_key

    array: "[" (value ("," value)* ","?)? "]"

    STRING: /"(?:[^"\\\n]|\\[\s\S])*"/ | /'(?:[^'\\\n]|\\[\s\S])*'/
    NUMBER: /[-+]?(?:0[xX][0-9a-fA-F]+|(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)(?![\w$])/
          | /[-+]Infinity(?![\w$])/
    REGEX: /\/(?![\/*])(?:\\.|\[(?:\\.|[^\]\\\n])*\]|[^\/\\\n\[])+\/[A-Za-z]*/
    IDENT: /[A-Za-z_$][\w$]*/
    COMMENT: /\/\/[^\n]*/ | /\/\*[\s\S]*?\*\//

    %import common.WS
    %ignore WS
    %ignore COMMENT
"""

_ESCAPE = re.compile(r"\\(u\{[0-9a-fA-F]+\}|u[0-9a-fA-F]{4}|x[0-9a-fA-F]{2}|\r?\n|[\s\S])")
_SIMPLE_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
}
_KEYWORDS: dict[str, Any] = {
    "true": True,
    "false": False,
    "null": None,
    "undefined": None,
    "NaN": math.nan,
    "Infinity": math.inf,
}
_FRAGMENT_WIDTH = 24

_PARSER = Lark(LITERAL_GRAMMAR, start="sequence", parser="lalr")


def parse_arguments(text: str) -> tuple[Any, ...]:
    """Parse a comma-separated argument list into a tuple of Python values.

    Blank input yields an empty tuple. A trailing comma is accepted, trailing garbage is not.
    """

    if not text or not text.strip():
        return ()
    try:
        tree = _PARSER.parse(text)
    except UnexpectedInput as exc:
        raise _syntax_error(text, exc) from None
    try:
        return _LiteralTransformer(text).transform(tree)
    except VisitError as exc:
        if isinstance(exc.orig_exc, ArgumentParseError):
            raise exc.orig_exc from None
        if isinstance(exc.orig_exc, RecursionError):
            raise _too_deep(text) from None
        if isinstance(exc.orig_exc, (ValueError, OverflowError, OSError)):
            raise _error_at(text, str(exc.orig_exc), None) from None
        raise
    except RecursionError:
        raise _too_deep(text) from None


def parse_literal(text: str) -> Any:
    """Parse exactly one literal value."""

    values = parse_arguments(text)
    if len(values) != 1:
        raise ArgumentParseError(
            f"Expected a single value, found {len(values)}",
            fragment=text[:_FRAGMENT_WIDTH],
        )
    return values[0]


@v_args(inline=True)
class _LiteralTransformer(Transformer):
    def __init__(self, text: str) -> None:
        super().__init__()
        self._text = text

    def sequence(self, *values: Any) -> tuple[Any, ...]:
        return values

    def document(self, *pairs: tuple[str, Any]) -> dict[str, Any]:
        return dict(pairs)

    def pair(self, key: str, value: Any) -> tuple[str, Any]:
        return key, value

    def array(self, *items: Any) -> list[Any]:
        return list(items)

    def string(self, token: Token) -> str:
        try:
            return _ESCAPE.sub(_unescape, token[1:-1])
        except (ValueError, OverflowError):
            raise self._error("Invalid escape sequence", token) from None

    def name(self, token: Token) -> str:
        return str(token)

    def number(self, token: Token) -> int | float:
        try:
            return _to_number(token)
        except ValueError:
            raise self._error("Number literal is too large", token) from None

    def number_key(self, token: Token) -> str:
        return str(self.number(token))

    def regex(self, token: Token) -> Regex:
        end = token.rfind("/")
        return Regex(token[1:end], token[end + 1 :])

    def keyword(self, token: Token) -> Any:
        if token in _KEYWORDS:
            return _KEYWORDS[token]
        raise self._error(f"Unsupported expression '{token}'", token)

    def constructor(self, keyword: Token, name: Token, *args: Any) -> datetime:
        if keyword != "new" or name != "Date":
            raise self._error("Only 'new Date(...)' is supported", keyword)
        if not args:
            return datetime.now(tz=timezone.utc)
        (value,) = args
        if isinstance(value, str):
            return self._date_from_string(value, name)
        if isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value):
            try:
                return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
            except (OverflowError, OSError, ValueError):
                raise self._error("Date is out of range", name) from None
        raise self._error("Date expects an ISO string or epoch milliseconds", name)

    def _date_from_string(self, value: str, token: Token) -> datetime:
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise self._error(f"Invalid date {value!r}", token) from None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    def _error(self, message: str, token: Token) -> ArgumentParseError:
        return _error_at(self._text, message, token.start_pos)


def _to_number(token: str) -> int | float:
    sign = -1 if token.startswith("-") else 1
    body = token.lstrip("+-")
    if body == "Infinity":
        return sign * math.inf
    if body[:2].lower() == "0x":
        return sign * int(body, 16)
    if any(marker in body for marker in ".eE"):
        return float(token)
    return int(token)


def _unescape(match: re.Match[str]) -> str:
    escape = match.group(1)
    if escape in _SIMPLE_ESCAPES:
        return _SIMPLE_ESCAPES[escape]
    if escape.endswith("\n"):
        return ""
    if escape.startswith("u{"):
        return chr(int(escape[2:-1], 16))
    if len(escape) > 1 and escape[0] in "ux":
        return chr(int(escape[1:], 16))
    return escape


def _syntax_error(text: str, exc: UnexpectedInput) -> ArgumentParseError:
    offset = getattr(exc, "pos_in_stream", None)
    if isinstance(exc, UnexpectedToken) and exc.token.type == "$END":
        return _error_at(text, "Unexpected end of arguments", len(text))
    if isinstance(exc, UnexpectedToken):
        return _error_at(text, f"Unexpected {exc.token!s}", offset)
    if isinstance(exc, UnexpectedCharacters):
        return _error_at(text, f"Unexpected character {exc.char!r}", offset)
    return _error_at(text, "Invalid arguments", offset)


def _too_deep(text: str) -> ArgumentParseError:
    return ArgumentParseError("Arguments are nested too deeply", fragment=text[:_FRAGMENT_WIDTH])


def _error_at(text: str, message: str, offset: int | None) -> ArgumentParseError:
    if offset is None or offset < 0:
        offset = len(text)
    fragment = text[offset : offset + _FRAGMENT_WIDTH] or text[-_FRAGMENT_WIDTH:]
    return ArgumentParseError(message, fragment=fragment, offset=offset)


__all__ = ["LITERAL_GRAMMAR", "parse_arguments", "parse_literal"]
