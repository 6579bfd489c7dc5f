"""Error taxonomy shared by the parser, connection cache, and dispatcher."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Failure categories surfaced to callers in a `QueryFailure`."""

    MALFORMED_QUERY = "malformed_query"
    UNBALANCED_DELIMITERS = "unbalanced_delimiters"
    ARGUMENT_PARSE = "argument_parse"
    UNSUPPORTED_OPERATION = "unsupported_operation"
    TARGET_UNAVAILABLE = "target_unavailable"
    STORE_EXECUTION = "store_execution"


class QueryError(RuntimeError):
    """Base class for every failure the executor reports."""

    kind: ErrorKind = ErrorKind.STORE_EXECUTION


class MalformedQuery(QueryError):
    """Raised when the text does not match any recognised call shape."""

    kind = ErrorKind.MALFORMED_QUERY


class UnbalancedDelimiters(QueryError):
    """Raised when an argument list never closes."""

    kind = ErrorKind.UNBALANCED_DELIMITERS


class ArgumentParseError(QueryError):
    """Raised when argument text is not a valid literal sequence."""

    kind = ErrorKind.ARGUMENT_PARSE

    def __init__(self, message: str, *, fragment: str = "", offset: int | None = None) -> None:
        detail = message
        if fragment:
            detail = f"{message} near {fragment!r}"
        super().__init__(detail)
        self.fragment = fragment
        self.offset = offset


class UnsupportedOperation(QueryError):
    """Raised when a method is not allow-listed for its call shape."""

    kind = ErrorKind.UNSUPPORTED_OPERATION

    def __init__(self, method: str) -> None:
        super().__init__(f"Unsupported method: {method}")
        self.method = method


class TargetUnavailable(QueryError):
    """Raised when a connection to a target cannot be established."""

    kind = ErrorKind.TARGET_UNAVAILABLE

    def __init__(self, target_id: str, reason: str) -> None:
        super().__init__(f"Target '{target_id}' is unavailable: {reason}")
        self.target_id = target_id


class StoreExecutionError(QueryError):
    """Raised when the store was reached but the operation failed."""

    kind = ErrorKind.STORE_EXECUTION


class ConfigError(RuntimeError):
    """Raised when an explicitly requested config file cannot be used."""


__all__ = [
    "ArgumentParseError",
    "ConfigError",
    "ErrorKind",
    "MalformedQuery",
    "QueryError",
    "StoreExecutionError",
    "TargetUnavailable",
    "UnbalancedDelimiters",
    "UnsupportedOperation",
]
