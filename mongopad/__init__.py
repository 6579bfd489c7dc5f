"""Shell-syntax document-store query parser and execution dispatcher."""

from __future__ import annotations

from .config import AppConfig, load_config
from .connections import ConnectionCache, StoreHandle
from .errors import (
    ArgumentParseError,
    ErrorKind,
    MalformedQuery,
    QueryError,
    StoreExecutionError,
    TargetUnavailable,
    UnbalancedDelimiters,
    UnsupportedOperation,
)
from .operations import Operation, OperationCategory, resolve_operation
from .plan import QueryPlan, compile_query
from .query import ExecutionResult, QueryFailure, QuerySuccess, ShellQueryExecutor
from .targets import ConfigTargetRegistry, TargetRegistry

__version__ = "0.1.0"

__all__ = [
    "AppConfig",
    "ArgumentParseError",
    "ConfigTargetRegistry",
    "ConnectionCache",
    "ErrorKind",
    "ExecutionResult",
    "MalformedQuery",
    "Operation",
    "OperationCategory",
    "QueryError",
    "QueryFailure",
    "QueryPlan",
    "QuerySuccess",
    "ShellQueryExecutor",
    "StoreExecutionError",
    "StoreHandle",
    "TargetRegistry",
    "TargetUnavailable",
    "UnbalancedDelimiters",
    "UnsupportedOperation",
    "__version__",
    "compile_query",
    "load_config",
    "resolve_operation",
]
