"""Compile raw query text into a validated execution plan.

Everything here is pure: a plan is built (or rejected) without touching the network, so callers
can validate a query at submission time and the executor fails fast before acquiring a connection.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from pymongo import ReturnDocument

from .errors import ArgumentParseError
from .operations import Operation, resolve_operation
from .shell import (
    ChainedModifier,
    ParsedCall,
    PathSegment,
    normalize_literals,
    parse_arguments,
    parse_post_path,
    scan_modifiers,
    tokenize,
)

CURSOR_MODIFIERS = frozenset({"limit", "skip", "sort", "project"})


@dataclass(frozen=True, slots=True)
class FindSpec:
    """Effective `find` parameters after folding chained modifiers."""

    filter: Mapping[str, Any] = field(default_factory=dict)
    projection: Mapping[str, Any] | None = None
    sort: tuple[tuple[str, Any], ...] | None = None
    skip: int = 0
    limit: int | None = None


@dataclass(frozen=True, slots=True)
class QueryPlan:
    """A parsed, allow-listed, shape-checked query ready for dispatch."""

    call: ParsedCall
    operation: Operation
    args: tuple[Any, ...] = ()
    options: Mapping[str, Any] = field(default_factory=dict)
    modifiers: tuple[ChainedModifier, ...] = ()
    post_path: tuple[PathSegment, ...] = ()
    find: FindSpec | None = None

    @property
    def collection(self) -> str | None:
        return self.call.collection


@dataclass(frozen=True, slots=True)
class _Signature:
    max_args: int
    options_at: int | None = None
    options: Mapping[str, str] = field(default_factory=dict)


_COMMON = {"comment": "comment"}
_WRITE = {
    **_COMMON,
    "collation": "collation",
    "hint": "hint",
    "let": "let",
}
_UPSERT = {
    **_WRITE,
    "upsert": "upsert",
    "bypassDocumentValidation": "bypass_document_validation",
}
_FIND_AND_MODIFY = {
    **_WRITE,
    "projection": "projection",
    "sort": "sort",
}
_RETURN_DOCUMENT = {
    "returnDocument": "return_document",
    "returnNewDocument": "return_document",
}
_INDEX_OPTIONS = {
    name: name
    for name in (
        "name",
        "unique",
        "sparse",
        "background",
        "expireAfterSeconds",
        "partialFilterExpression",
        "collation",
        "hidden",
        "weights",
        "default_language",
        "language_override",
        "textIndexVersion",
        "2dsphereIndexVersion",
        "bits",
        "min",
        "max",
        "wildcardProjection",
    )
}

_SIGNATURES: dict[Operation, _Signature] = {
    Operation.FIND: _Signature(max_args=2),
    Operation.FIND_ONE: _Signature(
        max_args=2,
        options_at=1,
        options={**_COMMON, "projection": "projection", "sort": "sort", "skip": "skip",
                 "hint": "hint", "collation": "collation"},
    ),
    Operation.AGGREGATE: _Signature(
        max_args=2,
        options_at=1,
        options={**_COMMON, "allowDiskUse": "allowDiskUse", "batchSize": "batchSize",
                 "collation": "collation", "hint": "hint", "let": "let"},
    ),
    Operation.COUNT_DOCUMENTS: _Signature(
        max_args=2,
        options_at=1,
        options={**_COMMON, "skip": "skip", "limit": "limit", "hint": "hint",
                 "collation": "collation"},
    ),
    Operation.ESTIMATED_DOCUMENT_COUNT: _Signature(max_args=1, options_at=0, options=_COMMON),
    Operation.DISTINCT: _Signature(
        max_args=3,
        options_at=2,
        options={**_COMMON, "collation": "collation"},
    ),
    Operation.INDEXES: _Signature(max_args=0),
    Operation.STATS: _Signature(max_args=1, options_at=0, options={"scale": "scale"}),
    Operation.INSERT_ONE: _Signature(
        max_args=2,
        options_at=1,
        options={**_COMMON, "bypassDocumentValidation": "bypass_document_validation"},
    ),
    Operation.INSERT_MANY: _Signature(
        max_args=2,
        options_at=1,
        options={**_COMMON, "ordered": "ordered",
                 "bypassDocumentValidation": "bypass_document_validation"},
    ),
    Operation.UPDATE_ONE: _Signature(
        max_args=3, options_at=2, options={**_UPSERT, "arrayFilters": "array_filters"}
    ),
    Operation.UPDATE_MANY: _Signature(
        max_args=3, options_at=2, options={**_UPSERT, "arrayFilters": "array_filters"}
    ),
    Operation.REPLACE_ONE: _Signature(max_args=3, options_at=2, options=_UPSERT),
    Operation.DELETE_ONE: _Signature(max_args=2, options_at=1, options=_WRITE),
    Operation.DELETE_MANY: _Signature(max_args=2, options_at=1, options=_WRITE),
    Operation.FIND_ONE_AND_UPDATE: _Signature(
        max_args=3,
        options_at=2,
        options={**_FIND_AND_MODIFY, **_RETURN_DOCUMENT, "upsert": "upsert",
                 "arrayFilters": "array_filters"},
    ),
    Operation.FIND_ONE_AND_REPLACE: _Signature(
        max_args=3,
        options_at=2,
        options={**_FIND_AND_MODIFY, **_RETURN_DOCUMENT, "upsert": "upsert"},
    ),
    Operation.FIND_ONE_AND_DELETE: _Signature(max_args=2, options_at=1, options=_FIND_AND_MODIFY),
    Operation.CREATE_INDEX: _Signature(max_args=2, options_at=1, options=_INDEX_OPTIONS),
    Operation.DROP_INDEX: _Signature(max_args=1),
    Operation.RUN_COMMAND: _Signature(max_args=1),
    Operation.ADMIN_COMMAND: _Signature(max_args=1),
    Operation.CURRENT_OP: _Signature(max_args=1),
}


def compile_query(text: str) -> QueryPlan:
    """Tokenize, parse, and validate `text` into a `QueryPlan`.

    Raises one of `MalformedQuery`, `UnbalancedDelimiters`, `ArgumentParseError` or
    `UnsupportedOperation`.
    """

    call = tokenize(text)
    operation = resolve_operation(call.target_kind, call.method)
    args = parse_arguments(normalize_literals(call.args_raw))
    signature = _SIGNATURES[operation]
    if len(args) > signature.max_args:
        raise ArgumentParseError(
            f"{operation.value} accepts at most {signature.max_args} argument(s), got {len(args)}"
        )
    _check_arguments(operation, args)

    options: dict[str, Any] = {}
    if signature.options_at is not None and len(args) > signature.options_at:
        options = _translate_options(operation, args[signature.options_at], signature.options)

    modifiers: tuple[ChainedModifier, ...] = ()
    post_path: tuple[PathSegment, ...] = ()
    if call.target_kind.is_admin:
        post_path = parse_post_path(call.remainder)
    else:
        modifiers = scan_modifiers(call.remainder)

    find = _fold_find(args, modifiers) if operation is Operation.FIND else None
    return QueryPlan(
        call=call,
        operation=operation,
        args=args,
        options=options,
        modifiers=modifiers,
        post_path=post_path,
        find=find,
    )


def sort_pairs(value: Any, *, context: str = "sort") -> tuple[tuple[str, Any], ...]:
    """Turn a `{field: direction}` document into ordered key/direction pairs."""

    if not isinstance(value, Mapping) or not value:
        raise ArgumentParseError(f"{context} expects a non-empty document")
    return tuple((str(key), direction) for key, direction in value.items())


def _fold_find(args: Sequence[Any], modifiers: Sequence[ChainedModifier]) -> FindSpec:
    projection = _document_or_none(args, 1)
    sort: tuple[tuple[str, Any], ...] | None = None
    skip = 0
    limit: int | None = None
    for modifier in modifiers:
        if modifier.method not in CURSOR_MODIFIERS:
            continue
        value = modifier.args[0] if modifier.args else None
        if modifier.method == "limit":
            count = _non_negative_int(value, "limit")
            limit = count or None
        elif modifier.method == "skip":
            skip = _non_negative_int(value, "skip")
        elif modifier.method == "sort":
            sort = sort_pairs(value)
        elif modifier.method == "project":
            if not isinstance(value, Mapping):
                raise ArgumentParseError("project expects a document")
            projection = dict(value) or None
    return FindSpec(
        filter=_document_or_none(args, 0) or {},
        projection=projection,
        sort=sort,
        skip=skip,
        limit=limit,
    )


def _check_arguments(operation: Operation, args: tuple[Any, ...]) -> None:
    name = operation.value
    if operation in (
        Operation.FIND,
        Operation.FIND_ONE,
        Operation.COUNT_DOCUMENTS,
        Operation.DELETE_ONE,
        Operation.DELETE_MANY,
        Operation.FIND_ONE_AND_DELETE,
        Operation.UPDATE_ONE,
        Operation.UPDATE_MANY,
        Operation.REPLACE_ONE,
        Operation.FIND_ONE_AND_UPDATE,
        Operation.FIND_ONE_AND_REPLACE,
    ):
        _optional_document(args, 0, f"{name} filter")
    if operation is Operation.FIND:
        _optional_document(args, 1, "find projection")
    elif operation is Operation.AGGREGATE:
        pipeline = args[0] if args else []
        if not isinstance(pipeline, list) or not all(isinstance(stage, Mapping) for stage in pipeline):
            raise ArgumentParseError("aggregate expects an array of pipeline stages")
    elif operation is Operation.DISTINCT:
        if not args or not isinstance(args[0], str):
            raise ArgumentParseError("distinct expects a field name")
        _optional_document(args, 1, "distinct filter")
    elif operation is Operation.INSERT_ONE:
        if not args or not isinstance(args[0], Mapping):
            raise ArgumentParseError("Document required for insertOne")
    elif operation is Operation.INSERT_MANY:
        docs = args[0] if args else None
        if not isinstance(docs, list) or not docs or not all(isinstance(doc, Mapping) for doc in docs):
            raise ArgumentParseError("Array of documents required for insertMany")
    elif operation in (Operation.UPDATE_ONE, Operation.UPDATE_MANY, Operation.FIND_ONE_AND_UPDATE):
        update = args[1] if len(args) > 1 else None
        if not isinstance(update, (Mapping, list)) or not update:
            raise ArgumentParseError(f"Update document required for {name}")
    elif operation in (Operation.REPLACE_ONE, Operation.FIND_ONE_AND_REPLACE):
        if len(args) < 2 or not isinstance(args[1], Mapping):
            raise ArgumentParseError(f"Replacement document required for {name}")
    elif operation is Operation.CREATE_INDEX:
        if not args or not isinstance(args[0], Mapping) or not args[0]:
            raise ArgumentParseError("createIndex expects a key document")
    elif operation is Operation.DROP_INDEX:
        if not args or not isinstance(args[0], (str, Mapping)):
            raise ArgumentParseError("dropIndex expects an index name or key document")
    elif operation in (Operation.RUN_COMMAND, Operation.ADMIN_COMMAND):
        if not args or not isinstance(args[0], (str, Mapping)) or not args[0]:
            raise ArgumentParseError(f"{name} expects a command document")
    elif operation is Operation.CURRENT_OP:
        if args and not isinstance(args[0], (bool, Mapping)):
            raise ArgumentParseError("currentOp expects a filter document or true")


def _translate_options(
    operation: Operation,
    value: Any,
    allowed: Mapping[str, str],
) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ArgumentParseError(f"{operation.value} options must be a document")
    options: dict[str, Any] = {}
    for key, option in value.items():
        keyword = allowed.get(key)
        if keyword is None:
            raise ArgumentParseError(f"Unsupported option '{key}' for {operation.value}")
        if key == "returnDocument":
            if option not in ("before", "after"):
                raise ArgumentParseError("returnDocument must be 'before' or 'after'")
            option = ReturnDocument.AFTER if option == "after" else ReturnDocument.BEFORE
        elif key == "returnNewDocument":
            option = ReturnDocument.AFTER if option else ReturnDocument.BEFORE
        elif key == "sort":
            option = list(sort_pairs(option))
        options[keyword] = option
    return options


def _optional_document(args: Sequence[Any], index: int, label: str) -> None:
    if len(args) > index and args[index] is not None and not isinstance(args[index], Mapping):
        raise ArgumentParseError(f"{label} must be a document")


def _document_or_none(args: Sequence[Any], index: int) -> dict[str, Any] | None:
    if len(args) > index and isinstance(args[index], Mapping) and args[index]:
        return dict(args[index])
    return None


def _non_negative_int(value: Any, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ArgumentParseError(f"{label} expects a non-negative integer")
    if isinstance(value, float) and not value.is_integer():
        raise ArgumentParseError(f"{label} expects a non-negative integer")
    if value < 0:
        raise ArgumentParseError(f"{label} expects a non-negative integer")
    return int(value)


__all__ = ["CURSOR_MODIFIERS", "FindSpec", "QueryPlan", "compile_query", "sort_pairs"]
