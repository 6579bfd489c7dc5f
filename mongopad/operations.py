"""Closed catalogue of store operations the executor is allowed to run."""

from __future__ import annotations

from enum import Enum

from .errors import UnsupportedOperation
from .shell.models import TargetKind


class OperationCategory(str, Enum):
    """Coarse grouping used for logging and review tooling."""

    READ = "read"
    WRITE = "write"
    INDEX_ADMIN = "index_admin"
    SERVER_ADMIN = "server_admin"


class Operation(str, Enum):
    """Every allow-listed operation, keyed by its shell method name."""

    FIND = "find"
    FIND_ONE = "findOne"
    AGGREGATE = "aggregate"
    COUNT_DOCUMENTS = "countDocuments"
    ESTIMATED_DOCUMENT_COUNT = "estimatedDocumentCount"
    DISTINCT = "distinct"
    INDEXES = "indexes"
    STATS = "stats"
    INSERT_ONE = "insertOne"
    INSERT_MANY = "insertMany"
    UPDATE_ONE = "updateOne"
    UPDATE_MANY = "updateMany"
    REPLACE_ONE = "replaceOne"
    DELETE_ONE = "deleteOne"
    DELETE_MANY = "deleteMany"
    FIND_ONE_AND_UPDATE = "findOneAndUpdate"
    FIND_ONE_AND_DELETE = "findOneAndDelete"
    FIND_ONE_AND_REPLACE = "findOneAndReplace"
    CREATE_INDEX = "createIndex"
    DROP_INDEX = "dropIndex"
    RUN_COMMAND = "runCommand"
    ADMIN_COMMAND = "adminCommand"
    CURRENT_OP = "currentOp"

    @property
    def category(self) -> OperationCategory:
        return _CATEGORIES[self]

    @property
    def returns_cursor(self) -> bool:
        return self is Operation.FIND


_CATEGORIES: dict[Operation, OperationCategory] = {
    Operation.FIND: OperationCategory.READ,
    Operation.FIND_ONE: OperationCategory.READ,
    Operation.AGGREGATE: OperationCategory.READ,
    Operation.COUNT_DOCUMENTS: OperationCategory.READ,
    Operation.ESTIMATED_DOCUMENT_COUNT: OperationCategory.READ,
    Operation.DISTINCT: OperationCategory.READ,
    Operation.INDEXES: OperationCategory.READ,
    Operation.STATS: OperationCategory.READ,
    Operation.INSERT_ONE: OperationCategory.WRITE,
    Operation.INSERT_MANY: OperationCategory.WRITE,
    Operation.UPDATE_ONE: OperationCategory.WRITE,
    Operation.UPDATE_MANY: OperationCategory.WRITE,
    Operation.REPLACE_ONE: OperationCategory.WRITE,
    Operation.DELETE_ONE: OperationCategory.WRITE,
    Operation.DELETE_MANY: OperationCategory.WRITE,
    Operation.FIND_ONE_AND_UPDATE: OperationCategory.WRITE,
    Operation.FIND_ONE_AND_DELETE: OperationCategory.WRITE,
    Operation.FIND_ONE_AND_REPLACE: OperationCategory.WRITE,
    Operation.CREATE_INDEX: OperationCategory.INDEX_ADMIN,
    Operation.DROP_INDEX: OperationCategory.INDEX_ADMIN,
    Operation.RUN_COMMAND: OperationCategory.SERVER_ADMIN,
    Operation.ADMIN_COMMAND: OperationCategory.SERVER_ADMIN,
    Operation.CURRENT_OP: OperationCategory.SERVER_ADMIN,
}

_ADMIN_OPERATIONS: dict[TargetKind, Operation] = {
    TargetKind.RUN_COMMAND: Operation.RUN_COMMAND,
    TargetKind.ADMIN_COMMAND: Operation.ADMIN_COMMAND,
    TargetKind.CURRENT_OP: Operation.CURRENT_OP,
}

COLLECTION_OPERATIONS: dict[str, Operation] = {
    op.value: op
    for op, category in _CATEGORIES.items()
    if category is not OperationCategory.SERVER_ADMIN
}


def resolve_operation(kind: TargetKind, method: str) -> Operation:
    """Map a call shape and method name to its operation, or raise `UnsupportedOperation`."""

    if kind.is_admin:
        operation = _ADMIN_OPERATIONS[kind]
        if operation.value != method:
            raise UnsupportedOperation(method)
        return operation
    try:
        return COLLECTION_OPERATIONS[method]
    except KeyError:
        raise UnsupportedOperation(method) from None


__all__ = [
    "COLLECTION_OPERATIONS",
    "Operation",
    "OperationCategory",
    "resolve_operation",
]
