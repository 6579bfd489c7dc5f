"""Tests for the operation catalogue."""

from __future__ import annotations

import pytest

from mongopad.errors import UnsupportedOperation
from mongopad.operations import COLLECTION_OPERATIONS, Operation, OperationCategory, resolve_operation
from mongopad.shell import TargetKind

READS = ["find", "findOne", "aggregate", "countDocuments", "estimatedDocumentCount", "distinct", "indexes", "stats"]
WRITES = [
    "insertOne",
    "insertMany",
    "updateOne",
    "updateMany",
    "replaceOne",
    "deleteOne",
    "deleteMany",
    "findOneAndUpdate",
    "findOneAndDelete",
    "findOneAndReplace",
]


@pytest.mark.parametrize("method", READS)
def test_read_methods_resolve(method: str) -> None:
    operation = resolve_operation(TargetKind.COLLECTION_METHOD, method)

    assert operation.value == method
    assert operation.category is OperationCategory.READ


@pytest.mark.parametrize("method", WRITES)
def test_write_methods_resolve_for_get_collection(method: str) -> None:
    operation = resolve_operation(TargetKind.GET_COLLECTION_METHOD, method)

    assert operation.category is OperationCategory.WRITE


def test_index_methods_resolve() -> None:
    assert resolve_operation(TargetKind.COLLECTION_METHOD, "createIndex") is Operation.CREATE_INDEX
    assert Operation.DROP_INDEX.category is OperationCategory.INDEX_ADMIN


@pytest.mark.parametrize(
    ("kind", "method", "expected"),
    [
        (TargetKind.RUN_COMMAND, "runCommand", Operation.RUN_COMMAND),
        (TargetKind.ADMIN_COMMAND, "adminCommand", Operation.ADMIN_COMMAND),
        (TargetKind.CURRENT_OP, "currentOp", Operation.CURRENT_OP),
    ],
)
def test_admin_kinds_map_to_their_own_operation(kind: TargetKind, method: str, expected: Operation) -> None:
    assert resolve_operation(kind, method) is expected
    assert expected.category is OperationCategory.SERVER_ADMIN


@pytest.mark.parametrize(
    ("kind", "method"),
    [
        (TargetKind.COLLECTION_METHOD, "bogusMethod"),
        (TargetKind.COLLECTION_METHOD, "drop"),
        (TargetKind.COLLECTION_METHOD, "runCommand"),
        (TargetKind.COLLECTION_METHOD, "__class__"),
        (TargetKind.RUN_COMMAND, "adminCommand"),
    ],
)
def test_unknown_methods_are_rejected_by_name(kind: TargetKind, method: str) -> None:
    with pytest.raises(UnsupportedOperation) as excinfo:
        resolve_operation(kind, method)

    assert excinfo.value.method == method
    assert method in str(excinfo.value)


def test_collection_catalogue_excludes_server_admin() -> None:
    assert set(COLLECTION_OPERATIONS) == set(READS) | set(WRITES) | {"createIndex", "dropIndex"}
