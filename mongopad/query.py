"""Query execution: compile shell text, dispatch one allow-listed operation, shape the result."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, ClassVar, Mapping, Protocol, Union

import pymongo
from pymongo.errors import OperationFailure, PyMongoError

from .config import AppConfig
from .connections import ClientFactory, ConnectionCache, StoreHandle
from .errors import ErrorKind, QueryError, StoreExecutionError, TargetUnavailable
from .operations import Operation
from .plan import FindSpec, QueryPlan, compile_query
from .shell import apply_post_path
from .targets import ConfigTargetRegistry, TargetRegistry

LOG = logging.getLogger(__name__)

DEFAULT_LIMIT = 100
DEFAULT_EXECUTION_TIMEOUT = 30.0

_CURRENT_OP_STAGE_OPTIONS = frozenset(
    {
        "allUsers",
        "idleConnections",
        "idleCursors",
        "idleSessions",
        "localOps",
        "backtrace",
        "targetAllNodes",
    }
)


@dataclass(frozen=True, slots=True)
class QuerySuccess:
    """Data returned by a successful execution."""

    data: Any
    elapsed_ms: int
    row_count: int

    ok: ClassVar[bool] = True


@dataclass(frozen=True, slots=True)
class QueryFailure:
    """Structured failure; `message` carries the store's text verbatim where there is one."""

    error_kind: ErrorKind
    message: str

    ok: ClassVar[bool] = False

    @classmethod
    def from_error(cls, exc: QueryError) -> QueryFailure:
        return cls(error_kind=exc.kind, message=str(exc))


ExecutionResult = Union[QuerySuccess, QueryFailure]


class QueryExecutor(Protocol):
    """Interface implemented by query executors."""

    async def execute(
        self,
        target_id: str,
        query_text: str,
        *,
        timeout: float | None = None,
    ) -> ExecutionResult: ...


class ShellQueryExecutor:
    """Runs shell-syntax queries against registered targets via the pymongo async client."""

    def __init__(
        self,
        cache: ConnectionCache,
        *,
        default_limit: int = DEFAULT_LIMIT,
        execution_timeout: float | None = DEFAULT_EXECUTION_TIMEOUT,
    ) -> None:
        self._cache = cache
        self._default_limit = default_limit
        self._execution_timeout = execution_timeout

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        *,
        registry: TargetRegistry | None = None,
        client_factory: ClientFactory | None = None,
    ) -> ShellQueryExecutor:
        """Wire a cache and executor from the `[executor]` settings."""

        settings = config.executor
        cache = ConnectionCache(
            registry or ConfigTargetRegistry(config),
            connect_timeout=settings.connect_timeout,
            client_factory=client_factory,
        )
        return cls(
            cache,
            default_limit=settings.default_limit,
            execution_timeout=settings.execution_timeout,
        )

    @property
    def cache(self) -> ConnectionCache:
        return self._cache

    async def execute(
        self,
        target_id: str,
        query_text: str,
        *,
        timeout: float | None = None,
    ) -> ExecutionResult:
        """Run `query_text` against `target_id`; never raises for query or store failures."""

        try:
            plan = compile_query(query_text)
        except QueryError as exc:
            LOG.info("Rejected query", extra={"target": target_id, "error_kind": exc.kind.value})
            return QueryFailure.from_error(exc)

        try:
            handle = await self._cache.acquire(target_id)
        except TargetUnavailable as exc:
            return QueryFailure.from_error(exc)

        deadline = timeout if timeout is not None else self._execution_timeout
        started = time.perf_counter()
        try:
            with pymongo.timeout(deadline):
                data = await self._dispatch(plan, handle)
        except PyMongoError as exc:
            LOG.warning(
                "Store rejected operation",
                extra={"target": target_id, "operation": plan.operation.value},
            )
            return QueryFailure.from_error(StoreExecutionError(str(exc)))
        except Exception as exc:
            LOG.exception(
                "Unexpected error while executing query",
                extra={"target": target_id, "operation": plan.operation.value},
            )
            return QueryFailure.from_error(StoreExecutionError(str(exc) or type(exc).__name__))
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        LOG.debug(
            "Executed query",
            extra={
                "target": target_id,
                "operation": plan.operation.value,
                "category": plan.operation.category.value,
                "elapsed_ms": elapsed_ms,
            },
        )
        return QuerySuccess(data=data, elapsed_ms=elapsed_ms, row_count=_row_count(data))

    async def close_connection(self, target_id: str) -> None:
        """Drop the cached connection for a target (e.g. after reconfiguration)."""

        await self._cache.close(target_id)

    async def close_all(self) -> None:
        """Drop every cached connection (process shutdown)."""

        await self._cache.close_all()

    async def _dispatch(self, plan: QueryPlan, handle: StoreHandle) -> Any:
        operation = plan.operation
        if operation is Operation.RUN_COMMAND:
            reply = await handle.database.command(plan.args[0])
            return apply_post_path(reply, plan.post_path)
        if operation is Operation.ADMIN_COMMAND:
            reply = await handle.admin.command(plan.args[0])
            return apply_post_path(reply, plan.post_path)
        if operation is Operation.CURRENT_OP:
            return await self._current_op(plan, handle)
        collection = handle.database[plan.collection]
        if operation is Operation.FIND:
            return await self._find(collection, plan.find or FindSpec())
        return await _COLLECTION_HANDLERS[operation](collection, plan)

    async def _find(self, collection: Any, find: FindSpec) -> list[Any]:
        cursor = collection.find(
            find.filter,
            find.projection,
            sort=list(find.sort) if find.sort else None,
            skip=find.skip,
            limit=find.limit or self._default_limit,
        )
        return await cursor.to_list(length=None)

    async def _current_op(self, plan: QueryPlan, handle: StoreHandle) -> Any:
        stage, match, command = _current_op_parts(plan.args[0] if plan.args else None)
        pipeline: list[dict[str, Any]] = [{"$currentOp": stage}]
        if match:
            pipeline.append({"$match": match})
        try:
            cursor = await handle.admin.aggregate(pipeline)
            operations = await cursor.to_list(length=None)
        except OperationFailure as exc:
            LOG.info(
                "$currentOp aggregation failed; falling back to the currentOp command",
                extra={"target": handle.target_id, "code": exc.code},
            )
            reply = await handle.admin.command(command)
            if plan.post_path:
                return apply_post_path(reply, plan.post_path)
            return reply.get("inprog", reply)
        if plan.post_path:
            return apply_post_path({"inprog": operations}, plan.post_path)
        return operations


def _current_op_parts(arg: Any) -> tuple[dict[str, Any], dict[str, Any], dict[str, Any]]:
    """Split a `currentOp` argument into `$currentOp` options, a `$match` filter, and a command."""

    stage: dict[str, Any] = {"allUsers": True, "idleSessions": False}
    match: dict[str, Any] = {}
    command: dict[str, Any] = {"currentOp": True}
    if arg is True:
        stage.update(idleConnections=True, idleSessions=True)
        command["$all"] = True
        return stage, match, command
    if isinstance(arg, Mapping):
        for key, value in arg.items():
            if key in _CURRENT_OP_STAGE_OPTIONS:
                stage[key] = value
            elif key == "$all":
                stage.update(idleConnections=bool(value), idleSessions=bool(value))
            else:
                match[key] = value
            command[key] = value
    return stage, match, command


async def _find_one(collection: Any, plan: QueryPlan) -> Any:
    return await collection.find_one(_filter(plan), **plan.options)


async def _aggregate(collection: Any, plan: QueryPlan) -> list[Any]:
    pipeline = plan.args[0] if plan.args else []
    cursor = await collection.aggregate(pipeline, **plan.options)
    return await cursor.to_list(length=None)


async def _count_documents(collection: Any, plan: QueryPlan) -> int:
    return await collection.count_documents(_filter(plan), **plan.options)


async def _estimated_document_count(collection: Any, plan: QueryPlan) -> int:
    return await collection.estimated_document_count(**plan.options)


async def _distinct(collection: Any, plan: QueryPlan) -> list[Any]:
    query = plan.args[1] if len(plan.args) > 1 and plan.args[1] else None
    return await collection.distinct(plan.args[0], query, **plan.options)


async def _indexes(collection: Any, plan: QueryPlan) -> list[Any]:
    cursor = await collection.list_indexes()
    return await cursor.to_list(length=None)


async def _stats(collection: Any, plan: QueryPlan) -> Any:
    return await collection.database.command("collStats", collection.name, **plan.options)


async def _insert_one(collection: Any, plan: QueryPlan) -> dict[str, Any]:
    result = await collection.insert_one(dict(plan.args[0]), **plan.options)
    if not result.acknowledged:
        return {"acknowledged": False}
    return {"acknowledged": True, "insertedId": result.inserted_id}


async def _insert_many(collection: Any, plan: QueryPlan) -> dict[str, Any]:
    documents = [dict(document) for document in plan.args[0]]
    result = await collection.insert_many(documents, **plan.options)
    if not result.acknowledged:
        return {"acknowledged": False}
    return {"acknowledged": True, "insertedIds": list(result.inserted_ids)}


async def _update_one(collection: Any, plan: QueryPlan) -> dict[str, Any]:
    result = await collection.update_one(_filter(plan), plan.args[1], **plan.options)
    return _update_result(result)


async def _update_many(collection: Any, plan: QueryPlan) -> dict[str, Any]:
    result = await collection.update_many(_filter(plan), plan.args[1], **plan.options)
    return _update_result(result)


async def _replace_one(collection: Any, plan: QueryPlan) -> dict[str, Any]:
    result = await collection.replace_one(_filter(plan), plan.args[1], **plan.options)
    return _update_result(result)


async def _delete_one(collection: Any, plan: QueryPlan) -> dict[str, Any]:
    return _delete_result(await collection.delete_one(_filter(plan), **plan.options))


async def _delete_many(collection: Any, plan: QueryPlan) -> dict[str, Any]:
    return _delete_result(await collection.delete_many(_filter(plan), **plan.options))


async def _find_one_and_update(collection: Any, plan: QueryPlan) -> Any:
    return await collection.find_one_and_update(_filter(plan), plan.args[1], **plan.options)


async def _find_one_and_replace(collection: Any, plan: QueryPlan) -> Any:
    return await collection.find_one_and_replace(_filter(plan), plan.args[1], **plan.options)


async def _find_one_and_delete(collection: Any, plan: QueryPlan) -> Any:
    return await collection.find_one_and_delete(_filter(plan), **plan.options)


async def _create_index(collection: Any, plan: QueryPlan) -> str:
    keys = list(plan.args[0].items())
    return await collection.create_index(keys, **plan.options)


async def _drop_index(collection: Any, plan: QueryPlan) -> Any:
    index = plan.args[0]
    if isinstance(index, Mapping):
        index = dict(index)
    return await collection.database.command("dropIndexes", collection.name, index=index)


_COLLECTION_HANDLERS: dict[Operation, Callable[[Any, QueryPlan], Awaitable[Any]]] = {
    Operation.FIND_ONE: _find_one,
    Operation.AGGREGATE: _aggregate,
    Operation.COUNT_DOCUMENTS: _count_documents,
    Operation.ESTIMATED_DOCUMENT_COUNT: _estimated_document_count,
    Operation.DISTINCT: _distinct,
    Operation.INDEXES: _indexes,
    Operation.STATS: _stats,
    Operation.INSERT_ONE: _insert_one,
    Operation.INSERT_MANY: _insert_many,
    Operation.UPDATE_ONE: _update_one,
    Operation.UPDATE_MANY: _update_many,
    Operation.REPLACE_ONE: _replace_one,
    Operation.DELETE_ONE: _delete_one,
    Operation.DELETE_MANY: _delete_many,
    Operation.FIND_ONE_AND_UPDATE: _find_one_and_update,
    Operation.FIND_ONE_AND_REPLACE: _find_one_and_replace,
    Operation.FIND_ONE_AND_DELETE: _find_one_and_delete,
    Operation.CREATE_INDEX: _create_index,
    Operation.DROP_INDEX: _drop_index,
}


def _filter(plan: QueryPlan) -> dict[str, Any]:
    if plan.args and isinstance(plan.args[0], Mapping):
        return dict(plan.args[0])
    return {}


def _update_result(result: Any) -> dict[str, Any]:
    if not result.acknowledged:
        return {"acknowledged": False}
    upserted_id = result.upserted_id
    return {
        "acknowledged": True,
        "matchedCount": result.matched_count,
        "modifiedCount": result.modified_count,
        "upsertedCount": 0 if upserted_id is None else 1,
        "upsertedId": upserted_id,
    }


def _delete_result(result: Any) -> dict[str, Any]:
    if not result.acknowledged:
        return {"acknowledged": False}
    return {"acknowledged": True, "deletedCount": result.deleted_count}


def _row_count(data: Any) -> int:
    if isinstance(data, (list, tuple)):
        return len(data)
    return 1


__all__ = [
    "DEFAULT_EXECUTION_TIMEOUT",
    "DEFAULT_LIMIT",
    "ExecutionResult",
    "QueryExecutor",
    "QueryFailure",
    "QuerySuccess",
    "ShellQueryExecutor",
]
