"""Per-target connection cache backed by the pymongo async client."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, AsyncIterator, Callable

from pymongo import AsyncMongoClient

from .errors import TargetUnavailable
from .models import ResolvedTarget
from .targets import TargetRegistry

LOG = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT = 5.0

ClientFactory = Callable[[ResolvedTarget, float], Any]


class ConnectionState(str, Enum):
    """Health of a cached connection."""

    READY = "ready"
    BROKEN = "broken"


@dataclass(frozen=True, slots=True)
class StoreHandle:
    """An established client bound to the target's default database."""

    target_id: str
    client: Any
    database_name: str

    @property
    def database(self) -> Any:
        return self.client[self.database_name]

    @property
    def admin(self) -> Any:
        return self.client.admin


@dataclass(slots=True)
class CacheEntry:
    """Cached handle plus bookkeeping; owned by `ConnectionCache`."""

    target_id: str
    handle: StoreHandle
    state: ConnectionState
    last_used: datetime


def create_client(target: ResolvedTarget, connect_timeout: float) -> AsyncMongoClient:
    """Build (but do not verify) an async client for `target`."""

    return AsyncMongoClient(**client_kwargs(target, connect_timeout))


def client_kwargs(target: ResolvedTarget, connect_timeout: float) -> dict[str, Any]:
    kwargs: dict[str, Any] = {}
    if target.uri:
        kwargs["host"] = target.uri
    else:
        kwargs["host"] = target.host or "localhost"
        if target.port is not None:
            kwargs["port"] = target.port
    if target.username:
        kwargs["username"] = target.username
    if target.password:
        kwargs["password"] = target.password
    if target.auth_source:
        kwargs["authSource"] = target.auth_source
    for key, value in target.options.items():
        kwargs.setdefault(key, value)
    timeout_ms = int(connect_timeout * 1000)
    kwargs.setdefault("connectTimeoutMS", timeout_ms)
    kwargs.setdefault("serverSelectionTimeoutMS", timeout_ms)
    kwargs.setdefault("tz_aware", True)
    kwargs.setdefault("retryReads", False)
    kwargs.setdefault("retryWrites", False)
    return kwargs


class ConnectionCache:
    """Lazily establishes and reuses one store handle per target id.

    Establishment for a given target is serialized behind a per-target lock, so concurrent
    `acquire` calls share a single connection attempt. Distinct targets never wait on each other.
    """

    def __init__(
        self,
        registry: TargetRegistry,
        *,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._registry = registry
        self._connect_timeout = connect_timeout
        self._client_factory = client_factory or create_client
        self._entries: dict[str, CacheEntry] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    async def __aenter__(self) -> ConnectionCache:
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.close_all()

    async def acquire(self, target_id: str) -> StoreHandle:
        """Return a live handle for `target_id`, connecting if needed."""

        async with self._target_lock(target_id):
            entry = self._entries.get(target_id)
            if entry is not None:
                if await self._is_alive(entry.handle):
                    entry.last_used = _now()
                    return entry.handle
                entry.state = ConnectionState.BROKEN
                LOG.warning("Cached connection failed liveness probe", extra={"target": target_id})
                await self._evict(target_id)
            entry = await self._establish(target_id)
            self._entries[target_id] = entry
            return entry.handle

    async def close(self, target_id: str) -> None:
        """Tear down and forget the handle for `target_id` (no-op when absent)."""

        async with self._target_lock(target_id):
            await self._evict(target_id)

    async def close_all(self) -> None:
        """Tear down every cached handle."""

        for target_id in tuple(self._entries):
            await self.close(target_id)

    def entries(self) -> tuple[CacheEntry, ...]:
        """Snapshot of the cached entries (diagnostics helper)."""

        return tuple(replace(entry) for entry in self._entries.values())

    def __contains__(self, target_id: object) -> bool:
        return target_id in self._entries

    @contextlib.asynccontextmanager
    async def _target_lock(self, target_id: str) -> AsyncIterator[None]:
        """Hold the per-target lock; it is dropped once unused and no entry is cached."""

        lock = self._locks.get(target_id)
        if lock is None:
            lock = self._locks[target_id] = asyncio.Lock()
        self._lock_users[target_id] = self._lock_users.get(target_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._lock_users.pop(target_id) - 1
            if remaining:
                self._lock_users[target_id] = remaining
            elif target_id not in self._entries:
                del self._locks[target_id]

    async def _establish(self, target_id: str) -> CacheEntry:
        try:
            target = await self._registry.resolve_target(target_id)
        except Exception as exc:
            raise TargetUnavailable(target_id, str(exc)) from exc
        try:
            client = self._client_factory(target, self._connect_timeout)
        except Exception as exc:
            raise TargetUnavailable(target_id, str(exc)) from exc
        try:
            await self._ping(client)
        except Exception as exc:
            await _close_client(client, target_id)
            LOG.warning("Failed to connect to target", extra={"target": target_id})
            raise TargetUnavailable(target_id, self._describe(exc)) from exc
        except BaseException:
            await _close_client(client, target_id)
            raise
        LOG.info(
            "Established connection",
            extra={"target": target_id, "database": target.default_database},
        )
        handle = StoreHandle(target_id=target_id, client=client, database_name=target.default_database)
        return CacheEntry(
            target_id=target_id,
            handle=handle,
            state=ConnectionState.READY,
            last_used=_now(),
        )

    async def _is_alive(self, handle: StoreHandle) -> bool:
        try:
            await self._ping(handle.client)
        except Exception:
            return False
        return True

    async def _ping(self, client: Any) -> None:
        await asyncio.wait_for(client.admin.command("ping"), timeout=self._connect_timeout)

    async def _evict(self, target_id: str) -> None:
        entry = self._entries.pop(target_id, None)
        if entry is None:
            return
        await _close_client(entry.handle.client, target_id)
        LOG.info("Closed connection", extra={"target": target_id})

    def _describe(self, exc: Exception) -> str:
        if isinstance(exc, asyncio.TimeoutError):
            return f"connection attempt timed out after {self._connect_timeout:g}s"
        return str(exc) or type(exc).__name__


async def _close_client(client: Any, target_id: str) -> None:
    try:
        await client.close()
    except Exception:  # pragma: no cover - best effort cleanup
        LOG.debug("Error while closing client", exc_info=True, extra={"target": target_id})


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


__all__ = [
    "CacheEntry",
    "ClientFactory",
    "ConnectionCache",
    "ConnectionState",
    "DEFAULT_CONNECT_TIMEOUT",
    "StoreHandle",
    "client_kwargs",
    "create_client",
]
