"""Target registry interface and the config-file backed implementation."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from .config import AppConfig, TargetConfig
from .models import ResolvedTarget


class TargetNotFound(LookupError):
    """Raised when a registry has no target under the requested id."""


@runtime_checkable
class TargetRegistry(Protocol):
    """Resolves a target id to connection parameters (credentials already decrypted)."""

    async def resolve_target(self, target_id: str) -> ResolvedTarget:
        """Return connection parameters or raise `TargetNotFound`."""


class ConfigTargetRegistry:
    """Registry reading targets from the `[[targets]]` tables of config.toml."""

    def __init__(self, config: AppConfig) -> None:
        self._targets = {target.name: target for target in config.targets}

    @property
    def target_ids(self) -> tuple[str, ...]:
        return tuple(self._targets)

    async def resolve_target(self, target_id: str) -> ResolvedTarget:
        try:
            entry = self._targets[target_id]
        except KeyError:
            raise TargetNotFound(f"Target '{target_id}' not found.") from None
        return self._from_config(entry)

    @staticmethod
    def _from_config(target: TargetConfig) -> ResolvedTarget:
        return ResolvedTarget(
            target_id=target.name,
            uri=target.uri,
            host=target.host,
            port=target.port,
            database=target.database,
            username=target.username,
            password=target.password,
            auth_source=target.auth_source,
            options=dict(target.options),
        )


__all__ = ["ConfigTargetRegistry", "TargetNotFound", "TargetRegistry"]
