"""Shared dataclasses used across the target registry and connection modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


@dataclass(frozen=True, slots=True)
class ResolvedTarget:
    """Connection parameters for one registered target, as handed over by the registry."""

    target_id: str
    uri: str | None = None
    host: str | None = None
    port: int | None = None
    database: str | None = None
    username: str | None = None
    password: str | None = field(default=None, repr=False)
    auth_source: str | None = None
    options: Mapping[str, Any] = field(default_factory=dict)

    @property
    def default_database(self) -> str:
        return self.database or "test"


__all__ = ["ResolvedTarget"]
