"""App configuration loading helpers."""

from __future__ import annotations

import os
from pathlib import Path

import tomllib

from typing import Any, Mapping

from pydantic import BaseModel, Field, PositiveFloat, PositiveInt, ValidationError

from .errors import ConfigError

CONFIG_FILE = Path.home() / ".config" / "mongopad" / "config.toml"
CONFIG_ENV_VAR = "MONGOPAD_CONFIG"


class ExecutorSettings(BaseModel):
    """Bounds applied to every query execution."""

    default_limit: PositiveInt = 100
    connect_timeout: PositiveFloat = 5.0
    execution_timeout: PositiveFloat = 30.0


class TargetConfig(BaseModel):
    """Registered document-store target stored in config.toml."""

    name: str
    uri: str | None = None
    host: str | None = None
    port: int | None = None
    database: str | None = None
    username: str | None = None
    password: str | None = None
    auth_source: str | None = None
    options: dict[str, Any] = Field(default_factory=dict)


class AppConfig(BaseModel):
    """Shape of the application configuration file."""

    executor: ExecutorSettings = Field(default_factory=ExecutorSettings)
    targets: list[TargetConfig] = Field(default_factory=list)

    def target(self, name: str) -> TargetConfig | None:
        """Return the target registered under `name`, if any."""

        for target in self.targets:
            if target.name == name:
                return target
        return None

    def target_names(self) -> tuple[str, ...]:
        return tuple(target.name for target in self.targets)


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from disk.

    The default location (or `$MONGOPAD_CONFIG`) falls back to defaults when missing or
    unreadable. An explicitly passed path must exist and parse, otherwise `ConfigError` is raised.
    """

    if path is not None:
        try:
            return _build_config(_read_config_file(path))
        except (OSError, tomllib.TOMLDecodeError, ValidationError) as exc:
            raise ConfigError(f"Could not load config from {path}: {exc}") from exc

    env_path = os.getenv(CONFIG_ENV_VAR)
    config_path = Path(env_path) if env_path else CONFIG_FILE
    try:
        data = _read_config_file(config_path)
    except FileNotFoundError:
        return AppConfig()
    except (tomllib.TOMLDecodeError, OSError):
        return AppConfig()
    try:
        return _build_config(data)
    except ValidationError:
        return AppConfig()


def _build_config(data: Mapping[str, object]) -> AppConfig:
    executor = data.get("executor")
    targets = data.get("targets")
    return AppConfig(
        executor=ExecutorSettings(**executor) if isinstance(executor, dict) else ExecutorSettings(),
        targets=[
            TargetConfig(**target)
            for target in (targets if isinstance(targets, list) else [])
            if isinstance(target, dict)
        ],
    )


def _read_config_file(path: Path) -> dict[str, object]:
    with path.open("rb") as handle:
        raw = tomllib.load(handle)
    data: dict[str, object] = {}
    executor = raw.get("executor")
    if isinstance(executor, dict):
        data["executor"] = {
            key: value
            for key, value in executor.items()
            if key in ExecutorSettings.model_fields
        }
    targets = raw.get("targets")
    if isinstance(targets, list):
        parsed_targets: list[dict[str, object]] = []
        for target in targets:
            if not isinstance(target, dict):
                continue
            parsed = {key: value for key, value in target.items() if key in TargetConfig.model_fields}
            if parsed.get("name"):
                parsed_targets.append(parsed)
        data["targets"] = parsed_targets
    return data


__all__ = [
    "AppConfig",
    "CONFIG_ENV_VAR",
    "CONFIG_FILE",
    "ExecutorSettings",
    "TargetConfig",
    "load_config",
]
