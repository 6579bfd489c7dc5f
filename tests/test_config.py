"""Tests for AppConfig helpers."""

from __future__ import annotations

from pathlib import Path

import pytest

from mongopad import config as config_module
from mongopad.config import CONFIG_ENV_VAR, AppConfig, ExecutorSettings, TargetConfig, load_config
from mongopad.errors import ConfigError
from mongopad.models import ResolvedTarget
from mongopad.targets import ConfigTargetRegistry, TargetNotFound, TargetRegistry


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    config_path = tmp_path / "config.toml"
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_path)
    return config_path


SAMPLE = """
[executor]
default_limit = 25
connect_timeout = 1.5
unknown_setting = "ignored"

[[targets]]
name = "local"
host = "localhost"
port = 27017
database = "app"

[[targets]]
name = "reporting"
uri = "mongodb+srv://reporter:pw@cluster.example/analytics"
auth_source = "admin"

[targets.options]
readPreference = "secondaryPreferred"

[[targets]]
host = "nameless"
"""


def test_defaults() -> None:
    config = AppConfig()

    assert config.executor == ExecutorSettings(default_limit=100, connect_timeout=5.0, execution_timeout=30.0)
    assert config.targets == []
    assert config.target("local") is None


def test_load_config_returns_defaults_when_missing() -> None:
    result = load_config()

    assert result == AppConfig()


def test_load_config_reads_values(_isolated_config: Path) -> None:
    _isolated_config.write_text(SAMPLE)

    result = load_config()

    assert result.executor.default_limit == 25
    assert result.executor.connect_timeout == 1.5
    assert result.executor.execution_timeout == 30.0
    assert result.target_names() == ("local", "reporting")
    local = result.target("local")
    assert local is not None
    assert (local.host, local.port, local.database) == ("localhost", 27017, "app")
    reporting = result.target("reporting")
    assert reporting is not None
    assert reporting.options == {"readPreference": "secondaryPreferred"}


def test_load_config_handles_toml_errors(_isolated_config: Path) -> None:
    _isolated_config.write_text("[executor\ndefault_limit = ")

    assert load_config() == AppConfig()


def test_load_config_handles_invalid_values(_isolated_config: Path) -> None:
    _isolated_config.write_text("[executor]\ndefault_limit = 0\n")

    assert load_config() == AppConfig()


def test_load_config_honours_env_var(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    custom = tmp_path / "elsewhere.toml"
    custom.write_text('[[targets]]\nname = "env-target"\n')
    monkeypatch.setenv(CONFIG_ENV_VAR, str(custom))

    assert load_config().target_names() == ("env-target",)


def test_explicit_path_must_exist(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="missing.toml"):
        load_config(tmp_path / "missing.toml")


def test_explicit_path_must_parse(tmp_path: Path) -> None:
    broken = tmp_path / "broken.toml"
    broken.write_text("[executor]\nexecution_timeout = -1\n")

    with pytest.raises(ConfigError):
        load_config(broken)


def test_explicit_path_reads_values(tmp_path: Path) -> None:
    explicit = tmp_path / "explicit.toml"
    explicit.write_text(SAMPLE)

    assert load_config(explicit).executor.default_limit == 25


@pytest.mark.anyio
async def test_config_registry_resolves_targets() -> None:
    config = AppConfig(
        targets=[
            TargetConfig(name="local", host="localhost", database="app", password="pw", options={"tls": False}),
        ]
    )
    registry = ConfigTargetRegistry(config)

    resolved = await registry.resolve_target("local")

    assert isinstance(registry, TargetRegistry)
    assert registry.target_ids == ("local",)
    assert resolved == ResolvedTarget(
        target_id="local",
        host="localhost",
        database="app",
        password="pw",
        options={"tls": False},
    )


@pytest.mark.anyio
async def test_config_registry_rejects_unknown_targets() -> None:
    registry = ConfigTargetRegistry(AppConfig())

    with pytest.raises(TargetNotFound, match="nowhere"):
        await registry.resolve_target("nowhere")
