"""Tests for the command line entry point."""

from __future__ import annotations

import io
import json
from pathlib import Path
from typing import Any

import pytest

from mongopad import cli
from mongopad import config as config_module
from mongopad import connections as connections_module
from mongopad.config import CONFIG_ENV_VAR, AppConfig, TargetConfig
from mongopad.errors import ErrorKind
from mongopad.models import ResolvedTarget
from mongopad.query import QueryFailure, QuerySuccess


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def _no_user_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.setattr(config_module, "CONFIG_FILE", tmp_path / "absent.toml")


def test_check_reports_operation_and_category(capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["--check", 'db.users.find({status: "active"}).limit(5)'])

    assert code == 0
    assert capsys.readouterr().out.strip() == "find (read)"


def test_check_reports_structured_failure(capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["--check", "db.users.drop()"])

    captured = capsys.readouterr()
    assert code == 1
    failure = json.loads(captured.err)
    assert failure["error"] == "unsupported_operation"
    assert "drop" in failure["message"]


def test_list_targets(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text('[[targets]]\nname = "local"\n\n[[targets]]\nname = "staging"\n')

    code = cli.main(["--config", str(config_path), "--list-targets"])

    assert code == 0
    assert capsys.readouterr().out.split() == ["local", "staging"]


def test_missing_explicit_config_exits_with_2(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["--config", str(tmp_path / "nope.toml"), "--list-targets"])

    assert code == 2
    assert "nope.toml" in capsys.readouterr().err


def test_target_is_required_for_execution() -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--file", "/dev/null"])

    assert excinfo.value.code == 2


def test_runs_query_and_prints_json(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    calls: list[tuple[str, str, float | None]] = []

    async def _run_query(config: AppConfig, target: str, query: str, *, timeout: float | None = None) -> Any:
        calls.append((target, query, timeout))
        return QuerySuccess(data=[{"_id": 1, "name": "Ada"}], elapsed_ms=3, row_count=1)

    monkeypatch.setattr(cli, "run_query", _run_query)
    query_file = tmp_path / "query.js"
    query_file.write_text("db.users.find({})\n")

    code = cli.main(["local", "--file", str(query_file), "--timeout", "2.5"])

    assert code == 0
    assert calls == [("local", "db.users.find({})\n", 2.5)]
    output = json.loads(capsys.readouterr().out)
    assert output == {"data": [{"_id": 1, "name": "Ada"}], "elapsedMillis": 3, "rowCount": 1}


def test_reads_query_from_stdin(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    async def _run_query(config: AppConfig, target: str, query: str, *, timeout: float | None = None) -> Any:
        return QueryFailure(error_kind=ErrorKind.TARGET_UNAVAILABLE, message=f"{target}: {query.strip()}")

    monkeypatch.setattr(cli, "run_query", _run_query)
    monkeypatch.setattr("sys.stdin", io.StringIO("db.users.countDocuments({})"))

    code = cli.main(["local", "-"])

    assert code == 1
    failure = json.loads(capsys.readouterr().err)
    assert failure == {"error": "target_unavailable", "message": "local: db.users.countDocuments({})"}


class _FakeAdmin:
    async def command(self, command: Any) -> dict[str, Any]:
        return {"ok": 1.0}


class _FakeDatabase:
    async def command(self, command: Any) -> dict[str, Any]:
        return {"ok": 1.0, "echo": dict(command)}


class _FakeClient:
    def __init__(self) -> None:
        self.admin = _FakeAdmin()
        self.closed = False

    def __getitem__(self, name: str) -> _FakeDatabase:
        return _FakeDatabase()

    async def close(self) -> None:
        self.closed = True


@pytest.mark.anyio
async def test_run_query_closes_connections(monkeypatch: pytest.MonkeyPatch) -> None:
    clients: list[_FakeClient] = []

    def _create_client(target: ResolvedTarget, connect_timeout: float) -> _FakeClient:
        clients.append(_FakeClient())
        return clients[-1]

    monkeypatch.setattr(connections_module, "create_client", _create_client)
    config = AppConfig(targets=[TargetConfig(name="local")])

    result = await cli.run_query(config, "local", "db.runCommand({buildInfo: 1})")

    assert isinstance(result, QuerySuccess)
    assert result.data == {"ok": 1.0, "echo": {"buildInfo": 1}}
    assert clients[0].closed is True
