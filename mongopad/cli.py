"""Command line entry point: run one shell-syntax query against a configured target."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Sequence

from bson import json_util

from .config import AppConfig, load_config
from .errors import ConfigError, QueryError
from .plan import compile_query
from .query import ExecutionResult, QueryFailure, ShellQueryExecutor

LOG_LEVEL_ENV_VAR = "MONGOPAD_LOG_LEVEL"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mongopad",
        description="Run a db.collection.method(...) query against a registered target.",
    )
    parser.add_argument("target", nargs="?", help="Target name from the config file.")
    parser.add_argument("query", nargs="?", help="Query text; '-' or omitted reads stdin.")
    parser.add_argument("--file", type=Path, help="Read the query from a file.")
    parser.add_argument("--config", type=Path, help="Config file (default: ~/.config/mongopad/config.toml).")
    parser.add_argument("--timeout", type=float, help="Execution deadline in seconds.")
    parser.add_argument(
        "--log-level",
        default=os.getenv(LOG_LEVEL_ENV_VAR, "WARNING"),
        help="Logging level (default: $MONGOPAD_LOG_LEVEL or WARNING).",
    )
    parser.add_argument("--list-targets", action="store_true", help="List configured targets and exit.")
    parser.add_argument("--check", action="store_true", help="Validate the query without executing it.")
    return parser


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logging.getLogger("pymongo").setLevel(logging.WARNING)


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        print(exc, file=sys.stderr)
        return 2

    if args.list_targets:
        for name in config.target_names():
            print(name)
        return 0

    if args.check and args.query is None and args.file is None and args.target is not None:
        # `mongopad --check "db.users.find()"` has no target
        args.query, args.target = args.target, None
    query = _read_query(args)
    if args.check:
        try:
            plan = compile_query(query)
        except QueryError as exc:
            _print_failure(QueryFailure.from_error(exc))
            return 1
        print(f"{plan.operation.value} ({plan.operation.category.value})")
        return 0

    if not args.target:
        parser.error("a target is required unless --list-targets or --check is given")
    result = asyncio.run(run_query(config, args.target, query, timeout=args.timeout))
    if not result.ok:
        _print_failure(result)
        return 1
    print(
        json_util.dumps(
            {"data": result.data, "elapsedMillis": result.elapsed_ms, "rowCount": result.row_count},
            indent=2,
        )
    )
    return 0


async def run_query(
    config: AppConfig,
    target: str,
    query: str,
    *,
    timeout: float | None = None,
) -> ExecutionResult:
    """Execute one query and release the connection afterwards."""

    executor = ShellQueryExecutor.from_config(config)
    try:
        return await executor.execute(target, query, timeout=timeout)
    finally:
        await executor.close_all()


def _read_query(args: argparse.Namespace) -> str:
    if args.file is not None:
        return args.file.read_text()
    if args.query and args.query != "-":
        return args.query
    return sys.stdin.read()


def _print_failure(result: QueryFailure) -> None:
    print(
        json_util.dumps({"error": result.error_kind.value, "message": result.message}, indent=2),
        file=sys.stderr,
    )


__all__ = ["build_parser", "configure_logging", "main", "run_query"]
