"""Command-line front end for running SQL through a sqinn child."""

from __future__ import annotations

import argparse
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from typing import Any

from sqinn.core.config import SqinnSettings, load_settings, settings_from_env
from sqinn.core.errors import SqinnError
from sqinn.core.observability import LoggerLogSink, configure_logging
from sqinn.core.values import Row, parse_column_types
from sqinn.integrations.client import Sqinn

LOGGER = logging.getLogger(__name__)


@dataclass
class SqinnCLI:
    """Runs one CLI command against a launched client and renders the result."""

    client: Any
    output_func: Callable[[str], None] = field(default=print)

    def show_versions(self) -> None:
        self.output_func(f"sqinn {self.client.sqinn_version()}")
        self.output_func(f"io {self.client.io_version()}")
        self.output_func(f"sqlite {self.client.sqlite_version()}")

    def run_exec(self, statements: Sequence[str]) -> None:
        for sql in statements:
            changes = self.client.exec_one(sql)
            self.output_func(f"{changes}\t{sql}")

    def run_query(self, sql: str, params: Sequence[str], types: str) -> None:
        col_types = parse_column_types(types)
        rows = self.client.query(sql, list(params), col_types)
        for row in rows:
            self.output_func(_render_row(row))
        self.output_func(f"({len(rows)} rows)")


def _render_row(row: Row) -> str:
    rendered: list[str] = []
    for value in row:
        if value.is_null:
            rendered.append("NULL")
        elif isinstance(value.value, bytes):
            rendered.append(value.value.hex())
        else:
            rendered.append(str(value.value))
    return "\t".join(rendered)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run SQL statements through a sqinn child process")
    parser.add_argument("--config", default=None, help="Path to a YAML configuration file")
    parser.add_argument("--sqinn-path", default=None, help="Path to the sqinn executable")
    parser.add_argument("--db", default=":memory:", help="Database file to open")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    subcommands = parser.add_subparsers(dest="command", required=True)

    subcommands.add_parser("version", help="Print sqinn, protocol and SQLite versions")

    exec_parser = subcommands.add_parser("exec", help="Execute statements and print change counts")
    exec_parser.add_argument("sql", nargs="+", help="SQL statements, executed in order")

    query_parser = subcommands.add_parser("query", help="Run a query and print its rows")
    query_parser.add_argument("sql", help="SQL query")
    query_parser.add_argument("--types", required=True, help="Comma-separated column types, e.g. int,text")
    query_parser.add_argument("--param", action="append", default=[], help="Text bind parameter (repeatable)")
    return parser


def resolve_settings(args: argparse.Namespace) -> SqinnSettings:
    settings = load_settings(args.config) if args.config else SqinnSettings()
    settings = settings_from_env(settings)
    if args.sqinn_path:
        settings = replace(settings, sqinn_path=args.sqinn_path)
    if args.debug:
        settings = replace(settings, trace_frames=True)
    return settings


def main(argv: Sequence[str] | None = None, launcher: Callable[..., Any] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(debug=args.debug)

    if launcher is None:
        launcher = Sqinn.launch

    settings = resolve_settings(args)
    try:
        client = launcher(settings, LoggerLogSink())
    except SqinnError as exc:
        LOGGER.error("Could not launch sqinn: %s", exc)
        return 2

    cli = SqinnCLI(client=client)
    try:
        if args.command == "version":
            cli.show_versions()
            return 0
        client.open(args.db)
        try:
            if args.command == "exec":
                cli.run_exec(args.sql)
            else:
                cli.run_query(args.sql, args.param, args.types)
        finally:
            client.close()
        return 0
    except SqinnError as exc:
        LOGGER.error("%s", exc)
        return 1
    finally:
        client.terminate()


if __name__ == "__main__":
    raise SystemExit(main())
