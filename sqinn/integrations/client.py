"""Client for a running sqinn instance.

``Sqinn`` exposes one method per protocol opcode plus the bulk ``exec`` and
``query`` operations built on them. Every method is one atomic request/response
exchange; concurrent callers are serialized by the transport lock.

Typical use::

    with Sqinn.launch() as sq:
        sq.open(":memory:")
        sq.exec_one("CREATE TABLE users (id INTEGER PRIMARY KEY, name VARCHAR)")
        sq.exec("INSERT INTO users (id, name) VALUES (?, ?)", 2, 2, [1, "Alice", 2, "Bob"])
        rows = sq.query("SELECT id, name FROM users ORDER BY id", [], [VAL_INT, VAL_TEXT])
        sq.close()
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from typing import Any, TypeVar
from uuid import uuid4

from sqinn.core import codec
from sqinn.core.config import SqinnSettings, settings_from_env
from sqinn.core.errors import SqinnError, SqinnPanic
from sqinn.core.observability import JSONLLogSink, LogSink, as_log_sink
from sqinn.core.protocol import (
    Opcode,
    build_bind,
    build_column,
    build_exec,
    build_open,
    build_prepare,
    build_query,
    build_simple,
    decode_column,
    decode_exec,
    decode_rows,
    normalize_column_types,
)
from sqinn.core.values import AnyValue, Row, ValueType
from sqinn.integrations.process import SqinnProcess
from sqinn.integrations.statement import Statement
from sqinn.integrations.transport import FrameTransport

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class Sqinn:
    """A launched sqinn child and the protocol operations it serves."""

    def __init__(self, process: SqinnProcess, transport: FrameTransport) -> None:
        self._process = process
        self._transport = transport
        self._session_lock = threading.Lock()

    @classmethod
    def launch(
        cls,
        settings: SqinnSettings | None = None,
        log_sink: LogSink | Callable[[str], None] | None = None,
    ) -> Sqinn:
        """Start a sqinn child described by *settings*.

        Without explicit settings the defaults apply, with ``SQINN_PATH`` taken
        from the environment. When *log_sink* is omitted and the settings name a
        ``log_dir``, stderr lines go to a JSONL file there; otherwise they are
        discarded.
        """

        resolved = settings if settings is not None else settings_from_env()
        sink = as_log_sink(log_sink)
        if log_sink is None:
            log_dir = resolved.resolve_log_dir()
            if log_dir is not None:
                sink = JSONLLogSink(base_dir=log_dir, instance_id=f"sqinn-{uuid4().hex[:8]}")
        process = SqinnProcess.launch(
            resolved.resolve_command(),
            sink,
            stderr_prefix=resolved.stderr_prefix,
            drain_join_timeout_s=resolved.drain_join_timeout_s,
        )
        return cls(process, process.transport(trace=resolved.trace_frames))

    def __enter__(self) -> Sqinn:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.terminate()

    @property
    def pid(self) -> int:
        return self._process.pid

    # --- versions -------------------------------------------------------------------

    def sqinn_version(self) -> str:
        """Return the version of the sqinn executable."""

        resp = self._transport.write_and_read(build_simple(Opcode.SQINN_VERSION))
        version, _ = codec.decode_string(resp)
        return version

    def io_version(self) -> int:
        """Return the wire protocol version spoken by the child."""

        resp = self._transport.write_and_read(build_simple(Opcode.IO_VERSION))
        version, _ = codec.decode_byte(resp)
        return version

    def sqlite_version(self) -> str:
        """Return the SQLite library version the child was built with."""

        resp = self._transport.write_and_read(build_simple(Opcode.SQLITE_VERSION))
        version, _ = codec.decode_string(resp)
        return version

    # --- low-level statement lifecycle ------------------------------------------------

    def open(self, filename: str) -> None:
        """Open a database; *filename* is ``":memory:"`` or a filesystem path.

        The database stays open until :meth:`close`. Every ``open`` should be
        paired with a ``close``.
        """

        self._transport.write_and_read(build_open(filename))

    def prepare(self, sql: str) -> None:
        """Prepare *sql* as the child's single active statement.

        Preparing while another statement is still active is rejected by the
        child and surfaces as :class:`~sqinn.core.errors.RemoteError`. Prefer
        :meth:`statement`, which always finalizes.
        """

        self._transport.write_and_read(build_prepare(sql))

    def bind(self, iparam: int, value: Any) -> None:
        """Bind *value* to the 1-based parameter *iparam* of the active statement.

        *value* may be ``None``, ``int``, ``float``, ``str``, bytes-like or an
        :class:`AnyValue`. A ``bool`` binds as INT ``0``/``1``, which is how
        SQLite stores booleans. Ints outside int32 bind as INT64.
        """

        self._transport.write_and_read(build_bind(iparam, value))

    def step(self) -> bool:
        """Advance the active statement; ``True`` while a row is available."""

        resp = self._transport.write_and_read(build_simple(Opcode.STEP))
        more, _ = codec.decode_bool(resp)
        return more

    def reset(self) -> None:
        self._transport.write_and_read(build_simple(Opcode.RESET))

    def changes(self) -> int:
        """Return the number of rows modified by the last statement."""

        resp = self._transport.write_and_read(build_simple(Opcode.CHANGES))
        count, _ = codec.decode_int32(resp)
        return count

    def column(self, icol: int, col_type: ValueType | int | str) -> AnyValue:
        """Read the 0-based column *icol* of the current row as *col_type*."""

        payload, resolved = build_column(icol, col_type)
        resp = self._transport.write_and_read(payload)
        value, _ = decode_column(resp, resolved)
        return value

    def finalize(self) -> None:
        """Release the active statement; required before the next ``prepare``."""

        self._transport.write_and_read(build_simple(Opcode.FINALIZE))

    def close(self) -> None:
        """Close the database opened with :meth:`open`."""

        self._transport.write_and_read(build_simple(Opcode.CLOSE))

    @contextmanager
    def statement(self, sql: str) -> Iterator[Statement]:
        """Prepare *sql* for exclusive use and finalize it on exit.

        Only one statement session exists per client at a time; a second caller
        blocks until the first session ends.
        """

        with self._session_lock:
            self.prepare(sql)
            stmt = Statement(client=self, sql=sql)
            try:
                yield stmt
            finally:
                stmt.release()
                self.finalize()

    # --- bulk operations --------------------------------------------------------------

    def exec(self, sql: str, niterations: int, nparams: int, values: Sequence[Any] | None = None) -> list[int]:
        """Run *sql* *niterations* times, binding *nparams* values per iteration.

        *values* holds ``niterations * nparams`` values in iteration-major
        order. The child prepares once, then binds, steps and resets for each
        iteration, and finalizes. Returns the modified-row count of every
        iteration, so the result always has *niterations* entries.
        """

        bound = list(values or [])
        resp = self._transport.write_and_read(build_exec(sql, niterations, nparams, bound))
        return decode_exec(resp, niterations)

    def exec_one(self, sql: str) -> int:
        """Execute *sql* once without parameters and return its change count.

        Useful for DDL and transaction control, e.g. ``exec_one("BEGIN")``.
        """

        return self.exec(sql, 1, 0, [])[0]

    def query(
        self,
        sql: str,
        values: Sequence[Any] | None,
        col_types: Sequence[ValueType | int | str],
    ) -> list[Row]:
        """Run *sql* with *values* bound and return every result row.

        *col_types* declares the type of each result column; the protocol does
        not describe its own schema. All rows are materialized before this
        returns, so bound the result in SQL (``LIMIT``) when it may be large.
        """

        bound = list(values or [])
        resolved = normalize_column_types(col_types)
        resp = self._transport.write_and_read(build_query(sql, bound, resolved))
        return decode_rows(resp, resolved)

    # --- panic-on-error wrappers ------------------------------------------------------

    def must_exec(self, sql: str, niterations: int, nparams: int, values: Sequence[Any] | None = None) -> list[int]:
        return _must(lambda: self.exec(sql, niterations, nparams, values))

    def must_exec_one(self, sql: str) -> int:
        return _must(lambda: self.exec_one(sql))

    def must_query(
        self,
        sql: str,
        values: Sequence[Any] | None,
        col_types: Sequence[ValueType | int | str],
    ) -> list[Row]:
        return _must(lambda: self.query(sql, values, col_types))

    # --- lifecycle --------------------------------------------------------------------

    def terminate(self) -> None:
        """Shut the child down and release its pipes.

        The instance must not be used afterwards; further calls fail with
        :class:`~sqinn.core.errors.TransportError`.
        """

        LOGGER.debug("Terminating sqinn pid=%s", self._process.pid)
        self._process.shutdown(self._transport)


def _must(call: Callable[[], T]) -> T:
    try:
        return call()
    except SqinnError as exc:
        raise SqinnPanic(str(exc)) from exc
