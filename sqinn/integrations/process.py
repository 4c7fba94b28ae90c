"""Spawning, stderr draining and shutdown of the sqinn child process."""

from __future__ import annotations

import io
import logging
import subprocess
import threading
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import IO, BinaryIO

from sqinn.core.config import DEFAULT_STDERR_PREFIX
from sqinn.core.errors import LaunchError, ProcessError
from sqinn.core.observability import LogSink, NullLogSink
from sqinn.integrations.transport import FrameTransport

LOGGER = logging.getLogger(__name__)


def drain_stderr(stream: IO[bytes], sink: LogSink, prefix: str = DEFAULT_STDERR_PREFIX) -> None:
    """Forward *stream* to *sink* line by line until it reaches EOF."""

    try:
        for raw in stream:
            line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
            sink.log(f"{prefix}{line}")
    except (OSError, ValueError) as exc:
        sink.log(f"{prefix}stderr: {exc}")


@dataclass(slots=True)
class SqinnProcess:
    """A running sqinn child together with its three pipes.

    The transport built on top of the pipes shares :attr:`lock`, so shutdown
    cannot interleave with a request exchange.
    """

    proc: subprocess.Popen[bytes]
    stdin: BinaryIO
    stdout: BinaryIO
    stderr: IO[bytes]
    drain_thread: threading.Thread
    lock: threading.Lock = field(default_factory=threading.Lock)
    drain_join_timeout_s: float = 5.0

    @classmethod
    def launch(
        cls,
        command: Sequence[str],
        log_sink: LogSink | None = None,
        *,
        stderr_prefix: str = DEFAULT_STDERR_PREFIX,
        drain_join_timeout_s: float = 5.0,
    ) -> SqinnProcess:
        """Start *command* with piped stdio and begin draining its stderr."""

        argv = list(command)
        try:
            proc = subprocess.Popen(  # noqa: S603
                argv,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                bufsize=0,
            )
        except (OSError, ValueError) as exc:
            raise LaunchError(f"cannot launch {argv[0] if argv else '<empty command>'}: {exc}") from exc

        if proc.stdin is None or proc.stdout is None or proc.stderr is None:  # pragma: no cover - PIPE always set
            _close_quietly(proc.stdin, proc.stdout, proc.stderr)
            proc.kill()
            proc.wait()
            raise LaunchError(f"cannot launch {argv[0]}: stdio pipes unavailable")

        # Unbuffered pipes do short reads and writes. The buffered wrappers serve
        # whole lines to the drain thread and full frames to the transport, and
        # BufferedWriter.flush retries until a frame is completely written.
        stdin = io.BufferedWriter(proc.stdin)
        stdout = io.BufferedReader(proc.stdout)
        stderr = io.BufferedReader(proc.stderr)
        sink = log_sink if log_sink is not None else NullLogSink()
        drain_thread = threading.Thread(
            target=drain_stderr,
            args=(stderr, sink, stderr_prefix),
            name=f"sqinn-stderr-{proc.pid}",
            daemon=True,
        )
        drain_thread.start()
        LOGGER.debug("Launched sqinn pid=%s command=%s", proc.pid, argv)
        return cls(
            proc=proc,
            stdin=stdin,
            stdout=stdout,
            stderr=stderr,
            drain_thread=drain_thread,
            drain_join_timeout_s=drain_join_timeout_s,
        )

    @property
    def pid(self) -> int:
        return self.proc.pid

    def transport(self, *, trace: bool = False) -> FrameTransport:
        """Return a transport over this process' stdin/stdout sharing its lock."""

        return FrameTransport(writer=self.stdin, reader=self.stdout, lock=self.lock, trace=trace)

    def shutdown(self, transport: FrameTransport) -> None:
        """Send the shutdown frame, wait for exit and close every pipe.

        No response frame follows the shutdown request; completion is observed
        through process exit alone.
        """

        with self.lock:
            try:
                transport.write_shutdown()
                returncode = self.proc.wait()
            except OSError as exc:
                raise ProcessError(f"while waiting for sqinn to exit: {exc}") from exc
            finally:
                self.drain_thread.join(self.drain_join_timeout_s)
                _close_quietly(self.stderr, self.stdout, self.stdin)
            LOGGER.debug("sqinn pid=%s exited with status %s", self.proc.pid, returncode)
            if returncode != 0:
                raise ProcessError(f"sqinn exited with status {returncode}")


def _close_quietly(*streams: IO[bytes] | None) -> None:
    for stream in streams:
        if stream is None:
            continue
        try:
            stream.close()
        except OSError:
            LOGGER.debug("Ignoring error while closing sqinn pipe", exc_info=True)
