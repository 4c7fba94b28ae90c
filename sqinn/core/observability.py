"""Log sinks receiving the sqinn child's stderr output.

The drain thread calls a sink once per stderr line. Sinks must return quickly:
a slow sink delays draining, and a full stderr pipe eventually blocks the child.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from sqinn.core.logging_utils import resolve_log_path, utc_now_iso

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"


class LogSink(Protocol):
    """Accepts one line of diagnostic text per call."""

    def log(self, line: str) -> None:  # pragma: no cover - interface
        ...


class NullLogSink(LogSink):
    """Discards every line."""

    def log(self, line: str) -> None:  # type: ignore[override]
        return None


@dataclass(slots=True)
class CallableLogSink(LogSink):
    """Adapts a plain ``Callable[[str], None]`` to the sink interface."""

    func: Callable[[str], None]

    def log(self, line: str) -> None:  # type: ignore[override]
        self.func(line)


@dataclass(slots=True)
class LoggerLogSink(LogSink):
    """Forwards lines to a standard library logger."""

    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("sqinn.child"))
    level: int = logging.INFO

    def log(self, line: str) -> None:  # type: ignore[override]
        self.logger.log(self.level, "%s", line)


@dataclass(slots=True)
class JSONLLogSink(LogSink):
    """Appends each line as a JSON record under a dedicated logs directory.

    The file name is fixed when the sink is created, so every line of one
    instance lands in the same file.
    """

    base_dir: Path
    instance_id: str = "sqinn"
    path: Path = field(init=False)

    def __post_init__(self) -> None:
        self.path = resolve_log_path(self.base_dir, self.instance_id)

    def log(self, line: str) -> None:  # type: ignore[override]
        with self.path.open("a", encoding="utf-8") as handle:
            json.dump({"timestamp": utc_now_iso(), "line": line}, handle, ensure_ascii=False)
            handle.write("\n")


def as_log_sink(sink: LogSink | logging.Logger | Callable[[str], None] | None) -> LogSink:
    """Return *sink* as a :class:`LogSink`; ``None`` becomes a no-op sink."""

    if sink is None:
        return NullLogSink()
    if isinstance(sink, logging.Logger):
        return LoggerLogSink(logger=sink)
    if hasattr(sink, "log"):
        return sink  # type: ignore[return-value]
    return CallableLogSink(func=sink)  # type: ignore[arg-type]


def configure_logging(debug: bool) -> None:
    root_logger = logging.getLogger()
    if root_logger.handlers:
        if debug:
            root_logger.setLevel(logging.DEBUG)
        return
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
    )
