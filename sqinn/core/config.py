"""Utilities for loading sqinn launch settings from YAML configuration files."""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

DEFAULT_SQINN_PATH = "sqinn"
DEFAULT_STDERR_PREFIX = "[sqinn] "
SQINN_PATH_ENV = "SQINN_PATH"


@dataclass(slots=True)
class SqinnSettings:
    """Options for launching a sqinn child process."""

    sqinn_path: str = ""
    args: list[str] = field(default_factory=list)
    stderr_prefix: str = DEFAULT_STDERR_PREFIX
    trace_frames: bool = False
    log_dir: str | None = None
    drain_join_timeout_s: float = 5.0

    def resolve_command(self) -> list[str]:
        """Return the argv used to spawn the child.

        An empty path means the conventional ``sqinn`` executable, looked up on
        ``PATH`` the way the operating system would.
        """

        path = self.sqinn_path or DEFAULT_SQINN_PATH
        if os.sep not in path and (os.altsep is None or os.altsep not in path):
            path = shutil.which(path) or path
        return [path, *self.args]

    def resolve_log_dir(self) -> Path | None:
        if not self.log_dir:
            return None
        path = Path(self.log_dir).expanduser()
        path.mkdir(parents=True, exist_ok=True)
        return path


def _load_yaml(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def load_settings(path: str | Path) -> SqinnSettings:
    """Read configuration from *path* and return structured settings.

    The file holds a top-level ``sqinn`` mapping; a missing mapping yields the
    defaults.
    """

    config_path = Path(path)
    raw = _load_yaml(config_path)
    sqinn_raw: dict[str, Any] = raw.get("sqinn") or {}

    log_dir = sqinn_raw.get("log_dir")
    return SqinnSettings(
        sqinn_path=str(sqinn_raw.get("path", "") or ""),
        args=[str(arg) for arg in sqinn_raw.get("args", [])],
        stderr_prefix=str(sqinn_raw.get("stderr_prefix", DEFAULT_STDERR_PREFIX)),
        trace_frames=bool(sqinn_raw.get("trace_frames", False)),
        log_dir=str(log_dir) if log_dir else None,
        drain_join_timeout_s=float(sqinn_raw.get("drain_join_timeout_s", 5.0)),
    )


def settings_from_env(base: SqinnSettings | None = None) -> SqinnSettings:
    """Return *base* (or defaults) with ``SQINN_PATH`` applied when it is set."""

    settings = base if base is not None else SqinnSettings()
    override = os.getenv(SQINN_PATH_ENV)
    if override:
        return replace(settings, sqinn_path=override)
    return settings
