"""Shared helpers for timestamped JSONL stderr logs."""

from __future__ import annotations

import re
from datetime import UTC, datetime
from pathlib import Path


def make_timestamp_slug(moment: datetime | None = None) -> str:
    """Return a sortable timestamp slug (UTC) suitable for filenames."""

    stamp = moment.astimezone(UTC) if moment is not None else datetime.now(UTC)
    return stamp.strftime("%Y%m%dT%H%M%S%f")[:-3]


def sanitize_instance_id(instance_id: str) -> str:
    """Sanitize *instance_id* so it can be embedded in filenames."""

    cleaned = re.sub(r"[^A-Za-z0-9_-]+", "-", instance_id.strip())
    return cleaned or "sqinn"


def resolve_log_path(base_dir: Path, instance_id: str, moment: datetime | None = None) -> Path:
    """Return a timestamp-prefixed log path for one sqinn instance, creating *base_dir*."""

    directory = base_dir.expanduser().resolve()
    directory.mkdir(parents=True, exist_ok=True)
    return directory / f"{make_timestamp_slug(moment)}-{sanitize_instance_id(instance_id)}.jsonl"


def utc_now_iso() -> str:
    """Return the current UTC time in ISO-8601 with millisecond precision."""

    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
