"""Shared utility functions.

Small helpers used across the state modules: atomic file writes and the
timestamp formats that appear in notifications and the circuit-breaker record.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any


def write_text_atomic(path: Path, text: str) -> None:
    """Write text using atomic rename (tmp -> final).

    Readers either see the old content or the complete new content.
    Creates parent directories if they don't exist.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f"{path.name}.tmp")
    tmp.write_text(text, encoding="utf-8")
    tmp.replace(path)


def write_json_atomic(path: Path, data: Any, *, indent: int | None = None) -> None:
    """Write JSON data to a file using atomic rename."""
    write_text_atomic(path, json.dumps(data, indent=indent))


def read_json(path: Path) -> dict[str, Any] | None:
    """Read a JSON object, returning None when missing, unreadable or not an object."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, UnicodeDecodeError):
        return None
    return data if isinstance(data, dict) else None


def basic_timestamp(now: datetime | None = None) -> str:
    """Local wall-clock time as shown to the operator (``2026-01-31 14:05:09``)."""
    return (now or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")


def iso_timestamp(now: datetime | None = None) -> str:
    """UTC ISO-8601 timestamp for records shared with the host."""
    return (now or datetime.now(UTC)).isoformat()
