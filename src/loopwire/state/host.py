"""Read-only views of the host loop's own files.

Every reader degrades to None on absence or corruption so that status
reports can render whatever sections are available.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from loopwire.utils import read_json


@dataclass
class HostStatus:
    loop: Any = 0
    calls_made: Any = 0
    state: str = "unknown"


def read_host_status(path: Path) -> HostStatus | None:
    data = read_json(path)
    if data is None:
        return None
    return HostStatus(
        loop=data.get("loop", 0),
        calls_made=data.get("calls_made", 0),
        state=str(data.get("state") or "unknown"),
    )


def read_session_id(path: Path) -> str | None:
    """First line of the session file, or None if absent / empty."""
    try:
        with path.open(encoding="utf-8") as f:
            first = f.readline().strip()
    except (OSError, UnicodeDecodeError):
        return None
    return first or None


def tail_lines(path: Path, count: int, *, max_bytes: int | None = None) -> str | None:
    """Last ``count`` lines of a text file, optionally cut to ``max_bytes``.

    Streams the file so only ``count`` lines are held in memory. Returns
    None if the file does not exist.
    """
    try:
        with path.open(encoding="utf-8", errors="replace") as f:
            lines = deque(f, maxlen=max(count, 0))
    except FileNotFoundError:
        return None
    text = "\n".join(line.rstrip("\r\n") for line in lines)
    if max_bytes is not None:
        encoded = text.encode("utf-8")
        if len(encoded) > max_bytes:
            text = encoded[:max_bytes].decode("utf-8", errors="ignore")
    return text
