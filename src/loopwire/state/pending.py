"""Pending operator answer.

At most one free-text reply waits here for the host loop. It is written by
the reply waiter and consumed (read + deleted) exactly once by the host's
context builder.
"""

from __future__ import annotations

from pathlib import Path

from loopwire.logger import logger
from loopwire.utils import write_text_atomic


class PendingAnswer:
    def __init__(self, path: Path) -> None:
        self.path = path

    def exists(self) -> bool:
        return self.path.is_file()

    def save(self, text: str) -> None:
        write_text_atomic(self.path, text if text.endswith("\n") else f"{text}\n")
        logger.info("User response saved", path=str(self.path))

    def peek(self) -> str | None:
        try:
            return self.path.read_text(encoding="utf-8").rstrip("\n")
        except FileNotFoundError:
            return None

    def consume(self) -> str | None:
        """Return the pending answer and delete it, or None if there is none."""
        text = self.peek()
        if text is not None:
            self.path.unlink(missing_ok=True)
        return text

    def clear(self) -> None:
        """Drop any pending answer without reading it."""
        self.path.unlink(missing_ok=True)
