"""Durable Telegram update offset.

A single integer in a text file: the highest ``update_id`` already consumed.
Forward-only, so a stale write can never cause redelivery of old updates.
"""

from __future__ import annotations

from pathlib import Path

from loopwire.logger import logger
from loopwire.utils import write_text_atomic


class OffsetStore:
    def __init__(self, path: Path) -> None:
        self.path = path

    def get(self) -> int:
        """Return the stored offset, or 0 if nothing usable has been written yet."""
        try:
            raw = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return 0
        except OSError as exc:
            logger.warning("Could not read update offset", path=str(self.path), err=str(exc))
            return 0
        try:
            value = int(raw)
        except ValueError:
            logger.warning("Ignoring malformed update offset", path=str(self.path), raw=raw[:40])
            return 0
        return max(0, value)

    def set(self, offset: int) -> int:
        """Advance the offset to ``offset``; returns the value now stored.

        Writes that would move the cursor backward are ignored.
        """
        current = self.get()
        if offset <= current:
            if offset < current:
                logger.debug("Offset not moved backward", current=current, requested=offset)
            return current
        write_text_atomic(self.path, f"{offset}\n")
        return offset
