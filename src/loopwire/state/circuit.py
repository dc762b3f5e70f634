"""Circuit-breaker record shared with the host loop.

The host owns every transition except one: an operator ``/reset`` forces
the record back to CLOSED with zeroed counters.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from pathlib import Path
from typing import Any

from loopwire.utils import iso_timestamp, read_json, write_json_atomic

RESET_REASON = "Reset via Telegram command"

# Progress counters zeroed on reset.
RESET_COUNTERS = (
    "consecutive_no_progress",
    "consecutive_same_error",
    "last_progress_loop",
    "total_opens",
)


class CircuitState(StrEnum):
    CLOSED = "CLOSED"
    HALF_OPEN = "HALF_OPEN"
    OPEN = "OPEN"


def read_circuit_record(path: Path) -> dict[str, Any] | None:
    """Return the record, or None if it is missing or unparsable."""
    return read_json(path)


def reset_circuit_record(path: Path, *, now: datetime | None = None) -> str | None:
    """Force the record to CLOSED.

    Returns the previous state when a reset happened, or None when there was
    no record or it was already CLOSED (the file is left untouched).
    """
    record = read_circuit_record(path)
    if record is None:
        return None

    previous = str(record.get("state") or "UNKNOWN")
    if previous == CircuitState.CLOSED:
        return None

    reset: dict[str, Any] = {
        "state": CircuitState.CLOSED.value,
        "last_change": iso_timestamp(now),
        **{counter: 0 for counter in RESET_COUNTERS},
        "reason": RESET_REASON,
    }
    write_json_atomic(path, reset, indent=4)
    return previous
