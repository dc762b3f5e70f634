"""File-backed state shared between the bridge and the host loop.

  offsets: durable update offset (forward-only)
  pending: pending operator answer slot
  flags: pause / stop marker files
  circuit: circuit-breaker record reset
  host: read-only host status, session id and log tail
"""

from loopwire.state.circuit import (
    RESET_REASON,
    CircuitState,
    read_circuit_record,
    reset_circuit_record,
)
from loopwire.state.flags import ControlFlags
from loopwire.state.host import HostStatus, read_host_status, read_session_id, tail_lines
from loopwire.state.offsets import OffsetStore
from loopwire.state.pending import PendingAnswer

__all__ = [
    "RESET_REASON",
    "CircuitState",
    "ControlFlags",
    "HostStatus",
    "OffsetStore",
    "PendingAnswer",
    "read_circuit_record",
    "read_host_status",
    "read_session_id",
    "reset_circuit_record",
    "tail_lines",
]
