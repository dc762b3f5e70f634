"""Outbound send gate: quiet-hours suppression and minimum-interval throttling.

Quiet hours silently drop notifications (no queuing). Throttling delays
the caller so consecutive sends are at least ``min_interval`` apart.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from datetime import datetime

from loopwire.config import QuietHoursConfig


def in_quiet_hours(now: str, start: str, end: str) -> bool:
    """Check whether the ``HH:MM`` time ``now`` falls inside ``[start, end)``.

    A window whose start sorts after its end wraps midnight
    (e.g. 23:00 → 07:00). The start boundary itself is inside.
    """
    if start > end:
        return now >= start or now < end
    return start <= now < end


class SendGate:
    """Per-process gate holding the last-send cursor.

    All clocks are injectable so tests can run without waiting.
    """

    def __init__(
        self,
        quiet_hours: QuietHoursConfig,
        min_interval: float = 1.0,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        wall_clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._quiet_hours = quiet_hours
        self._min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._wall_clock = wall_clock
        self._last_send: float | None = None

    def should_suppress(self, now: datetime | None = None) -> bool:
        if not self._quiet_hours.enabled:
            return False
        current = (now or self._wall_clock()).strftime("%H:%M")
        return in_quiet_hours(current, self._quiet_hours.start, self._quiet_hours.end)

    async def throttle(self) -> float:
        """Wait out the remainder of the minimum interval, then record a send.

        Returns the number of seconds slept.
        """
        waited = 0.0
        if self._last_send is not None:
            remaining = self._min_interval - (self._clock() - self._last_send)
            if remaining > 0:
                await self._sleep(remaining)
                waited = remaining
        self._last_send = self._clock()
        return waited
