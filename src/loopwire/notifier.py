"""Outbound notifications.

One coroutine per notification kind, each gated by its ``[notify]`` flag,
all funnelled through :meth:`Notifier.send` which applies the quiet-hours
and throttle gate. Results are advisory: callers log and carry on.
"""

from __future__ import annotations

from enum import StrEnum

from loopwire import formatting
from loopwire.config import Settings
from loopwire.gate import SendGate
from loopwire.logger import logger
from loopwire.telegram import Transport


class Delivery(StrEnum):
    SENT = "sent"
    SUPPRESSED = "suppressed"  # quiet hours
    DISABLED = "disabled"  # kind switched off in [notify]
    SKIPPED = "skipped"  # nothing worth reporting
    NOT_CONFIGURED = "not_configured"
    FAILED = "failed"

    @property
    def ok(self) -> bool:
        return self not in (Delivery.NOT_CONFIGURED, Delivery.FAILED)

    @property
    def delivered(self) -> bool:
        """True only when a message actually reached the Bot API."""
        return self is Delivery.SENT


class Notifier:
    def __init__(self, settings: Settings, transport: Transport | None, gate: SendGate) -> None:
        self._settings = settings
        self._transport = transport
        self._gate = gate

    @property
    def agent(self) -> str:
        return self._settings.agent_name

    @property
    def configured(self) -> bool:
        return self._transport is not None and self._settings.is_configured

    async def send(self, text: str, parse_mode: str | None = "Markdown") -> Delivery:
        """Send one message to the configured chat, subject to the gate."""
        if not self.configured:
            logger.warning("Telegram not configured, skipping notification")
            return Delivery.NOT_CONFIGURED
        if self._gate.should_suppress():
            logger.info("In quiet hours, skipping notification")
            return Delivery.SUPPRESSED

        await self._gate.throttle()
        assert self._transport is not None
        assert self._settings.telegram.chat_id is not None
        sent = await self._transport.send_message(
            self._settings.telegram.chat_id, text, parse_mode
        )
        return Delivery.SENT if sent else Delivery.FAILED

    async def send_plain(self, text: str) -> Delivery:
        """Send without Markdown parsing (log tails, raw operator text)."""
        return await self.send(text, parse_mode=None)

    # -- Notification kinds ----------------------------------------------------

    async def send_loop_complete(
        self,
        loop_number: int | str,
        tasks_completed: int,
        files_modified: int,
        test_status: str | None = None,
        remaining_tasks: int | str = 0,
        work_summary: str | None = None,
        recommendation: str | None = None,
    ) -> Delivery:
        if not self._settings.notify.loop_complete:
            return Delivery.DISABLED
        if _as_int(tasks_completed) == 0 and _as_int(files_modified) == 0:
            logger.info("Skipping notification - no work done this loop", loop=loop_number)
            return Delivery.SKIPPED
        return await self.send(
            formatting.format_loop_complete(
                loop_number,
                tasks_completed,
                files_modified,
                test_status,
                remaining_tasks,
                work_summary,
                recommendation,
            )
        )

    async def send_error(
        self,
        error_message: str,
        loop_number: int | str | None = None,
        details: str | None = None,
    ) -> Delivery:
        if not self._settings.notify.error:
            return Delivery.DISABLED
        return await self.send(
            formatting.format_error(error_message, loop_number, details, agent=self.agent)
        )

    async def send_circuit_breaker(
        self,
        new_state: str,
        reason: str,
        loop_number: int | str | None = None,
    ) -> Delivery:
        if not self._settings.notify.circuit_breaker:
            return Delivery.DISABLED
        return await self.send(
            formatting.format_circuit_breaker(new_state, reason, loop_number, agent=self.agent)
        )

    async def send_rate_limit(self, calls_used: int, max_calls: int, reset_time: str) -> Delivery:
        if not self._settings.notify.rate_limit:
            return Delivery.DISABLED
        return await self.send(
            formatting.format_rate_limit(calls_used, max_calls, reset_time, agent=self.agent)
        )

    async def send_question(
        self,
        question: str,
        context: str | None = None,
        loop_number: int | str | None = None,
    ) -> Delivery:
        if not self._settings.notify.question:
            return Delivery.DISABLED
        return await self.send(
            formatting.format_question(question, context, loop_number, agent=self.agent)
        )

    async def send_startup(self, project_name: str, max_calls: int = 100) -> Delivery:
        return await self.send(
            formatting.format_startup(project_name, max_calls, agent=self.agent)
        )

    async def send_shutdown(self, reason: str, total_loops: int, exit_code: int = 0) -> Delivery:
        return await self.send(
            formatting.format_shutdown(reason, total_loops, exit_code, agent=self.agent)
        )

    async def send_status(
        self,
        loop_number: int | str,
        circuit_state: str,
        calls_remaining: int | str,
        session_id: str | None = None,
    ) -> Delivery:
        return await self.send(
            formatting.format_status(
                loop_number, circuit_state, calls_remaining, session_id, agent=self.agent
            )
        )

    # -- Connectivity ----------------------------------------------------------

    async def test_connection(self) -> bool:
        """Check the token with getMe, then send a test message."""
        if not self.configured:
            logger.error("Telegram not configured: bot token and chat id are required")
            return False
        assert self._transport is not None
        username = await self._transport.get_me()
        if username is None:
            logger.error("Invalid bot token")
            return False
        logger.info("Bot found", bot=f"@{username}")
        result = await self.send(formatting.format_test_message(agent=self.agent))
        return result.delivered


def _as_int(value: int | str | None) -> int | None:
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
