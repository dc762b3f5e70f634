"""The bridge object handed to the host loop.

Built once per process from :class:`~loopwire.config.Settings`. Holds the
transport, the send gate (and with it the last-send cursor), the durable
stores, the notifier, the reply waiter and the command dispatcher.

Typical host usage::

    async with Bridge.from_settings(get_settings()) as bridge:
        await bridge.notifier.send_startup("my-project", max_calls=100)
        ...
        await bridge.check_commands()
        if bridge.flags.stop_requested:
            ...
        result = await bridge.ask("Which API style?")
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable

from loopwire.commands import CommandDispatcher, is_command
from loopwire.config import Settings
from loopwire.gate import SendGate
from loopwire.logger import attach_log_file, logger, set_level
from loopwire.notifier import Notifier
from loopwire.replies import ReplyResult, ReplyWaiter
from loopwire.state import ControlFlags, OffsetStore, PendingAnswer
from loopwire.telegram import TelegramClient, Transport

# Quick poll used between host iterations.
COMMAND_POLL_WAIT_SECONDS = 1


class Bridge:
    def __init__(
        self,
        settings: Settings,
        transport: Transport | None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.transport = transport
        self.gate = SendGate(
            settings.quiet_hours,
            settings.rate_limit.min_interval,
            clock=clock,
            sleep=sleep,
        )
        self.offsets = OffsetStore(settings.path("offset_file"))
        self.pending = PendingAnswer(settings.path("pending_answer_file"))
        self.flags = ControlFlags(settings.path("pause_flag"), settings.path("stop_flag"))
        self.notifier = Notifier(settings, transport, self.gate)
        self.replies = ReplyWaiter(
            settings,
            transport,
            self.notifier,
            self.offsets,
            self.pending,
            clock=clock,
            sleep=sleep,
        )
        self.commands = CommandDispatcher(settings, self.notifier, self.flags)

    @classmethod
    def from_settings(cls, settings: Settings) -> Bridge:
        """Build a bridge with a real Bot API client (or none if unconfigured)."""
        if settings.debug:
            set_level("DEBUG")
        attach_log_file(settings.path("log_file"))

        transport: TelegramClient | None = None
        if settings.is_configured:
            assert settings.telegram.bot_token is not None
            transport = TelegramClient(
                settings.telegram.bot_token.get_secret_value(),
                api_url=settings.telegram.api_url,
                request_timeout=settings.telegram.request_timeout,
                max_retries=settings.rate_limit.max_retries,
                retry_delay=settings.rate_limit.retry_delay,
            )
        else:
            logger.info("Telegram notifications disabled or not configured")
        return cls(settings, transport)

    async def __aenter__(self) -> Bridge:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        if isinstance(self.transport, TelegramClient):
            await self.transport.close()

    @property
    def enabled(self) -> bool:
        return self.notifier.configured

    async def ask(
        self,
        question: str,
        context: str | None = None,
        loop_number: int | str | None = None,
        *,
        timeout_minutes: int | None = None,
        cancel: asyncio.Event | None = None,
    ) -> ReplyResult:
        return await self.replies.ask(
            question,
            context,
            loop_number,
            timeout_minutes=timeout_minutes,
            cancel=cancel,
        )

    # -- Host helpers ----------------------------------------------------------

    def has_pending_response(self) -> bool:
        return self.pending.exists()

    def get_pending_response(self) -> str | None:
        """Consume the operator's answer; a second call returns None."""
        return self.pending.consume()

    def clear_pending_response(self) -> None:
        self.pending.clear()

    def should_pause(self) -> bool:
        return self.flags.paused

    def should_stop(self) -> bool:
        return self.flags.stop_requested

    def clear_pause_flag(self) -> None:
        self.flags.clear_pause()

    def clear_stop_flag(self) -> None:
        self.flags.clear_stop()

    async def send_status_report(self) -> None:
        """Send the same report ``/status`` replies with."""
        await self.commands.cmd_status("")

    async def check_commands(self) -> int:
        """Poll once and run any commands the operator sent.

        Every returned update is consumed; free text is dropped. Returns the
        number of commands dispatched.
        """
        if self.transport is None or not self.settings.is_configured:
            return 0

        updates = await self.transport.get_updates(
            self.offsets.get(), COMMAND_POLL_WAIT_SECONDS
        )
        if not updates:
            return 0

        handled = 0
        for update in updates:
            self.offsets.set(update.update_id)
            if update.chat_id != self.settings.telegram.chat_id:
                logger.warning("Ignoring message from unauthorized chat", chat_id=update.chat_id)
                continue
            text = update.text.strip()
            if not text:
                continue
            if is_command(text):
                await self.commands.dispatch(text)
                handled += 1
            else:
                logger.debug("Ignoring free text outside a question", preview=text[:50])
        return handled
