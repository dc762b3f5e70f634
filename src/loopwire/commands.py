"""Operator slash commands.

Detects ``/command args`` messages and runs the matching handler. Handlers
act only through notifications, the pause/stop flag files and the
circuit-breaker record; they never touch the update offset or the
pending-answer slot.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from loopwire import formatting
from loopwire.config import Settings
from loopwire.logger import logger
from loopwire.notifier import Notifier
from loopwire.state import (
    ControlFlags,
    read_circuit_record,
    read_host_status,
    read_session_id,
    reset_circuit_record,
    tail_lines,
)

DEFAULT_LOG_LINES = 10
MAX_LOG_LINES = 20
# Telegram caps messages at 4096 characters; leave room for the header.
MAX_LOG_BYTES = 3000


def is_command(text: str) -> bool:
    """True iff the message starts with ``/``."""
    return text.startswith("/")


def parse_command(text: str) -> tuple[str, str]:
    """Split ``/Cmd@bot arg1 arg2`` into ``("/cmd", "arg1 arg2")``."""
    parts = text.strip().split(None, 1)
    if not parts:
        return "", ""
    name = parts[0].casefold().split("@", 1)[0]
    args = parts[1].strip() if len(parts) > 1 else ""
    return name, args


def parse_log_count(args: str) -> int:
    """First argument as a line count: default 10, clamped to 1..20."""
    words = args.split()
    if not words or not words[0].isdecimal():
        return DEFAULT_LOG_LINES
    return max(1, min(int(words[0]), MAX_LOG_LINES))


Handler = Callable[[str], Awaitable[None]]


class CommandDispatcher:
    def __init__(self, settings: Settings, notifier: Notifier, flags: ControlFlags) -> None:
        self._settings = settings
        self._notifier = notifier
        self._flags = flags
        self._handlers: dict[str, Handler] = {
            "/help": self.cmd_help,
            "/status": self.cmd_status,
            "/pause": self.cmd_pause,
            "/resume": self.cmd_resume,
            "/reset": self.cmd_reset,
            "/stop": self.cmd_stop,
            "/logs": self.cmd_logs,
            "/skip": self.cmd_skip,
        }

    @property
    def commands(self) -> list[str]:
        return list(self._handlers)

    @property
    def _agent(self) -> str:
        return self._settings.agent_name

    async def dispatch(self, text: str) -> bool:
        """Run the command in ``text``. Returns False if it is not a command."""
        if not is_command(text):
            return False

        name, args = parse_command(text)
        logger.info("Received command", command=name)

        handler = self._handlers.get(name)
        if handler is None:
            await self._notifier.send(
                f"Unknown command: {name}\n\nType /help for available commands."
            )
            return True

        await handler(args)
        return True

    # -- Handlers ----------------------------------------------------------------

    async def cmd_help(self, args: str) -> None:
        await self._notifier.send(formatting.format_help(agent=self._agent))

    async def cmd_status(self, args: str) -> None:
        s = self._settings
        report = formatting.format_status_report(
            read_host_status(s.path("status_file")),
            read_circuit_record(s.path("circuit_breaker_file")),
            paused=self._flags.paused,
            stop_requested=self._flags.stop_requested,
            session_id=read_session_id(s.path("session_file")),
            agent=self._agent,
        )
        await self._notifier.send(report)

    async def cmd_pause(self, args: str) -> None:
        if not self._flags.request_pause():
            await self._notifier.send(f"{self._agent} is already paused.")
            return
        logger.info("Pause requested via Telegram")
        await self._notifier.send(
            "*Pause requested*\n\n"
            f"{self._agent} will pause after the current loop completes.\n\n"
            "Use /resume to continue."
        )

    async def cmd_resume(self, args: str) -> None:
        if not self._flags.resume():
            await self._notifier.send(f"{self._agent} is not paused.")
            return
        logger.info("Resume requested via Telegram")
        await self._notifier.send(
            f"*Resumed*\n\n{self._agent} will continue with the next loop."
        )

    async def cmd_reset(self, args: str) -> None:
        path = self._settings.path("circuit_breaker_file")
        record = read_circuit_record(path)
        if record is None:
            await self._notifier.send("No circuit breaker state found.")
            return

        previous = reset_circuit_record(path)
        if previous is None:
            await self._notifier.send("Circuit breaker is already CLOSED (normal).")
            return

        logger.info("Circuit breaker reset via Telegram", previous_state=previous)
        await self._notifier.send(
            "*Circuit Breaker Reset*\n\n"
            f"State changed from {previous} to CLOSED.\n\n"
            f"{self._agent} can now continue executing."
        )

    async def cmd_stop(self, args: str) -> None:
        if not self._flags.request_stop():
            await self._notifier.send("Stop already requested.")
            return
        logger.info("Stop requested via Telegram")
        await self._notifier.send(
            "*Stop requested*\n\n"
            f"{self._agent} will stop gracefully after the current loop.\n\n"
            f"This cannot be undone remotely - you'll need to restart {self._agent} manually."
        )

    async def cmd_logs(self, args: str) -> None:
        count = parse_log_count(args)
        logs = tail_lines(self._settings.path("log_file"), count, max_bytes=MAX_LOG_BYTES)
        if logs is None:
            await self._notifier.send("No log file found.")
            return
        if not logs.strip():
            await self._notifier.send("Log file is empty.")
            return
        await self._notifier.send_plain(f"Recent logs (last {count}):\n\n{logs}")

    async def cmd_skip(self, args: str) -> None:
        # Skipping only means something while a question is pending; the
        # reply waiter handles it there.
        logger.info("Skip command acknowledged")
