"""Entry point for `python -m loopwire` / `loopwire`.

Subcommands:
    loopwire test                   Check the bot token and send a test message
    loopwire send MESSAGE           Send one message
    loopwire ask QUESTION           Ask and wait for the operator's reply
    loopwire commands               Process pending operator commands once
    loopwire status                 Send the status report
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from loopwire.bridge import Bridge
from loopwire.config import get_settings
from loopwire.logger import install_excepthook


async def _test() -> int:
    async with Bridge.from_settings(get_settings()) as bridge:
        ok = await bridge.notifier.test_connection()
    if not ok:
        print("Telegram test failed. Check the bot token and chat id.", file=sys.stderr)
        return 1
    print("Test message sent. Check your Telegram.")
    return 0


async def _send(message: str) -> int:
    async with Bridge.from_settings(get_settings()) as bridge:
        result = await bridge.notifier.send(message)
    if not result.ok:
        print(f"Send failed: {result}", file=sys.stderr)
        return 1
    return 0


async def _ask(question: str, context: str | None, loop: str | None, timeout: int | None) -> int:
    async with Bridge.from_settings(get_settings()) as bridge:
        result = await bridge.ask(question, context, loop, timeout_minutes=timeout)
    if not result.ok:
        print(f"No answer: {result.outcome}", file=sys.stderr)
        return 1
    if result.answer:
        print(result.answer)
    return 0


async def _commands() -> int:
    async with Bridge.from_settings(get_settings()) as bridge:
        if not bridge.enabled:
            print("Telegram not configured.", file=sys.stderr)
            return 1
        handled = await bridge.check_commands()
    print(f"Processed {handled} command(s).")
    return 0


async def _status() -> int:
    async with Bridge.from_settings(get_settings()) as bridge:
        if not bridge.enabled:
            print("Telegram not configured.", file=sys.stderr)
            return 1
        await bridge.send_status_report()
    return 0


def main() -> None:
    install_excepthook()

    parser = argparse.ArgumentParser(
        prog="loopwire",
        description="Telegram bridge for an autonomous agent loop",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("test", help="Check the bot token and send a test message")

    send = sub.add_parser("send", help="Send one message to the configured chat")
    send.add_argument("message")

    ask = sub.add_parser("ask", help="Ask a question and print the reply")
    ask.add_argument("question")
    ask.add_argument("--context", default=None, help="Extra context shown under the question")
    ask.add_argument("--loop", default=None, help="Loop number shown with the question")
    ask.add_argument(
        "--timeout", type=int, default=None, help="Minutes to wait (default from config)"
    )

    sub.add_parser("commands", help="Process pending operator commands once")
    sub.add_parser("status", help="Send the status report")

    args = parser.parse_args()

    match args.command:
        case "test":
            code = asyncio.run(_test())
        case "send":
            code = asyncio.run(_send(args.message))
        case "ask":
            code = asyncio.run(_ask(args.question, args.context, args.loop, args.timeout))
        case "commands":
            code = asyncio.run(_commands())
        case "status":
            code = asyncio.run(_status())
        case _:
            parser.error(f"unknown command {args.command!r}")
    sys.exit(code)


if __name__ == "__main__":
    main()
