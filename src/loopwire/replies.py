"""Ask the operator a question and wait for the answer.

    IDLE -> QUESTION_SENT -> ANSWERED | SKIPPED | TIMED_OUT | SEND_FAILED

The wait is a loop of bounded long-poll sub-waits, so the host can cancel
between them (``cancel`` event or ordinary task cancellation). Every
observed update advances the durable offset before it is inspected, which
means rejected updates are never redelivered.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum

from loopwire.config import Settings
from loopwire.logger import logger
from loopwire.notifier import Delivery, Notifier
from loopwire.state import OffsetStore, PendingAnswer
from loopwire.telegram import Transport, Update

SKIP_COMMAND = "/skip"

# Sub-wait used once before polling to flush messages sent before the question.
DRAIN_WAIT_SECONDS = 1

# Heartbeat log cadence while waiting.
PROGRESS_EVERY_SECONDS = 300

# Pause after a failed getUpdates call before trying again.
POLL_FAILURE_BACKOFF_SECONDS = 5

SKIP_ACK = "Skipping question. {agent} will decide."
ANSWER_ACK = "Got it! Continuing with your answer."
TIMEOUT_NOTICE = "Question timed out after {minutes} minutes. {agent} will continue."


class ReplyOutcome(StrEnum):
    ANSWERED = "answered"
    SKIPPED = "skipped"
    TIMED_OUT = "timed_out"
    SEND_FAILED = "send_failed"
    INVALID = "invalid"  # empty question
    NOT_CONFIGURED = "not_configured"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ReplyResult:
    outcome: ReplyOutcome
    answer: str = ""

    @property
    def ok(self) -> bool:
        """Answered or deliberately skipped: the host may continue with ``answer``."""
        return self.outcome in (ReplyOutcome.ANSWERED, ReplyOutcome.SKIPPED)


class ReplyWaiter:
    """Runs one question/answer exchange at a time over the shared transport."""

    def __init__(
        self,
        settings: Settings,
        transport: Transport | None,
        notifier: Notifier,
        offsets: OffsetStore,
        pending: PendingAnswer,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._notifier = notifier
        self._offsets = offsets
        self._pending = pending
        self._clock = clock
        self._sleep = sleep
        self._wall_clock = wall_clock

    async def ask(
        self,
        question: str,
        context: str | None = None,
        loop_number: int | str | None = None,
        *,
        timeout_minutes: int | None = None,
        cancel: asyncio.Event | None = None,
    ) -> ReplyResult:
        """Send ``question`` and block until answered, skipped or timed out.

        ANSWERED persists the text to the pending-answer file and confirms
        receipt. SKIPPED and TIMED_OUT leave no pending answer behind. A
        question held back by quiet hours or ``notify.question`` still waits
        for a reply.
        """
        if not question or not question.strip():
            logger.error("No question provided")
            return ReplyResult(ReplyOutcome.INVALID)
        if not self._notifier.configured:
            logger.warning("Telegram not configured, cannot ask question")
            return ReplyResult(ReplyOutcome.NOT_CONFIGURED)

        asked_at = self._wall_clock()
        delivery = await self._notifier.send_question(question, context, loop_number)
        if delivery is Delivery.FAILED:
            logger.error("Failed to send question to Telegram")
            return ReplyResult(ReplyOutcome.SEND_FAILED)
        if delivery is Delivery.NOT_CONFIGURED:
            return ReplyResult(ReplyOutcome.NOT_CONFIGURED)
        if not delivery.delivered:
            logger.info("Question held back, waiting anyway", delivery=str(delivery))

        result = await self.wait_for_reply(timeout_minutes, cancel=cancel, asked_at=asked_at)

        if result.outcome is ReplyOutcome.ANSWERED:
            self._pending.save(result.answer)
            await self._notifier.send(ANSWER_ACK)
        elif result.outcome is not ReplyOutcome.CANCELLED:
            self._pending.clear()
        return result

    async def wait_for_reply(
        self,
        timeout_minutes: int | None = None,
        *,
        cancel: asyncio.Event | None = None,
        asked_at: float | None = None,
    ) -> ReplyResult:
        """Poll until a message from the configured chat arrives or time runs out.

        Does not send the question and does not touch the pending-answer
        file; :meth:`ask` wraps it with both. Messages dated at or after
        ``asked_at`` (unix seconds) survive the initial drain.
        """
        if self._transport is None or not self._settings.is_configured:
            logger.warning("Telegram not configured, cannot wait for reply")
            return ReplyResult(ReplyOutcome.NOT_CONFIGURED)

        minutes = timeout_minutes
        if minutes is None:
            minutes = self._settings.question.timeout_minutes
        timeout_seconds = minutes * 60
        poll_interval = self._settings.question.poll_interval

        logger.info("Waiting for Telegram reply", timeout_minutes=minutes)

        started = self._clock()
        fresh = await self._drain_stale_updates(asked_at)
        reply = self._take_reply(fresh)
        if reply is not None:
            return await self._resolve(reply)

        last_progress_bucket = 0
        while True:
            elapsed = self._clock() - started
            if elapsed >= timeout_seconds:
                break
            if cancel is not None and cancel.is_set():
                logger.info("Reply wait cancelled", elapsed_seconds=round(elapsed))
                return ReplyResult(ReplyOutcome.CANCELLED)

            wait = max(1, min(poll_interval, int(timeout_seconds - elapsed)))
            updates = await self._transport.get_updates(self._offsets.get(), wait)
            if updates is None:
                await self._sleep(min(poll_interval, POLL_FAILURE_BACKOFF_SECONDS))
            else:
                reply = self._take_reply(updates)
                if reply is not None:
                    return await self._resolve(reply)

            elapsed = self._clock() - started
            bucket = int(elapsed // PROGRESS_EVERY_SECONDS)
            if bucket > last_progress_bucket and elapsed < timeout_seconds:
                last_progress_bucket = bucket
                remaining = int((timeout_seconds - elapsed) // 60)
                logger.info("Still waiting for reply", minutes_remaining=remaining)

        logger.warning("Timeout waiting for Telegram reply", timeout_minutes=minutes)
        await self._notifier.send(
            TIMEOUT_NOTICE.format(minutes=minutes, agent=self._notifier.agent)
        )
        return ReplyResult(ReplyOutcome.TIMED_OUT)

    async def _drain_stale_updates(self, asked_at: float | None) -> list[Update]:
        """Consume anything queued before the question went out.

        Returns the updates from the first one dated at or after ``asked_at``
        onward, unconsumed. Undated updates count as stale.
        """
        assert self._transport is not None
        updates = await self._transport.get_updates(self._offsets.get(), DRAIN_WAIT_SECONDS)
        if not updates:
            return []
        cutoff = int(asked_at) if asked_at is not None else None
        for index, update in enumerate(updates):
            if cutoff is not None and update.date is not None and update.date >= cutoff:
                if index:
                    logger.debug("Discarded stale updates", count=index)
                return updates[index:]
            self._offsets.set(update.update_id)
        logger.debug("Discarded stale updates", count=len(updates))
        return []

    def _take_reply(self, updates: list[Update]) -> str | None:
        """Consume updates in order up to and including the first qualifying reply.

        Updates after the reply keep their ids unconsumed, so the next poll
        (or command check) sees them again.
        """
        chat_id = self._settings.telegram.chat_id
        for update in updates:
            self._offsets.set(update.update_id)
            if update.chat_id != chat_id:
                logger.warning("Ignoring message from unauthorized chat", chat_id=update.chat_id)
                continue
            text = update.text.strip()
            if text:
                return text
        return None

    async def _resolve(self, text: str) -> ReplyResult:
        if text == SKIP_COMMAND:
            logger.info("User chose to skip question")
            await self._notifier.send(SKIP_ACK.format(agent=self._notifier.agent))
            return ReplyResult(ReplyOutcome.SKIPPED)
        logger.info("Received reply", preview=text[:50])
        return ReplyResult(ReplyOutcome.ANSWERED, text)
