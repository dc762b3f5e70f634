"""Tests for the question/answer exchange."""

from __future__ import annotations

import asyncio
from datetime import datetime
from unittest.mock import patch

import pytest
from conftest import CHAT_ID, STRANGER_CHAT_ID, make_settings, msg

from loopwire.config import NotifyConfig, QuestionConfig, QuietHoursConfig, TelegramConfig
from loopwire.gate import SendGate
from loopwire.notifier import Notifier
from loopwire.replies import ANSWER_ACK, ReplyOutcome, ReplyWaiter
from loopwire.state import OffsetStore, PendingAnswer


@pytest.fixture
def settings(tmp_path):
    return make_settings(
        project_root=tmp_path,
        question=QuestionConfig(timeout_minutes=1, poll_interval=30),
    )


# Unix time at which questions in these tests go out.
ASKED_AT = 1_760_000_000


def _make_waiter(settings, transport, clock):
    gate = SendGate(
        settings.quiet_hours,
        0,
        clock=clock,
        sleep=clock.sleep,
        wall_clock=lambda: datetime(2026, 1, 1, 12, 0),
    )
    return ReplyWaiter(
        settings,
        transport,
        Notifier(settings, transport, gate),
        OffsetStore(settings.path("offset_file")),
        PendingAnswer(settings.path("pending_answer_file")),
        clock=clock,
        sleep=clock.sleep,
        wall_clock=lambda: float(ASKED_AT),
    )


@pytest.fixture
def waiter(settings, fake_telegram, clock):
    return _make_waiter(settings, fake_telegram, clock)


class TestAsk:
    async def test_answer_is_saved_and_acknowledged(self, waiter, settings, fake_telegram):
        fake_telegram.batches = [[], [msg(5, "Use REST")]]

        result = await waiter.ask("Should I use REST or GraphQL?", "API design", 3)

        assert result.outcome is ReplyOutcome.ANSWERED
        assert result.answer == "Use REST"
        assert result.ok
        assert settings.path("pending_answer_file").read_text() == "Use REST\n"
        assert settings.path("offset_file").read_text().strip() == "5"
        assert "Should I use REST or GraphQL?" in fake_telegram.texts[0]
        assert fake_telegram.texts[-1] == ANSWER_ACK

    async def test_skip(self, waiter, settings, fake_telegram):
        fake_telegram.batches = [[], [msg(6, "/skip")]]

        result = await waiter.ask("Which DB?")

        assert result.outcome is ReplyOutcome.SKIPPED
        assert result.ok
        assert result.answer == ""
        assert not settings.path("pending_answer_file").exists()
        assert fake_telegram.texts[-1] == "Skipping question. Ralph will decide."

    async def test_stranger_is_ignored_but_consumed(self, waiter, settings, fake_telegram):
        fake_telegram.batches = [[], [msg(7, "Use SOAP", chat_id=STRANGER_CHAT_ID)]]

        result = await waiter.ask("Which API?")

        assert result.outcome is ReplyOutcome.TIMED_OUT
        assert not settings.path("pending_answer_file").exists()
        assert OffsetStore(settings.path("offset_file")).get() == 7
        assert fake_telegram.texts[-1] == (
            "Question timed out after 1 minutes. Ralph will continue."
        )

    async def test_stranger_then_operator(self, waiter, fake_telegram):
        fake_telegram.batches = [
            [],
            [msg(7, "Use SOAP", chat_id=STRANGER_CHAT_ID), msg(8, "  Use gRPC  ")],
        ]

        result = await waiter.ask("Which API?")

        assert result.outcome is ReplyOutcome.ANSWERED
        assert result.answer == "Use gRPC"

    async def test_stale_messages_are_drained(self, waiter, fake_telegram):
        fake_telegram.batches = [[msg(1, "old answer")], [msg(2, "fresh answer")]]

        result = await waiter.ask("Which API?")

        assert result.answer == "fresh answer"
        assert fake_telegram.polls[1][0] == 1

    async def test_later_updates_stay_unconsumed(self, waiter, settings, fake_telegram):
        fake_telegram.batches = [[], [msg(10, "first"), msg(11, "/status")]]

        result = await waiter.ask("Which API?")

        assert result.answer == "first"
        assert OffsetStore(settings.path("offset_file")).get() == 10

    async def test_empty_question_is_rejected(self, waiter, fake_telegram):
        result = await waiter.ask("   ")

        assert result.outcome is ReplyOutcome.INVALID
        assert not result.ok
        assert fake_telegram.sent == []
        assert fake_telegram.polls == []

    async def test_send_failure(self, waiter, fake_telegram):
        fake_telegram.send_ok = False

        result = await waiter.ask("Which API?")

        assert result.outcome is ReplyOutcome.SEND_FAILED
        assert fake_telegram.polls == []

    async def test_not_configured(self, tmp_path, fake_telegram, clock):
        settings = make_settings(
            project_root=tmp_path,
            telegram=TelegramConfig(chat_id=CHAT_ID, enabled=True),
        )
        waiter = _make_waiter(settings, fake_telegram, clock)

        result = await waiter.ask("Which API?")

        assert result.outcome is ReplyOutcome.NOT_CONFIGURED
        assert fake_telegram.sent == []

    async def test_stale_pending_answer_cleared_on_timeout(self, waiter, settings):
        settings.path("pending_answer_file").write_text("leftover\n")

        result = await waiter.ask("Which API?")

        assert result.outcome is ReplyOutcome.TIMED_OUT
        assert not settings.path("pending_answer_file").exists()

    async def test_question_in_quiet_hours_still_waits(self, tmp_path, fake_telegram, clock):
        settings = make_settings(
            project_root=tmp_path,
            question=QuestionConfig(timeout_minutes=1, poll_interval=30),
            quiet_hours=QuietHoursConfig(enabled=True, start="00:00", end="23:59"),
        )
        settings.path("pending_answer_file").write_text("stale\n")
        waiter = _make_waiter(settings, fake_telegram, clock)

        result = await waiter.ask("Which API?")

        assert result.outcome is ReplyOutcome.TIMED_OUT
        assert len(fake_telegram.polls) > 1
        assert fake_telegram.sent == []
        assert not settings.path("pending_answer_file").exists()

    async def test_disabled_question_kind_still_takes_answer(
        self, tmp_path, fake_telegram, clock
    ):
        settings = make_settings(
            project_root=tmp_path,
            question=QuestionConfig(timeout_minutes=1, poll_interval=30),
            notify=NotifyConfig(question=False),
        )
        fake_telegram.batches = [[], [msg(5, "Use REST")]]
        waiter = _make_waiter(settings, fake_telegram, clock)

        result = await waiter.ask("Which API?")

        assert result.outcome is ReplyOutcome.ANSWERED
        assert fake_telegram.texts == [ANSWER_ACK]
        assert settings.path("pending_answer_file").read_text() == "Use REST\n"

    async def test_empty_reply_is_consumed_and_ignored(self, waiter, settings, fake_telegram):
        fake_telegram.batches = [[], [msg(9, "")]]

        result = await waiter.ask("Which API?")

        assert result.outcome is ReplyOutcome.TIMED_OUT
        assert OffsetStore(settings.path("offset_file")).get() == 9

    async def test_reply_sent_during_drain_is_kept(self, waiter, settings, fake_telegram):
        fake_telegram.batches = [
            [
                msg(1, "old answer", date=ASKED_AT - 30),
                msg(2, "Use REST", date=ASKED_AT + 1),
            ]
        ]

        result = await waiter.ask("Which API?")

        assert result.outcome is ReplyOutcome.ANSWERED
        assert result.answer == "Use REST"
        assert len(fake_telegram.polls) == 1
        assert OffsetStore(settings.path("offset_file")).get() == 2


class TestWaitForReply:
    async def test_zero_timeout_is_honoured(self, waiter, fake_telegram):
        result = await waiter.wait_for_reply(timeout_minutes=0)

        assert result.outcome is ReplyOutcome.TIMED_OUT
        assert len(fake_telegram.polls) == 1
        assert fake_telegram.texts == [
            "Question timed out after 0 minutes. Ralph will continue."
        ]

    async def test_heartbeat_every_five_minutes(self, waiter):
        with patch("loopwire.replies.logger") as mock_logger:
            result = await waiter.wait_for_reply(timeout_minutes=11)

        assert result.outcome is ReplyOutcome.TIMED_OUT
        heartbeats = [
            call
            for call in mock_logger.info.call_args_list
            if call.args == ("Still waiting for reply",)
        ]
        assert [call.kwargs["minutes_remaining"] for call in heartbeats] == [5, 0]

    async def test_poll_failure_backs_off(self, waiter, fake_telegram, clock):
        fake_telegram.batches = [[], None, [msg(3, "yes")]]

        result = await waiter.wait_for_reply()

        assert result.outcome is ReplyOutcome.ANSWERED
        assert clock.sleeps == [5]

    async def test_sub_waits_never_exceed_poll_interval(self, waiter, fake_telegram):
        await waiter.wait_for_reply(timeout_minutes=2)

        waits = [wait for _, wait in fake_telegram.polls[1:]]
        assert waits
        assert max(waits) <= 30
        assert sum(waits) == 119

    async def test_cancel_between_sub_waits(self, waiter, settings, fake_telegram):
        settings.path("pending_answer_file").write_text("keep me\n")
        cancel = asyncio.Event()
        cancel.set()

        result = await waiter.ask("Which API?", cancel=cancel)

        assert result.outcome is ReplyOutcome.CANCELLED
        assert len(fake_telegram.polls) == 1
        assert settings.path("pending_answer_file").read_text() == "keep me\n"
