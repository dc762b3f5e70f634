"""Shared test fixtures for loopwire."""

from __future__ import annotations

import pytest
from pydantic import SecretStr

from loopwire.telegram import Update

CHAT_ID = "123456"
STRANGER_CHAT_ID = "999999"

# ---------------------------------------------------------------------------
# Shared helpers (plain functions and classes, importable by test files)
# ---------------------------------------------------------------------------

# Cached property names that must be set via __dict__ (not model_construct).
_CACHED_PROPERTY_NAMES = frozenset({"project_root"})


def make_settings(**overrides):
    """Create a Settings object with a configured bot for testing.

    Accepts both model fields (telegram, question, etc.) and cached property
    overrides (project_root).

    Usage::

        s = make_settings(project_root=tmp_path)
        s = make_settings(question=QuestionConfig(timeout_minutes=1))
        s = make_settings(telegram=TelegramConfig(enabled=False))
    """
    from loopwire.config import (
        NotifyConfig,
        PathsConfig,
        QuestionConfig,
        QuietHoursConfig,
        RateLimitConfig,
        Settings,
        TelegramConfig,
    )

    cached = {k: overrides.pop(k) for k in list(overrides) if k in _CACHED_PROPERTY_NAMES}

    defaults = {
        "telegram": TelegramConfig(
            bot_token=SecretStr("123:test-token"),
            chat_id=CHAT_ID,
            enabled=True,
        ),
        "notify": NotifyConfig(),
        "question": QuestionConfig(),
        "quiet_hours": QuietHoursConfig(),
        "rate_limit": RateLimitConfig(min_interval=0, retry_delay=0),
        "paths": PathsConfig(),
        "agent_name": "Ralph",
        "debug": False,
    }
    defaults.update(overrides)
    s = Settings.model_construct(**defaults)

    for key, value in cached.items():
        s.__dict__[key] = value

    return s


def msg(update_id: int, text: str, chat_id: str = CHAT_ID, date: int | None = None) -> Update:
    return Update(update_id=update_id, chat_id=chat_id, text=text, date=date)


class FakeClock:
    """Monotonic clock that only moves when told to (or when slept on)."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeTelegram:
    """In-memory Bot API transport.

    ``batches`` scripts successive getUpdates answers: a list of updates, or
    None for a failed call. Once exhausted every poll returns nothing. Each
    poll advances ``clock`` by its wait, like a long poll that ran out.
    """

    def __init__(self, clock: FakeClock | None = None) -> None:
        self.clock = clock
        self.batches: list[list[Update] | None] = []
        self.sent: list[tuple[str, str, str | None]] = []
        self.polls: list[tuple[int, int]] = []
        self.send_ok = True
        self.username: str | None = "ralph_bot"

    @property
    def texts(self) -> list[str]:
        return [text for _, text, _ in self.sent]

    async def send_message(
        self, chat_id: str, text: str, parse_mode: str | None = "Markdown"
    ) -> bool:
        self.sent.append((chat_id, text, parse_mode))
        return self.send_ok

    async def get_updates(self, offset: int, wait_seconds: int) -> list[Update] | None:
        self.polls.append((offset, wait_seconds))
        if self.clock is not None:
            self.clock.advance(wait_seconds)
        if not self.batches:
            return []
        batch = self.batches.pop(0)
        if batch is None:
            return None
        return [u for u in batch if u.update_id > offset]

    async def get_me(self) -> str | None:
        return self.username


# ---------------------------------------------------------------------------
# Autouse fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def reset_settings(monkeypatch):
    """Ensure each test starts with a clean Settings singleton.

    Uses ``make_settings()`` to build from pure defaults: no loopwire.toml,
    no .env, no file I/O.
    """
    safe = make_settings()
    monkeypatch.setattr("loopwire.config._settings", safe)


# ---------------------------------------------------------------------------
# Reusable fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_telegram(clock):
    return FakeTelegram(clock)


@pytest.fixture
def settings(tmp_path):
    return make_settings(project_root=tmp_path)
