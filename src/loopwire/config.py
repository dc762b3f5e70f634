"""Centralized configuration: Pydantic BaseSettings with TOML + dotenv sources.

Non-secret settings live in loopwire.toml. The bot token lives in .env.
Environment variables override both using ``__`` as the nested delimiter
(e.g. ``LOOPWIRE_TELEGRAM__CHAT_ID``). The flat ``RALPH_*`` variables used by the
agent loop's shell scripts are honoured as well, below the nested ones.

Priority (highest wins): init args > env vars > RALPH_* vars > .env > loopwire.toml

Usage::

    from loopwire.config import get_settings

    s = get_settings()
    print(s.telegram.chat_id)
    print(s.paths.offset_file)
"""

from __future__ import annotations

import os
import re
from functools import cached_property
from pathlib import Path
from typing import Any

from dotenv import dotenv_values
from pydantic import BaseModel, SecretStr, field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

_HHMM_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

# ---------------------------------------------------------------------------
# Sub-models (each maps to a [section] in loopwire.toml)
# ---------------------------------------------------------------------------


class _StrictModel(BaseModel):
    """Base for all config sub-models. Unknown keys are rejected so typos fail loudly."""

    model_config = {"extra": "forbid"}


class TelegramConfig(_StrictModel):
    bot_token: SecretStr | None = None
    chat_id: str | None = None
    enabled: bool = False
    api_url: str = "https://api.telegram.org"
    request_timeout: float = 10.0  # seconds, for sendMessage / getMe

    @field_validator("chat_id", mode="before")
    @classmethod
    def coerce_chat_id(cls, v: Any) -> str | None:
        if v is None:
            return None
        return str(v).strip() or None

    @field_validator("api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.strip().rstrip("/")


class NotifyConfig(_StrictModel):
    question: bool = True
    loop_complete: bool = True
    error: bool = True
    circuit_breaker: bool = True
    rate_limit: bool = True


class QuestionConfig(_StrictModel):
    timeout_minutes: int = 60
    poll_interval: int = 30  # seconds per long-poll sub-wait

    @field_validator("timeout_minutes", "poll_interval")
    @classmethod
    def positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be a positive integer")
        return v


class QuietHoursConfig(_StrictModel):
    enabled: bool = False
    start: str = "23:00"
    end: str = "07:00"

    @field_validator("start", "end")
    @classmethod
    def validate_hhmm(cls, v: str) -> str:
        v = v.strip()
        if not _HHMM_RE.match(v):
            raise ValueError(f"Expected HH:MM, got {v!r}")
        return v


class RateLimitConfig(_StrictModel):
    min_interval: float = 1.0  # seconds between outbound messages
    max_retries: int = 3
    retry_delay: float = 1.0  # multiplied by attempt**2

    @field_validator("max_retries")
    @classmethod
    def at_least_one(cls, v: int) -> int:
        return max(1, v)


class PathsConfig(_StrictModel):
    """Durable files shared with the host loop, relative to the project root."""

    offset_file: str = ".telegram_offset"
    pending_answer_file: str = ".user_response"
    pause_flag: str = ".telegram_paused"
    stop_flag: str = ".telegram_stop"
    circuit_breaker_file: str = ".circuit_breaker_state"
    status_file: str = "status.json"
    session_file: str = ".claude_session_id"
    log_file: str = "logs/ralph.log"


# ---------------------------------------------------------------------------
# Flat RALPH_* variables
# ---------------------------------------------------------------------------

# env var -> (section, field)
LEGACY_ENV_VARS: dict[str, tuple[str, str]] = {
    "RALPH_TELEGRAM_BOT_TOKEN": ("telegram", "bot_token"),
    "RALPH_TELEGRAM_CHAT_ID": ("telegram", "chat_id"),
    "RALPH_TELEGRAM_ENABLED": ("telegram", "enabled"),
    "TELEGRAM_API_URL": ("telegram", "api_url"),
    "RALPH_NOTIFY_QUESTION": ("notify", "question"),
    "RALPH_NOTIFY_LOOP_COMPLETE": ("notify", "loop_complete"),
    "RALPH_NOTIFY_ERROR": ("notify", "error"),
    "RALPH_NOTIFY_CIRCUIT_BREAKER": ("notify", "circuit_breaker"),
    "RALPH_NOTIFY_RATE_LIMIT": ("notify", "rate_limit"),
    "RALPH_QUESTION_TIMEOUT": ("question", "timeout_minutes"),
    "RALPH_QUIET_HOURS_ENABLED": ("quiet_hours", "enabled"),
    "RALPH_QUIET_HOURS_START": ("quiet_hours", "start"),
    "RALPH_QUIET_HOURS_END": ("quiet_hours", "end"),
    "RALPH_DEBUG": ("", "debug"),
}


class LegacyEnvSettingsSource(PydanticBaseSettingsSource):
    """Map the flat ``RALPH_*`` variables onto the nested settings tree.

    Reads the process environment first, then the dotenv file, matching how
    the loop scripts ``source .env`` without overriding exported values.
    """

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        # Values are assembled in __call__; per-field lookup is unused.
        return None, field_name, False

    def _dotenv_values(self) -> dict[str, str | None]:
        env_file = self.config.get("env_file")
        if not env_file or not isinstance(env_file, str | Path):
            return {}
        path = Path(env_file)
        if not path.is_file():
            return {}
        return dotenv_values(path)

    def __call__(self) -> dict[str, Any]:
        dotenv = self._dotenv_values()
        data: dict[str, Any] = {}
        for var, (section, key) in LEGACY_ENV_VARS.items():
            value = os.environ.get(var, dotenv.get(var))
            if value is None or value == "":
                continue
            if section:
                data.setdefault(section, {})[key] = value
            else:
                data[key] = value
        return data


# ---------------------------------------------------------------------------
# Root Settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        toml_file="loopwire.toml",
        env_prefix="LOOPWIRE_",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    telegram: TelegramConfig = TelegramConfig()
    notify: NotifyConfig = NotifyConfig()
    question: QuestionConfig = QuestionConfig()
    quiet_hours: QuietHoursConfig = QuietHoursConfig()
    rate_limit: RateLimitConfig = RateLimitConfig()
    paths: PathsConfig = PathsConfig()
    agent_name: str = "Ralph"  # how the host loop is named in messages
    debug: bool = False

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Priority: init > env vars > RALPH_* vars > .env > loopwire.toml > file secrets."""
        return (
            init_settings,
            env_settings,
            LegacyEnvSettingsSource(settings_cls),
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    # --- Computed properties ---

    @property
    def is_configured(self) -> bool:
        """Enabled and both credentials present: the precondition for any send/poll."""
        token = self.telegram.bot_token.get_secret_value() if self.telegram.bot_token else ""
        return bool(self.telegram.enabled and token and self.telegram.chat_id)

    @cached_property
    def project_root(self) -> Path:
        return Path.cwd()

    def path(self, name: str) -> Path:
        """Resolve one of the ``[paths]`` entries against the project root."""
        p = Path(getattr(self.paths, name))
        return p if p.is_absolute() else self.project_root / p


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_settings: Settings | None = None


def get_settings() -> Settings:
    """Lazy cached singleton."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Clear the cached singleton (for tests)."""
    global _settings
    _settings = None
