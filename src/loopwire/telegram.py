"""Telegram Bot API transport.

Thin aiohttp wrapper around the three Bot API methods the bridge uses:
``sendMessage``, ``getUpdates`` (long polling) and ``getMe``. Failures are
logged and returned as ``False`` / ``None``; nothing here raises into the
host loop.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Protocol

import aiohttp

from loopwire.logger import logger

# Extra local timeout on top of the remote long-poll wait, so the client
# never gives up before Telegram answers.
POLL_TIMEOUT_MARGIN = 5


class TelegramAPIError(Exception):
    """Raised internally for non-ok responses; never escapes the client."""

    def __init__(self, method: str, description: str) -> None:
        super().__init__(f"{method}: {description}")
        self.method = method
        self.description = description


@dataclass(frozen=True)
class Update:
    """One inbound message update, reduced to the fields the bridge reads."""

    update_id: int
    chat_id: str | None
    text: str
    date: int | None = None  # unix seconds, as sent by Telegram

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Update | None:
        try:
            update_id = int(raw["update_id"])
        except (KeyError, TypeError, ValueError):
            return None
        message = raw.get("message") or {}
        chat = message.get("chat") or {}
        chat_id = chat.get("id")
        date = message.get("date")
        return cls(
            update_id=update_id,
            chat_id=str(chat_id) if chat_id is not None else None,
            text=message.get("text") or "",
            date=date if isinstance(date, int) else None,
        )


class Transport(Protocol):
    """What the notifier, reply waiter and dispatcher need from the Bot API."""

    async def send_message(
        self, chat_id: str, text: str, parse_mode: str | None = "Markdown"
    ) -> bool: ...

    async def get_updates(self, offset: int, wait_seconds: int) -> list[Update] | None: ...

    async def get_me(self) -> str | None: ...


class TelegramClient:
    """Authenticated Bot API client bound to one token.

    Owns a lazily created ``aiohttp.ClientSession``; call :meth:`close` (or
    use ``async with``) when done.
    """

    def __init__(
        self,
        token: str,
        *,
        api_url: str = "https://api.telegram.org",
        request_timeout: float = 10.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ) -> None:
        self._token = token
        self._api_url = api_url.rstrip("/")
        self._request_timeout = request_timeout
        self._max_retries = max(1, max_retries)
        self._retry_delay = retry_delay
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> TelegramClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _url(self, method: str) -> str:
        return f"{self._api_url}/bot{self._token}/{method}"

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _call(
        self,
        method: str,
        payload: dict[str, Any] | None = None,
        *,
        timeout: float,
        http_method: str = "POST",
    ) -> Any:
        """Call one API method and return its ``result``.

        Raises TelegramAPIError on ``ok: false``; lets aiohttp / timeout
        errors propagate for the caller to classify.
        """
        session = self._get_session()
        async with session.request(
            http_method,
            self._url(method),
            json=payload if http_method == "POST" else None,
            timeout=aiohttp.ClientTimeout(total=timeout),
        ) as resp:
            try:
                data = await resp.json(content_type=None)
            except ValueError as exc:
                raise TelegramAPIError(method, f"invalid JSON (HTTP {resp.status})") from exc
        if not isinstance(data, dict) or not data.get("ok"):
            description = "Unknown error"
            if isinstance(data, dict):
                description = str(data.get("description") or description)
            raise TelegramAPIError(method, description)
        return data.get("result")

    # -- Public API ------------------------------------------------------------

    async def send_message(
        self, chat_id: str, text: str, parse_mode: str | None = "Markdown"
    ) -> bool:
        """Send ``text`` to ``chat_id`` with retries. Returns True on success."""
        payload: dict[str, Any] = {"chat_id": chat_id, "text": text}
        if parse_mode:
            payload["parse_mode"] = parse_mode

        for attempt in range(1, self._max_retries + 1):
            try:
                await self._call("sendMessage", payload, timeout=self._request_timeout)
            except TelegramAPIError as exc:
                error = exc.description
            except (aiohttp.ClientError, TimeoutError) as exc:
                error = str(exc) or type(exc).__name__
            else:
                logger.info("Message sent successfully")
                return True

            logger.warning(
                "Send failed",
                attempt=attempt,
                max_retries=self._max_retries,
                err=error,
            )
            if attempt < self._max_retries:
                await asyncio.sleep(self._retry_delay * attempt**2)

        logger.error("Failed to send message after retries", max_retries=self._max_retries)
        return False

    async def get_updates(self, offset: int, wait_seconds: int) -> list[Update] | None:
        """Long-poll for message updates with ``update_id > offset``.

        ``offset`` is the last consumed update id; the API is asked for
        ``offset + 1``. Returns None when the call failed.
        """
        payload = {
            "offset": offset + 1,
            "timeout": wait_seconds,
            "allowed_updates": ["message"],
        }
        try:
            result = await self._call(
                "getUpdates", payload, timeout=wait_seconds + POLL_TIMEOUT_MARGIN
            )
        except TelegramAPIError as exc:
            logger.error("Failed to get updates", err=exc.description)
            return None
        except (aiohttp.ClientError, TimeoutError) as exc:
            logger.error("Failed to get updates", err=str(exc) or type(exc).__name__)
            return None

        updates: list[Update] = []
        for raw in result or []:
            if not isinstance(raw, dict):
                continue
            update = Update.from_dict(raw)
            if update is not None:
                updates.append(update)
        return updates

    async def get_me(self) -> str | None:
        """Return the bot's username, or None if the token is rejected / unreachable."""
        try:
            result = await self._call("getMe", timeout=self._request_timeout, http_method="GET")
        except TelegramAPIError as exc:
            logger.error("getMe failed", err=exc.description)
            return None
        except (aiohttp.ClientError, TimeoutError) as exc:
            logger.error("getMe failed", err=str(exc) or type(exc).__name__)
            return None
        if not isinstance(result, dict):
            return None
        return result.get("username")
