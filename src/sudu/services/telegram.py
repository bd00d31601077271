"""Telegram Bot API client.

Thin async wrapper over the HTTP endpoints the app uses: ``getMe``,
``sendMessage`` and ``getUpdates``.
"""

import logging
from typing import Any

import httpx

from sudu.config import settings

logger = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org/bot"


class TelegramBotError(Exception):
    """Error communicating with the Telegram Bot API."""


class TelegramClient:
    """Calls the Telegram Bot API for one bot token."""

    def __init__(self, token: str, timeout: float = 10.0) -> None:
        self.token = token
        self.timeout = timeout

    def _url(self, method: str) -> str:
        return f"{TELEGRAM_API_BASE}{self.token}/{method}"

    async def _call(
        self,
        method: str,
        payload: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        if not self.token:
            raise TelegramBotError("Telegram bot token is not configured")

        try:
            async with httpx.AsyncClient(timeout=timeout or self.timeout) as client:
                response = await client.post(self._url(method), json=payload or {})
        except httpx.HTTPError as e:
            raise TelegramBotError(f"Telegram API request failed: {e!r}") from e

        if response.status_code != 200:
            raise TelegramBotError(f"Telegram API error: {response.status_code} {response.text}")

        data = response.json()
        if not data.get("ok"):
            raise TelegramBotError(
                f"Telegram API returned error: {data.get('description', 'Unknown')}"
            )
        return data.get("result")

    async def get_me(self) -> dict[str, Any]:
        """Bot account info."""
        return await self._call("getMe")

    async def send_message(self, chat_id: int, text: str) -> None:
        """Send an HTML-formatted message to a chat."""
        await self._call(
            "sendMessage",
            {"chat_id": chat_id, "text": text, "parse_mode": "HTML"},
        )

    async def get_updates(self, offset: int | None = None, timeout: int = 10) -> list[dict]:
        """Long-poll for new message updates."""
        payload: dict[str, Any] = {"timeout": timeout, "allowed_updates": ["message"]}
        if offset is not None:
            payload["offset"] = offset
        return await self._call("getUpdates", payload, timeout=timeout + 5) or []


def get_telegram_client() -> TelegramClient:
    """Client for the configured bot token."""
    return TelegramClient(settings.telegram_bot_token)
