"""Telegram bot: command handling and long polling.

Commands:
    /start          greeting and instructions
    /help           command list
    /status         bot and database status
    /link CODE      link this chat to an account (or finish a registration)
"""

import asyncio
import logging
import re
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import AsyncRetrying, before_sleep_log, retry_if_exception_type, wait_exponential

from sudu.database import get_session_context
from sudu.services.auth import AuthError
from sudu.services.notifications import NotificationChannel
from sudu.services.store import CredentialStore
from sudu.services.telegram import TelegramBotError, TelegramClient
from sudu.services.telegram_link import LinkOutcome, TelegramLinkProtocol

logger = logging.getLogger(__name__)

LINK_COMMAND = re.compile(r"^/link(?:@\w+)?(?:\s+(\S+))?\s*$")
COMMAND = re.compile(r"^/(\w+)")

START_TEXT = (
    "🔐 СУДУ password recovery bot\n\n"
    "To link your account send:\n"
    "/link CODE_FROM_THE_WEBSITE\n\n"
    "To recover your password:\n"
    "1. Click \"Forgot password?\" on the website\n"
    "2. Enter your email\n"
    "3. The code will arrive in this chat\n\n"
    "Help: /help"
)

HELP_TEXT = (
    "📖 Available commands:\n\n"
    "/start - start working with the bot\n"
    "/link CODE - link your account\n"
    "/status - check system status\n"
    "/help - show this help"
)

UNKNOWN_TEXT = "Use /help to see the list of commands"
LINK_USAGE_TEXT = "Send the code from the website: /link 123456"

# Back-off between failed getUpdates calls (seconds)
POLL_RETRY_MIN_WAIT = 1
POLL_RETRY_MAX_WAIT = 60

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class TelegramBot:
    """Answers bot commands; ``/link`` runs the link protocol in-process."""

    def __init__(
        self,
        client: TelegramClient,
        channel: NotificationChannel | None = None,
        session_factory: SessionFactory = get_session_context,
        poll_timeout: int = 10,
    ) -> None:
        self.client = client
        self.channel = channel or NotificationChannel(telegram=client)
        self.session_factory = session_factory
        self.poll_timeout = poll_timeout
        self._offset: int | None = None

    async def handle_update(self, update: dict[str, Any]) -> str | None:
        """Process one update and send the reply. Returns the reply text."""
        message = update.get("message") or {}
        message_text = (message.get("text") or "").strip()
        chat_id = (message.get("chat") or {}).get("id")
        if chat_id is None or not message_text:
            return None

        reply = await self.reply_for(chat_id, message_text)
        if reply is not None:
            try:
                await self.client.send_message(chat_id, reply)
            except TelegramBotError as e:
                logger.warning(f"Failed to reply to chat {chat_id}: {e}")
        return reply

    async def reply_for(self, chat_id: int, message_text: str) -> str | None:
        if not message_text.startswith("/"):
            return UNKNOWN_TEXT

        link = LINK_COMMAND.match(message_text)
        if link:
            code = link.group(1)
            if not code:
                return LINK_USAGE_TEXT
            return await self._link(chat_id, code)

        command = COMMAND.match(message_text)
        name = command.group(1) if command else ""
        if name == "start":
            return START_TEXT
        if name == "help":
            return HELP_TEXT
        if name == "status":
            return await self._status()
        return UNKNOWN_TEXT

    async def _link(self, chat_id: int, code: str) -> str | None:
        logger.info(f"/link received from chat {chat_id}")
        try:
            async with self.session_factory() as session:
                protocol = TelegramLinkProtocol(CredentialStore(session), self.channel)
                result = await protocol.confirm_link(code, chat_id)
        except AuthError as e:
            return f"❌ {e.message}"
        except SQLAlchemyError:
            logger.exception("Database error while linking Telegram")
            return "❌ Server error, please try again later"

        if result.outcome == LinkOutcome.ALREADY_LINKED:
            return (
                "ℹ️ Telegram is already linked to this account\n"
                f"📧 {result.user.email}\n👤 {result.user.name}"
            )
        # The protocol already sent the welcome message
        return None

    async def _status(self) -> str:
        try:
            async with self.session_factory() as session:
                await session.execute(text("SELECT 1"))
            database = "✅ Available"
        except SQLAlchemyError as e:
            logger.error(f"Database status check failed: {e!r}")
            database = "❌ Unavailable"
        return (
            "📊 System status:\n\n"
            "🤖 Bot: ✅ Running\n"
            f"🗄 Database: {database}\n"
            f"⏰ Time: {datetime.now(UTC):%H:%M:%S} UTC"
        )

    async def _poll(self) -> list[dict[str, Any]]:
        """Fetch the next batch, retrying API errors with exponential back-off."""
        async for attempt in AsyncRetrying(
            wait=wait_exponential(multiplier=1, min=POLL_RETRY_MIN_WAIT, max=POLL_RETRY_MAX_WAIT),
            retry=retry_if_exception_type(TelegramBotError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=asyncio.sleep,
            reraise=True,
        ):
            with attempt:
                return await self.client.get_updates(self._offset, timeout=self.poll_timeout)
        raise RuntimeError("Unreachable")  # For type checker

    async def updates(self) -> AsyncIterator[dict[str, Any]]:
        """Yield updates forever."""
        while True:
            for update in await self._poll():
                self._offset = update["update_id"] + 1
                yield update

    async def run(self) -> None:
        """Poll and handle updates until cancelled."""
        try:
            me = await self.client.get_me()
            logger.info(f"Telegram bot @{me.get('username')} started (polling)")
        except TelegramBotError as e:
            logger.warning(f"Telegram getMe failed, polling anyway: {e}")
        async for update in self.updates():
            try:
                await self.handle_update(update)
            except Exception:
                logger.exception(f"Failed to handle update {update.get('update_id')}")
