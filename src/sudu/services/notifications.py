"""Outbound notification channel used by the auth protocols.

Protocols only see ``send_email`` and ``send_telegram``; both report
delivery as a boolean and log failures instead of raising, so each
protocol decides whether a failed delivery matters.
"""

import logging

from sudu.services.email import EmailService
from sudu.services.telegram import TelegramBotError, TelegramClient, get_telegram_client

logger = logging.getLogger(__name__)


class NotificationChannel:
    """Email and Telegram delivery."""

    def __init__(
        self,
        email: EmailService | None = None,
        telegram: TelegramClient | None = None,
    ) -> None:
        self.email = email or EmailService()
        self._telegram = telegram

    @property
    def telegram(self) -> TelegramClient:
        if self._telegram is None:
            self._telegram = get_telegram_client()
        return self._telegram

    async def send_email(
        self, to: str, subject: str, html: str, text: str | None = None
    ) -> bool:
        sent = await self.email.send(to=to, subject=subject, html=html, text=text)
        if not sent:
            logger.error(f"Email delivery failed: to={to} subject={subject!r}")
        return sent

    async def send_telegram(self, chat_id: int, text: str) -> bool:
        try:
            await self.telegram.send_message(chat_id, text)
        except TelegramBotError as e:
            logger.error(f"Telegram delivery failed: chat_id={chat_id}: {e}")
            return False
        logger.info(f"Telegram message sent to chat {chat_id}")
        return True


_channel: NotificationChannel | None = None


def get_notification_channel() -> NotificationChannel:
    """Process-wide channel (FastAPI dependency)."""
    global _channel
    if _channel is None:
        _channel = NotificationChannel()
    return _channel
