"""Telegram bot command tests."""

from contextlib import asynccontextmanager
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from sudu.models import utc_now
from sudu.services.telegram import TelegramBotError
from sudu.services.telegram_bot import (
    HELP_TEXT,
    LINK_USAGE_TEXT,
    START_TEXT,
    UNKNOWN_TEXT,
    TelegramBot,
)
from sudu.services.telegram_link import TelegramLinkProtocol


def _update(text: str, chat_id: int = 5005, update_id: int = 1) -> dict:
    return {"update_id": update_id, "message": {"text": text, "chat": {"id": chat_id}}}


@pytest.fixture
def telegram_client() -> MagicMock:
    client = MagicMock()
    client.send_message = AsyncMock()
    client.get_updates = AsyncMock()
    client.get_me = AsyncMock(return_value={"username": "sudu_bot"})
    return client


@pytest.fixture
def bot(session, channel, telegram_client) -> TelegramBot:
    @asynccontextmanager
    async def shared_session():
        yield session

    return TelegramBot(telegram_client, channel=channel, session_factory=shared_session)


@pytest.fixture
def link_protocol(store, channel) -> TelegramLinkProtocol:
    return TelegramLinkProtocol(store, channel)


class TestCommands:
    """Static replies."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("/start", START_TEXT),
            ("/help", HELP_TEXT),
            ("/help@sudu_bot", HELP_TEXT),
            ("hello there", UNKNOWN_TEXT),
            ("/unknown", UNKNOWN_TEXT),
            ("/link", LINK_USAGE_TEXT),
        ],
    )
    async def test_reply(self, bot, telegram_client, text, expected):
        reply = await bot.handle_update(_update(text))

        assert reply == expected
        telegram_client.send_message.assert_awaited_once_with(5005, expected)

    @pytest.mark.asyncio
    async def test_ignores_updates_without_text(self, bot, telegram_client):
        assert await bot.handle_update({"update_id": 1, "message": {"chat": {"id": 1}}}) is None
        assert await bot.handle_update({"update_id": 2, "edited_message": {}}) is None
        telegram_client.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reply_failure_is_logged(self, bot, telegram_client, caplog):
        telegram_client.send_message.side_effect = TelegramBotError("blocked")

        assert await bot.handle_update(_update("/start")) == START_TEXT
        assert "Failed to reply" in caplog.text

    @pytest.mark.asyncio
    async def test_status(self, bot):
        reply = await bot.handle_update(_update("/status"))
        assert "Database: ✅ Available" in reply

    @pytest.mark.asyncio
    async def test_status_database_down(self, channel, telegram_client):
        @asynccontextmanager
        async def broken_session():
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))
            yield  # pragma: no cover

        bot = TelegramBot(telegram_client, channel=channel, session_factory=broken_session)

        reply = await bot.handle_update(_update("/status"))
        assert "Database: ❌ Unavailable" in reply


class TestLinkCommand:
    """``/link CODE`` confirms a link code from this chat."""

    @pytest.mark.asyncio
    async def test_links_existing_user(self, bot, store, channel, telegram_client, link_protocol, user):
        link = await link_protocol.request_link("test@example.com")

        reply = await bot.handle_update(_update(f"/link {link.code}"))

        # The welcome message goes out through the notification channel
        assert reply is None
        telegram_client.send_message.assert_not_awaited()
        assert channel.telegrams[0]["chat_id"] == 5005
        linked = await store.get_user_by_email("test@example.com")
        assert linked.telegram_chat_id == 5005

    @pytest.mark.asyncio
    async def test_completes_pending_registration(self, bot, store, link_protocol):
        link = await link_protocol.register_pending("Анна", "anna@example.com", "secret123")

        await bot.handle_update(_update(f"/link@sudu_bot {link.code}", chat_id=6006))

        user = await store.get_user_by_email("anna@example.com")
        assert user.telegram_chat_id == 6006

    @pytest.mark.asyncio
    async def test_invalid_code(self, bot, telegram_client):
        reply = await bot.handle_update(_update("/link 000000"))

        assert reply == "❌ Invalid or expired code"
        telegram_client.send_message.assert_awaited_once_with(5005, reply)

    @pytest.mark.asyncio
    async def test_already_linked(self, bot, store, linked_user):
        async with store.transaction():
            await store.add_link_code(linked_user.id, "123456", utc_now() + timedelta(minutes=10))

        reply = await bot.handle_update(_update("/link 123456", chat_id=1001))

        assert "already linked" in reply
        assert "linked@example.com" in reply

    @pytest.mark.asyncio
    async def test_chat_bound_elsewhere(self, bot, link_protocol, linked_user, user):
        link = await link_protocol.request_link("test@example.com")

        reply = await bot.handle_update(_update(f"/link {link.code}", chat_id=1001))

        assert reply.startswith("❌ This Telegram account is already linked")


class TestPolling:
    """Long-polling loop."""

    @pytest.mark.asyncio
    async def test_offset_advances_and_errors_back_off(self, bot, telegram_client):
        telegram_client.get_updates.side_effect = [
            [_update("/start", update_id=10), _update("/help", update_id=11)],
            TelegramBotError("502 Bad Gateway"),
            [_update("/help", update_id=12)],
        ]

        received = []
        with patch("sudu.services.telegram_bot.asyncio.sleep", new_callable=AsyncMock) as sleep:
            async for update in bot.updates():
                received.append(update["update_id"])
                if len(received) == 3:
                    break

        assert received == [10, 11, 12]
        offsets = [call.args[0] for call in telegram_client.get_updates.call_args_list]
        assert offsets == [None, 12, 12]
        sleep.assert_awaited_once_with(1.0)

    @pytest.mark.asyncio
    async def test_back_off_grows_and_is_capped(self, bot, telegram_client, caplog):
        errors = [TelegramBotError("429 Too Many Requests")] * 8
        telegram_client.get_updates.side_effect = [*errors, [_update("/start", update_id=30)]]

        with patch("sudu.services.telegram_bot.asyncio.sleep", new_callable=AsyncMock) as sleep:
            update = await anext(bot.updates())

        assert update["update_id"] == 30
        waits = [call.args[0] for call in sleep.await_args_list]
        assert waits == [1, 2, 4, 8, 16, 32, 60, 60]
        assert "429 Too Many Requests" in caplog.text
