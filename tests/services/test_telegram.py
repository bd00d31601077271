"""Telegram Bot API client tests."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from sudu.services.telegram import TelegramBotError, TelegramClient


def _response(status_code: int = 200, json: dict | None = None) -> httpx.Response:
    return httpx.Response(
        status_code,
        json=json if json is not None else {"ok": True, "result": True},
        request=httpx.Request("POST", "https://api.telegram.org/bottoken/sendMessage"),
    )


class TestSendMessage:
    """Tests for send_message."""

    @pytest.mark.asyncio
    async def test_posts_html_message(self):
        client = TelegramClient("token")

        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = _response()
            await client.send_message(42, "<b>hi</b>")

        url = mock_post.call_args[0][0]
        assert url == "https://api.telegram.org/bottoken/sendMessage"
        assert mock_post.call_args[1]["json"] == {
            "chat_id": 42,
            "text": "<b>hi</b>",
            "parse_mode": "HTML",
        }

    @pytest.mark.asyncio
    async def test_api_error(self):
        client = TelegramClient("token")

        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = _response(
                400, {"ok": False, "description": "Bad Request: chat not found"}
            )
            with pytest.raises(TelegramBotError, match="400"):
                await client.send_message(42, "hi")

    @pytest.mark.asyncio
    async def test_ok_false(self):
        client = TelegramClient("token")

        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = _response(200, {"ok": False, "description": "blocked"})
            with pytest.raises(TelegramBotError, match="blocked"):
                await client.send_message(42, "hi")

    @pytest.mark.asyncio
    async def test_network_error(self):
        client = TelegramClient("token")

        with patch(
            "httpx.AsyncClient.post",
            new_callable=AsyncMock,
            side_effect=httpx.ConnectError("unreachable"),
        ):
            with pytest.raises(TelegramBotError):
                await client.send_message(42, "hi")

    @pytest.mark.asyncio
    async def test_missing_token(self):
        with pytest.raises(TelegramBotError, match="not configured"):
            await TelegramClient("").send_message(42, "hi")


class TestGetUpdates:
    """Tests for get_updates."""

    @pytest.mark.asyncio
    async def test_passes_offset(self):
        client = TelegramClient("token")
        updates = [{"update_id": 7, "message": {"text": "/start", "chat": {"id": 1}}}]

        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = _response(json={"ok": True, "result": updates})
            result = await client.get_updates(offset=7, timeout=5)

        assert result == updates
        payload = mock_post.call_args[1]["json"]
        assert payload["offset"] == 7
        assert payload["timeout"] == 5

    @pytest.mark.asyncio
    async def test_no_offset_on_first_poll(self):
        client = TelegramClient("token")

        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = _response(json={"ok": True, "result": []})
            assert await client.get_updates() == []

        assert "offset" not in mock_post.call_args[1]["json"]
