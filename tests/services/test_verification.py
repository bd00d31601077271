"""Registration, email verification and login tests."""

from unittest.mock import AsyncMock, patch

import pytest

from sudu.config import settings
from sudu.services import verification
from sudu.services.auth import (
    DuplicateEmailError,
    InvalidTokenError,
    UnverifiedEmailError,
    WrongCredentialsError,
)
from sudu.services.security import verify_password
from sudu.services.verification import DUMMY_PASSWORD_HASH, VerificationProtocol, verification_link

TEST_PASSWORD = "secret123"


@pytest.fixture
def protocol(store, channel) -> VerificationProtocol:
    return VerificationProtocol(store, channel)


def _token_from(email: dict[str, str]) -> str:
    return email["html"].split("verify-email?token=")[1].split('"')[0]


class TestRegister:
    """Tests for register."""

    @pytest.mark.asyncio
    async def test_creates_unverified_user_and_sends_link(self, protocol, store, channel):
        result = await protocol.register("Анна", "anna@example.com", "secret123")

        assert result.email_sent is True
        user = await store.get_user_by_email("anna@example.com")
        assert user.name == "Анна"
        assert user.email_verified is False
        assert user.password != "secret123"
        assert verify_password("secret123", user.password)

        [email] = channel.emails
        assert email["to"] == "anna@example.com"
        assert _token_from(email) == user.verification_token
        assert verification_link(user.verification_token) in email["html"]
        assert verification_link(user.verification_token) in email["text"]

    @pytest.mark.asyncio
    async def test_duplicate_email(self, protocol, user):
        with pytest.raises(DuplicateEmailError):
            await protocol.register("Other", "test@example.com", "whatever")

    @pytest.mark.asyncio
    async def test_email_failure_keeps_account(self, protocol, store, channel):
        channel.fail_email = True

        result = await protocol.register("Анна", "anna@example.com", "secret123")

        assert result.email_sent is False
        assert await store.get_user_by_email("anna@example.com") is not None


class TestConfirmVerification:
    """Tests for confirm_verification."""

    @pytest.mark.asyncio
    async def test_token_is_single_use(self, protocol, channel):
        await protocol.register("Анна", "anna@example.com", "secret123")
        token = _token_from(channel.emails[0])

        user = await protocol.confirm_verification(token)
        assert user.email_verified is True
        assert user.verification_token is None

        with pytest.raises(InvalidTokenError):
            await protocol.confirm_verification(token)

    @pytest.mark.asyncio
    async def test_account_gone_before_reload(self, protocol, store, channel):
        await protocol.register("Анна", "anna@example.com", "secret123")
        token = _token_from(channel.emails[0])

        with patch.object(store, "get_user", AsyncMock(return_value=None)):
            with pytest.raises(InvalidTokenError):
                await protocol.confirm_verification(token)

    @pytest.mark.asyncio
    async def test_unknown_token(self, protocol):
        with pytest.raises(InvalidTokenError):
            await protocol.confirm_verification("never-issued")

    @pytest.mark.asyncio
    async def test_resend_replaces_token(self, protocol, channel):
        await protocol.register("Анна", "anna@example.com", "secret123")
        first = _token_from(channel.emails[0])

        await protocol.resend_verification("anna@example.com")
        second = _token_from(channel.emails[1])

        assert first != second
        with pytest.raises(InvalidTokenError):
            await protocol.confirm_verification(first)
        await protocol.confirm_verification(second)

    @pytest.mark.asyncio
    async def test_resend_ignores_unknown_and_verified(self, protocol, channel, user):
        await protocol.resend_verification("nobody@example.com")
        await protocol.resend_verification(user.email)

        assert channel.emails == []


class TestLogin:
    """Tests for login."""

    @pytest.mark.asyncio
    async def test_verified_user(self, protocol, user):
        logged_in = await protocol.login("test@example.com", TEST_PASSWORD)
        assert logged_in.id == user.id

    @pytest.mark.asyncio
    async def test_wrong_password_and_unknown_email_look_the_same(self, protocol, user):
        with pytest.raises(WrongCredentialsError) as wrong_password:
            await protocol.login("test@example.com", "wrong")
        with pytest.raises(WrongCredentialsError) as unknown:
            await protocol.login("nobody@example.com", TEST_PASSWORD)

        assert wrong_password.value.message == unknown.value.message

    @pytest.mark.asyncio
    async def test_unknown_email_still_checks_a_hash(self, protocol):
        with patch.object(
            verification, "verify_password", wraps=verification.verify_password
        ) as checked:
            with pytest.raises(WrongCredentialsError):
                await protocol.login("nobody@example.com", TEST_PASSWORD)

        checked.assert_called_once_with(TEST_PASSWORD, DUMMY_PASSWORD_HASH)

    @pytest.mark.asyncio
    async def test_unverified_rejected(self, protocol, make_user):
        await make_user(email="new@example.com", verified=False)

        with pytest.raises(UnverifiedEmailError):
            await protocol.login("new@example.com", TEST_PASSWORD)

    @pytest.mark.asyncio
    async def test_telegram_linked_counts_as_confirmed(self, protocol, make_user):
        await make_user(email="tg@example.com", verified=False, telegram_chat_id=42)

        user = await protocol.login("tg@example.com", TEST_PASSWORD)
        assert user.email == "tg@example.com"

    @pytest.mark.asyncio
    async def test_gating_can_be_disabled(self, protocol, make_user):
        await make_user(email="new@example.com", verified=False)

        with patch.object(settings, "require_email_verification", False):
            user = await protocol.login("new@example.com", TEST_PASSWORD)

        assert user.email == "new@example.com"
