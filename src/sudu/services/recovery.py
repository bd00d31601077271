"""Password recovery over email (reset link) or Telegram (one-time code).

Both channels end the same way: the new password is hashed and stored in
the same transaction that consumes the token or code, so a token or code
changes the password at most once.

The email channel never reveals whether an account exists. The Telegram
channel reports unknown and unlinked accounts explicitly unless
``TELEGRAM_RESET_REVEALS_ACCOUNT`` is turned off.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from enum import Enum

from sudu.config import settings
from sudu.models import TelegramCode, utc_now
from sudu.services.auth import (
    InvalidCodeError,
    InvalidTokenError,
    NotLinkedError,
    TransportError,
    UserNotFoundError,
)
from sudu.services.notifications import NotificationChannel
from sudu.services.security import hash_password
from sudu.services.store import CredentialStore
from sudu.services.templates import TemplateKind, render_email, render_template
from sudu.services.tokens import expires_in, issue_numeric_code, issue_opaque_token

logger = logging.getLogger(__name__)


class RecoveryChannel(str, Enum):
    """Where the recovery secret is delivered."""

    EMAIL = "email"
    TELEGRAM = "telegram"


def reset_link(token: str) -> str:
    return f"{settings.app_url}/reset-password.html?token={token}"


class RecoveryProtocol:
    """Issue, deliver and consume password recovery secrets."""

    def __init__(
        self,
        store: CredentialStore,
        channel: NotificationChannel,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.channel = channel
        self.clock = clock

    async def request_reset(self, email: str, via: RecoveryChannel) -> None:
        if via == RecoveryChannel.EMAIL:
            await self._request_email_reset(email)
        else:
            await self._request_telegram_reset(email)

    async def _request_email_reset(self, email: str) -> None:
        user = await self.store.get_user_by_email(email)
        if user is None:
            logger.info("Password reset requested for unknown email")
            return

        token = issue_opaque_token()
        minutes = settings.reset_token_expiration_minutes
        async with self.store.transaction():
            await self.store.set_reset_token(
                user.id, token, expires_in(timedelta(minutes=minutes), self.clock())
            )

        email_body = render_email(
            TemplateKind.PASSWORD_RESET,
            {"link": reset_link(token), "expires_minutes": minutes},
        )
        if not await self.channel.send_email(
            user.email, email_body.subject, email_body.html, email_body.text
        ):
            # Same response either way so the endpoint does not reveal the account
            logger.error(f"Password reset email not delivered for user {user.id}")

    async def _request_telegram_reset(self, email: str) -> None:
        user = await self.store.get_user_by_email(email)
        if user is None:
            self._reject(UserNotFoundError())
            return
        if user.telegram_chat_id is None:
            self._reject(NotLinkedError())
            return

        code = issue_numeric_code()
        minutes = settings.code_expiration_minutes
        async with self.store.transaction():
            await self.store.add_recovery_code(
                user.id, code, expires_in(timedelta(minutes=minutes), self.clock())
            )

        text = render_template(
            TemplateKind.RECOVERY_CODE, {"code": code, "expires_minutes": minutes}
        )
        if not await self.channel.send_telegram(user.telegram_chat_id, text):
            raise TransportError("Failed to send the code to Telegram")
        logger.info(f"Recovery code sent to Telegram for user {user.id}")

    def _reject(self, error: UserNotFoundError | NotLinkedError) -> None:
        if settings.telegram_reset_reveals_account:
            raise error
        logger.info(f"Telegram password reset ignored: {error.message}")

    async def reset_with_token(self, token: str, new_password: str) -> None:
        """Change the password with an emailed reset token."""
        password_hash = hash_password(new_password)
        async with self.store.transaction():
            if not await self.store.consume_reset_token(token, password_hash, self.clock()):
                raise InvalidTokenError()
        logger.info("Password changed with reset token")

    async def reset_with_code(self, email: str, code: str, new_password: str) -> None:
        """Change the password with a Telegram recovery code."""
        now = self.clock()
        recovery_code = await self.store.find_live_recovery_code(email, code, now)
        if recovery_code is None:
            raise InvalidCodeError()

        password_hash = hash_password(new_password)
        async with self.store.transaction():
            if not await self.store.mark_code_used(TelegramCode, recovery_code.id, now):
                raise InvalidCodeError()
            await self.store.set_password(recovery_code.user_id, password_hash)

        logger.info(f"Password changed with Telegram code for user {recovery_code.user_id}")
