"""Registration with email verification, and login.

States per account: unregistered -> pending verification -> verified.
"""

import logging
import secrets
from dataclasses import dataclass

from sudu.config import settings
from sudu.models import User
from sudu.services.auth import (
    DuplicateEmailError,
    InvalidTokenError,
    UnverifiedEmailError,
    WrongCredentialsError,
)
from sudu.services.notifications import NotificationChannel
from sudu.services.security import hash_password, verify_password
from sudu.services.store import CredentialStore
from sudu.services.templates import TemplateKind, render_email
from sudu.services.tokens import issue_opaque_token

logger = logging.getLogger(__name__)

# Checked against when the email is unknown, so login takes the same time
# whether or not the account exists
DUMMY_PASSWORD_HASH = hash_password(secrets.token_urlsafe(32))


def verification_link(token: str) -> str:
    return f"{settings.app_url}/api/auth/verify-email?token={token}"


@dataclass
class RegistrationResult:
    """Created account and whether the verification email went out."""

    user: User
    email_sent: bool


class VerificationProtocol:
    """Email verification lifecycle: issue token, email it, consume it."""

    def __init__(
        self,
        store: CredentialStore,
        channel: NotificationChannel,
    ) -> None:
        self.store = store
        self.channel = channel

    async def register(self, name: str, email: str, password: str) -> RegistrationResult:
        """Create an unverified account and send the verification link.

        A failed email does not undo the registration; it is logged and
        reported through ``email_sent``.
        """
        if await self.store.get_user_by_email(email) is not None:
            raise DuplicateEmailError()

        token = issue_opaque_token()
        async with self.store.transaction():
            user = await self.store.add_user(
                name=name,
                email=email,
                password_hash=hash_password(password),
                verification_token=token,
            )
        logger.info(f"User registered: {user.id}")

        email_sent = await self._send_verification(user.email, token)
        if not email_sent:
            logger.error(f"Verification email not delivered for user {user.id}")
        return RegistrationResult(user=user, email_sent=email_sent)

    async def confirm_verification(self, token: str) -> User:
        """Consume a verification token.

        Wrong, already used and never issued tokens all raise the same
        InvalidTokenError.
        """
        user = await self.store.get_unverified_user_by_token(token)
        if user is None:
            raise InvalidTokenError()

        async with self.store.transaction():
            if not await self.store.mark_email_verified(user.id, token):
                raise InvalidTokenError()

        logger.info(f"Email verified for user {user.id}")
        verified = await self.store.get_user(user.id)
        if verified is None:
            raise InvalidTokenError()
        return verified

    async def resend_verification(self, email: str) -> None:
        """Issue a fresh verification token for an unverified account.

        Unknown and already verified emails are ignored silently.
        """
        user = await self.store.get_user_by_email(email)
        if user is None or user.email_verified:
            return

        token = issue_opaque_token()
        async with self.store.transaction():
            await self.store.set_verification_token(user.id, token)

        if not await self._send_verification(user.email, token):
            logger.error(f"Verification email resend failed for user {user.id}")

    async def login(self, email: str, password: str) -> User:
        """Check credentials; unconfirmed accounts are rejected separately."""
        user = await self.store.get_user_by_email(email)
        if user is None:
            verify_password(password, DUMMY_PASSWORD_HASH)
            raise WrongCredentialsError()
        if not verify_password(password, user.password):
            raise WrongCredentialsError()

        if settings.require_email_verification and not user.is_confirmed:
            raise UnverifiedEmailError()

        return user

    async def _send_verification(self, email: str, token: str) -> bool:
        email_body = render_email(TemplateKind.VERIFY_EMAIL, {"link": verification_link(token)})
        return await self.channel.send_email(
            email, email_body.subject, email_body.html, email_body.text
        )
