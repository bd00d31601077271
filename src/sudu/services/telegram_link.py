"""Binding a Telegram chat to an account with a short code.

Two ways in:

* an existing user asks for a link code and sends it to the bot;
* a new user registers in ``telegram`` mode, which only stores a pending
  registration. The account row is created when the code arrives from
  the chat that will own it.

``confirm_link`` resolves a code against pending registrations first,
then against link codes of existing users.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from sudu.config import settings
from sudu.models import TelegramLinkCode, User, utc_now
from sudu.services.auth import (
    AlreadyBoundError,
    AlreadyLinkedError,
    DuplicateEmailError,
    InvalidCodeError,
    UserNotFoundError,
)
from sudu.services.notifications import NotificationChannel
from sudu.services.security import hash_password
from sudu.services.store import CredentialStore
from sudu.services.templates import TemplateKind, render_template
from sudu.services.tokens import expires_in, issue_numeric_code

logger = logging.getLogger(__name__)

# Link codes are looked up by value alone, so issuance avoids live duplicates
MAX_CODE_ATTEMPTS = 5


class LinkOutcome(str, Enum):
    """Result of confirming a link code."""

    NEW_USER_LINKED = "new_user_linked"
    EXISTING_USER_LINKED = "existing_user_linked"
    ALREADY_LINKED = "already_linked"


@dataclass
class LinkRequest:
    """Code handed to the user, to be sent to the bot."""

    code: str
    expires_at: datetime
    expires_in: int
    instructions: str


@dataclass
class LinkResult:
    outcome: LinkOutcome
    user: User


def link_instructions(code: str) -> str:
    bot = f"@{settings.telegram_bot_username}" if settings.telegram_bot_username else "the bot"
    return f"Open Telegram, start a chat with {bot} and send: /link {code}"


class TelegramLinkProtocol:
    """Telegram linking lifecycle: unlinked -> link requested -> linked."""

    def __init__(
        self,
        store: CredentialStore,
        channel: NotificationChannel,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.channel = channel
        self.clock = clock

    async def request_link(self, email: str) -> LinkRequest:
        """Issue a link code for an existing, not yet linked account."""
        user = await self.store.get_user_by_email(email)
        if user is None:
            raise UserNotFoundError()
        if user.telegram_chat_id is not None:
            raise AlreadyLinkedError()

        now = self.clock()
        code = await self._new_link_code(now)
        lifetime = timedelta(minutes=settings.code_expiration_minutes)
        expires_at = expires_in(lifetime, now)
        async with self.store.transaction():
            await self.store.add_link_code(user.id, code, expires_at)

        logger.info(f"Telegram link code issued for user {user.id}")
        return LinkRequest(
            code=code,
            expires_at=expires_at,
            expires_in=int(lifetime.total_seconds()),
            instructions=link_instructions(code),
        )

    async def register_pending(self, name: str, email: str, password: str) -> LinkRequest:
        """Hold a registration until its link code is confirmed from Telegram.

        An expired pending registration for the same email is replaced; a
        live one, or an existing account, is a duplicate.
        """
        now = self.clock()
        if await self.store.get_user_by_email(email) is not None:
            raise DuplicateEmailError()
        if await self.store.get_live_pending_by_email(email, now) is not None:
            raise DuplicateEmailError()

        code = await self._new_link_code(now)
        lifetime = timedelta(minutes=settings.pending_registration_expiration_minutes)
        expires_at = expires_in(lifetime, now)
        password_hash = hash_password(password)
        async with self.store.transaction():
            await self.store.delete_expired_pending(now, email=email)
            await self.store.add_pending(
                name=name,
                email=email,
                password_hash=password_hash,
                link_code=code,
                expires_at=expires_at,
            )

        logger.info("Pending registration created")
        return LinkRequest(
            code=code,
            expires_at=expires_at,
            expires_in=int(lifetime.total_seconds()),
            instructions=link_instructions(code),
        )

    async def confirm_link(self, code: str, chat_id: int) -> LinkResult:
        """Bind ``chat_id`` using a pending registration code or a link code."""
        now = self.clock()

        pending = await self.store.get_live_pending_by_code(code, now)
        if pending is not None:
            if await self.store.get_user_by_chat(chat_id) is not None:
                raise AlreadyBoundError()

            async with self.store.transaction():
                if not await self.store.claim_pending(pending.id, now):
                    raise InvalidCodeError()
                user = await self.store.add_user(
                    name=pending.name,
                    email=pending.email,
                    password_hash=pending.password,
                    telegram_chat_id=chat_id,
                )

            logger.info(f"Pending registration promoted to user {user.id}")
            await self._welcome(chat_id, user, TemplateKind.REGISTRATION_WELCOME)
            return LinkResult(outcome=LinkOutcome.NEW_USER_LINKED, user=user)

        link_code = await self.store.find_live_link_code(code, now)
        if link_code is None:
            raise InvalidCodeError()

        user = await self.store.get_user(link_code.user_id)
        if user is None:
            raise InvalidCodeError()

        bound = await self.store.get_user_by_chat(chat_id)
        if bound is not None and bound.id != user.id:
            raise AlreadyBoundError()
        already_linked = user.telegram_chat_id == chat_id

        async with self.store.transaction():
            if not await self.store.mark_code_used(TelegramLinkCode, link_code.id, now):
                raise InvalidCodeError()
            if not already_linked:
                await self.store.bind_telegram_chat(user.id, chat_id)

        if already_linked:
            return LinkResult(outcome=LinkOutcome.ALREADY_LINKED, user=user)

        logger.info(f"Telegram chat linked to user {user.id}")
        linked = await self.store.get_user(user.id)
        if linked is None:
            raise InvalidCodeError()
        await self._welcome(chat_id, linked, TemplateKind.LINK_WELCOME)
        return LinkResult(outcome=LinkOutcome.EXISTING_USER_LINKED, user=linked)

    async def check_link(self, email: str) -> bool:
        user = await self.store.get_user_by_email(email)
        return user is not None and user.telegram_chat_id is not None

    async def sweep_expired_pending(self) -> int:
        """Delete pending registrations that have expired by now."""
        async with self.store.transaction():
            deleted = await self.store.delete_expired_pending(self.clock())
        if deleted:
            logger.info(f"Deleted {deleted} expired pending registrations")
        return deleted

    async def _new_link_code(self, now: datetime) -> str:
        for _attempt in range(MAX_CODE_ATTEMPTS):
            code = issue_numeric_code()
            if not await self.store.is_link_code_taken(code, now):
                return code
        logger.warning("Could not find an unused link code, accepting a duplicate")
        return code

    async def _welcome(self, chat_id: int, user: User, kind: TemplateKind) -> None:
        text = render_template(kind, {"email": user.email, "name": user.name})
        if not await self.channel.send_telegram(chat_id, text):
            logger.warning(f"Welcome message not delivered to chat {chat_id}")
