"""Credential store: persistence for users, tokens, codes and pending registrations.

The store wraps a single ``AsyncSession`` handed in by the caller (the
request dependency or a job's session context). Single-use consumption is
done with conditional UPDATE/DELETE statements whose affected-row count
decides the winner, so two concurrent confirmations of the same code
cannot both succeed. Writes that belong together run inside
``transaction()``.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import delete, select

from sudu.models import OneTimeCodeBase, PendingRegistration, TelegramCode, TelegramLinkCode, User
from sudu.services.auth import AlreadyBoundError, DuplicateEmailError

logger = logging.getLogger(__name__)

# Conditional statements are re-read explicitly; the identity map is not
# synchronized in Python.
NO_SYNC = {"synchronize_session": False}


def _is_chat_conflict(error: IntegrityError) -> bool:
    return "telegram_chat_id" in str(error.orig)


class CredentialStore:
    """Data access for the auth protocols."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator["CredentialStore", None]:
        """Commit everything written in the block, or roll all of it back."""
        try:
            yield self
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

    # Users

    async def get_user(self, user_id: str) -> User | None:
        stmt = select(User).where(User.id == user_id).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_user_by_email(self, email: str) -> User | None:
        """Case-sensitive exact match."""
        stmt = select(User).where(User.email == email).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_user_by_chat(self, chat_id: int) -> User | None:
        stmt = (
            select(User)
            .where(User.telegram_chat_id == chat_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_unverified_user_by_token(self, token: str) -> User | None:
        stmt = select(User).where(
            User.verification_token == token,
            User.email_verified == False,  # noqa: E712
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_user_by_reset_token(self, token: str, now: datetime) -> User | None:
        stmt = select(User).where(User.reset_token == token, User.reset_token_expires > now)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def add_user(
        self,
        *,
        name: str,
        email: str,
        password_hash: str,
        verification_token: str | None = None,
        telegram_chat_id: int | None = None,
    ) -> User:
        """Insert a user; unique violations become typed errors."""
        user = User(
            name=name,
            email=email,
            password=password_hash,
            verification_token=verification_token,
            telegram_chat_id=telegram_chat_id,
        )
        self.session.add(user)
        try:
            await self.session.flush()
        except IntegrityError as e:
            if _is_chat_conflict(e):
                raise AlreadyBoundError() from e
            raise DuplicateEmailError() from e
        return user

    async def set_verification_token(self, user_id: str, token: str) -> None:
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(verification_token=token)
            .execution_options(**NO_SYNC)
        )
        await self.session.execute(stmt)

    async def mark_email_verified(self, user_id: str, token: str) -> bool:
        """Verify and clear the token, only if it is still the live one."""
        stmt = (
            update(User)
            .where(
                User.id == user_id,
                User.verification_token == token,
                User.email_verified == False,  # noqa: E712
            )
            .values(email_verified=True, verification_token=None)
            .execution_options(**NO_SYNC)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def set_reset_token(self, user_id: str, token: str, expires_at: datetime) -> None:
        """Store a reset token, replacing any previous one."""
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(reset_token=token, reset_token_expires=expires_at)
            .execution_options(**NO_SYNC)
        )
        await self.session.execute(stmt)

    async def consume_reset_token(self, token: str, password_hash: str, now: datetime) -> bool:
        """Change the password and clear the token in one conditional update."""
        stmt = (
            update(User)
            .where(User.reset_token == token, User.reset_token_expires > now)
            .values(password=password_hash, reset_token=None, reset_token_expires=None)
            .execution_options(**NO_SYNC)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def set_password(self, user_id: str, password_hash: str) -> None:
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(password=password_hash)
            .execution_options(**NO_SYNC)
        )
        await self.session.execute(stmt)

    async def bind_telegram_chat(self, user_id: str, chat_id: int) -> None:
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(telegram_chat_id=chat_id)
            .execution_options(**NO_SYNC)
        )
        try:
            await self.session.execute(stmt)
        except IntegrityError as e:
            raise AlreadyBoundError() from e

    # One-time codes

    async def add_link_code(self, user_id: str, code: str, expires_at: datetime) -> TelegramLinkCode:
        link_code = TelegramLinkCode(user_id=user_id, code=code, expires_at=expires_at)
        self.session.add(link_code)
        await self.session.flush()
        return link_code

    async def add_recovery_code(self, user_id: str, code: str, expires_at: datetime) -> TelegramCode:
        recovery_code = TelegramCode(user_id=user_id, code=code, expires_at=expires_at)
        self.session.add(recovery_code)
        await self.session.flush()
        return recovery_code

    async def find_live_link_code(self, code: str, now: datetime) -> TelegramLinkCode | None:
        """Newest unused, unexpired link code with this value."""
        stmt = (
            select(TelegramLinkCode)
            .join(User, User.id == TelegramLinkCode.user_id)
            .where(
                TelegramLinkCode.code == code,
                TelegramLinkCode.used == False,  # noqa: E712
                TelegramLinkCode.expires_at > now,
            )
            .order_by(TelegramLinkCode.created_at.desc())  # type: ignore[attr-defined]
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_live_recovery_code(
        self, email: str, code: str, now: datetime
    ) -> TelegramCode | None:
        """Unused, unexpired recovery code owned by the user with this email."""
        stmt = (
            select(TelegramCode)
            .join(User, User.id == TelegramCode.user_id)
            .where(
                User.email == email,
                TelegramCode.code == code,
                TelegramCode.used == False,  # noqa: E712
                TelegramCode.expires_at > now,
            )
            .order_by(TelegramCode.created_at.desc())  # type: ignore[attr-defined]
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def mark_code_used(
        self, model: type[OneTimeCodeBase], code_id: str, now: datetime
    ) -> bool:
        """Flip ``used`` to true if the code is still live. False if another caller won."""
        stmt = (
            update(model)
            .where(
                model.id == code_id,  # type: ignore[arg-type]
                model.used == False,  # noqa: E712
                model.expires_at > now,  # type: ignore[arg-type]
            )
            .values(used=True)
            .execution_options(**NO_SYNC)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def is_link_code_taken(self, code: str, now: datetime) -> bool:
        """Whether a live link code or live pending registration already uses ``code``."""
        link_stmt = select(TelegramLinkCode.id).where(
            TelegramLinkCode.code == code,
            TelegramLinkCode.used == False,  # noqa: E712
            TelegramLinkCode.expires_at > now,
        )
        pending_stmt = select(PendingRegistration.id).where(
            PendingRegistration.link_code == code,
            PendingRegistration.expires_at > now,
        )
        for stmt in (link_stmt, pending_stmt):
            result = await self.session.execute(stmt.limit(1))
            if result.first() is not None:
                return True
        return False

    # Pending registrations

    async def get_live_pending_by_email(
        self, email: str, now: datetime
    ) -> PendingRegistration | None:
        stmt = select(PendingRegistration).where(
            PendingRegistration.email == email,
            PendingRegistration.expires_at > now,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_live_pending_by_code(
        self, code: str, now: datetime
    ) -> PendingRegistration | None:
        stmt = (
            select(PendingRegistration)
            .where(
                PendingRegistration.link_code == code,
                PendingRegistration.expires_at > now,
            )
            .order_by(PendingRegistration.created_at.desc())  # type: ignore[attr-defined]
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def add_pending(
        self,
        *,
        name: str,
        email: str,
        password_hash: str,
        link_code: str,
        expires_at: datetime,
    ) -> PendingRegistration:
        pending = PendingRegistration(
            name=name,
            email=email,
            password=password_hash,
            link_code=link_code,
            expires_at=expires_at,
        )
        self.session.add(pending)
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise DuplicateEmailError() from e
        return pending

    async def claim_pending(self, pending_id: str, now: datetime) -> bool:
        """Delete the pending row if it has not expired. False if it is gone or expired."""
        stmt = (
            delete(PendingRegistration)
            .where(
                PendingRegistration.id == pending_id,
                PendingRegistration.expires_at > now,
            )
            .execution_options(**NO_SYNC)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def delete_expired_pending(self, now: datetime, email: str | None = None) -> int:
        """Delete pending registrations already expired at ``now``, optionally for one email."""
        stmt = delete(PendingRegistration).where(PendingRegistration.expires_at <= now)
        if email is not None:
            stmt = stmt.where(PendingRegistration.email == email)
        result = await self.session.execute(stmt.execution_options(**NO_SYNC))
        return result.rowcount or 0
