"""SQLModel database models."""

from sudu.models.base import CreatedAtMixin, TimestampMixin, generate_nanoid, utc_now
from sudu.models.one_time_code import OneTimeCodeBase, TelegramCode, TelegramLinkCode
from sudu.models.pending_registration import PendingRegistration
from sudu.models.user import User, UserRead

__all__ = [
    "CreatedAtMixin",
    "OneTimeCodeBase",
    "PendingRegistration",
    "TelegramCode",
    "TelegramLinkCode",
    "TimestampMixin",
    "User",
    "UserRead",
    "generate_nanoid",
    "utc_now",
]
