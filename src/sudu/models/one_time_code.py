"""Six-digit one-time codes delivered through Telegram."""

from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from sudu.models.base import CreatedAtMixin, generate_nanoid


class OneTimeCodeBase(CreatedAtMixin, SQLModel):
    """Shared shape of link and recovery codes.

    A code is consumable only while ``used`` is false and ``expires_at``
    is in the future. ``used`` only ever goes from false to true.
    """

    id: str = Field(default_factory=generate_nanoid, primary_key=True, max_length=21)
    user_id: str = Field(foreign_key="users.id", index=True, ondelete="CASCADE", max_length=21)
    code: str = Field(index=True, max_length=6)
    expires_at: datetime = Field(
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
        description="Code expiration time",
    )
    used: bool = Field(default=False)


class TelegramLinkCode(OneTimeCodeBase, table=True):
    """Code that binds a Telegram chat to an existing account."""

    __tablename__ = "telegram_link_codes"


class TelegramCode(OneTimeCodeBase, table=True):
    """Password recovery code sent to the user's bound Telegram chat."""

    __tablename__ = "telegram_codes"
