"""User model."""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime
from sqlmodel import Field, SQLModel

from sudu.models.base import TimestampMixin, generate_nanoid


class User(TimestampMixin, SQLModel, table=True):
    """User account model.

    Verification and reset tokens live on the row: issuing a new one
    overwrites the previous value, so at most one of each kind is live.
    """

    __tablename__ = "users"

    id: str = Field(default_factory=generate_nanoid, primary_key=True, max_length=21)
    name: str = Field(max_length=255)
    email: str = Field(unique=True, index=True, max_length=255)
    password: str = Field(max_length=255, description="bcrypt hash")
    email_verified: bool = Field(default=False)
    verification_token: str | None = Field(default=None, index=True, max_length=64)
    reset_token: str | None = Field(default=None, index=True, max_length=64)
    reset_token_expires: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
    )
    telegram_chat_id: int | None = Field(
        default=None,
        unique=True,
        nullable=True,
        sa_type=BigInteger,  # type: ignore[call-overload]
        description="Bound Telegram chat",
    )

    @property
    def is_confirmed(self) -> bool:
        """Whether the user proved control of an email address or a Telegram chat."""
        return self.email_verified or self.telegram_chat_id is not None


class UserRead(SQLModel):
    """Schema for reading a user."""

    id: str
    name: str
    email: str
    email_verified: bool
    telegram_linked: bool = False

    @classmethod
    def from_user(cls, user: User) -> "UserRead":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            email_verified=user.email_verified,
            telegram_linked=user.telegram_chat_id is not None,
        )
