"""Pending registration model."""

from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from sudu.models.base import CreatedAtMixin, generate_nanoid


class PendingRegistration(CreatedAtMixin, SQLModel, table=True):
    """Registration held until the user confirms its link code in Telegram.

    Promoted to a User on confirmation or deleted by the sweep once
    expired, never both.
    """

    __tablename__ = "pending_registrations"

    id: str = Field(default_factory=generate_nanoid, primary_key=True, max_length=21)
    name: str = Field(max_length=255)
    email: str = Field(unique=True, index=True, max_length=255)
    password: str = Field(max_length=255, description="bcrypt hash")
    link_code: str = Field(index=True, max_length=6)
    expires_at: datetime = Field(
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
        description="Pending registration expiration time",
    )
