"""create_auth_tables

Users, Telegram link and recovery codes, pending registrations.

Revision ID: 3f1c9a2b7d10
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f1c9a2b7d10"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _code_table(name: str) -> None:
    op.create_table(
        name,
        sa.Column("id", sa.VARCHAR(21), primary_key=True),
        sa.Column(
            "user_id",
            sa.VARCHAR(21),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("code", sa.VARCHAR(6), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index(f"ix_{name}_user_id", name, ["user_id"])
    op.create_index(f"ix_{name}_code", name, ["code"])


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.VARCHAR(21), primary_key=True),
        sa.Column("name", sa.VARCHAR(255), nullable=False),
        sa.Column("email", sa.VARCHAR(255), nullable=False),
        sa.Column("password", sa.VARCHAR(255), nullable=False),
        sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("verification_token", sa.VARCHAR(64), nullable=True),
        sa.Column("reset_token", sa.VARCHAR(64), nullable=True),
        sa.Column("reset_token_expires", sa.DateTime(timezone=True), nullable=True),
        sa.Column("telegram_chat_id", sa.BigInteger(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_verification_token", "users", ["verification_token"])
    op.create_index("ix_users_reset_token", "users", ["reset_token"])
    op.create_unique_constraint(
        "uq_users_telegram_chat_id", "users", ["telegram_chat_id"]
    )

    _code_table("telegram_link_codes")
    _code_table("telegram_codes")

    op.create_table(
        "pending_registrations",
        sa.Column("id", sa.VARCHAR(21), primary_key=True),
        sa.Column("name", sa.VARCHAR(255), nullable=False),
        sa.Column("email", sa.VARCHAR(255), nullable=False),
        sa.Column("password", sa.VARCHAR(255), nullable=False),
        sa.Column("link_code", sa.VARCHAR(6), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index(
        "ix_pending_registrations_email", "pending_registrations", ["email"], unique=True
    )
    op.create_index("ix_pending_registrations_link_code", "pending_registrations", ["link_code"])
    op.create_index(
        "ix_pending_registrations_expires_at", "pending_registrations", ["expires_at"]
    )


def downgrade() -> None:
    op.drop_table("pending_registrations")
    op.drop_table("telegram_codes")
    op.drop_table("telegram_link_codes")
    op.drop_table("users")
