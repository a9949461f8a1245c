"""chat tables

Revision ID: 5c1e7a93b2d4
Revises:
Create Date: 2026-10-19 09:12:44.318207

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5c1e7a93b2d4"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the connection registry and message tables."""
    op.create_table(
        "chat_connection",
        sa.Column("connection_id", sa.String(length=128), nullable=False),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("username", sa.Text(), nullable=False),
        sa.Column("connected_at", sa.BigInteger(), nullable=False),
        sa.Column("expires_at", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("connection_id"),
    )
    op.create_index(
        "ix_chat_connection_expires_at", "chat_connection", ["expires_at"], unique=False
    )

    op.create_table(
        "chat_message",
        sa.Column("room_id", sa.String(length=255), nullable=False),
        sa.Column("sort_key", sa.String(length=255), nullable=False),
        sa.Column("message_id", sa.String(length=128), nullable=False),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("username", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("room_id", "sort_key"),
        sa.UniqueConstraint("message_id"),
    )
    op.create_index(
        "ix_chat_message_user_sort", "chat_message", ["user_id", "sort_key"], unique=False
    )


def downgrade() -> None:
    """Drop the chat tables."""
    op.drop_index("ix_chat_message_user_sort", table_name="chat_message")
    op.drop_table("chat_message")
    op.drop_index("ix_chat_connection_expires_at", table_name="chat_connection")
    op.drop_table("chat_connection")
