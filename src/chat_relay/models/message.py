# src/chat_relay/models/message.py
"""Models describing persisted chat messages."""

from sqlalchemy import BigInteger, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from chat_relay.db.session import Base


class Message(Base):
    """Chat message partitioned by room and ordered by ``sort_key``.

    Messages are append-only: there is no edit, delete or expiry.
    """

    __tablename__ = "chat_message"

    room_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    # "<13-digit created_at>#<message_id>", sorts chronologically.
    sort_key: Mapped[str] = mapped_column(String(255), primary_key=True)
    message_id: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)

    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    username: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Secondary access path: a user's messages across rooms.
    __table_args__ = (Index("ix_chat_message_user_sort", "user_id", "sort_key"),)
