# src/chat_relay/models/connection.py
"""Model describing a live client channel in the connection registry."""

from sqlalchemy import BigInteger, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from chat_relay.db.session import Base


class Connection(Base):
    """Registry row for one live channel.

    Rows are written once on connect and removed on disconnect, on expiry or
    when a delivery proves the channel gone. They are never updated in place.
    """

    __tablename__ = "chat_connection"

    connection_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    username: Mapped[str] = mapped_column(Text, nullable=False)
    # Epoch milliseconds.
    connected_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # Epoch seconds; the row is stale once this has passed.
    expires_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (Index("ix_chat_connection_expires_at", "expires_at"),)
