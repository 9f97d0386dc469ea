"""Direct message model."""

from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, func
from sqlmodel import Field, SQLModel

from core.clock import utc_now

MAX_MESSAGE_LENGTH = 1024


class Message(SQLModel, table=True):
    """A private message between two users."""

    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_sender_receiver_created_at", "sender_id", "receiver_id", "created_at"),
        Index("ix_messages_receiver_created_at", "receiver_id", "created_at"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), sa_column=Column(String(36), primary_key=True))
    sender_id: str = Field(
        sa_column=Column(
            String(36),
            ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        )
    )
    receiver_id: str = Field(
        sa_column=Column(
            String(36),
            ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        )
    )
    content: str = Field(
        sa_column=Column(String(MAX_MESSAGE_LENGTH), nullable=False)
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        ),
    )
