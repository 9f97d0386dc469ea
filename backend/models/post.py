"""Image post model."""

from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Text, func
from sqlmodel import Field, SQLModel

from core.clock import utc_now

MAX_CAPTION_LENGTH = 1024


class Post(SQLModel, table=True):
    """An image shared by a user."""

    __tablename__ = "posts"
    __table_args__ = (
        Index("ix_posts_author_id_created_at", "author_id", "created_at"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), sa_column=Column(String(36), primary_key=True))
    image_url: str = Field(
        sa_column=Column(Text, nullable=False)
    )
    caption: str | None = Field(
        default=None, sa_column=Column(String(MAX_CAPTION_LENGTH), nullable=True)
    )
    author_id: str = Field(
        sa_column=Column(
            String(36),
            ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        )
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        ),
    )
