"""Wire models for feed entries and interaction results."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from core.clock import ensure_aware

from .records import (
    AuthorSummary,
    CommentCreateResult,
    CommentRecord,
    FeedEntry,
    LikeToggleResult,
)


class AuthorResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    display_name: str | None = None

    @classmethod
    def from_summary(cls, author: AuthorSummary) -> "AuthorResponse":
        return cls(id=author.id, username=author.username, display_name=author.display_name)


class CommentResponse(BaseModel):
    id: str
    post_id: str
    content: str
    created_at: datetime
    author: AuthorResponse

    @classmethod
    def from_record(cls, comment: CommentRecord) -> "CommentResponse":
        return cls(
            id=comment.id,
            post_id=comment.post_id,
            content=comment.content,
            created_at=ensure_aware(comment.created_at),
            author=AuthorResponse.from_summary(comment.author),
        )


class PostResponse(BaseModel):
    id: str
    image_url: str
    caption: str | None = None
    created_at: datetime
    like_count: int = 0
    comment_count: int = 0
    viewer_has_liked: bool = False
    comments: list[CommentResponse] = []
    author: AuthorResponse

    @classmethod
    def from_entry(cls, entry: FeedEntry) -> "PostResponse":
        return cls(
            id=entry.id,
            image_url=entry.image_url,
            caption=entry.caption,
            created_at=ensure_aware(entry.created_at),
            like_count=entry.like_count,
            comment_count=entry.comment_count,
            viewer_has_liked=entry.viewer_has_liked,
            comments=[CommentResponse.from_record(comment) for comment in entry.recent_comments],
            author=AuthorResponse.from_summary(entry.author),
        )


class FeedResponse(BaseModel):
    posts: list[PostResponse]


class PostCreateResponse(BaseModel):
    post: PostResponse


class LikeToggleResponse(BaseModel):
    liked: bool
    like_count: int

    @classmethod
    def from_result(cls, result: LikeToggleResult) -> "LikeToggleResponse":
        return cls(liked=result.liked, like_count=result.like_count)


class CommentCreateResponse(BaseModel):
    comment: CommentResponse
    comment_count: int

    @classmethod
    def from_result(cls, result: CommentCreateResult) -> "CommentCreateResponse":
        return cls(
            comment=CommentResponse.from_record(result.comment),
            comment_count=result.comment_count,
        )
