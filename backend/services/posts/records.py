"""Storage-agnostic records shared by both post store implementations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True, slots=True)
class AuthorSummary:
    id: str
    username: str
    display_name: str | None = None


@dataclass(frozen=True, slots=True)
class CommentRecord:
    id: str
    post_id: str
    content: str
    created_at: datetime
    author: AuthorSummary


@dataclass(frozen=True, slots=True)
class PostRecord:
    id: str
    image_url: str
    caption: str | None
    created_at: datetime
    author: AuthorSummary


@dataclass(frozen=True, slots=True)
class FeedEntry:
    """A post enriched with live counters and its recent-comments window."""

    id: str
    image_url: str
    caption: str | None
    created_at: datetime
    author: AuthorSummary
    like_count: int = 0
    comment_count: int = 0
    viewer_has_liked: bool = False
    recent_comments: tuple[CommentRecord, ...] = ()

    @classmethod
    def from_record(cls, post: PostRecord, **enrichment) -> "FeedEntry":
        return cls(
            id=post.id,
            image_url=post.image_url,
            caption=post.caption,
            created_at=post.created_at,
            author=post.author,
            **enrichment,
        )


@dataclass(slots=True)
class FeedBatch:
    """One page of posts plus the per-post lookups used to enrich it."""

    posts: list[PostRecord] = field(default_factory=list)
    like_counts: dict[str, int] = field(default_factory=dict)
    comment_counts: dict[str, int] = field(default_factory=dict)
    liked_post_ids: set[str] = field(default_factory=set)
    comments_by_post: dict[str, list[CommentRecord]] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class LikeToggleResult:
    liked: bool
    like_count: int


@dataclass(frozen=True, slots=True)
class CommentCreateResult:
    comment: CommentRecord
    comment_count: int
