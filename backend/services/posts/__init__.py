"""Feed and interaction services for posts, likes and comments."""

from .errors import (
    AuthorNotFoundError,
    NotFoundError,
    PostError,
    PostNotFoundError,
    PostValidationError,
)
from .feed import DEFAULT_COMMENT_LIMIT, DEFAULT_FEED_LIMIT, assemble_feed_entries, list_feed
from .interactions import (
    add_comment,
    count_posts_by_author,
    create_post,
    normalize_caption,
    normalize_comment,
    toggle_like,
)
from .provisioning import SchemaGuard, ensure_post_infrastructure, post_schema_guard
from .records import (
    AuthorSummary,
    CommentCreateResult,
    CommentRecord,
    FeedBatch,
    FeedEntry,
    LikeToggleResult,
    PostRecord,
)
from .store import NativePostStore, PostStore, PostStoreAdapter, RawPostStore, has_native_schema

__all__ = [
    "AuthorNotFoundError",
    "AuthorSummary",
    "CommentCreateResult",
    "CommentRecord",
    "DEFAULT_COMMENT_LIMIT",
    "DEFAULT_FEED_LIMIT",
    "FeedBatch",
    "FeedEntry",
    "LikeToggleResult",
    "NativePostStore",
    "NotFoundError",
    "PostError",
    "PostNotFoundError",
    "PostRecord",
    "PostStore",
    "PostStoreAdapter",
    "PostValidationError",
    "RawPostStore",
    "SchemaGuard",
    "add_comment",
    "assemble_feed_entries",
    "count_posts_by_author",
    "create_post",
    "ensure_post_infrastructure",
    "has_native_schema",
    "list_feed",
    "normalize_caption",
    "normalize_comment",
    "post_schema_guard",
    "toggle_like",
]
