from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from core import settings

from .errors import PostValidationError
from .records import FeedBatch, FeedEntry
from .store import PostStoreAdapter

DEFAULT_FEED_LIMIT = 20
DEFAULT_COMMENT_LIMIT = 3


def assemble_feed_entries(batch: FeedBatch, viewer_id: str | None = None) -> list[FeedEntry]:
    """Merge a page of posts with its lookups, keyed by post id.

    Posts absent from a lookup get zero counts, no viewer like and an empty
    comment window. Page order is preserved.
    """
    entries: list[FeedEntry] = []
    for post in batch.posts:
        entries.append(
            FeedEntry.from_record(
                post,
                like_count=batch.like_counts.get(post.id, 0),
                comment_count=batch.comment_counts.get(post.id, 0),
                viewer_has_liked=viewer_id is not None and post.id in batch.liked_post_ids,
                recent_comments=tuple(batch.comments_by_post.get(post.id, ())),
            )
        )
    return entries


async def list_feed(
    session: AsyncSession,
    limit: int = DEFAULT_FEED_LIMIT,
    *,
    author_id: str | None = None,
    viewer_id: str | None = None,
    comment_limit: int | None = None,
) -> list[FeedEntry]:
    """Return the newest posts, optionally for one author, enriched for ``viewer_id``."""
    if comment_limit is None:
        comment_limit = settings.feed_comment_limit
    if limit < 1:
        raise PostValidationError("Feed limit must be positive.")
    if comment_limit < 1:
        raise PostValidationError("Comment limit must be positive.")

    store = PostStoreAdapter(session)
    batch = await store.fetch_feed(
        limit=limit,
        author_id=author_id,
        viewer_id=viewer_id,
        comment_limit=comment_limit,
    )
    return assemble_feed_entries(batch, viewer_id)
