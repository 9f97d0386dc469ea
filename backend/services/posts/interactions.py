"""Post creation, like toggling and commenting."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from models.comment import MAX_COMMENT_LENGTH
from models.post import MAX_CAPTION_LENGTH

from .errors import AuthorNotFoundError, PostNotFoundError, PostValidationError
from .records import AuthorSummary, CommentCreateResult, FeedEntry, LikeToggleResult
from .store import PostStoreAdapter

logger = logging.getLogger(__name__)


def normalize_caption(caption: str | None) -> str | None:
    if caption is None:
        return None
    cleaned = caption.strip()
    if not cleaned:
        return None
    if len(cleaned) > MAX_CAPTION_LENGTH:
        raise PostValidationError(
            f"Caption must be at most {MAX_CAPTION_LENGTH} characters."
        )
    return cleaned


def normalize_comment(content: str | None) -> str:
    """Trim a comment and cap it at the stored length; blank input is rejected."""
    cleaned = (content or "").strip()
    if not cleaned:
        raise PostValidationError("Comment cannot be empty.")
    return cleaned[:MAX_COMMENT_LENGTH]


async def _require_author(store: PostStoreAdapter, user_id: str) -> AuthorSummary:
    author = await store.get_author(user_id)
    if author is None:
        raise AuthorNotFoundError(user_id)
    return author


async def _require_post(store: PostStoreAdapter, post_id: str) -> None:
    if not await store.post_exists(post_id):
        raise PostNotFoundError(post_id)


async def create_post(
    session: AsyncSession,
    author_id: str,
    image_url: str | None,
    caption: str | None = None,
) -> FeedEntry:
    image_ref = (image_url or "").strip()
    if not image_ref:
        raise PostValidationError("Please upload an image.")
    cleaned_caption = normalize_caption(caption)

    store = PostStoreAdapter(session)
    author = await _require_author(store, author_id)
    post = await store.create_post(author, image_ref, cleaned_caption)
    logger.info("Post created", extra={"post_id": post.id, "author_id": author_id})
    return FeedEntry.from_record(post)


async def toggle_like(session: AsyncSession, post_id: str, user_id: str) -> LikeToggleResult:
    """Flip ``user_id``'s like on ``post_id`` and return the resulting state.

    The unique (post, user) constraint settles races: a delete that removed
    nothing falls through to an insert, and an insert rejected as a duplicate
    means another request already liked the post for this user.
    """
    store = PostStoreAdapter(session)
    await _require_post(store, post_id)

    if await store.delete_like(post_id, user_id):
        liked = False
    else:
        inserted = await store.insert_like(post_id, user_id)
        if not inserted:
            logger.info(
                "Concurrent like detected",
                extra={"post_id": post_id, "user_id": user_id},
            )
        liked = True

    like_count = await store.count_likes(post_id)
    return LikeToggleResult(liked=liked, like_count=like_count)


async def add_comment(
    session: AsyncSession,
    post_id: str,
    user_id: str,
    content: str | None,
) -> CommentCreateResult:
    cleaned = normalize_comment(content)

    store = PostStoreAdapter(session)
    await _require_post(store, post_id)
    author = await _require_author(store, user_id)
    comment = await store.insert_comment(post_id, author, cleaned)
    comment_count = await store.count_comments(post_id)
    return CommentCreateResult(comment=comment, comment_count=comment_count)


async def count_posts_by_author(session: AsyncSession, author_id: str) -> int:
    return await PostStoreAdapter(session).count_posts_by_author(author_id)
