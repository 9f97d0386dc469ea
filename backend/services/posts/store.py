"""Post storage strategies.

Two physical representations back the post subsystem:

* ``NativePostStore`` talks to the migrated schema through the SQLModel
  entities and the SQLAlchemy query builder.
* ``RawPostStore`` issues hand-written parameterized SQL against tables it
  provisions itself on first use.

``PostStoreAdapter`` picks one per call so feed and interaction code never
needs to know which representation is active.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar, cast
from uuid import uuid4

from sqlalchemy import DateTime, Integer, String, bindparam, delete, exists, func, insert, select, text
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession
from sqlalchemy.sql import ColumnElement
from sqlalchemy.sql.elements import TextClause
from sqlmodel import SQLModel

from core import settings
from core.clock import utc_now
from db.errors import is_missing_relation, is_unique_violation
from db.session import statement_scope
from models import Post, PostComment, PostLike, User

from .provisioning import ensure_post_infrastructure
from .records import AuthorSummary, CommentRecord, FeedBatch, PostRecord

logger = logging.getLogger(__name__)

NATIVE_TABLES = ("posts", "post_likes", "post_comments")
T = TypeVar("T")

feed_read_slots = asyncio.Semaphore(max(settings.feed_fanout_connections, 1))


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def _desc(column: Any) -> Any:
    return cast(Any, column).desc()


def has_native_schema() -> bool:
    """Whether the ORM-backed store may be tried for this call.

    This only checks configuration and the mapped metadata; it does not touch
    the database. A database that was never migrated is detected by the
    missing-relation error the native store raises, which ``PostStoreAdapter``
    turns into a fallback.
    """
    if not settings.post_store_native_enabled:
        return False
    tables = SQLModel.metadata.tables
    return all(name in tables for name in NATIVE_TABLES)


def group_comments(comments: Sequence[CommentRecord]) -> dict[str, list[CommentRecord]]:
    grouped: dict[str, list[CommentRecord]] = {}
    for comment in comments:
        grouped.setdefault(comment.post_id, []).append(comment)
    return grouped


class PostStore(ABC):
    """Read/write primitives for posts, likes and comments.

    Primitives never commit; ``PostStoreAdapter`` commits after writes.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @abstractmethod
    async def fetch_feed(
        self,
        *,
        limit: int,
        author_id: str | None,
        viewer_id: str | None,
        comment_limit: int,
    ) -> FeedBatch: ...

    @abstractmethod
    async def get_author(self, user_id: str) -> AuthorSummary | None: ...

    @abstractmethod
    async def create_post(
        self,
        author: AuthorSummary,
        image_url: str,
        caption: str | None,
    ) -> PostRecord: ...

    @abstractmethod
    async def post_exists(self, post_id: str) -> bool: ...

    @abstractmethod
    async def insert_like(self, post_id: str, user_id: str) -> bool:
        """Insert a like; return False when the (post, user) pair already exists."""

    @abstractmethod
    async def delete_like(self, post_id: str, user_id: str) -> bool:
        """Delete a like; return True when a row was removed."""

    @abstractmethod
    async def count_likes(self, post_id: str) -> int: ...

    @abstractmethod
    async def insert_comment(
        self,
        post_id: str,
        author: AuthorSummary,
        content: str,
    ) -> CommentRecord: ...

    @abstractmethod
    async def count_comments(self, post_id: str) -> int: ...

    @abstractmethod
    async def count_posts_by_author(self, author_id: str) -> int: ...

    async def _insert_unless_duplicate(
        self,
        statement: Any,
        params: dict[str, Any] | None = None,
    ) -> bool:
        # The duplicate surfaces at execute time; only that statement is undone.
        try:
            async with statement_scope(self.session):
                await self.session.execute(statement, params)
        except IntegrityError as exc:
            if not is_unique_violation(exc):
                raise
            return False
        return True


class NativePostStore(PostStore):
    """ORM-backed store over the migrated schema."""

    async def fetch_feed(
        self,
        *,
        limit: int,
        author_id: str | None,
        viewer_id: str | None,
        comment_limit: int,
    ) -> FeedBatch:
        post_entity = cast(Any, Post)
        like_post_id = cast(ColumnElement[str], PostLike.post_id)
        comment_post_id = cast(ColumnElement[str], PostComment.post_id)
        like_count = (
            select(func.count())
            .select_from(PostLike)
            .where(_eq(like_post_id, Post.id))
            .correlate(post_entity)
            .scalar_subquery()
            .label("like_count")
        )
        comment_count = (
            select(func.count())
            .select_from(PostComment)
            .where(_eq(comment_post_id, Post.id))
            .correlate(post_entity)
            .scalar_subquery()
            .label("comment_count")
        )
        columns: list[Any] = [
            post_entity,
            cast(ColumnElement[str], User.username),
            cast(ColumnElement[str | None], User.display_name),
            like_count,
            comment_count,
        ]
        if viewer_id is not None:
            columns.append(
                exists(
                    select(PostLike.id).where(
                        _eq(like_post_id, Post.id),
                        _eq(PostLike.user_id, viewer_id),
                    )
                ).label("viewer_has_liked")
            )

        query = (
            select(*columns)
            .join(User, _eq(User.id, Post.author_id))
            .order_by(_desc(Post.created_at), _desc(Post.id))
            .limit(limit)
        )
        if author_id is not None:
            query = query.where(_eq(Post.author_id, author_id))

        result = await self.session.execute(query)
        batch = FeedBatch()
        for row in result.all():
            post, username, display_name, likes, comments = row[:5]
            batch.posts.append(
                PostRecord(
                    id=post.id,
                    image_url=post.image_url,
                    caption=post.caption,
                    created_at=post.created_at,
                    author=AuthorSummary(
                        id=post.author_id,
                        username=username,
                        display_name=display_name,
                    ),
                )
            )
            batch.like_counts[post.id] = int(likes or 0)
            batch.comment_counts[post.id] = int(comments or 0)
            if viewer_id is not None and row[5]:
                batch.liked_post_ids.add(post.id)

        if batch.posts:
            recent = await self._fetch_recent_comments(
                [post.id for post in batch.posts],
                comment_limit,
            )
            batch.comments_by_post = group_comments(recent)
        return batch

    async def _fetch_recent_comments(
        self,
        post_ids: list[str],
        comment_limit: int,
    ) -> list[CommentRecord]:
        comment_post_id = cast(ColumnElement[str], PostComment.post_id)
        row_number = (
            func.row_number()
            .over(
                partition_by=comment_post_id,
                order_by=(_desc(PostComment.created_at), _desc(PostComment.id)),
            )
            .label("row_num")
        )
        ranked = (
            select(
                cast(ColumnElement[str], PostComment.id),
                comment_post_id,
                cast(ColumnElement[str], PostComment.content),
                cast(ColumnElement[Any], PostComment.created_at),
                cast(ColumnElement[str], User.id).label("author_id"),
                cast(ColumnElement[str], User.username),
                cast(ColumnElement[str | None], User.display_name),
                row_number,
            )
            .join(User, _eq(User.id, PostComment.user_id))
            .where(comment_post_id.in_(post_ids))
            .subquery("ranked_comments")
        )
        result = await self.session.execute(
            select(ranked)
            .where(ranked.c.row_num <= comment_limit)
            .order_by(_desc(ranked.c.created_at), _desc(ranked.c.id))
        )
        return [
            CommentRecord(
                id=row.id,
                post_id=row.post_id,
                content=row.content,
                created_at=row.created_at,
                author=AuthorSummary(
                    id=row.author_id,
                    username=row.username,
                    display_name=row.display_name,
                ),
            )
            for row in result.all()
        ]

    async def get_author(self, user_id: str) -> AuthorSummary | None:
        result = await self.session.execute(
            select(
                cast(ColumnElement[str], User.id),
                cast(ColumnElement[str], User.username),
                cast(ColumnElement[str | None], User.display_name),
            )
            .where(_eq(User.id, user_id))
            .limit(1)
        )
        row = result.first()
        if row is None:
            return None
        return AuthorSummary(id=row[0], username=row[1], display_name=row[2])

    async def create_post(
        self,
        author: AuthorSummary,
        image_url: str,
        caption: str | None,
    ) -> PostRecord:
        record = PostRecord(
            id=str(uuid4()),
            image_url=image_url,
            caption=caption,
            created_at=utc_now(),
            author=author,
        )
        await self.session.execute(
            insert(Post).values(
                id=record.id,
                image_url=record.image_url,
                caption=record.caption,
                author_id=author.id,
                created_at=record.created_at,
            )
        )
        return record

    async def post_exists(self, post_id: str) -> bool:
        result = await self.session.execute(
            select(cast(ColumnElement[str], Post.id)).where(_eq(Post.id, post_id)).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def insert_like(self, post_id: str, user_id: str) -> bool:
        return await self._insert_unless_duplicate(
            insert(PostLike).values(
                id=str(uuid4()),
                post_id=post_id,
                user_id=user_id,
                created_at=utc_now(),
            )
        )

    async def delete_like(self, post_id: str, user_id: str) -> bool:
        result = await self.session.execute(
            delete(PostLike).where(
                _eq(PostLike.post_id, post_id),
                _eq(PostLike.user_id, user_id),
            )
        )
        return int(cast(Any, result).rowcount or 0) > 0

    async def count_likes(self, post_id: str) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(PostLike).where(_eq(PostLike.post_id, post_id))
        )
        return int(result.scalar_one() or 0)

    async def insert_comment(
        self,
        post_id: str,
        author: AuthorSummary,
        content: str,
    ) -> CommentRecord:
        record = CommentRecord(
            id=str(uuid4()),
            post_id=post_id,
            content=content,
            created_at=utc_now(),
            author=author,
        )
        await self.session.execute(
            insert(PostComment).values(
                id=record.id,
                post_id=post_id,
                user_id=author.id,
                content=content,
                created_at=record.created_at,
            )
        )
        return record

    async def count_comments(self, post_id: str) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(PostComment)
            .where(_eq(PostComment.post_id, post_id))
        )
        return int(result.scalar_one() or 0)

    async def count_posts_by_author(self, author_id: str) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(Post).where(_eq(Post.author_id, author_id))
        )
        return int(result.scalar_one() or 0)


_TIMESTAMP = DateTime(timezone=True)

_POST_COLUMNS = {
    "id": String,
    "image_url": String,
    "caption": String,
    "created_at": _TIMESTAMP,
    "author_id": String,
    "username": String,
    "display_name": String,
}
_COMMENT_COLUMNS = {
    "id": String,
    "post_id": String,
    "content": String,
    "created_at": _TIMESTAMP,
    "author_id": String,
    "username": String,
    "display_name": String,
}
_COUNT_COLUMNS = {"post_id": String, "total": Integer}

FEED_PAGE_SQL = """
    SELECT p.id, p.image_url, p.caption, p.created_at, p.author_id,
           u.username, u.display_name
    FROM posts AS p
    INNER JOIN users AS u ON u.id = p.author_id
    {where}
    ORDER BY p.created_at DESC, p.id DESC
    LIMIT :limit
"""

LIKE_COUNTS_SQL = text(
    """
    SELECT post_id, COUNT(*) AS total
    FROM post_likes
    WHERE post_id IN :post_ids
    GROUP BY post_id
    """
).bindparams(bindparam("post_ids", expanding=True)).columns(**_COUNT_COLUMNS)

COMMENT_COUNTS_SQL = text(
    """
    SELECT post_id, COUNT(*) AS total
    FROM post_comments
    WHERE post_id IN :post_ids
    GROUP BY post_id
    """
).bindparams(bindparam("post_ids", expanding=True)).columns(**_COUNT_COLUMNS)

VIEWER_LIKES_SQL = text(
    """
    SELECT post_id
    FROM post_likes
    WHERE user_id = :viewer_id AND post_id IN :post_ids
    """
).bindparams(bindparam("post_ids", expanding=True)).columns(post_id=String)

RECENT_COMMENTS_SQL = text(
    """
    SELECT ranked.id, ranked.post_id, ranked.content, ranked.created_at,
           ranked.author_id, ranked.username, ranked.display_name
    FROM (
        SELECT c.id, c.post_id, c.content, c.created_at,
               u.id AS author_id, u.username, u.display_name,
               ROW_NUMBER() OVER (
                   PARTITION BY c.post_id
                   ORDER BY c.created_at DESC, c.id DESC
               ) AS row_num
        FROM post_comments AS c
        INNER JOIN users AS u ON u.id = c.user_id
        WHERE c.post_id IN :post_ids
    ) AS ranked
    WHERE ranked.row_num <= :comment_limit
    ORDER BY ranked.created_at DESC, ranked.id DESC
    """
).bindparams(bindparam("post_ids", expanding=True)).columns(**_COMMENT_COLUMNS)

AUTHOR_SQL = text(
    "SELECT id, username, display_name FROM users WHERE id = :user_id"
).columns(id=String, username=String, display_name=String)

INSERT_POST_SQL = text(
    """
    INSERT INTO posts (id, image_url, caption, author_id, created_at)
    VALUES (:id, :image_url, :caption, :author_id, :created_at)
    """
).bindparams(bindparam("created_at", type_=_TIMESTAMP))

POST_EXISTS_SQL = text("SELECT 1 FROM posts WHERE id = :post_id LIMIT 1")

INSERT_LIKE_SQL = text(
    """
    INSERT INTO post_likes (id, post_id, user_id, created_at)
    VALUES (:id, :post_id, :user_id, :created_at)
    """
).bindparams(bindparam("created_at", type_=_TIMESTAMP))

DELETE_LIKE_SQL = text(
    "DELETE FROM post_likes WHERE post_id = :post_id AND user_id = :user_id"
)

COUNT_LIKES_SQL = text("SELECT COUNT(*) FROM post_likes WHERE post_id = :post_id")

INSERT_COMMENT_SQL = text(
    """
    INSERT INTO post_comments (id, post_id, user_id, content, created_at)
    VALUES (:id, :post_id, :user_id, :content, :created_at)
    """
).bindparams(bindparam("created_at", type_=_TIMESTAMP))

COUNT_COMMENTS_SQL = text("SELECT COUNT(*) FROM post_comments WHERE post_id = :post_id")

COUNT_POSTS_BY_AUTHOR_SQL = text("SELECT COUNT(*) FROM posts WHERE author_id = :author_id")


def _feed_page_statement(author_id: str | None) -> TextClause:
    where = "WHERE p.author_id = :author_id" if author_id is not None else ""
    return text(FEED_PAGE_SQL.format(where=where)).columns(**_POST_COLUMNS)


def _comment_from_row(row: Any) -> CommentRecord:
    return CommentRecord(
        id=row.id,
        post_id=row.post_id,
        content=row.content,
        created_at=row.created_at,
        author=AuthorSummary(
            id=row.author_id,
            username=row.username,
            display_name=row.display_name,
        ),
    )


class RawPostStore(PostStore):
    """Hand-written SQL over the lazily provisioned fallback tables."""

    @property
    def engine(self) -> AsyncEngine:
        bind = self.session.bind
        if not isinstance(bind, AsyncEngine):
            raise RuntimeError("RawPostStore requires a session bound to an AsyncEngine")
        return bind

    async def ensure_ready(self) -> None:
        await ensure_post_infrastructure(self.engine)

    async def _fetch_all(self, statement: Any, params: dict[str, Any]) -> list[Any]:
        # Own connection per statement so independent reads can run concurrently.
        async with feed_read_slots:
            async with self.engine.connect() as conn:
                result = await conn.execute(statement, params)
                return list(result.all())

    async def _scalar_count(self, statement: Any, params: dict[str, Any]) -> int:
        result = await self.session.execute(statement, params)
        return int(result.scalar_one() or 0)

    async def fetch_feed(
        self,
        *,
        limit: int,
        author_id: str | None,
        viewer_id: str | None,
        comment_limit: int,
    ) -> FeedBatch:
        params: dict[str, Any] = {"limit": limit}
        if author_id is not None:
            params["author_id"] = author_id
        page = await self.session.execute(_feed_page_statement(author_id), params)
        rows = page.all()
        if not rows:
            return FeedBatch()

        post_ids = [row.id for row in rows]
        viewer_likes: Awaitable[list[Any]]
        if viewer_id is not None:
            viewer_likes = self._fetch_all(
                VIEWER_LIKES_SQL,
                {"viewer_id": viewer_id, "post_ids": post_ids},
            )
        else:
            viewer_likes = asyncio.sleep(0, result=[])

        like_rows, comment_count_rows, viewer_rows, comment_rows = await asyncio.gather(
            self._fetch_all(LIKE_COUNTS_SQL, {"post_ids": post_ids}),
            self._fetch_all(COMMENT_COUNTS_SQL, {"post_ids": post_ids}),
            viewer_likes,
            self._fetch_all(
                RECENT_COMMENTS_SQL,
                {"post_ids": post_ids, "comment_limit": comment_limit},
            ),
        )

        return FeedBatch(
            posts=[
                PostRecord(
                    id=row.id,
                    image_url=row.image_url,
                    caption=row.caption,
                    created_at=row.created_at,
                    author=AuthorSummary(
                        id=row.author_id,
                        username=row.username,
                        display_name=row.display_name,
                    ),
                )
                for row in rows
            ],
            like_counts={row.post_id: int(row.total) for row in like_rows},
            comment_counts={row.post_id: int(row.total) for row in comment_count_rows},
            liked_post_ids={row.post_id for row in viewer_rows},
            comments_by_post=group_comments([_comment_from_row(row) for row in comment_rows]),
        )

    async def get_author(self, user_id: str) -> AuthorSummary | None:
        result = await self.session.execute(AUTHOR_SQL, {"user_id": user_id})
        row = result.first()
        if row is None:
            return None
        return AuthorSummary(id=row.id, username=row.username, display_name=row.display_name)

    async def create_post(
        self,
        author: AuthorSummary,
        image_url: str,
        caption: str | None,
    ) -> PostRecord:
        record = PostRecord(
            id=str(uuid4()),
            image_url=image_url,
            caption=caption,
            created_at=utc_now(),
            author=author,
        )
        await self.session.execute(
            INSERT_POST_SQL,
            {
                "id": record.id,
                "image_url": record.image_url,
                "caption": record.caption,
                "author_id": author.id,
                "created_at": record.created_at,
            },
        )
        return record

    async def post_exists(self, post_id: str) -> bool:
        result = await self.session.execute(POST_EXISTS_SQL, {"post_id": post_id})
        return result.first() is not None

    async def insert_like(self, post_id: str, user_id: str) -> bool:
        return await self._insert_unless_duplicate(
            INSERT_LIKE_SQL,
            {
                "id": str(uuid4()),
                "post_id": post_id,
                "user_id": user_id,
                "created_at": utc_now(),
            },
        )

    async def delete_like(self, post_id: str, user_id: str) -> bool:
        result = await self.session.execute(
            DELETE_LIKE_SQL,
            {"post_id": post_id, "user_id": user_id},
        )
        return int(cast(Any, result).rowcount or 0) > 0

    async def count_likes(self, post_id: str) -> int:
        return await self._scalar_count(COUNT_LIKES_SQL, {"post_id": post_id})

    async def insert_comment(
        self,
        post_id: str,
        author: AuthorSummary,
        content: str,
    ) -> CommentRecord:
        record = CommentRecord(
            id=str(uuid4()),
            post_id=post_id,
            content=content,
            created_at=utc_now(),
            author=author,
        )
        await self.session.execute(
            INSERT_COMMENT_SQL,
            {
                "id": record.id,
                "post_id": post_id,
                "user_id": author.id,
                "content": content,
                "created_at": record.created_at,
            },
        )
        return record

    async def count_comments(self, post_id: str) -> int:
        return await self._scalar_count(COUNT_COMMENTS_SQL, {"post_id": post_id})

    async def count_posts_by_author(self, author_id: str) -> int:
        return await self._scalar_count(COUNT_POSTS_BY_AUTHOR_SQL, {"author_id": author_id})


class PostStoreAdapter:
    """Routes each primitive to the native or the fallback store.

    The native store is tried whenever ``has_native_schema`` allows it. A
    missing-table error from it is logged and the same call is retried on the
    fallback store; the native store is tried again on the next call so a freshly
    migrated schema is picked up without a restart.

    The native attempt runs inside ``statement_scope`` so a failure undoes
    only that attempt: the caller's loaded objects and earlier work in the
    session survive the fallback. Write primitives are committed here, once
    whichever store served them has returned.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.native = NativePostStore(session)
        self.raw = RawPostStore(session)

    async def _run(
        self,
        operation: str,
        call: Callable[[PostStore], Awaitable[T]],
        *,
        commit: bool = False,
    ) -> T:
        if has_native_schema():
            try:
                async with statement_scope(self.session):
                    result = await call(self.native)
            except IntegrityError:
                raise
            except DBAPIError as exc:
                if not is_missing_relation(exc):
                    raise
                logger.warning(
                    "Native post schema unavailable, falling back to raw SQL",
                    extra={"operation": operation},
                    exc_info=exc,
                )
            else:
                return await self._finish(result, commit)

        await self.raw.ensure_ready()
        return await self._finish(await call(self.raw), commit)

    async def _finish(self, result: T, commit: bool) -> T:
        if commit:
            await self.session.commit()
        return result

    async def fetch_feed(
        self,
        *,
        limit: int,
        author_id: str | None = None,
        viewer_id: str | None = None,
        comment_limit: int,
    ) -> FeedBatch:
        return await self._run(
            "fetch_feed",
            lambda store: store.fetch_feed(
                limit=limit,
                author_id=author_id,
                viewer_id=viewer_id,
                comment_limit=comment_limit,
            ),
        )

    async def get_author(self, user_id: str) -> AuthorSummary | None:
        return await self._run("get_author", lambda store: store.get_author(user_id))

    async def create_post(
        self,
        author: AuthorSummary,
        image_url: str,
        caption: str | None,
    ) -> PostRecord:
        return await self._run(
            "create_post",
            lambda store: store.create_post(author, image_url, caption),
            commit=True,
        )

    async def post_exists(self, post_id: str) -> bool:
        return await self._run("post_exists", lambda store: store.post_exists(post_id))

    async def insert_like(self, post_id: str, user_id: str) -> bool:
        return await self._run(
            "insert_like",
            lambda store: store.insert_like(post_id, user_id),
            commit=True,
        )

    async def delete_like(self, post_id: str, user_id: str) -> bool:
        return await self._run(
            "delete_like",
            lambda store: store.delete_like(post_id, user_id),
            commit=True,
        )

    async def count_likes(self, post_id: str) -> int:
        return await self._run("count_likes", lambda store: store.count_likes(post_id))

    async def insert_comment(
        self,
        post_id: str,
        author: AuthorSummary,
        content: str,
    ) -> CommentRecord:
        return await self._run(
            "insert_comment",
            lambda store: store.insert_comment(post_id, author, content),
            commit=True,
        )

    async def count_comments(self, post_id: str) -> int:
        return await self._run("count_comments", lambda store: store.count_comments(post_id))

    async def count_posts_by_author(self, author_id: str) -> int:
        return await self._run(
            "count_posts_by_author",
            lambda store: store.count_posts_by_author(author_id),
        )
