"""SQLModel models package."""

from .comment import PostComment
from .follow import Follow
from .like import PostLike
from .message import Message
from .post import Post
from .user import ROLE_ADMIN, ROLE_USER, User
from .user_session import UserSession

__all__ = [
    "User",
    "UserSession",
    "Follow",
    "Message",
    "Post",
    "PostLike",
    "PostComment",
    "ROLE_ADMIN",
    "ROLE_USER",
]
