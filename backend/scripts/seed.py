"""Database seed script for local development.

Usage:
    ADMIN_EMAIL=admin@example.com ADMIN_USERNAME=admin ADMIN_PASSWORD=... \
        uv run python scripts/seed.py

Creates (or refreshes) the platform admin account. When the database has no
posts yet, three starter photo posts are shared from that account so the feed
renders immediately.
"""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, cast

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.append(str(ROOT_DIR))

from core import settings  # noqa: E402
from core.security import hash_password  # noqa: E402
from db.session import AsyncSessionMaker  # noqa: E402
from models import ROLE_ADMIN, Post, User  # noqa: E402
from services.auth import normalize_email, normalize_username  # noqa: E402
from services.posts import create_post  # noqa: E402

ADMIN_DISPLAY_NAME = "Platform Admin"
ADMIN_BIO = "Runs the platform and keeps the vibes healthy."


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


@dataclass(frozen=True)
class AdminSeed:
    email: str
    username: str
    password: str


@dataclass(frozen=True)
class SeedPost:
    image_url: str
    caption: str


STARTER_POSTS: Sequence[SeedPost] = [
    SeedPost(
        image_url=(
            "https://images.unsplash.com/photo-1470770841072-f978cf4d019e"
            "?auto=format&fit=crop&w=900&q=80"
        ),
        caption="Sunset meetup with the squad 🌅",
    ),
    SeedPost(
        image_url=(
            "https://images.unsplash.com/photo-1494790108377-be9c29b29330"
            "?auto=format&fit=crop&w=900&q=80"
        ),
        caption="Coffee chats + product ideas ☕️",
    ),
    SeedPost(
        image_url=(
            "https://images.unsplash.com/photo-1500530855697-b586d89ba3ee"
            "?auto=format&fit=crop&w=900&q=80"
        ),
        caption="Weekend city strolls hit different 🏙️",
    ),
]


def load_admin_seed() -> AdminSeed:
    email = normalize_email(settings.admin_email or "")
    username = normalize_username(settings.admin_username or "")
    password = settings.admin_password or ""
    if not email or not username or not password:
        raise ValueError("ADMIN_EMAIL, ADMIN_USERNAME, and ADMIN_PASSWORD must be set.")
    return AdminSeed(email=email, username=username, password=password)


async def upsert_admin(session: AsyncSession, payload: AdminSeed) -> User:
    result = await session.execute(select(User).where(_eq(User.email, payload.email)))
    admin = result.scalar_one_or_none()
    if admin is None:
        admin = User(
            email=payload.email,
            username=payload.username,
            display_name=ADMIN_DISPLAY_NAME,
            password_hash=hash_password(payload.password),
        )

    admin.username = payload.username
    admin.password_hash = hash_password(payload.password)
    admin.role = ROLE_ADMIN
    admin.is_verified = True
    admin.bio = ADMIN_BIO
    session.add(admin)
    await session.commit()
    await session.refresh(admin)
    return admin


async def ensure_starter_posts(
    session: AsyncSession,
    admin: User,
    posts: Sequence[SeedPost] = STARTER_POSTS,
) -> int:
    """Share ``posts`` from ``admin`` when the feed is empty; return how many were added."""
    existing = await session.execute(select(func.count()).select_from(Post))
    if int(existing.scalar_one() or 0) > 0:
        return 0

    for post in posts:
        await create_post(session, admin.id, post.image_url, post.caption)
    return len(posts)


async def seed() -> None:
    payload = load_admin_seed()

    async with AsyncSessionMaker() as session:
        admin = await upsert_admin(session, payload)
        created = await ensure_starter_posts(session, admin)

    if created:
        print(f"✅ Seeded {created} starter photo posts.")
    print(f"✅ Admin ready at {payload.email}.")


if __name__ == "__main__":
    try:
        asyncio.run(seed())
    except ValueError as exc:
        print(f"⚠️ Seeding failed: {exc}")
        sys.exit(1)
