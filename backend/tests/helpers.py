"""Shared helpers for API tests."""

from pathlib import Path
from uuid import uuid4

from alembic import command
from alembic.config import Config
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine

from core import hash_password
from core.config import settings
from db import enable_sqlite_foreign_keys
from models import User

TEST_PASSWORD = "Sup3rSecret1"


def run_alembic_migrations(database_url: str, revision: str = "head") -> None:
    """Apply Alembic migrations to the given database URL."""
    backend_dir = Path(__file__).resolve().parents[1]
    alembic_cfg = Config(str(backend_dir / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(backend_dir / "alembic"))
    alembic_cfg.attributes["configure_logger"] = False

    original_database_url = settings.database_url
    try:
        settings.database_url = database_url
        command.upgrade(alembic_cfg, revision)
    finally:
        settings.database_url = original_database_url


def make_sqlite_engine(database_url: str) -> AsyncEngine:
    engine = create_async_engine(
        database_url,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_foreign_keys(engine)
    return engine


def make_user_payload(prefix: str) -> dict[str, str]:
    suffix = uuid4().hex[:8]
    return {
        "username": f"{prefix[:11]}_{suffix}",
        "email": f"{prefix}_{suffix}@example.com",
        "password": TEST_PASSWORD,
    }


async def login_as(client: AsyncClient, account: dict[str, str]) -> None:
    response = await client.post(
        "/api/v1/auth/login",
        json={"email": account["email"], "password": account["password"]},
    )
    assert response.status_code == 200, response.text


async def register_and_login(client: AsyncClient, prefix: str) -> dict[str, str]:
    """Register a fresh account, log the client in as it and return its profile."""
    payload = make_user_payload(prefix)
    register_response = await client.post("/api/v1/auth/register", json=payload)
    assert register_response.status_code == 201, register_response.text
    await login_as(client, payload)
    return {**payload, "id": register_response.json()["user"]["id"]}


async def create_user(session: AsyncSession, username: str, **fields) -> User:
    user = User(
        username=username,
        email=f"{username}@example.com",
        password_hash=hash_password(TEST_PASSWORD),
        **fields,
    )
    session.add(user)
    await session.commit()
    return user
