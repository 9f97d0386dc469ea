"""Tests for admin user management."""

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import ROLE_ADMIN, Post, User

from helpers import TEST_PASSWORD, create_user, login_as, register_and_login


async def _login_admin(client: AsyncClient, session: AsyncSession) -> User:
    admin = await create_user(session, "boss", role=ROLE_ADMIN)
    await login_as(client, {"email": admin.email, "password": TEST_PASSWORD})
    return admin


@pytest.mark.asyncio
async def test_admin_routes_require_admin_role(async_client: AsyncClient):
    assert (await async_client.get("/api/v1/admin/users")).status_code == 401

    await register_and_login(async_client, "regular")
    response = await async_client.get("/api/v1/admin/users")
    assert response.status_code == 403
    assert response.json()["detail"] == "Forbidden"


@pytest.mark.asyncio
async def test_admin_lists_every_user(async_client: AsyncClient, db_session: AsyncSession):
    member = await create_user(db_session, "member")
    admin = await _login_admin(async_client, db_session)

    response = await async_client.get("/api/v1/admin/users")

    assert response.status_code == 200
    ids = {user["id"] for user in response.json()["users"]}
    assert ids == {member.id, admin.id}
    assert all("follower_count" in user for user in response.json()["users"])


@pytest.mark.asyncio
async def test_admin_promotes_and_demotes(async_client: AsyncClient, db_session: AsyncSession):
    member = await create_user(db_session, "member")
    await _login_admin(async_client, db_session)

    promoted = await async_client.post(
        "/api/v1/admin/users",
        json={"user_id": member.id, "action": "promote"},
    )
    assert promoted.status_code == 200
    assert promoted.json()["message"] == "User role updated to admin."
    assert promoted.json()["user"]["role"] == "admin"

    demoted = await async_client.post(
        "/api/v1/admin/users",
        json={"user_id": member.id, "action": "demote"},
    )
    assert demoted.json()["message"] == "User role updated to user."


@pytest.mark.asyncio
async def test_admin_delete_cascades(async_client: AsyncClient, db_session: AsyncSession):
    member = await create_user(db_session, "member")
    member_id = member.id
    db_session.add(Post(author_id=member_id, image_url="posts/x.jpg"))
    await db_session.commit()
    await _login_admin(async_client, db_session)

    response = await async_client.post(
        "/api/v1/admin/users",
        json={"user_id": member_id, "action": "delete"},
    )

    assert response.status_code == 200
    assert response.json() == {"message": "User deleted.", "user": None}
    db_session.expire_all()
    remaining = await db_session.execute(select(User.id).where(User.id == member_id))
    assert remaining.first() is None
    assert (await db_session.execute(select(Post))).first() is None


@pytest.mark.asyncio
async def test_admin_action_guards(async_client: AsyncClient, db_session: AsyncSession):
    admin = await _login_admin(async_client, db_session)

    self_delete = await async_client.post(
        "/api/v1/admin/users",
        json={"user_id": admin.id, "action": "delete"},
    )
    assert self_delete.status_code == 400

    unknown = await async_client.post(
        "/api/v1/admin/users",
        json={"user_id": "missing", "action": "promote"},
    )
    assert unknown.status_code == 404

    bad_action = await async_client.post(
        "/api/v1/admin/users",
        json={"user_id": admin.id, "action": "ban"},
    )
    assert bad_action.status_code == 422
