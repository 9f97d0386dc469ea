"""Administrative user management."""

from __future__ import annotations

import logging
from typing import Any, Literal, cast

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_db, require_admin
from models import ROLE_ADMIN, ROLE_USER, User
from .user_views import SafeUserResponse, UserWithCountsResponse, collect_follow_counts

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

AdminAction = Literal["promote", "demote", "delete"]


def _desc(column: Any) -> Any:
    return cast(Any, column).desc()


class AdminUserListResponse(BaseModel):
    users: list[UserWithCountsResponse]


class AdminUserActionRequest(BaseModel):
    user_id: str
    action: AdminAction


class AdminUserActionResponse(BaseModel):
    message: str
    user: SafeUserResponse | None = None


@router.get("/users", response_model=AdminUserListResponse)
async def list_all_users(
    session: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> AdminUserListResponse:
    result = await session.execute(select(User).order_by(_desc(User.created_at), _desc(User.id)))
    users = list(result.scalars().all())
    counts = await collect_follow_counts(session, [user.id for user in users])
    return AdminUserListResponse(
        users=[UserWithCountsResponse.from_user(user, counts) for user in users]
    )


@router.post("/users", response_model=AdminUserActionResponse)
async def apply_user_action(
    payload: AdminUserActionRequest,
    session: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> AdminUserActionResponse:
    if payload.action == "delete" and payload.user_id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot delete your own admin account.",
        )

    target = await session.get(User, payload.user_id)
    if target is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")

    if payload.action == "delete":
        # Posts, likes, comments, follows, messages and sessions cascade.
        await session.delete(target)
        await session.commit()
        logger.info(
            "User deleted by admin",
            extra={"user_id": payload.user_id, "admin_id": admin.id},
        )
        return AdminUserActionResponse(message="User deleted.")

    target.role = ROLE_ADMIN if payload.action == "promote" else ROLE_USER
    session.add(target)
    await session.commit()
    await session.refresh(target)
    logger.info(
        "User role changed",
        extra={"user_id": target.id, "role": target.role, "admin_id": admin.id},
    )
    return AdminUserActionResponse(
        message=f"User role updated to {target.role}.",
        user=SafeUserResponse.model_validate(target),
    )
