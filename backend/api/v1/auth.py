"""Authentication endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_db, get_optional_user, get_session_token
from core import hash_password
from db.errors import is_unique_violation
from models import User
from services.auth import (
    clear_session_cookie,
    create_session,
    delete_session,
    delete_user_sessions,
    is_strong_password,
    is_valid_username,
    normalize_email,
    normalize_username,
    registration_conflict_exists,
    resolve_login_user,
    set_session_cookie,
)
from .user_views import SafeUserResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

MAX_BIO_LENGTH = 280
DUPLICATE_ACCOUNT_DETAIL = "Email or username already in use."


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(max_length=128)
    username: str = Field(max_length=20)
    display_name: str | None = Field(default=None, min_length=2, max_length=40)
    bio: str | None = Field(default=None, max_length=MAX_BIO_LENGTH)

    @field_validator("password")
    @classmethod
    def _require_strong_password(cls, value: str) -> str:
        if not is_strong_password(value):
            raise ValueError("Password must be at least 8 characters and include a letter and a number")
        return value

    @field_validator("username")
    @classmethod
    def _normalize_username(cls, value: str) -> str:
        normalized = value.strip()
        if not is_valid_username(normalized):
            raise ValueError("Username must be 3-20 letters, numbers or underscores")
        return normalize_username(normalized)

    @field_validator("display_name")
    @classmethod
    def _strip_display_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        stripped = value.strip()
        if len(stripped) < 2:
            raise ValueError("Display name must be at least 2 characters")
        return stripped


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class RegisterResponse(BaseModel):
    message: str
    user: SafeUserResponse


class MeResponse(BaseModel):
    user: SafeUserResponse | None = None


class MessageResponse(BaseModel):
    message: str


@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=RegisterResponse)
async def register(
    payload: RegisterRequest,
    session: AsyncSession = Depends(get_db),
) -> RegisterResponse:
    normalized_email = normalize_email(str(payload.email))
    if await registration_conflict_exists(
        session,
        username=payload.username,
        normalized_email=normalized_email,
    ):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=DUPLICATE_ACCOUNT_DETAIL,
        )

    user = User(
        email=normalized_email,
        username=payload.username,
        password_hash=hash_password(payload.password),
        display_name=payload.display_name,
        bio=payload.bio,
        is_verified=True,
    )
    session.add(user)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        if is_unique_violation(exc):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=DUPLICATE_ACCOUNT_DETAIL,
            ) from exc
        raise
    logger.info("User registered", extra={"user_id": user.id})
    return RegisterResponse(
        message="Account created. You can log in right away.",
        user=SafeUserResponse.model_validate(user),
    )


@router.post("/login", response_model=MeResponse)
async def login(
    payload: LoginRequest,
    response: Response,
    session: AsyncSession = Depends(get_db),
) -> MeResponse:
    user = await resolve_login_user(
        session,
        email=str(payload.email),
        password=payload.password,
    )
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials.",
        )

    # One active session per account.
    await delete_user_sessions(session, user.id)
    token, _record = await create_session(session, user.id)
    set_session_cookie(response, token)
    return MeResponse(user=SafeUserResponse.model_validate(user))


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    session: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await delete_session(session, get_session_token(request))
    clear_session_cookie(response)
    return MessageResponse(message="Logged out")


@router.get("/me", response_model=MeResponse)
async def me(user: User | None = Depends(get_optional_user)) -> MeResponse:
    if user is None:
        return MeResponse(user=None)
    return MeResponse(user=SafeUserResponse.model_validate(user))
