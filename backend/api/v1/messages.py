"""Direct messaging endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, cast

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_serializer
from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased
from sqlalchemy.sql import ColumnElement

from api.deps import get_current_user, get_db
from core.clock import ensure_aware
from models import Message, User
from models.message import MAX_MESSAGE_LENGTH

router = APIRouter(prefix="/messages", tags=["messages"])

CONVERSATION_SCAN_LIMIT = 100


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def _asc(column: Any) -> Any:
    return cast(Any, column).asc()


def _desc(column: Any) -> Any:
    return cast(Any, column).desc()


class MessageResponse(BaseModel):
    id: str
    sender_id: str
    receiver_id: str
    content: str
    created_at: datetime
    is_mine: bool

    @field_serializer("created_at", when_used="json")
    def _serialize_created_at(self, value: datetime) -> str:
        return ensure_aware(value).isoformat()

    @classmethod
    def from_message(cls, message: Message, viewer_id: str) -> "MessageResponse":
        return cls(
            id=message.id,
            sender_id=message.sender_id,
            receiver_id=message.receiver_id,
            content=message.content,
            created_at=message.created_at,
            is_mine=message.sender_id == viewer_id,
        )


class MessageListResponse(BaseModel):
    messages: list[MessageResponse]


class MessageCreateRequest(BaseModel):
    receiver_id: str
    content: str = Field(min_length=1, max_length=MAX_MESSAGE_LENGTH)


class MessageCreateResponse(BaseModel):
    message: MessageResponse


class PeerResponse(BaseModel):
    id: str
    username: str
    display_name: str | None = None
    profile_image: str | None = None


class LastMessageResponse(BaseModel):
    id: str
    content: str
    created_at: datetime
    is_mine: bool

    @field_serializer("created_at", when_used="json")
    def _serialize_created_at(self, value: datetime) -> str:
        return ensure_aware(value).isoformat()


class ConversationResponse(BaseModel):
    id: str
    peer: PeerResponse
    last_message: LastMessageResponse


class ConversationListResponse(BaseModel):
    conversations: list[ConversationResponse]


async def _require_user(session: AsyncSession, user_id: str) -> User:
    user = await session.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")
    return user


@router.get("", response_model=MessageListResponse)
async def list_messages(
    peer_id: Annotated[str | None, Query(alias="with")] = None,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MessageListResponse:
    if not peer_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provide a user id via the `with` query parameter.",
        )
    await _require_user(session, peer_id)

    result = await session.execute(
        select(Message)
        .where(
            or_(
                and_(_eq(Message.sender_id, current_user.id), _eq(Message.receiver_id, peer_id)),
                and_(_eq(Message.sender_id, peer_id), _eq(Message.receiver_id, current_user.id)),
            )
        )
        .order_by(_asc(Message.created_at), _asc(Message.id))
    )
    return MessageListResponse(
        messages=[
            MessageResponse.from_message(message, current_user.id)
            for message in result.scalars().all()
        ]
    )


@router.post("", status_code=status.HTTP_201_CREATED, response_model=MessageCreateResponse)
async def send_message(
    payload: MessageCreateRequest,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MessageCreateResponse:
    await _require_user(session, payload.receiver_id)
    message = Message(
        sender_id=current_user.id,
        receiver_id=payload.receiver_id,
        content=payload.content,
    )
    session.add(message)
    await session.commit()
    return MessageCreateResponse(message=MessageResponse.from_message(message, current_user.id))


@router.get("/conversations", response_model=ConversationListResponse)
async def list_conversations(
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ConversationListResponse:
    """Latest message per peer, drawn from the caller's newest messages."""
    sender = aliased(User)
    receiver = aliased(User)
    result = await session.execute(
        select(Message, sender, receiver)
        .join(sender, _eq(sender.id, Message.sender_id))
        .join(receiver, _eq(receiver.id, Message.receiver_id))
        .where(
            or_(
                _eq(Message.sender_id, current_user.id),
                _eq(Message.receiver_id, current_user.id),
            )
        )
        .order_by(_desc(Message.created_at), _desc(Message.id))
        .limit(CONVERSATION_SCAN_LIMIT)
    )

    seen: set[str] = set()
    conversations: list[ConversationResponse] = []
    for message, sender_user, receiver_user in result.all():
        is_mine = message.sender_id == current_user.id
        peer = receiver_user if is_mine else sender_user
        if peer.id in seen:
            continue
        seen.add(peer.id)
        conversations.append(
            ConversationResponse(
                id=peer.id,
                peer=PeerResponse(
                    id=peer.id,
                    username=peer.username,
                    display_name=peer.display_name,
                    profile_image=peer.profile_image,
                ),
                last_message=LastMessageResponse(
                    id=message.id,
                    content=message.content,
                    created_at=message.created_at,
                    is_mine=is_mine,
                ),
            )
        )
    return ConversationListResponse(conversations=conversations)
