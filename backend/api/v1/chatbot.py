"""Chatbot endpoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_db, get_optional_user
from models import User
from services import FAILURE_REPLY, genz_response
from services.posts import count_posts_by_author

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chatbot", tags=["chatbot"])


class ChatbotRequest(BaseModel):
    prompt: str = Field(default="", max_length=2000)


class ChatbotResponse(BaseModel):
    answer: str


@router.post("", response_model=ChatbotResponse)
async def ask_chatbot(
    payload: ChatbotRequest,
    session: AsyncSession = Depends(get_db),
    viewer: User | None = Depends(get_optional_user),
) -> ChatbotResponse | JSONResponse:
    post_count: int | None = None
    try:
        if viewer is not None and "post" in payload.prompt.lower():
            post_count = await count_posts_by_author(session, viewer.id)
    except SQLAlchemyError:
        logger.exception("Chatbot post lookup failed", extra={"user_id": viewer.id if viewer else None})
        return JSONResponse(
            {"answer": FAILURE_REPLY},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    return ChatbotResponse(answer=genz_response(payload.prompt, post_count=post_count))
