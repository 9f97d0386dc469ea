"""FastAPI application factory."""

from __future__ import annotations

import logging

from fastapi import APIRouter, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.v1 import admin, auth, chatbot, follow, media, messages, posts, users
from core import settings
from core.logging_config import configure_logging
from services import RateLimitMiddleware, get_rate_limiter

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
HEALTH_PATH = "/health"


def build_api_router() -> APIRouter:
    api_router = APIRouter(prefix=API_PREFIX)
    for module in (auth, posts, follow, messages, users, admin, media, chatbot):
        api_router.include_router(module.router)
    return api_router


async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled error",
        extra={"path": request.url.path, "method": request.method},
        exc_info=exc,
    )
    return JSONResponse(
        {"detail": "Internal server error"},
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def create_app() -> FastAPI:
    configure_logging(settings.log_level)

    app = FastAPI(title="Pixelnest API")
    app.add_middleware(
        RateLimitMiddleware,
        limiter_factory=get_rate_limiter,
        exempt_paths={HEALTH_PATH},
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(Exception, _unhandled_exception_handler)
    app.include_router(build_api_router())

    @app.get(HEALTH_PATH, tags=["health"])
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
