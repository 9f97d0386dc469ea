"""Tests for the Redis-backed rate limiter middleware."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from httpx import AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError
from starlette.requests import Request

from core.config import settings
from services import RateLimiter, set_rate_limiter
from services.auth import hash_session_token
from services.rate_limiter import _trusted_proxy_networks, default_client_identifier


class InMemoryRedis:
    def __init__(self) -> None:
        self.data: dict[str, int] = {}

    async def incr(self, key: str) -> int:
        value = self.data.get(key, 0) + 1
        self.data[key] = value
        return value

    async def expire(self, key: str, ttl: int) -> None:  # pragma: no cover - noop
        return None


class UnavailableRedis:
    async def incr(self, key: str) -> int:
        raise RedisConnectionError("connection refused")

    async def expire(self, key: str, ttl: int) -> None:  # pragma: no cover - never reached
        return None


@pytest.fixture()
def trusted_loopback_proxy(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.setattr(settings, "rate_limit_trusted_proxies", ["127.0.0.1/32"])
    _trusted_proxy_networks.cache_clear()
    yield
    _trusted_proxy_networks.cache_clear()


def _build_request(
    *,
    cookie_header: str | None = None,
    forwarded_for: str | None = None,
    client_host: str = "10.0.0.12",
) -> Request:
    headers: list[tuple[bytes, bytes]] = []
    if cookie_header is not None:
        headers.append((b"cookie", cookie_header.encode("ascii")))
    if forwarded_for is not None:
        headers.append((b"x-forwarded-for", forwarded_for.encode("ascii")))
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": headers,
        "query_string": b"",
        "client": (client_host, 1234),
        "app": None,
    }
    return Request(scope)


def test_default_client_identifier_prefers_session_cookie() -> None:
    request = _build_request(
        cookie_header=f"{settings.session_cookie_name}=opaque-token",
        forwarded_for="203.0.113.9",
    )

    assert default_client_identifier(request) == f"session:{hash_session_token('opaque-token')}"


def test_default_client_identifier_ignores_forwarded_ip_from_untrusted_peer() -> None:
    request = _build_request(forwarded_for="203.0.113.9")

    assert default_client_identifier(request) == "10.0.0.12"


def test_default_client_identifier_uses_forwarded_ip_from_trusted_proxy(
    trusted_loopback_proxy: None,
) -> None:
    request = _build_request(client_host="127.0.0.1", forwarded_for="bogus, 203.0.113.9")

    assert default_client_identifier(request) == "203.0.113.9"


@pytest.mark.asyncio
async def test_rate_limiter_blocks_after_threshold(async_client: AsyncClient) -> None:
    set_rate_limiter(RateLimiter(InMemoryRedis(), limit=2, window_seconds=60))

    first = await async_client.get("/api/v1/posts")
    second = await async_client.get("/api/v1/posts")
    third = await async_client.get("/api/v1/posts")

    assert (first.status_code, second.status_code) == (200, 200)
    assert third.status_code == 429
    assert third.json()["detail"] == "Too Many Requests"

    health = await async_client.get("/health")
    assert health.status_code == 200


@pytest.mark.asyncio
async def test_rate_limiter_can_be_disabled(async_client: AsyncClient) -> None:
    set_rate_limiter(RateLimiter(InMemoryRedis(), limit=0, window_seconds=60))

    for _ in range(5):
        response = await async_client.get("/api/v1/posts")
        assert response.status_code == 200


@pytest.mark.asyncio
async def test_login_is_limited_per_forwarded_client(
    async_client: AsyncClient,
    trusted_loopback_proxy: None,
) -> None:
    set_rate_limiter(RateLimiter(InMemoryRedis(), limit=1, window_seconds=60))
    payload = {"email": "missing@example.com", "password": "password123"}

    first = await async_client.post(
        "/api/v1/auth/login", json=payload, headers={"x-forwarded-for": "198.51.100.1"}
    )
    second_same_client = await async_client.post(
        "/api/v1/auth/login", json=payload, headers={"x-forwarded-for": "198.51.100.1"}
    )
    other_client = await async_client.post(
        "/api/v1/auth/login", json=payload, headers={"x-forwarded-for": "198.51.100.2"}
    )

    assert first.status_code == 401
    assert second_same_client.status_code == 429
    assert other_client.status_code == 401


@pytest.mark.asyncio
async def test_unavailable_store_fails_closed_only_for_auth(async_client: AsyncClient) -> None:
    set_rate_limiter(RateLimiter(UnavailableRedis(), limit=5, window_seconds=60))

    auth_response = await async_client.get("/api/v1/auth/me")
    feed_response = await async_client.get("/api/v1/posts")

    assert auth_response.status_code == 503
    assert feed_response.status_code == 200
