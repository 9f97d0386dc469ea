"""Tests for post endpoints."""

from io import BytesIO

import pytest
from httpx import AsyncClient
from PIL import Image
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.v1 import posts as posts_api
from models import Post
from services import storage

from helpers import login_as, register_and_login


def make_image_bytes(size: tuple[int, int] = (1200, 800)) -> bytes:
    image = Image.new("RGB", size, color=(0, 200, 100))
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


class DummyMinio:
    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.removed: list[str] = []

    def bucket_exists(self, bucket_name: str) -> bool:
        return True

    def make_bucket(self, bucket_name: str) -> None:
        return None

    def put_object(self, bucket_name, object_name, data, length, content_type=None):
        self.objects[object_name] = data.read()

    def remove_object(self, bucket_name, object_name):
        self.removed.append(object_name)
        self.objects.pop(object_name, None)


@pytest.fixture()
def dummy_minio(monkeypatch: pytest.MonkeyPatch) -> DummyMinio:
    client = DummyMinio()
    monkeypatch.setattr(storage, "get_minio_client", lambda: client)
    return client


async def _create_json_post(client: AsyncClient, caption: str | None = None) -> dict:
    response = await client.post(
        "/api/v1/posts",
        json={"image_url": "https://images.example.com/shot.jpg", "caption": caption},
    )
    assert response.status_code == 201, response.text
    return response.json()["post"]


@pytest.mark.asyncio
async def test_create_post_with_upload(
    async_client: AsyncClient,
    dummy_minio: DummyMinio,
    post_store_mode: str,
):
    author = await register_and_login(async_client, "author")

    response = await async_client.post(
        "/api/v1/posts",
        data={"caption": "  First shot!  "},
        files={"image": ("photo.png", make_image_bytes(), "image/png")},
    )

    assert response.status_code == 201, response.text
    post = response.json()["post"]
    assert post["caption"] == "First shot!"
    assert post["image_url"].startswith(f"posts/{author['id']}/")
    assert post["image_url"].endswith(".jpg")
    assert post["author"]["username"] == author["username"]
    assert (post["like_count"], post["comment_count"], post["comments"]) == (0, 0, [])
    assert post["viewer_has_liked"] is False

    stored = dummy_minio.objects[post["image_url"]]
    assert stored.startswith(b"\xff\xd8")

    feed = await async_client.get("/api/v1/posts")
    assert feed.status_code == 200
    assert [item["id"] for item in feed.json()["posts"]] == [post["id"]]


@pytest.mark.asyncio
async def test_large_upload_is_downscaled(async_client: AsyncClient, dummy_minio: DummyMinio):
    await register_and_login(async_client, "author")

    response = await async_client.post(
        "/api/v1/posts",
        files={"image": ("wide.png", make_image_bytes((4096, 1024)), "image/png")},
    )

    assert response.status_code == 201, response.text
    stored = dummy_minio.objects[response.json()["post"]["image_url"]]
    with Image.open(BytesIO(stored)) as image:
        assert image.size == (2048, 512)


@pytest.mark.asyncio
async def test_create_post_requires_image(async_client: AsyncClient):
    await register_and_login(async_client, "author")

    json_response = await async_client.post("/api/v1/posts", json={"caption": "no pic"})
    assert json_response.status_code == 400
    assert json_response.json()["detail"] == "Please upload an image."

    form_response = await async_client.post("/api/v1/posts", data={"caption": "no pic"})
    assert form_response.status_code == 400
    assert form_response.json()["detail"] == "Please upload an image."


@pytest.mark.asyncio
async def test_create_post_rejects_invalid_image(async_client: AsyncClient, dummy_minio: DummyMinio):
    await register_and_login(async_client, "author")

    response = await async_client.post(
        "/api/v1/posts",
        files={"image": ("notes.png", b"definitely not an image", "image/png")},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Unsupported image file"
    assert dummy_minio.objects == {}


@pytest.mark.asyncio
async def test_create_post_rejects_long_caption(async_client: AsyncClient):
    await register_and_login(async_client, "author")

    response = await async_client.post(
        "/api/v1/posts",
        json={"image_url": "https://images.example.com/shot.jpg", "caption": "x" * 1025},
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_post_requires_authentication(async_client: AsyncClient):
    response = await async_client.post(
        "/api/v1/posts",
        json={"image_url": "https://images.example.com/shot.jpg"},
    )
    assert response.status_code == 401
    assert response.json()["detail"] == "Unauthorized"


@pytest.mark.asyncio
async def test_failed_insert_removes_uploaded_image(
    async_client: AsyncClient,
    db_session: AsyncSession,
    dummy_minio: DummyMinio,
    monkeypatch: pytest.MonkeyPatch,
):
    await register_and_login(async_client, "author")

    async def broken_create(*args, **kwargs):
        raise SQLAlchemyError("insert failed")

    monkeypatch.setattr(posts_api, "create_post_record", broken_create)

    response = await async_client.post(
        "/api/v1/posts",
        files={"image": ("photo.png", make_image_bytes(), "image/png")},
    )

    assert response.status_code == 500
    assert response.json()["detail"] == "Unable to share post."
    assert len(dummy_minio.removed) == 1
    assert dummy_minio.objects == {}
    assert (await db_session.execute(select(Post))).first() is None


@pytest.mark.asyncio
async def test_like_endpoint_toggles(async_client: AsyncClient, post_store_mode: str):
    await register_and_login(async_client, "author")
    post = await _create_json_post(async_client, "golden hour")
    await register_and_login(async_client, "liker")

    liked = await async_client.post(f"/api/v1/posts/{post['id']}/like")
    assert liked.status_code == 200
    assert liked.json() == {"liked": True, "like_count": 1}

    feed = await async_client.get("/api/v1/posts")
    assert feed.json()["posts"][0]["viewer_has_liked"] is True

    unliked = await async_client.post(f"/api/v1/posts/{post['id']}/like")
    assert unliked.json() == {"liked": False, "like_count": 0}


@pytest.mark.asyncio
async def test_like_unknown_post_returns_404(async_client: AsyncClient):
    await register_and_login(async_client, "liker")

    response = await async_client.post("/api/v1/posts/does-not-exist/like")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_like_requires_authentication(async_client: AsyncClient):
    response = await async_client.post("/api/v1/posts/anything/like")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_comment_endpoint(async_client: AsyncClient, post_store_mode: str):
    await register_and_login(async_client, "author")
    post = await _create_json_post(async_client)
    commenter = await register_and_login(async_client, "commenter")

    response = await async_client.post(
        f"/api/v1/posts/{post['id']}/comments",
        json={"content": "  so good  "},
    )

    assert response.status_code == 201, response.text
    body = response.json()
    assert body["comment_count"] == 1
    assert body["comment"]["content"] == "so good"
    assert body["comment"]["post_id"] == post["id"]
    assert body["comment"]["author"]["id"] == commenter["id"]

    feed = await async_client.get("/api/v1/posts")
    entry = feed.json()["posts"][0]
    assert entry["comment_count"] == 1
    assert [comment["content"] for comment in entry["comments"]] == ["so good"]


@pytest.mark.asyncio
async def test_comment_validation(async_client: AsyncClient):
    await register_and_login(async_client, "author")
    post = await _create_json_post(async_client)

    blank = await async_client.post(
        f"/api/v1/posts/{post['id']}/comments",
        json={"content": "   "},
    )
    assert blank.status_code == 422
    assert blank.json()["detail"] == "Comment cannot be empty."

    missing = await async_client.post(
        "/api/v1/posts/does-not-exist/comments",
        json={"content": "hello"},
    )
    assert missing.status_code == 404

    long_comment = await async_client.post(
        f"/api/v1/posts/{post['id']}/comments",
        json={"content": "y" * 700},
    )
    assert long_comment.status_code == 201
    assert long_comment.json()["comment"]["content"] == "y" * 500


@pytest.mark.asyncio
async def test_oversized_comment_is_truncated_not_rejected(
    async_client: AsyncClient,
    db_session: AsyncSession,
    post_store_mode: str,
):
    await register_and_login(async_client, "author")
    post = await _create_json_post(async_client)

    response = await async_client.post(
        f"/api/v1/posts/{post['id']}/comments",
        json={"content": "z" * 5001},
    )

    assert response.status_code == 201
    assert response.json()["comment"]["content"] == "z" * 500
    stored = await db_session.execute(
        text("SELECT content FROM post_comments WHERE post_id = :post_id"),
        {"post_id": post["id"]},
    )
    assert stored.scalar_one() == "z" * 500


@pytest.mark.asyncio
async def test_feed_is_public_and_filters_by_author(async_client: AsyncClient):
    first = await register_and_login(async_client, "first")
    first_post = await _create_json_post(async_client, "one")
    await register_and_login(async_client, "second")
    await _create_json_post(async_client, "two")
    await async_client.post("/api/v1/auth/logout")

    everything = await async_client.get("/api/v1/posts")
    assert everything.status_code == 200
    assert [post["caption"] for post in everything.json()["posts"]] == ["two", "one"]
    assert all(post["viewer_has_liked"] is False for post in everything.json()["posts"])

    filtered = await async_client.get("/api/v1/posts", params={"author_id": first["id"]})
    assert [post["id"] for post in filtered.json()["posts"]] == [first_post["id"]]

    limited = await async_client.get("/api/v1/posts", params={"limit": 1})
    assert [post["caption"] for post in limited.json()["posts"]] == ["two"]


@pytest.mark.asyncio
async def test_feed_limit_bounds(async_client: AsyncClient):
    assert (await async_client.get("/api/v1/posts", params={"limit": 0})).status_code == 422
    assert (await async_client.get("/api/v1/posts", params={"limit": 101})).status_code == 422


@pytest.mark.asyncio
async def test_feed_timestamps_are_timezone_aware(async_client: AsyncClient):
    account = await register_and_login(async_client, "author")
    post = await _create_json_post(async_client)
    await login_as(async_client, account)
    await async_client.post(f"/api/v1/posts/{post['id']}/comments", json={"content": "hi"})

    entry = (await async_client.get("/api/v1/posts")).json()["posts"][0]
    assert entry["created_at"].endswith(("Z", "+00:00"))
    assert entry["comments"][0]["created_at"].endswith(("Z", "+00:00"))
