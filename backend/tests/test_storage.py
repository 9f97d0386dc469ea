"""Tests for MinIO storage helpers."""

from unittest.mock import MagicMock

import pytest

from services import storage


class FakeS3Error(Exception):
    def __init__(self, code: str) -> None:
        super().__init__(code)
        self.code = code


@pytest.fixture(autouse=True)
def _reset_cache():
    storage.get_minio_client.cache_clear()
    yield
    storage.get_minio_client.cache_clear()


def test_get_minio_client_is_built_once_from_settings(monkeypatch):
    built: list[tuple] = []
    sentinel = MagicMock(name="Minio")

    def fake_minio(endpoint, access_key, secret_key, secure):
        built.append((endpoint, access_key, secret_key, secure))
        return sentinel

    monkeypatch.setattr(storage, "Minio", fake_minio)

    assert storage.get_minio_client() is sentinel
    assert storage.get_minio_client() is sentinel
    assert built == [
        (
            storage.settings.minio_endpoint,
            storage.settings.minio_access_key,
            storage.settings.minio_secret_key,
            storage.settings.minio_secure,
        )
    ]


@pytest.mark.parametrize("exists", [True, False])
def test_ensure_bucket_creates_only_when_missing(exists):
    client = MagicMock()
    client.bucket_exists.return_value = exists

    storage.ensure_bucket(client)

    client.bucket_exists.assert_called_once_with(storage.settings.minio_bucket)
    assert client.make_bucket.called is not exists


def test_ensure_bucket_tolerates_concurrent_creation(monkeypatch):
    client = MagicMock()
    client.bucket_exists.return_value = False
    client.make_bucket.side_effect = FakeS3Error("BucketAlreadyOwnedByYou")
    monkeypatch.setattr(storage, "S3Error", FakeS3Error)

    storage.ensure_bucket(client)

    client.make_bucket.assert_called_once_with(storage.settings.minio_bucket)


def test_build_object_key_is_unique_per_call():
    first = storage.build_object_key("/posts/user-1/")
    second = storage.build_object_key("posts/user-1")

    assert first.startswith("posts/user-1/")
    assert first.endswith(".jpg")
    assert first != second
    assert storage.build_object_key("avatars", extension="png").endswith(".png")


def test_upload_object_puts_bytes_in_bucket():
    client = MagicMock()
    client.bucket_exists.return_value = True

    key = storage.upload_object("posts/u/a.jpg", b"jpeg-bytes", "image/jpeg", client)

    assert key == "posts/u/a.jpg"
    call = client.put_object.call_args
    assert call.args == (storage.settings.minio_bucket, "posts/u/a.jpg")
    assert call.kwargs["data"].read() == b"jpeg-bytes"
    assert call.kwargs["length"] == len(b"jpeg-bytes")
    assert call.kwargs["content_type"] == "image/jpeg"


def test_delete_object_ignores_missing_keys(monkeypatch):
    client = MagicMock()
    client.remove_object.side_effect = FakeS3Error("NoSuchKey")
    monkeypatch.setattr(storage, "S3Error", FakeS3Error)

    storage.delete_object("posts/missing.jpg", client)

    client.remove_object.assert_called_once_with(
        storage.settings.minio_bucket,
        "posts/missing.jpg",
    )


def test_delete_object_propagates_other_errors(monkeypatch):
    client = MagicMock()
    client.remove_object.side_effect = FakeS3Error("AccessDenied")
    monkeypatch.setattr(storage, "S3Error", FakeS3Error)

    with pytest.raises(FakeS3Error):
        storage.delete_object("posts/demo.jpg", client)


def test_create_presigned_get_url_passes_ttl():
    client = MagicMock()
    client.presigned_get_object.return_value = "https://signed.local/object"

    signed_url = storage.create_presigned_get_url(" posts/demo.jpg ", expires_seconds=90, client=client)

    assert signed_url == "https://signed.local/object"
    bucket, key = client.presigned_get_object.call_args.args[:2]
    assert (bucket, key) == (storage.settings.minio_bucket, "posts/demo.jpg")
    assert int(client.presigned_get_object.call_args.kwargs["expires"].total_seconds()) == 90


def test_create_presigned_get_url_rejects_invalid_inputs():
    with pytest.raises(ValueError):
        storage.create_presigned_get_url("   ")

    with pytest.raises(ValueError):
        storage.create_presigned_get_url("posts/demo.jpg", expires_seconds=0)
