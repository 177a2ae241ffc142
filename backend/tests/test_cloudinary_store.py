import hashlib
import io
from urllib.parse import parse_qs

import httpx
import pytest

from app.exceptions import MediaStoreException
from app.services.media_store.cloudinary_store import CloudinaryMediaStore, sign_params


def make_store(handler):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return CloudinaryMediaStore(
        cloud_name="demo",
        api_key="key123",
        api_secret="secret456",
        base_url="https://api.cloudinary.com/v1_1",
        client=client,
    )


def test_sign_params_sorts_and_excludes_unsigned_keys():
    params = {"timestamp": 1700000000, "public_id": "sample", "file": "ignored", "api_key": "ignored"}

    expected = hashlib.sha1(b"public_id=sample&timestamp=1700000000secret").hexdigest()
    assert sign_params(params, "secret") == expected


def test_upload_posts_signed_multipart_and_returns_asset():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={
            "secure_url": "https://res.cloudinary.com/demo/video/upload/v1/abc.mp4",
            "url": "http://res.cloudinary.com/demo/video/upload/v1/abc.mp4",
            "public_id": "abc",
            "resource_type": "video",
            "duration": 12.25,
        })

    asset = make_store(handler).upload(io.BytesIO(b"video-bytes"), "clip.mp4", resource_type="video")

    assert asset.url == "https://res.cloudinary.com/demo/video/upload/v1/abc.mp4"
    assert asset.public_id == "abc"
    assert asset.duration == 12.25

    request = requests[0]
    assert str(request.url) == "https://api.cloudinary.com/v1_1/demo/video/upload"
    body = request.read()
    assert b'name="api_key"' in body
    assert b'name="signature"' in body
    assert b'filename="clip.mp4"' in body


def test_upload_remote_and_delete_use_form_fields():
    seen = []

    def handler(request):
        fields = {key: values[0] for key, values in parse_qs(request.read().decode()).items()}
        seen.append((request.url.path, fields))
        if request.url.path.endswith("/destroy"):
            return httpx.Response(200, json={"result": "ok"})
        return httpx.Response(200, json={
            "secure_url": "https://res.cloudinary.com/demo/image/upload/v1/thumbnail_1.jpg",
            "public_id": "thumbnail_1",
        })

    store = make_store(handler)
    asset = store.upload_remote("https://example.com/frame.jpg", public_id="thumbnail_1")
    deleted = store.delete("thumbnail_1")

    assert asset.resource_type == "image"
    assert deleted is True

    upload_path, upload_fields = seen[0]
    assert upload_path == "/v1_1/demo/image/upload"
    assert upload_fields["file"] == "https://example.com/frame.jpg"
    assert upload_fields["public_id"] == "thumbnail_1"
    assert upload_fields["api_key"] == "key123"

    destroy_path, destroy_fields = seen[1]
    assert destroy_path == "/v1_1/demo/image/destroy"
    expected = sign_params(
        {"public_id": "thumbnail_1", "invalidate": "true", "timestamp": destroy_fields["timestamp"]},
        "secret456",
    )
    assert destroy_fields["signature"] == expected


def test_delete_of_unknown_asset_returns_false():
    store = make_store(lambda request: httpx.Response(200, json={"result": "not found"}))

    assert store.delete("missing", resource_type="video") is False


def test_client_errors_are_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(401, text="Invalid Signature")

    with pytest.raises(MediaStoreException) as exc_info:
        make_store(handler).delete("abc")

    assert len(calls) == 1
    assert exc_info.value.details["status_code"] == 401


def test_server_errors_are_retried_once(monkeypatch):
    calls = []
    monkeypatch.setattr(CloudinaryMediaStore._post.retry, "sleep", lambda seconds: None)

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(503)
        return httpx.Response(200, json={"result": "ok"})

    assert make_store(handler).delete("abc") is True
    assert len(calls) == 2


def test_transport_errors_become_media_store_errors(monkeypatch):
    monkeypatch.setattr(CloudinaryMediaStore._post.retry, "sleep", lambda seconds: None)

    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(MediaStoreException) as exc_info:
        make_store(handler).delete("abc")

    assert exc_info.value.message == "Failed to reach the media host"


def test_empty_upload_is_refused():
    store = make_store(lambda request: httpx.Response(200, json={}))

    with pytest.raises(MediaStoreException):
        store.upload(io.BytesIO(b""), "empty.mp4")


def test_retried_upload_resends_the_whole_file(monkeypatch):
    bodies = []
    monkeypatch.setattr(CloudinaryMediaStore._post.retry, "sleep", lambda seconds: None)

    def handler(request):
        bodies.append(request.read())
        if len(bodies) == 1:
            return httpx.Response(503)
        return httpx.Response(200, json={
            "secure_url": "https://res.cloudinary.com/demo/video/upload/v1/abc.mp4",
            "public_id": "abc",
        })

    video = io.BytesIO(b"0123456789" * 1000)
    video.seek(0, io.SEEK_END)

    asset = make_store(handler).upload(video, "clip.mp4", resource_type="video")

    assert asset.public_id == "abc"
    assert len(bodies) == 2
    assert b"0123456789" * 1000 in bodies[0]
    assert b"0123456789" * 1000 in bodies[1]
