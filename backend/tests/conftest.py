"""
Shared fixtures.

Settings are read at import time, so the environment is prepared before
anything from ``app`` is imported. The suite runs against in-memory SQLite
with the media host, the inference provider and frame downloads replaced by
in-process fakes.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_FORMAT"] = "text"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ.setdefault("GEMINI_API_KEY", "test-gemini-key")
os.environ.setdefault("CLOUDINARY_CLOUD_NAME", "demo")
os.environ.setdefault("CLOUDINARY_API_KEY", "test-cloudinary-key")
os.environ.setdefault("CLOUDINARY_API_SECRET", "test-cloudinary-secret")

from typing import Any, Dict, List, Optional  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.api.deps import get_frame_client  # noqa: E402
from app.database import Base, SessionLocal, engine, init_db  # noqa: E402
from app.exceptions import MediaStoreException  # noqa: E402
from app.main import app  # noqa: E402
from app.models.user import User  # noqa: E402
from app.services.auth_service import create_session, hash_password  # noqa: E402
from app.services.media_store import MediaStore, StoredAsset, file_size, get_media_store  # noqa: E402
from app.services.metadata_inference import MetadataInferenceProvider, get_inference_provider  # noqa: E402

AI_RESPONSE = (
    "**Title:** Sunset Over Mountains Timelapse\n\n"
    "**Description:** A calm timelapse of the sun setting behind the peaks. #sunset #nature"
)
FRAME_BYTES = b"\xff\xd8\xff\xe0fake-jpeg"
TEST_PASSWORD = "s3cret-pass"


class FakeMediaStore(MediaStore):
    """In-memory media host issuing Cloudinary-shaped delivery URLs."""

    def __init__(self):
        self.uploads: List[Dict[str, Any]] = []
        self.remote_uploads: List[Dict[str, Any]] = []
        self.deleted: List[tuple] = []
        self.fail_upload_types = set()
        self.fail_remote = False
        self.fail_deletes = False
        self._counter = 0

    def _next_id(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}{self._counter}"

    def upload(self, file, filename, resource_type="auto", public_id=None):
        if resource_type in self.fail_upload_types:
            raise MediaStoreException("Media host returned HTTP 500", details={"status_code": 500})

        public_id = public_id or self._next_id("asset")
        extension = filename.rsplit(".", 1)[-1] if "." in filename else "bin"
        kind = "video" if resource_type == "video" else "image"
        self.uploads.append({
            "filename": filename,
            "resource_type": resource_type,
            "size": file_size(file),
            "file": file,
        })
        return StoredAsset(
            url=f"https://res.cloudinary.com/demo/{kind}/upload/v1700000000/{public_id}.{extension}",
            public_id=public_id,
            resource_type=kind,
            duration=42.5 if kind == "video" else None,
        )

    def upload_remote(self, source_url, resource_type="image", public_id=None):
        if self.fail_remote:
            raise MediaStoreException("Failed to reach the media host")

        public_id = public_id or self._next_id("remote")
        self.remote_uploads.append({"source_url": source_url, "public_id": public_id})
        return StoredAsset(
            url=f"https://res.cloudinary.com/demo/image/upload/v1700000001/{public_id}.jpg",
            public_id=public_id,
            resource_type="image",
        )

    def delete(self, public_id, resource_type="image"):
        if self.fail_deletes:
            raise MediaStoreException("Failed to reach the media host")
        self.deleted.append((public_id, resource_type))
        return True


class FakeProvider(MetadataInferenceProvider):
    """Inference provider returning a canned answer or raising a canned error."""

    def __init__(self, text: str = AI_RESPONSE, error: Optional[Exception] = None):
        self.text = text
        self.error = error
        self.calls: List[Dict[str, Any]] = []
        self.health_checks = 0

    def generate_text(self, prompt, image_parts):
        self.calls.append({"prompt": prompt, "image_parts": image_parts})
        if self.error is not None:
            raise self.error
        return self.text

    def check_health(self):
        self.health_checks += 1
        return self.error is None


class FrameServer:
    """MockTransport handler serving frame captures; individual URLs can be made to fail."""

    def __init__(self):
        self.requested: List[str] = []
        self.failing = set()
        self.fail_all = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requested.append(url)
        if self.fail_all or url in self.failing:
            return httpx.Response(404)
        return httpx.Response(200, content=FRAME_BYTES, headers={"Content-Type": "image/jpeg"})


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    init_db()
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def media_store():
    return FakeMediaStore()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def frame_server():
    return FrameServer()


@pytest.fixture
def frame_client(frame_server):
    with httpx.Client(transport=httpx.MockTransport(frame_server)) as client:
        yield client


@pytest.fixture
def client(media_store, provider, frame_client):
    app.dependency_overrides[get_media_store] = lambda: media_store
    app.dependency_overrides[get_inference_provider] = lambda: provider
    app.dependency_overrides[get_frame_client] = lambda: frame_client
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def create_user(db, username: str = "alice", password: str = TEST_PASSWORD) -> User:
    user = User(
        username=username,
        email=f"{username}@example.com",
        full_name=username.title(),
        avatar=f"https://res.cloudinary.com/demo/image/upload/v1/{username}.png",
        # Low iteration count keeps the suite fast; verify_password reads it from the hash
        password_hash=hash_password(password, iterations=1000),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def login_headers(db, user: User) -> Dict[str, str]:
    session = create_session(db, user)
    return {"Authorization": f"Bearer {session.token}"}


@pytest.fixture
def user(db):
    return create_user(db)


@pytest.fixture
def auth_headers(db, user):
    return login_headers(db, user)


@pytest.fixture
def other_user(db):
    return create_user(db, username="bob")


@pytest.fixture
def other_user_headers(db, other_user):
    return login_headers(db, other_user)
