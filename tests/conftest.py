"""
Pytest configuration and fixtures for the owner marketplace backend.

Every test gets its own SQLite file, an in-memory blob store and a broadcaster
that records what it published.
"""

from typing import Any, Dict, Generator, List, Tuple

import pytest
from fastapi.testclient import TestClient

from owner_platform.api.server import create_app
from owner_platform.auth.crud import register_owner, set_owner_status
from owner_platform.config import Config
from owner_platform.db import connect, init_db
from owner_platform.media.blobs import BlobStore
from owner_platform.theme import ThemeBroadcaster


PASSWORD = "s3cret-pass"


# =============================================================================
# Fakes
# =============================================================================

class FakeBlobStore(BlobStore):
    """Keeps uploads in memory and hands back predictable URLs."""

    def __init__(self) -> None:
        self.uploads: List[Tuple[str, str, bytes]] = []

    def upload(self, data: bytes, *, filename: str, folder: str) -> str:
        self.uploads.append((folder, filename, data))
        return f"https://blobs.test/{folder}/{len(self.uploads)}-{filename}"


class FailingBlobStore(BlobStore):
    def upload(self, data: bytes, *, filename: str, folder: str) -> str:
        raise RuntimeError("cloudinary is down")


class RecordingBroadcaster(ThemeBroadcaster):
    def __init__(self) -> None:
        super().__init__()
        self.published: List[Tuple[str, Dict[str, Any]]] = []

    async def publish(self, event: str, data: Dict[str, Any]) -> int:
        self.published.append((event, data))
        return await super().publish(event, data)


# =============================================================================
# Settings / DB
# =============================================================================

def make_config(tmp_path, **overrides: Any) -> Config:
    values: Dict[str, Any] = dict(
        DB_DSN=str(tmp_path / "owners.sqlite"),
        APP_ENV="test",
        JWT_SECRET="test-jwt-secret",
        COOKIE_DOMAIN=None,
        FORCE_INSECURE_COOKIES=True,
        CORS_ALLOW_ORIGINS="http://localhost:5173",
        CLOUDINARY_CLOUD_NAME=None,
        CLOUDINARY_API_KEY=None,
        CLOUDINARY_API_SECRET=None,
        OWNER_SHARED_SECRET=None,
    )
    values.update(overrides)
    return Config(**values)


@pytest.fixture
def cfg(tmp_path) -> Config:
    return make_config(tmp_path)


@pytest.fixture
def db(cfg):
    """Initialized database; call db() to get a committing connection context."""
    init_db(cfg.DB_DSN)
    return lambda: connect(cfg.DB_DSN)


@pytest.fixture
def blob_store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def broadcaster() -> RecordingBroadcaster:
    return RecordingBroadcaster()


# =============================================================================
# API
# =============================================================================

@pytest.fixture
def app(cfg, blob_store, broadcaster):
    return create_app(cfg, blob_store=blob_store, broadcaster=broadcaster)


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c


# =============================================================================
# Owner helpers
# =============================================================================

def create_owner(db, *, email: str, status: str = "approved", **kwargs: Any) -> Dict[str, Any]:
    """Insert an owner directly and move it to `status`."""
    with db() as conn:
        owner = register_owner(
            conn,
            name=kwargs.pop("name", "Test Owner"),
            email=email,
            password=kwargs.pop("password", PASSWORD),
            owner_type=kwargs.pop("owner_type", "author"),
            **kwargs,
        )
        if status != "pending":
            owner = set_owner_status(conn, owner["owner_id"], status)
    return owner


def login(client: TestClient, email: str, password: str = PASSWORD) -> str:
    r = client.post("/api/owner/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return r.json()["token"]


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def approved_owner(db) -> Dict[str, Any]:
    return create_owner(db, email="alice@example.com", whatsapp_number="+2348000000001")


@pytest.fixture
def approved_token(client, approved_owner) -> str:
    return login(client, approved_owner["email"])


def book_form(**overrides: Any) -> Dict[str, Any]:
    data = {
        "title": "Things Fall Apart",
        "price": "4500",
        "author": "Chinua Achebe",
        "description": "A classic.",
        "format": "ebook",
        "currency": "NGN",
    }
    data.update(overrides)
    return {k: v for k, v in data.items() if v is not None}


def cover(name: str = "cover.png") -> Dict[str, Any]:
    return {"image": (name, b"\x89PNG fake bytes", "image/png")}
