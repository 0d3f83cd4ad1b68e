"""
Tests for the Cloudinary blob store and the upload wrapper.
"""

import hashlib

import pytest

from owner_platform.errors import BlobStoreUnavailable, UpstreamFailure
from owner_platform.media.blobs import (
    BOOK_FOLDER,
    CloudinaryBlobStore,
    ImageUpload,
    build_blob_store,
    upload_image,
)

from conftest import make_config


class FakeResponse:
    def __init__(self, status_code, body=None, text=None):
        self.status_code = status_code
        self._body = body
        self.text = text if text is not None else ("{}" if body is not None else "")

    def json(self):
        return self._body


class FakeSession:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        return self.response


def _store(response):
    session = FakeSession(response)
    store = CloudinaryBlobStore(
        cloud_name="demo",
        api_key="key123",
        api_secret="shh",
        base_url="https://cloudinary.test/v1_1/",
        timeout=5,
        session=session,
    )
    return store, session


class TestCloudinaryBlobStore:

    def test_signed_upload_returns_secure_url(self):
        store, session = _store(FakeResponse(200, {"secure_url": "https://res.test/demo/cover.png"}))

        url = store.upload(b"bytes", filename="cover.png", folder=BOOK_FOLDER)

        assert url == "https://res.test/demo/cover.png"
        (called_url, kwargs), = session.calls
        assert called_url == "https://cloudinary.test/v1_1/demo/image/upload"
        assert kwargs["timeout"] == 5
        assert kwargs["files"] == {"file": ("cover.png", b"bytes")}

        form = kwargs["data"]
        assert form["api_key"] == "key123"
        assert form["folder"] == "owner_books"
        expected = hashlib.sha1(f"folder=owner_books&timestamp={form['timestamp']}shh".encode()).hexdigest()
        assert form["signature"] == expected

    def test_error_status_raises(self):
        store, _ = _store(FakeResponse(401, text="Invalid Signature"))

        with pytest.raises(RuntimeError, match="401"):
            store.upload(b"x", filename="a.png", folder=BOOK_FOLDER)

    def test_missing_secure_url_raises(self):
        store, _ = _store(FakeResponse(200, {"public_id": "abc"}))

        with pytest.raises(RuntimeError, match="secure_url"):
            store.upload(b"x", filename="a.png", folder=BOOK_FOLDER)


class TestBuildBlobStore:

    def test_none_without_credentials(self, tmp_path):
        assert build_blob_store(make_config(tmp_path)) is None

    def test_partial_credentials(self, tmp_path):
        cfg = make_config(tmp_path, CLOUDINARY_CLOUD_NAME="demo", CLOUDINARY_API_KEY="k")
        assert build_blob_store(cfg) is None

    def test_configured(self, tmp_path):
        cfg = make_config(
            tmp_path,
            CLOUDINARY_CLOUD_NAME="demo",
            CLOUDINARY_API_KEY="k",
            CLOUDINARY_API_SECRET="s",
        )

        store = build_blob_store(cfg)

        assert isinstance(store, CloudinaryBlobStore)
        assert store.cloud_name == "demo"


class TestUploadImage:

    def test_no_store(self):
        with pytest.raises(BlobStoreUnavailable) as exc:
            upload_image(None, ImageUpload(data=b"x", filename="a.png"), folder=BOOK_FOLDER)
        assert exc.value.status_code == 500

    def test_store_failure_wrapped(self):
        store, _ = _store(FakeResponse(500, text="boom"))

        with pytest.raises(UpstreamFailure) as exc:
            upload_image(store, ImageUpload(data=b"x", filename="a.png"), folder=BOOK_FOLDER)
        assert exc.value.message == "Image upload failed"
