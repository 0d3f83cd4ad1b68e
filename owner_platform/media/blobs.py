"""Image uploads.

The rest of the backend only sees `BlobStore.upload(data, filename, folder) -> url`.
The production implementation talks to Cloudinary's upload API over HTTP.

Policy: there is no local-disk fallback. If no blob store is configured, or the
upload fails, the request fails.
"""

from __future__ import annotations

import hashlib
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from owner_platform.config import Config
from owner_platform.errors import BlobStoreUnavailable, UpstreamFailure


PROFILE_FOLDER = "owner_profiles"
BOOK_FOLDER = "owner_books"


def _debug(msg: str) -> None:
    print(f"[blobs] {msg}")


@dataclass(frozen=True)
class ImageUpload:
    """An image received from a client, not yet stored."""

    data: bytes
    filename: str


class BlobStore:
    """Durably stores an image and returns its public URL."""

    def upload(self, data: bytes, *, filename: str, folder: str) -> str:
        raise NotImplementedError


class CloudinaryBlobStore(BlobStore):
    def __init__(
        self,
        *,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        base_url: str = "https://api.cloudinary.com/v1_1",
        timeout: float = 60.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.base_url = base_url
        self.timeout = timeout
        self._session = session or requests.Session()

    def _sign(self, params: Dict[str, Any]) -> str:
        # Cloudinary signature: sha1 of the sorted "k=v&k=v" string followed by the secret.
        to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params))
        return hashlib.sha1((to_sign + self.api_secret).encode("utf-8")).hexdigest()

    def upload(self, data: bytes, *, filename: str, folder: str) -> str:
        params: Dict[str, Any] = {"folder": folder, "timestamp": int(time.time())}
        form = dict(params)
        form["api_key"] = self.api_key
        form["signature"] = self._sign(params)

        url = f"{self.base_url.rstrip('/')}/{self.cloud_name}/image/upload"
        _debug(f"Uploading {filename!r} ({len(data)} bytes) to folder={folder}")
        r = self._session.post(
            url,
            data=form,
            files={"file": (filename or "upload", data)},
            timeout=self.timeout,
        )
        if r.status_code != 200:
            raise RuntimeError(f"Cloudinary upload error {r.status_code}: {r.text[:300]}")
        body = r.json() if r.text else {}
        secure_url = body.get("secure_url") if isinstance(body, dict) else None
        if not secure_url:
            raise RuntimeError("Cloudinary upload response missing secure_url")
        return str(secure_url)


def build_blob_store(cfg: Config) -> Optional[BlobStore]:
    """Return the configured blob store, or None when Cloudinary credentials are missing."""
    if not (cfg.CLOUDINARY_CLOUD_NAME and cfg.CLOUDINARY_API_KEY and cfg.CLOUDINARY_API_SECRET):
        return None
    return CloudinaryBlobStore(
        cloud_name=cfg.CLOUDINARY_CLOUD_NAME,
        api_key=cfg.CLOUDINARY_API_KEY,
        api_secret=cfg.CLOUDINARY_API_SECRET,
        base_url=cfg.CLOUDINARY_UPLOAD_URL,
        timeout=cfg.BLOB_UPLOAD_TIMEOUT_SECONDS,
    )


def upload_image(blob_store: Optional[BlobStore], image: ImageUpload, *, folder: str) -> str:
    """Upload through the blob store, translating every failure into an API error."""
    if blob_store is None:
        _debug("Blob store not configured - image upload rejected")
        raise BlobStoreUnavailable()
    try:
        return blob_store.upload(image.data, filename=image.filename, folder=folder)
    except Exception as e:
        _debug(f"Upload of {image.filename!r} to {folder} failed: {e}")
        raise UpstreamFailure("Image upload failed") from e
