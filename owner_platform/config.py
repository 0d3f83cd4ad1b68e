import os
from dataclasses import dataclass
from typing import Optional

# Optional: load a local .env file if present.
try:
    from dotenv import load_dotenv

    load_dotenv()
except Exception:
    # If python-dotenv isn't installed or .env isn't present, that's fine.
    pass


def _env_bool(name: str, default: Optional[bool] = None) -> Optional[bool]:
    """Parse a boolean environment variable.

    Returns:
      - True/False if the env var is set to a recognizable value
      - default if unset or unrecognized

    Accepted truthy: 1, true, yes, y, on
    Accepted falsy:  0, false, no, n, off
    """

    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in ("1", "true", "yes", "y", "on"):
        return True
    if v in ("0", "false", "no", "n", "off"):
        return False
    return default


@dataclass(frozen=True)
class Config:
    """Runtime configuration.

    IMPORTANT: Provide secrets via environment variables or a .env file.
    Do not hardcode secrets in source code.
    """

    # -----------------
    # Core
    # -----------------
    # Preferred: set OWNER_DATABASE_URL (or DATABASE_URL) to use Postgres.
    # Fallback: OWNER_DB_PATH for SQLite.
    DB_DSN: str = (
        os.environ.get("OWNER_DATABASE_URL")
        or os.environ.get("DATABASE_URL")
        or os.environ.get("OWNER_DB_PATH", "./owner_platform.sqlite")
    )

    # development|production|test. Only affects cookie domain scoping.
    APP_ENV: str = os.environ.get("APP_ENV", os.environ.get("NODE_ENV", "development")).strip().lower()

    # -----------------
    # Auth (JWT)
    # -----------------
    # NOTE: In dev, this defaults to a fixed string so you can get started.
    # In production, you MUST set JWT_SECRET to a strong random value.
    JWT_SECRET: str = os.environ.get("JWT_SECRET", "dev_change_me")
    AUTH_TOKEN_EXPIRE_DAYS: int = 30

    # Session cookie. The API reads the token from either Authorization: Bearer ... OR this cookie.
    AUTH_COOKIE_NAME: str = os.environ.get("AUTH_COOKIE_NAME", "owner_jwt")
    AUTH_COOKIE_PATH: str = os.environ.get("AUTH_COOKIE_PATH", "/")
    # Applied only when APP_ENV=production.
    COOKIE_DOMAIN: str | None = (os.environ.get("COOKIE_DOMAIN") or "").strip() or None
    # Owner frontends live on other origins, so the cookie is cross-site (SameSite=None; Secure).
    # FORCE_INSECURE_COOKIES=1 is for local http testing only.
    FORCE_INSECURE_COOKIES: bool = _env_bool("FORCE_INSECURE_COOKIES", False) is True

    # -----------------
    # CORS
    # -----------------
    CORS_ALLOW_ORIGINS: str = os.environ.get(
        "CORS_ALLOW_ORIGINS",
        "http://localhost:3000,http://localhost:5173,http://localhost:5174",
    )

    # -----------------
    # Blob store (Cloudinary)
    # -----------------
    # All three must be set; image uploads are rejected otherwise.
    CLOUDINARY_CLOUD_NAME: str | None = os.environ.get("CLOUDINARY_CLOUD_NAME")
    CLOUDINARY_API_KEY: str | None = os.environ.get("CLOUDINARY_API_KEY")
    CLOUDINARY_API_SECRET: str | None = os.environ.get("CLOUDINARY_API_SECRET")
    CLOUDINARY_UPLOAD_URL: str = os.environ.get(
        "CLOUDINARY_UPLOAD_URL",
        "https://api.cloudinary.com/v1_1",
    )
    BLOB_UPLOAD_TIMEOUT_SECONDS: float = float(os.environ.get("BLOB_UPLOAD_TIMEOUT_SECONDS", "60"))

    # -----------------
    # Internal endpoints
    # -----------------
    # If set, POST /api/internal/theme-sync requires a matching X-Internal-Secret header.
    OWNER_SHARED_SECRET: str | None = (os.environ.get("OWNER_SHARED_SECRET") or "").strip() or None


def load_config() -> Config:
    return Config()
