from __future__ import annotations

from typing import Any, Dict

from fastapi import Response

from owner_platform.config import Config

from .security import create_access_token


def cookie_secure(cfg: Config) -> bool:
    """Return whether the session cookie should be marked Secure."""
    return not bool(getattr(cfg, "FORCE_INSECURE_COOKIES", False))


def cookie_samesite(cfg: Config) -> str:
    # Browsers reject SameSite=None without Secure, so insecure local cookies use lax.
    return "none" if cookie_secure(cfg) else "lax"


def cookie_domain(cfg: Config) -> str | None:
    if str(getattr(cfg, "APP_ENV", "") or "").lower() != "production":
        return None
    return getattr(cfg, "COOKIE_DOMAIN", None)


def issue_session(response: Response, *, owner: Dict[str, Any], cfg: Config) -> str:
    """Mint a session token for `owner` and set it as an httpOnly cookie.

    The token is also returned so it can be echoed in the response body for
    clients that cannot use cookies.
    """
    token = create_access_token(
        secret=cfg.JWT_SECRET,
        owner_id=str(owner["owner_id"]),
        expires_days=int(cfg.AUTH_TOKEN_EXPIRE_DAYS),
    )
    response.set_cookie(
        key=str(cfg.AUTH_COOKIE_NAME or "owner_jwt"),
        value=token,
        httponly=True,
        samesite=cookie_samesite(cfg),
        secure=cookie_secure(cfg),
        max_age=int(cfg.AUTH_TOKEN_EXPIRE_DAYS) * 24 * 60 * 60,
        path=str(cfg.AUTH_COOKIE_PATH or "/"),
        domain=cookie_domain(cfg),
    )
    return token


def clear_session(response: Response, cfg: Config) -> None:
    response.delete_cookie(
        key=str(cfg.AUTH_COOKIE_NAME or "owner_jwt"),
        path=str(cfg.AUTH_COOKIE_PATH or "/"),
        domain=cookie_domain(cfg),
        secure=cookie_secure(cfg),
        httponly=True,
        samesite=cookie_samesite(cfg),
    )
