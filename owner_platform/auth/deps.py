from __future__ import annotations

from typing import Any, Dict, Optional

import jwt
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from owner_platform.db import connect
from owner_platform.errors import NotApproved, Unauthenticated

from .crud import get_owner_by_id, public_owner
from .security import decode_access_token


_bearer = HTTPBearer(auto_error=False)


def _debug(msg: str) -> None:
    print(f"[auth] {msg}")


def get_current_owner(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> Dict[str, Any]:
    """Authenticate a request.

    Supports both:
      - Authorization: Bearer <jwt>  (clients that cannot hold cookies)
      - The httpOnly `owner_jwt` cookie set by /login

    The owner is re-read from the database on every request, so a deleted owner
    stops authenticating immediately even though their token is still signed.
    """

    cfg = getattr(request.app.state, "cfg", None)
    if cfg is None:
        raise HTTPException(status_code=500, detail="server_config_missing")

    token: str | None = None

    # Prefer Bearer token when explicitly provided.
    if credentials is not None and credentials.credentials:
        token = credentials.credentials

    if not token:
        token = request.cookies.get(str(cfg.AUTH_COOKIE_NAME or "owner_jwt"))

    if not token:
        raise Unauthenticated("Not authorized, no token", detail="missing_token")

    try:
        payload = decode_access_token(token=token, secret=cfg.JWT_SECRET)
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Not authorized, token expired", detail="token_expired")
    except jwt.InvalidTokenError:
        raise Unauthenticated("Not authorized, token failed", detail="token_invalid")
    except Exception as e:
        _debug(f"Token decode error: {e}")
        raise Unauthenticated("Not authorized, token failed", detail="token_decode_error")

    sub = payload.get("sub")
    if not sub:
        raise Unauthenticated("Not authorized, token failed", detail="token_missing_sub")

    with connect(cfg.DB_DSN) as conn:
        row = get_owner_by_id(conn, str(sub))
        if row is None:
            raise Unauthenticated("Not authorized, owner not found", detail="owner_not_found")
        return public_owner(row)


def require_approved(owner: Dict[str, Any] = Depends(get_current_owner)) -> Dict[str, Any]:
    if owner.get("status") != "approved":
        raise NotApproved()
    return owner
