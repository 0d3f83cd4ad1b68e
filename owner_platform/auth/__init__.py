"""Authentication / authorization helpers.

Owners sign up, wait for approval, then log in:

- Owners table (email + optional username, password hash, approval status)
- JWT session tokens (30 days), verified by signature only

The API accepts the token from either:

- A secure httpOnly cookie `owner_jwt` (set by `/api/owner/auth/login`)
- `Authorization: Bearer <token>` (the token is also returned in the login body)

Write access additionally requires the owner to be `approved`.
"""

from .deps import get_current_owner, require_approved
from .crud import authenticate_owner, register_owner

__all__ = [
    "get_current_owner",
    "require_approved",
    "authenticate_owner",
    "register_owner",
]
