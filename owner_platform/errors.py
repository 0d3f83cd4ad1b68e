"""Error kinds surfaced by the API.

Every failure a caller can see is one of these. Each carries an HTTP status,
a stable machine-readable ``detail`` code and a message that is safe to show.
Raw upstream errors are logged where they happen and never copied in here.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class OwnerPlatformError(Exception):
    status_code: int = 500
    detail: str = "internal_error"
    message: str = "Internal error"

    def __init__(self, message: Optional[str] = None, *, detail: Optional[str] = None) -> None:
        if message is not None:
            self.message = message
        if detail is not None:
            self.detail = detail
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.detail, "message": self.message}


class ValidationFailed(OwnerPlatformError):
    status_code = 400
    detail = "validation_failed"
    message = "Invalid request"


class Unauthenticated(OwnerPlatformError):
    status_code = 401
    detail = "not_authenticated"
    message = "Not authorized"


class InvalidCredentials(Unauthenticated):
    detail = "invalid_credentials"
    message = "Invalid credentials"


class Forbidden(OwnerPlatformError):
    status_code = 403
    detail = "forbidden"
    message = "Forbidden"


class NotApproved(Forbidden):
    detail = "not_approved"
    message = "Account not approved yet"


class NotFound(OwnerPlatformError):
    status_code = 404
    detail = "not_found"
    message = "Not found"


class Conflict(OwnerPlatformError):
    status_code = 409
    detail = "conflict"
    message = "Duplicate field error"


class EmailTaken(Conflict):
    detail = "email_taken"
    message = "Email already in use"


class UsernameTaken(Conflict):
    detail = "username_taken"
    message = "Username already in use"


class UpstreamFailure(OwnerPlatformError):
    status_code = 500
    detail = "upstream_failure"
    message = "Image upload failed"


class BlobStoreUnavailable(UpstreamFailure):
    detail = "blob_store_not_configured"
    message = "Server misconfiguration: image uploads require Cloudinary"


class Internal(OwnerPlatformError):
    pass
