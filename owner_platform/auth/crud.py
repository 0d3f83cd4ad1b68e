from __future__ import annotations

import re
import uuid
from typing import Any, Dict, Optional

from owner_platform.db import unique_violation_column
from owner_platform.errors import (
    Conflict,
    EmailTaken,
    InvalidCredentials,
    NotApproved,
    NotFound,
    UsernameTaken,
    ValidationFailed,
)
from owner_platform.media.blobs import PROFILE_FOLDER, BlobStore, ImageUpload, upload_image
from owner_platform.util.time import epoch_millis, utcnow_iso

from .security import hash_password, verify_password


OWNER_TYPES = ("author", "bookstore")
OWNER_STATUSES = ("pending", "approved", "rejected")

_USERNAME_STRIP = re.compile(r"[^a-zA-Z0-9_-]")

# Verified against when the email is unknown so both login failures cost the same.
_DUMMY_HASH: Optional[str] = None


def _debug(msg: str) -> None:
    print(f"[owners] {msg}")


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def normalize_username(username: Optional[str]) -> Optional[str]:
    # Empty means "not supplied", never an empty-string username.
    u = (username or "").strip()
    return u or None


def derive_username(email: str, *, now_ms: Optional[int] = None) -> str:
    """Build a username from the email local-part.

    Always suffixed with a millisecond timestamp, so two signups deriving the same
    base never reuse the bare name.
    """
    ts = epoch_millis() if now_ms is None else int(now_ms)
    local = normalize_email(email).split("@")[0]
    base = _USERNAME_STRIP.sub("", local).lower()
    if not base:
        base = f"user{ts}"
    return f"{base}-{ts}"


def public_owner(row: Any | Dict[str, Any]) -> Dict[str, Any]:
    d = dict(row)
    d.pop("password_hash", None)
    return d


def serialize_owner(owner: Dict[str, Any]) -> Dict[str, Any]:
    """Shape an owner for API responses (never includes the password hash)."""
    return {
        "_id": owner.get("owner_id"),
        "name": owner.get("name"),
        "email": owner.get("email"),
        "username": owner.get("username"),
        "type": owner.get("owner_type"),
        "storeName": owner.get("store_name"),
        "bio": owner.get("bio"),
        "whatsappNumber": owner.get("whatsapp_number"),
        "profileImage": owner.get("profile_image"),
        "status": owner.get("status"),
        "rejectionReason": owner.get("rejection_reason"),
        "createdAt": owner.get("created_at"),
        "updatedAt": owner.get("updated_at"),
    }


def get_owner_by_email(conn: Any, email: str) -> Optional[Any]:
    e = normalize_email(email)
    if not e:
        return None
    return conn.execute("SELECT * FROM owners WHERE email=?", (e,)).fetchone()


def get_owner_by_username(conn: Any, username: str) -> Optional[Any]:
    u = normalize_username(username)
    if u is None:
        return None
    return conn.execute("SELECT * FROM owners WHERE username=?", (u,)).fetchone()


def get_owner_by_id(conn: Any, owner_id: str) -> Optional[Any]:
    oid = (owner_id or "").strip()
    if not oid:
        return None
    return conn.execute("SELECT * FROM owners WHERE owner_id=?", (oid,)).fetchone()


def _require(value: Optional[str], field: str) -> str:
    v = (value or "").strip()
    if not v:
        raise ValidationFailed(f"Missing required field: {field}", detail=f"{field}_required")
    return v


def register_owner(
    conn: Any,
    *,
    name: Optional[str],
    email: Optional[str],
    password: Optional[str],
    owner_type: Optional[str],
    username: Optional[str] = None,
    store_name: Optional[str] = None,
    bio: Optional[str] = None,
    whatsapp_number: Optional[str] = None,
    profile_image: Optional[ImageUpload] = None,
    blob_store: Optional[BlobStore] = None,
) -> Dict[str, Any]:
    """Create a new owner account in `pending` status.

    Order matters:
      1. validate input
      2. pre-check email / username uniqueness
      3. upload the profile image (fails closed, nothing is stored on failure)
      4. insert; a uniqueness violation here means another signup won the race
         after our pre-check, and is reported exactly like the pre-check would.
    """
    name_v = _require(name, "name")
    email_v = normalize_email(_require(email, "email"))
    if "@" not in email_v:
        raise ValidationFailed("Invalid email", detail="email_invalid")
    if not password:
        raise ValidationFailed("Missing required field: password", detail="password_required")
    type_v = _require(owner_type, "type").lower()
    if type_v not in OWNER_TYPES:
        raise ValidationFailed(
            f"Invalid 'type' value. Allowed: {', '.join(OWNER_TYPES)}",
            detail="type_invalid",
        )
    username_v = normalize_username(username)

    if get_owner_by_email(conn, email_v) is not None:
        raise EmailTaken()
    if username_v is not None and get_owner_by_username(conn, username_v) is not None:
        raise UsernameTaken()

    profile_url: Optional[str] = None
    if profile_image is not None:
        profile_url = upload_image(blob_store, profile_image, folder=PROFILE_FOLDER)

    final_username = username_v or derive_username(email_v)
    owner_id = uuid.uuid4().hex
    now = utcnow_iso()
    try:
        conn.execute(
            """
            INSERT INTO owners (
                owner_id, email, username, password_hash, owner_type, status,
                name, store_name, bio, whatsapp_number, profile_image, created_at, updated_at
            )
            VALUES (?,?,?,?,?,'pending',?,?,?,?,?,?,?)
            """,
            (
                owner_id,
                email_v,
                final_username,
                hash_password(password),
                type_v,
                name_v,
                store_name,
                bio,
                whatsapp_number,
                profile_url,
                now,
                now,
            ),
        )
    except Exception as e:
        col = unique_violation_column(e, ("email", "username"))
        if col is None:
            raise
        _debug(f"Signup lost uniqueness race on {col or 'unknown column'}: {e}")
        if col == "email":
            raise EmailTaken() from e
        if col == "username":
            raise UsernameTaken() from e
        raise Conflict() from e

    row = get_owner_by_id(conn, owner_id)
    assert row is not None
    return public_owner(row)


def authenticate_owner(conn: Any, email: str, password: str) -> Dict[str, Any]:
    """Check credentials and approval.

    Unknown email and wrong password raise the same InvalidCredentials.
    NotApproved is raised only after the password has been verified.
    """
    global _DUMMY_HASH

    row = get_owner_by_email(conn, email)
    if row is None:
        if _DUMMY_HASH is None:
            _DUMMY_HASH = hash_password("not-a-real-password")
        verify_password(password or "", _DUMMY_HASH)
        raise InvalidCredentials()
    if not verify_password(password or "", str(row["password_hash"])):
        raise InvalidCredentials()
    if str(row["status"]) != "approved":
        raise NotApproved()
    return public_owner(row)


def update_owner_profile(
    conn: Any,
    owner_id: str,
    *,
    name: Optional[str] = None,
    store_name: Optional[str] = None,
    bio: Optional[str] = None,
    whatsapp_number: Optional[str] = None,
    profile_image: Optional[ImageUpload] = None,
    blob_store: Optional[BlobStore] = None,
) -> Dict[str, Any]:
    """Apply a partial profile update. Only supplied (non-None) fields change."""
    if get_owner_by_id(conn, owner_id) is None:
        raise NotFound("Owner not found", detail="owner_not_found")

    fields: list[tuple[str, Any]] = []
    if name is not None:
        fields.append(("name", _require(name, "name")))
    if store_name is not None:
        fields.append(("store_name", store_name))
    if bio is not None:
        fields.append(("bio", bio))
    if whatsapp_number is not None:
        fields.append(("whatsapp_number", whatsapp_number))
    if profile_image is not None:
        fields.append(("profile_image", upload_image(blob_store, profile_image, folder=PROFILE_FOLDER)))

    if fields:
        fields.append(("updated_at", utcnow_iso()))
        sets = ", ".join([f"{k}=?" for k, _ in fields])
        params = [v for _, v in fields] + [owner_id]
        conn.execute(f"UPDATE owners SET {sets} WHERE owner_id=?", params)

    row = get_owner_by_id(conn, owner_id)
    assert row is not None
    return public_owner(row)


def set_owner_status(
    conn: Any,
    owner_id: str,
    status: str,
    *,
    rejection_reason: Optional[str] = None,
) -> Dict[str, Any]:
    """Approval actor: move an owner to pending/approved/rejected."""
    s = (status or "").strip().lower()
    if s not in OWNER_STATUSES:
        raise ValidationFailed(f"Invalid status. Allowed: {', '.join(OWNER_STATUSES)}", detail="status_invalid")
    reason = rejection_reason if s == "rejected" else None
    cur = conn.execute(
        "UPDATE owners SET status=?, rejection_reason=?, updated_at=? WHERE owner_id=?",
        (s, reason, utcnow_iso(), owner_id),
    )
    if cur.rowcount == 0:
        raise NotFound("Owner not found", detail="owner_not_found")
    row = get_owner_by_id(conn, owner_id)
    assert row is not None
    return public_owner(row)


def delete_owner(conn: Any, owner_id: str) -> bool:
    """Physically delete an owner (their books go with them)."""
    cur = conn.execute("DELETE FROM owners WHERE owner_id=?", (owner_id,))
    return cur.rowcount > 0
