"""Book listings: owner-scoped writes and the public catalog.

Rules:
- A listing belongs to exactly one owner, set at creation and never changed.
- Only that owner may update or delete it.
- The public catalog shows a listing only while its owner is `approved`. This is
  decided by a join on every read; nothing about visibility is stored on the book.
- `owner_whatsapp` is a snapshot of the owner's contact number taken at creation
  (backfilled on update when missing). It does not follow later profile edits.
"""

from __future__ import annotations

import math
import uuid
from typing import Any, Dict, List, Optional

from owner_platform.errors import Forbidden, NotFound, ValidationFailed
from owner_platform.media.blobs import BOOK_FOLDER, BlobStore, ImageUpload, upload_image
from owner_platform.util.time import utcnow_iso_micro


FORMATS = ("ebook", "audiobook")
CURRENCIES = ("NGN", "USD", "EUR", "GBP")

_BOOK_WITH_OWNER_SQL = """
    SELECT b.*,
           o.owner_id AS o_owner_id,
           o.name AS o_name,
           o.profile_image AS o_profile_image,
           o.whatsapp_number AS o_whatsapp_number
    FROM books b
    LEFT JOIN owners o ON o.owner_id = b.owner_id
"""


def _debug(msg: str) -> None:
    print(f"[books] {msg}")


def parse_price(value: Any) -> float:
    try:
        price = float(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationFailed("Invalid price value", detail="price_invalid")
    if math.isnan(price) or math.isinf(price):
        raise ValidationFailed("Invalid price value", detail="price_invalid")
    return price


def _check_format(value: str) -> str:
    if value not in FORMATS:
        raise ValidationFailed(
            f"Invalid 'format' value. Allowed: {', '.join(FORMATS)}",
            detail="format_invalid",
        )
    return value


def _check_currency(value: str) -> str:
    if value not in CURRENCIES:
        raise ValidationFailed(
            f"Invalid currency. Allowed: {','.join(CURRENCIES)}",
            detail="currency_invalid",
        )
    return value


def _blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def serialize_book(row: Any, *, populate_owner: bool = False) -> Dict[str, Any]:
    d = dict(row)
    out: Dict[str, Any] = {
        "_id": d.get("book_id"),
        "id": d.get("book_id"),
        "title": d.get("title"),
        "price": d.get("price"),
        "currency": d.get("currency"),
        "format": d.get("format"),
        "coverImage": d.get("cover_image"),
        "author": d.get("author"),
        "description": d.get("description"),
        "owner": d.get("owner_id"),
        "ownerWhatsApp": d.get("owner_whatsapp"),
        "createdAt": d.get("created_at"),
        "updatedAt": d.get("updated_at"),
    }
    if populate_owner:
        if d.get("o_owner_id"):
            out["owner"] = {
                "_id": d.get("o_owner_id"),
                "name": d.get("o_name"),
                "profileImage": d.get("o_profile_image"),
                "whatsappNumber": d.get("o_whatsapp_number"),
            }
        else:
            out["owner"] = None
    return out


def get_book(conn: Any, book_id: str) -> Optional[Any]:
    bid = (book_id or "").strip()
    if not bid:
        return None
    return conn.execute("SELECT * FROM books WHERE book_id=?", (bid,)).fetchone()


def get_book_with_owner(conn: Any, book_id: str) -> Optional[Dict[str, Any]]:
    row = conn.execute(_BOOK_WITH_OWNER_SQL + " WHERE b.book_id=?", (book_id,)).fetchone()
    if row is None:
        return None
    return serialize_book(row, populate_owner=True)


def _load_owned_book(conn: Any, book_id: str, owner: Dict[str, Any], *, action: str) -> Any:
    """Existence first (NotFound), then ownership (Forbidden)."""
    book = get_book(conn, book_id)
    if book is None:
        raise NotFound("Book not found", detail="book_not_found")
    book_owner = str(book["owner_id"] or "").strip()
    if not book_owner:
        _debug(f"{action}: book {book_id} has no owner reference")
        raise Forbidden(f"Not authorized to {action} this book", detail="not_book_owner")
    if book_owner != str(owner["owner_id"]):
        raise Forbidden(f"Not authorized to {action} this book", detail="not_book_owner")
    return book


def create_book(
    conn: Any,
    *,
    owner: Dict[str, Any],
    title: Optional[str],
    price: Any,
    format: Optional[str],
    currency: Optional[str],
    author: Optional[str] = None,
    description: Optional[str] = None,
    cover_image: Optional[ImageUpload] = None,
    blob_store: Optional[BlobStore] = None,
) -> Dict[str, Any]:
    """Create a listing owned by `owner` (already authenticated and approved).

    All input is validated before the cover is uploaded, so a rejected request
    neither stores a blob nor a row.
    """
    if _blank(title) or _blank(price) or _blank(format) or _blank(currency):
        raise ValidationFailed(
            "Missing required fields: title, price, format, or currency",
            detail="missing_fields",
        )
    format_v = _check_format(str(format).strip())
    price_v = parse_price(price)
    currency_v = _check_currency(str(currency).strip())
    if cover_image is None:
        raise ValidationFailed("Image file required", detail="image_required")

    cover_url = upload_image(blob_store, cover_image, folder=BOOK_FOLDER)

    book_id = uuid.uuid4().hex
    now = utcnow_iso_micro()
    conn.execute(
        """
        INSERT INTO books (
            book_id, owner_id, title, price, currency, format, cover_image,
            author, description, owner_whatsapp, created_at, updated_at
        )
        VALUES (?,?,?,?,?,?,?,?,?,?,?,?)
        """,
        (
            book_id,
            str(owner["owner_id"]),
            str(title).strip(),
            price_v,
            currency_v,
            format_v,
            cover_url,
            author,
            description,
            owner.get("whatsapp_number") or None,
            now,
            now,
        ),
    )
    out = get_book_with_owner(conn, book_id)
    assert out is not None
    return out


def update_book(
    conn: Any,
    book_id: str,
    *,
    owner: Dict[str, Any],
    title: Optional[str] = None,
    price: Any = None,
    format: Optional[str] = None,
    currency: Optional[str] = None,
    author: Optional[str] = None,
    description: Optional[str] = None,
    cover_image: Optional[ImageUpload] = None,
    blob_store: Optional[BlobStore] = None,
) -> Dict[str, Any]:
    """Partial update. Fields left as None are untouched.

    A new cover replaces the stored URL; the previous blob is not deleted.
    Concurrent updates are last-write-wins per field.
    """
    book = _load_owned_book(conn, book_id, owner, action="update")

    fields: list[tuple[str, Any]] = []
    if title is not None:
        if _blank(title):
            raise ValidationFailed("Title cannot be empty", detail="title_invalid")
        fields.append(("title", title.strip()))
    if price is not None:
        fields.append(("price", parse_price(price)))
    if author is not None:
        fields.append(("author", author))
    if description is not None:
        fields.append(("description", description))
    if format is not None:
        fields.append(("format", _check_format(format.strip())))
    if currency is not None:
        fields.append(("currency", _check_currency(currency.strip())))

    if cover_image is not None:
        fields.append(("cover_image", upload_image(blob_store, cover_image, folder=BOOK_FOLDER)))

    if not book["owner_whatsapp"] and owner.get("whatsapp_number"):
        fields.append(("owner_whatsapp", owner["whatsapp_number"]))

    if fields:
        fields.append(("updated_at", utcnow_iso_micro()))
        sets = ", ".join([f"{k}=?" for k, _ in fields])
        params = [v for _, v in fields] + [book["book_id"]]
        conn.execute(f"UPDATE books SET {sets} WHERE book_id=?", params)

    out = get_book_with_owner(conn, book["book_id"])
    assert out is not None
    return out


def delete_book(conn: Any, book_id: str, *, owner: Dict[str, Any]) -> None:
    """Physically delete a listing. There is no soft-delete."""
    book = _load_owned_book(conn, book_id, owner, action="delete")
    conn.execute("DELETE FROM books WHERE book_id=?", (book["book_id"],))


def list_owner_books(conn: Any, owner_id: str) -> List[Dict[str, Any]]:
    rows = conn.execute(
        "SELECT * FROM books WHERE owner_id=? ORDER BY created_at DESC",
        (owner_id,),
    ).fetchall()
    return [serialize_book(r) for r in rows]


def _like_pattern(q: str) -> str:
    escaped = q.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def search_public_books(conn: Any, q: Optional[str] = None) -> List[Dict[str, Any]]:
    """Public catalog: approved owners only, optional title/author substring filter.

    The owner sub-object never carries `status`.
    """
    sql = """
        SELECT b.*,
               o.owner_id AS o_owner_id,
               o.name AS o_name,
               o.profile_image AS o_profile_image,
               o.whatsapp_number AS o_whatsapp_number
        FROM books b
        JOIN owners o ON o.owner_id = b.owner_id
        WHERE o.status = 'approved'
    """
    params: list[Any] = []
    term = (q or "").strip()
    if term:
        pattern = _like_pattern(term)
        sql += (
            " AND (LOWER(b.title) LIKE ? ESCAPE '\\'"
            " OR LOWER(COALESCE(b.author, '')) LIKE ? ESCAPE '\\')"
        )
        params.extend([pattern, pattern])
    sql += " ORDER BY b.created_at DESC"

    rows = conn.execute(sql, params).fetchall()
    return [serialize_book(r, populate_owner=True) for r in rows]
