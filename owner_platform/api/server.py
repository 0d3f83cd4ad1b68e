from __future__ import annotations

import hmac
from typing import Any, Dict, List, Optional

from fastapi import (
    APIRouter,
    Depends,
    FastAPI,
    File,
    Form,
    Header,
    Query,
    Request,
    Response,
    UploadFile,
    WebSocket,
    WebSocketDisconnect,
)
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from owner_platform.auth import get_current_owner, require_approved
from owner_platform.auth.crud import (
    authenticate_owner,
    register_owner,
    serialize_owner,
    update_owner_profile,
)
from owner_platform.auth.session import clear_session, issue_session
from owner_platform.books.crud import (
    create_book,
    delete_book,
    list_owner_books,
    search_public_books,
    update_book,
)
from owner_platform.config import Config, load_config
from owner_platform.db import connect, init_db
from owner_platform.errors import Forbidden, Internal, NotFound, OwnerPlatformError, ValidationFailed
from owner_platform.media.blobs import BlobStore, ImageUpload, build_blob_store
from owner_platform.theme import THEME_EVENT, ThemeBroadcaster, get_theme, set_theme


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


def _cfg(request: Request) -> Config:
    return request.app.state.cfg


def _image(upload: Optional[UploadFile]) -> Optional[ImageUpload]:
    """Read a multipart file field into memory; empty fields count as absent."""
    if upload is None or not getattr(upload, "filename", None):
        return None
    return ImageUpload(data=upload.file.read(), filename=str(upload.filename))


# -----------------------------
# Owner auth
# -----------------------------

auth_router = APIRouter(prefix="/api/owner/auth", tags=["owner-auth"])


class LoginRequest(BaseModel):
    email: str
    password: str


@auth_router.post("/signup", status_code=201)
def auth_signup(
    request: Request,
    name: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    type: Optional[str] = Form(None),
    username: Optional[str] = Form(None),
    storeName: Optional[str] = Form(None),
    bio: Optional[str] = Form(None),
    whatsappNumber: Optional[str] = Form(None),
    profileImage: Optional[UploadFile] = File(None),
) -> Dict[str, Any]:
    """Create an owner account. New accounts always start as `pending`."""
    cfg = _cfg(request)
    with connect(cfg.DB_DSN) as conn:
        owner = register_owner(
            conn,
            name=name,
            email=email,
            password=password,
            owner_type=type,
            username=username,
            store_name=storeName,
            bio=bio,
            whatsapp_number=whatsappNumber,
            profile_image=_image(profileImage),
            blob_store=request.app.state.blob_store,
        )
    _debug(f"Owner signed up: owner_id={owner['owner_id']} type={owner['owner_type']}")
    return {
        "message": "Signup successful, pending approval",
        "ownerId": owner["owner_id"],
        "profileImage": owner.get("profile_image"),
    }


@auth_router.post("/login")
def auth_login(payload: LoginRequest, request: Request, response: Response) -> Dict[str, Any]:
    cfg = _cfg(request)
    with connect(cfg.DB_DSN) as conn:
        owner = authenticate_owner(conn, payload.email, payload.password)

    token = issue_session(response, owner=owner, cfg=cfg)
    return {
        "_id": owner["owner_id"],
        "name": owner.get("name"),
        "email": owner.get("email"),
        "type": owner.get("owner_type"),
        "profileImage": owner.get("profile_image"),
        "token": token,
    }


@auth_router.post("/logout")
def auth_logout(request: Request, response: Response) -> Dict[str, Any]:
    """Clear the session cookie. Bearer tokens stay valid until they expire."""
    clear_session(response, _cfg(request))
    return {"ok": True}


@auth_router.get("/me")
def auth_me(owner: Dict[str, Any] = Depends(get_current_owner)) -> Dict[str, Any]:
    return serialize_owner(owner)


@auth_router.put("/me")
def auth_update_me(
    request: Request,
    owner: Dict[str, Any] = Depends(get_current_owner),
    name: Optional[str] = Form(None),
    storeName: Optional[str] = Form(None),
    bio: Optional[str] = Form(None),
    whatsappNumber: Optional[str] = Form(None),
    profileImage: Optional[UploadFile] = File(None),
) -> Dict[str, Any]:
    cfg = _cfg(request)
    with connect(cfg.DB_DSN) as conn:
        updated = update_owner_profile(
            conn,
            str(owner["owner_id"]),
            name=name,
            store_name=storeName,
            bio=bio,
            whatsapp_number=whatsappNumber,
            profile_image=_image(profileImage),
            blob_store=request.app.state.blob_store,
        )
    return serialize_owner(updated)


# -----------------------------
# Owner books (approved owners only)
# -----------------------------

books_router = APIRouter(prefix="/api/owner/books", tags=["owner-books"])


@books_router.post("", status_code=201)
def books_create(
    request: Request,
    owner: Dict[str, Any] = Depends(require_approved),
    title: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    author: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    format: Optional[str] = Form(None),
    currency: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    coverImage: Optional[UploadFile] = File(None),
) -> Dict[str, Any]:
    cfg = _cfg(request)
    with connect(cfg.DB_DSN) as conn:
        book = create_book(
            conn,
            owner=owner,
            title=title,
            price=price,
            format=format,
            currency=currency,
            author=author,
            description=description,
            cover_image=_image(image) or _image(coverImage),
            blob_store=request.app.state.blob_store,
        )
    _debug(f"Book created: book_id={book['_id']} owner_id={owner['owner_id']}")
    return book


@books_router.get("")
def books_list_mine(request: Request, owner: Dict[str, Any] = Depends(get_current_owner)) -> List[Dict[str, Any]]:
    """Owners always see their own listings, approved or not."""
    cfg = _cfg(request)
    with connect(cfg.DB_DSN) as conn:
        return list_owner_books(conn, str(owner["owner_id"]))


@books_router.put("/{book_id}")
def books_update(
    book_id: str,
    request: Request,
    owner: Dict[str, Any] = Depends(require_approved),
    title: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    author: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    format: Optional[str] = Form(None),
    currency: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    coverImage: Optional[UploadFile] = File(None),
) -> Dict[str, Any]:
    cfg = _cfg(request)
    with connect(cfg.DB_DSN) as conn:
        return update_book(
            conn,
            book_id,
            owner=owner,
            title=title,
            price=price,
            format=format,
            currency=currency,
            author=author,
            description=description,
            cover_image=_image(image) or _image(coverImage),
            blob_store=request.app.state.blob_store,
        )


@books_router.delete("/{book_id}")
def books_delete(book_id: str, request: Request, owner: Dict[str, Any] = Depends(require_approved)) -> Dict[str, Any]:
    cfg = _cfg(request)
    with connect(cfg.DB_DSN) as conn:
        delete_book(conn, book_id, owner=owner)
    _debug(f"Book deleted: book_id={book_id} owner_id={owner['owner_id']}")
    return {"message": "Book deleted"}


# -----------------------------
# Public catalog (no auth)
# -----------------------------

public_router = APIRouter(tags=["public-books"])


@public_router.get("")
@public_router.get("/all")
def public_books(request: Request, q: Optional[str] = Query(None)) -> List[Dict[str, Any]]:
    cfg = _cfg(request)
    with connect(cfg.DB_DSN) as conn:
        return search_public_books(conn, q)


# -----------------------------
# Internal (theme sync)
# -----------------------------

internal_router = APIRouter(prefix="/api/internal", tags=["internal"])


class ThemeSyncRequest(BaseModel):
    # Any JSON value is accepted here; set_theme decides what is a valid mode.
    themeMode: Any = None


def _persist_theme(db_dsn: str, theme_mode: Any) -> str:
    with connect(db_dsn) as conn:
        return set_theme(conn, theme_mode)


@internal_router.post("/theme-sync")
async def internal_theme_sync(
    request: Request,
    payload: Optional[ThemeSyncRequest] = None,
    x_internal_secret: Optional[str] = Header(default=None, alias="X-Internal-Secret"),
) -> Dict[str, Any]:
    cfg = _cfg(request)
    secret = cfg.OWNER_SHARED_SECRET
    if secret and not hmac.compare_digest((x_internal_secret or "").encode(), secret.encode()):
        raise Forbidden()

    # Keep the event loop free for /ws subscribers while the DB write runs.
    mode = await run_in_threadpool(_persist_theme, cfg.DB_DSN, payload.themeMode if payload else None)
    _debug(f"theme-sync persisted: {mode}")

    broadcaster: ThemeBroadcaster = request.app.state.broadcaster
    await broadcaster.publish(THEME_EVENT, {"themeMode": mode})
    return {"ok": True, "themeMode": mode}


@internal_router.get("/theme")
def internal_theme(request: Request) -> Dict[str, Any]:
    cfg = _cfg(request)
    with connect(cfg.DB_DSN) as conn:
        mode = get_theme(conn)
    if mode is None:
        raise NotFound("No theme set", detail="theme_not_set")
    return {"themeMode": mode}


# -----------------------------
# App
# -----------------------------


def _error_response(exc: OwnerPlatformError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


def create_app(
    cfg: Optional[Config] = None,
    *,
    blob_store: Optional[BlobStore] = None,
    broadcaster: Optional[ThemeBroadcaster] = None,
) -> FastAPI:
    cfg = cfg or load_config()
    app = FastAPI(title="Owner Marketplace API", version="0.1.0")

    # Make config and collaborators available to routes and auth deps.
    app.state.cfg = cfg
    app.state.blob_store = blob_store if blob_store is not None else build_blob_store(cfg)
    app.state.broadcaster = broadcaster or ThemeBroadcaster()
    if app.state.blob_store is None:
        _debug("Cloudinary not configured - image uploads will be rejected")

    # Owner frontends run on other origins and send the session cookie cross-site.
    cors_origins = [o.strip() for o in (cfg.CORS_ALLOW_ORIGINS or "").split(",") if o.strip()]
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.on_event("startup")
    def _on_startup() -> None:
        init_db(cfg.DB_DSN)

    @app.exception_handler(OwnerPlatformError)
    async def _handle_platform_error(request: Request, exc: OwnerPlatformError) -> JSONResponse:
        if exc.status_code >= 500:
            _debug(f"{request.method} {request.url.path} failed: {exc.detail}")
        return _error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def _handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        first = errors[0] if errors else {}
        loc = [str(p) for p in first.get("loc", ()) if p not in ("body", "query", "header")]
        field = ".".join(loc)
        kind = str(first.get("type") or "")
        if kind == "json_invalid":
            return _error_response(ValidationFailed("Malformed JSON body", detail="invalid_json"))
        if kind == "missing" and field:
            return _error_response(ValidationFailed(f"Missing required field: {field}", detail=f"{field}_required"))
        msg = f"Invalid value for {field}" if field else "Invalid request"
        return _error_response(ValidationFailed(msg, detail="invalid_request"))

    @app.exception_handler(Exception)
    async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        _debug(f"{request.method} {request.url.path} unexpected error: {exc!r}")
        return _error_response(Internal())

    @app.get("/")
    def root() -> Dict[str, Any]:
        return {"message": "Owner API running"}

    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {"status": "ok"}

    @app.websocket("/ws")
    async def ws_updates(websocket: WebSocket) -> None:
        """Real-time channel. Server pushes {"event": "theme:update", "data": {...}}."""
        hub: ThemeBroadcaster = websocket.app.state.broadcaster
        await hub.connect(websocket)
        try:
            while True:
                # Clients don't send anything meaningful; keep reading to notice disconnects.
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            hub.disconnect(websocket)

    app.include_router(auth_router)
    app.include_router(books_router)
    # Same handler under every path the storefront frontends have used.
    for prefix in ("/api/books", "/api/ebooks", "/api/public/books"):
        app.include_router(public_router, prefix=prefix)
    app.include_router(internal_router)
    return app


app = create_app()
