"""Global UI theme: a single persisted setting pushed to connected clients.

Delivery to subscribers is best effort. A client that connects after a change
does not get it replayed and should call GET /api/internal/theme instead.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import WebSocket

from owner_platform.errors import ValidationFailed
from owner_platform.util.time import utcnow_iso


THEME_KEY = "global-theme"
THEME_MODES = ("light", "dark")
THEME_EVENT = "theme:update"


def _debug(msg: str) -> None:
    print(f"[theme] {msg}")


def get_theme(conn: Any) -> Optional[str]:
    row = conn.execute("SELECT theme_mode FROM theme_settings WHERE key=?", (THEME_KEY,)).fetchone()
    if row is None:
        return None
    return str(row["theme_mode"])


def set_theme(conn: Any, theme_mode: Any) -> str:
    """Upsert the single theme row. Never creates a second row."""
    mode = str(theme_mode or "").strip()
    if mode not in THEME_MODES:
        raise ValidationFailed("Invalid themeMode", detail="theme_mode_invalid")
    now = utcnow_iso()
    conn.execute(
        """
        INSERT INTO theme_settings (key, theme_mode, created_at, updated_at) VALUES (?, ?, ?, ?)
        ON CONFLICT(key) DO UPDATE SET theme_mode=excluded.theme_mode, updated_at=excluded.updated_at
        """,
        (THEME_KEY, mode, now, now),
    )
    return mode


class ThemeBroadcaster:
    """Fan-out of events to connected WebSocket clients.

    Owned by the app (app.state.broadcaster); subscribers are added on connect
    and removed on disconnect by the WebSocket endpoint.
    """

    def __init__(self) -> None:
        self.subscribers: List[WebSocket] = []

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self.subscribers.append(websocket)
        _debug(f"Client connected ({len(self.subscribers)} total)")

    def disconnect(self, websocket: WebSocket) -> None:
        if websocket in self.subscribers:
            self.subscribers.remove(websocket)
            _debug(f"Client disconnected ({len(self.subscribers)} total)")

    async def publish(self, event: str, data: Dict[str, Any]) -> int:
        """Send to every current subscriber. Returns how many received it."""
        message = {"event": event, "data": data}
        delivered = 0
        for ws in list(self.subscribers):
            try:
                await ws.send_json(message)
                delivered += 1
            except Exception as e:
                _debug(f"Dropping subscriber after send failure: {e}")
                self.disconnect(ws)
        return delivered
