"""Database schema for the owner marketplace backend.

SQLite is the default engine; Postgres is supported through the same DDL.

Timestamps are ISO-8601 TEXT (UTC, with 'Z') for portability. ISO strings sort
lexicographically in time order, so `ORDER BY created_at DESC` is newest-first.
Book timestamps carry microseconds so listings created within the same second
still order correctly.

Primary keys are uuid4 hex strings generated by the application.

NOTE: The Postgres schema is generated from the SQLite schema with a small set of
transformations.
"""

from __future__ import annotations

import re


SCHEMA_SQLITE = r"""
PRAGMA foreign_keys = ON;

-- Owners (authors / bookstores)
-- username is nullable; NULLs never collide under UNIQUE.
CREATE TABLE IF NOT EXISTS owners (
    owner_id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    username TEXT UNIQUE,
    password_hash TEXT NOT NULL,
    owner_type TEXT NOT NULL CHECK (owner_type IN ('author','bookstore')),
    status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending','approved','rejected')),
    rejection_reason TEXT,
    name TEXT NOT NULL,
    store_name TEXT,
    bio TEXT,
    whatsapp_number TEXT,
    profile_image TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_owners_status ON owners (status);

-- Book listings. owner_id is set at creation and never changed.
CREATE TABLE IF NOT EXISTS books (
    book_id TEXT PRIMARY KEY,
    owner_id TEXT NOT NULL,
    title TEXT NOT NULL,
    price REAL NOT NULL,
    currency TEXT NOT NULL DEFAULT 'NGN' CHECK (currency IN ('NGN','USD','EUR','GBP')),
    format TEXT NOT NULL CHECK (format IN ('ebook','audiobook')),
    cover_image TEXT NOT NULL,
    author TEXT,
    description TEXT,
    owner_whatsapp TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    FOREIGN KEY (owner_id) REFERENCES owners(owner_id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_books_owner_created ON books (owner_id, created_at);
CREATE INDEX IF NOT EXISTS idx_books_created ON books (created_at);

-- Global UI theme (single row keyed by 'global-theme')
CREATE TABLE IF NOT EXISTS theme_settings (
    key TEXT PRIMARY KEY,
    theme_mode TEXT NOT NULL CHECK (theme_mode IN ('light','dark')),
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


def _sqlite_to_postgres(ddl: str) -> str:
    # Remove SQLite pragmas
    lines: list[str] = []
    for line in ddl.splitlines():
        if line.strip().upper().startswith("PRAGMA "):
            continue
        lines.append(line)
    out = "\n".join(lines)

    # Types
    out = re.sub(r"\bREAL\b", "DOUBLE PRECISION", out)
    return out


SCHEMA_POSTGRES = _sqlite_to_postgres(SCHEMA_SQLITE)


def get_schema_sql(dialect: str) -> str:
    d = (dialect or "").lower()
    if d.startswith("post"):
        return SCHEMA_POSTGRES
    return SCHEMA_SQLITE
