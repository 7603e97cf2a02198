"""SQLite connection and schema for the local content store."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from listing_sync.common.fs import ensure_dir

SCHEMA = """
CREATE TABLE IF NOT EXISTS items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    post_type TEXT NOT NULL,
    title TEXT NOT NULL DEFAULT '',
    body TEXT NOT NULL DEFAULT '',
    status TEXT NOT NULL,
    featured_attachment_id INTEGER,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS item_meta (
    item_id INTEGER NOT NULL,
    meta_key TEXT NOT NULL,
    meta_value TEXT,
    PRIMARY KEY (item_id, meta_key),
    FOREIGN KEY (item_id) REFERENCES items(id)
);
CREATE INDEX IF NOT EXISTS idx_item_meta_lookup ON item_meta(meta_key, meta_value);

CREATE TABLE IF NOT EXISTS field_groups (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    key TEXT NOT NULL UNIQUE,
    title TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS fields (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    key TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL,
    label TEXT NOT NULL DEFAULT '',
    type TEXT NOT NULL,
    group_id INTEGER NOT NULL,
    parent_field_id INTEGER,  -- NULL for top-level fields of the group
    position INTEGER NOT NULL DEFAULT 0,
    FOREIGN KEY (group_id) REFERENCES field_groups(id)
);

CREATE TABLE IF NOT EXISTS field_values (
    item_id INTEGER NOT NULL,
    field_key TEXT NOT NULL,
    value_json TEXT,
    PRIMARY KEY (item_id, field_key)
);

CREATE TABLE IF NOT EXISTS field_rows (
    item_id INTEGER NOT NULL,
    field_key TEXT NOT NULL,
    row_index INTEGER NOT NULL,
    value_json TEXT NOT NULL,
    PRIMARY KEY (item_id, field_key, row_index)
);

CREATE TABLE IF NOT EXISTS terms (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    taxonomy TEXT NOT NULL,
    parent INTEGER NOT NULL DEFAULT 0,  -- 0 means top-level
    UNIQUE (name, taxonomy, parent)
);

CREATE TABLE IF NOT EXISTS item_terms (
    item_id INTEGER NOT NULL,
    term_id INTEGER NOT NULL,
    taxonomy TEXT NOT NULL,
    PRIMARY KEY (item_id, term_id),
    FOREIGN KEY (item_id) REFERENCES items(id),
    FOREIGN KEY (term_id) REFERENCES terms(id)
);

CREATE TABLE IF NOT EXISTS attachments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    path TEXT NOT NULL,
    source_url TEXT NOT NULL UNIQUE,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS options (
    key TEXT PRIMARY KEY,
    value TEXT,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);
"""


def open_connection(db_path: Path | str) -> sqlite3.Connection:
    if str(db_path) != ":memory:":
        ensure_dir(Path(db_path).parent)
    conn = sqlite3.connect(str(db_path), timeout=30)
    conn.execute("PRAGMA foreign_keys=ON;")
    conn.row_factory = sqlite3.Row
    conn.executescript(SCHEMA)
    return conn


def default_db_path(data_dir: Path) -> Path:
    return data_dir / "content.sqlite3"
