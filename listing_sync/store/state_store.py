"""Key-value options persisted between runs, plus a run lock with TTL."""

from __future__ import annotations

import json
import sqlite3
import time
from typing import Callable

from listing_sync.common.errors import StoreError


class StateStore:
    def __init__(self, conn: sqlite3.Connection, clock: Callable[[], float] = time.time) -> None:
        self.conn = conn
        self.clock = clock

    def get_option(self, key: str, default: str | None = None) -> str | None:
        row = self.conn.execute("SELECT value FROM options WHERE key = ?", (key,)).fetchone()
        if row is None or row["value"] is None:
            return default
        return row["value"]

    def get_int_option(self, key: str, default: int = 0) -> int:
        value = self.get_option(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            return default

    def set_option(self, key: str, value: object) -> None:
        with self.conn:
            self.conn.execute(
                """
                INSERT INTO options (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = CURRENT_TIMESTAMP
                """,
                (key, None if value is None else str(value)),
            )

    def delete_option(self, key: str) -> None:
        with self.conn:
            self.conn.execute("DELETE FROM options WHERE key = ?", (key,))

    def acquire_lock(self, name: str, ttl_seconds: int, owner: str = "") -> bool:
        """Take the named lock unless an unexpired holder exists. Stale or unreadable locks are taken over."""
        key = f"lock:{name}"
        now = self.clock()
        try:
            self.conn.execute("BEGIN IMMEDIATE")
            held = self._read_lock(key)
            if held is not None and held[0] > now:
                self.conn.rollback()
                return False
            self.conn.execute(
                """
                INSERT INTO options (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = CURRENT_TIMESTAMP
                """,
                (key, json.dumps({"expires_at": now + ttl_seconds, "owner": owner})),
            )
            self.conn.commit()
        except sqlite3.Error as exc:
            self.conn.rollback()
            raise StoreError(f"Failed to acquire lock '{name}': {exc}") from exc
        return True

    def release_lock(self, name: str, owner: str = "") -> bool:
        """Drop the named lock only while ``owner`` still holds it."""
        key = f"lock:{name}"
        try:
            self.conn.execute("BEGIN IMMEDIATE")
            held = self._read_lock(key)
            if held is None or held[1] != owner:
                self.conn.rollback()
                return False
            self.conn.execute("DELETE FROM options WHERE key = ?", (key,))
            self.conn.commit()
        except sqlite3.Error as exc:
            self.conn.rollback()
            raise StoreError(f"Failed to release lock '{name}': {exc}") from exc
        return True

    def lock_expires_at(self, name: str) -> float | None:
        held = self._read_lock(f"lock:{name}")
        return held[0] if held else None

    def _read_lock(self, key: str) -> tuple[float, str] | None:
        row = self.conn.execute("SELECT value FROM options WHERE key = ?", (key,)).fetchone()
        if row is None or row["value"] is None:
            return None
        try:
            value = json.loads(row["value"])
            return float(value["expires_at"]), str(value.get("owner", ""))
        except (ValueError, TypeError, KeyError, AttributeError):
            return None
