"""SQLite-backed content store: items, field values, taxonomy terms, attachments."""

from __future__ import annotations

import json
import sqlite3
from typing import Any, Iterable

from listing_sync.common.errors import StoreError


def _to_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


class ContentStore:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    # Items

    def find_item_by_meta(self, post_type: str, meta_key: str, meta_value: Any) -> int:
        """Return the id of one item of any status whose meta matches, or 0."""
        row = self.conn.execute(
            """
            SELECT items.id FROM items
            JOIN item_meta ON item_meta.item_id = items.id
            WHERE items.post_type = ? AND item_meta.meta_key = ? AND item_meta.meta_value = ?
            ORDER BY items.id
            LIMIT 1
            """,
            (post_type, meta_key, str(meta_value)),
        ).fetchone()
        return int(row["id"]) if row else 0

    def save_item(
        self,
        *,
        item_id: int,
        post_type: str,
        title: str,
        body: str,
        status: str,
        meta: dict[str, Any] | None = None,
    ) -> int:
        """Insert (``item_id`` 0) or update an item and its meta in one transaction."""
        try:
            with self.conn:
                if item_id:
                    cursor = self.conn.execute(
                        """
                        UPDATE items
                        SET post_type = ?, title = ?, body = ?, status = ?, updated_at = CURRENT_TIMESTAMP
                        WHERE id = ?
                        """,
                        (post_type, title, body, status, item_id),
                    )
                    if cursor.rowcount == 0:
                        raise StoreError(f"Invalid item ID: {item_id}")
                else:
                    cursor = self.conn.execute(
                        "INSERT INTO items (post_type, title, body, status) VALUES (?, ?, ?, ?)",
                        (post_type, title, body, status),
                    )
                    item_id = int(cursor.lastrowid or 0)

                for meta_key, meta_value in (meta or {}).items():
                    self.conn.execute(
                        """
                        INSERT INTO item_meta (item_id, meta_key, meta_value) VALUES (?, ?, ?)
                        ON CONFLICT(item_id, meta_key) DO UPDATE SET meta_value = excluded.meta_value
                        """,
                        (item_id, meta_key, str(meta_value)),
                    )
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to save item: {exc}") from exc
        return item_id

    def get_item(self, item_id: int) -> dict | None:
        row = self.conn.execute("SELECT * FROM items WHERE id = ?", (item_id,)).fetchone()
        return dict(row) if row else None

    def get_item_meta(self, item_id: int, meta_key: str) -> str | None:
        row = self.conn.execute(
            "SELECT meta_value FROM item_meta WHERE item_id = ? AND meta_key = ?",
            (item_id, meta_key),
        ).fetchone()
        return row["meta_value"] if row else None

    def count_items(self, post_type: str) -> int:
        row = self.conn.execute("SELECT COUNT(*) AS n FROM items WHERE post_type = ?", (post_type,)).fetchone()
        return int(row["n"])

    # Field definitions

    def upsert_field_group(self, key: str, title: str) -> int:
        with self.conn:
            self.conn.execute(
                """
                INSERT INTO field_groups (key, title) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET title = excluded.title
                """,
                (key, title),
            )
        row = self.conn.execute("SELECT id FROM field_groups WHERE key = ?", (key,)).fetchone()
        return int(row["id"])

    def upsert_field(
        self,
        *,
        group_id: int,
        parent_field_id: int | None,
        key: str,
        name: str,
        label: str,
        field_type: str,
        position: int,
    ) -> int:
        with self.conn:
            self.conn.execute(
                """
                INSERT INTO fields (key, name, label, type, group_id, parent_field_id, position)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    name = excluded.name,
                    label = excluded.label,
                    type = excluded.type,
                    group_id = excluded.group_id,
                    parent_field_id = excluded.parent_field_id,
                    position = excluded.position
                """,
                (key, name, label, field_type, group_id, parent_field_id, position),
            )
        row = self.conn.execute("SELECT id FROM fields WHERE key = ?", (key,)).fetchone()
        return int(row["id"])

    def delete_group_fields_except(self, group_id: int, keep_keys: Iterable[str]) -> int:
        keep = list(keep_keys)
        placeholders = ",".join("?" for _ in keep) or "''"
        with self.conn:
            cursor = self.conn.execute(
                f"DELETE FROM fields WHERE group_id = ? AND key NOT IN ({placeholders})",
                (group_id, *keep),
            )
        return cursor.rowcount

    def get_field_group(self, key_or_id: str | int) -> dict | None:
        row = self.conn.execute("SELECT * FROM field_groups WHERE key = ?", (str(key_or_id),)).fetchone()
        if row is None and str(key_or_id).isdigit():
            row = self.conn.execute("SELECT * FROM field_groups WHERE id = ?", (int(key_or_id),)).fetchone()
        return dict(row) if row else None

    def list_field_groups(self) -> list[dict]:
        rows = self.conn.execute("SELECT * FROM field_groups ORDER BY id").fetchall()
        return [dict(row) for row in rows]

    def get_fields(self, *, group_id: int | None = None, parent_field_id: int | None = None) -> list[dict]:
        """Direct children of a field group (top level) or of a field."""
        if parent_field_id is not None:
            rows = self.conn.execute(
                "SELECT * FROM fields WHERE parent_field_id = ? ORDER BY position, id",
                (parent_field_id,),
            ).fetchall()
        else:
            rows = self.conn.execute(
                "SELECT * FROM fields WHERE group_id = ? AND parent_field_id IS NULL ORDER BY position, id",
                (group_id,),
            ).fetchall()
        return [dict(row) for row in rows]

    # Field values

    def delete_field(self, item_id: int, field_key: str) -> None:
        with self.conn:
            self.conn.execute("DELETE FROM field_values WHERE item_id = ? AND field_key = ?", (item_id, field_key))
            self.conn.execute("DELETE FROM field_rows WHERE item_id = ? AND field_key = ?", (item_id, field_key))

    def update_field(self, item_id: int, field_key: str, value: Any) -> None:
        try:
            with self.conn:
                self.conn.execute(
                    """
                    INSERT INTO field_values (item_id, field_key, value_json) VALUES (?, ?, ?)
                    ON CONFLICT(item_id, field_key) DO UPDATE SET value_json = excluded.value_json
                    """,
                    (item_id, field_key, _to_json(value)),
                )
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to update field {field_key} on item {item_id}: {exc}") from exc

    def add_row(self, item_id: int, field_key: str, row: dict) -> int:
        try:
            with self.conn:
                current = self.conn.execute(
                    "SELECT COALESCE(MAX(row_index), -1) AS last FROM field_rows WHERE item_id = ? AND field_key = ?",
                    (item_id, field_key),
                ).fetchone()
                row_index = int(current["last"]) + 1
                self.conn.execute(
                    "INSERT INTO field_rows (item_id, field_key, row_index, value_json) VALUES (?, ?, ?, ?)",
                    (item_id, field_key, row_index, _to_json(row)),
                )
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to add row to field {field_key} on item {item_id}: {exc}") from exc
        return row_index

    def get_field(self, item_id: int, field_key: str) -> Any:
        rows = self.conn.execute(
            "SELECT value_json FROM field_rows WHERE item_id = ? AND field_key = ? ORDER BY row_index",
            (item_id, field_key),
        ).fetchall()
        if rows:
            return [json.loads(row["value_json"]) for row in rows]
        row = self.conn.execute(
            "SELECT value_json FROM field_values WHERE item_id = ? AND field_key = ?",
            (item_id, field_key),
        ).fetchone()
        if row is None or row["value_json"] is None:
            return None
        return json.loads(row["value_json"])

    # Taxonomy terms

    def get_term(self, name: str, taxonomy: str, parent: int | None = None) -> int | None:
        row = self.conn.execute(
            "SELECT id FROM terms WHERE name = ? AND taxonomy = ? AND parent = ?",
            (name, taxonomy, parent or 0),
        ).fetchone()
        return int(row["id"]) if row else None

    def insert_term(self, name: str, taxonomy: str, parent: int | None = None) -> int:
        if not name.strip():
            raise StoreError(f"A name is required for a term in taxonomy '{taxonomy}'")
        try:
            with self.conn:
                cursor = self.conn.execute(
                    "INSERT INTO terms (name, taxonomy, parent) VALUES (?, ?, ?)",
                    (name, taxonomy, parent or 0),
                )
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to insert term '{name}' in taxonomy '{taxonomy}': {exc}") from exc
        return int(cursor.lastrowid or 0)

    def set_item_terms(self, item_id: int, term_ids: Iterable[int], taxonomy: str, *, append: bool = False) -> None:
        """Assign terms; without ``append`` the item's other terms in ``taxonomy`` are removed."""
        ids = list(dict.fromkeys(int(term_id) for term_id in term_ids))
        try:
            with self.conn:
                if not append:
                    self.conn.execute(
                        "DELETE FROM item_terms WHERE item_id = ? AND taxonomy = ?",
                        (item_id, taxonomy),
                    )
                for term_id in ids:
                    self.conn.execute(
                        "INSERT OR IGNORE INTO item_terms (item_id, term_id, taxonomy) VALUES (?, ?, ?)",
                        (item_id, term_id, taxonomy),
                    )
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to set {taxonomy} terms for item {item_id}: {exc}") from exc

    def get_item_terms(self, item_id: int, taxonomy: str) -> list[dict]:
        rows = self.conn.execute(
            """
            SELECT terms.id, terms.name, terms.parent FROM item_terms
            JOIN terms ON terms.id = item_terms.term_id
            WHERE item_terms.item_id = ? AND item_terms.taxonomy = ?
            ORDER BY terms.id
            """,
            (item_id, taxonomy),
        ).fetchall()
        return [dict(row) for row in rows]

    def count_terms(self, taxonomy: str) -> int:
        row = self.conn.execute("SELECT COUNT(*) AS n FROM terms WHERE taxonomy = ?", (taxonomy,)).fetchone()
        return int(row["n"])

    # Attachments

    def find_attachment_by_source_url(self, source_url: str) -> int | None:
        row = self.conn.execute("SELECT id FROM attachments WHERE source_url = ?", (source_url,)).fetchone()
        return int(row["id"]) if row else None

    def add_attachment(self, path: str, source_url: str) -> int:
        with self.conn:
            cursor = self.conn.execute(
                "INSERT INTO attachments (path, source_url) VALUES (?, ?)",
                (path, source_url),
            )
        return int(cursor.lastrowid or 0)

    def set_featured_attachment(self, item_id: int, attachment_id: int) -> None:
        with self.conn:
            self.conn.execute(
                "UPDATE items SET featured_attachment_id = ? WHERE id = ?",
                (attachment_id, item_id),
            )
