"""Load field-group definitions from YAML into the content store."""

from __future__ import annotations

from listing_sync.store.content_store import ContentStore


def _field_key(field: dict, path: list[str]) -> str:
    return str(field.get("key") or "field_" + "_".join(path))


def _load_fields(
    store: ContentStore,
    fields: list[dict],
    *,
    group_id: int,
    parent_field_id: int | None,
    path: list[str],
    loaded_keys: list[str],
) -> None:
    for position, field in enumerate(fields):
        field_path = [*path, str(field["name"])]
        key = _field_key(field, field_path)
        field_id = store.upsert_field(
            group_id=group_id,
            parent_field_id=parent_field_id,
            key=key,
            name=str(field["name"]),
            label=str(field.get("label") or field["name"]),
            field_type=str(field["type"]),
            position=position,
        )
        loaded_keys.append(key)
        _load_fields(
            store,
            field.get("sub_fields") or [],
            group_id=group_id,
            parent_field_id=field_id,
            path=field_path,
            loaded_keys=loaded_keys,
        )


def load_field_groups(store: ContentStore, schema: dict) -> dict[str, int]:
    """Upsert every group and its field tree; fields dropped from a group are removed."""
    loaded: dict[str, int] = {}
    for group in schema["field_groups"]:
        group_id = store.upsert_field_group(str(group["key"]), str(group["title"]))
        keys: list[str] = []
        _load_fields(
            store,
            group["fields"],
            group_id=group_id,
            parent_field_id=None,
            path=[str(group["key"])],
            loaded_keys=keys,
        )
        store.delete_group_fields_except(group_id, keys)
        loaded[str(group["key"])] = len(keys)
    return loaded
