"""Name-keyed view of a destination field group, built once per batch."""

from __future__ import annotations

from dataclasses import dataclass, field

from listing_sync.common.errors import ConfigError
from listing_sync.store.content_store import ContentStore


@dataclass(frozen=True)
class FieldDefinition:
    key: str
    name: str
    type: str
    sub_fields: "FieldIndex | None" = None


@dataclass(frozen=True)
class FieldIndex:
    fields: dict[str, FieldDefinition] = field(default_factory=dict)

    @classmethod
    def build(cls, store: ContentStore, group: str | int) -> "FieldIndex":
        group_row = store.get_field_group(group)
        if group_row is None:
            raise ConfigError(f"Field group '{group}' is not loaded in the content store")
        return cls._from_rows(store, store.get_fields(group_id=int(group_row["id"])))

    @classmethod
    def _from_rows(cls, store: ContentStore, rows: list[dict]) -> "FieldIndex":
        fields: dict[str, FieldDefinition] = {}
        for row in rows:
            children = store.get_fields(parent_field_id=int(row["id"]))
            fields[str(row["name"])] = FieldDefinition(
                key=str(row["key"]),
                name=str(row["name"]),
                type=str(row["type"]),
                sub_fields=cls._from_rows(store, children) if children else None,
            )
        return cls(fields=fields)

    def get(self, name: str) -> FieldDefinition | None:
        return self.fields.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self.fields

    def __len__(self) -> int:
        return len(self.fields)

    def to_dict(self) -> dict[str, dict]:
        out: dict[str, dict] = {}
        for name, definition in self.fields.items():
            entry: dict = {"key": definition.key, "type": definition.type}
            if definition.sub_fields is not None:
                entry["sub_fields"] = definition.sub_fields.to_dict()
            out[name] = entry
        return out
