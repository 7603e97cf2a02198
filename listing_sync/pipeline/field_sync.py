"""Write model values onto the destination field schema of one item."""

from __future__ import annotations

import logging
from typing import Any

from listing_sync.common.errors import PipelineError
from listing_sync.common.logging import log_event
from listing_sync.pipeline.field_index import FieldDefinition, FieldIndex
from listing_sync.pipeline.record_model import RecordModel
from listing_sync.store.content_store import ContentStore

logger = logging.getLogger(__name__)

DIRECT_TYPES = {"text", "number", "true_false", "date_picker", "date_time_picker"}
GROUP_TYPE = "group"
REPEATER_TYPE = "repeater"


class UnsupportedFieldType(PipelineError):
    error_code = "FIELD_TYPE_UNSUPPORTED"

    def __init__(self, definition: FieldDefinition) -> None:
        super().__init__(f"Unsupported field type '{definition.type}' for field '{definition.name}'")
        self.definition = definition


def _filter_group(value: Any, sub_fields: FieldIndex | None) -> Any:
    if not isinstance(value, dict):
        return value
    if sub_fields is None:
        return {}
    out: dict[str, Any] = {}
    for name, sub_value in value.items():
        definition = sub_fields.get(name)
        if definition is None:
            continue
        try:
            out[name] = _field_value(definition, sub_value)
        except UnsupportedFieldType as exc:
            log_event(logger, str(exc), level=logging.ERROR, event="FIELD_TYPE_UNSUPPORTED", status="error")
    return out


def _repeater_rows(value: Any, sub_fields: FieldIndex | None) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [_filter_group(row, sub_fields) for row in value if isinstance(row, dict)]


def _field_value(definition: FieldDefinition, value: Any) -> Any:
    if definition.type in DIRECT_TYPES:
        return value
    if definition.type == GROUP_TYPE:
        return _filter_group(value, definition.sub_fields)
    if definition.type == REPEATER_TYPE:
        return _repeater_rows(value, definition.sub_fields)
    raise UnsupportedFieldType(definition)


class FieldSync:
    """Clears then sets every mapped field; values are never merged with what was stored before."""

    def __init__(self, store: ContentStore) -> None:
        self.store = store

    def apply_fields(self, model: RecordModel, field_index: FieldIndex, item_id: int) -> None:
        for name, value in model.to_dict().items():
            definition = field_index.get(name)
            if definition is None:
                continue
            self.store.delete_field(item_id, definition.key)
            try:
                self._apply_field(definition, value, item_id)
            except UnsupportedFieldType as exc:
                log_event(
                    logger,
                    str(exc),
                    level=logging.ERROR,
                    event="FIELD_TYPE_UNSUPPORTED",
                    status="error",
                    unique_id=model.unique_id,
                    item_id=item_id,
                    notice=True,
                )

    def _apply_field(self, definition: FieldDefinition, value: Any, item_id: int) -> None:
        if definition.type == REPEATER_TYPE:
            for row in _repeater_rows(value, definition.sub_fields):
                self.store.add_row(item_id, definition.key, row)
            return
        self.store.update_field(item_id, definition.key, _field_value(definition, value))
