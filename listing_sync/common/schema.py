"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

from listing_sync.common.errors import ConfigError

FIELD_TYPES = {
    "text",
    "textarea",
    "number",
    "true_false",
    "group",
    "repeater",
    "date_picker",
    "date_time_picker",
    "url",
    "image",
}


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def _assert_positive_int(value: object, ctx: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"{ctx} must be a positive integer")


def validate_importer_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    top_required = {"token", "source", "destination", "task"}
    top_known = top_required | {"http"}
    _assert_required_keys(cfg, top_required, "importer config")
    _assert_no_unknown_keys(cfg, top_known, "importer config", allow_unknown)

    token_required = {"endpoint", "client_id", "client_secret"}
    _assert_required_keys(cfg["token"], token_required, "token")
    _assert_no_unknown_keys(cfg["token"], token_required | {"scope", "timeout_seconds"}, "token", allow_unknown)

    source_required = {"endpoint", "page_size"}
    source_known = source_required | {"method", "query_string", "timeout_seconds", "headers"}
    _assert_required_keys(cfg["source"], source_required, "source")
    _assert_no_unknown_keys(cfg["source"], source_known, "source", allow_unknown)
    _assert_positive_int(cfg["source"]["page_size"], "source.page_size")
    if "timeout_seconds" in cfg["source"]:
        _assert_positive_int(cfg["source"]["timeout_seconds"], "source.timeout_seconds")

    destination_required = {"field_group", "unique_id_field"}
    destination_known = destination_required | {"logo_base_url", "sync_logos", "post_type"}
    _assert_required_keys(cfg["destination"], destination_required, "destination")
    _assert_no_unknown_keys(cfg["destination"], destination_known, "destination", allow_unknown)

    _assert_no_unknown_keys(cfg["task"], {"auth_key", "lock_ttl_seconds"}, "task", allow_unknown)

    if "http" in cfg:
        _assert_no_unknown_keys(cfg["http"], {"max_attempts"}, "http", allow_unknown)
        if "max_attempts" in cfg["http"]:
            _assert_positive_int(cfg["http"]["max_attempts"], "http.max_attempts")

    return cfg


def validate_ranking_overrides_config(cfg: dict | None) -> dict:
    if not cfg:
        return {"award_alias": "", "rankings": {}}
    _assert_required_keys(cfg, {"award_alias", "rankings"}, "ranking_overrides")
    if not isinstance(cfg["rankings"], dict):
        raise ConfigError("ranking_overrides.rankings must be a mapping")
    return cfg


def _validate_field(field: dict, ctx: str) -> None:
    _assert_required_keys(field, {"name", "type"}, ctx)
    if field["type"] not in FIELD_TYPES:
        # Unsupported types are still loaded; the field sync logs and drops their values.
        return
    for idx, child in enumerate(field.get("sub_fields") or []):
        _validate_field(child, f"{ctx}.sub_fields[{idx}]")


def validate_field_schema_config(cfg: dict) -> dict:
    _assert_required_keys(cfg, {"field_groups"}, "field_schema")
    groups = cfg["field_groups"]
    if not isinstance(groups, list) or not groups:
        raise ConfigError("field_schema.field_groups must be a non-empty list")

    keys: list[str] = []
    for idx, group in enumerate(groups):
        _assert_required_keys(group, {"key", "title", "fields"}, f"field_groups[{idx}]")
        keys.append(group["key"])
        names = [field.get("name") for field in group["fields"]]
        dupes = {name for name in names if names.count(name) > 1}
        if dupes:
            raise ConfigError(f"Duplicate field names in {group['key']}: {', '.join(sorted(dupes))}")
        for field_idx, field in enumerate(group["fields"]):
            _validate_field(field, f"field_groups[{idx}].fields[{field_idx}]")

    dupes = {key for key in keys if keys.count(key) > 1}
    if dupes:
        raise ConfigError(f"Duplicate field group keys: {', '.join(sorted(dupes))}")
    return cfg
