"""Configuration loading and validation."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from listing_sync.common.constants import (
    DEFAULT_LOCK_TTL_SECONDS,
    DEFAULT_POST_TYPE,
    DEFAULT_SOURCE_TIMEOUT_SECONDS,
    TOKEN_TIMEOUT_SECONDS,
)
from listing_sync.common.errors import ConfigError
from listing_sync.common.fs import read_yaml
from listing_sync.common.schema import (
    validate_field_schema_config,
    validate_importer_config,
    validate_ranking_overrides_config,
)

ENV_REFERENCE = re.compile(r"^\$\{([A-Za-z_][A-Za-z0-9_]*)\}$")


@dataclass(frozen=True)
class TokenSettings:
    endpoint: str
    client_id: str
    client_secret: str
    scope: str = ""
    timeout_seconds: int = TOKEN_TIMEOUT_SECONDS


@dataclass(frozen=True)
class SourceSettings:
    endpoint: str
    page_size: int
    method: str = "GET"
    query_string: str = ""
    timeout_seconds: int = DEFAULT_SOURCE_TIMEOUT_SECONDS
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class DestinationSettings:
    field_group: str
    unique_id_field: str
    logo_base_url: str = "https://example.com"
    sync_logos: bool = False
    post_type: str = DEFAULT_POST_TYPE


@dataclass(frozen=True)
class TaskSettings:
    auth_key: str = ""
    lock_ttl_seconds: int = DEFAULT_LOCK_TTL_SECONDS


@dataclass(frozen=True)
class RankingOverrides:
    award_alias: str = ""
    rankings: dict[str, str] = field(default_factory=dict)

    def ranking_for(self, unique_id: Any) -> str | None:
        if not self.award_alias:
            return None
        return self.rankings.get(str(unique_id))


@dataclass(frozen=True)
class ImporterSettings:
    token: TokenSettings
    source: SourceSettings
    destination: DestinationSettings
    task: TaskSettings
    ranking_overrides: RankingOverrides = field(default_factory=RankingOverrides)
    http_max_attempts: int = 1


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    base = read_yaml(path) if path.exists() else None
    if overlay_path is None or not overlay_path.exists():
        return base or {}
    overlay = read_yaml(overlay_path)
    if overlay is None:
        return base or {}
    return _deep_merge(base or {}, overlay)


def _expand_env(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _expand_env(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_expand_env(item) for item in value]
    if isinstance(value, str):
        match = ENV_REFERENCE.match(value.strip())
        if match:
            return os.environ.get(match.group(1), "")
    return value


def build_settings(cfg: dict, ranking_cfg: dict | None = None) -> ImporterSettings:
    token = cfg["token"]
    source = cfg["source"]
    destination = cfg["destination"]
    task = cfg.get("task") or {}
    ranking = validate_ranking_overrides_config(ranking_cfg)

    return ImporterSettings(
        token=TokenSettings(
            endpoint=str(token["endpoint"]),
            client_id=str(token["client_id"]),
            client_secret=str(token["client_secret"] or ""),
            scope=str(token.get("scope") or ""),
            timeout_seconds=int(token.get("timeout_seconds", TOKEN_TIMEOUT_SECONDS)),
        ),
        source=SourceSettings(
            endpoint=str(source["endpoint"]),
            page_size=int(source["page_size"]),
            method=str(source.get("method") or "GET").upper(),
            query_string=str(source.get("query_string") or ""),
            timeout_seconds=int(source.get("timeout_seconds", DEFAULT_SOURCE_TIMEOUT_SECONDS)),
            headers={str(k): str(v) for k, v in (source.get("headers") or {}).items()},
        ),
        destination=DestinationSettings(
            field_group=str(destination["field_group"]),
            unique_id_field=str(destination["unique_id_field"]),
            logo_base_url=str(destination.get("logo_base_url") or "https://example.com"),
            sync_logos=bool(destination.get("sync_logos", False)),
            post_type=str(destination.get("post_type") or DEFAULT_POST_TYPE),
        ),
        task=TaskSettings(
            auth_key=str(task.get("auth_key") or ""),
            lock_ttl_seconds=int(task.get("lock_ttl_seconds", DEFAULT_LOCK_TTL_SECONDS)),
        ),
        ranking_overrides=RankingOverrides(
            award_alias=str(ranking["award_alias"] or ""),
            rankings={str(k): str(v) for k, v in ranking["rankings"].items()},
        ),
        http_max_attempts=int((cfg.get("http") or {}).get("max_attempts", 1)),
    )


def load_settings(
    config_dir: Path,
    *,
    allow_unknown: bool = False,
    overlay_config_dir: Path | None = None,
) -> ImporterSettings:
    def overlay_for(name: str) -> Path | None:
        if overlay_config_dir is None:
            return None
        return overlay_config_dir / name

    importer_path = config_dir / "importer.yml"
    if not importer_path.exists():
        raise ConfigError(f"Missing importer config: {importer_path}")

    cfg = _expand_env(_load_yaml_with_overlay(importer_path, overlay_for("importer.yml")))
    cfg = validate_importer_config(cfg, allow_unknown=allow_unknown)
    ranking_cfg = _load_yaml_with_overlay(
        config_dir / "ranking_overrides.yml",
        overlay_for("ranking_overrides.yml"),
    )
    return build_settings(cfg, ranking_cfg)


def load_field_schema(path: Path) -> dict:
    if not path.exists():
        raise ConfigError(f"Missing field schema file: {path}")
    return validate_field_schema_config(read_yaml(path) or {})
