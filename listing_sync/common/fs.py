"""Filesystem and serialisation helpers."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def read_yaml(path: Path):
    import yaml

    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def dumps_compact(payload: Any, limit: int | None = None) -> str:
    text = json.dumps(payload, ensure_ascii=False, sort_keys=True, default=str)
    if limit is not None and len(text) > limit:
        return text[:limit] + "..."
    return text


def write_bytes(path: Path, chunks) -> None:
    ensure_dir(path.parent)
    with path.open("wb") as f:
        for chunk in chunks:
            if chunk:
                f.write(chunk)
