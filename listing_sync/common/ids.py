"""Run identifier helpers."""

from __future__ import annotations

from datetime import datetime, timezone


def generate_run_id(command: str | None = None) -> str:
    """Sortable run id, tagged with the CLI command when one is given."""
    stamp = datetime.now(tz=timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    if command:
        return f"run-{command}-{stamp}"
    return f"run-{stamp}"
