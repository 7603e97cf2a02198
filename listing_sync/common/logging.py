"""JSON logging with stable schema and an operator notice channel."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any

from listing_sync.common.constants import JSON_LOG_FIELDS
from listing_sync.common.fs import ensure_dir
from listing_sync.common.time_utils import utc_timestamp_iso

ROOT_LOGGER_NAME = "listing_sync"


class JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": utc_timestamp_iso(),
            "level": record.levelname.lower(),
            "run_id": getattr(record, "run_id", None),
            "stage": getattr(record, "stage", None),
            "component": getattr(record, "component", record.name),
            "event": getattr(record, "event", None),
            "status": getattr(record, "status", None),
            "offset": getattr(record, "offset", None),
            "unique_id": getattr(record, "unique_id", None),
            "item_id": getattr(record, "item_id", None),
            "rows_in": getattr(record, "rows_in", None),
            "rows_out": getattr(record, "rows_out", None),
            "error_code": getattr(record, "error_code", None),
            "notice": bool(getattr(record, "notice", False)),
            "message": record.getMessage(),
        }
        for field in JSON_LOG_FIELDS:
            payload.setdefault(field, None)
        return json.dumps(payload, ensure_ascii=False, default=str)


class RunContextFilter(logging.Filter):
    def __init__(self, run_id: str) -> None:
        super().__init__()
        self.run_id = run_id

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "run_id", None) is None:
            record.run_id = self.run_id
        return True


class NoticeCollector(logging.Handler):
    """Keeps operator-facing records (``notice=True``) as plain text lines.

    Only records logged on the thread that created the collector are kept, so
    concurrent trigger requests each see their own notices.
    """

    def __init__(self) -> None:
        super().__init__(level=logging.DEBUG)
        self.lines: list[str] = []
        self.thread_id = threading.get_ident()
        self.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s][%(name)s] %(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        if not getattr(record, "notice", False) or record.thread != self.thread_id:
            return
        self.lines.append(self.format(record))

    def drain(self) -> list[str]:
        lines, self.lines = self.lines, []
        return lines


def build_logger(run_id: str, data_dir: Path | None = None, level: str = "INFO") -> logging.Logger:
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level.upper())
    logger.handlers.clear()
    logger.propagate = False
    context = RunContextFilter(run_id)

    stream = logging.StreamHandler()
    stream.setFormatter(JsonLineFormatter())
    stream.addFilter(context)
    logger.addHandler(stream)

    if data_dir is not None:
        log_path = data_dir / "run_meta" / f"{run_id}.log.jsonl"
        ensure_dir(log_path.parent)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(JsonLineFormatter())
        file_handler.addFilter(context)
        logger.addHandler(file_handler)

    return logger


def attach_notice_collector(logger: logging.Logger) -> NoticeCollector:
    collector = NoticeCollector()
    logger.addHandler(collector)
    return collector


def log_event(logger: logging.Logger, message: str, level: int = logging.INFO, **event_fields: Any) -> None:
    logger.log(level, message, extra=event_fields)
