import json
import logging
import threading
from pathlib import Path

from listing_sync.common.constants import JSON_LOG_FIELDS
from listing_sync.common.fs import dumps_compact
from listing_sync.common.ids import generate_run_id
from listing_sync.common.logging import JsonLineFormatter, attach_notice_collector, build_logger, log_event
from listing_sync.common.time_utils import utc_timestamp_seconds


def test_generate_run_id_prefix():
    assert generate_run_id().startswith("run-")


def test_utc_timestamp_seconds_format():
    assert len(utc_timestamp_seconds()) == len("2026-02-17 10:00:00")


def test_dumps_compact_truncates():
    assert dumps_compact({"b": 1, "a": 2}) == '{"a": 2, "b": 1}'
    assert dumps_compact(["x" * 20], limit=5) == '["xxx...'


def test_json_line_formatter_has_stable_fields():
    record = logging.LogRecord("listing_sync.test", logging.INFO, __file__, 1, "hello", None, None)
    record.event = "X"

    payload = json.loads(JsonLineFormatter().format(record))

    assert set(payload) == set(JSON_LOG_FIELDS)
    assert payload["event"] == "X"
    assert payload["component"] == "listing_sync.test"
    assert payload["notice"] is False


def test_build_logger_writes_run_log_file(tmp_path: Path):
    logger = build_logger("run-file", data_dir=tmp_path, level="INFO")
    log_event(logger, "written", event="TEST")
    for handler in logger.handlers:
        handler.flush()

    lines = (tmp_path / "run_meta" / "run-file.log.jsonl").read_text(encoding="utf-8").splitlines()
    assert json.loads(lines[-1])["run_id"] == "run-file"


def test_notice_collector_keeps_only_notices():
    logger = build_logger("run-notice")
    collector = attach_notice_collector(logger)
    child = logging.getLogger("listing_sync.pipeline.example")

    log_event(child, "internal detail", event="DETAIL")
    log_event(child, "operator message", event="NOTICE", notice=True)

    lines = collector.drain()
    assert len(lines) == 1
    assert "operator message" in lines[0]
    assert collector.lines == []


def test_generate_run_id_tags_command():
    assert generate_run_id("run-task").startswith("run-run-task-2")


def test_notice_collector_ignores_other_threads():
    logger = build_logger("run-threads")
    collector = attach_notice_collector(logger)
    child = logging.getLogger("listing_sync.tasks")

    worker = threading.Thread(target=log_event, args=(child, "other request"), kwargs={"event": "NOTICE", "notice": True})
    worker.start()
    worker.join()
    log_event(child, "this request", event="NOTICE", notice=True)

    lines = collector.drain()
    assert len(lines) == 1
    assert "this request" in lines[0]
