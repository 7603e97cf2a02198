"""CLI entrypoint for the listing importer."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from listing_sync.common.config_loader import ImporterSettings, load_field_schema, load_settings
from listing_sync.common.constants import COMMANDS, EXIT_HARD_FAIL, EXIT_PARTIAL, EXIT_SUCCESS
from listing_sync.common.errors import PipelineError
from listing_sync.common.http import HttpClient, RetryConfig
from listing_sync.common.ids import generate_run_id
from listing_sync.common.logging import ROOT_LOGGER_NAME, build_logger, log_event
from listing_sync.store.content_store import ContentStore
from listing_sync.store.db import default_db_path, open_connection
from listing_sync.store.schema_loader import load_field_groups
from listing_sync.store.state_store import StateStore
from listing_sync.tasks import HTTP_CONFLICT, HTTP_OK, HTTP_PARTIAL_CONTENT, TaskContext, TaskName, resolve_task, run_task


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", choices=COMMANDS)
    parser.add_argument("target", nargs="?", default=None, help="task name for run-task, schema file for load-schema")
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--config-dir", default="./config")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--data-dir", default="./data")
    parser.add_argument("--db-path", default=None)
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARN", "ERROR"])
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8080)
    return parser.parse_args(argv)


def build_context(settings: ImporterSettings, data_dir: Path, db_path: Path) -> TaskContext:
    conn = open_connection(db_path)
    return TaskContext(
        settings=settings,
        store=ContentStore(conn),
        state=StateStore(conn),
        http_client=HttpClient(retry=RetryConfig(max_attempts=settings.http_max_attempts)),
        data_dir=data_dir,
    )


def exit_code_for(task: TaskName, status_code: int, result: dict | None) -> int:
    if task is TaskName.RUN_IMPORT:
        if status_code == HTTP_PARTIAL_CONTENT:
            return EXIT_PARTIAL if result and result.get("failed_count") else EXIT_SUCCESS
        # 200 means more pages remain; 409 means another run holds the lock.
        if status_code in (HTTP_OK, HTTP_CONFLICT):
            return EXIT_PARTIAL
        return EXIT_HARD_FAIL
    return EXIT_SUCCESS if status_code == HTTP_OK else EXIT_HARD_FAIL


def run_command(args: argparse.Namespace) -> int:
    run_id = args.run_id or generate_run_id(args.command)
    config_dir = Path(args.config_dir)
    overlay_config_dir = Path(args.overlay_config_dir) if args.overlay_config_dir else None
    data_dir = Path(args.data_dir)
    db_path = Path(args.db_path) if args.db_path else default_db_path(data_dir)

    logger = build_logger(run_id, data_dir=data_dir, level=args.log_level)
    log_event(logger, "command start", event="COMMAND_START", status="ok", component=args.command)

    if args.command == "load-schema":
        if not args.target:
            log_event(logger, "load-schema needs a schema file", event="COMMAND_FAIL", status="error")
            return EXIT_HARD_FAIL
        schema = load_field_schema(Path(args.target))
        conn = open_connection(db_path)
        try:
            loaded = load_field_groups(ContentStore(conn), schema)
        finally:
            conn.close()
        for group_key, field_count in loaded.items():
            log_event(logger, f"loaded field group {group_key} ({field_count} fields)", event="SCHEMA_LOADED", status="ok", rows_out=field_count)
        return EXIT_SUCCESS

    settings = load_settings(config_dir, overlay_config_dir=overlay_config_dir)

    if args.command == "serve":
        from listing_sync.web import create_web_server

        app = create_web_server(settings, lambda: build_context(settings, data_dir, db_path))
        app.run(host=args.host, port=args.port)
        return EXIT_SUCCESS

    task = resolve_task(args.target or "")
    if task is None:
        log_event(logger, f"unknown task: {args.target}", event="COMMAND_FAIL", status="error")
        return EXIT_HARD_FAIL

    ctx = build_context(settings, data_dir, db_path)
    try:
        outcome = run_task(task, ctx)
    finally:
        ctx.close()
    for line in outcome.notices:
        print(line)
    log_event(logger, "command end", event="COMMAND_END", status="ok", component=args.command)
    return exit_code_for(task, outcome.status_code, outcome.result)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    try:
        return run_command(args)
    except PipelineError as exc:
        logger = logging.getLogger(ROOT_LOGGER_NAME)
        log_event(logger, str(exc), event="COMMAND_FAIL", status="error", error_code=exc.error_code)
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())
