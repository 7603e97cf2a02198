"""Named operator tasks and the registry used by the CLI and the HTTP trigger."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable

from listing_sync.common.config_loader import ImporterSettings
from listing_sync.common.constants import LOG_CHAR_LIMIT
from listing_sync.common.errors import PipelineError, RunInProgressError
from listing_sync.common.fs import dumps_compact
from listing_sync.common.http import HttpClient
from listing_sync.common.logging import ROOT_LOGGER_NAME, attach_notice_collector, log_event
from listing_sync.pipeline.field_index import FieldIndex
from listing_sync.pipeline.orchestrator import fetch_current_page, model_settings, run_import
from listing_sync.pipeline.record_model import RecordModel
from listing_sync.source.token_provider import TokenProvider
from listing_sync.store.content_store import ContentStore
from listing_sync.store.state_store import StateStore

logger = logging.getLogger(__name__)

HTTP_OK = 200
HTTP_PARTIAL_CONTENT = 206
HTTP_BAD_REQUEST = 400
HTTP_CONFLICT = 409
HTTP_SERVER_ERROR = 500


class TaskName(str, Enum):
    RUN_IMPORT = "run_import"
    SHOW_FETCHED_DATA = "show_fetched_data"
    SHOW_MODEL_DATA = "show_model_data"
    SHOW_FIELD_GROUPS = "show_field_groups"
    SHOW_FIELDS = "show_fields"


@dataclass
class TaskContext:
    settings: ImporterSettings
    store: ContentStore
    state: StateStore
    http_client: HttpClient
    data_dir: Path | None = None
    token_provider: TokenProvider | None = None

    @property
    def media_dir(self) -> Path | None:
        return self.data_dir / "media" if self.data_dir is not None else None

    def close(self) -> None:
        self.http_client.close()
        self.store.conn.close()


@dataclass
class TaskOutcome:
    status_code: int
    notices: list[str] = field(default_factory=list)
    result: dict | None = None


def _run_import(ctx: TaskContext) -> TaskOutcome:
    try:
        batch = run_import(
            ctx.settings,
            ctx.store,
            ctx.state,
            ctx.http_client,
            token_provider=ctx.token_provider,
            media_dir=ctx.media_dir,
        )
    except RunInProgressError as exc:
        log_event(logger, str(exc), level=logging.WARNING, event="TASK_LOCKED", status="error", error_code=exc.error_code, notice=True)
        return TaskOutcome(status_code=HTTP_CONFLICT)
    # Scheduler contract: 206 once the last page is in, 200 while pages remain.
    status_code = HTTP_PARTIAL_CONTENT if batch.complete else HTTP_OK
    return TaskOutcome(status_code=status_code, result=batch.to_dict())


def _show_fetched_data(ctx: TaskContext) -> TaskOutcome:
    _source, records = fetch_current_page(ctx.settings, ctx.state, ctx.http_client, ctx.token_provider)
    log_event(logger, "Record sample: " + dumps_compact(records, limit=LOG_CHAR_LIMIT), event="TASK_OUTPUT", notice=True)
    return TaskOutcome(status_code=HTTP_OK)


def _show_model_data(ctx: TaskContext) -> TaskOutcome:
    _source, records = fetch_current_page(ctx.settings, ctx.state, ctx.http_client, ctx.token_provider)
    first = records[0] if records else {}
    model = RecordModel(first, model_settings(ctx.settings))
    log_event(logger, "Model sample: " + dumps_compact(model.to_dict(), limit=LOG_CHAR_LIMIT), event="TASK_OUTPUT", notice=True)
    return TaskOutcome(status_code=HTTP_OK)


def _show_field_groups(ctx: TaskContext) -> TaskOutcome:
    groups = ctx.store.list_field_groups()
    log_event(logger, "Field groups: " + dumps_compact(groups), event="TASK_OUTPUT", notice=True)
    return TaskOutcome(status_code=HTTP_OK)


def _show_fields(ctx: TaskContext) -> TaskOutcome:
    index = FieldIndex.build(ctx.store, ctx.settings.destination.field_group)
    log_event(logger, "Field index: " + dumps_compact(index.to_dict(), limit=LOG_CHAR_LIMIT), event="TASK_OUTPUT", notice=True)
    return TaskOutcome(status_code=HTTP_OK)


TASKS: dict[TaskName, Callable[[TaskContext], TaskOutcome]] = {
    TaskName.RUN_IMPORT: _run_import,
    TaskName.SHOW_FETCHED_DATA: _show_fetched_data,
    TaskName.SHOW_MODEL_DATA: _show_model_data,
    TaskName.SHOW_FIELD_GROUPS: _show_field_groups,
    TaskName.SHOW_FIELDS: _show_fields,
}


def resolve_task(name: str) -> TaskName | None:
    try:
        return TaskName(name.strip())
    except ValueError:
        return None


def run_task(name: TaskName, ctx: TaskContext) -> TaskOutcome:
    """Run one task and collect the operator notices it logged.

    Batch-fatal and configuration errors become a 500 outcome instead of
    propagating, so the caller always has a status code to hand back.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    collector = attach_notice_collector(root)
    try:
        outcome = TASKS[name](ctx)
    except PipelineError as exc:
        log_event(
            logger,
            f"Task {name.value} aborted: {exc}",
            level=logging.ERROR,
            event="TASK_FAIL",
            status="error",
            error_code=exc.error_code,
            notice=True,
        )
        outcome = TaskOutcome(status_code=HTTP_SERVER_ERROR)
    finally:
        root.removeHandler(collector)
    outcome.notices = [*collector.drain(), *outcome.notices]
    return outcome
