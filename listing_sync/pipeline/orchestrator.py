"""One import batch: token, page, per-record sync, offset advance."""

from __future__ import annotations

import logging
import uuid
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from listing_sync.common.config_loader import ImporterSettings
from listing_sync.common.constants import (
    COMPLETED_OFFSET_VALUE,
    OPTION_CURRENT_OFFSET,
    OPTION_LAST_IMPORT_START,
    OPTION_LAST_IMPORT_SUCCESS,
)
from listing_sync.common.errors import RunInProgressError, StageError
from listing_sync.common.http import HttpClient
from listing_sync.common.logging import log_event
from listing_sync.common.time_utils import utc_timestamp_seconds
from listing_sync.pipeline.content_sync import ContentSync
from listing_sync.pipeline.field_index import FieldIndex
from listing_sync.pipeline.field_sync import FieldSync
from listing_sync.pipeline.record_model import ModelSettings, RecordModel
from listing_sync.pipeline.taxonomy_sync import TaxonomySync
from listing_sync.source.paged_client import PagedSourceClient
from listing_sync.source.token_provider import TokenProvider
from listing_sync.store.content_store import ContentStore
from listing_sync.store.state_store import StateStore

logger = logging.getLogger(__name__)

RUN_LOCK_NAME = "run_import"


@dataclass(frozen=True)
class BatchResult:
    starting_offset: int
    next_offset: int
    complete: bool
    fetched_count: int
    synced_count: int
    failed_count: int
    fetch_failed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def model_settings(settings: ImporterSettings) -> ModelSettings:
    return ModelSettings(
        unique_id_field=settings.destination.unique_id_field,
        logo_base_url=settings.destination.logo_base_url,
        ranking_overrides=settings.ranking_overrides,
    )


def fetch_current_page(
    settings: ImporterSettings,
    state: StateStore,
    http_client: HttpClient,
    token_provider: TokenProvider | None = None,
) -> tuple[PagedSourceClient, list[dict]]:
    """Fetch the page at the stored offset. Raises StageError when no token can be obtained."""
    provider = token_provider or TokenProvider(settings.token, http_client, state)
    token = provider.get_access_token()
    if not token:
        raise StageError("No access token available; batch aborted")
    log_event(logger, "STAGE 1/4: COMPLETE Fetch access token", stage="1/4", event="STAGE_END", status="ok", notice=True)

    source = PagedSourceClient(settings.source, http_client, state)
    records = source.fetch_page(token)
    return source, records


def run_import(
    settings: ImporterSettings,
    store: ContentStore,
    state: StateStore,
    http_client: HttpClient,
    *,
    token_provider: TokenProvider | None = None,
    media_dir: Path | None = None,
) -> BatchResult:
    lock_owner = uuid.uuid4().hex
    if not state.acquire_lock(RUN_LOCK_NAME, settings.task.lock_ttl_seconds, owner=lock_owner):
        raise RunInProgressError("Another import batch is already running")
    try:
        return _run_batch(settings, store, state, http_client, token_provider, media_dir)
    finally:
        if not state.release_lock(RUN_LOCK_NAME, owner=lock_owner):
            log_event(
                logger,
                "Run lock expired during the batch and was taken over by another run",
                level=logging.WARNING,
                event="LOCK_LOST",
                status="warning",
                notice=True,
            )


def _run_batch(
    settings: ImporterSettings,
    store: ContentStore,
    state: StateStore,
    http_client: HttpClient,
    token_provider: TokenProvider | None,
    media_dir: Path | None,
) -> BatchResult:
    state.set_option(OPTION_LAST_IMPORT_START, utc_timestamp_seconds())
    starting_offset = state.get_int_option(OPTION_CURRENT_OFFSET, COMPLETED_OFFSET_VALUE)
    log_event(
        logger,
        f"Starting import batch, initial offset: {starting_offset}",
        event="BATCH_START",
        status="ok",
        offset=starting_offset,
        notice=True,
    )

    source, records = fetch_current_page(settings, state, http_client, token_provider)
    log_event(
        logger,
        "STAGE 2/4: COMPLETE Get source data",
        stage="2/4",
        event="STAGE_END",
        status="error" if source.fetch_failed else "ok",
        offset=starting_offset,
        rows_in=source.page_count,
        notice=True,
    )

    field_index = FieldIndex.build(store, settings.destination.field_group)
    log_event(logger, "STAGE 3/4: COMPLETE Get field index", stage="3/4", event="STAGE_END", status="ok", notice=True)

    content_sync = ContentSync(store, settings.destination, http_client=http_client, media_dir=media_dir)
    field_sync = FieldSync(store)
    taxonomy_sync = TaxonomySync(store)
    model_cfg = model_settings(settings)

    synced = 0
    failed = 0
    total = len(records)
    for position, record in enumerate(records, start=1):
        unique_id: Any = None
        try:
            model = RecordModel(record, model_cfg)
            unique_id = model.unique_id
            item_id = content_sync.upsert(model)
            if not item_id:
                failed += 1
                log_event(
                    logger,
                    f"Skipping field and taxonomy sync for ID {unique_id}: item could not be saved",
                    level=logging.WARNING,
                    stage="4/4",
                    event="RECORD_SKIPPED",
                    status="error",
                    unique_id=unique_id,
                    notice=True,
                )
                continue
            field_sync.apply_fields(model, field_index, item_id)
            taxonomy_sync.sync_taxonomies(model, item_id)
        except Exception as exc:
            failed += 1
            log_event(
                logger,
                f"Unexpected failure syncing record {position}/{total}: {exc}",
                level=logging.ERROR,
                stage="4/4",
                event="RECORD_FAIL",
                status="error",
                unique_id=unique_id,
                error_code=getattr(exc, "error_code", "UNEXPECTED_ERROR"),
                notice=True,
            )
            continue
        synced += 1
        log_event(
            logger,
            f"STAGE 4/4: RUNNING Synced {position}/{total} records, ID {unique_id}",
            stage="4/4",
            event="RECORD_SYNCED",
            status="ok",
            unique_id=unique_id,
            item_id=item_id,
        )

    log_event(
        logger,
        "STAGE 4/4: COMPLETE Import batch complete.",
        stage="4/4",
        event="STAGE_END",
        status="ok" if not failed else "partial",
        rows_in=total,
        rows_out=synced,
        notice=True,
    )

    new_offset = source.advance_offset()
    complete = new_offset == COMPLETED_OFFSET_VALUE
    if complete:
        if not source.fetch_failed:
            state.set_option(OPTION_LAST_IMPORT_SUCCESS, utc_timestamp_seconds())
        log_event(
            logger,
            "BATCH COMPLETE: All records have been imported. Resetting offset.",
            event="BATCH_COMPLETE",
            status="error" if source.fetch_failed else "ok",
            offset=new_offset,
            notice=True,
        )
    else:
        log_event(
            logger,
            f"BATCH CONTINUE: Next offset: {new_offset}",
            event="BATCH_CONTINUE",
            status="ok",
            offset=new_offset,
            notice=True,
        )

    return BatchResult(
        starting_offset=starting_offset,
        next_offset=new_offset,
        complete=complete,
        fetched_count=source.page_count,
        synced_count=synced,
        failed_count=failed,
        fetch_failed=source.fetch_failed,
    )
