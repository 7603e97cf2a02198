"""Offset-paged fetching from the external REST source."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from listing_sync.common.config_loader import SourceSettings
from listing_sync.common.constants import COMPLETED_OFFSET_VALUE, OPTION_CURRENT_OFFSET
from listing_sync.common.http import HttpClient, HttpRequestError, TimeoutConfig
from listing_sync.common.logging import log_event
from listing_sync.store.state_store import StateStore

logger = logging.getLogger(__name__)

WHITESPACE = re.compile(r"\s+")


def remove_whitespace(value: str) -> str:
    return WHITESPACE.sub("", value)


def next_offset(current_offset: int, record_count: int, page_size: int) -> int:
    """A short page ends the batch; a full page moves the cursor forward."""
    if record_count < page_size:
        return COMPLETED_OFFSET_VALUE
    return current_offset + record_count


class PagedSourceClient:
    def __init__(self, settings: SourceSettings, http_client: HttpClient, state: StateStore) -> None:
        self.settings = settings
        self.http_client = http_client
        self.state = state
        self.current_offset = state.get_int_option(OPTION_CURRENT_OFFSET, COMPLETED_OFFSET_VALUE)
        self.records: list[dict[str, Any]] = []
        self.page_count = 0
        self.fetch_failed = False

    def page_url(self) -> str:
        query = remove_whitespace(self.settings.query_string).strip("&?")
        paging = f"limit={self.settings.page_size}&offset={self.current_offset}"
        query = f"{query}&{paging}" if query else paging
        return f"{self.settings.endpoint}?{query}"

    def fetch_page(self, token: str) -> list[dict[str, Any]]:
        self.fetch_failed = False
        body = self._request_page(token)
        payload = self._decode_page(body)
        # Paging counts every element the source returned, even ones that are not records.
        self.page_count = len(payload)
        self.records = [record for record in payload if isinstance(record, dict)]
        return self.records

    def advance_offset(self) -> int:
        new_offset = next_offset(self.current_offset, self.page_count, self.settings.page_size)
        self.state.set_option(OPTION_CURRENT_OFFSET, new_offset)
        self.current_offset = new_offset
        return new_offset

    def _request_page(self, token: str) -> str:
        headers = dict(self.settings.headers)
        headers["Authorization"] = f"Bearer {token}"
        try:
            return self.http_client.request_text(
                self.settings.method,
                self.page_url(),
                headers=headers,
                timeout=TimeoutConfig(
                    connect=min(20, self.settings.timeout_seconds),
                    read=self.settings.timeout_seconds,
                ),
            )
        except HttpRequestError as exc:
            self.fetch_failed = True
            log_event(
                logger,
                f"{exc}: Response Body | {exc.body[:2048]}",
                level=logging.ERROR,
                event="PAGE_FETCH_FAIL",
                status="error",
                offset=self.current_offset,
                error_code=exc.error_code,
                notice=True,
            )
            return ""

    def _decode_page(self, body: str) -> list[Any]:
        if not body.strip():
            return []
        try:
            payload = json.loads(body)
        except ValueError:
            payload = None
        if not isinstance(payload, list):
            self.fetch_failed = True
            log_event(
                logger,
                f"There was a problem parsing the page response JSON (showing first 2048 chars): {body[:2048]}...",
                level=logging.ERROR,
                event="PAGE_PARSE_FAIL",
                status="error",
                offset=self.current_offset,
                notice=True,
            )
            return []
        return payload
