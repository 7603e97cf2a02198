"""OAuth2 client-credentials token acquisition with caching."""

from __future__ import annotations

import json
import logging
import time
from typing import Callable

from listing_sync.common.config_loader import TokenSettings
from listing_sync.common.constants import OPTION_TOKEN_EXPIRES_AT, TOKEN_EXPIRATION_OFFSET_SECONDS
from listing_sync.common.http import HttpClient, HttpRequestError, TimeoutConfig
from listing_sync.common.logging import log_event
from listing_sync.store.state_store import StateStore

logger = logging.getLogger(__name__)


class TokenProvider:
    """Hands out a bearer token, requesting a new grant when the cached one is missing or expired.

    The token itself is held in memory; its expiry lives in the state store so
    every process sees the same validity window.
    """

    def __init__(
        self,
        settings: TokenSettings,
        http_client: HttpClient,
        state: StateStore,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings
        self.http_client = http_client
        self.state = state
        self.clock = clock
        self.access_token: str | None = None

    def get_access_token(self) -> str | None:
        if self.access_token and not self.is_access_token_expired():
            return self.access_token

        body = self._request_token_grant()
        if not body:
            return None

        grant = self._decode_token_grant(body)
        if not grant:
            return None

        self.access_token = grant.get("access_token") or None
        if not self.access_token:
            log_event(
                logger,
                f'No "access_token" value found in the token grant from {self.settings.endpoint}',
                level=logging.ERROR,
                event="TOKEN_MISSING",
                status="error",
                notice=True,
            )
            return None

        self._set_token_expiration(grant.get("expires_in"))
        return self.access_token

    def is_access_token_expired(self) -> bool:
        expires_at = self.state.get_option(OPTION_TOKEN_EXPIRES_AT)
        if expires_at is None:
            return True
        try:
            return float(expires_at) <= self.clock()
        except ValueError:
            return True

    def _set_token_expiration(self, expires_in: object) -> None:
        # Expire early so a token never dies in the middle of a page request.
        if isinstance(expires_in, bool) or not str(expires_in).isdigit():
            self.state.delete_option(OPTION_TOKEN_EXPIRES_AT)
            return
        expires_at = self.clock() + int(str(expires_in)) - TOKEN_EXPIRATION_OFFSET_SECONDS
        self.state.set_option(OPTION_TOKEN_EXPIRES_AT, expires_at)

    def _decode_token_grant(self, body: str) -> dict:
        try:
            grant = json.loads(body)
        except ValueError:
            grant = None
        if not isinstance(grant, dict) or not grant:
            log_event(
                logger,
                f"There was a problem parsing the token grant response JSON: {body[:2048]}",
                level=logging.ERROR,
                event="TOKEN_PARSE_FAIL",
                status="error",
                notice=True,
            )
            return {}
        return grant

    def _request_token_grant(self) -> str:
        try:
            return self.http_client.post_form_text(
                self.settings.endpoint,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.settings.client_id,
                    "client_secret": self.settings.client_secret,
                    "scope": self.settings.scope,
                },
                timeout=TimeoutConfig(connect=self.settings.timeout_seconds, read=self.settings.timeout_seconds),
            )
        except HttpRequestError as exc:
            log_event(
                logger,
                f"{exc}: Response Body | {exc.body}",
                level=logging.ERROR,
                event="TOKEN_REQUEST_FAIL",
                status="error",
                error_code=exc.error_code,
                notice=True,
            )
            return ""
