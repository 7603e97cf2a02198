"""HTTP client with timeouts and an optional retry policy."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from listing_sync.common.constants import USER_AGENT
from listing_sync.common.errors import PipelineError
from listing_sync.common.fs import write_bytes

RETRYABLE_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}


@dataclass(frozen=True)
class TimeoutConfig:
    connect: float = 20.0
    read: float = 45.0


@dataclass(frozen=True)
class RetryConfig:
    # One attempt means no automatic retry; the scheduler re-invokes the batch instead.
    max_attempts: int = 1
    multiplier: float = 1.0
    max_wait: float = 30.0


class HttpRequestError(PipelineError):
    error_code = "HTTP_ERROR"

    def __init__(self, message: str, *, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class RetryableHttpError(HttpRequestError):
    pass


class HttpClient:
    def __init__(
        self,
        *,
        timeout: TimeoutConfig | None = None,
        retry: RetryConfig | None = None,
    ) -> None:
        self.timeout = timeout or TimeoutConfig()
        self.retry = retry or RetryConfig()
        self.session = requests.Session()

    def close(self) -> None:
        self.session.close()

    def _headers(self, headers: dict[str, str] | None) -> dict[str, str]:
        out = {"User-Agent": USER_AGENT, "Accept": "application/json"}
        if headers:
            out.update(headers)
        return out

    def _raise_for_status_or_retry(self, response: requests.Response) -> None:
        status = response.status_code
        if status in RETRYABLE_STATUS_CODES:
            raise RetryableHttpError(
                f"HTTP Response Code {status}",
                status_code=status,
                body=response.text or "",
            )
        if status >= 400:
            raise HttpRequestError(
                f"HTTP Response Code {status}",
                status_code=status,
                body=response.text or "",
            )

    def _request_text(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: TimeoutConfig | None = None,
    ) -> str:
        req_timeout = timeout or self.timeout
        try:
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                data=data,
                headers=self._headers(headers),
                timeout=(req_timeout.connect, req_timeout.read),
            )
        except requests.RequestException as exc:
            raise HttpRequestError(f"{method} {url} failed: {exc}") from exc

        self._raise_for_status_or_retry(response)
        return response.text or ""

    def request_text(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: TimeoutConfig | None = None,
    ) -> str:
        @retry(
            stop=stop_after_attempt(self.retry.max_attempts),
            wait=wait_exponential_jitter(
                initial=self.retry.multiplier,
                max=self.retry.max_wait,
                jitter=1.0,
            ),
            retry=retry_if_exception_type(RetryableHttpError),
            reraise=True,
        )
        def _wrapped() -> str:
            return self._request_text(
                method,
                url,
                params=params,
                data=data,
                headers=headers,
                timeout=timeout,
            )

        return _wrapped()

    def post_form_text(
        self,
        url: str,
        *,
        data: dict[str, Any],
        headers: dict[str, str] | None = None,
        timeout: TimeoutConfig | None = None,
    ) -> str:
        merged = {"Content-Type": "application/x-www-form-urlencoded"}
        if headers:
            merged.update(headers)
        return self.request_text("POST", url, data=data, headers=merged, timeout=timeout)

    def download(self, url: str, target_path: Path, *, timeout: TimeoutConfig | None = None) -> None:
        req_timeout = timeout or self.timeout
        try:
            response = self.session.get(
                url,
                headers={"User-Agent": USER_AGENT, "Accept": "*/*"},
                timeout=(req_timeout.connect, req_timeout.read),
                stream=True,
            )
            response.raise_for_status()
            write_bytes(target_path, response.iter_content(chunk_size=1024 * 128))
        except requests.RequestException as exc:
            raise HttpRequestError(f"Download of {url} failed: {exc}") from exc
