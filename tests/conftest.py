"""Shared fixtures: a throwaway sqlite store, importer settings and a scripted HTTP client."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from listing_sync.common.config_loader import build_settings
from listing_sync.common.http import HttpRequestError
from listing_sync.common.logging import build_logger
from listing_sync.store.content_store import ContentStore
from listing_sync.store.db import open_connection
from listing_sync.store.schema_loader import load_field_groups
from listing_sync.store.state_store import StateStore

FIELD_SCHEMA = {
    "field_groups": [
        {
            "key": "group_listing",
            "title": "Listing",
            "fields": [
                {"name": "CompanyId", "type": "number"},
                {"name": "Name", "type": "text"},
                {"name": "FullAddress", "type": "text"},
                {"name": "ReviewStarRatingAverage", "type": "number"},
                {"name": "SearchResultSortOrder", "type": "number"},
                {"name": "Logo", "type": "image"},
                {
                    "name": "ListingAward",
                    "type": "repeater",
                    "sub_fields": [
                        {"name": "DateEarned", "type": "date_picker"},
                        {
                            "name": "Award",
                            "type": "group",
                            "sub_fields": [{"name": "Title", "type": "text"}],
                        },
                    ],
                },
                {
                    "name": "AwardInfo",
                    "type": "group",
                    "sub_fields": [
                        {
                            "name": "leader",
                            "type": "group",
                            "sub_fields": [
                                {"name": "Title", "type": "text"},
                                {"name": "RecentAwardYears", "type": "text"},
                                {"name": "IsAwardWinner", "type": "true_false"},
                            ],
                        }
                    ],
                },
            ],
        }
    ]
}


def importer_config(**overrides: Any) -> dict:
    cfg = {
        "token": {
            "endpoint": "https://auth.example.test/token",
            "client_id": "client",
            "client_secret": "secret",
            "scope": "listings.read",
        },
        "source": {
            "endpoint": "https://api.example.test/listings",
            "page_size": 2,
            "query_string": "include=ListingAward &orderby=CompanyId",
        },
        "destination": {
            "field_group": "group_listing",
            "unique_id_field": "CompanyId",
            "logo_base_url": "https://media.example.test/",
        },
        "task": {"auth_key": "s3cret", "lock_ttl_seconds": 60},
    }
    for section, values in overrides.items():
        cfg[section] = {**cfg.get(section, {}), **values}
    return cfg


def listing(company_id: int, **extra: Any) -> dict:
    record = {
        "CompanyId": company_id,
        "Name": f"Agency {company_id}",
        "Address1": "1 Main St",
        "City": "Fresno",
        "State": "California",
        "Zip": "93650",
        "ListingDetail": [{"Description": f"About agency {company_id}."}],
        "ListingAward": [
            {"Award": {"Alias": "leader", "Title": "Leader in Experience"}, "DateEarned": "2021-05-01"},
            {"Award": {"Alias": "leader", "Title": "Leader in Experience"}, "DateEarned": "2020-01-01"},
        ],
        "ListingReview": [{"StarRating": 4}, {"StarRating": 5}],
        "Listing_PostalCode": [{"PostalCodeId": "93650"}, {"PostalCodeId": "93701"}],
    }
    record.update(extra)
    return record


class FakeHttpClient:
    """Scripted stand-in for HttpClient. Queue entries are response bodies or HttpRequestError instances."""

    def __init__(self, token_bodies: list | None = None, page_bodies: list | None = None) -> None:
        self.token_bodies = list(token_bodies or [])
        self.page_bodies = list(page_bodies or [])
        self.token_calls: list[dict] = []
        self.page_calls: list[dict] = []
        self.downloads: list[tuple[str, Path]] = []
        self.closed = False

    @staticmethod
    def _next(queue: list) -> str:
        body = queue.pop(0) if queue else ""
        if isinstance(body, Exception):
            raise body
        if not isinstance(body, str):
            return json.dumps(body)
        return body

    def post_form_text(self, url: str, **kwargs: Any) -> str:
        self.token_calls.append({"url": url, **kwargs})
        return self._next(self.token_bodies)

    def request_text(self, method: str, url: str, **kwargs: Any) -> str:
        self.page_calls.append({"method": method, "url": url, **kwargs})
        return self._next(self.page_bodies)

    def download(self, url: str, target_path: Path, **_kwargs: Any) -> None:
        self.downloads.append((url, target_path))
        target_path.parent.mkdir(parents=True, exist_ok=True)
        target_path.write_bytes(b"logo")

    def close(self) -> None:
        self.closed = True


def token_grant(token: str = "tok-1", expires_in: int | str = 3600) -> dict:
    return {"access_token": token, "expires_in": expires_in, "token_type": "Bearer"}


def http_error(status: int = 503, body: str = "unavailable") -> HttpRequestError:
    return HttpRequestError(f"HTTP Response Code {status}", status_code=status, body=body)


@pytest.fixture(autouse=True)
def notice_logger():
    return build_logger("run-test", level="DEBUG")


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "content.sqlite3"


@pytest.fixture
def conn(db_path: Path):
    connection = open_connection(db_path)
    yield connection
    connection.close()


@pytest.fixture
def store(conn) -> ContentStore:
    return ContentStore(conn)


@pytest.fixture
def state(conn) -> StateStore:
    return StateStore(conn)


@pytest.fixture
def loaded_store(store: ContentStore) -> ContentStore:
    load_field_groups(store, FIELD_SCHEMA)
    return store


@pytest.fixture
def settings():
    return build_settings(importer_config())
