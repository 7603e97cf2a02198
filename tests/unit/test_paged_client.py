import pytest

from listing_sync.common.config_loader import SourceSettings
from listing_sync.common.constants import OPTION_CURRENT_OFFSET
from listing_sync.source.paged_client import PagedSourceClient, next_offset, remove_whitespace

from conftest import FakeHttpClient, http_error


def source_settings(**overrides) -> SourceSettings:
    values = {
        "endpoint": "https://api.example.test/listings",
        "page_size": 2,
        "query_string": " include=ListingAward &\n orderby=CompanyId ",
    }
    values.update(overrides)
    return SourceSettings(**values)


@pytest.mark.parametrize(
    ("current", "count", "page_size", "expected"),
    [
        (0, 20, 20, 20),
        (40, 20, 20, 60),
        (40, 19, 20, 0),
        (40, 0, 20, 0),
    ],
)
def test_next_offset_state_machine(current, count, page_size, expected):
    assert next_offset(current, count, page_size) == expected


def test_remove_whitespace():
    assert remove_whitespace(" a = 1 &\tb=2\n") == "a=1&b=2"


def test_page_url_strips_whitespace_and_appends_paging(state):
    state.set_option(OPTION_CURRENT_OFFSET, 40)
    client = PagedSourceClient(source_settings(), FakeHttpClient(), state)

    assert client.page_url() == "https://api.example.test/listings?include=ListingAward&orderby=CompanyId&limit=2&offset=40"


def test_page_url_without_query_string(state):
    client = PagedSourceClient(source_settings(query_string=""), FakeHttpClient(), state)

    assert client.page_url() == "https://api.example.test/listings?limit=2&offset=0"


def test_fetch_page_sends_bearer_and_configured_method(state):
    http = FakeHttpClient(page_bodies=[[{"CompanyId": 1}]])
    client = PagedSourceClient(source_settings(method="POST", headers={"X-Tenant": "t1"}), http, state)

    records = client.fetch_page("tok")

    assert records == [{"CompanyId": 1}]
    call = http.page_calls[0]
    assert call["method"] == "POST"
    assert call["headers"] == {"X-Tenant": "t1", "Authorization": "Bearer tok"}


def test_full_page_advances_offset_and_persists(state):
    http = FakeHttpClient(page_bodies=[[{"CompanyId": 1}, {"CompanyId": 2}]])
    client = PagedSourceClient(source_settings(), http, state)

    client.fetch_page("tok")

    assert client.advance_offset() == 2
    assert state.get_int_option(OPTION_CURRENT_OFFSET) == 2
    assert PagedSourceClient(source_settings(), http, state).current_offset == 2


def test_short_page_completes_batch(state):
    state.set_option(OPTION_CURRENT_OFFSET, 4)
    client = PagedSourceClient(source_settings(), FakeHttpClient(page_bodies=[[{"CompanyId": 5}]]), state)

    client.fetch_page("tok")

    assert client.advance_offset() == 0
    assert state.get_int_option(OPTION_CURRENT_OFFSET) == 0


def test_empty_body_is_end_of_data(state):
    client = PagedSourceClient(source_settings(), FakeHttpClient(page_bodies=[""]), state)

    assert client.fetch_page("tok") == []
    assert client.fetch_failed is False


def test_http_error_returns_empty_page_and_flags_failure(state):
    client = PagedSourceClient(source_settings(), FakeHttpClient(page_bodies=[http_error(500)]), state)

    assert client.fetch_page("tok") == []
    assert client.fetch_failed is True
    assert client.advance_offset() == 0


@pytest.mark.parametrize("body", ["{not json", '{"items": []}'])
def test_unparseable_or_non_list_body_returns_empty_page(state, body):
    client = PagedSourceClient(source_settings(), FakeHttpClient(page_bodies=[body]), state)

    assert client.fetch_page("tok") == []
    assert client.fetch_failed is True


def test_non_record_elements_still_count_towards_paging(state):
    client = PagedSourceClient(source_settings(), FakeHttpClient(page_bodies=[[{"CompanyId": 1}, "junk"]]), state)

    assert client.fetch_page("tok") == [{"CompanyId": 1}]
    assert client.advance_offset() == 2
