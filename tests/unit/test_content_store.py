import pytest

from listing_sync.common.errors import StoreError
from listing_sync.store.db import open_connection
from listing_sync.store.schema_loader import load_field_groups

from conftest import FIELD_SCHEMA


def test_open_connection_supports_memory():
    conn = open_connection(":memory:")
    try:
        assert conn.execute("SELECT COUNT(*) FROM items").fetchone()[0] == 0
    finally:
        conn.close()


def test_save_item_creates_then_updates(store):
    item_id = store.save_item(item_id=0, post_type="listing", title="A", body="x", status="publish", meta={"CompanyId": 7})

    assert store.find_item_by_meta("listing", "CompanyId", 7) == item_id
    assert store.find_item_by_meta("listing", "CompanyId", "7") == item_id

    same_id = store.save_item(item_id=item_id, post_type="listing", title="B", body="y", status="publish", meta={"CompanyId": 7})

    assert same_id == item_id
    assert store.get_item(item_id)["title"] == "B"
    assert store.count_items("listing") == 1


def test_find_item_ignores_other_post_types(store):
    store.save_item(item_id=0, post_type="page", title="A", body="", status="draft", meta={"CompanyId": 7})

    assert store.find_item_by_meta("listing", "CompanyId", 7) == 0


def test_save_item_with_unknown_id_raises(store):
    with pytest.raises(StoreError, match="Invalid item ID"):
        store.save_item(item_id=999, post_type="listing", title="A", body="", status="publish")


def test_field_values_and_rows(store):
    item_id = store.save_item(item_id=0, post_type="listing", title="A", body="", status="publish")

    store.update_field(item_id, "field_name", "Agency")
    assert store.get_field(item_id, "field_name") == "Agency"

    assert store.add_row(item_id, "field_rows", {"a": 1}) == 0
    assert store.add_row(item_id, "field_rows", {"a": 2}) == 1
    assert store.get_field(item_id, "field_rows") == [{"a": 1}, {"a": 2}]

    store.delete_field(item_id, "field_rows")
    assert store.get_field(item_id, "field_rows") is None


def test_terms_are_unique_per_name_taxonomy_and_parent(store):
    parent = store.insert_term("Leader", "award")
    child = store.insert_term("2021", "award", parent)

    assert store.get_term("Leader", "award") == parent
    assert store.get_term("2021", "award", parent) == child
    assert store.get_term("2021", "award") is None

    with pytest.raises(StoreError):
        store.insert_term("Leader", "award")
    with pytest.raises(StoreError):
        store.insert_term("  ", "award")


def test_set_item_terms_replaces_within_taxonomy_only(store):
    item_id = store.save_item(item_id=0, post_type="listing", title="A", body="", status="publish")
    award = store.insert_term("Leader", "award")
    other_award = store.insert_term("Best", "award")
    state = store.insert_term("California", "state")

    store.set_item_terms(item_id, [award], "award")
    store.set_item_terms(item_id, [state], "state")
    store.set_item_terms(item_id, [other_award], "award")

    assert [term["name"] for term in store.get_item_terms(item_id, "award")] == ["Best"]
    assert [term["name"] for term in store.get_item_terms(item_id, "state")] == ["California"]

    store.set_item_terms(item_id, [award], "award", append=True)
    assert {term["name"] for term in store.get_item_terms(item_id, "award")} == {"Leader", "Best"}


def test_attachments_by_source_url(store):
    item_id = store.save_item(item_id=0, post_type="listing", title="A", body="", status="publish")
    attachment_id = store.add_attachment("/media/a.png", "https://cdn.test/a.png")
    store.set_featured_attachment(item_id, attachment_id)

    assert store.find_attachment_by_source_url("https://cdn.test/a.png") == attachment_id
    assert store.find_attachment_by_source_url("https://cdn.test/b.png") is None
    assert store.get_item(item_id)["featured_attachment_id"] == attachment_id


def test_load_field_groups_is_repeatable_and_prunes_removed_fields(store):
    counts = load_field_groups(store, FIELD_SCHEMA)
    assert counts == {"group_listing": 15}
    group = store.get_field_group("group_listing")
    assert len(store.get_fields(group_id=group["id"])) == 8

    trimmed = {
        "field_groups": [
            {"key": "group_listing", "title": "Listing", "fields": [{"name": "Name", "type": "text"}]}
        ]
    }
    assert load_field_groups(store, trimmed) == {"group_listing": 1}
    assert [field["name"] for field in store.get_fields(group_id=group["id"])] == ["Name"]
    assert store.get_field_group(group["id"])["key"] == "group_listing"
