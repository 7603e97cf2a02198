import pytest

from listing_sync.common.errors import ConfigError
from listing_sync.common.logging import attach_notice_collector, build_logger
from listing_sync.pipeline.field_index import FieldIndex
from listing_sync.pipeline.field_sync import FieldSync
from listing_sync.pipeline.record_model import ModelSettings, RecordModel

from conftest import listing

MODEL_SETTINGS = ModelSettings(unique_id_field="CompanyId")


def new_item(store) -> int:
    return store.save_item(item_id=0, post_type="listing", title="A", body="", status="publish")


def test_field_index_walks_nested_fields(loaded_store):
    index = FieldIndex.build(loaded_store, "group_listing")

    assert index.get("Name").type == "text"
    assert index.get("Unknown") is None
    awards = index.get("ListingAward")
    assert awards.type == "repeater"
    assert awards.sub_fields.get("Award").sub_fields.get("Title").type == "text"
    assert index.to_dict()["AwardInfo"]["sub_fields"]["leader"]["sub_fields"]["IsAwardWinner"] == {
        "key": "field_group_listing_AwardInfo_leader_IsAwardWinner",
        "type": "true_false",
    }


def test_field_index_missing_group_raises(store):
    with pytest.raises(ConfigError):
        FieldIndex.build(store, "group_missing")


def test_apply_fields_sets_scalars_groups_and_rows(loaded_store):
    index = FieldIndex.build(loaded_store, "group_listing")
    item_id = new_item(loaded_store)

    FieldSync(loaded_store).apply_fields(RecordModel(listing(7), MODEL_SETTINGS), index, item_id)

    assert loaded_store.get_field(item_id, index.get("Name").key) == "Agency 7"
    assert loaded_store.get_field(item_id, index.get("ReviewStarRatingAverage").key) == 4.5
    assert loaded_store.get_field(item_id, index.get("FullAddress").key) == "1 Main St, Fresno, California, 93650"
    assert loaded_store.get_field(item_id, index.get("AwardInfo").key) == {
        "leader": {"Title": "Leader in Experience", "RecentAwardYears": "2021, 2020", "IsAwardWinner": True}
    }
    assert loaded_store.get_field(item_id, index.get("ListingAward").key) == [
        {"DateEarned": "2021-05-01", "Award": {"Title": "Leader in Experience"}},
        {"DateEarned": "2020-01-01", "Award": {"Title": "Leader in Experience"}},
    ]


def test_repeater_rows_are_replaced_not_accumulated(loaded_store):
    index = FieldIndex.build(loaded_store, "group_listing")
    item_id = new_item(loaded_store)
    sync = FieldSync(loaded_store)
    key = index.get("ListingAward").key

    sync.apply_fields(RecordModel(listing(7), MODEL_SETTINGS), index, item_id)
    assert len(loaded_store.get_field(item_id, key)) == 2

    one_award = listing(7, ListingAward=[{"Award": {"Alias": "x", "Title": "X"}, "DateEarned": "2019-01-01"}])
    sync.apply_fields(RecordModel(one_award, MODEL_SETTINGS), index, item_id)
    assert loaded_store.get_field(item_id, key) == [{"DateEarned": "2019-01-01", "Award": {"Title": "X"}}]


def test_non_list_repeater_value_clears_rows(loaded_store):
    index = FieldIndex.build(loaded_store, "group_listing")
    item_id = new_item(loaded_store)
    sync = FieldSync(loaded_store)

    sync.apply_fields(RecordModel(listing(7), MODEL_SETTINGS), index, item_id)
    sync.apply_fields(RecordModel(listing(7, ListingAward="none"), MODEL_SETTINGS), index, item_id)

    assert loaded_store.get_field(item_id, index.get("ListingAward").key) is None


def test_unsupported_field_type_is_logged_and_dropped(loaded_store):
    collector = attach_notice_collector(build_logger("run-fields"))
    index = FieldIndex.build(loaded_store, "group_listing")
    item_id = new_item(loaded_store)

    FieldSync(loaded_store).apply_fields(RecordModel(listing(7, Logo="seven.png"), MODEL_SETTINGS), index, item_id)

    assert loaded_store.get_field(item_id, index.get("Logo").key) is None
    assert loaded_store.get_field(item_id, index.get("Name").key) == "Agency 7"
    assert any("Unsupported field type 'image'" in line for line in collector.lines)
