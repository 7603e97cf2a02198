"""Assign award, award-year, state and city terms to a content item."""

from __future__ import annotations

import logging

from listing_sync.common.constants import LOG_CHAR_LIMIT, TAXONOMY_AWARD, TAXONOMY_CITY, TAXONOMY_STATE
from listing_sync.common.errors import StoreError
from listing_sync.common.fs import dumps_compact
from listing_sync.common.logging import log_event
from listing_sync.pipeline.record_model import RecordModel
from listing_sync.store.content_store import ContentStore

logger = logging.getLogger(__name__)


class TaxonomySync:
    def __init__(self, store: ContentStore) -> None:
        self.store = store

    def sync_taxonomies(self, model: RecordModel, item_id: int) -> None:
        award_term_ids = self._award_terms(model)
        year_term_ids = self._award_year_terms(model, award_term_ids)
        # Awards and their year children share one taxonomy, so both sets go in a single replacing write.
        self._set_terms(model, item_id, [*award_term_ids.values(), *year_term_ids], TAXONOMY_AWARD)

        for name, taxonomy in ((model.state, TAXONOMY_STATE), (model.city, TAXONOMY_CITY)):
            if not name:
                continue
            term_id = self.get_or_create_term(name, taxonomy, model=model)
            if term_id:
                self._set_terms(model, item_id, [term_id], taxonomy)

    def get_or_create_term(self, name: str, taxonomy: str, parent: int | None = None, *, model: RecordModel | None = None) -> int | None:
        """Exact ``(name, taxonomy, parent)`` match, created when missing. None on failure."""
        term_id = self.store.get_term(name, taxonomy, parent)
        if term_id:
            return term_id
        try:
            return self.store.insert_term(name, taxonomy, parent)
        except StoreError as exc:
            log_event(
                logger,
                f"Failed to create taxonomy term '{name}' in taxonomy '{taxonomy}': {exc} | {self._context(model)}",
                level=logging.ERROR,
                event="TERM_CREATE_FAIL",
                status="error",
                unique_id=model.unique_id if model else None,
                error_code=exc.error_code,
            )
            return None

    def _award_terms(self, model: RecordModel) -> dict[str, int]:
        term_ids: dict[str, int] = {}
        for title in model.award_titles:
            term_id = self.get_or_create_term(title, TAXONOMY_AWARD, model=model)
            if term_id:
                term_ids[title] = term_id
        return term_ids

    def _award_year_terms(self, model: RecordModel, award_term_ids: dict[str, int]) -> list[int]:
        year_term_ids: list[int] = []
        for award in model.award_info.values():
            parent_id = award_term_ids.get(str(award.get("Title") or ""))
            years = str(award.get("RecentAwardYears") or "")
            if not parent_id or not years:
                continue
            for year in years.split(", "):
                term_id = self.get_or_create_term(year, TAXONOMY_AWARD, parent_id, model=model)
                if term_id:
                    year_term_ids.append(term_id)
        return year_term_ids

    def _set_terms(self, model: RecordModel, item_id: int, term_ids: list[int], taxonomy: str) -> None:
        try:
            self.store.set_item_terms(item_id, term_ids, taxonomy)
        except StoreError as exc:
            log_event(
                logger,
                f"Failed to set {taxonomy} terms for item ID '{item_id}': {exc} | {self._context(model)}",
                level=logging.ERROR,
                event="TERM_ASSIGN_FAIL",
                status="error",
                unique_id=model.unique_id,
                item_id=item_id,
                error_code=exc.error_code,
            )

    @staticmethod
    def _context(model: RecordModel | None) -> str:
        if model is None:
            return "{}"
        return dumps_compact(model.to_dict(), limit=LOG_CHAR_LIMIT)
