"""Normalised view of one source record plus its derived fields."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from listing_sync.common.config_loader import RankingOverrides
from listing_sync.common.constants import AWARD_WEIGHT_TARGET_COUNT, MAX_AWARD_YEARS_TO_SHOW

AWARD_INFO = "AwardInfo"
REVIEW_RATING_AVERAGE = "ReviewStarRatingAverage"
FULL_ADDRESS = "FullAddress"
SORT_SCORE = "SearchResultSortOrder"

ADDRESS_PARTS = ("Address1", "Address2", "City", "State", "Zip")


@dataclass(frozen=True)
class ModelSettings:
    unique_id_field: str
    logo_base_url: str = "https://example.com"
    ranking_overrides: RankingOverrides = field(default_factory=RankingOverrides)


def round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _award_year(date_earned: Any) -> str:
    return str(date_earned or "")[:4]


def build_award_info(awards: list[dict], max_years: int = MAX_AWARD_YEARS_TO_SHOW) -> dict[str, dict]:
    """Group award-per-year entries by award alias.

    Each alias maps to its title, the most recent distinct years (newest
    first, at most ``max_years``) as a ``", "`` joined string, and whether
    the award was won at all. An entry without a date still counts as a win;
    only its empty year is left out of the years string.
    """
    years_by_alias: dict[str, list[str]] = {}
    titles: dict[str, str] = {}
    for award in awards:
        details = award.get("Award") or {}
        alias = details.get("Alias")
        if alias is None:
            continue
        alias = str(alias)
        years = years_by_alias.setdefault(alias, [])
        year = _award_year(award.get("DateEarned"))
        if year and year not in years:
            years.append(year)
        titles[alias] = str(details.get("Title") or "")

    award_info: dict[str, dict] = {}
    for alias, years in years_by_alias.items():
        recent_years = sorted(years, reverse=True)[:max_years]
        award_info[alias] = {
            "RecentAwardYears": ", ".join(recent_years),
            "IsAwardWinner": True,
            "Title": titles[alias],
        }
    return award_info


def review_rating_average(reviews: list[dict]) -> float | None:
    if not reviews:
        return None
    total = sum(float(review.get("StarRating") or 0) for review in reviews)
    return total / len(reviews)


def full_address(record: dict) -> str:
    parts = [record.get(name) for name in ADDRESS_PARTS]
    return ", ".join(str(part) for part in parts if part not in (None, ""))


def sort_score(
    rating_average: float | None,
    award_info: dict[str, dict],
    target_count: int = AWARD_WEIGHT_TARGET_COUNT,
) -> int:
    """Higher sorts first: rating out of 5 and award wins out of ``target_count``, each scaled to 0-100."""
    review_weight = round_half_up((rating_average or 0) / 5 * 100)
    winner_count = sum(1 for award in award_info.values() if award.get("IsAwardWinner"))
    award_weight = round_half_up(winner_count / target_count * 100)
    return review_weight + award_weight


class RecordModel:
    """One source record with derived fields computed once at construction.

    Plugin logic should read values through the accessors instead of raw keys,
    so every source field name used for mapping lives in this class.
    """

    def __init__(self, record: dict[str, Any], settings: ModelSettings) -> None:
        self.settings = settings
        self._data = copy.deepcopy(record)
        self._data[AWARD_INFO] = build_award_info(self.awards)
        self._data[REVIEW_RATING_AVERAGE] = review_rating_average(self._data.get("ListingReview") or [])
        self._data[FULL_ADDRESS] = full_address(self._data)
        self._data[SORT_SCORE] = sort_score(self._data[REVIEW_RATING_AVERAGE], self._data[AWARD_INFO])
        self._apply_ranking_override()

    def _apply_ranking_override(self) -> None:
        overrides = self.settings.ranking_overrides
        ranking = overrides.ranking_for(self.unique_id)
        if ranking:
            self._data[AWARD_INFO].setdefault(overrides.award_alias, {})["RankingOrder"] = ranking

    def to_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self._data)

    @property
    def unique_id_field(self) -> str:
        return self.settings.unique_id_field

    @property
    def unique_id(self) -> Any:
        value = self._data.get(self.unique_id_field) if self.unique_id_field else None
        return value if value not in (None, "") else 0

    @property
    def display_name(self) -> str:
        return str(self._data.get("Name") or "")

    @property
    def description(self) -> str:
        details = self._data.get("ListingDetail") or []
        if not details or not isinstance(details[0], dict):
            return ""
        return str(details[0].get("Description") or "")

    @property
    def city(self) -> str:
        return str(self._data.get("City") or "")

    @property
    def state(self) -> str:
        return str(self._data.get("State") or "")

    @property
    def awards(self) -> list[dict]:
        return [award for award in self._data.get("ListingAward") or [] if isinstance(award, dict)]

    @property
    def award_info(self) -> dict[str, dict]:
        return copy.deepcopy(self._data[AWARD_INFO])

    @property
    def review_rating_average(self) -> float | None:
        return self._data[REVIEW_RATING_AVERAGE]

    @property
    def full_address(self) -> str:
        return self._data[FULL_ADDRESS]

    @property
    def sort_score(self) -> int:
        return self._data[SORT_SCORE]

    @property
    def award_titles(self) -> list[str]:
        titles = [str((award.get("Award") or {}).get("Title") or "") for award in self.awards]
        return [title for title in dict.fromkeys(titles) if title]

    @property
    def postal_code_ids(self) -> list[str]:
        codes = self._data.get("Listing_PostalCode") or []
        return [str(code.get("PostalCodeId")) for code in codes if isinstance(code, dict) and code.get("PostalCodeId")]

    @property
    def logo_url(self) -> str:
        logo = self._data.get("Logo") or ""
        if not logo:
            return ""
        return f"{self.settings.logo_base_url}{logo}"
