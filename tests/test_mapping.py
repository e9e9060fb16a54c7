"""
Vinyl Sync — Discogs → Collection Mapping Tests
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Any

from tests.factories import collection_item_payload, release_payload, stats_payload
from vinylsync.models.catalog import PriceSnapshot, clean_artist_name
from vinylsync.models.record import CollectionRecord
from vinylsync.pipeline.discogs import (
    CollectionItem,
    DiscogsRelease,
    MarketplaceStats,
    PriceSuggestions,
)
from vinylsync.pipeline.mapping import (
    apply_price,
    build_price_snapshot,
    build_record,
    map_release_to_catalog_item,
    merge_record,
    prices_differ,
)

NOW = "2024-06-01T12:00:00.000Z"


def _item(release_id: int = 101, **overrides: Any):
    release = DiscogsRelease.model_validate(release_payload(release_id, **overrides))
    folder_item = CollectionItem.model_validate(collection_item_payload(release_id))
    return map_release_to_catalog_item(release, folder_item)


def _price(lowest: str | None = "30.00", suggested: str | None = None) -> PriceSnapshot:
    return PriceSnapshot(
        release_id=101,
        lowest_price=Decimal(lowest) if lowest is not None else None,
        currency="USD",
        num_for_sale=12,
        suggested_price=Decimal(suggested) if suggested is not None else None,
        fetched_at=NOW,
    )


# ---------------------------------------------------------------------------
# Release → CatalogItem mapping
# ---------------------------------------------------------------------------


class TestMapRelease:

    def test_identifying_metadata(self) -> None:
        item = _item()

        assert item.release_id == 101
        assert item.master_id == 1101
        assert item.artist == "Radiohead"
        assert item.title == "OK Computer"
        assert item.label == "Parlophone"
        assert item.catalog_number == "NODATA 02"
        assert item.release_year == 1997
        assert item.format == ("LP", "Album")
        assert item.date_added == "2023-03-14T10:00:00-07:00"

    def test_primary_image_preferred(self) -> None:
        assert _item().cover_image_url == "https://img.discogs.com/101.jpg"

    def test_year_zero_is_unknown(self) -> None:
        assert _item(year=0).release_year is None

    def test_missing_formats_default_to_lp(self) -> None:
        payload = release_payload(101)
        payload["formats"] = []
        item = map_release_to_catalog_item(DiscogsRelease.model_validate(payload))

        assert item.format == ("LP",)

    def test_artists_fall_back_to_folder_listing(self) -> None:
        payload = release_payload(101)
        payload["artists"] = []
        release = DiscogsRelease.model_validate(payload)
        folder_item = CollectionItem.model_validate(collection_item_payload(101, artist="Portishead"))

        assert map_release_to_catalog_item(release, folder_item).artist == "Portishead"

    def test_display_label_strips_disambiguator(self) -> None:
        assert _item(artist="Haim (2)").display_label == "Haim - OK Computer"


def test_clean_artist_name() -> None:
    assert clean_artist_name("Haim (2)") == "Haim"
    assert clean_artist_name("The The") == "The The"
    assert clean_artist_name("") == ""


# ---------------------------------------------------------------------------
# Price snapshot assembly
# ---------------------------------------------------------------------------


class TestBuildPriceSnapshot:

    def test_lowest_price_is_estimated_value(self) -> None:
        stats = MarketplaceStats.model_validate(stats_payload("24.99", num_for_sale=5))

        price = build_price_snapshot(101, stats, None, "Near Mint (NM)", NOW)

        assert price is not None
        assert price.estimated_value == Decimal("24.99")
        assert price.num_for_sale == 5
        assert price.suggested_price is None

    def test_suggestion_for_media_condition(self) -> None:
        stats = MarketplaceStats.model_validate(stats_payload("24.99"))
        suggestions = PriceSuggestions.model_validate(
            {
                "Near Mint (NM or M-)": {"currency": "USD", "value": "35.00"},
                "Very Good (VG)": {"currency": "USD", "value": "18.00"},
            }
        )

        price = build_price_snapshot(101, stats, suggestions, "Very Good (VG)", NOW)

        assert price.suggested_price == Decimal("18.00")
        assert price.estimated_value == Decimal("24.99")

    def test_no_data_is_none(self) -> None:
        stats = MarketplaceStats.model_validate(stats_payload(None, num_for_sale=0))

        assert build_price_snapshot(101, stats, None, "Near Mint (NM)", NOW) is None
        assert build_price_snapshot(101, None, None, "Near Mint (NM)", NOW) is None


# ---------------------------------------------------------------------------
# Insert, merge and price refresh
# ---------------------------------------------------------------------------


class TestBuildRecord:

    def test_new_record_defaults(self) -> None:
        record = build_record(_item(notes="Gatefold sleeve"), _price(), NOW)

        assert uuid.UUID(record.id).version == 4
        assert record.discogs_release_id == 101
        assert record.purchase_price is None
        assert record.tags == []
        assert record.storage_location == ""
        assert record.notes == "Gatefold sleeve"
        assert record.media_condition == "Near Mint (NM)"
        assert record.sleeve_condition == "Near Mint (NM)"
        assert record.purchase_date == "2023-03-14T10:00:00-07:00"
        assert record.purchase_currency == "USD"
        assert record.created_at == record.updated_at == NOW

    def test_prices_without_purchase_price_have_no_gain_loss(self) -> None:
        record = build_record(_item(), _price("30.00"), NOW)

        assert record.estimated_value == Decimal("30.00")
        assert record.current_lowest_price == Decimal("30.00")
        assert record.suggested_price == Decimal("30.00")
        assert record.last_price_update == NOW
        assert record.gain_loss is None
        assert record.gain_loss_percentage is None

    def test_no_price_data(self) -> None:
        record = build_record(_item(), None, NOW)

        assert record.estimated_value is None
        assert record.last_price_update is None

    def test_id_avoids_existing_ids(self, monkeypatch) -> None:
        ids = iter(["taken", "fresh"])
        monkeypatch.setattr("vinylsync.pipeline.mapping.new_record_id", lambda: next(ids))

        record = build_record(_item(), None, NOW, existing_ids={"taken"})

        assert record.id == "fresh"


class TestMergeRecord:

    def test_user_fields_preserved_and_metadata_refreshed(self, owned_record_payload) -> None:
        existing = CollectionRecord.model_validate(owned_record_payload)

        merged = merge_record(existing, _item(), _price("40.00"))

        assert merged.id == existing.id
        assert merged.title == "OK Computer"
        assert merged.purchase_price == existing.purchase_price
        assert merged.storage_location == existing.storage_location
        assert merged.tags == existing.tags
        assert merged.notes == existing.notes
        assert merged.sleeve_condition == "Very Good Plus (VG+)"
        assert merged.model_extra == {"listenCount": 42}
        assert merged.estimated_value == Decimal("40.00")
        assert merged.gain_loss == Decimal("15.00")
        assert merged.gain_loss_percentage == Decimal("60")

    def test_previous_prices_kept_without_price_data(self, owned_record_payload) -> None:
        existing = CollectionRecord.model_validate(owned_record_payload)

        merged = merge_record(existing, _item(), None)

        assert merged.estimated_value == Decimal("30")
        assert merged.gain_loss == Decimal("5.00")


def test_apply_price_only_touches_price_fields(owned_record_payload) -> None:
    existing = CollectionRecord.model_validate(owned_record_payload)

    refreshed = apply_price(existing, _price("20.00", suggested="22.00"))

    assert refreshed.title == existing.title
    assert refreshed.estimated_value == Decimal("20.00")
    assert refreshed.suggested_price == Decimal("22.00")
    assert refreshed.gain_loss == Decimal("-5.00")
    assert prices_differ(existing, refreshed)
    assert not prices_differ(refreshed, refreshed)
