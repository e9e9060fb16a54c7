"""
Vinyl Sync — Discogs → Collection Mapping

Pure functions that turn Discogs responses into CatalogItem / PriceSnapshot,
and CatalogItem / PriceSnapshot into CollectionRecord:

- build_record()      insert: fresh id, default user-owned fields
- merge_record()      update: user-owned fields copied forward untouched
- apply_price()       price refresh: only price-derived fields change

Every function recomputes gain/loss on the record it returns. None of them
touch timestamps except where a new record is created; the engine decides
whether a merge counts as a change.
"""

from __future__ import annotations

from decimal import Decimal

from vinylsync.config import settings
from vinylsync.models.catalog import CatalogItem, PriceSnapshot
from vinylsync.models.record import (
    PRICE_FIELDS,
    Artist,
    CollectionRecord,
    new_record_id,
)
from vinylsync.pipeline.discogs import (
    CollectionItem,
    DiscogsRelease,
    MarketplaceStats,
    PriceSuggestions,
)
from vinylsync.utils.condition_map import default_condition, price_suggestion_grade


def _cover_image(release: DiscogsRelease) -> str:
    primary = next((img.uri for img in release.images if img.type == "primary" and img.uri), None)
    if primary:
        return primary
    if release.images and release.images[0].uri:
        return release.images[0].uri
    return release.thumb or ""


def _format_descriptors(release: DiscogsRelease) -> tuple[str, ...]:
    if not release.formats:
        return (settings.DEFAULT_FORMAT,)
    first = release.formats[0]
    if first.descriptions:
        return tuple(first.descriptions)
    return (first.name or settings.DEFAULT_FORMAT,)


def map_release_to_catalog_item(
    release: DiscogsRelease,
    collection_item: CollectionItem | None = None,
) -> CatalogItem:
    """
    Flatten a full release (plus its folder membership) into a CatalogItem.

    Missing artists fall back to the folder listing's summary, then to
    "Unknown Artist". A year of 0 means unknown on Discogs and maps to None.
    """
    source_artists = release.artists
    if not source_artists and collection_item is not None:
        source_artists = collection_item.basic_information.artists

    artists = tuple(Artist(id=a.id, name=a.name, role=a.role or None) for a in source_artists)
    first_label = release.labels[0] if release.labels else None

    return CatalogItem(
        release_id=release.id,
        master_id=release.master_id or None,
        artist=artists[0].name if artists else "Unknown Artist",
        artists=artists,
        title=release.title
        or (collection_item.basic_information.title if collection_item else ""),
        label=first_label.name if first_label else "",
        catalog_number=first_label.catno if first_label else "",
        release_year=release.year or None,
        country=release.country or "",
        format=_format_descriptors(release),
        genres=tuple(release.genres),
        styles=tuple(release.styles),
        cover_image_url=_cover_image(release),
        notes=release.notes or "",
        date_added=collection_item.date_added if collection_item else None,
    )


def build_price_snapshot(
    release_id: int,
    stats: MarketplaceStats | None,
    suggestions: PriceSuggestions | None,
    condition: str,
    fetched_at: str,
) -> PriceSnapshot | None:
    """
    Combine marketplace stats and (optional) price suggestions.

    Returns None when neither source has any price for the release.
    """
    lowest = stats.lowest_price if stats is not None else None
    suggested = None
    if suggestions is not None:
        grade = suggestions.for_grade(price_suggestion_grade(condition))
        suggested = grade.value if grade is not None else None

    if lowest is None and suggested is None:
        return None

    return PriceSnapshot(
        release_id=release_id,
        lowest_price=lowest.value if lowest is not None else None,
        currency=lowest.currency if lowest is not None else None,
        num_for_sale=(stats.num_for_sale or 0) if stats is not None else 0,
        suggested_price=suggested,
        fetched_at=fetched_at,
    )


def _price_fields(price: PriceSnapshot) -> dict[str, Decimal | int | None]:
    lowest = price.lowest_price
    return {
        "current_lowest_price": lowest,
        "num_for_sale": price.num_for_sale,
        # Without a condition-specific suggestion the asking price stands in
        "suggested_price": price.suggested_price if price.suggested_price is not None else lowest,
        "estimated_value": price.estimated_value,
    }


def _metadata_fields(item: CatalogItem) -> dict[str, object]:
    return {
        "discogs_master_id": item.master_id,
        "artist": item.artist,
        "artists": list(item.artists),
        "title": item.title,
        "label": item.label,
        "catalog_number": item.catalog_number,
        "release_year": item.release_year,
        "country": item.country,
        "format": list(item.format),
        "genres": list(item.genres),
        "styles": list(item.styles),
        "cover_image_url": item.cover_image_url,
    }


def build_record(
    item: CatalogItem,
    price: PriceSnapshot | None,
    now: str,
    existing_ids: set[str] | None = None,
) -> CollectionRecord:
    """
    Create a brand-new CollectionRecord for a release seen for the first time.

    User-owned fields get their defaults: no purchase price, empty tags and
    storage location, default condition grades, the release notes, and the
    folder's date_added as purchase date.
    """
    record_id = new_record_id()
    while existing_ids is not None and record_id in existing_ids:
        record_id = new_record_id()

    condition = default_condition().value
    fields: dict[str, object] = {
        "id": record_id,
        "discogs_release_id": item.release_id,
        **_metadata_fields(item),
        "sleeve_condition": condition,
        "media_condition": condition,
        "purchase_date": item.date_added or now,
        "purchase_currency": settings.DEFAULT_CURRENCY,
        "storage_location": "",
        "tags": [],
        "notes": item.notes,
        "created_at": now,
        "updated_at": now,
        "last_synced_with_discogs": now,
    }
    if price is not None:
        fields.update(_price_fields(price))
        fields["last_price_update"] = price.fetched_at

    return CollectionRecord(**fields).with_gain_loss()


def merge_record(
    existing: CollectionRecord,
    item: CatalogItem,
    price: PriceSnapshot | None,
) -> CollectionRecord:
    """
    Refresh identifying metadata (and prices, when known) on an existing record.

    Identity, user-owned fields, extras, and timestamps are carried over
    unchanged; previous prices stay when ``price`` is None.
    """
    update: dict[str, object] = _metadata_fields(item)
    if price is not None:
        update.update(_price_fields(price))
    return existing.model_copy(update=update).with_gain_loss()


def apply_price(existing: CollectionRecord, price: PriceSnapshot) -> CollectionRecord:
    """Refresh only the price-derived fields of an existing record."""
    return existing.model_copy(update=_price_fields(price)).with_gain_loss()


def prices_differ(before: CollectionRecord, after: CollectionRecord) -> bool:
    return any(getattr(before, name) != getattr(after, name) for name in PRICE_FIELDS)
