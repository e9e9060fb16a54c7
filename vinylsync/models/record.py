"""
CollectionRecord — one vinyl record in the local snapshot.

Field names serialize in camelCase to match the snapshot consumed by the web
app. Unknown fields written by the app are kept as extras and survive a sync.

Ownership rules:
- ``id`` is assigned once and never changes.
- USER_OWNED_FIELDS are never overwritten by a sync.
- METADATA_FIELDS are refreshed by a full sync.
- PRICE_FIELDS are refreshed whenever marketplace data is available.
- gain_loss / gain_loss_percentage are always derived, never stored by hand.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

from vinylsync.engine.valuation import calculate_gain_loss
from vinylsync.utils.condition_map import VinylCondition

# Money stays Decimal in memory and is written to JSON as a plain number
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


def utc_now_iso() -> str:
    """Timestamp in the snapshot's format, e.g. 2024-05-01T09:30:00.000Z."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def new_record_id() -> str:
    return str(uuid.uuid4())


def _restore_numbers(raw: Any, dumped: Any) -> Any:
    """
    Undo pydantic's Decimal → str conversion inside untyped extras.

    The snapshot is parsed with Decimal floats, so an unknown numeric field
    reaches the JSON dump as a Decimal and must be written back as a number.
    """
    if isinstance(raw, Decimal):
        return float(raw)
    if isinstance(raw, dict) and isinstance(dumped, dict):
        return {key: _restore_numbers(raw.get(key), value) for key, value in dumped.items()}
    if isinstance(raw, (list, tuple)) and isinstance(dumped, list) and len(raw) == len(dumped):
        return [_restore_numbers(r, d) for r, d in zip(raw, dumped)]
    return dumped


class Artist(BaseModel):
    """Artist credit carried on a record."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: int
    name: str
    role: str | None = None


METADATA_FIELDS: tuple[str, ...] = (
    "discogs_master_id",
    "artist",
    "artists",
    "title",
    "label",
    "catalog_number",
    "release_year",
    "country",
    "format",
    "genres",
    "styles",
    "cover_image_url",
)

USER_OWNED_FIELDS: tuple[str, ...] = (
    "purchase_price",
    "purchase_date",
    "purchase_currency",
    "storage_location",
    "tags",
    "notes",
    "sleeve_condition",
    "media_condition",
    "press_number",
    "color_variant",
    "weight",
)

PRICE_FIELDS: tuple[str, ...] = (
    "current_lowest_price",
    "num_for_sale",
    "suggested_price",
    "estimated_value",
)

BOOKKEEPING_FIELDS: frozenset[str] = frozenset(
    {"created_at", "updated_at", "last_synced_with_discogs", "last_price_update"}
)


class CollectionRecord(BaseModel):
    """A vinyl record owned by the user, optionally linked to a Discogs release."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    # Identity
    id: str = Field(default_factory=new_record_id)
    discogs_release_id: int | None = None
    discogs_master_id: int | None = None

    # Identifying metadata
    artist: str = ""
    artists: list[Artist] = Field(default_factory=list)
    title: str = ""
    label: str = ""
    catalog_number: str = ""
    release_year: int | None = None
    country: str = ""
    format: list[str] = Field(default_factory=list)
    genres: list[str] = Field(default_factory=list)
    styles: list[str] = Field(default_factory=list)
    cover_image_url: str = ""

    # Physical details (user-owned)
    sleeve_condition: str = VinylCondition.NEAR_MINT.value
    media_condition: str = VinylCondition.NEAR_MINT.value
    press_number: str | None = None
    color_variant: str | None = None
    weight: str | None = None

    # Collection metadata (user-owned)
    purchase_price: Money | None = None
    purchase_date: str | None = None
    purchase_currency: str = "USD"
    storage_location: str = ""
    tags: list[str] = Field(default_factory=list)
    notes: str = ""

    # Market data
    current_lowest_price: Money | None = None
    current_median_price: Money | None = None
    current_highest_price: Money | None = None
    num_for_sale: int | None = None
    suggested_price: Money | None = None
    last_price_update: str | None = None

    # Performance tracking
    estimated_value: Money | None = None
    gain_loss: Money | None = None
    gain_loss_percentage: Money | None = None

    # Bookkeeping
    created_at: str | None = None
    updated_at: str | None = None
    last_synced_with_discogs: str | None = None

    @property
    def display_label(self) -> str:
        return f"{self.artist or 'Unknown Artist'} - {self.title or 'Untitled'}"

    def with_gain_loss(self) -> CollectionRecord:
        """Copy with gain/loss recomputed from purchase price and estimated value."""
        gain_loss, gain_loss_percentage = calculate_gain_loss(
            self.purchase_price, self.estimated_value
        )
        return self.model_copy(
            update={"gain_loss": gain_loss, "gain_loss_percentage": gain_loss_percentage}
        )

    def to_snapshot_dict(self) -> dict[str, Any]:
        """JSON-ready dict in snapshot field order; absent values are omitted."""
        data = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        for key, value in (self.model_extra or {}).items():
            if key in data:
                data[key] = _restore_numbers(value, data[key])
        return data

    def content_fingerprint(self) -> dict[str, Any]:
        """Snapshot dict minus timestamps, used to detect real changes."""
        return self.model_dump(mode="json", exclude_none=True, exclude=set(BOOKKEEPING_FIELDS))
