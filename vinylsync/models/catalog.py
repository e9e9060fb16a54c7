"""
Remote-sourced models: what Discogs says about a release and its price.

CatalogItem is immutable per fetch. PriceSnapshot is perishable and only
meaningful as of ``fetched_at``.
"""

from __future__ import annotations

import re
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from vinylsync.models.record import Artist

_DISAMBIGUATOR = re.compile(r"\s+\(\d+\)$")


def clean_artist_name(name: str) -> str:
    """Strip the Discogs disambiguator suffix: "Haim (2)" -> "Haim"."""
    if not name:
        return ""
    return _DISAMBIGUATOR.sub("", name).strip()


class CatalogItem(BaseModel):
    """Identifying metadata for one Discogs release in the user's collection."""

    model_config = ConfigDict(frozen=True)

    release_id: int
    master_id: int | None = None
    artist: str
    artists: tuple[Artist, ...] = ()
    title: str
    label: str = ""
    catalog_number: str = ""
    release_year: int | None = None
    country: str = ""
    format: tuple[str, ...] = ()
    genres: tuple[str, ...] = ()
    styles: tuple[str, ...] = ()
    cover_image_url: str = ""
    notes: str = ""
    date_added: str | None = None

    @property
    def display_label(self) -> str:
        return f"{clean_artist_name(self.artist)} - {self.title}"


class PriceSnapshot(BaseModel):
    """Marketplace pricing for a release at query time."""

    model_config = ConfigDict(frozen=True)

    release_id: int
    lowest_price: Decimal | None = None
    currency: str | None = None
    num_for_sale: int = 0
    suggested_price: Decimal | None = None
    fetched_at: str = Field(..., description="ISO timestamp of the query")

    @property
    def estimated_value(self) -> Decimal | None:
        """Marketplace lowest asking price is the single source of truth."""
        return self.lowest_price

    @property
    def has_data(self) -> bool:
        return self.lowest_price is not None or self.suggested_price is not None
