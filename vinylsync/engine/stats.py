"""
Vinyl Sync — Collection Statistics

Summary figures over a snapshot: totals, gain/loss, the biggest movers, and
breakdowns by condition and format. Pure function of the record list; no
network, no persistence.

Records without an estimated value count towards totals as 0 and are left
out of the gainer/loser/highest-valued rankings.
"""

from __future__ import annotations

from collections import Counter
from decimal import Decimal
from typing import TYPE_CHECKING, Iterable

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from vinylsync.models.record import CollectionRecord

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")

_EP_DESCRIPTORS = {"ep"}
_SINGLE_DESCRIPTORS = {"single", "7\"", "maxi-single"}
_LIMITED_TAGS = {"limited", "limited edition"}
_FIRST_PRESSING_TAGS = {"first pressing", "1st pressing"}


class RecordHighlight(BaseModel):
    """A single record singled out by the statistics."""
    id: str
    label: str
    value: Decimal


class CollectionStats(BaseModel):
    """Aggregate figures for one snapshot."""
    total_records: int = 0
    linked_records: int = 0
    total_value: Decimal = _ZERO
    total_invested: Decimal = _ZERO
    total_gain_loss: Decimal = _ZERO
    total_gain_loss_percentage: Decimal | None = None
    average_value: Decimal | None = None
    biggest_gainer: RecordHighlight | None = None
    biggest_loser: RecordHighlight | None = None
    highest_valued: RecordHighlight | None = None
    condition_counts: dict[str, int] = Field(default_factory=dict)
    lp_count: int = 0
    ep_count: int = 0
    single_count: int = 0
    colored_count: int = 0
    first_pressing_count: int = 0
    limited_count: int = 0
    unique_artists: int = 0
    unique_labels: int = 0
    unique_genres: int = 0


def _format_kind(descriptors: Iterable[str]) -> str:
    lowered = {d.strip().lower() for d in descriptors}
    if lowered & _SINGLE_DESCRIPTORS:
        return "single"
    if lowered & _EP_DESCRIPTORS:
        return "ep"
    return "lp"


def _tagged(record: CollectionRecord, tags: set[str]) -> bool:
    return any(tag.strip().lower() in tags for tag in record.tags)


def calculate_collection_stats(records: Iterable[CollectionRecord]) -> CollectionStats:
    """
    Compute CollectionStats for ``records``.

    Gain/loss totals only include records where both purchase price and
    estimated value are known, mirroring the per-record derivation.
    """
    stats = CollectionStats()
    valued: list[CollectionRecord] = []
    movers: list[CollectionRecord] = []
    conditions: Counter[str] = Counter()
    artists: set[str] = set()
    labels: set[str] = set()
    genres: set[str] = set()
    invested_with_value = _ZERO

    for record in records:
        stats.total_records += 1
        if record.discogs_release_id is not None:
            stats.linked_records += 1

        if record.estimated_value is not None:
            stats.total_value += record.estimated_value
            valued.append(record)
        if record.purchase_price is not None:
            stats.total_invested += record.purchase_price
        if record.gain_loss is not None:
            stats.total_gain_loss += record.gain_loss
            invested_with_value += record.purchase_price or _ZERO
            movers.append(record)

        conditions[record.media_condition] += 1

        kind = _format_kind(record.format)
        if kind == "single":
            stats.single_count += 1
        elif kind == "ep":
            stats.ep_count += 1
        else:
            stats.lp_count += 1

        if record.color_variant:
            stats.colored_count += 1
        if _tagged(record, _FIRST_PRESSING_TAGS):
            stats.first_pressing_count += 1
        if _tagged(record, _LIMITED_TAGS):
            stats.limited_count += 1

        if record.artist:
            artists.add(record.artist)
        if record.label:
            labels.add(record.label)
        genres.update(record.genres)

    if stats.total_records:
        stats.average_value = stats.total_value / stats.total_records
    if invested_with_value > _ZERO:
        stats.total_gain_loss_percentage = stats.total_gain_loss / invested_with_value * _HUNDRED

    if valued:
        top = max(valued, key=lambda r: r.estimated_value)
        stats.highest_valued = RecordHighlight(
            id=top.id, label=top.display_label, value=top.estimated_value
        )
    if movers:
        gainer = max(movers, key=lambda r: r.gain_loss)
        loser = min(movers, key=lambda r: r.gain_loss)
        if gainer.gain_loss > _ZERO:
            stats.biggest_gainer = RecordHighlight(
                id=gainer.id, label=gainer.display_label, value=gainer.gain_loss
            )
        if loser.gain_loss < _ZERO:
            stats.biggest_loser = RecordHighlight(
                id=loser.id, label=loser.display_label, value=loser.gain_loss
            )

    stats.condition_counts = dict(conditions)
    stats.unique_artists = len(artists)
    stats.unique_labels = len(labels)
    stats.unique_genres = len(genres)
    return stats
