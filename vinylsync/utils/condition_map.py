"""
Vinyl Sync — Condition Grade Mapping

Discogs uses the Goldmine grading scale, but spells some grades differently
depending on the endpoint: collection/marketplace data says
"Near Mint (NM or M-)" while the local snapshot stores "Near Mint (NM)".
Price suggestions are keyed by the Discogs spelling.

Unknown grades fall back to the configured default so a malformed grade
never blocks an import.
"""

from __future__ import annotations

from enum import Enum

import structlog

from vinylsync.config import settings

logger = structlog.get_logger(__name__)


class VinylCondition(str, Enum):
    """Grades as stored on a CollectionRecord."""
    MINT = "Mint (M)"
    NEAR_MINT = "Near Mint (NM)"
    VERY_GOOD_PLUS = "Very Good Plus (VG+)"
    VERY_GOOD = "Very Good (VG)"
    GOOD_PLUS = "Good Plus (G+)"
    GOOD = "Good (G)"
    FAIR = "Fair (F)"
    POOR = "Poor (P)"


# ---------------------------------------------------------------------------
# Discogs spelling → local grade
# ---------------------------------------------------------------------------

_DISCOGS_TO_LOCAL: dict[str, VinylCondition] = {
    "Mint (M)": VinylCondition.MINT,
    "Near Mint (NM)": VinylCondition.NEAR_MINT,
    "Near Mint (NM or M-)": VinylCondition.NEAR_MINT,
    "Very Good Plus (VG+)": VinylCondition.VERY_GOOD_PLUS,
    "Very Good (VG)": VinylCondition.VERY_GOOD,
    "Good Plus (G+)": VinylCondition.GOOD_PLUS,
    "Good (G)": VinylCondition.GOOD,
    "Fair (F)": VinylCondition.FAIR,
    "Poor (P)": VinylCondition.POOR,
}

# Local grade → key used by /marketplace/price_suggestions
_PRICE_SUGGESTION_KEYS: dict[VinylCondition, str] = {
    VinylCondition.MINT: "Mint (M)",
    VinylCondition.NEAR_MINT: "Near Mint (NM or M-)",
    VinylCondition.VERY_GOOD_PLUS: "Very Good Plus (VG+)",
    VinylCondition.VERY_GOOD: "Very Good (VG)",
    VinylCondition.GOOD_PLUS: "Good Plus (G+)",
    VinylCondition.GOOD: "Good (G)",
    VinylCondition.FAIR: "Fair (F)",
    VinylCondition.POOR: "Poor (P)",
}


def default_condition() -> VinylCondition:
    """Grade assigned to newly imported records."""
    return VinylCondition(settings.DEFAULT_CONDITION)


def map_discogs_condition(raw: str | None) -> VinylCondition:
    """
    Map a Discogs condition string to a local VinylCondition.

    Args:
        raw: Grade as reported by Discogs (e.g. "Near Mint (NM or M-)").

    Returns:
        The matching VinylCondition, or the configured default when the
        grade is missing or unrecognised.
    """
    if not raw:
        return default_condition()

    mapped = _DISCOGS_TO_LOCAL.get(raw.strip())
    if mapped is None:
        fallback = default_condition()
        logger.debug(
            "condition_unrecognised",
            raw_condition=raw,
            fallback=fallback.value,
        )
        return fallback
    return mapped


def price_suggestion_grade(condition: VinylCondition | str) -> str:
    """Return the price-suggestion key for a local grade."""
    if not isinstance(condition, VinylCondition):
        condition = map_discogs_condition(condition)
    return _PRICE_SUGGESTION_KEYS[condition]
