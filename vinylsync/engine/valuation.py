"""
Vinyl Sync — Gain/Loss Valuation

GainLoss = EstimatedValue - PurchasePrice
GainLossPercentage = GainLoss / PurchasePrice * 100

Both are absent (None), never zero, unless purchase price and estimated value
are both known. The percentage is also absent when the purchase price is 0.
"""

from __future__ import annotations

from decimal import Decimal

_HUNDRED = Decimal("100")
_ZERO = Decimal("0")


def calculate_gain_loss(
    purchase_price: Decimal | None,
    estimated_value: Decimal | None,
) -> tuple[Decimal | None, Decimal | None]:
    """
    Derive gain/loss from what was paid and what the record is worth now.

    Args:
        purchase_price: What the owner paid, if recorded.
        estimated_value: Current market estimate, if known.

    Returns:
        Tuple of (gain_loss, gain_loss_percentage). Either may be None.
    """
    if purchase_price is None or estimated_value is None:
        return None, None

    gain_loss = estimated_value - purchase_price
    if purchase_price == _ZERO:
        return gain_loss, None

    return gain_loss, gain_loss / purchase_price * _HUNDRED
