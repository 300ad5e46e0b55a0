"""Per-market trading rules.

Rounding and minimum-size checks used when turning a corrective quantity
into a venue order. All arithmetic stays in ``Decimal``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_CEILING, ROUND_FLOOR, Decimal
from typing import Optional

# Venues round notional on their side; aim slightly above the minimum.
NOTIONAL_MODIFIER = Decimal("1.0001")


def _quantum(precision: int) -> Decimal:
    return Decimal(1).scaleb(-precision)


@dataclass(frozen=True)
class Market:
    """Trading rules for one symbol on one venue."""

    symbol: str
    base_currency: str
    quote_currency: str
    tick_size: Decimal
    price_precision: int
    volume_precision: int
    min_notional: Decimal = Decimal("0")
    min_quantity: Decimal = Decimal("0")
    step_size: Optional[Decimal] = None

    def round_price_up(self, value: Decimal) -> Decimal:
        """Round a price or quote amount up at ``price_precision`` decimals."""
        return value.quantize(_quantum(self.price_precision), rounding=ROUND_CEILING)

    def round_price_down(self, value: Decimal) -> Decimal:
        return value.quantize(_quantum(self.price_precision), rounding=ROUND_FLOOR)

    def round_up_quantity(self, quantity: Decimal) -> Decimal:
        """Round a quantity up to the step size (or volume precision when unset)."""
        if self.step_size is not None and self.step_size > 0:
            steps = (quantity / self.step_size).to_integral_value(rounding=ROUND_CEILING)
            return steps * self.step_size
        return quantity.quantize(_quantum(self.volume_precision), rounding=ROUND_CEILING)

    def adjust_quantity_by_min_notional(self, quantity: Decimal, price: Decimal) -> Decimal:
        """Raise ``quantity`` so that ``quantity * price`` meets the minimum notional."""
        if price <= 0 or self.min_notional <= 0:
            return quantity
        if quantity * price < self.min_notional:
            return self.round_up_quantity(self.min_notional * NOTIONAL_MODIFIER / price)
        return quantity

    def is_dust_quantity(self, quantity: Decimal, price: Decimal) -> bool:
        """True when an order of this size is below the market's minimums."""
        if quantity <= 0:
            return True
        if quantity < self.min_quantity:
            return True
        return quantity * price < self.min_notional
