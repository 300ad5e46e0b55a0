from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Literal, Mapping, Optional

if TYPE_CHECKING:
    from aligner.market import Market

Side = Literal["BUY", "SELL"]
OrderType = Literal["limit", "market"]
TimeInForce = Literal["GTC", "IOC", "FOK"]

ZERO = Decimal("0")


@dataclass(frozen=True)
class Balance:
    """Balance of one currency on one venue.

    Spot venues leave ``borrowed`` and ``interest`` at zero.
    """

    currency: str
    available: Decimal
    locked: Decimal = ZERO
    borrowed: Decimal = ZERO
    interest: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        """Total balance (available + locked)."""
        return self.available + self.locked

    @property
    def net(self) -> Decimal:
        """Net balance after margin liabilities."""
        return self.total - self.borrowed - self.interest

    def add(self, other: Balance) -> Balance:
        if other.currency != self.currency:
            raise ValueError(f"Cannot add {other.currency} balance to {self.currency} balance")
        return Balance(
            currency=self.currency,
            available=self.available + other.available,
            locked=self.locked + other.locked,
            borrowed=self.borrowed + other.borrowed,
            interest=self.interest + other.interest,
        )


BalanceMap = dict[str, Balance]


def add_balance_maps(left: Mapping[str, Balance], right: Mapping[str, Balance]) -> BalanceMap:
    """Sum two balance maps per currency without mutating either."""
    result: BalanceMap = dict(left)
    for currency, balance in right.items():
        existing = result.get(currency)
        result[currency] = balance if existing is None else existing.add(balance)
    return result


@dataclass(frozen=True)
class Ticker:
    """Top-of-book snapshot for a symbol."""

    symbol: str
    bid: Decimal
    ask: Decimal
    last: Optional[Decimal] = None


@dataclass(frozen=True)
class SubmitOrderPlan:
    """The single corrective order chosen for a currency in one cycle."""

    venue: str
    symbol: str
    side: Side
    quantity: Decimal
    price: Decimal
    market: Market
    time_in_force: TimeInForce = "GTC"
    order_type: OrderType = "limit"

    @property
    def notional(self) -> Decimal:
        return self.quantity * self.price


@dataclass(frozen=True)
class Order:
    """Order record returned by a venue after submission.

    Timestamps are timezone-aware (UTC).
    """

    id: str
    venue: str
    symbol: str
    side: Side
    quantity: Decimal
    price: Optional[Decimal]
    status: str = "new"
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
