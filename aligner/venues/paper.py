"""In-memory paper venue.

Simulates a spot exchange account: balances, listed markets, a top-of-book
ticker per symbol and a limit order book.

- Submitting a limit order locks the funds it needs (quote for BUY, base for SELL)
- Cancelling releases the locked funds
- ``update_price`` fills crossing orders at their limit price and settles balances
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Iterable, Mapping, Optional

from aligner.errors import VenueError
from aligner.market import Market
from aligner.types import ZERO, Balance, BalanceMap, Order, Side, SubmitOrderPlan, Ticker


logger = logging.getLogger(__name__)


@dataclass
class PaperOrder:
    """A pending paper limit order."""

    order_id: str
    symbol: str
    side: Side
    quantity: Decimal
    price: Decimal
    base_currency: str
    quote_currency: str


class PaperVenueSession:
    """Paper trading venue implementing the VenueSession protocol.

    The ``fail_*`` attributes make the matching call raise VenueError, which
    lets hosts and tests exercise the error paths.
    """

    def __init__(
        self,
        name: str,
        *,
        balances: Optional[Mapping[str, Decimal]] = None,
        markets: Iterable[Market] = (),
        tickers: Iterable[Ticker] = (),
    ) -> None:
        self.name = name
        self._ledger: dict[str, Balance] = {
            currency: Balance(currency=currency, available=amount) for currency, amount in (balances or {}).items()
        }
        self._snapshot: BalanceMap = {}
        self._markets = {market.symbol: market for market in markets}
        self._tickers = {ticker.symbol: ticker for ticker in tickers}
        self._orders: dict[str, PaperOrder] = {}
        self._ids = itertools.count(1)

        self.fail_refresh = False
        self.fail_ticker = False
        self.fail_submit = False
        self.fail_cancel = False
        self.refresh_count = 0
        self.submitted: list[SubmitOrderPlan] = []

    # ---- VenueSession ----

    async def refresh_account(self) -> None:
        if self.fail_refresh:
            raise VenueError(f"{self.name}: account refresh failed", venue=self.name)
        self.refresh_count += 1
        self._snapshot = dict(self._ledger)

    def balances(self) -> BalanceMap:
        return dict(self._snapshot)

    def market(self, symbol: str) -> Optional[Market]:
        return self._markets.get(symbol)

    async def query_ticker(self, symbol: str) -> Ticker:
        if self.fail_ticker:
            raise VenueError(f"{self.name}: ticker query failed for {symbol}", venue=self.name)
        ticker = self._tickers.get(symbol)
        if ticker is None:
            raise VenueError(f"{self.name}: no ticker for {symbol}", venue=self.name)
        return ticker

    async def submit_order(self, plan: SubmitOrderPlan) -> Order:
        if self.fail_submit:
            raise VenueError(f"{self.name}: order submission failed", venue=self.name)
        market = self._markets.get(plan.symbol)
        if market is None:
            raise VenueError(f"{self.name}: unknown symbol {plan.symbol}", venue=self.name)
        if plan.quantity <= 0 or plan.price <= 0:
            raise VenueError(f"{self.name}: invalid order {plan.quantity} @ {plan.price}", venue=self.name)

        if plan.side == "BUY":
            self._lock(market.quote_currency, market.round_price_up(plan.quantity * plan.price))
        else:
            self._lock(market.base_currency, plan.quantity)

        order_id = f"{self.name}-{next(self._ids)}"
        self._orders[order_id] = PaperOrder(
            order_id=order_id,
            symbol=plan.symbol,
            side=plan.side,
            quantity=plan.quantity,
            price=plan.price,
            base_currency=market.base_currency,
            quote_currency=market.quote_currency,
        )
        self.submitted.append(plan)
        logger.debug(f"Paper order {order_id}: {plan.side} {plan.quantity} {plan.symbol} @ {plan.price}")
        return Order(
            id=order_id,
            venue=self.name,
            symbol=plan.symbol,
            side=plan.side,
            quantity=plan.quantity,
            price=plan.price,
            status="open",
        )

    async def cancel_order(self, order: Order) -> None:
        if self.fail_cancel:
            raise VenueError(f"{self.name}: cancel failed for {order.id}", venue=self.name)
        pending = self._orders.pop(order.id, None)
        if pending is None:
            # Already filled or cancelled
            return
        currency, amount = self._locked_amount(pending)
        self._release(currency, amount)

    # ---- simulation ----

    def set_ticker(self, ticker: Ticker) -> None:
        self._tickers[ticker.symbol] = ticker

    def deposit(self, currency: str, amount: Decimal) -> None:
        balance = self._ledger.get(currency, Balance(currency=currency, available=ZERO))
        self._ledger[currency] = replace(balance, available=balance.available + amount)

    def open_order_ids(self) -> list[str]:
        return list(self._orders)

    def update_price(self, symbol: str, price: Decimal) -> list[PaperOrder]:
        """Fill orders on ``symbol`` that cross ``price``.

        BUY orders fill when price <= limit, SELL orders when price >= limit.
        """
        filled = [
            order
            for order in self._orders.values()
            if order.symbol == symbol
            and ((order.side == "BUY" and price <= order.price) or (order.side == "SELL" and price >= order.price))
        ]
        for order in filled:
            del self._orders[order.order_id]
            self._settle(order)
        return filled

    # ---- ledger helpers ----

    def _locked_amount(self, order: PaperOrder) -> tuple[str, Decimal]:
        if order.side == "BUY":
            market = self._markets[order.symbol]
            return order.quote_currency, market.round_price_up(order.quantity * order.price)
        return order.base_currency, order.quantity

    def _lock(self, currency: str, amount: Decimal) -> None:
        balance = self._ledger.get(currency)
        if balance is None or balance.available < amount:
            have = balance.available if balance is not None else ZERO
            raise VenueError(
                f"{self.name}: insufficient {currency} balance: have {have}, need {amount}",
                venue=self.name,
            )
        self._ledger[currency] = replace(balance, available=balance.available - amount, locked=balance.locked + amount)

    def _release(self, currency: str, amount: Decimal) -> None:
        balance = self._ledger[currency]
        self._ledger[currency] = replace(balance, available=balance.available + amount, locked=balance.locked - amount)

    def _settle(self, order: PaperOrder) -> None:
        locked_currency, locked = self._locked_amount(order)
        balance = self._ledger[locked_currency]
        self._ledger[locked_currency] = replace(balance, locked=balance.locked - locked)

        if order.side == "BUY":
            self.deposit(order.base_currency, order.quantity)
        else:
            self.deposit(order.quote_currency, order.quantity * order.price)
