"""Venue, quote currency and price selection for a corrective order.

Candidates are visited in configured priority order (venues first, then
quote currencies within a venue) and the first feasible one wins. There is
no cross-venue price comparison.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Mapping, Optional, Sequence

from aligner.config import QuoteCurrencyPreference
from aligner.market import Market
from aligner.types import BalanceMap, Side, SubmitOrderPlan, Ticker
from aligner.venue import VenueSession


logger = logging.getLogger(__name__)


def buy_price(ticker: Ticker, market: Market, *, taker: bool) -> Decimal:
    """Taker crosses the spread; maker improves the bid by one tick without crossing."""
    if taker:
        return ticker.ask
    improved = ticker.bid + market.tick_size
    if improved < ticker.ask:
        return improved
    return ticker.bid


def sell_price(ticker: Ticker, market: Market, *, taker: bool) -> Decimal:
    if taker:
        return ticker.bid
    improved = ticker.ask - market.tick_size
    if improved > ticker.bid:
        return improved
    return ticker.ask


class _DustQuantity(Exception):
    """Sell candidate is below the market's minimums; abandon the currency."""


class VenuePriceSelector:
    def __init__(
        self,
        *,
        sessions: Sequence[VenueSession],
        quote_currencies: QuoteCurrencyPreference,
        use_taker_order: bool = False,
    ) -> None:
        self.sessions = list(sessions)
        self.quote_currencies = quote_currencies
        self.use_taker_order = use_taker_order

    async def select(
        self,
        currency: str,
        quantity: Decimal,
        balances: Optional[Mapping[str, BalanceMap]] = None,
    ) -> Optional[SubmitOrderPlan]:
        """Return the first feasible order plan for ``currency``, or None.

        Args:
            currency: Base currency to rebalance
            quantity: Signed corrective quantity (positive buys, negative sells)
            balances: Per-venue balances; defaults to each session's last refresh
        """
        if quantity == 0:
            return None

        side: Side = "BUY" if quantity > 0 else "SELL"
        quotes = self.quote_currencies.buy if side == "BUY" else self.quote_currencies.sell
        q0 = abs(quantity)

        for session in self.sessions:
            venue_balances = balances.get(session.name, {}) if balances is not None else session.balances()

            for quote_currency in quotes:
                symbol = currency + quote_currency
                market = session.market(symbol)
                if market is None:
                    continue

                try:
                    ticker = await session.query_ticker(symbol)
                except Exception as exc:
                    logger.error(f"Unable to query ticker on {session.name} {symbol}: {exc}")
                    continue

                try:
                    if side == "BUY":
                        plan = self._plan_buy(session.name, market, ticker, venue_balances, quote_currency, q0)
                    else:
                        plan = self._plan_sell(session.name, market, ticker, venue_balances, currency, q0)
                except _DustQuantity:
                    return None

                if plan is not None:
                    return plan

        return None

    def _plan_buy(
        self,
        venue: str,
        market: Market,
        ticker: Ticker,
        balances: BalanceMap,
        quote_currency: str,
        q0: Decimal,
    ) -> Optional[SubmitOrderPlan]:
        quote_balance = balances.get(quote_currency)
        if quote_balance is None:
            return None

        price = buy_price(ticker, market, taker=self.use_taker_order)

        # The min-notional bump can only raise the quantity, so the cost check
        # uses the final quantity.
        quantity = market.adjust_quantity_by_min_notional(q0, price)
        required = market.round_price_up(quantity * price)
        if required > quote_balance.available:
            logger.warning(
                f"{venue} {market.symbol}: required quote amount {required} > available {quote_balance.available}"
            )
            return None

        return SubmitOrderPlan(
            venue=venue,
            symbol=market.symbol,
            side="BUY",
            quantity=quantity,
            price=price,
            market=market,
        )

    def _plan_sell(
        self,
        venue: str,
        market: Market,
        ticker: Ticker,
        balances: BalanceMap,
        currency: str,
        q0: Decimal,
    ) -> Optional[SubmitOrderPlan]:
        base_balance = balances.get(currency)
        if base_balance is None:
            return None

        if q0 > base_balance.available:
            logger.warning(f"{venue} {market.symbol}: sell quantity {q0} > available {base_balance.available}")
            return None

        price = sell_price(ticker, market, taker=self.use_taker_order)
        if market.is_dust_quantity(q0, price):
            logger.info(f"{currency} dust quantity on {venue}: {q0} @ {price}")
            raise _DustQuantity()

        return SubmitOrderPlan(
            venue=venue,
            symbol=market.symbol,
            side="SELL",
            quantity=q0,
            price=price,
            market=market,
        )
