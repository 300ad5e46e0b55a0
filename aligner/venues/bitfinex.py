"""Bitfinex spot venue backed by the REST client.

The client is synchronous; every call is offloaded to the default thread
executor so the run loop never blocks on HTTP.
"""

from __future__ import annotations

import asyncio
import logging
from decimal import ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_EVEN, Decimal
from typing import Any, Callable, Optional

from aligner.errors import OrderNotOpenError, VenueError
from aligner.market import Market
from aligner.types import ZERO, Balance, BalanceMap, Order, SubmitOrderPlan, Ticker
from cex.bitfinex.api.bitfinex_client_v2 import BitfinexClient


logger = logging.getLogger(__name__)

# Bitfinex accepts at most 5 significant digits and 8 decimals on prices.
PRICE_SIGNIFICANT_DIGITS = 5
PRICE_PRECISION = 8
VOLUME_PRECISION = 8

# Cancel rejections meaning the order already left the book
ORDER_NOT_OPEN_MARKERS = ("not found", "already closed", "already canceled", "already cancelled")


def format_price(price: Decimal, rounding: str = ROUND_HALF_EVEN) -> str:
    """Round a price to Bitfinex's significant-digit rule.

    Pass ROUND_FLOOR for buys and ROUND_CEILING for sells so rounding never
    makes an order more aggressive than the price it was planned at.
    """
    if price == 0:
        return "0"
    exponent = price.adjusted() - PRICE_SIGNIFICANT_DIGITS + 1
    exponent = max(exponent, -PRICE_PRECISION)
    rounded = price.quantize(Decimal(1).scaleb(exponent), rounding=rounding)
    return format(rounded.normalize(), "f")


def split_pair(pair: str) -> tuple[str, str]:
    """'BTCUSD' -> ('BTC', 'USD'); 'TESTBTC:TESTUSD' -> ('TESTBTC', 'TESTUSD')."""
    if ":" in pair:
        base, quote = pair.split(":", 1)
        return base, quote
    return pair[:3], pair[3:]


def _dec(value: Any) -> Decimal:
    return Decimal(str(value)) if value is not None else ZERO


class BitfinexVenueSession:
    """VenueSession for a Bitfinex exchange (spot) wallet."""

    def __init__(
        self,
        name: str = "bitfinex",
        *,
        client: Optional[BitfinexClient] = None,
        tick_size: Decimal = Decimal("0.00000001"),
    ) -> None:
        self.name = name
        self.client = client or BitfinexClient()
        self.tick_size = tick_size
        self._balances: BalanceMap = {}
        self._markets: dict[str, Market] = {}
        # Market symbol -> pair as Bitfinex names it (BTCUSD, DOGE:USD)
        self._pairs: dict[str, str] = {}

    async def _call(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, lambda: fn(*args, **kwargs))
        except Exception as exc:
            raise VenueError(f"{self.name}: {exc}", venue=self.name) from exc

    async def load_markets(self) -> None:
        """Fetch pair trading rules. Called once at startup."""
        pair_info = await self._call(self.client.get_pair_info)
        markets: dict[str, Market] = {}
        pairs: dict[str, str] = {}
        for pair, info in pair_info.items():
            base, quote = split_pair(pair)
            symbol = base + quote
            markets[symbol] = Market(
                symbol=symbol,
                base_currency=base,
                quote_currency=quote,
                tick_size=self.tick_size,
                price_precision=PRICE_PRECISION,
                volume_precision=VOLUME_PRECISION,
                min_quantity=_dec(info.get("min_order_size")),
            )
            pairs[symbol] = pair
        self._markets = markets
        self._pairs = pairs
        logger.info(f"Loaded {len(markets)} markets from {self.name}")

    async def refresh_account(self) -> None:
        wallets = await self._call(self.client.get_wallets)
        balances: BalanceMap = {}
        for wallet in wallets:
            if wallet["type"] != "exchange":
                continue
            total = _dec(wallet["balance"])
            available = total if wallet["available_balance"] is None else _dec(wallet["available_balance"])
            balances[wallet["currency"]] = Balance(
                currency=wallet["currency"],
                available=available,
                locked=total - available,
            )
        self._balances = balances

    def balances(self) -> BalanceMap:
        return dict(self._balances)

    def market(self, symbol: str) -> Optional[Market]:
        return self._markets.get(symbol)

    def wire_pair(self, symbol: str) -> str:
        return self._pairs.get(symbol, symbol)

    async def query_ticker(self, symbol: str) -> Ticker:
        data = await self._call(self.client.get_ticker, self.wire_pair(symbol))
        return Ticker(
            symbol=symbol,
            bid=_dec(data["bid"]),
            ask=_dec(data["ask"]),
            last=_dec(data.get("last_price")),
        )

    async def submit_order(self, plan: SubmitOrderPlan) -> Order:
        signed_amount = plan.quantity if plan.side == "BUY" else -plan.quantity
        order_type = "EXCHANGE LIMIT" if plan.order_type == "limit" else "EXCHANGE MARKET"
        rounding = ROUND_FLOOR if plan.side == "BUY" else ROUND_CEILING
        price = format_price(plan.price, rounding) if plan.order_type == "limit" else None

        result = await self._call(
            self.client.submit_order,
            symbol=self.wire_pair(plan.symbol),
            amount=format(signed_amount, "f"),
            price=price,
            order_type=order_type,
        )
        order_id = result.get("order_id")
        if order_id is None:
            raise VenueError(f"{self.name}: order submission returned no order id", venue=self.name)

        return Order(
            id=str(order_id),
            venue=self.name,
            symbol=plan.symbol,
            side=plan.side,
            quantity=plan.quantity,
            price=Decimal(price) if price is not None else None,
            status="submitted",
        )

    async def cancel_order(self, order: Order) -> None:
        try:
            await self._call(self.client.cancel_order, int(order.id))
        except VenueError as exc:
            message = str(exc).lower()
            if any(marker in message for marker in ORDER_NOT_OPEN_MARKERS):
                raise OrderNotOpenError(f"{self.name}: order {order.id} is not open", venue=self.name) from exc
            raise
