"""Shared test fixtures for pytest.

Provides market/ticker builders, paper venues and a default config used
across the aligner tests.
"""

from decimal import Decimal
from typing import Callable, Optional

import pytest

from aligner.config import AlignConfig, QuoteCurrencyPreference
from aligner.market import Market
from aligner.types import Ticker
from aligner.venues.paper import PaperVenueSession


def make_market(
    base: str,
    quote: str,
    *,
    tick_size: str = "1",
    price_precision: int = 2,
    volume_precision: int = 6,
    min_notional: str = "10",
    min_quantity: str = "0",
) -> Market:
    return Market(
        symbol=base + quote,
        base_currency=base,
        quote_currency=quote,
        tick_size=Decimal(tick_size),
        price_precision=price_precision,
        volume_precision=volume_precision,
        min_notional=Decimal(min_notional),
        min_quantity=Decimal(min_quantity),
    )


def make_ticker(symbol: str, bid: str, ask: str) -> Ticker:
    return Ticker(symbol=symbol, bid=Decimal(bid), ask=Decimal(ask))


@pytest.fixture
def market_factory() -> Callable[..., Market]:
    return make_market


@pytest.fixture
def ticker_factory() -> Callable[[str, str, str], Ticker]:
    return make_ticker


@pytest.fixture
def venue_a() -> PaperVenueSession:
    """Venue without a BTCUSDT market; lists ETH and XRP."""
    return PaperVenueSession(
        "venue_a",
        balances={"USDT": Decimal("5000"), "ETH": Decimal("1.5"), "XRP": Decimal("20")},
        markets=[
            make_market("ETH", "USDT", tick_size="0.01"),
            make_market("XRP", "USDT", tick_size="0.0001", price_precision=4, min_notional="30"),
        ],
        tickers=[
            make_ticker("ETHUSDT", "1999.99", "2000.01"),
            make_ticker("XRPUSDT", "0.4999", "0.5001"),
        ],
    )


@pytest.fixture
def venue_b() -> PaperVenueSession:
    """Venue with BTC/ETH/XRP markets against USDT."""
    return PaperVenueSession(
        "venue_b",
        balances={"USDT": Decimal("20000"), "BTC": Decimal("0.4"), "ETH": Decimal("0.5"), "XRP": Decimal("30")},
        markets=[
            make_market("BTC", "USDT", tick_size="1"),
            make_market("ETH", "USDT", tick_size="0.01"),
            make_market("XRP", "USDT", tick_size="0.0001", price_precision=4, min_notional="30"),
        ],
        tickers=[
            make_ticker("BTCUSDT", "29999", "30001"),
            make_ticker("ETHUSDT", "1999.99", "2000.01"),
            make_ticker("XRPUSDT", "0.4999", "0.5001"),
        ],
    )


@pytest.fixture
def quote_preference() -> QuoteCurrencyPreference:
    return QuoteCurrencyPreference(buy=("USDT",), sell=("USDT",))


@pytest.fixture
def config_factory(quote_preference: QuoteCurrencyPreference) -> Callable[..., AlignConfig]:
    def _build(
        expected: dict[str, str],
        *,
        sessions: tuple[str, ...] = ("venue_a", "venue_b"),
        dry_run: bool = False,
        use_taker_order: bool = False,
        quote_currencies: Optional[QuoteCurrencyPreference] = None,
        interval: float = 60.0,
    ) -> AlignConfig:
        return AlignConfig(
            interval=interval,
            sessions=sessions,
            quote_currencies=quote_currencies or quote_preference,
            expected_balances={cur: Decimal(v) for cur, v in expected.items()},
            use_taker_order=use_taker_order,
            dry_run=dry_run,
        )

    return _build
