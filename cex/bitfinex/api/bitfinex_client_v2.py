"""
Bitfinex API v2 Client - REST API Implementation
=================================================

REST client built on the requests library, covering what the aligner needs:

- Public API: ticker, pair trading rules
- Authenticated API: wallets, order submit, order cancel

All methods raise on HTTP or payload errors (requests.HTTPError, ValueError);
callers decide how to treat a failed venue call.

Usage:
    from cex.bitfinex.api.bitfinex_client_v2 import BitfinexClient

    client = BitfinexClient(api_key="...", api_secret="...")
    wallets = client.get_wallets()
    ticker = client.get_ticker("tBTCUSD")
"""

import os
from typing import Any, Dict, List, Optional

import requests

from cex.bitfinex.api.auth import build_auth_request


def normalize_symbol(symbol: str) -> str:
    """Add the trading-pair 't' prefix Bitfinex expects (BTCUSD -> tBTCUSD)."""
    if symbol.startswith('t') and symbol[1:2].isupper():
        return symbol
    return 't' + symbol


class BitfinexClient:
    """
    Bitfinex API v2 REST Client
    """

    BASE_URL = "https://api-pub.bitfinex.com/v2"
    AUTH_URL = "https://api.bitfinex.com/v2"
    TIMEOUT = 10

    def __init__(self, api_key: Optional[str] = None, api_secret: Optional[str] = None):
        """
        Initialize Bitfinex client.

        Args:
            api_key: API key for authenticated endpoints (falls back to BITFINEX_API_KEY)
            api_secret: API secret for authenticated endpoints (falls back to BITFINEX_API_SECRET)
        """
        self.api_key = api_key or os.getenv('BITFINEX_API_KEY')
        self.api_secret = api_secret or os.getenv('BITFINEX_API_SECRET')

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key and self.api_secret and self.api_key.strip() and self.api_secret.strip())

    def _require_credentials(self) -> None:
        if not self.has_credentials:
            raise ValueError("API key and secret required for authenticated endpoints")

    def _auth_post(self, path: str, body: Optional[Dict[str, Any]] = None) -> Any:
        self._require_credentials()
        headers, payload = build_auth_request(self.api_key, self.api_secret, f"/v2{path}", body)
        response = requests.post(
            f"{self.AUTH_URL}{path}",
            headers=headers,
            data=payload,
            timeout=self.TIMEOUT,
        )
        if not response.ok:
            # Error body is ["error", CODE, MESSAGE]; keep it in the exception text
            raise requests.HTTPError(
                f"{response.status_code} error for {path}: {response.text}", response=response
            )
        return response.json()

    # ==================== Public API Methods ====================

    def get_ticker(self, symbol: str) -> Dict[str, Any]:
        """
        Get ticker for a trading pair.

        Args:
            symbol: Trading pair symbol ('tBTCUSD' or 'BTCUSD')

        Returns:
            Dict with bid, bid_size, ask, ask_size, last_price, volume, high, low
        """
        symbol = normalize_symbol(symbol)
        response = requests.get(f'{self.BASE_URL}/ticker/{symbol}', timeout=self.TIMEOUT)
        response.raise_for_status()

        # [BID, BID_SIZE, ASK, ASK_SIZE, DAILY_CHANGE, DAILY_CHANGE_RELATIVE, LAST_PRICE, VOLUME, HIGH, LOW]
        data = response.json()
        if not isinstance(data, list) or len(data) < 10:
            raise ValueError(f"Unexpected ticker payload for {symbol}: {data!r}")

        return {
            'symbol': symbol,
            'bid': data[0],
            'bid_size': data[1],
            'ask': data[2],
            'ask_size': data[3],
            'last_price': data[6],
            'volume': data[7],
            'high': data[8],
            'low': data[9],
        }

    def get_pair_info(self) -> Dict[str, Dict[str, Any]]:
        """
        Get trading rules for all exchange pairs.

        Returns:
            Dict keyed by pair (e.g. 'BTCUSD') with min_order_size and max_order_size
        """
        response = requests.get(f'{self.BASE_URL}/conf/pub:info:pair', timeout=self.TIMEOUT)
        response.raise_for_status()

        # [[[PAIR, [?, ?, ?, MIN_ORDER_SIZE, MAX_ORDER_SIZE, ...]], ...]]
        data = response.json()
        if not isinstance(data, list) or not data or not isinstance(data[0], list):
            raise ValueError(f"Unexpected pair info payload: {data!r}")

        pairs: Dict[str, Dict[str, Any]] = {}
        for entry in data[0]:
            pair, info = entry[0], entry[1]
            pairs[pair] = {
                'min_order_size': info[3],
                'max_order_size': info[4],
            }
        return pairs

    # ==================== Authenticated API Methods ====================

    def get_wallets(self) -> List[Dict[str, Any]]:
        """
        Get all wallet balances (requires authentication).

        Returns:
            List of wallet dicts: type, currency, balance, unsettled_interest, available_balance
        """
        data = self._auth_post('/auth/r/wallets')

        # [[WALLET_TYPE, CURRENCY, BALANCE, UNSETTLED_INTEREST, AVAILABLE_BALANCE, ...], ...]
        return [
            {
                'type': w[0],
                'currency': w[1],
                'balance': w[2],
                'unsettled_interest': w[3],
                'available_balance': w[4],
            }
            for w in data
        ]

    def submit_order(self, symbol: str, amount: str, price: Optional[str] = None,
                     order_type: str = 'EXCHANGE LIMIT', flags: int = 0) -> Dict[str, Any]:
        """
        Submit a new order (requires authentication).

        Args:
            symbol: Trading pair symbol ('tBTCUSD' or 'BTCUSD')
            amount: Signed amount as string (positive buys, negative sells)
            price: Limit price as string (required for LIMIT orders)
            order_type: Bitfinex order type (EXCHANGE LIMIT, EXCHANGE MARKET, ...)
            flags: Order flags bitfield

        Returns:
            Dict with status, order_id and the raw notification
        """
        if 'LIMIT' in order_type and price is None:
            raise ValueError("limit orders require price")

        body: Dict[str, Any] = {
            'type': order_type,
            'symbol': normalize_symbol(symbol),
            'amount': amount,
            'flags': flags,
        }
        if price is not None:
            body['price'] = price

        # [MTS, TYPE, MESSAGE_ID, null, [ORDER, ...], CODE, STATUS, TEXT]
        result = self._auth_post('/auth/w/order/submit', body)
        status = result[6] if len(result) > 6 else None
        if status != 'SUCCESS':
            text = result[7] if len(result) > 7 else result
            raise ValueError(f"Bitfinex order submission failed: {text}")

        orders = result[4] or []
        return {
            'status': 'success',
            'order_id': orders[0][0] if orders else None,
            'data': result,
        }

    def cancel_order(self, order_id: int) -> Dict[str, Any]:
        """
        Cancel an active order (requires authentication).

        Args:
            order_id: Order ID to cancel

        Returns:
            Dict with cancellation confirmation
        """
        result = self._auth_post('/auth/w/order/cancel', {'id': int(order_id)})
        status = result[6] if len(result) > 6 else None
        if status != 'SUCCESS':
            text = result[7] if len(result) > 7 else result
            raise ValueError(f"Bitfinex order cancel failed: {text}")

        return {
            'status': 'success',
            'order_id': order_id,
            'data': result,
        }
