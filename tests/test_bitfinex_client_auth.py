"""
Unit tests for BitfinexClient.

Tests public and authenticated calls with mocked HTTP requests.
"""

import json
from unittest.mock import Mock, patch

import pytest
import requests

from cex.bitfinex.api.bitfinex_client_v2 import BitfinexClient, normalize_symbol


def _response(payload) -> Mock:
    response = Mock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


class TestNormalizeSymbol:
    def test_adds_prefix(self) -> None:
        assert normalize_symbol("BTCUSD") == "tBTCUSD"
        assert normalize_symbol("TRXUSD") == "tTRXUSD"

    def test_keeps_prefixed(self) -> None:
        assert normalize_symbol("tBTCUSD") == "tBTCUSD"


class TestBitfinexClientPublic:
    """Public endpoints."""

    @patch("cex.bitfinex.api.bitfinex_client_v2.requests.get")
    def test_get_ticker(self, mock_get: Mock) -> None:
        mock_get.return_value = _response([29999, 1.2, 30001, 0.8, 10, 0.01, 30000, 1234.5, 30500, 29500])

        ticker = BitfinexClient().get_ticker("BTCUSD")

        assert "ticker/tBTCUSD" in mock_get.call_args[0][0]
        assert ticker["bid"] == 29999
        assert ticker["ask"] == 30001
        assert ticker["last_price"] == 30000

    @patch("cex.bitfinex.api.bitfinex_client_v2.requests.get")
    def test_get_ticker_rejects_short_payload(self, mock_get: Mock) -> None:
        mock_get.return_value = _response(["error", 10020, "symbol: invalid"])

        with pytest.raises(ValueError, match="Unexpected ticker payload"):
            BitfinexClient().get_ticker("NOPE")

    @patch("cex.bitfinex.api.bitfinex_client_v2.requests.get")
    def test_get_ticker_propagates_http_errors(self, mock_get: Mock) -> None:
        response = _response([])
        response.raise_for_status.side_effect = RuntimeError("503")
        mock_get.return_value = response

        with pytest.raises(RuntimeError, match="503"):
            BitfinexClient().get_ticker("BTCUSD")

    @patch("cex.bitfinex.api.bitfinex_client_v2.requests.get")
    def test_get_pair_info(self, mock_get: Mock) -> None:
        mock_get.return_value = _response(
            [[
                ["BTCUSD", [None, None, None, "0.00006", "2000.0", None, None, None, 0.2, 0.1]],
                ["TESTBTC:TESTUSD", [None, None, None, "0.0006", "2000.0", None, None, None, 0.2, 0.1]],
            ]]
        )

        pairs = BitfinexClient().get_pair_info()

        assert pairs["BTCUSD"]["min_order_size"] == "0.00006"
        assert pairs["TESTBTC:TESTUSD"]["max_order_size"] == "2000.0"


class TestBitfinexClientAuth:
    """Authenticated endpoints."""

    @patch.dict("os.environ", {}, clear=True)
    def test_get_wallets_requires_api_credentials(self) -> None:
        client = BitfinexClient()

        with pytest.raises(ValueError, match="API key and secret required"):
            client.get_wallets()

    @patch("cex.bitfinex.api.bitfinex_client_v2.requests.post")
    def test_get_wallets_calls_auth_endpoint(self, mock_post: Mock) -> None:
        mock_post.return_value = _response([])

        BitfinexClient(api_key="test_key", api_secret="test_secret").get_wallets()

        mock_post.assert_called_once()
        assert mock_post.call_args[0][0] == "https://api.bitfinex.com/v2/auth/r/wallets"
        headers = mock_post.call_args[1]["headers"]
        assert headers["bfx-apikey"] == "test_key"
        assert len(headers["bfx-signature"]) == 96
        assert mock_post.call_args[1]["data"] == "{}"

    @patch("cex.bitfinex.api.bitfinex_client_v2.requests.post")
    def test_get_wallets_parses_response(self, mock_post: Mock) -> None:
        mock_post.return_value = _response(
            [
                ["exchange", "BTC", 1.5, 0.0, 1.5],
                ["exchange", "USD", 10000.0, 0.0, None],
                ["margin", "ETH", 5.0, 0.1, 4.9],
            ]
        )

        wallets = BitfinexClient(api_key="k", api_secret="s").get_wallets()

        assert len(wallets) == 3
        assert wallets[0] == {
            "type": "exchange",
            "currency": "BTC",
            "balance": 1.5,
            "unsettled_interest": 0.0,
            "available_balance": 1.5,
        }
        assert wallets[1]["available_balance"] is None
        assert wallets[2]["type"] == "margin"

    @patch("cex.bitfinex.api.bitfinex_client_v2.requests.post")
    def test_submit_order(self, mock_post: Mock) -> None:
        mock_post.return_value = _response(
            [1700000000000, "on-req", None, None, [[123456, None, 1, "tBTCUSD"]], None, "SUCCESS", "Submitting 1 orders."]
        )

        result = BitfinexClient(api_key="k", api_secret="s").submit_order(
            symbol="BTCUSD", amount="-0.5", price="30000"
        )

        assert result["order_id"] == 123456
        assert mock_post.call_args[0][0].endswith("/auth/w/order/submit")
        body = json.loads(mock_post.call_args[1]["data"])
        assert body == {"type": "EXCHANGE LIMIT", "symbol": "tBTCUSD", "amount": "-0.5", "flags": 0, "price": "30000"}

    @patch("cex.bitfinex.api.bitfinex_client_v2.requests.post")
    def test_submit_order_error_status(self, mock_post: Mock) -> None:
        mock_post.return_value = _response(
            [1700000000000, "on-req", None, None, [], None, "ERROR", "Invalid order: not enough exchange balance"]
        )

        with pytest.raises(ValueError, match="not enough exchange balance"):
            BitfinexClient(api_key="k", api_secret="s").submit_order(symbol="BTCUSD", amount="1", price="30000")

    def test_submit_limit_order_requires_price(self) -> None:
        with pytest.raises(ValueError, match="require price"):
            BitfinexClient(api_key="k", api_secret="s").submit_order(symbol="BTCUSD", amount="1")

    @patch("cex.bitfinex.api.bitfinex_client_v2.requests.post")
    def test_cancel_order(self, mock_post: Mock) -> None:
        mock_post.return_value = _response([1700000000000, "oc-req", None, None, [123456], None, "SUCCESS", "Submitted"])

        result = BitfinexClient(api_key="k", api_secret="s").cancel_order(123456)

        assert result["order_id"] == 123456
        assert json.loads(mock_post.call_args[1]["data"]) == {"id": 123456}

    @patch("cex.bitfinex.api.bitfinex_client_v2.requests.post")
    def test_http_error_keeps_error_body(self, mock_post: Mock) -> None:
        response = _response(None)
        response.ok = False
        response.status_code = 500
        response.text = '["error",10001,"Order not found."]'
        mock_post.return_value = response

        with pytest.raises(requests.HTTPError, match="Order not found"):
            BitfinexClient(api_key="k", api_secret="s").cancel_order(123456)
