"""
Tests for signalbot/trading_engine/trade_executor.py
"""

import ccxt
import pytest
from unittest.mock import AsyncMock

from signalbot.exceptions import ExecutionError
from signalbot.exchange_clients.bitget import bitget_plugin
from signalbot.exchange_clients.hyperliquid import hyperliquid_plugin
from signalbot.schemas.signal import Signal
from signalbot.trading_engine.order_sizing import SizingResult
from signalbot.trading_engine.trade_executor import (
    build_order_request,
    classify_exchange_error,
    execute_order,
)


def _signal(**overrides):
    fields = {"bot_id": "1", "symbol": "BTC/USDT", "action": "buy"}
    fields.update(overrides)
    return Signal(**fields)


def _sizing(amount=0.01):
    return SizingResult(amount=amount, currency="USDT", source_balance=1000.0)


# =========================================================
# build_order_request
# =========================================================


class TestBuildOrderRequest:
    """Tests for build_order_request()"""

    def test_market_buy_carries_price_on_buy_only_venue(self):
        """Happy path: Bitget market buys send a price hint."""
        request = build_order_request(_signal(), _sizing(), bitget_plugin, 50000.0)
        assert request.type == "market"
        assert request.side == "buy"
        assert request.amount == 0.01
        assert request.price == 50000.0
        assert request.params == {}

    def test_market_sell_has_no_price_on_buy_only_venue(self):
        request = build_order_request(_signal(action="sell"), _sizing(), bitget_plugin, 50000.0)
        assert request.price is None

    def test_always_policy_prices_sells_and_adds_slippage(self):
        """Happy path: Hyperliquid market orders always carry price + slippage."""
        request = build_order_request(
            _signal(action="sell", symbol="BTC/USDC:USDC"), _sizing(), hyperliquid_plugin, 65000.0
        )
        assert request.price == 65000.0
        assert request.params == {"slippage": 0.05}

    def test_limit_order_when_alert_has_price(self):
        request = build_order_request(_signal(price=49000.0), _sizing(), bitget_plugin, 49000.0)
        assert request.type == "limit"
        assert request.price == 49000.0

    def test_buy_stop_loss_below_entry(self):
        request = build_order_request(_signal(stop_loss_percent=2), _sizing(), bitget_plugin, 50000.0)
        assert request.params["stopLoss"]["type"] == "market"
        assert request.params["stopLoss"]["stopPrice"] == pytest.approx(49000.0)

    def test_sell_stop_loss_above_entry(self):
        request = build_order_request(
            _signal(action="sell", stop_loss_percent=2), _sizing(), bitget_plugin, 50000.0
        )
        assert request.params["stopLoss"]["stopPrice"] == pytest.approx(51000.0)

    def test_symbol_formatted_by_plugin(self):
        plugin = bitget_plugin.__class__(
            id="fmt",
            label="Fmt",
            ccxt_id="bitget",
            required_credentials=(),
            format_symbol=lambda s: s.replace("/", ""),
        )
        request = build_order_request(_signal(), _sizing(), plugin, 50000.0)
        assert request.symbol == "BTCUSDT"


# =========================================================
# classify_exchange_error
# =========================================================


class TestClassifyExchangeError:
    @pytest.mark.parametrize(
        "error,kind",
        [
            (ccxt.AuthenticationError("bad key"), "authentication"),
            (ccxt.PermissionDenied("no trade permission"), "authentication"),
            (ccxt.InsufficientFunds("not enough"), "insufficient_funds"),
            (ccxt.InvalidOrder("min size"), "invalid_order"),
            (ccxt.BadSymbol("unknown market"), "invalid_order"),
            (ccxt.RateLimitExceeded("slow down"), "rate_limit"),
            (ccxt.DDoSProtection("blocked"), "rate_limit"),
            (ccxt.RequestTimeout("timeout"), "network"),
            (ccxt.ExchangeNotAvailable("maintenance"), "network"),
            (ccxt.NetworkError("reset"), "network"),
            (ccxt.ExchangeError("boom"), "exchange"),
            (RuntimeError("unexpected"), "exchange"),
        ],
    )
    def test_ccxt_errors(self, error, kind):
        assert classify_exchange_error(error) == kind

    def test_paper_trading_errors(self):
        """Edge case: simulated client raises ValueError."""
        assert classify_exchange_error(ValueError("Insufficient USDT balance")) == "insufficient_funds"
        assert classify_exchange_error(ValueError("Invalid paper order amount: 0")) == "invalid_order"


# =========================================================
# execute_order
# =========================================================


class TestExecuteOrder:
    """Tests for execute_order()"""

    async def test_submits_and_parses_order(self, mock_exchange_client):
        """Happy path: exchange response becomes an OrderResult."""
        result = await execute_order(
            mock_exchange_client, _signal(stop_loss_percent=1), _sizing(0.02), bitget_plugin, 50000.0
        )

        mock_exchange_client.create_order.assert_awaited_once_with(
            "BTC/USDT",
            "market",
            "buy",
            0.02,
            50000.0,
            {"stopLoss": {"stopPrice": pytest.approx(49500.0), "type": "market"}},
        )
        assert result.id == "test-order-123"
        assert result.amount == 0.02
        assert result.price == 50000.0
        assert result.status == "closed"

    async def test_insufficient_funds_is_not_retryable(self, mock_exchange_client):
        mock_exchange_client.create_order = AsyncMock(side_effect=ccxt.InsufficientFunds("no money"))

        with pytest.raises(ExecutionError) as exc_info:
            await execute_order(mock_exchange_client, _signal(), _sizing(), bitget_plugin, 50000.0)

        assert exc_info.value.kind == "insufficient_funds"
        assert exc_info.value.status_code == 402
        assert exc_info.value.retryable is False

    async def test_network_error_is_retryable(self, mock_exchange_client):
        mock_exchange_client.create_order = AsyncMock(side_effect=ccxt.RequestTimeout("timed out"))

        with pytest.raises(ExecutionError) as exc_info:
            await execute_order(mock_exchange_client, _signal(), _sizing(), bitget_plugin, 50000.0)

        assert exc_info.value.kind == "network"
        assert exc_info.value.retryable is True
        mock_exchange_client.create_order.assert_awaited_once()

    async def test_missing_order_id_fails(self, mock_exchange_client):
        """Failure: a response without an id can't be tracked."""
        mock_exchange_client.create_order = AsyncMock(return_value={"status": "open"})

        with pytest.raises(ExecutionError, match="no order id"):
            await execute_order(mock_exchange_client, _signal(), _sizing(), bitget_plugin, 50000.0)

    async def test_string_numbers_in_response(self, mock_exchange_client):
        """Edge case: some venues return numeric fields as strings."""
        mock_exchange_client.create_order = AsyncMock(return_value={
            "id": 987,
            "amount": "0.015",
            "price": None,
            "average": "50100.5",
            "status": "open",
        })

        result = await execute_order(mock_exchange_client, _signal(), _sizing(), bitget_plugin, 50000.0)

        assert result.id == "987"
        assert result.amount == 0.015
        assert result.price is None
        assert result.average == 50100.5
