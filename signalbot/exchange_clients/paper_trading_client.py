"""
Paper Trading Exchange Client

Simulates order execution for paper trading bots without hitting real
exchanges. Uses a real client's ticker when one is supplied, otherwise a
fixed simulated price table, and fakes fills and balance updates in memory.
"""

import asyncio
import logging
import time
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from signalbot.currency_utils import get_currencies_from_pair
from signalbot.exchange_clients.base import ExchangeClient

logger = logging.getLogger(__name__)

# Simulated prices used when no real client is available
SIMULATED_PRICES = {
    "BTC": 65000.0,
    "ETH": 3500.0,
    "SOL": 150.0,
}
DEFAULT_SIMULATED_PRICE = 100.0

DEFAULT_PAPER_BALANCES = {
    "USDT": 10000.0,
    "USDC": 10000.0,
    "USD": 10000.0,
    "BTC": 0.1,
    "ETH": 1.0,
}

PAPER_FEE_RATE = 0.001  # 0.1% simulated taker fee


def get_simulated_price(symbol: str) -> float:
    base, _ = get_currencies_from_pair(symbol)
    return SIMULATED_PRICES.get(base, DEFAULT_SIMULATED_PRICE)


class PaperTradingClient(ExchangeClient):
    """
    Simulated exchange client for paper trading.

    Implements the full ExchangeClient interface so the trading engine
    can't tell it apart from a live venue.
    """

    def __init__(
        self,
        exchange_id: str,
        balances: Optional[Dict[str, float]] = None,
        real_client: Optional[ExchangeClient] = None,
        settlement_currency: Optional[str] = None,
    ):
        """
        Args:
            exchange_id: Venue being simulated (kept for cache keys and logs)
            balances: Starting virtual balances; defaults to DEFAULT_PAPER_BALANCES
            real_client: Optional live client used for prices only
            settlement_currency: Currency every fill is paid from and credited to
                (e.g. USDC on Hyperliquid); defaults to the symbol's quote
        """
        self.id = exchange_id
        self.real_client = real_client
        self.settlement_currency = settlement_currency
        self.balances: Dict[str, float] = dict(balances) if balances else dict(DEFAULT_PAPER_BALANCES)
        self.orders: Dict[str, Dict[str, Any]] = {}
        # Serialize balance check-and-modify within this client
        self._balance_lock = asyncio.Lock()

        logger.info(f"Initialized paper trading client for {exchange_id}")

    async def get_price(self, symbol: str) -> float:
        if self.real_client:
            ticker = await self.real_client.fetch_ticker(symbol)
            if ticker.get("last"):
                return float(ticker["last"])
        return get_simulated_price(symbol)

    async def load_markets(self) -> Dict[str, Dict[str, Any]]:
        if self.real_client:
            return await self.real_client.load_markets()
        # Any symbol is tradable in simulation
        return {}

    async def fetch_ticker(self, symbol: str) -> Dict[str, Any]:
        price = await self.get_price(symbol)
        return {
            "symbol": symbol,
            "timestamp": int(time.time() * 1000),
            "last": price,
            "bid": price,
            "ask": price,
            "info": {"simulated": True},
        }

    async def fetch_order_book(self, symbol: str, limit: Optional[int] = None) -> Dict[str, Any]:
        price = await self.get_price(symbol)
        return {
            "symbol": symbol,
            "bids": [[price, 1.0]],
            "asks": [[price, 1.0]],
            "timestamp": int(time.time() * 1000),
        }

    async def fetch_ohlcv(
        self,
        symbol: str,
        timeframe: str = "1d",
        since: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[List[float]]:
        if self.real_client:
            return await self.real_client.fetch_ohlcv(symbol, timeframe, since, limit)
        price = get_simulated_price(symbol)
        return [[int(time.time() * 1000), price, price, price, price, 0.0]]

    async def fetch_balance(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        async with self._balance_lock:
            snapshot = dict(self.balances)

        balance: Dict[str, Any] = {"free": {}, "used": {}, "total": {}, "info": {"simulated": True}}
        for currency, amount in snapshot.items():
            balance[currency] = {"free": amount, "used": 0.0, "total": amount}
            balance["free"][currency] = amount
            balance["used"][currency] = 0.0
            balance["total"][currency] = amount
        return balance

    async def create_order(
        self,
        symbol: str,
        type: str,
        side: str,
        amount: float,
        price: Optional[float] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Simulate order placement and immediate fill.

        Limit orders fill at their limit price, market orders at the current
        (real or simulated) price. Both fill completely.
        """
        if amount is None or amount <= 0:
            raise ValueError(f"Invalid paper order amount: {amount}")

        base_currency, quote_currency = get_currencies_from_pair(symbol)
        quote_currency = self.settlement_currency or quote_currency
        if not quote_currency:
            raise ValueError(f"Cannot determine quote currency for {symbol}")

        # Price lookup happens outside the lock (may hit the network)
        fill_price = price if type == "limit" and price else await self.get_price(symbol)
        cost = amount * fill_price
        fee = cost * PAPER_FEE_RATE

        async with self._balance_lock:
            if side == "buy":
                available_quote = self.balances.get(quote_currency, 0.0)
                if available_quote < cost + fee:
                    raise ValueError(
                        f"Insufficient {quote_currency} balance. "
                        f"Available: {available_quote}, Required: {cost + fee}"
                    )
                self.balances[quote_currency] = available_quote - cost - fee
                self.balances[base_currency] = self.balances.get(base_currency, 0.0) + amount
            else:
                available_base = self.balances.get(base_currency, 0.0)
                if available_base < amount:
                    raise ValueError(
                        f"Insufficient {base_currency} balance. "
                        f"Available: {available_base}, Required: {amount}"
                    )
                self.balances[base_currency] = available_base - amount
                self.balances[quote_currency] = self.balances.get(quote_currency, 0.0) + cost - fee

        order_id = f"paper-{uuid.uuid4()}"
        now = datetime.utcnow()

        logger.info(
            f"Paper trade executed: {side.upper()} {amount:.8f} {base_currency} "
            f"at {fill_price:.8f} {quote_currency} (order_id: {order_id})"
        )

        order = {
            "id": order_id,
            "datetime": now.isoformat(),
            "timestamp": int(now.timestamp() * 1000),
            "status": "closed",
            "symbol": symbol,
            "type": type,
            "side": side,
            "price": fill_price,
            "average": fill_price,
            "amount": amount,
            "filled": amount,
            "remaining": 0.0,
            "cost": cost,
            "fee": {"cost": fee, "currency": quote_currency},
            "info": {"simulated": True, "params": dict(params or {})},
        }
        self.orders[order_id] = order
        return order

    async def close(self):
        if self.real_client:
            await self.real_client.close()
