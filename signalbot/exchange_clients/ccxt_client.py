"""
ccxt-backed Exchange Client

Thin wrapper around a ccxt.async_support exchange instance. ccxt already
speaks the unified structures the rest of the system uses, so this class
only adds logging and exposes the ExchangeClient interface.

ccxt exceptions propagate untouched; the trade executor classifies them.
"""

import logging
from typing import Any, Dict, List, Optional

from signalbot.exchange_clients.base import ExchangeClient

logger = logging.getLogger(__name__)


class CcxtExchangeClient(ExchangeClient):
    """ExchangeClient over a ccxt async exchange"""

    def __init__(self, exchange_id: str, exchange: Any):
        """
        Args:
            exchange_id: Plugin id this client was built for
            exchange: ccxt.async_support exchange instance
        """
        self.id = exchange_id
        self._exchange = exchange

    @property
    def exchange(self) -> Any:
        return self._exchange

    async def load_markets(self) -> Dict[str, Dict[str, Any]]:
        markets = await self._exchange.load_markets()
        logger.debug(f"{self.id}: loaded {len(markets)} markets")
        return markets

    async def fetch_ticker(self, symbol: str) -> Dict[str, Any]:
        return await self._exchange.fetch_ticker(symbol)

    async def fetch_order_book(self, symbol: str, limit: Optional[int] = None) -> Dict[str, Any]:
        return await self._exchange.fetch_order_book(symbol, limit)

    async def fetch_ohlcv(
        self,
        symbol: str,
        timeframe: str = "1d",
        since: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[List[float]]:
        return await self._exchange.fetch_ohlcv(symbol, timeframe, since, limit)

    async def fetch_balance(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self._exchange.fetch_balance(params or {})

    async def create_order(
        self,
        symbol: str,
        type: str,
        side: str,
        amount: float,
        price: Optional[float] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        logger.info(
            f"{self.id}: submitting {type} {side} {amount} {symbol}"
            + (f" @ {price}" if price is not None else "")
        )
        return await self._exchange.create_order(symbol, type, side, amount, price, params or {})

    async def close(self):
        await self._exchange.close()
