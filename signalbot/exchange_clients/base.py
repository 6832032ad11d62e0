"""
ExchangeClient Abstract Base Class

This module defines the interface every exchange client (real venues via
ccxt, and the paper trading simulator) must implement. The trading engine
only talks to this interface, so swapping a live client for a simulated one
is a construction-time decision, never a per-call check.

Return values follow ccxt's unified structures:
- tickers: {"symbol", "last", "bid", "ask", "high", "low", "baseVolume", ...}
- order books: {"bids": [[price, amount], ...], "asks": [[price, amount], ...]}
- OHLCV: [[timestamp_ms, open, high, low, close, volume], ...]
- balances: {"free": {...}, "used": {...}, "total": {...}, "<CCY>": {"free", "used", "total"}}
- orders: {"id", "amount", "price", "average", "filled", "status", ...}
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class ExchangeClient(ABC):
    """
    Abstract base class for all exchange clients.

    Attributes:
        id: Exchange id the client was built for (e.g. "bitget")
    """

    id: str = ""

    # ========================================
    # MARKET DATA METHODS
    # ========================================

    @abstractmethod
    async def load_markets(self) -> Dict[str, Dict[str, Any]]:
        """
        Load tradable markets.

        Returns:
            Mapping of unified symbol -> market description
        """
        pass

    @abstractmethod
    async def fetch_ticker(self, symbol: str) -> Dict[str, Any]:
        """Get the latest ticker for a symbol."""
        pass

    @abstractmethod
    async def fetch_order_book(self, symbol: str, limit: Optional[int] = None) -> Dict[str, Any]:
        """Get bids/asks for a symbol."""
        pass

    @abstractmethod
    async def fetch_ohlcv(
        self,
        symbol: str,
        timeframe: str = "1d",
        since: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[List[float]]:
        """
        Get historical OHLCV candles.

        Args:
            symbol: Unified symbol
            timeframe: ccxt timeframe ("1m", "1h", "1d", ...)
            since: Start timestamp in milliseconds
            limit: Max number of candles
        """
        pass

    # ========================================
    # ACCOUNT & ORDER METHODS
    # ========================================

    @abstractmethod
    async def fetch_balance(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Get balances.

        Args:
            params: Venue-specific query parameters (account type, wallet address)
        """
        pass

    @abstractmethod
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
        Submit an order.

        Args:
            symbol: Unified symbol
            type: "market" or "limit"
            side: "buy" or "sell"
            amount: Base currency amount
            price: Limit price, or a price hint for venues that need one on market orders
            params: Venue-specific extras (stopLoss, slippage, ...)

        Returns:
            ccxt order structure
        """
        pass

    async def close(self):
        """Release network resources. Default: nothing to release."""
        return None
