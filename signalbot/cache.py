"""
In-memory market data cache

Short-TTL cache of ticker / order book / OHLCV / market list responses,
keyed by (exchange, symbol, kind). Bounds exchange API call volume when
alerts arrive in bursts, and gives one execution a consistent price.

Cached prices are "recent", never "current". An alert-supplied price always
wins over anything read from here.
"""

import asyncio
import logging
import threading
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from signalbot.config import settings

logger = logging.getLogger(__name__)

TICKER = "ticker"
ORDER_BOOK = "orderBook"
OHLCV = "ohlcv"
MARKET_LIST = "marketList"

CacheKey = Tuple[str, str, str]


def default_ttls() -> Dict[str, float]:
    return {
        TICKER: settings.cache_ticker_ttl,
        ORDER_BOOK: settings.cache_order_book_ttl,
        OHLCV: settings.cache_ohlcv_ttl,
    }


class CacheEntry:
    """Single cache entry, aged from the moment it was stored"""

    __slots__ = ("data", "stored_at")

    def __init__(self, data: Any, stored_at: float):
        self.data = data
        self.stored_at = stored_at

    def is_expired(self, now: float, ttl: float) -> bool:
        return now - self.stored_at > ttl


class MarketDataCache:
    """
    TTL cache for exchange market data.

    Entries expire purely by age and are removed lazily on read. The map is
    guarded by a threading.Lock, so get/set never await and are safe from
    both coroutines and worker threads. get_or_fetch adds single-flight
    protection so concurrent misses for one key share a single exchange call.
    """

    def __init__(
        self,
        ttls: Optional[Dict[str, float]] = None,
        default_ttl: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._ttls = default_ttls()
        if ttls:
            self._ttls.update(ttls)
        self._default_ttl = settings.cache_default_ttl if default_ttl is None else default_ttl
        self._clock = clock
        self._cache: Dict[CacheKey, CacheEntry] = {}
        self._lock = threading.Lock()
        # In-flight futures: key -> Future (prevents thundering herd)
        self._in_flight: Dict[CacheKey, asyncio.Future] = {}

        logger.info(
            f"Market data cache initialized (default={self._default_ttl}s, "
            f"ttls={self._ttls})"
        )

    @staticmethod
    def _key(exchange_id: str, symbol: str, kind: str) -> CacheKey:
        return (exchange_id.lower(), symbol, kind)

    def ttl_for(self, kind: str) -> float:
        return self._ttls.get(kind, self._default_ttl)

    def get(self, exchange_id: str, symbol: str, kind: str) -> Optional[Any]:
        """Get data if present and not expired, else None"""
        key = self._key(exchange_id, symbol, kind)
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None

            if entry.is_expired(self._clock(), self.ttl_for(kind)):
                del self._cache[key]
                return None

            return entry.data

    def set(self, exchange_id: str, symbol: str, kind: str, data: Any):
        key = self._key(exchange_id, symbol, kind)
        with self._lock:
            self._cache[key] = CacheEntry(data, self._clock())

    def clear(
        self,
        exchange_id: Optional[str] = None,
        symbol: Optional[str] = None,
        kind: Optional[str] = None,
    ) -> int:
        """
        Clear everything, or only entries matching every given key component.

        Returns:
            Number of entries removed
        """
        with self._lock:
            if exchange_id is None and symbol is None and kind is None:
                removed = len(self._cache)
                self._cache.clear()
                logger.info("Market data cache cleared")
                return removed

            wanted = (exchange_id.lower() if exchange_id else None, symbol, kind)
            doomed = [
                key for key in self._cache
                if all(w is None or w == part for w, part in zip(wanted, key))
            ]
            for key in doomed:
                del self._cache[key]

        logger.info(
            f"Market data cache entries cleared: {len(doomed)} "
            f"(exchange={exchange_id}, symbol={symbol}, kind={kind})"
        )
        return len(doomed)

    def cleanup_expired(self) -> int:
        """Remove all expired entries"""
        now = self._clock()
        with self._lock:
            expired = [
                key for key, entry in self._cache.items()
                if entry.is_expired(now, self.ttl_for(key[2]))
            ]
            for key in expired:
                del self._cache[key]
        return len(expired)

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "size": len(self._cache),
                "keys": [":".join(key) for key in self._cache],
            }

    async def get_or_fetch(
        self,
        exchange_id: str,
        symbol: str,
        kind: str,
        fetch_fn: Callable[[], Awaitable[Any]],
    ) -> Any:
        """
        Get from cache or fetch with single-flight protection.

        If the key is cached and valid, returns immediately.
        If not cached, the first caller fetches via fetch_fn while subsequent
        concurrent callers await the same result.
        """
        cached = self.get(exchange_id, symbol, kind)
        if cached is not None:
            return cached

        key = self._key(exchange_id, symbol, kind)
        if key in self._in_flight:
            return await self._in_flight[key]

        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        self._in_flight[key] = future

        try:
            result = await fetch_fn()
            self.set(exchange_id, symbol, kind, result)
            future.set_result(result)
            return result
        except Exception as exc:
            future.set_exception(exc)
            # Mark retrieved so a future nobody else awaited doesn't log a warning
            future.exception()
            raise
        finally:
            self._in_flight.pop(key, None)


# Global cache instance
market_cache = MarketDataCache()
