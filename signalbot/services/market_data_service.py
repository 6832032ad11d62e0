"""
Market Data Service

Cache-first access to exchange market data. Every call goes through the
shared MarketDataCache so bursts of alerts for one symbol cost one
exchange round-trip per TTL window.
"""

import logging
from typing import Any, Dict, List, Optional

from signalbot.cache import MARKET_LIST, OHLCV, ORDER_BOOK, TICKER, MarketDataCache, market_cache
from signalbot.exceptions import InsufficientDataError, ValidationError
from signalbot.exchange_clients.base import ExchangeClient

logger = logging.getLogger(__name__)

# Symbol slot used for exchange-wide entries such as the market list
ALL_SYMBOLS = "all"


async def get_ticker(
    client: ExchangeClient, symbol: str, cache: MarketDataCache = market_cache
) -> Dict[str, Any]:
    return await cache.get_or_fetch(
        client.id, symbol, TICKER, lambda: client.fetch_ticker(symbol)
    )


async def get_order_book(
    client: ExchangeClient, symbol: str, cache: MarketDataCache = market_cache
) -> Dict[str, Any]:
    return await cache.get_or_fetch(
        client.id, symbol, ORDER_BOOK, lambda: client.fetch_order_book(symbol)
    )


async def get_ohlcv(
    client: ExchangeClient,
    symbol: str,
    timeframe: str = "1d",
    limit: Optional[int] = 1,
    cache: MarketDataCache = market_cache,
) -> List[List[float]]:
    return await cache.get_or_fetch(
        client.id, symbol, OHLCV, lambda: client.fetch_ohlcv(symbol, timeframe, None, limit)
    )


async def load_market_symbols(
    client: ExchangeClient, cache: MarketDataCache = market_cache
) -> List[str]:
    async def _fetch():
        markets = await client.load_markets()
        return list(markets.keys())

    return await cache.get_or_fetch(client.id, ALL_SYMBOLS, MARKET_LIST, _fetch)


async def validate_market(
    client: ExchangeClient, symbol: str, cache: MarketDataCache = market_cache
) -> None:
    """
    Check the symbol is listed on the exchange.

    An empty market list (paper trading without a live client) accepts any
    symbol.

    Raises:
        ValidationError: symbol not listed
    """
    symbols = await load_market_symbols(client, cache)
    if symbols and symbol not in symbols:
        logger.warning(f"{client.id}: symbol {symbol} not found among {len(symbols)} markets")
        raise ValidationError(f"Invalid market: {symbol} is not listed on {client.id}")


async def get_reference_price(
    client: ExchangeClient,
    symbol: str,
    alert_price: Optional[float] = None,
    cache: MarketDataCache = market_cache,
) -> float:
    """
    Price used for sizing and stop-loss math.

    The alert's own price wins; otherwise the (possibly cached) ticker's
    last price.

    Raises:
        InsufficientDataError: no alert price and the ticker has no usable last price
    """
    if alert_price:
        logger.info(f"Using alert price {alert_price} for {symbol}")
        return float(alert_price)

    ticker = await get_ticker(client, symbol, cache)
    last = ticker.get("last") if ticker else None
    if not last or float(last) <= 0:
        raise InsufficientDataError(f"Could not determine trade price for {symbol}")

    logger.info(f"Using market price {last} for {symbol}")
    return float(last)


def _top_levels(levels: List[List[float]], depth: int = 5) -> List[Dict[str, float]]:
    return [{"price": level[0], "amount": level[1]} for level in levels[:depth]]


async def fetch_market_data(
    client: ExchangeClient, symbol: str, format_symbol=None, cache: MarketDataCache = market_cache
) -> Dict[str, Any]:
    """Ticker, top-5 order book and latest daily candle for a symbol"""
    formatted = format_symbol(symbol) if format_symbol else symbol
    ticker = await get_ticker(client, formatted, cache)
    book = await get_order_book(client, formatted, cache)
    candles = await get_ohlcv(client, formatted, "1d", 1, cache)

    latest = None
    if candles:
        ts, open_, high, low, close, volume = candles[0][:6]
        latest = {
            "timestamp": ts,
            "open": open_,
            "high": high,
            "low": low,
            "close": close,
            "volume": volume,
        }

    return {
        "symbol": symbol,
        "formatted_symbol": formatted,
        "last_price": ticker.get("last"),
        "bid": ticker.get("bid"),
        "ask": ticker.get("ask"),
        "volume_24h": ticker.get("baseVolume") or ticker.get("quoteVolume"),
        "change_24h": ticker.get("percentage"),
        "high_24h": ticker.get("high"),
        "low_24h": ticker.get("low"),
        "order_book": {
            "bids": _top_levels(book.get("bids", [])),
            "asks": _top_levels(book.get("asks", [])),
        },
        "ohlcv": latest,
    }
