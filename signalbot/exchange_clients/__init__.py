"""
Exchange Client Abstraction Layer

This package provides a uniform interface over the supported venues. All
exchange clients implement the ExchangeClient abstract base class; venue
quirks are described by ExchangePlugin objects in the registry.

Supported venues:
- Bitget (via ccxt)
- Hyperliquid (via ccxt)
- Paper trading simulation for any registered venue

Usage:
    from signalbot.exchange_clients.factory import create_exchange_client

    exchange = create_exchange_client("bitget", credentials)
    ticker = await exchange.fetch_ticker("BTC/USDT")
"""

from signalbot.exchange_clients.base import ExchangeClient
from signalbot.exchange_clients.types import ExchangePlugin, OrderRequest, OrderResult, ResolvedCredentials

__all__ = ["ExchangeClient", "ExchangePlugin", "OrderRequest", "OrderResult", "ResolvedCredentials"]
