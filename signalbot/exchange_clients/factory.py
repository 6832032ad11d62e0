"""
Exchange Client Factory

Builds the ExchangeClient for a bot: a ccxt-backed client for live bots,
or a PaperTradingClient for paper bots. Construction only; no network I/O
happens here, and unknown or disabled exchanges are rejected before any
client object exists.
"""

import logging
from typing import Dict, Optional

from signalbot.exchange_clients.base import ExchangeClient
from signalbot.exchange_clients.registry import get_exchange_plugin
from signalbot.exchange_clients.types import ResolvedCredentials

logger = logging.getLogger(__name__)


def create_exchange_client(
    exchange_id: str,
    credentials: Optional[ResolvedCredentials] = None,
    paper: bool = False,
    paper_balances: Optional[Dict[str, float]] = None,
) -> ExchangeClient:
    """
    Factory function to create the appropriate exchange client.

    Args:
        exchange_id: Registered plugin id ("bitget", "hyperliquid")
        credentials: Decrypted credentials; None gives a public-data-only client
        paper: Build a simulated client instead of a live one
        paper_balances: Starting balances for the simulated client

    Returns:
        ExchangeClient instance (CcxtExchangeClient or PaperTradingClient)

    Raises:
        UnsupportedExchangeError: exchange id unknown or disabled
    """
    plugin = get_exchange_plugin(exchange_id)

    if paper:
        from signalbot.exchange_clients.paper_trading_client import PaperTradingClient

        logger.info(f"Creating paper trading client for {plugin.id}")
        return PaperTradingClient(
            exchange_id=plugin.id,
            balances=paper_balances,
            settlement_currency=plugin.fixed_buy_currency,
        )

    import ccxt.async_support as ccxt

    from signalbot.exchange_clients.ccxt_client import CcxtExchangeClient

    exchange_class = getattr(ccxt, plugin.ccxt_id)
    options = plugin.build_client_options(credentials)

    logger.info(
        f"Creating {plugin.label} client (has_credentials={credentials is not None}, "
        f"has_secret={bool(credentials and credentials.api_secret)}, "
        f"has_password={bool(credentials and credentials.password)})"
    )
    return CcxtExchangeClient(plugin.id, exchange_class(options))
