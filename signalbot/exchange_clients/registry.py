"""
Exchange plugin registry

Maps exchange ids to their ExchangePlugin. Exchanges listed in
DISABLED_EXCHANGES stay registered but are refused everywhere.
"""

import logging
from typing import Dict, List, Optional

from signalbot.config import settings
from signalbot.exceptions import UnsupportedExchangeError
from signalbot.exchange_clients.bitget import bitget_plugin
from signalbot.exchange_clients.hyperliquid import hyperliquid_plugin
from signalbot.exchange_clients.types import ExchangePlugin

logger = logging.getLogger(__name__)

PLUGINS: Dict[str, ExchangePlugin] = {
    bitget_plugin.id: bitget_plugin,
    hyperliquid_plugin.id: hyperliquid_plugin,
}


def _disabled() -> set:
    return settings.get_disabled_exchanges()


def normalize_exchange_id(exchange: Optional[str]) -> str:
    """
    Lower-case and check an exchange id.

    Raises:
        UnsupportedExchangeError: the id is not registered
    """
    normalized = (exchange or "").strip().lower()
    if normalized not in PLUGINS:
        raise UnsupportedExchangeError(f"Unsupported exchange: {exchange}")
    return normalized


def get_exchange_plugin(exchange: Optional[str]) -> ExchangePlugin:
    """
    Look up an enabled plugin.

    Raises:
        UnsupportedExchangeError: unknown or disabled exchange
    """
    normalized = normalize_exchange_id(exchange)
    if normalized in _disabled():
        logger.warning(f"Refusing disabled exchange {normalized}")
        raise UnsupportedExchangeError(f"Exchange {normalized} is disabled")
    return PLUGINS[normalized]


def list_enabled_exchanges() -> List[ExchangePlugin]:
    disabled = _disabled()
    return [plugin for plugin in PLUGINS.values() if plugin.id not in disabled]
