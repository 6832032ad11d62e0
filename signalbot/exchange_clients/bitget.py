"""
Bitget venue plugin

Requires API key, secret and passphrase. Market buys carry a price so ccxt
can turn the base amount into a quote cost.
"""

from typing import Any, Dict, Optional

from signalbot.exchange_clients.types import ExchangePlugin, ResolvedCredentials


def _bitget_options(credentials: Optional[ResolvedCredentials]) -> Dict[str, Any]:
    options: Dict[str, Any] = {}
    if credentials is None:
        return options
    if credentials.api_key:
        options["apiKey"] = credentials.api_key
    if credentials.api_secret:
        options["secret"] = credentials.api_secret
    if credentials.password:
        options["password"] = credentials.password
    return options


def _bitget_balance_params(credentials: Optional[ResolvedCredentials], symbol: str) -> Dict[str, Any]:
    return {"type": "swap" if ":" in symbol else "spot"}


bitget_plugin = ExchangePlugin(
    id="bitget",
    label="Bitget",
    ccxt_id="bitget",
    required_credentials=("api_key", "api_secret", "password"),
    client_options=_bitget_options,
    get_balance_params=_bitget_balance_params,
    market_price_policy="buy_only",
)
