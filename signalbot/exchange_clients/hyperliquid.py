"""
Hyperliquid venue plugin

The API key is the wallet address; the optional secret is the wallet's
private key used for signing. Quirks:
- balances are queried per wallet ("user") and per account type
- buys always spend USDC, whatever the symbol says
- spot balances list wrapped assets (UBTC, UETH, USOL)
- amounts are truncated to 5 decimals
- market orders need a price hint, used with `slippage` to bound the fill
"""

from typing import Any, Dict, Optional

from signalbot.currency_utils import is_derivative_symbol
from signalbot.exchange_clients.types import ExchangePlugin, ResolvedCredentials


def _hyperliquid_options(credentials: Optional[ResolvedCredentials]) -> Dict[str, Any]:
    options: Dict[str, Any] = {}
    if credentials is None:
        return options
    if credentials.api_key:
        options["apiKey"] = credentials.api_key
        options["walletAddress"] = credentials.api_key
    if credentials.api_secret:
        options["secret"] = credentials.api_secret
        options["privateKey"] = credentials.api_secret
    return options


def _hyperliquid_balance_params(credentials: Optional[ResolvedCredentials], symbol: str) -> Dict[str, Any]:
    params: Dict[str, Any] = {"type": "swap" if is_derivative_symbol(symbol) else "spot"}
    if credentials is not None and credentials.api_key:
        params["user"] = credentials.api_key
    return params


hyperliquid_plugin = ExchangePlugin(
    id="hyperliquid",
    label="Hyperliquid",
    ccxt_id="hyperliquid",
    required_credentials=("api_key",),
    optional_credentials=("api_secret",),
    timeout_ms=15000,  # Requests to the info endpoint can hang
    client_options=_hyperliquid_options,
    get_balance_params=_hyperliquid_balance_params,
    amount_decimals=5,
    fixed_buy_currency="USDC",
    currency_aliases={
        "BTC": ["UBTC"],
        "ETH": ["UETH"],
        "SOL": ["USOL"],
    },
    market_price_policy="always",
    slippage=0.05,
)
