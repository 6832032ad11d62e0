"""
Currency utilities for symbol parsing

Handles unified ccxt symbols ("BTC/USDT", "BTC/USDC:USDC"), dash pairs
("BTC-USD") and concatenated exchange symbols ("BTCUSDT").
"""

from typing import Optional, Tuple

# Quote suffixes tried longest-first when a symbol has no separator
_KNOWN_QUOTES = ("USDT", "USDC", "BUSD", "USDE", "FDUSD", "USD", "EUR", "BTC", "ETH")

# Quote currencies treated as dollar-denominated for minimum-notional checks
USD_QUOTES = frozenset({"USD", "USDT", "USDC", "BUSD", "USDE", "FDUSD", "DAI", "TUSD"})


def get_currencies_from_pair(symbol: str) -> Tuple[str, Optional[str]]:
    """
    Extract base and quote currencies from a symbol

    Args:
        symbol: Trading pair like "ETH/USDT", "BTC/USDC:USDC", "ADA-USD" or "SOLUSDT"

    Returns:
        Tuple of (base_currency, quote_currency); quote is None when it cannot be derived
        Example: "BTC/USDC:USDC" -> ("BTC", "USDC")
                 "SOLUSDT" -> ("SOL", "USDT")
                 "BTC" -> ("BTC", None)
    """
    # Strip the settlement suffix of derivative symbols
    pair = symbol.split(":", 1)[0].strip().upper()

    for separator in ("/", "-", "_"):
        if separator in pair:
            base, quote = pair.split(separator, 1)
            return (base, quote or None)

    for suffix in _KNOWN_QUOTES:
        if pair.endswith(suffix) and len(pair) > len(suffix):
            return (pair[:-len(suffix)], suffix)

    return (pair, None)


def get_quote_currency(symbol: str) -> Optional[str]:
    _, quote = get_currencies_from_pair(symbol)
    return quote


def get_base_currency(symbol: str) -> str:
    base, _ = get_currencies_from_pair(symbol)
    return base


def is_usd_quote(currency: Optional[str]) -> bool:
    return bool(currency) and currency.upper() in USD_QUOTES


def is_derivative_symbol(symbol: str) -> bool:
    """Unified ccxt swap/future symbols carry a settlement currency: "BTC/USDC:USDC" """
    return ":" in symbol
