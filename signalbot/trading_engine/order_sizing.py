"""
Order sizing

Turns a signal into a concrete base-currency amount. The sequence matters:

    explicit amount -> balance -> percentage -> precision -> minimum floor

Skipping the floor gets orders silently rejected on venues with a hard
minimum notional; skipping truncation gets "excess precision" rejections.
Whenever a safe amount can't be determined this module raises instead of
guessing.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from signalbot.config import settings
from signalbot.currency_utils import get_currencies_from_pair, is_usd_quote
from signalbot.exceptions import InsufficientDataError, SizingError
from signalbot.exchange_clients.base import ExchangeClient
from signalbot.exchange_clients.types import ExchangePlugin, ResolvedCredentials
from signalbot.precision import format_amount, truncate_amount
from signalbot.schemas.signal import Signal

logger = logging.getLogger(__name__)

DEFAULT_ORDER_SIZE_PERCENT = 100.0
MINIMUM_ORDER_BUFFER = 1.1  # Floor orders are sized 10% above the venue minimum


@dataclass(frozen=True)
class SizingResult:
    amount: float  # Base currency amount to submit
    currency: str  # Currency whose balance funded the order
    source_balance: float  # Free balance the percentage was applied to
    applied_minimum: bool = False
    percent: Optional[float] = None
    price: Optional[float] = None


def balance_currency(signal: Signal, plugin: ExchangePlugin) -> str:
    """
    Currency whose balance funds the order: quote for buys (or the venue's
    fixed buy currency), base for sells.

    Raises:
        InsufficientDataError: buy on a symbol whose quote can't be derived
    """
    base, quote = get_currencies_from_pair(signal.symbol)
    if signal.is_buy:
        currency = plugin.fixed_buy_currency or quote
        if not currency:
            raise InsufficientDataError(f"Cannot determine quote currency for {signal.symbol}")
        return currency
    return base


def candidate_currencies(currency: str, plugin: ExchangePlugin) -> List[str]:
    """The currency itself, then venue aliases, then configured aliases (deduplicated)"""
    candidates = [currency]
    for alias in plugin.currency_aliases.get(currency, []) + settings.currency_aliases.get(currency, []):
        if alias not in candidates:
            candidates.append(alias)
    return candidates


def _free_balance(balance: Dict[str, Any], currency: str) -> Optional[float]:
    """Free amount for a currency, or None when the currency isn't in the response"""
    entry = balance.get(currency)
    if isinstance(entry, dict) and entry.get("free") is not None:
        return float(entry["free"])
    free_map = balance.get("free")
    if isinstance(free_map, dict) and free_map.get(currency) is not None:
        return float(free_map[currency])
    return None


def pick_balance(balance: Dict[str, Any], candidates: List[str]) -> Tuple[str, float]:
    """
    First candidate with a positive free balance; otherwise the first one
    present at all (so a zero balance still reaches the minimum floor).

    Raises:
        InsufficientDataError: none of the candidates is in the response
    """
    present: List[Tuple[str, float]] = []
    for currency in candidates:
        free = _free_balance(balance, currency)
        if free is None:
            continue
        if free > 0:
            return currency, free
        present.append((currency, free))

    if present:
        return present[0]

    raise InsufficientDataError(
        f"Currency {candidates[0]} not found in balance (tried {', '.join(candidates)})"
    )


def resolve_percent(signal: Signal, bot) -> float:
    percent = signal.order_size_percent or getattr(bot, "order_size_percent", None) or DEFAULT_ORDER_SIZE_PERCENT
    if percent <= 0 or percent > 100:
        raise SizingError(f"Order size percentage must be in (0, 100], got {percent}")
    return float(percent)


def minimum_order_value(plugin: ExchangePlugin) -> float:
    return plugin.min_order_value or settings.min_order_value_usd


async def size_order(
    signal: Signal,
    client: ExchangeClient,
    bot,
    plugin: ExchangePlugin,
    credentials: Optional[ResolvedCredentials],
    price: float,
) -> SizingResult:
    """
    Compute the order amount for a signal.

    Args:
        signal: Validated signal
        client: Exchange client used for the balance query
        bot: Bot row (order_size_percent)
        plugin: Venue description
        credentials: Resolved credentials (some venues need them in balance params)
        price: Reference price (alert price or recent ticker)

    Returns:
        SizingResult with a positive base-currency amount

    Raises:
        InsufficientDataError: balance currency missing from the response, or no usable price
        SizingError: no positive amount could be computed
    """
    base, quote = get_currencies_from_pair(signal.symbol)

    # 1. Explicit amount bypasses the balance entirely
    if signal.amount and signal.amount > 0:
        logger.info(f"Using direct amount from alert: {signal.amount} {base}")
        return SizingResult(
            amount=signal.amount,
            currency=base,
            source_balance=0.0,
            applied_minimum=False,
            price=price,
        )

    if not price or price <= 0:
        raise InsufficientDataError(f"No usable price to size {signal.symbol}")

    # 2-4. Balance lookup
    currency = balance_currency(signal, plugin)
    candidates = candidate_currencies(currency, plugin)
    params = plugin.get_balance_params(credentials, signal.symbol)

    logger.info(
        f"Fetching {client.id} balance for {signal.action} {signal.symbol}: "
        f"candidates={candidates} params_keys={sorted(params) if params else []}"
    )
    balance = await client.fetch_balance(params)
    funding_currency, free = pick_balance(balance, candidates)

    # 5. Percentage of free balance
    percent = resolve_percent(signal, bot)
    position_size = free * (percent / 100)

    # 6. Quote -> base for buys; sells are already in base
    amount = position_size / price if signal.is_buy else position_size

    logger.info(
        f"Sizing {signal.symbol}: free={free} {funding_currency}, percent={percent}, "
        f"position_size={position_size}, price={price}, raw_amount={format_amount(amount)}"
    )

    # 7. Venue precision
    amount = truncate_amount(amount, plugin.amount_decimals)

    # 8. Minimum floor
    applied_minimum = False
    min_value = minimum_order_value(plugin)
    usd_quoted = is_usd_quote(plugin.fixed_buy_currency if signal.is_buy and plugin.fixed_buy_currency else quote)
    # Only buys are raised to the minimum; a sell never exceeds what is held
    below_minimum = signal.is_buy and usd_quoted and amount > 0 and amount * price < min_value

    if amount <= 0 or below_minimum:
        if not usd_quoted:
            raise SizingError(
                f"Computed amount {amount} for {signal.symbol} is not positive and the "
                f"minimum order value can't be priced in {quote}"
            )
        floor_amount = truncate_amount((min_value * MINIMUM_ORDER_BUFFER) / price, plugin.amount_decimals)
        logger.warning(
            f"Computed amount {format_amount(amount)} for {signal.symbol} is below the "
            f"{min_value} minimum; using floor {format_amount(floor_amount)} "
            f"(~{floor_amount * price:.2f} {quote})"
        )
        amount = floor_amount
        applied_minimum = True

    if amount <= 0:
        raise SizingError(f"Invalid trade amount calculated for {signal.symbol}: {amount}")

    logger.info(
        f"Final amount for {signal.symbol}: {format_amount(amount)} "
        f"(~{amount * price:.2f} {quote or ''}, applied_minimum={applied_minimum})"
    )
    return SizingResult(
        amount=amount,
        currency=funding_currency,
        source_balance=free,
        applied_minimum=applied_minimum,
        percent=percent,
        price=price,
    )
