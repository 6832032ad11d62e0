"""
Trade execution

Chooses the order type, assembles venue parameters and submits the order.
Exchange failures are classified and re-raised as ExecutionError; nothing
here retries, the caller owns the retry policy.
"""

import logging
from typing import Any, Dict, Optional

import ccxt

from signalbot.exceptions import ExecutionError
from signalbot.exchange_clients.base import ExchangeClient
from signalbot.exchange_clients.types import ExchangePlugin, OrderRequest, OrderResult
from signalbot.precision import format_amount
from signalbot.schemas.signal import Signal
from signalbot.trading_engine.order_sizing import SizingResult

logger = logging.getLogger(__name__)

# Checked in order: ccxt subclasses come before their parents
# (InsufficientFunds is an ExchangeError, RateLimitExceeded is a NetworkError).
_ERROR_CLASSES = (
    (ccxt.AuthenticationError, "authentication"),
    (ccxt.InsufficientFunds, "insufficient_funds"),
    (ccxt.InvalidOrder, "invalid_order"),
    (ccxt.BadSymbol, "invalid_order"),
    (ccxt.BadRequest, "invalid_order"),
    (ccxt.RateLimitExceeded, "rate_limit"),
    (ccxt.DDoSProtection, "rate_limit"),
    (ccxt.NetworkError, "network"),
)

# Raised by exchange calls outside order submission (balances, markets, tickers)
EXCHANGE_ERRORS = (ccxt.BaseError, TimeoutError, ConnectionError)


def classify_exchange_error(error: BaseException) -> str:
    """
    Map an exchange exception to an ExecutionError kind.

    Returns:
        "authentication", "insufficient_funds", "invalid_order",
        "rate_limit", "network" or "exchange"
    """
    if isinstance(error, ExecutionError):
        return error.kind
    for error_class, kind in _ERROR_CLASSES:
        if isinstance(error, error_class):
            return kind
    if isinstance(error, (TimeoutError, ConnectionError)):
        return "network"
    # Paper trading raises plain ValueErrors for balance/amount problems
    if isinstance(error, ValueError):
        message = str(error).lower()
        return "insufficient_funds" if "insufficient" in message else "invalid_order"
    return "exchange"


def order_type_for(signal: Signal) -> str:
    return "limit" if signal.price else "market"


def order_price_for(signal: Signal, plugin: ExchangePlugin, price: float) -> Optional[float]:
    """
    Price sent with the order.

    limit -> the alert price; market -> a price hint when the venue always
    wants one (slippage bounds), or for buys when it wants one to cap cost.
    """
    if order_type_for(signal) == "limit":
        return signal.price
    if plugin.market_price_policy == "always":
        return price
    if plugin.market_price_policy == "buy_only" and signal.is_buy:
        return price
    return None


def stop_loss_params(signal: Signal, price: float) -> Optional[Dict[str, Any]]:
    """Stop below entry for buys, above entry for sells"""
    if not signal.stop_loss_percent:
        return None
    offset = signal.stop_loss_percent / 100
    stop_price = price * (1 - offset) if signal.is_buy else price * (1 + offset)
    return {"stopPrice": stop_price, "type": "market"}


def build_order_request(
    signal: Signal, sizing: SizingResult, plugin: ExchangePlugin, price: float
) -> OrderRequest:
    params: Dict[str, Any] = {}
    stop_loss = stop_loss_params(signal, price)
    if stop_loss:
        params["stopLoss"] = stop_loss
    if plugin.slippage is not None:
        params["slippage"] = plugin.slippage

    return OrderRequest(
        symbol=plugin.format_symbol(signal.symbol),
        type=order_type_for(signal),
        side=signal.action,
        amount=sizing.amount,
        price=order_price_for(signal, plugin, price),
        params=params,
    )


async def execute_order(
    client: ExchangeClient,
    signal: Signal,
    sizing: SizingResult,
    plugin: ExchangePlugin,
    price: float,
) -> OrderResult:
    """
    Submit the order for a sized signal.

    Args:
        client: Exchange client
        signal: Validated signal
        sizing: Output of size_order
        plugin: Venue description
        price: Reference price used for stop-loss and market price hints

    Returns:
        OrderResult from the exchange response

    Raises:
        ExecutionError: the exchange call failed (classified)
    """
    request = build_order_request(signal, sizing, plugin, price)

    logger.info(
        f"Creating {request.type} {request.side} order on {client.id}: "
        f"{format_amount(request.amount)} {request.symbol}"
        + (f" @ {request.price}" if request.price is not None else "")
        + (f" params={sorted(request.params)}" if request.params else "")
    )

    try:
        order = await client.create_order(
            request.symbol,
            request.type,
            request.side,
            request.amount,
            request.price,
            request.params,
        )
    except Exception as e:
        kind = classify_exchange_error(e)
        logger.error(
            f"Order rejected by {client.id} ({kind}): {type(e).__name__}: {e}"
        )
        raise ExecutionError(f"Failed to execute trade: {e}", kind=kind) from e

    if not order or not order.get("id"):
        logger.error(f"{client.id} returned no order id for {request.symbol}: {order}")
        raise ExecutionError(f"Exchange returned no order id for {request.symbol}", kind="exchange")

    result = OrderResult.from_ccxt(order)
    logger.info(
        f"Order created: id={result.id} status={result.status} "
        f"requested={format_amount(request.amount)} amount={result.amount} "
        f"filled={result.filled} price={result.price or result.average}"
    )
    return result
