"""
Trade recording

Persists a submitted order as a Trade row. For sells, realized P&L is
computed against the most recent buy of the same bot and symbol (single
last-in pairing, no lot tracking).

A failure here happens AFTER the exchange accepted the order, so it is
logged at CRITICAL with the exchange order id for manual reconciliation.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from signalbot.exceptions import PersistenceError
from signalbot.exchange_clients.types import OrderResult
from signalbot.models import Trade
from signalbot.schemas.signal import Signal

logger = logging.getLogger(__name__)

# ccxt status -> stored status
_STATUS_MAP = {
    "closed": "filled",
}


def resolve_trade_size(order: OrderResult, calculated_amount: Optional[float] = None) -> float:
    if order.amount:
        return order.amount
    if calculated_amount:
        return calculated_amount
    return 0.0


def resolve_trade_price(order: OrderResult, reference_price: float) -> float:
    return order.price or order.average or reference_price


def resolve_trade_status(order: OrderResult) -> str:
    if not order.status:
        return "filled"
    return _STATUS_MAP.get(order.status, order.status)


async def find_last_buy(db: AsyncSession, bot_id: int, symbol: str) -> Optional[Trade]:
    result = await db.execute(
        select(Trade)
        .where(Trade.bot_id == bot_id, Trade.symbol == symbol, Trade.side == "buy")
        .order_by(Trade.created_at.desc(), Trade.id.desc())
        .limit(1)
    )
    return result.scalars().first()


async def record_trade(
    db: AsyncSession,
    owner_id: int,
    bot_id: int,
    order: OrderResult,
    signal: Signal,
    reference_price: float,
    calculated_amount: Optional[float] = None,
) -> Trade:
    """
    Store an executed order.

    Args:
        db: Database session
        owner_id: Bot owner
        bot_id: Bot that placed the order
        order: Exchange response
        signal: The signal that produced the order
        reference_price: Price used for sizing, fallback when the exchange reports none
        calculated_amount: Sized amount, fallback when the exchange reports none

    Returns:
        The committed Trade

    Raises:
        PersistenceError: the trade could not be stored
    """
    size = resolve_trade_size(order, calculated_amount)
    price = resolve_trade_price(order, reference_price)
    order_type = "limit" if signal.price else "market"

    try:
        pnl = None
        if not signal.is_buy:
            last_buy = await find_last_buy(db, bot_id, signal.symbol)
            if last_buy:
                pnl = (price - last_buy.price) * size
                logger.info(
                    f"P&L for bot {bot_id} {signal.symbol}: ({price} - {last_buy.price}) * {size} = {pnl} "
                    f"(paired with trade #{last_buy.id})"
                )
            else:
                logger.info(f"No prior buy for bot {bot_id} {signal.symbol}; P&L left empty")

        trade = Trade(
            user_id=owner_id,
            bot_id=bot_id,
            external_id=order.id,
            symbol=signal.symbol,
            side=signal.action,
            order_type=order_type,
            status=resolve_trade_status(order),
            size=size,
            price=price,
            pnl=pnl,
            strategy=signal.strategy,
        )
        db.add(trade)
        await db.commit()
        await db.refresh(trade)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.critical(
            f"Order {order.id} was placed for bot {bot_id} ({signal.action} {size} {signal.symbol} @ {price}) "
            f"but the trade could not be recorded: {e}"
        )
        raise PersistenceError(
            f"Order {order.id} was placed but could not be recorded", external_id=order.id
        ) from e

    logger.info(
        f"Recorded trade #{trade.id}: {trade.side} {trade.size} {trade.symbol} @ {trade.price} "
        f"status={trade.status} external_id={trade.external_id}"
    )
    return trade
