"""
Signal Service

Runs one inbound alert through the whole pipeline:

    bot lookup -> enabled check -> webhook secret -> validation
      -> credentials -> exchange client -> market check -> reference price
      -> sizing -> execution -> recording

Each alert gets a SignalLog row that moves pending -> processing ->
completed | failed, so a caller can poll the outcome by signal id.
"""

import json
import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from signalbot.cache import MarketDataCache, market_cache
from signalbot.encryption import decrypt_secret
from signalbot.exceptions import BotDisabledError, ExecutionError, NotFoundError
from signalbot.exchange_clients.base import ExchangeClient
from signalbot.exchange_clients.factory import create_exchange_client
from signalbot.exchange_clients.paper_trading_client import PaperTradingClient
from signalbot.exchange_clients.registry import get_exchange_plugin
from signalbot.models import Bot, SignalLog, Trade
from signalbot.services.credential_service import CredentialResolver, Decryptor
from signalbot.services.market_data_service import get_reference_price, validate_market
from signalbot.services.webhook_auth import verify_webhook_secret
from signalbot.trading_engine.order_sizing import size_order
from signalbot.trading_engine.signal_validator import validate_webhook_alert
from signalbot.trading_engine.trade_executor import (
    EXCHANGE_ERRORS,
    classify_exchange_error,
    execute_order,
)
from signalbot.trading_engine.trade_recorder import record_trade

logger = logging.getLogger(__name__)

ClientFactory = Callable[..., ExchangeClient]

# Payload keys never written to the signal log
_REDACTED_KEYS = {"secret"}


def redact_payload(raw: Any) -> Dict[str, Any]:
    if isinstance(raw, Mapping):
        return {key: value for key, value in raw.items() if key not in _REDACTED_KEYS}
    return {"raw": repr(raw)[:500]}


def error_kind(error: BaseException) -> str:
    if isinstance(error, ExecutionError):
        return error.kind
    return type(error).__name__


async def load_bot_by_id(db: AsyncSession, bot_id: Any) -> Bot:
    """
    Look up the bot an alert is addressed to.

    The alert is not authenticated yet, so the lookup is by id alone; the
    webhook secret check that follows establishes the caller.

    Raises:
        NotFoundError: no such bot
    """
    try:
        numeric_id = int(str(bot_id).strip())
    except (TypeError, ValueError):
        raise NotFoundError("Bot not found")

    result = await db.execute(select(Bot).where(Bot.id == numeric_id))
    bot = result.scalar_one_or_none()
    if bot is None:
        logger.warning(f"Webhook for unknown bot {bot_id}")
        raise NotFoundError("Bot not found")
    return bot


async def _update_signal_log(db: AsyncSession, signal_id: str, **values) -> None:
    await db.execute(update(SignalLog).where(SignalLog.id == signal_id).values(**values))
    await db.commit()


async def _mark_failed(db: AsyncSession, signal_id: str, error: BaseException) -> None:
    message = getattr(error, "message", None) or str(error) or type(error).__name__
    try:
        await _update_signal_log(
            db,
            signal_id,
            status="failed",
            error=message,
            error_kind=error_kind(error),
            failed_at=datetime.utcnow(),
        )
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Could not mark signal {signal_id} as failed: {e}")


async def save_paper_balances(db: AsyncSession, bot: Bot, balances: Dict[str, float]) -> None:
    """Write a paper client's balances back to the bot; the next alert starts from them"""
    try:
        bot.paper_balances = json.dumps(balances)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Could not save paper balances for bot {bot.id}: {e}")


async def create_signal_log(db: AsyncSession, raw: Any) -> SignalLog:
    signal_log = SignalLog(
        id=uuid.uuid4().hex,
        payload=redact_payload(raw),
        status="pending",
    )
    db.add(signal_log)
    await db.commit()
    return signal_log


async def get_signal_log(db: AsyncSession, signal_id: str) -> SignalLog:
    result = await db.execute(
        select(SignalLog)
        .where(SignalLog.id == signal_id)
        .execution_options(populate_existing=True)
    )
    signal_log = result.scalar_one_or_none()
    if signal_log is None:
        raise NotFoundError("Signal not found")
    return signal_log


async def process_webhook_alert(
    db: AsyncSession,
    raw: Any,
    decrypt: Decryptor = decrypt_secret,
    cache: MarketDataCache = market_cache,
    client_factory: ClientFactory = create_exchange_client,
    signal_id: Optional[str] = None,
) -> Trade:
    """
    Turn an inbound alert into a recorded trade.

    Args:
        db: Database session
        raw: Decoded JSON body of the webhook
        decrypt: Credential decryptor (Fernet by default)
        cache: Market data cache
        client_factory: Builds the exchange client
        signal_id: Existing SignalLog id; a new log row is created when omitted

    Returns:
        The recorded Trade

    Raises:
        AppError subclasses from whichever stage failed; the signal log is
        marked failed before the error propagates.
    """
    if signal_id is None:
        signal_id = (await create_signal_log(db, raw)).id

    try:
        return await _run_pipeline(db, raw, signal_id, decrypt, cache, client_factory)
    except Exception as e:
        logger.error(f"Signal {signal_id} failed ({error_kind(e)}): {getattr(e, 'message', e)}")
        await _mark_failed(db, signal_id, e)
        raise


async def _run_pipeline(
    db: AsyncSession,
    raw: Any,
    signal_id: str,
    decrypt: Decryptor,
    cache: MarketDataCache,
    client_factory: ClientFactory,
) -> Trade:
    # Without a bot id there is nothing to authenticate against; the
    # validator reports the malformed payload.
    if not isinstance(raw, Mapping) or not str(raw.get("bot_id") or "").strip():
        validate_webhook_alert(raw)

    bot = await load_bot_by_id(db, raw["bot_id"])
    await _update_signal_log(
        db,
        signal_id,
        bot_id=bot.id,
        user_id=bot.user_id,
        status="processing",
        processing_started_at=datetime.utcnow(),
    )

    if not bot.enabled:
        logger.warning(f"Bot {bot.id} is disabled; rejecting webhook")
        raise BotDisabledError()

    verify_webhook_secret(raw.get("secret"), bot)
    signal = validate_webhook_alert(raw)

    resolver = CredentialResolver(db, decrypt=decrypt)
    # The owner comes from the bot row; the scoped load still guards the lookup
    credentials = await resolver.resolve(bot.id, bot.user_id)
    plugin = get_exchange_plugin(bot.exchange)

    client = client_factory(
        bot.exchange,
        credentials,
        paper=bool(bot.is_paper_trading),
        paper_balances=bot.get_paper_balances() or None,
    )
    try:
        symbol = plugin.format_symbol(signal.symbol)
        try:
            await validate_market(client, symbol, cache)
            price = await get_reference_price(client, symbol, signal.price, cache)
            sizing = await size_order(signal, client, bot, plugin, credentials, price)
        except EXCHANGE_ERRORS as e:
            kind = classify_exchange_error(e)
            logger.error(f"{client.id} request failed before ordering ({kind}): {type(e).__name__}: {e}")
            raise ExecutionError(f"Exchange request failed: {e}", kind=kind) from e

        order = await execute_order(client, signal, sizing, plugin, price)
        if isinstance(client, PaperTradingClient):
            await save_paper_balances(db, bot, client.balances)
    finally:
        await client.close()

    trade = await record_trade(db, bot.user_id, bot.id, order, signal, price, sizing.amount)

    await _update_signal_log(
        db,
        signal_id,
        status="completed",
        trade_id=trade.id,
        completed_at=datetime.utcnow(),
    )
    logger.info(
        f"Signal {signal_id} completed: bot={bot.id} {signal.action} {trade.size} {signal.symbol} "
        f"@ {trade.price} (trade #{trade.id})"
    )
    return trade
