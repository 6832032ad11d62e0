"""
Tests for signalbot/services/signal_service.py

End-to-end pipeline runs against the in-memory database. Live bots use a
mock exchange client injected through client_factory; paper bots use the
real factory and the simulated client.
"""

import ccxt
import pytest
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy import select

from signalbot.exceptions import (
    AuthenticationError,
    BotDisabledError,
    ExecutionError,
    NotFoundError,
    ValidationError,
)
from signalbot.exchange_clients.paper_trading_client import PAPER_FEE_RATE
from signalbot.models import Trade
from signalbot.services.credential_service import CredentialResolver
from signalbot.services.signal_service import (
    create_signal_log,
    get_signal_log,
    process_webhook_alert,
    redact_payload,
)


def _alert(bot, **overrides):
    alert = {"bot_id": str(bot.id), "symbol": "BTC/USDT", "action": "buy", "secret": "hook-secret"}
    alert.update(overrides)
    return alert


async def _run(db, raw, cache, client=None, **kwargs):
    """Process an alert with a pre-created signal log; returns (trade, signal_id)."""
    signal_log = await create_signal_log(db, raw)
    factory = MagicMock(return_value=client) if client is not None else None
    if factory is not None:
        kwargs["client_factory"] = factory
    trade = await process_webhook_alert(db, raw, cache=cache, signal_id=signal_log.id, **kwargs)
    return trade, signal_log.id


async def _trades(db):
    result = await db.execute(select(Trade))
    return result.scalars().all()


class TestProcessWebhookAlert:
    """Happy paths"""

    async def test_live_bot_buy(self, db_session, make_bot, mock_exchange_client, market_cache):
        """Happy path: alert -> sized order -> recorded trade -> completed log."""
        bot = await make_bot()
        factory = MagicMock(return_value=mock_exchange_client)
        signal_log = await create_signal_log(db_session, _alert(bot))

        trade = await process_webhook_alert(
            db_session, _alert(bot), cache=market_cache, client_factory=factory, signal_id=signal_log.id
        )

        assert trade.bot_id == bot.id
        assert trade.user_id == bot.user_id
        assert trade.side == "buy"
        assert trade.size == 0.02
        assert trade.price == 50000.0
        assert trade.external_id == "test-order-123"

        credentials = factory.call_args[0][1]
        assert credentials.api_key == "key-123"
        assert factory.call_args.kwargs["paper"] is False

        mock_exchange_client.create_order.assert_awaited_once_with(
            "BTC/USDT", "market", "buy", pytest.approx(0.02), 50000.0, {}
        )
        mock_exchange_client.close.assert_awaited_once()

        log = await get_signal_log(db_session, signal_log.id)
        assert log.status == "completed"
        assert log.trade_id == trade.id
        assert log.bot_id == bot.id
        assert log.completed_at is not None

    async def test_signal_log_payload_has_no_secret(self, db_session, make_bot, mock_exchange_client, market_cache):
        bot = await make_bot()
        _, signal_id = await _run(db_session, _alert(bot), market_cache, mock_exchange_client)
        log = await get_signal_log(db_session, signal_id)
        assert "secret" not in log.payload
        assert log.payload["symbol"] == "BTC/USDT"

    async def test_creates_its_own_signal_log(self, db_session, make_bot, mock_exchange_client, market_cache):
        bot = await make_bot()
        trade = await process_webhook_alert(
            db_session,
            _alert(bot),
            cache=market_cache,
            client_factory=MagicMock(return_value=mock_exchange_client),
        )
        assert trade.id is not None

    async def test_alert_amount_and_limit_price(self, db_session, make_bot, mock_exchange_client, market_cache):
        bot = await make_bot()
        raw = _alert(bot, amount="0.005", price="49000")

        await _run(db_session, raw, market_cache, mock_exchange_client)

        mock_exchange_client.fetch_balance.assert_not_called()
        mock_exchange_client.fetch_ticker.assert_not_called()
        mock_exchange_client.create_order.assert_awaited_once_with(
            "BTC/USDT", "limit", "buy", 0.005, 49000.0, {}
        )

    async def test_sell_records_pnl(self, db_session, make_bot, mock_exchange_client, market_cache):
        bot = await make_bot()
        mock_exchange_client.create_order = AsyncMock(return_value={
            "id": "buy-1", "status": "closed", "amount": 0.01, "price": 50000.0,
        })
        await _run(db_session, _alert(bot, amount=0.01), market_cache, mock_exchange_client)

        mock_exchange_client.create_order = AsyncMock(return_value={
            "id": "sell-1", "status": "closed", "amount": 0.01, "price": 51000.0,
        })
        trade, _ = await _run(db_session, _alert(bot, action="sell", amount=0.01), market_cache, mock_exchange_client)

        assert trade.pnl == pytest.approx(10.0)

    async def test_paper_bot_uses_simulated_client(self, db_session, make_bot, market_cache):
        """Happy path: paper bots trade against their virtual balances."""
        bot = await make_bot(
            exchange="hyperliquid",
            api_key=None,
            api_secret=None,
            password=None,
            is_paper_trading=True,
            paper_balances={"USDC": 1000.0},
            order_size_percent=10,
        )

        trade, signal_id = await _run(db_session, _alert(bot, symbol="BTC/USDC:USDC"), market_cache)

        assert trade.external_id.startswith("paper-")
        assert trade.size == 0.00153
        assert trade.price == 65000.0
        assert trade.status == "filled"
        assert (await get_signal_log(db_session, signal_id)).status == "completed"

    async def test_paper_balances_carry_over(self, db_session, make_bot, market_cache):
        """Happy path: simulated balances are saved and the next alert starts from them."""
        bot = await make_bot(
            exchange="hyperliquid",
            api_key=None,
            api_secret=None,
            password=None,
            is_paper_trading=True,
            paper_balances={"USDC": 1000.0},
            order_size_percent=10,
        )

        first, _ = await _run(db_session, _alert(bot, symbol="ETH/USDT"), market_cache)
        await db_session.refresh(bot)
        balances = bot.get_paper_balances()
        assert first.size == 0.02857
        assert balances["ETH"] == pytest.approx(0.02857)
        assert balances["USDC"] == pytest.approx(1000.0 - 0.02857 * 3500.0 * (1 + PAPER_FEE_RATE))
        assert "USDT" not in balances

        second, _ = await _run(db_session, _alert(bot, symbol="ETH/USDT"), market_cache)
        await db_session.refresh(bot)
        assert second.size == 0.02571
        assert bot.get_paper_balances()["ETH"] == pytest.approx(0.02857 + 0.02571)

    async def test_credentials_resolved_for_bot_owner(
        self, db_session, make_bot, mock_exchange_client, market_cache, monkeypatch
    ):
        bot = await make_bot(user_id=7)
        calls = []
        resolve = CredentialResolver.resolve

        async def recording_resolve(self, bot_id, owner_id):
            calls.append((bot_id, owner_id))
            return await resolve(self, bot_id, owner_id)

        monkeypatch.setattr(CredentialResolver, "resolve", recording_resolve)
        await _run(db_session, _alert(bot), market_cache, mock_exchange_client)

        assert calls == [(bot.id, 7)]


class TestProcessWebhookAlertFailures:
    """Failure paths: every one leaves a failed signal log and no trade"""

    async def test_unknown_bot(self, db_session, market_cache):
        raw = {"bot_id": "404", "symbol": "BTC/USDT", "action": "buy", "secret": "x"}
        signal_log = await create_signal_log(db_session, raw)

        with pytest.raises(NotFoundError):
            await process_webhook_alert(db_session, raw, cache=market_cache, signal_id=signal_log.id)

        log = await get_signal_log(db_session, signal_log.id)
        assert log.status == "failed"
        assert log.error == "Bot not found"
        assert log.error_kind == "NotFoundError"
        assert log.bot_id is None

    async def test_wrong_secret(self, db_session, make_bot, mock_exchange_client, market_cache):
        bot = await make_bot()
        raw = _alert(bot, secret="guess")
        signal_log = await create_signal_log(db_session, raw)
        factory = MagicMock(return_value=mock_exchange_client)

        with pytest.raises(AuthenticationError):
            await process_webhook_alert(
                db_session, raw, cache=market_cache, client_factory=factory, signal_id=signal_log.id
            )

        factory.assert_not_called()
        log = await get_signal_log(db_session, signal_log.id)
        assert log.status == "failed"
        assert log.error_kind == "AuthenticationError"
        assert await _trades(db_session) == []

    async def test_secret_checked_before_validation(self, db_session, make_bot, market_cache):
        """Edge case: a bad secret wins over a malformed payload."""
        bot = await make_bot()
        with pytest.raises(AuthenticationError):
            await _run(db_session, _alert(bot, secret="guess", action="hold"), market_cache)

    async def test_invalid_payload_with_valid_secret(self, db_session, make_bot, market_cache):
        bot = await make_bot()
        with pytest.raises(ValidationError, match="Invalid action"):
            await _run(db_session, _alert(bot, action="hold"), market_cache)

    async def test_missing_bot_id(self, db_session, market_cache):
        with pytest.raises(ValidationError, match="bot_id"):
            await _run(db_session, {"symbol": "BTC/USDT", "action": "buy", "secret": "x"}, market_cache)

    async def test_non_object_payload(self, db_session, market_cache):
        with pytest.raises(ValidationError, match="Alert must be an object"):
            await _run(db_session, ["not", "an", "object"], market_cache)

    async def test_disabled_bot(self, db_session, make_bot, market_cache):
        bot = await make_bot(enabled=False)
        with pytest.raises(BotDisabledError):
            await _run(db_session, _alert(bot), market_cache)

    async def test_unlisted_market_closes_client(self, db_session, make_bot, mock_exchange_client, market_cache):
        bot = await make_bot()
        with pytest.raises(ValidationError, match="Invalid market"):
            await _run(db_session, _alert(bot, symbol="DOGE/USDT"), market_cache, mock_exchange_client)
        mock_exchange_client.create_order.assert_not_called()
        mock_exchange_client.close.assert_awaited_once()

    async def test_exchange_rejection(self, db_session, make_bot, mock_exchange_client, market_cache):
        """Failure: classified exchange error is stored on the signal log."""
        bot = await make_bot()
        mock_exchange_client.create_order = AsyncMock(side_effect=ccxt.InsufficientFunds("not enough USDT"))
        raw = _alert(bot)
        signal_log = await create_signal_log(db_session, raw)

        with pytest.raises(ExecutionError) as exc_info:
            await process_webhook_alert(
                db_session,
                raw,
                cache=market_cache,
                client_factory=MagicMock(return_value=mock_exchange_client),
                signal_id=signal_log.id,
            )

        assert exc_info.value.kind == "insufficient_funds"
        mock_exchange_client.close.assert_awaited_once()
        log = await get_signal_log(db_session, signal_log.id)
        assert log.status == "failed"
        assert log.error_kind == "insufficient_funds"
        assert "not enough USDT" in log.error
        assert await _trades(db_session) == []


    async def test_balance_auth_failure_is_classified(self, db_session, make_bot, mock_exchange_client, market_cache):
        """Failure: a rejected API key on the balance query surfaces as a typed 401."""
        bot = await make_bot()
        mock_exchange_client.fetch_balance = AsyncMock(side_effect=ccxt.AuthenticationError("bad key"))
        raw = _alert(bot)
        signal_log = await create_signal_log(db_session, raw)

        with pytest.raises(ExecutionError) as exc_info:
            await process_webhook_alert(
                db_session,
                raw,
                cache=market_cache,
                client_factory=MagicMock(return_value=mock_exchange_client),
                signal_id=signal_log.id,
            )

        assert exc_info.value.kind == "authentication"
        assert exc_info.value.status_code == 401
        assert exc_info.value.retryable is False
        mock_exchange_client.create_order.assert_not_called()
        mock_exchange_client.close.assert_awaited_once()
        log = await get_signal_log(db_session, signal_log.id)
        assert log.status == "failed"
        assert log.error_kind == "authentication"

    async def test_market_list_network_failure_is_retryable(
        self, db_session, make_bot, mock_exchange_client, market_cache
    ):
        bot = await make_bot()
        mock_exchange_client.load_markets = AsyncMock(side_effect=ccxt.NetworkError("timed out"))

        with pytest.raises(ExecutionError) as exc_info:
            await _run(db_session, _alert(bot), market_cache, mock_exchange_client)

        assert exc_info.value.kind == "network"
        assert exc_info.value.retryable is True
        mock_exchange_client.close.assert_awaited_once()


class TestHelpers:
    def test_redact_payload(self):
        assert redact_payload({"secret": "s", "symbol": "BTC/USDT"}) == {"symbol": "BTC/USDT"}

    def test_redact_non_mapping(self):
        assert redact_payload([1, 2]) == {"raw": "[1, 2]"}

    async def test_unknown_signal_id(self, db_session):
        with pytest.raises(NotFoundError, match="Signal not found"):
            await get_signal_log(db_session, "nope")
