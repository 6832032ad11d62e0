"""
Shared test fixtures for SignalBot tests.

Provides reusable fixtures for:
- Async database sessions (in-memory SQLite)
- A per-test Fernet key
- Bot factory with encrypted credentials
- Mock exchange clients
- Fresh market data caches with a controllable clock
"""

import json

import pytest
from unittest.mock import AsyncMock, MagicMock
from cryptography.fernet import Fernet
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncSession,
    async_sessionmaker,
)

import signalbot.encryption as enc_module
from signalbot.cache import MarketDataCache
from signalbot.config import settings


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def encryption_key(monkeypatch):
    """Give every test its own Fernet key and a fresh Fernet singleton."""
    key = Fernet.generate_key().decode()
    monkeypatch.setattr(settings, "encryption_key", key)
    monkeypatch.setattr(settings, "disabled_exchanges", "")
    monkeypatch.setattr(settings, "webhook_secret_hashing", False)
    monkeypatch.setattr(settings, "currency_aliases", {})
    enc_module._fernet = None
    yield key
    enc_module._fernet = None


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
async def async_engine():
    """Create an in-memory async SQLite engine for testing."""
    from signalbot.models import Base

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db_session(async_engine):
    """Provide an async database session for tests."""
    session_factory = async_sessionmaker(
        async_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session
        await session.rollback()


# ---------------------------------------------------------------------------
# Sample data factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_bot(db_session):
    """Insert a Bot with Fernet-encrypted credentials."""
    from signalbot.encryption import encrypt_value
    from signalbot.models import Bot

    async def _make_bot(
        user_id=1,
        exchange="bitget",
        api_key="key-123",
        api_secret="secret-456",
        password="pass-789",
        webhook_secret="hook-secret",
        enabled=True,
        order_size_percent=None,
        is_paper_trading=False,
        paper_balances=None,
        name="Test Bot",
    ):
        bot = Bot(
            user_id=user_id,
            name=name,
            exchange=exchange,
            api_key=encrypt_value(api_key) if api_key else None,
            api_secret=encrypt_value(api_secret) if api_secret else None,
            password=encrypt_value(password) if password else None,
            webhook_secret=webhook_secret,
            enabled=enabled,
            order_size_percent=order_size_percent,
            is_paper_trading=is_paper_trading,
            paper_balances=json.dumps(paper_balances) if paper_balances else None,
        )
        db_session.add(bot)
        await db_session.commit()
        await db_session.refresh(bot)
        return bot

    return _make_bot


# ---------------------------------------------------------------------------
# Mock exchange client
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_exchange_client():
    """Create a mock exchange client for testing without hitting real APIs."""
    client = MagicMock()
    client.id = "bitget"
    client.load_markets = AsyncMock(return_value={
        "BTC/USDT": {"symbol": "BTC/USDT"},
        "ETH/USDT": {"symbol": "ETH/USDT"},
    })
    client.fetch_ticker = AsyncMock(return_value={
        "symbol": "BTC/USDT",
        "last": 50000.0,
        "bid": 49999.0,
        "ask": 50001.0,
    })
    client.fetch_order_book = AsyncMock(return_value={
        "bids": [[49999.0, 1.0]],
        "asks": [[50001.0, 2.0]],
    })
    client.fetch_ohlcv = AsyncMock(return_value=[
        [1700000000000, 49000.0, 51000.0, 48000.0, 50000.0, 1234.5],
    ])
    client.fetch_balance = AsyncMock(return_value={
        "USDT": {"free": 1000.0, "used": 0.0, "total": 1000.0},
        "BTC": {"free": 0.5, "used": 0.0, "total": 0.5},
    })
    client.create_order = AsyncMock(return_value={
        "id": "test-order-123",
        "status": "closed",
        "amount": 0.02,
        "price": 50000.0,
        "average": 50000.0,
        "filled": 0.02,
    })
    client.close = AsyncMock()
    return client


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def market_cache(clock):
    """Fresh cache with 5s ticker/order book TTLs and a fake clock."""
    return MarketDataCache(
        ttls={"ticker": 5, "orderBook": 5, "ohlcv": 60, "marketList": 300},
        default_ttl=5,
        clock=clock,
    )
