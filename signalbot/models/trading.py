"""Trading models: bots, trades, inbound signal log."""

import json
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from signalbot.database import Base


class Bot(Base):
    """
    A configured binding of owner + exchange + credentials + sizing policy.

    Owned by the platform; the execution pipeline only reads it. The
    credential columns hold Fernet ciphertext and are decrypted per signal.
    """
    __tablename__ = "bots"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)  # Owner
    name = Column(String, nullable=False)
    enabled = Column(Boolean, default=True, nullable=False)

    # Exchange identity
    exchange = Column(String, nullable=False)  # Plugin id: "bitget", "hyperliquid"
    api_key = Column(String, nullable=True)  # Encrypted (wallet address for Hyperliquid)
    api_secret = Column(String, nullable=True)  # Encrypted
    password = Column(String, nullable=True)  # Encrypted passphrase (Bitget)

    # Webhook auth: plain secret, or HMAC hex digest when webhook_secret_hashing is on
    webhook_secret = Column(String, nullable=False)

    # Sizing policy: percentage of available balance per signal (None = 100%)
    order_size_percent = Column(Float, nullable=True)

    # Paper trading
    is_paper_trading = Column(Boolean, default=False)  # Route orders to PaperTradingClient
    paper_balances = Column(String, nullable=True)  # JSON: {"USDC": 10000.0, "BTC": 0.5, ...}

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    trades = relationship("Trade", back_populates="bot")
    signals = relationship("SignalLog", back_populates="bot")

    def get_paper_balances(self) -> dict:
        if not self.paper_balances:
            return {}
        return json.loads(self.paper_balances)


class Trade(Base):
    """
    A submitted order as recorded after the exchange accepted it.

    pnl is only set on sells, paired with the most recent buy of the same
    bot and symbol.
    """
    __tablename__ = "trades"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    bot_id = Column(Integer, ForeignKey("bots.id"), nullable=False, index=True)
    external_id = Column(String, nullable=True, index=True)  # Exchange order id
    symbol = Column(String, nullable=False, index=True)
    side = Column(String, nullable=False)  # "buy" or "sell"
    order_type = Column(String, nullable=True)  # "market" or "limit"
    status = Column(String, nullable=False, default="filled")
    size = Column(Float, nullable=False)
    price = Column(Float, nullable=False)
    pnl = Column(Float, nullable=True)
    strategy = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    bot = relationship("Bot", back_populates="trades")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "bot_id": self.bot_id,
            "external_id": self.external_id,
            "symbol": self.symbol,
            "side": self.side,
            "order_type": self.order_type,
            "status": self.status,
            "size": self.size,
            "price": self.price,
            "pnl": self.pnl,
            "strategy": self.strategy,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class SignalLog(Base):
    """
    Processing record for one inbound alert.

    status: pending -> processing -> completed | failed
    The payload is stored without the webhook secret.
    """
    __tablename__ = "signal_logs"

    id = Column(String, primary_key=True)  # uuid4 hex
    bot_id = Column(Integer, ForeignKey("bots.id"), nullable=True, index=True)
    user_id = Column(Integer, nullable=True, index=True)
    payload = Column(JSON, nullable=False)
    status = Column(String, nullable=False, default="pending", index=True)
    trade_id = Column(Integer, ForeignKey("trades.id"), nullable=True)
    error = Column(Text, nullable=True)
    error_kind = Column(String, nullable=True)  # ExecutionError.kind or exception class name

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    processing_started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    failed_at = Column(DateTime, nullable=True)

    bot = relationship("Bot", back_populates="signals")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bot_id": self.bot_id,
            "status": self.status,
            "trade_id": self.trade_id,
            "error": self.error,
            "error_kind": self.error_kind,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "failed_at": self.failed_at.isoformat() if self.failed_at else None,
        }
