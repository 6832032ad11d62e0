"""
Database Models

All model classes are re-exported here:
    from signalbot.models import Bot, Trade, SignalLog
"""

from signalbot.database import Base  # noqa: F401
from signalbot.models.trading import Bot, SignalLog, Trade

__all__ = [
    "Base",
    "Bot",
    "Trade",
    "SignalLog",
]
