"""
SignalBot backend

Turns strategy alerts (TradingView-style webhooks) into exchange orders and
records the resulting trades.
"""

__version__ = "0.1.0"
