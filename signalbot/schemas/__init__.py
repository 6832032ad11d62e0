"""Pydantic schemas for API payloads and pipeline values."""

from signalbot.schemas.signal import Signal, WebhookAlert

__all__ = ["Signal", "WebhookAlert"]
