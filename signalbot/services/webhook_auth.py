"""
Webhook secret handling

Every alert carries the bot's webhook secret. It is checked against the bot
row before the alert is validated; a mismatch is an authentication failure.

Two storage modes:
- plain: bot.webhook_secret holds the secret itself
- hashed (WEBHOOK_SECRET_HASHING=true): bot.webhook_secret holds
  HMAC-SHA256(SECRET_KEY, secret) as hex
Both compare in constant time.
"""

import hashlib
import hmac
import logging
import secrets
from typing import Any

from signalbot.config import settings
from signalbot.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

WEBHOOK_SECRET_BYTES = 32


def generate_webhook_secret() -> str:
    return secrets.token_hex(WEBHOOK_SECRET_BYTES)


def hash_webhook_secret(secret: str) -> str:
    return hmac.new(settings.secret_key.encode(), secret.encode(), hashlib.sha256).hexdigest()


def webhook_secret_matches(provided: Any, stored: str) -> bool:
    if not isinstance(provided, str) or not provided or not stored:
        return False
    candidate = hash_webhook_secret(provided) if settings.webhook_secret_hashing else provided
    return hmac.compare_digest(candidate.encode(), stored.encode())


def verify_webhook_secret(provided: Any, bot) -> None:
    """
    Raises:
        AuthenticationError: secret missing or wrong
    """
    if not webhook_secret_matches(provided, bot.webhook_secret):
        logger.warning(f"Invalid webhook secret for bot {bot.id}")
        raise AuthenticationError("Invalid webhook secret")
