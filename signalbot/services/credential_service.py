"""
Credential Service

Loads a bot's exchange identity scoped to its owner and decrypts the stored
secrets just-in-time. Plaintext credentials live only in the returned
ResolvedCredentials object for the duration of one execution.
"""

import logging
from typing import Awaitable, Callable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from signalbot.encryption import decrypt_secret
from signalbot.exceptions import (
    ConfigurationError,
    CredentialError,
    NotFoundError,
    UnsupportedExchangeError,
)
from signalbot.exchange_clients.registry import get_exchange_plugin
from signalbot.exchange_clients.types import ExchangePlugin, ResolvedCredentials
from signalbot.models import Bot

logger = logging.getLogger(__name__)

Decryptor = Callable[[str], Awaitable[str]]

# ResolvedCredentials field -> Bot column
_CREDENTIAL_COLUMNS = {
    "api_key": "api_key",
    "api_secret": "api_secret",
    "password": "password",
}


def _coerce_bot_id(bot_id) -> Optional[int]:
    try:
        return int(bot_id)
    except (TypeError, ValueError):
        return None


class CredentialResolver:
    """Resolves decrypted exchange credentials for a bot"""

    def __init__(self, db: AsyncSession, decrypt: Decryptor = decrypt_secret):
        self.db = db
        self._decrypt = decrypt

    async def load_bot(self, bot_id, owner_id: int) -> Bot:
        """
        Load a bot owned by owner_id.

        A bot that exists but belongs to someone else is reported exactly
        like a bot that does not exist.

        Raises:
            NotFoundError: no such bot for this owner
        """
        numeric_id = _coerce_bot_id(bot_id)
        if numeric_id is None:
            raise NotFoundError("Bot not found")

        result = await self.db.execute(
            select(Bot).where(Bot.id == numeric_id, Bot.user_id == owner_id)
        )
        bot = result.scalar_one_or_none()
        if bot is None:
            logger.warning(f"Bot {bot_id} not found for owner {owner_id}")
            raise NotFoundError("Bot not found")
        return bot

    async def resolve(self, bot_id, owner_id: int) -> ResolvedCredentials:
        bot = await self.load_bot(bot_id, owner_id)
        return await self.resolve_for_bot(bot)

    async def resolve_for_bot(self, bot: Bot) -> ResolvedCredentials:
        """
        Check the bot's exchange and decrypt its credentials.

        Raises:
            ConfigurationError: exchange unknown/disabled, or a required credential is missing
            CredentialError: a stored credential does not decrypt
        """
        plugin = self._plugin_for(bot)

        values = {}
        for field_name, column in _CREDENTIAL_COLUMNS.items():
            ciphertext = getattr(bot, column)
            if not ciphertext:
                continue
            values[field_name] = await self._decrypt_field(bot, field_name, ciphertext)

        credentials = ResolvedCredentials(
            api_key=values.get("api_key", ""),
            api_secret=values.get("api_secret"),
            password=values.get("password"),
        )

        if not bot.is_paper_trading:
            missing = plugin.missing_credentials(credentials)
            if missing:
                raise ConfigurationError(
                    f"Bot {bot.id} is missing {', '.join(missing)} required by {plugin.label}"
                )

        logger.info(
            f"Resolved credentials for bot {bot.id} ({plugin.id}): "
            f"fields={sorted(values)}"
        )
        return credentials

    def _plugin_for(self, bot: Bot) -> ExchangePlugin:
        try:
            return get_exchange_plugin(bot.exchange)
        except UnsupportedExchangeError as e:
            raise ConfigurationError(f"Bot {bot.id} is configured for an unavailable exchange: {e.message}") from e

    async def _decrypt_field(self, bot: Bot, field_name: str, ciphertext: str) -> str:
        try:
            plaintext = await self._decrypt(ciphertext)
        except CredentialError as e:
            logger.error(f"Failed to decrypt {field_name} for bot {bot.id}")
            raise CredentialError(f"Stored {field_name} for bot {bot.id} could not be decrypted") from e
        except Exception as e:
            logger.error(f"Credential store error decrypting {field_name} for bot {bot.id}: {type(e).__name__}")
            raise CredentialError(f"Stored {field_name} for bot {bot.id} could not be decrypted") from e

        if not plaintext:
            raise CredentialError(f"Stored {field_name} for bot {bot.id} decrypted to an empty value")
        return plaintext
