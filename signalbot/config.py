import json
from typing import Dict, List

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite+aiosqlite:///./signalbot.db"
    database_echo: bool = False

    # Security
    encryption_key: str = ""  # Fernet key used for exchange secrets at rest
    secret_key: str = "change-this-secret-key"  # HMAC key for hashed webhook secrets
    webhook_secret_hashing: bool = False  # True when bots store HMAC(secret) instead of the secret
    cors_origins: str = "http://localhost:3000"

    # Exchanges
    disabled_exchanges: str = ""  # Comma-separated exchange ids, e.g. "bitget,hyperliquid"
    min_order_value_usd: float = 10.0  # Fallback minimum notional when sizing comes out too small

    # Extra balance aliases merged on top of each venue's own table.
    # JSON in the environment: CURRENCY_ALIASES='{"BTC": ["XBT"]}'
    currency_aliases: Dict[str, List[str]] = {}

    # Market data cache TTLs (seconds)
    cache_default_ttl: float = 5.0
    cache_ticker_ttl: float = 5.0
    cache_order_book_ttl: float = 5.0
    cache_ohlcv_ttl: float = 60.0  # Candles change far less often than tickers

    # Logging
    log_level: str = "INFO"

    @field_validator("currency_aliases", mode="before")
    @classmethod
    def parse_aliases(cls, v):
        """Accept the alias table as a JSON string as well as a dict"""
        if isinstance(v, str):
            return json.loads(v) if v.strip() else {}
        return v

    def get_disabled_exchanges(self) -> set:
        return {
            value.strip().lower()
            for value in self.disabled_exchanges.split(",")
            if value.strip()
        }

    def get_cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
