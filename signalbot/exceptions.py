"""
Domain exceptions for the application.

Pipeline stages raise these instead of fastapi.HTTPException to avoid
coupling the trading engine to the web framework. A global exception handler
in main.py translates them into HTTP responses.

Every stage fails closed: when an input is ambiguous the stage raises one of
these rather than substituting a default that would still place an order.
"""

from typing import Optional


class AppError(Exception):
    """Base application error with an HTTP-equivalent status code."""

    retryable = False

    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class ValidationError(AppError):
    """Malformed signal payload (400)."""

    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class AuthenticationError(AppError):
    """Bad webhook secret (401)."""

    def __init__(self, message: str = "Invalid webhook secret"):
        super().__init__(message, status_code=401)


class BotDisabledError(AppError):
    """Alert addressed to a bot that has been switched off (403)."""

    def __init__(self, message: str = "Bot is disabled"):
        super().__init__(message, status_code=403)


class NotFoundError(AppError):
    """Resource not found, also used for resources owned by someone else (404)."""

    def __init__(self, message: str = "Not found"):
        super().__init__(message, status_code=404)


class ConfigurationError(AppError):
    """Bot is misconfigured: unknown/disabled exchange, missing credential (422)."""

    def __init__(self, message: str):
        super().__init__(message, status_code=422)


class CredentialError(ConfigurationError):
    """Stored secret could not be decrypted (422)."""


class UnsupportedExchangeError(AppError):
    """Exchange id is not registered or has been disabled (400)."""

    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class InsufficientDataError(AppError):
    """Not enough market/balance data to size an order safely (422)."""

    def __init__(self, message: str):
        super().__init__(message, status_code=422)


class SizingError(AppError):
    """Computed order amount is unusable (422)."""

    def __init__(self, message: str):
        super().__init__(message, status_code=422)


# Exchange failure classification -> HTTP-equivalent status
EXECUTION_ERROR_STATUS = {
    "authentication": 401,
    "insufficient_funds": 402,
    "invalid_order": 400,
    "rate_limit": 429,
    "network": 503,
    "exchange": 502,
}

RETRYABLE_EXECUTION_KINDS = frozenset({"rate_limit", "network"})


class ExecutionError(AppError):
    """
    Exchange rejected or failed an order.

    ``kind`` is one of EXECUTION_ERROR_STATUS's keys. The executor never
    retries; callers decide based on ``retryable``.
    """

    def __init__(self, message: str, kind: str = "exchange"):
        if kind not in EXECUTION_ERROR_STATUS:
            kind = "exchange"
        self.kind = kind
        super().__init__(message, status_code=EXECUTION_ERROR_STATUS[kind])

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_EXECUTION_KINDS


class PersistenceError(AppError):
    """
    Trade could not be stored after the order was submitted (500).

    The exchange position exists but the system has no record of it.
    """

    def __init__(self, message: str, external_id: Optional[str] = None):
        self.external_id = external_id
        super().__init__(message, status_code=500)
