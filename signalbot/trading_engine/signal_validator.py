"""
Webhook alert validation

First pipeline stage after webhook authentication. Normalizes the raw
alert into a Signal and drops the auth token so it never travels further.
Pure function: no database or exchange access.
"""

import logging
from typing import Any, Mapping

from pydantic import ValidationError as PydanticValidationError

from signalbot.exceptions import ValidationError
from signalbot.schemas.signal import Signal, WebhookAlert

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("bot_id", "symbol", "action", "secret")

# Inbound field name -> message shown when it fails validation
_FIELD_MESSAGES = {
    "action": "Invalid action (must be buy or sell)",
    "price": "Price must be a positive number",
    "stoplossPercent": "Stoploss percentage must be between 0 and 100",
    "amount": "Amount must be a positive number",
    "order_size": "Order size must be a positive number",
}


def _is_absent(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _format_errors(exc: PydanticValidationError) -> str:
    messages = []
    for error in exc.errors():
        field = str(error["loc"][0]) if error.get("loc") else "payload"
        message = _FIELD_MESSAGES.get(field, f"Invalid {field}: {error.get('msg')}")
        if message not in messages:
            messages.append(message)
    return "; ".join(messages)


def validate_webhook_alert(raw: Any) -> Signal:
    """
    Validate an inbound alert and return the canonical Signal.

    Args:
        raw: Decoded JSON body

    Returns:
        Signal with lower-cased action, numeric fields coerced, secret removed

    Raises:
        ValidationError: payload not an object, required field missing,
            bad action, or a numeric field non-numeric/out of range
    """
    if not isinstance(raw, Mapping):
        raise ValidationError("Alert must be an object")

    missing = [name for name in REQUIRED_FIELDS if _is_absent(raw.get(name))]
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}")

    try:
        alert = WebhookAlert.model_validate(dict(raw))
    except PydanticValidationError as e:
        raise ValidationError(_format_errors(e)) from e

    signal = Signal.from_alert(alert)

    logger.info(
        f"Webhook alert validated: bot={signal.bot_id} {signal.action} {signal.symbol}"
        + (f" @ {signal.price}" if signal.price else "")
    )
    return signal
