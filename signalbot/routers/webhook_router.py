"""
Webhook API routes

Handles inbound strategy alerts:
- Receive and execute an alert
- Poll the processing status of an alert
- List the exchanges alerts can be routed to
"""

import json
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from signalbot.database import get_db
from signalbot.exceptions import ValidationError
from signalbot.exchange_clients.registry import list_enabled_exchanges
from signalbot.services.signal_service import create_signal_log, get_signal_log, process_webhook_alert

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["webhook"])


async def read_alert_body(request: Request):
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Alert body must be valid JSON")


@router.post("/webhook")
async def receive_webhook(payload=Depends(read_alert_body), db: AsyncSession = Depends(get_db)):
    """
    Execute a strategy alert.

    Errors propagate as AppError and are rendered by the handler in main.py.
    """
    signal_log = await create_signal_log(db, payload)
    trade = await process_webhook_alert(db, payload, signal_id=signal_log.id)
    return {"success": True, "signal_id": signal_log.id, "trade": trade.to_dict()}


@router.get("/webhook/status/{signal_id}")
async def get_webhook_status(signal_id: str, db: AsyncSession = Depends(get_db)):
    """Processing status of a previously received alert"""
    signal_log = await get_signal_log(db, signal_id)
    return signal_log.to_dict()


@router.get("/exchanges")
async def get_exchanges():
    """Enabled exchanges and the credentials a bot needs for each"""
    return {
        "exchanges": [
            {
                "id": plugin.id,
                "name": plugin.label,
                "required_credentials": list(plugin.required_credentials),
                "optional_credentials": list(plugin.optional_credentials),
            }
            for plugin in list_enabled_exchanges()
        ]
    }
