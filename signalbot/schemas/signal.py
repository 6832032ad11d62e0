"""
Signal schemas

WebhookAlert mirrors the inbound JSON (TradingView field names, string
numbers allowed). Signal is the validated, immutable value that flows
through the pipeline; it has no secret field at all.
"""

from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class WebhookAlert(BaseModel):
    """Inbound alert body as sent by the strategy platform"""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    bot_id: Union[int, str]
    symbol: str
    action: str
    secret: str
    price: Optional[float] = Field(default=None, gt=0, allow_inf_nan=False)
    strategy: Optional[str] = None
    stoplossPercent: Optional[float] = Field(default=None, gt=0, lt=100, allow_inf_nan=False)
    amount: Optional[float] = Field(default=None, gt=0, allow_inf_nan=False)
    order_size: Optional[float] = Field(default=None, gt=0, allow_inf_nan=False)

    @field_validator("price", "stoplossPercent", "amount", "order_size", mode="before")
    @classmethod
    def reject_booleans(cls, v):
        # bool is an int subclass; true/false must not become 1.0/0.0
        if isinstance(v, bool):
            raise ValueError("must be a number")
        return v

    @field_validator("action", mode="before")
    @classmethod
    def normalize_action(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("action")
    @classmethod
    def check_action(cls, v: str) -> str:
        if v not in ("buy", "sell"):
            raise ValueError("Invalid action (must be buy or sell)")
        return v

    @field_validator("symbol")
    @classmethod
    def strip_symbol(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Symbol must not be empty")
        return v


class Signal(BaseModel):
    """Validated trading instruction"""

    model_config = ConfigDict(frozen=True)

    bot_id: str
    symbol: str
    action: Literal["buy", "sell"]
    price: Optional[float] = None
    strategy: Optional[str] = None
    stop_loss_percent: Optional[float] = None
    amount: Optional[float] = None
    order_size_percent: Optional[float] = None

    @property
    def is_buy(self) -> bool:
        return self.action == "buy"

    @classmethod
    def from_alert(cls, alert: WebhookAlert) -> "Signal":
        return cls(
            bot_id=str(alert.bot_id),
            symbol=alert.symbol,
            action=alert.action,
            price=alert.price,
            strategy=alert.strategy,
            stop_loss_percent=alert.stoplossPercent,
            amount=alert.amount,
            order_size_percent=alert.order_size,
        )

    def to_log_payload(self) -> dict:
        """Secret-free payload stored on the signal log"""
        return self.model_dump()
