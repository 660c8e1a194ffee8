"""Pydantic schemas for automated trade signals (TradingView-style alerts)."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator

from tradelog.models.trade import TradeDirection
from tradelog.schemas.trade import normalize_symbol
from tradelog.utils.dates import ensure_utc


class SignalAction(str, Enum):
    ENTRY = "entry"
    EXIT = "exit"


class WebhookSignal(BaseModel):
    """Alert payload.

    An entry opens a new position; an exit closes the oldest open position
    for the same symbol and direction. ``quantity`` only applies to entries.
    """

    action: SignalAction
    symbol: str
    direction: TradeDirection
    price: float = Field(gt=0, allow_inf_nan=False)
    quantity: float | None = Field(default=None, gt=0, allow_inf_nan=False)
    strategy: str | None = Field(default=None, max_length=120)
    time: datetime | None = None

    @field_validator("action", "direction", mode="before")
    @classmethod
    def _lower_enum(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("symbol")
    @classmethod
    def _normalize_symbol(cls, value: str) -> str:
        return normalize_symbol(value)

    @field_validator("strategy")
    @classmethod
    def _trim_strategy(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip()

    @field_validator("time")
    @classmethod
    def _to_utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value)

    @model_validator(mode="after")
    def _entry_only_fields(self):
        if self.action == SignalAction.EXIT and self.quantity is not None:
            raise ValueError("quantity is only accepted on entry signals")
        return self
