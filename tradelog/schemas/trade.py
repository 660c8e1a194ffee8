"""Pydantic schemas for the Trade API."""

import math
from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from tradelog.models.trade import TradeDirection, TradeSource, TradeStatus
from tradelog.services.statistics import calculate_pnl
from tradelog.utils.dates import ensure_utc, utcnow

MAX_SYMBOL_LENGTH = 32


def normalize_symbol(value: str) -> str:
    symbol = value.strip().upper()
    if not symbol:
        raise ValueError("must not be empty")
    if len(symbol) > MAX_SYMBOL_LENGTH:
        raise ValueError(f"must be at most {MAX_SYMBOL_LENGTH} characters")
    return symbol


def normalize_tags(values: list[str]) -> list[str]:
    """Trim and lower-case tags, dropping blanks and repeats but keeping order."""
    seen: list[str] = []
    for raw in values:
        tag = raw.strip().lower()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


class TradeCreate(BaseModel):
    """A manually logged trade.

    Leaving out the exit fields logs an open position; supplying
    ``exit_price`` logs a completed trade. ``status`` may be omitted and is
    inferred from the exit fields, but when given it must agree with them.
    """

    symbol: str
    direction: TradeDirection
    status: TradeStatus | None = None
    entry_price: float = Field(gt=0, allow_inf_nan=False)
    exit_price: float | None = Field(default=None, gt=0, allow_inf_nan=False)
    quantity: float = Field(gt=0, allow_inf_nan=False)
    entry_time: datetime = Field(default_factory=utcnow)
    exit_time: datetime | None = None
    fees: float = Field(default=0.0, ge=0, allow_inf_nan=False)
    strategy: str = Field(default="", max_length=120)
    tags: list[str] = Field(default_factory=list)
    notes: str = Field(default="", max_length=5000)

    @field_validator("symbol")
    @classmethod
    def _normalize_symbol(cls, value: str) -> str:
        return normalize_symbol(value)

    @field_validator("strategy", "notes")
    @classmethod
    def _trim_text(cls, value: str) -> str:
        return value.strip()

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, value: list[str]) -> list[str]:
        return normalize_tags(value)

    @field_validator("entry_time", "exit_time")
    @classmethod
    def _to_utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value)

    @model_validator(mode="after")
    def _validate_exit_fields(self):
        if self.exit_time is not None and self.exit_price is None:
            raise ValueError("exit_time requires exit_price")
        if self.status == TradeStatus.OPEN and self.exit_price is not None:
            raise ValueError("an open trade cannot have exit_price or exit_time")
        if self.status == TradeStatus.CLOSED and self.exit_price is None:
            raise ValueError("a closed trade requires exit_price")
        if self.exit_time is not None and self.exit_time < self.entry_time:
            raise ValueError("exit_time must not be earlier than entry_time")
        if self.exit_price is not None and not math.isfinite(calculate_pnl(
            self.direction, self.entry_price, self.exit_price, self.quantity, self.fees
        )):
            raise ValueError("realized pnl is out of range")
        if self.status is None:
            self.status = TradeStatus.CLOSED if self.exit_price is not None else TradeStatus.OPEN
        return self


class TradeUpdate(BaseModel):
    """Partial edit. Unknown fields are rejected."""

    symbol: str | None = None
    direction: TradeDirection | None = None
    status: TradeStatus | None = None
    entry_price: float | None = Field(default=None, gt=0, allow_inf_nan=False)
    exit_price: float | None = Field(default=None, gt=0, allow_inf_nan=False)
    quantity: float | None = Field(default=None, gt=0, allow_inf_nan=False)
    entry_time: datetime | None = None
    exit_time: datetime | None = None
    fees: float | None = Field(default=None, ge=0, allow_inf_nan=False)
    strategy: str | None = Field(default=None, max_length=120)
    tags: list[str] | None = None
    notes: str | None = Field(default=None, max_length=5000)
    hidden: bool | None = None

    model_config = {"extra": "forbid"}

    @field_validator("symbol")
    @classmethod
    def _normalize_optional_symbol(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return normalize_symbol(value)

    @field_validator("tags")
    @classmethod
    def _normalize_optional_tags(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        return normalize_tags(value)

    @field_validator("entry_time", "exit_time")
    @classmethod
    def _to_utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value)


class TradeHiddenUpdate(BaseModel):
    hidden: bool


class TradeRead(BaseModel):
    id: int
    owner_id: int
    symbol: str
    direction: TradeDirection
    status: TradeStatus
    entry_price: float
    exit_price: float | None
    quantity: float
    entry_time: datetime
    exit_time: datetime | None
    fees: float
    pnl: float | None
    strategy: str
    tags: list[str]
    notes: str
    source: TradeSource
    hidden: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TradeFilters(BaseModel):
    """Query filters for listing trades."""

    symbol: str | None = None  # substring, case-insensitive
    direction: TradeDirection | None = None
    status: TradeStatus | None = None
    strategy: str | None = None  # substring, case-insensitive
    tag: str | None = None  # exact tag
    date_from: date | None = None  # entry date, inclusive
    date_to: date | None = None  # entry date, inclusive
    include_hidden: bool = False
    limit: int = Field(default=100, ge=1, le=1000)
    offset: int = Field(default=0, ge=0)

    @field_validator("symbol")
    @classmethod
    def _upper_symbol(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip().upper()

    @field_validator("strategy", "tag")
    @classmethod
    def _lower_text(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip().lower()

    @model_validator(mode="after")
    def _validate_range(self):
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must not be after date_to")
        return self
