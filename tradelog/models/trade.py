"""Trade model — one journal entry, open or closed."""

from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, DateTime, Index
from sqlmodel import SQLModel, Field, Column

from tradelog.utils.dates import utcnow


class TradeDirection(str, Enum):
    LONG = "long"
    SHORT = "short"


class TradeStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class TradeSource(str, Enum):
    MANUAL = "manual"
    AUTOMATED = "automated"  # webhook alerts


class Trade(SQLModel, table=True):
    __tablename__ = "trade"
    __table_args__ = (
        Index("ix_trade_open_lookup", "owner_id", "symbol", "direction", "status"),
    )

    id: int | None = Field(default=None, primary_key=True)
    owner_id: int = Field(foreign_key="user.id", index=True)
    symbol: str = Field(index=True)
    direction: TradeDirection
    status: TradeStatus = TradeStatus.OPEN
    entry_price: float
    exit_price: float | None = None
    quantity: float = 1.0
    entry_time: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    exit_time: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))
    fees: float = 0.0
    pnl: float | None = None  # realized, net of fees; set when the trade closes
    strategy: str = ""
    tags: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    notes: str = ""
    source: TradeSource = TradeSource.MANUAL
    hidden: bool = False
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))

    @property
    def is_open(self) -> bool:
        return self.status == TradeStatus.OPEN

    @property
    def is_closed(self) -> bool:
        return self.status == TradeStatus.CLOSED
