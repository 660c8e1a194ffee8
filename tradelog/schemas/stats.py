"""Response schemas for statistics and dashboard endpoints."""

from datetime import datetime

from pydantic import BaseModel

from tradelog.services.statistics import TradeStatistics


class TradeStatisticsRead(BaseModel):
    total_trades: int
    winning_trades: int
    losing_trades: int
    breakeven_trades: int
    win_rate: float
    total_pnl: float
    # JSON has no infinity: an unbounded profit factor is sent as null
    profit_factor: float | None
    profit_factor_unbounded: bool
    average_win: float
    average_loss: float
    largest_win: float
    largest_loss: float

    @classmethod
    def from_stats(cls, stats: TradeStatistics) -> "TradeStatisticsRead":
        data = stats.to_dict()
        unbounded = stats.profit_factor_unbounded
        data["profit_factor"] = None if unbounded else stats.profit_factor
        return cls(**data, profit_factor_unbounded=unbounded)


class EquityPointRead(BaseModel):
    timestamp: datetime
    trade_id: int | None
    symbol: str
    pnl: float
    equity: float

    model_config = {"from_attributes": True}


class SymbolPerformanceRead(BaseModel):
    symbol: str
    trades: int
    pnl: float
    win_rate: float

    model_config = {"from_attributes": True}


class DashboardSummary(BaseModel):
    statistics: TradeStatisticsRead
    open_positions: int
