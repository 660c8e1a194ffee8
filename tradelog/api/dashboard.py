"""Dashboard API — summary stats, equity curve and per-symbol breakdown."""

from fastapi import APIRouter, Depends

from tradelog.schemas.stats import (
    DashboardSummary,
    EquityPointRead,
    SymbolPerformanceRead,
    TradeStatisticsRead,
)
from tradelog.services.repository import TradeRepository
from tradelog.services.statistics import compute_statistics, equity_curve, symbol_performance
from tradelog.api.deps import get_owner_id, get_trade_repository

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/summary", response_model=DashboardSummary)
def dashboard_summary(
    owner_id: int = Depends(get_owner_id),
    repository: TradeRepository = Depends(get_trade_repository),
):
    stats = compute_statistics(repository.list_closed(owner_id))
    return DashboardSummary(
        statistics=TradeStatisticsRead.from_stats(stats),
        open_positions=len(repository.list_open(owner_id)),
    )


@router.get("/equity", response_model=list[EquityPointRead])
def equity(
    owner_id: int = Depends(get_owner_id),
    repository: TradeRepository = Depends(get_trade_repository),
):
    """Cumulative realized P&L, one point per closed trade."""
    return equity_curve(repository.list_closed(owner_id))


@router.get("/symbols", response_model=list[SymbolPerformanceRead])
def symbols(
    owner_id: int = Depends(get_owner_id),
    repository: TradeRepository = Depends(get_trade_repository),
):
    return symbol_performance(repository.list_closed(owner_id))
