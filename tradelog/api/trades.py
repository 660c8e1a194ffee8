"""Trade journal API: manual CRUD, visibility and statistics."""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError

from tradelog.models.trade import TradeDirection, TradeStatus
from tradelog.schemas.stats import TradeStatisticsRead
from tradelog.schemas.trade import (
    TradeCreate,
    TradeFilters,
    TradeHiddenUpdate,
    TradeRead,
    TradeUpdate,
)
from tradelog.services.lifecycle import PositionLifecycleManager
from tradelog.services.repository import TradeRepository
from tradelog.services.statistics import compute_statistics
from tradelog.api.deps import get_lifecycle, get_owner_id, get_trade_repository

router = APIRouter(prefix="/api/trades", tags=["trades"])


@router.get("", response_model=list[TradeRead])
def list_trades(
    symbol: str | None = None,
    direction: TradeDirection | None = None,
    status: TradeStatus | None = None,
    strategy: str | None = None,
    tag: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    include_hidden: bool = False,
    limit: int = 100,
    offset: int = 0,
    owner_id: int = Depends(get_owner_id),
    repository: TradeRepository = Depends(get_trade_repository),
):
    try:
        filters = TradeFilters(
            symbol=symbol,
            direction=direction,
            status=status,
            strategy=strategy,
            tag=tag,
            date_from=date_from,
            date_to=date_to,
            include_hidden=include_hidden,
            limit=limit,
            offset=offset,
        )
    except ValidationError as e:
        raise HTTPException(
            status_code=422,
            detail=e.errors(include_url=False, include_context=False, include_input=False),
        )
    return repository.list_trades(owner_id, filters)


@router.post("", response_model=TradeRead, status_code=201)
def create_trade(
    data: TradeCreate,
    owner_id: int = Depends(get_owner_id),
    lifecycle: PositionLifecycleManager = Depends(get_lifecycle),
):
    return lifecycle.log_trade(owner_id, data)


@router.get("/stats", response_model=TradeStatisticsRead)
def trade_statistics(
    owner_id: int = Depends(get_owner_id),
    repository: TradeRepository = Depends(get_trade_repository),
):
    """Performance summary over the caller's visible closed trades."""
    stats = compute_statistics(repository.list_closed(owner_id))
    return TradeStatisticsRead.from_stats(stats)


@router.get("/{trade_id}", response_model=TradeRead)
def get_trade(
    trade_id: int,
    owner_id: int = Depends(get_owner_id),
    lifecycle: PositionLifecycleManager = Depends(get_lifecycle),
):
    return lifecycle.get_trade(owner_id, trade_id)


@router.patch("/{trade_id}", response_model=TradeRead)
def update_trade(
    trade_id: int,
    data: TradeUpdate,
    owner_id: int = Depends(get_owner_id),
    lifecycle: PositionLifecycleManager = Depends(get_lifecycle),
):
    return lifecycle.update_trade(owner_id, trade_id, data)


@router.patch("/{trade_id}/hidden", response_model=TradeRead)
def set_trade_hidden(
    trade_id: int,
    body: TradeHiddenUpdate,
    owner_id: int = Depends(get_owner_id),
    lifecycle: PositionLifecycleManager = Depends(get_lifecycle),
):
    return lifecycle.set_hidden(owner_id, trade_id, body.hidden)


@router.delete("/{trade_id}", status_code=204)
def delete_trade(
    trade_id: int,
    owner_id: int = Depends(get_owner_id),
    lifecycle: PositionLifecycleManager = Depends(get_lifecycle),
):
    lifecycle.delete_trade(owner_id, trade_id)
