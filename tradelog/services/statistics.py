"""Trade statistics: realized P&L, win rate, profit factor, equity curve.

Everything here is a pure function of the trades passed in. Nothing is
cached; callers recompute from the closed-trade set on every request.
"""

import math
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Iterable

from tradelog.models.trade import Trade, TradeDirection, TradeStatus
from tradelog.utils.dates import ensure_utc

PNL_TOLERANCE = 1e-6


@dataclass(frozen=True)
class TradeStatistics:
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    breakeven_trades: int = 0
    win_rate: float = 0.0  # percent, 0-100
    total_pnl: float = 0.0
    profit_factor: float = 0.0  # math.inf when there are wins and no losses
    average_win: float = 0.0
    average_loss: float = 0.0  # magnitude, always >= 0
    largest_win: float = 0.0
    largest_loss: float = 0.0  # most negative pnl, <= 0

    @property
    def profit_factor_unbounded(self) -> bool:
        return math.isinf(self.profit_factor)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class EquityPoint:
    timestamp: datetime
    trade_id: int | None
    symbol: str
    pnl: float
    equity: float


@dataclass(frozen=True)
class SymbolPerformance:
    symbol: str
    trades: int
    pnl: float
    win_rate: float


def calculate_pnl(
    direction: TradeDirection | str,
    entry_price: float,
    exit_price: float,
    quantity: float,
    fees: float = 0.0,
) -> float:
    """Realized P&L net of fees. Shorts profit when price falls."""
    multiplier = 1 if TradeDirection(direction) == TradeDirection.LONG else -1
    gross = (exit_price - entry_price) * quantity * multiplier
    return gross - (fees or 0.0)


def formula_pnl(trade: Trade) -> float | None:
    if trade.exit_price is None:
        return None
    return calculate_pnl(
        trade.direction, trade.entry_price, trade.exit_price, trade.quantity, trade.fees
    )


def realized_pnl(trade: Trade) -> float | None:
    """Stored pnl when present, otherwise derived from prices."""
    if trade.pnl is not None:
        return trade.pnl
    return formula_pnl(trade)


def pnl_matches_formula(trade: Trade, tolerance: float = PNL_TOLERANCE) -> bool:
    """True when the stored pnl agrees with the price formula.

    Trades without a stored pnl or without an exit price trivially agree.
    """
    expected = formula_pnl(trade)
    if trade.pnl is None or expected is None:
        return True
    return math.isclose(trade.pnl, expected, rel_tol=tolerance, abs_tol=tolerance)


def _closed(trades: Iterable[Trade]) -> list[Trade]:
    return [t for t in trades if t.status == TradeStatus.CLOSED]


def compute_statistics(trades: Iterable[Trade]) -> TradeStatistics:
    """Summarise closed trades. Open trades in the input are ignored."""
    closed = _closed(trades)
    if not closed:
        return TradeStatistics()

    pnls = [realized_pnl(t) or 0.0 for t in closed]
    wins = [p for p in pnls if p > 0]
    losses = [p for p in pnls if p < 0]

    total = len(pnls)
    total_wins = math.fsum(wins)
    total_losses = abs(math.fsum(losses))

    if total_losses > 0:
        profit_factor = total_wins / total_losses
    elif total_wins > 0:
        profit_factor = math.inf
    else:
        profit_factor = 0.0

    return TradeStatistics(
        total_trades=total,
        winning_trades=len(wins),
        losing_trades=len(losses),
        breakeven_trades=total - len(wins) - len(losses),
        win_rate=len(wins) / total * 100,
        total_pnl=math.fsum(pnls),
        profit_factor=profit_factor,
        average_win=total_wins / len(wins) if wins else 0.0,
        average_loss=total_losses / len(losses) if losses else 0.0,
        largest_win=max(wins) if wins else 0.0,
        largest_loss=min(losses) if losses else 0.0,
    )


def _closed_at(trade: Trade) -> datetime:
    return ensure_utc(trade.exit_time or trade.entry_time)


def equity_curve(trades: Iterable[Trade]) -> list[EquityPoint]:
    """Cumulative realized P&L in the order trades were closed."""
    ordered = sorted(_closed(trades), key=lambda t: (_closed_at(t), t.id or 0))
    points: list[EquityPoint] = []
    equity = 0.0
    for trade in ordered:
        pnl = realized_pnl(trade) or 0.0
        equity += pnl
        points.append(EquityPoint(
            timestamp=_closed_at(trade),
            trade_id=trade.id,
            symbol=trade.symbol,
            pnl=pnl,
            equity=equity,
        ))
    return points


def symbol_performance(trades: Iterable[Trade]) -> list[SymbolPerformance]:
    """Per-symbol totals, best performer first."""
    grouped: dict[str, list[float]] = {}
    for trade in _closed(trades):
        grouped.setdefault(trade.symbol, []).append(realized_pnl(trade) or 0.0)

    rows = [
        SymbolPerformance(
            symbol=symbol,
            trades=len(pnls),
            pnl=math.fsum(pnls),
            win_rate=sum(1 for p in pnls if p > 0) / len(pnls) * 100,
        )
        for symbol, pnls in grouped.items()
    ]
    rows.sort(key=lambda r: (-r.pnl, r.symbol))
    return rows
