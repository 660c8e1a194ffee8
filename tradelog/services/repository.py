"""Trade storage behind a narrow interface.

The lifecycle manager and the statistics endpoints only talk to
``TradeRepository``. ``SqlTradeRepository`` is used by the API;
``InMemoryTradeRepository`` keeps the same semantics in a dict.
"""

import logging
import math
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, time, timedelta, timezone
from typing import Any, Iterator

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from tradelog.models.trade import Trade, TradeDirection, TradeStatus
from tradelog.schemas.trade import TradeFilters
from tradelog.services.exceptions import StorageError, TradeValidationError
from tradelog.services.statistics import calculate_pnl
from tradelog.utils.dates import ensure_utc, utcnow

logger = logging.getLogger(__name__)

# A concurrent writer can close the candidate between lookup and update;
# after this many lost races the exit is reported as unmatched.
MAX_CLOSE_ATTEMPTS = 5


def _day_bounds(filters: TradeFilters) -> tuple[datetime | None, datetime | None]:
    start = end = None
    if filters.date_from:
        start = datetime.combine(filters.date_from, time.min, tzinfo=timezone.utc)
    if filters.date_to:
        end = datetime.combine(filters.date_to + timedelta(days=1), time.min, tzinfo=timezone.utc)
    return start, end


def matches_filters(trade: Trade, filters: TradeFilters) -> bool:
    if trade.hidden and not filters.include_hidden:
        return False
    if filters.symbol and filters.symbol not in trade.symbol:
        return False
    if filters.direction and trade.direction != filters.direction:
        return False
    if filters.status and trade.status != filters.status:
        return False
    if filters.strategy and filters.strategy not in trade.strategy.lower():
        return False
    if filters.tag and filters.tag not in trade.tags:
        return False
    start, end = _day_bounds(filters)
    entry_time = ensure_utc(trade.entry_time)
    if start and entry_time < start:
        return False
    if end and entry_time >= end:
        return False
    return True


def _open_order_key(trade: Trade) -> tuple:
    return (ensure_utc(trade.entry_time), trade.id or 0)


def _closing_values(trade: Trade, exit_price: float, exit_time: datetime) -> dict[str, Any]:
    pnl = calculate_pnl(trade.direction, trade.entry_price, exit_price, trade.quantity, trade.fees)
    if not math.isfinite(pnl):
        raise TradeValidationError.single("price", "realized pnl is out of range")
    return {
        "status": TradeStatus.CLOSED,
        "exit_price": exit_price,
        "exit_time": exit_time,
        "pnl": pnl,
        "updated_at": utcnow(),
    }


class TradeRepository(ABC):
    """Read/write contract used by the journal services.

    Every lookup is scoped to an owner: a trade belonging to someone else
    behaves exactly like a missing one.
    """

    @abstractmethod
    def create(self, trade: Trade) -> Trade: ...

    @abstractmethod
    def get(self, owner_id: int, trade_id: int) -> Trade | None: ...

    @abstractmethod
    def list_trades(self, owner_id: int, filters: TradeFilters | None = None) -> list[Trade]:
        """Trades matching ``filters``, newest entry first."""

    @abstractmethod
    def list_closed(self, owner_id: int, include_hidden: bool = False) -> list[Trade]: ...

    @abstractmethod
    def list_open(self, owner_id: int) -> list[Trade]:
        """Open trades, oldest entry first."""

    @abstractmethod
    def update(self, owner_id: int, trade_id: int, values: dict[str, Any]) -> Trade | None: ...

    @abstractmethod
    def close_oldest_open(
        self,
        owner_id: int,
        symbol: str,
        direction: TradeDirection,
        exit_price: float,
        exit_time: datetime,
    ) -> Trade | None:
        """Close the oldest open trade for (owner, symbol, direction).

        Only trades entered at or before ``exit_time`` qualify. The
        open -> closed transition only applies to a row that is still open,
        so two exits racing for one position close it once.
        Returns None when no open trade matches.
        """

    @abstractmethod
    def delete(self, owner_id: int, trade_id: int) -> bool: ...

    def find_open(
        self,
        owner_id: int,
        symbol: str,
        direction: TradeDirection,
        entered_by: datetime | None = None,
    ) -> Trade | None:
        """Oldest open trade for the symbol and direction, if any.

        With ``entered_by``, trades entered after that moment are skipped.
        """
        for trade in self.list_open(owner_id):
            if trade.symbol != symbol or trade.direction != direction:
                continue
            if entered_by is None or ensure_utc(trade.entry_time) <= entered_by:
                return trade
        return None


class SqlTradeRepository(TradeRepository):
    def __init__(self, session: Session):
        self.session = session

    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Storage failure while trying to {action}: {e}")
            raise StorageError(f"Could not {action}", {"error": type(e).__name__}) from e

    def create(self, trade: Trade) -> Trade:
        with self._guard("create trade"):
            self.session.add(trade)
            self.session.commit()
            self.session.refresh(trade)
        return trade

    def get(self, owner_id: int, trade_id: int) -> Trade | None:
        with self._guard("load trade"):
            trade = self.session.get(Trade, trade_id)
        if trade is None or trade.owner_id != owner_id:
            return None
        return trade

    def list_trades(self, owner_id: int, filters: TradeFilters | None = None) -> list[Trade]:
        filters = filters or TradeFilters()
        stmt = select(Trade).where(Trade.owner_id == owner_id)
        if not filters.include_hidden:
            stmt = stmt.where(Trade.hidden == False)  # noqa: E712
        if filters.symbol:
            stmt = stmt.where(Trade.symbol.contains(filters.symbol))
        if filters.direction:
            stmt = stmt.where(Trade.direction == filters.direction)
        if filters.status:
            stmt = stmt.where(Trade.status == filters.status)
        if filters.strategy:
            stmt = stmt.where(func.lower(Trade.strategy).contains(filters.strategy))
        start, end = _day_bounds(filters)
        if start:
            stmt = stmt.where(Trade.entry_time >= start)
        if end:
            stmt = stmt.where(Trade.entry_time < end)
        stmt = stmt.order_by(Trade.entry_time.desc(), Trade.id.desc())

        # Tags live in a JSON column; membership is checked in Python so the
        # query stays portable between SQLite and PostgreSQL.
        if not filters.tag:
            stmt = stmt.offset(filters.offset).limit(filters.limit)
        with self._guard("list trades"):
            rows = list(self.session.exec(stmt).all())
        if filters.tag:
            rows = [t for t in rows if filters.tag in t.tags]
            rows = rows[filters.offset:filters.offset + filters.limit]
        return rows

    def list_closed(self, owner_id: int, include_hidden: bool = False) -> list[Trade]:
        stmt = select(Trade).where(
            Trade.owner_id == owner_id,
            Trade.status == TradeStatus.CLOSED,
        )
        if not include_hidden:
            stmt = stmt.where(Trade.hidden == False)  # noqa: E712
        with self._guard("list closed trades"):
            return list(self.session.exec(stmt).all())

    def list_open(self, owner_id: int) -> list[Trade]:
        stmt = (
            select(Trade)
            .where(Trade.owner_id == owner_id, Trade.status == TradeStatus.OPEN)
            .order_by(Trade.entry_time, Trade.id)
        )
        with self._guard("list open trades"):
            return list(self.session.exec(stmt).all())

    def find_open(
        self,
        owner_id: int,
        symbol: str,
        direction: TradeDirection,
        entered_by: datetime | None = None,
    ) -> Trade | None:
        stmt = select(Trade).where(
            Trade.owner_id == owner_id,
            Trade.symbol == symbol,
            Trade.direction == direction,
            Trade.status == TradeStatus.OPEN,
        )
        if entered_by is not None:
            stmt = stmt.where(Trade.entry_time <= entered_by)
        stmt = stmt.order_by(Trade.entry_time, Trade.id)
        with self._guard("find open trade"):
            return self.session.exec(stmt).first()

    def update(self, owner_id: int, trade_id: int, values: dict[str, Any]) -> Trade | None:
        trade = self.get(owner_id, trade_id)
        if trade is None:
            return None
        with self._guard("update trade"):
            for key, value in values.items():
                setattr(trade, key, value)
            trade.updated_at = utcnow()
            self.session.add(trade)
            self.session.commit()
            self.session.refresh(trade)
        return trade

    def close_oldest_open(
        self,
        owner_id: int,
        symbol: str,
        direction: TradeDirection,
        exit_price: float,
        exit_time: datetime,
    ) -> Trade | None:
        for _ in range(MAX_CLOSE_ATTEMPTS):
            candidate = self.find_open(owner_id, symbol, direction, exit_time)
            if candidate is None:
                return None

            stmt = (
                update(Trade)
                .where(
                    Trade.id == candidate.id,
                    Trade.status == TradeStatus.OPEN,
                    Trade.entry_time <= exit_time,
                )
                .values(**_closing_values(candidate, exit_price, exit_time))
                .execution_options(synchronize_session=False)
            )
            with self._guard("close trade"):
                result = self.session.execute(stmt)
                if result.rowcount == 1:
                    self.session.commit()
                    self.session.refresh(candidate)
                    return candidate
                self.session.rollback()
            logger.warning(f"Trade {candidate.id} was closed concurrently, retrying lookup")
        return None

    def delete(self, owner_id: int, trade_id: int) -> bool:
        trade = self.get(owner_id, trade_id)
        if trade is None:
            return False
        with self._guard("delete trade"):
            self.session.delete(trade)
            self.session.commit()
        return True


class InMemoryTradeRepository(TradeRepository):
    """Dict-backed repository with the same ownership and ordering rules."""

    def __init__(self):
        self._trades: dict[int, Trade] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def create(self, trade: Trade) -> Trade:
        with self._lock:
            trade.id = self._next_id
            self._next_id += 1
            self._trades[trade.id] = trade
        return trade

    def get(self, owner_id: int, trade_id: int) -> Trade | None:
        trade = self._trades.get(trade_id)
        if trade is None or trade.owner_id != owner_id:
            return None
        return trade

    def _owned(self, owner_id: int) -> list[Trade]:
        return [t for t in self._trades.values() if t.owner_id == owner_id]

    def list_trades(self, owner_id: int, filters: TradeFilters | None = None) -> list[Trade]:
        filters = filters or TradeFilters()
        rows = [t for t in self._owned(owner_id) if matches_filters(t, filters)]
        rows.sort(key=lambda t: (ensure_utc(t.entry_time), t.id), reverse=True)
        return rows[filters.offset:filters.offset + filters.limit]

    def list_closed(self, owner_id: int, include_hidden: bool = False) -> list[Trade]:
        return [
            t for t in self._owned(owner_id)
            if t.status == TradeStatus.CLOSED and (include_hidden or not t.hidden)
        ]

    def list_open(self, owner_id: int) -> list[Trade]:
        rows = [t for t in self._owned(owner_id) if t.status == TradeStatus.OPEN]
        return sorted(rows, key=_open_order_key)

    def update(self, owner_id: int, trade_id: int, values: dict[str, Any]) -> Trade | None:
        with self._lock:
            trade = self.get(owner_id, trade_id)
            if trade is None:
                return None
            for key, value in values.items():
                setattr(trade, key, value)
            trade.updated_at = utcnow()
        return trade

    def close_oldest_open(
        self,
        owner_id: int,
        symbol: str,
        direction: TradeDirection,
        exit_price: float,
        exit_time: datetime,
    ) -> Trade | None:
        with self._lock:
            trade = self.find_open(owner_id, symbol, direction, exit_time)
            if trade is None:
                return None
            for key, value in _closing_values(trade, exit_price, exit_time).items():
                setattr(trade, key, value)
        return trade

    def delete(self, owner_id: int, trade_id: int) -> bool:
        with self._lock:
            if self.get(owner_id, trade_id) is None:
                return False
            del self._trades[trade_id]
        return True
