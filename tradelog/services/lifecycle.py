"""Position lifecycle: entry/exit signals, manual logging and edits.

A position moves absent -> open -> closed. Entry signals always open a new
trade; exit signals close the oldest open trade with the same owner, symbol
and direction. Closed trades are never reopened.
"""

import logging
from typing import Any

from pydantic import ValidationError

from tradelog.models.trade import Trade, TradeSource, TradeStatus
from tradelog.schemas.trade import TradeCreate, TradeUpdate
from tradelog.schemas.webhook import SignalAction, WebhookSignal
from tradelog.services.exceptions import TradeNotFoundError, TradeValidationError
from tradelog.services.repository import TradeRepository
from tradelog.services.statistics import calculate_pnl
from tradelog.utils.dates import ensure_utc, utcnow

logger = logging.getLogger(__name__)

DEFAULT_SIGNAL_QUANTITY = 1.0

# Fields a manual edit can change that feed into the stored pnl
_FINANCIAL_FIELDS = {"direction", "entry_price", "exit_price", "quantity", "fees"}
_TRADE_FIELDS = set(TradeCreate.model_fields) - {"status"}


def _validation_error(e: ValidationError) -> TradeValidationError:
    return TradeValidationError(
        e.errors(include_url=False, include_context=False, include_input=False)
    )


class PositionLifecycleManager:
    def __init__(self, repository: TradeRepository):
        self.repository = repository

    # -- webhook signals ---------------------------------------------------

    def handle_signal(self, owner_id: int, signal: WebhookSignal) -> Trade:
        if signal.action == SignalAction.ENTRY:
            return self.open_position(owner_id, signal)
        return self.close_position(owner_id, signal)

    def open_position(self, owner_id: int, signal: WebhookSignal) -> Trade:
        """Create a new open trade from an entry signal.

        Existing open trades for the same symbol/direction are left alone;
        a later exit closes the oldest one first.
        """
        trade = Trade(
            owner_id=owner_id,
            symbol=signal.symbol,
            direction=signal.direction,
            status=TradeStatus.OPEN,
            entry_price=signal.price,
            quantity=signal.quantity or DEFAULT_SIGNAL_QUANTITY,
            entry_time=ensure_utc(signal.time) or utcnow(),
            strategy=signal.strategy or "",
            source=TradeSource.AUTOMATED,
        )
        trade = self.repository.create(trade)
        logger.info(
            f"Opened {trade.direction.value} {trade.symbol} x{trade.quantity} "
            f"@ {trade.entry_price} (trade {trade.id}, owner {owner_id})"
        )
        return trade

    def close_position(self, owner_id: int, signal: WebhookSignal) -> Trade:
        """Close the oldest open trade matching the exit signal."""
        exit_time = ensure_utc(signal.time) or utcnow()
        trade = self.repository.close_oldest_open(
            owner_id, signal.symbol, signal.direction, signal.price, exit_time
        )
        if trade is None:
            # Open trades that all started after the exit are a bad signal time
            if self.repository.find_open(owner_id, signal.symbol, signal.direction) is not None:
                raise TradeValidationError.single(
                    "time", "exit time must not be earlier than the position's entry time"
                )
            logger.warning(
                f"Exit signal for {signal.symbol} {signal.direction.value} "
                f"has no open trade (owner {owner_id})"
            )
            raise TradeNotFoundError(
                "No open trade found for this symbol and direction",
                {"symbol": signal.symbol, "direction": signal.direction.value},
            )
        logger.info(
            f"Closed {trade.direction.value} {trade.symbol} @ {trade.exit_price} "
            f"pnl={trade.pnl:.2f} (trade {trade.id}, owner {owner_id})"
        )
        return trade

    # -- manual journal ------------------------------------------------------

    def log_trade(self, owner_id: int, data: TradeCreate) -> Trade:
        """Record a trade typed in by the user, open or already closed."""
        values = data.model_dump()
        if data.status == TradeStatus.CLOSED:
            values["exit_time"] = data.exit_time or utcnow()
            if values["exit_time"] < data.entry_time:
                raise TradeValidationError.single(
                    "exit_time", "exit_time must not be earlier than entry_time"
                )
            values["pnl"] = calculate_pnl(
                data.direction, data.entry_price, data.exit_price, data.quantity, data.fees
            )
        trade = Trade(owner_id=owner_id, source=TradeSource.MANUAL, **values)
        trade = self.repository.create(trade)
        logger.info(f"Logged {trade.status.value} trade {trade.id} {trade.symbol} (owner {owner_id})")
        return trade

    def get_trade(self, owner_id: int, trade_id: int) -> Trade:
        trade = self.repository.get(owner_id, trade_id)
        if trade is None:
            raise TradeNotFoundError("Trade not found", {"trade_id": trade_id})
        return trade

    def update_trade(self, owner_id: int, trade_id: int, data: TradeUpdate) -> Trade:
        """Apply a partial edit, re-validating the whole trade afterwards.

        Supplying an exit price on an open trade closes it. Editing prices,
        quantity or fees of a closed trade recomputes its pnl.
        """
        trade = self.get_trade(owner_id, trade_id)
        changes = data.model_dump(exclude_unset=True)
        hidden = changes.pop("hidden", None)

        if trade.is_closed and changes.get("status") == TradeStatus.OPEN:
            raise TradeValidationError.single("status", "a closed trade cannot be reopened")

        values = self._merge_and_validate(trade, changes)
        if hidden is not None:
            values["hidden"] = hidden

        updated = self.repository.update(owner_id, trade_id, values)
        if updated is None:
            raise TradeNotFoundError("Trade not found", {"trade_id": trade_id})
        logger.info(f"Updated trade {trade_id} (owner {owner_id}), status={updated.status.value}")
        return updated

    def _merge_and_validate(self, trade: Trade, changes: dict[str, Any]) -> dict[str, Any]:
        if not changes:
            return {}

        current = {name: getattr(trade, name) for name in _TRADE_FIELDS}
        current["status"] = trade.status
        merged = {**current, **changes}

        closing = trade.is_open and merged.get("exit_price") is not None
        if closing and "status" not in changes:
            merged["status"] = TradeStatus.CLOSED
        if merged["status"] == TradeStatus.CLOSED and merged.get("exit_price") is not None:
            merged["exit_time"] = merged.get("exit_time") or utcnow()

        # Validate the full merged trade so partial updates cannot bypass cross-field rules.
        try:
            validated = TradeCreate.model_validate(merged)
        except ValidationError as e:
            raise _validation_error(e) from e

        values = {key: getattr(validated, key) for key in changes if key != "status"}
        values["status"] = validated.status
        if validated.status == TradeStatus.CLOSED:
            values["exit_time"] = validated.exit_time
            if closing or _FINANCIAL_FIELDS & changes.keys() or trade.pnl is None:
                values["pnl"] = calculate_pnl(
                    validated.direction,
                    validated.entry_price,
                    validated.exit_price,
                    validated.quantity,
                    validated.fees,
                )
        return values

    def set_hidden(self, owner_id: int, trade_id: int, hidden: bool) -> Trade:
        trade = self.repository.update(owner_id, trade_id, {"hidden": hidden})
        if trade is None:
            raise TradeNotFoundError("Trade not found", {"trade_id": trade_id})
        return trade

    def delete_trade(self, owner_id: int, trade_id: int) -> None:
        if not self.repository.delete(owner_id, trade_id):
            raise TradeNotFoundError("Trade not found", {"trade_id": trade_id})
        logger.info(f"Deleted trade {trade_id} (owner {owner_id})")
