"""Tests for the position lifecycle manager, run against both repositories."""

import logging

import pytest

from tradelog.models.trade import TradeDirection, TradeSource, TradeStatus
from tradelog.schemas.trade import TradeCreate, TradeUpdate
from tradelog.schemas.webhook import WebhookSignal
from tradelog.services.exceptions import TradeNotFoundError, TradeValidationError
from tradelog.services.lifecycle import PositionLifecycleManager
from tradelog.services.statistics import compute_statistics, pnl_matches_formula

from conftest import utc


@pytest.fixture
def manager(repository):
    return PositionLifecycleManager(repository)


def entry(symbol="sym", direction="long", price=100.0, **kwargs) -> WebhookSignal:
    return WebhookSignal(action="entry", symbol=symbol, direction=direction, price=price, **kwargs)


def exit_(symbol="sym", direction="long", price=110.0, **kwargs) -> WebhookSignal:
    return WebhookSignal(action="exit", symbol=symbol, direction=direction, price=price, **kwargs)


# ---------------------------------------------------------------------------
# 1. Webhook state machine
# ---------------------------------------------------------------------------

class TestSignals:
    def test_entry_creates_open_trade(self, manager, user):
        trade = manager.handle_signal(user.id, entry(strategy="Breakout", time=utc(2024, 3, 1, 9)))

        assert trade.id is not None
        assert trade.symbol == "SYM"
        assert trade.status == TradeStatus.OPEN
        assert trade.quantity == 1.0
        assert trade.strategy == "Breakout"
        assert trade.source == TradeSource.AUTOMATED
        assert trade.exit_price is None
        assert trade.exit_time is None
        assert trade.pnl is None

    def test_entry_exit_exit(self, manager, repository, user):
        opened = manager.handle_signal(user.id, entry(quantity=10, time=utc(2024, 3, 1, 9)))

        closed = manager.handle_signal(user.id, exit_(price=110, time=utc(2024, 3, 1, 10)))
        assert closed.id == opened.id
        assert closed.status == TradeStatus.CLOSED
        assert closed.exit_price == 110
        assert closed.pnl == pytest.approx(100)
        assert pnl_matches_formula(closed)

        before = [(t.id, t.status, t.exit_price, t.pnl) for t in repository.list_trades(user.id)]
        with pytest.raises(TradeNotFoundError):
            manager.handle_signal(user.id, exit_(price=120))
        after = [(t.id, t.status, t.exit_price, t.pnl) for t in repository.list_trades(user.id)]
        assert before == after

    def test_two_entries_close_oldest_first(self, manager, repository, user):
        first = manager.handle_signal(user.id, entry(price=100, time=utc(2024, 3, 1, 9)))
        second = manager.handle_signal(user.id, entry(price=105, time=utc(2024, 3, 1, 11)))

        closed = manager.handle_signal(user.id, exit_(price=110, time=utc(2024, 3, 1, 12)))

        assert closed.id == first.id
        still_open = repository.list_open(user.id)
        assert [t.id for t in still_open] == [second.id]

    def test_exit_only_matches_same_direction(self, manager, user):
        manager.handle_signal(user.id, entry(direction="short"))
        with pytest.raises(TradeNotFoundError):
            manager.handle_signal(user.id, exit_(direction="long"))

    def test_exit_symbol_is_case_insensitive(self, manager, user):
        manager.handle_signal(user.id, entry(symbol="btcusd"))
        closed = manager.handle_signal(user.id, exit_(symbol="BTCUSD"))
        assert closed.symbol == "BTCUSD"

    def test_exit_cannot_touch_other_owner(self, manager, user, other_user):
        manager.handle_signal(other_user.id, entry())
        with pytest.raises(TradeNotFoundError):
            manager.handle_signal(user.id, exit_())

    def test_short_position_pnl(self, manager, user):
        manager.handle_signal(user.id, entry(direction="short", price=50, quantity=2))
        closed = manager.handle_signal(user.id, exit_(direction="short", price=60))
        assert closed.pnl == pytest.approx(-20)

    def test_exit_before_entry_time_rejected(self, manager, repository, user):
        manager.handle_signal(user.id, entry(time=utc(2024, 3, 1, 9)))
        with pytest.raises(TradeValidationError):
            manager.handle_signal(user.id, exit_(time=utc(2024, 2, 1)))
        assert len(repository.list_open(user.id)) == 1

    def test_exit_with_overflowing_pnl_rejected(self, manager, repository, user):
        manager.handle_signal(user.id, entry(direction="short", price=1e308, quantity=10))
        with pytest.raises(TradeValidationError):
            manager.handle_signal(user.id, exit_(direction="short", price=1))
        still_open = repository.list_open(user.id)
        assert len(still_open) == 1
        assert still_open[0].pnl is None

    def test_missing_exit_logs_warning(self, manager, user, caplog):
        with caplog.at_level(logging.WARNING):
            with pytest.raises(TradeNotFoundError):
                manager.handle_signal(user.id, exit_(symbol="nvda"))
        assert "NVDA" in caplog.text


# ---------------------------------------------------------------------------
# 2. Manual logging
# ---------------------------------------------------------------------------

class TestLogTrade:
    def test_log_closed_trade(self, manager, user):
        data = TradeCreate(
            symbol="aapl", direction="long", entry_price=100, exit_price=110,
            quantity=10, fees=5, entry_time=utc(2024, 1, 2), exit_time=utc(2024, 1, 3),
            tags=["Swing", "swing", " "],
        )
        trade = manager.log_trade(user.id, data)

        assert trade.status == TradeStatus.CLOSED
        assert trade.pnl == pytest.approx(95)
        assert trade.source == TradeSource.MANUAL
        assert trade.tags == ["swing"]

    def test_log_open_trade(self, manager, user):
        data = TradeCreate(symbol="MSFT", direction="short", entry_price=300, quantity=1)
        trade = manager.log_trade(user.id, data)
        assert trade.status == TradeStatus.OPEN
        assert trade.pnl is None

    def test_log_closed_without_exit_time_uses_now(self, manager, user):
        data = TradeCreate(
            symbol="MSFT", direction="long", entry_price=300, exit_price=310,
            quantity=1, entry_time=utc(2024, 1, 2),
        )
        trade = manager.log_trade(user.id, data)
        assert trade.exit_time is not None

    def test_manual_log_does_not_close_open_position(self, manager, repository, user):
        opened = manager.handle_signal(user.id, entry())
        manager.log_trade(user.id, TradeCreate(
            symbol="SYM", direction="long", entry_price=100, exit_price=120, quantity=1,
        ))
        assert [t.id for t in repository.list_open(user.id)] == [opened.id]


# ---------------------------------------------------------------------------
# 3. Editing
# ---------------------------------------------------------------------------

class TestUpdateTrade:
    def _open(self, manager, user):
        return manager.log_trade(user.id, TradeCreate(
            symbol="SYM", direction="long", entry_price=100, quantity=10,
            entry_time=utc(2024, 1, 2),
        ))

    def test_supplying_exit_price_closes(self, manager, user):
        trade = self._open(manager, user)
        updated = manager.update_trade(user.id, trade.id, TradeUpdate(exit_price=105, fees=1))
        assert updated.status == TradeStatus.CLOSED
        assert updated.exit_time is not None
        assert updated.pnl == pytest.approx(49)

    def test_status_closed_without_exit_price_rejected(self, manager, user):
        trade = self._open(manager, user)
        with pytest.raises(TradeValidationError):
            manager.update_trade(user.id, trade.id, TradeUpdate(status="closed"))
        assert manager.get_trade(user.id, trade.id).status == TradeStatus.OPEN

    def test_exit_time_without_price_rejected(self, manager, user):
        trade = self._open(manager, user)
        with pytest.raises(TradeValidationError):
            manager.update_trade(user.id, trade.id, TradeUpdate(exit_time=utc(2024, 1, 3)))

    def test_cannot_reopen(self, manager, user):
        trade = self._open(manager, user)
        manager.update_trade(user.id, trade.id, TradeUpdate(exit_price=105))
        with pytest.raises(TradeValidationError):
            manager.update_trade(user.id, trade.id, TradeUpdate(status="open"))

    def test_clearing_exit_price_of_closed_trade_rejected(self, manager, user):
        trade = self._open(manager, user)
        manager.update_trade(user.id, trade.id, TradeUpdate(exit_price=105))
        with pytest.raises(TradeValidationError):
            manager.update_trade(user.id, trade.id, TradeUpdate(exit_price=None))

    def test_editing_closed_trade_recomputes_pnl(self, manager, user):
        trade = self._open(manager, user)
        manager.update_trade(user.id, trade.id, TradeUpdate(exit_price=105))
        updated = manager.update_trade(user.id, trade.id, TradeUpdate(quantity=2, fees=3))
        assert updated.pnl == pytest.approx(7)
        assert pnl_matches_formula(updated)

    def test_exit_before_entry_rejected(self, manager, user):
        trade = self._open(manager, user)
        with pytest.raises(TradeValidationError) as exc_info:
            manager.update_trade(
                user.id, trade.id, TradeUpdate(exit_price=105, exit_time=utc(2023, 12, 31))
            )
        assert exc_info.value.errors

    def test_notes_only_edit_keeps_state(self, manager, user):
        trade = self._open(manager, user)
        updated = manager.update_trade(user.id, trade.id, TradeUpdate(notes="  chased it "))
        assert updated.notes == "chased it"
        assert updated.status == TradeStatus.OPEN
        assert updated.direction == TradeDirection.LONG

    def test_foreign_trade_is_not_found(self, manager, user, other_user):
        trade = self._open(manager, user)
        with pytest.raises(TradeNotFoundError):
            manager.update_trade(other_user.id, trade.id, TradeUpdate(notes="mine now"))
        with pytest.raises(TradeNotFoundError):
            manager.delete_trade(other_user.id, trade.id)
        with pytest.raises(TradeNotFoundError):
            manager.set_hidden(other_user.id, trade.id, True)


# ---------------------------------------------------------------------------
# 4. Visibility and deletion
# ---------------------------------------------------------------------------

def test_hidden_trades_leave_statistics(manager, repository, user):
    winner = manager.log_trade(user.id, TradeCreate(
        symbol="A", direction="long", entry_price=10, exit_price=20, quantity=1,
    ))
    manager.log_trade(user.id, TradeCreate(
        symbol="B", direction="long", entry_price=10, exit_price=5, quantity=1,
    ))

    manager.set_hidden(user.id, winner.id, True)

    stats = compute_statistics(repository.list_closed(user.id))
    assert stats.total_trades == 1
    assert stats.total_pnl == pytest.approx(-5)
    assert len(repository.list_closed(user.id, include_hidden=True)) == 2
    assert manager.get_trade(user.id, winner.id).pnl == pytest.approx(10)


def test_delete_trade(manager, user):
    trade = manager.handle_signal(user.id, entry())
    manager.delete_trade(user.id, trade.id)
    with pytest.raises(TradeNotFoundError):
        manager.get_trade(user.id, trade.id)
    with pytest.raises(TradeNotFoundError):
        manager.delete_trade(user.id, trade.id)
