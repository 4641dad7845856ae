"""Tests for tradesim.ledger – opening, modifying and closing positions."""

import pytest

from conftest import ONE_MINUTE, make_bar
from tradesim.config import SimulationConfig
from tradesim.context import SimulationContext
from tradesim.ledger import PositionLedger
from tradesim.marketdata import get_asset
from tradesim.performance import PerformanceTracker
from tradesim.position import AtrMultiple, PipsDistance, Position
from tradesim.recording import ClosedTrade, TradeHistory
from tradesim.types import CloseReason, RejectReason, Rejection, Side


def _move_market(ledger, close, time=660, high=None, low=None):
    bar = make_bar(time=time, open=ledger.context.market.last_close, high=high, low=low, close=close)
    ledger.context.market.last_bar = bar
    return bar


def _build_ledger(config):
    # EURUSD carries a 0.5 pip spread
    ctx = SimulationContext(config=config, asset=get_asset("EURUSD"), timeframe=ONE_MINUTE)
    ctx.market.last_bar = make_bar(time=600, open=1.1, close=1.1)
    tracker = PerformanceTracker(config)
    return PositionLedger(ctx, tracker, TradeHistory())


# ---------------------------------------------------------------------------
# Open
# ---------------------------------------------------------------------------

class TestOpenPips:

    def test_buy_levels_measured_from_entry(self, ledger):
        pos = ledger.open(Side.BUY, 10000, PipsDistance(10, 20))

        assert isinstance(pos, Position)
        assert pos.id == 1
        assert pos.entry_price == pytest.approx(1.1)
        assert pos.stop_loss == pytest.approx(1.0990)
        assert pos.take_profit == pytest.approx(1.1020)
        assert pos.entry_time == 600
        assert pos.risk_amount == pytest.approx(10.0)
        assert pos.live_pnl == 0.0
        assert ledger.positions == [pos]

    def test_sell_levels(self, ledger):
        pos = ledger.open(Side.SELL, 10000, PipsDistance(10, 20))
        assert pos.stop_loss == pytest.approx(1.1010)
        assert pos.take_profit == pytest.approx(1.0980)

    def test_buy_pays_spread_on_entry(self, config):
        ledger = _build_ledger(config)
        buy = ledger.open(Side.BUY, 10000, PipsDistance(10, 20))
        sell = ledger.open(Side.SELL, 10000, PipsDistance(10, 20))
        assert buy.entry_price == pytest.approx(1.10005)
        assert sell.entry_price == pytest.approx(1.1)

    def test_ids_are_monotonic(self, ledger):
        first = ledger.open(Side.BUY, 10000, PipsDistance(10, 20))
        second = ledger.open(Side.SELL, 10000, PipsDistance(10, 20))
        ledger.close(first.id)
        third = ledger.open(Side.BUY, 10000, PipsDistance(10, 20))
        assert [first.id, second.id, third.id] == [1, 2, 3]

    def test_reserve_ids_never_moves_backwards(self, ledger):
        ledger.reserve_ids(42)
        ledger.reserve_ids(7)
        assert ledger.open(Side.BUY, 10000, PipsDistance(10, 20)).id == 42


class TestOpenAtr:

    def test_levels_from_atr(self, ledger):
        ledger.context.market.atr = 0.002
        pos = ledger.open(Side.BUY, 10000, AtrMultiple(1.0, 2.0))
        assert pos.stop_loss == pytest.approx(1.098)
        assert pos.take_profit == pytest.approx(1.104)
        assert pos.risk_amount == pytest.approx(20.0)

    def test_distances_floored_at_minimum_pips(self, ledger):
        ledger.context.market.atr = 0.0001
        pos = ledger.open(Side.BUY, 10000, AtrMultiple(1.0, 2.0))
        # 5 pip minimum stop, 10 pip minimum target
        assert pos.stop_loss == pytest.approx(1.0995)
        assert pos.take_profit == pytest.approx(1.1010)

    def test_rejected_without_atr(self, ledger):
        result = ledger.open(Side.BUY, 10000, AtrMultiple(1.0, 2.0))
        assert isinstance(result, Rejection)
        assert result.reason is RejectReason.INDICATOR_UNAVAILABLE

    @pytest.mark.parametrize(
        "spec, reason",
        [
            (AtrMultiple(0.4, 2.0), RejectReason.INVALID_STOP),
            (AtrMultiple(1.0, 0.5), RejectReason.INVALID_TARGET),
            (AtrMultiple(2.0, 2.0), RejectReason.TARGET_NOT_BEYOND_STOP),
        ],
    )
    def test_multiple_rejections(self, ledger, spec, reason):
        ledger.context.market.atr = 0.002
        assert ledger.open(Side.BUY, 10000, spec).reason is reason


class TestOpenRejections:

    @pytest.mark.parametrize(
        "size, spec, reason",
        [
            (500, PipsDistance(10, 20), RejectReason.INVALID_SIZE),
            (float("nan"), PipsDistance(10, 20), RejectReason.INVALID_SIZE),
            (10000, PipsDistance(3, 20), RejectReason.INVALID_STOP),
            (10000, PipsDistance(10, 5), RejectReason.INVALID_TARGET),
            (10000, PipsDistance(10, 10.05), RejectReason.TARGET_NOT_BEYOND_STOP),
            (200000, PipsDistance(10, 20), RejectReason.RISK_ABOVE_LIMIT),
        ],
    )
    def test_rejection_leaves_state_unchanged(self, ledger, tracker, size, spec, reason):
        result = ledger.open(Side.BUY, size, spec)

        assert isinstance(result, Rejection)
        assert result.reason is reason
        assert result.message
        assert len(ledger) == 0
        assert ledger.next_id == 1
        assert tracker.account.capital == 10000.0

    def test_market_closed(self, ledger):
        ledger.context.market.last_bar = None
        assert ledger.open(Side.BUY, 10000, PipsDistance(10, 20)).reason is RejectReason.MARKET_CLOSED

    def test_target_just_beyond_margin_is_accepted(self, ledger):
        assert isinstance(ledger.open(Side.BUY, 10000, PipsDistance(10, 10.2)), Position)

    def test_unknown_spec_type(self, ledger):
        with pytest.raises(TypeError):
            ledger.open(Side.BUY, 10000, object())


def test_estimate_risk(ledger):
    risk = ledger.estimate_risk(10000, PipsDistance(10, 20))
    assert risk.amount == pytest.approx(10.0)
    assert risk.percent == pytest.approx(0.1)
    assert not ledger.estimate_risk(10000, PipsDistance(0, 20)).is_defined
    assert not ledger.estimate_risk(10000, AtrMultiple(1.0, 2.0)).is_defined


def test_estimate_risk_skips_minimum_distance_checks(ledger):
    ledger.context.market.atr = 0.0002
    # 1 x ATR = 2 pips, below the 5 pip minimum an order would be floored to
    assert ledger.estimate_risk(10000, AtrMultiple(1.0, 2.0)).amount == pytest.approx(2.0)


# ---------------------------------------------------------------------------
# Modify
# ---------------------------------------------------------------------------

class TestModify:

    def test_moves_stop(self, ledger):
        pos = ledger.open(Side.BUY, 10000, PipsDistance(10, 20))
        result = ledger.modify(pos.id, stop_loss=1.0995)
        assert result is pos
        assert pos.stop_loss == 1.0995
        assert pos.take_profit == pytest.approx(1.1020)

    def test_moves_both(self, ledger):
        pos = ledger.open(Side.SELL, 10000, PipsDistance(10, 20))
        ledger.modify(pos.id, stop_loss=1.1005, take_profit=1.0950)
        assert (pos.stop_loss, pos.take_profit) == (1.1005, 1.0950)

    @pytest.mark.parametrize(
        "side, kwargs, reason",
        [
            (Side.BUY, {"stop_loss": 1.1005}, RejectReason.INVALID_STOP),
            (Side.BUY, {"take_profit": 1.0999}, RejectReason.INVALID_TARGET),
            (Side.SELL, {"stop_loss": 1.0990}, RejectReason.INVALID_STOP),
            (Side.SELL, {"take_profit": 1.1010}, RejectReason.INVALID_TARGET),
            (Side.BUY, {"stop_loss": -1.0}, RejectReason.INVALID_STOP),
            (Side.BUY, {}, RejectReason.NOTHING_TO_MODIFY),
        ],
    )
    def test_rejections(self, ledger, side, kwargs, reason):
        pos = ledger.open(side, 10000, PipsDistance(10, 20))
        before = (pos.stop_loss, pos.take_profit)

        result = ledger.modify(pos.id, **kwargs)

        assert result.reason is reason
        assert (pos.stop_loss, pos.take_profit) == before

    def test_nothing_applied_when_one_edit_is_invalid(self, ledger):
        pos = ledger.open(Side.BUY, 10000, PipsDistance(10, 20))
        result = ledger.modify(pos.id, stop_loss=1.0995, take_profit=1.0990)
        assert result.reason is RejectReason.INVALID_TARGET
        assert pos.stop_loss == pytest.approx(1.0990)

    def test_unknown_position(self, ledger):
        assert ledger.modify(99, stop_loss=1.0).reason is RejectReason.UNKNOWN_POSITION


# ---------------------------------------------------------------------------
# Close
# ---------------------------------------------------------------------------

class TestClose:

    def test_manual_full_close(self, ledger, tracker, history):
        pos = ledger.open(Side.BUY, 10000, PipsDistance(10, 20))
        _move_market(ledger, close=1.1010)

        record = ledger.close(pos.id)

        assert isinstance(record, ClosedTrade)
        assert record.pnl == pytest.approx(10.0)
        assert record.exit_price == pytest.approx(1.1010)
        assert record.exit_time == 660
        assert record.close_reason is CloseReason.MANUAL
        assert record.partial is False
        assert len(ledger) == 0
        assert list(history) == [record]
        assert tracker.account.capital == pytest.approx(10010.0)
        assert tracker.account.equity == pytest.approx(10010.0)
        assert tracker.account.win_count == 1
        # A profitable manual close leaves discipline alone.
        assert tracker.account.discipline == 10

    def test_manual_loss_costs_discipline(self, ledger, tracker):
        pos = ledger.open(Side.BUY, 10000, PipsDistance(10, 20))
        ledger.close(pos.id)
        assert tracker.account.discipline == 9
        assert tracker.account.loss_count == 0

    def test_stop_loss_exits_at_stop(self, ledger, tracker):
        pos = ledger.open(Side.BUY, 10000, PipsDistance(10, 20))
        record = ledger.close(pos.id, CloseReason.STOP_LOSS)
        assert record.exit_price == pos.stop_loss
        assert record.pnl == pytest.approx(-10.0)
        assert tracker.account.discipline == 9
        assert tracker.account.loss_count == 1

    def test_take_profit_exits_at_target(self, ledger, tracker):
        pos = ledger.open(Side.SELL, 10000, PipsDistance(10, 20))
        record = ledger.close(pos.id, CloseReason.TAKE_PROFIT)
        assert record.exit_price == pos.take_profit
        assert record.pnl == pytest.approx(20.0)
        assert tracker.account.discipline == 11

    def test_manual_sell_close_pays_spread(self, config):
        ledger = _build_ledger(config)
        pos = ledger.open(Side.SELL, 10000, PipsDistance(10, 20))
        record = ledger.close(pos.id)
        assert record.exit_price == pytest.approx(1.10005)
        assert record.pnl == pytest.approx(-0.5)

    def test_partial_close(self, ledger, tracker, history):
        pos = ledger.open(Side.BUY, 10000, PipsDistance(10, 20))
        _move_market(ledger, close=1.1010)

        record = ledger.close(pos.id, units=4000)

        assert record.partial is True
        assert record.size == 4000
        assert record.pnl == pytest.approx(4.0)
        assert ledger.get(pos.id) is pos
        assert pos.size == 6000
        assert pos.live_pnl == pytest.approx(6.0)
        assert tracker.account.capital == pytest.approx(10004.0)
        assert tracker.account.equity == pytest.approx(10010.0)
        assert len(history) == 1

    def test_close_units_at_or_above_size_is_full(self, ledger):
        pos = ledger.open(Side.BUY, 10000, PipsDistance(10, 20))
        record = ledger.close(pos.id, units=25000)
        assert record.partial is False
        assert record.size == 10000
        assert len(ledger) == 0

    @pytest.mark.parametrize("units", [0, -100])
    def test_invalid_close_size(self, ledger, tracker, units):
        pos = ledger.open(Side.BUY, 10000, PipsDistance(10, 20))
        result = ledger.close(pos.id, units=units)
        assert result.reason is RejectReason.INVALID_CLOSE_SIZE
        assert pos.size == 10000
        assert tracker.account.capital == 10000.0

    def test_unknown_position(self, ledger):
        assert ledger.close(5).reason is RejectReason.UNKNOWN_POSITION

    def test_market_closed(self, ledger):
        pos = ledger.open(Side.BUY, 10000, PipsDistance(10, 20))
        ledger.context.market.last_bar = None
        assert ledger.close(pos.id).reason is RejectReason.MARKET_CLOSED
        assert len(ledger) == 1

    def test_equity_point_recorded_at_bar_time(self, ledger, tracker):
        pos = ledger.open(Side.BUY, 10000, PipsDistance(10, 20))
        ledger.close(pos.id, CloseReason.TAKE_PROFIT)
        assert tracker.equity_history[-1].time == 600
        assert tracker.equity_history[-1].value == pytest.approx(10020.0)


class TestDiscipline:

    def test_clamped_at_maximum(self, context, history):
        config = SimulationConfig(initial_discipline=19, max_discipline=20)
        tracker = PerformanceTracker(config)
        ledger = PositionLedger(context, tracker, history)

        for _ in range(3):
            pos = ledger.open(Side.BUY, 10000, PipsDistance(10, 20))
            ledger.close(pos.id, CloseReason.TAKE_PROFIT)

        assert tracker.account.discipline == 20

    def test_session_over_when_exhausted(self, context, history, session_over):
        config = SimulationConfig(initial_discipline=1)
        tracker = PerformanceTracker(config)
        ledger = PositionLedger(context, tracker, history, on_session_over=session_over)

        pos = ledger.open(Side.BUY, 10000, PipsDistance(10, 20))
        ledger.close(pos.id, CloseReason.STOP_LOSS)

        assert tracker.account.discipline == 0
        session_over.assert_called_once_with()

    def test_never_negative(self, context, history):
        config = SimulationConfig(initial_discipline=1)
        tracker = PerformanceTracker(config)
        ledger = PositionLedger(context, tracker, history)

        for _ in range(3):
            pos = ledger.open(Side.BUY, 1000, PipsDistance(10, 20))
            ledger.close(pos.id, CloseReason.STOP_LOSS)

        assert tracker.account.discipline == 0


# ---------------------------------------------------------------------------
# Per-tick evaluation
# ---------------------------------------------------------------------------

def test_mark_all_updates_live_pnl(ledger):
    buy = ledger.open(Side.BUY, 10000, PipsDistance(10, 20))
    sell = ledger.open(Side.SELL, 10000, PipsDistance(10, 20))

    total = ledger.mark_all(1.1005)

    assert buy.live_pnl == pytest.approx(5.0)
    assert sell.live_pnl == pytest.approx(-5.0)
    assert total == pytest.approx(0.0)


def test_scan_triggers(ledger):
    buy = ledger.open(Side.BUY, 10000, PipsDistance(10, 20))
    sell = ledger.open(Side.SELL, 10000, PipsDistance(10, 40))

    assert ledger.scan_triggers(1.1005, 1.0995) == []
    assert ledger.scan_triggers(1.1025, 1.0995) == [
        (buy.id, CloseReason.TAKE_PROFIT),
        (sell.id, CloseReason.STOP_LOSS),
    ]


def test_clear_drops_positions(ledger, tracker):
    ledger.open(Side.BUY, 10000, PipsDistance(10, 20))
    ledger.clear()
    assert len(ledger) == 0
    assert tracker.account.capital == 10000.0


# ---------------------------------------------------------------------------
# Non-numeric input
# ---------------------------------------------------------------------------

class TestNonNumericInput:

    def test_open_size(self, ledger):
        result = ledger.open(Side.BUY, "lots", PipsDistance(10, 20))
        assert result.reason is RejectReason.INVALID_SIZE
        assert len(ledger) == 0

    def test_open_distances(self, ledger):
        assert ledger.open(Side.BUY, 10000, PipsDistance("ten", 20)).reason is RejectReason.INVALID_STOP
        assert ledger.open(Side.BUY, 10000, PipsDistance(10, None)).reason is RejectReason.INVALID_TARGET

    def test_modify_level(self, ledger):
        pos = ledger.open(Side.BUY, 10000, PipsDistance(10, 20))
        assert ledger.modify(pos.id, stop_loss="low").reason is RejectReason.INVALID_STOP
        assert pos.stop_loss == pytest.approx(1.0990)

    def test_close_units(self, ledger, history):
        pos = ledger.open(Side.BUY, 10000, PipsDistance(10, 20))
        assert ledger.close(pos.id, units="half").reason is RejectReason.INVALID_CLOSE_SIZE
        assert pos.size == 10000
        assert len(history) == 0

    def test_estimate_risk(self, ledger):
        assert not ledger.estimate_risk("lots", PipsDistance(10, 20)).is_defined
