"""Tests for src/engine/backtest.py."""

from __future__ import annotations

import json
import threading

import numpy as np
import pandas as pd
import pytest

from src.engine.backtest import SimulationState, run_backtest
from src.engine.errors import BacktestCancelled, EmptyRangeError, InvalidParameterError
from src.engine.models import (
    BacktestParameters,
    BacktestResult,
    PriceObservation,
    Signal,
    TradeKind,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def make_params(**overrides) -> BacktestParameters:
    base = dict(
        start_date="2000-01-01",
        end_date="2100-12-31",
        initial_capital=1_000_000,
        target_ratio=0.8,
        ma_period=2,
        margin_per_contract=40_000,
        safety_multiplier=2.0,
        enable_rebalance=True,
    )
    base.update(overrides)
    return BacktestParameters(**base)


def make_series(rows) -> list[PriceObservation]:
    return [PriceObservation(date=d, index_price=i, instrument_price=e) for d, i, e in rows]


def synthetic_series(n_days=300, seed=42) -> list[PriceObservation]:
    """Random-walk index with a 2x leveraged ETF riding on it."""
    np.random.seed(seed)
    dates = pd.bdate_range("2020-01-01", periods=n_days)
    rets = np.random.normal(0.0003, 0.012, n_days)
    index = 15_000.0 * np.exp(np.cumsum(rets))
    etf = 100.0 * np.exp(np.cumsum(2 * rets))
    return [
        PriceObservation(date=d, index_price=round(float(i), 2), instrument_price=round(float(e), 2))
        for d, i, e in zip(dates, index, etf)
    ]


SCENARIO = make_series([
    ("2024-01-02", 22000.0, 180.0),
    ("2024-01-03", 21000.0, 175.0),
    ("2024-01-04", 22500.0, 182.0),
])


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

class TestThreeDayScenario:

    def test_initial_buy_logged(self):
        result = run_backtest(SCENARIO, make_params())
        buy = result.trade_logs[0]
        assert buy.kind == TradeKind.BUY
        assert buy.quantity == 4  # floor(800000 / 180000)
        assert buy.amount == pytest.approx(720_000)
        assert buy.reserve == pytest.approx(200_000)
        assert buy.equity == 1_000_000

    def test_day_zero_has_no_signal(self):
        day0 = run_backtest(SCENARIO, make_params()).daily_results[0]
        assert day0.ma_value is None
        assert day0.signal == Signal.NONE
        assert day0.instrument_shares == 4
        assert day0.hedge_reserve == pytest.approx(200_000)

    def test_hedge_opens_below_ma(self):
        result = run_backtest(SCENARIO, make_params())
        day1 = result.daily_results[1]
        assert day1.ma_value == 21500.0
        assert day1.signal == Signal.HEDGE
        # floor(200000 / (40000 * 2)) = 2
        assert day1.hedge_contracts == 2
        opened = result.trade_logs[1]
        assert opened.kind == TradeKind.HEDGE_OPEN
        assert opened.price == 21000.0

    def test_hedge_closes_at_a_loss(self):
        result = run_backtest(SCENARIO, make_params())
        day2 = result.daily_results[2]
        assert day2.ma_value == 21750.0
        assert day2.signal == Signal.LONG
        assert day2.hedge_contracts == 0
        assert day2.hedge_pnl == pytest.approx(2 * (21000 - 22500) * 50)
        closed = result.trade_logs[2]
        assert closed.kind == TradeKind.HEDGE_CLOSE
        assert closed.realized_pnl == pytest.approx(-150_000)
        assert day2.hedge_reserve == pytest.approx(50_000)

    def test_summary(self):
        s = run_backtest(SCENARIO, make_params()).summary
        assert s.final_equity == pytest.approx(4 * 1000 * 182 + 50_000)
        assert s.total_return == pytest.approx(s.final_equity - 1_000_000)
        assert s.total_return_percent == pytest.approx(-22.2)
        assert s.max_drawdown == pytest.approx(22.2)
        assert s.total_hedge_pnl == pytest.approx(-150_000)
        assert s.hedge_trades == 1
        assert s.trading_days == 3

    def test_zero_capacity_suppresses_hedge(self):
        result = run_backtest(SCENARIO, make_params(margin_per_contract=500_000))
        assert all(d.hedge_contracts == 0 for d in result.daily_results)
        assert result.daily_results[1].signal == Signal.NONE
        assert [t.kind for t in result.trade_logs] == [TradeKind.BUY]


class TestRebalance:

    def test_month_boundary_sells_overweight(self):
        series = make_series([
            ("2024-01-30", 20000.0, 100.0),
            ("2024-01-31", 20000.0, 100.0),
            ("2024-02-01", 20000.0, 150.0),
        ])
        result = run_backtest(series, make_params(ma_period=100))
        rebalances = [t for t in result.trade_logs if t.kind == TradeKind.REBALANCE]
        assert len(rebalances) == 1
        trade = rebalances[0]
        assert trade.side == "sell"
        assert trade.quantity == 1  # round(80000 / 150000)
        assert trade.amount == pytest.approx(150_000)
        last = result.daily_results[-1]
        assert last.instrument_shares == 7
        assert last.hedge_reserve == pytest.approx(350_000)
        assert result.summary.rebalance_trades == 1

    def test_same_month_never_rebalances(self):
        series = make_series([
            ("2024-03-04", 20000.0, 100.0),
            ("2024-03-05", 20000.0, 300.0),
        ])
        result = run_backtest(series, make_params(ma_period=100))
        assert not any(t.kind == TradeKind.REBALANCE for t in result.trade_logs)

    def test_zero_lot_rebalance_is_skipped(self):
        # 2 lots + 250k reserve: diff 37.5k > 1% of 850k, but 37.5k / 300k rounds to 0 lots
        series = make_series([
            ("2024-01-31", 20000.0, 300.0),
            ("2024-02-01", 20000.0, 300.0),
        ])
        result = run_backtest(series, make_params(ma_period=100, target_ratio=0.75))
        assert [t.kind for t in result.trade_logs] == [TradeKind.BUY]
        assert result.daily_results[-1].instrument_shares == 2

    def test_disabled_rebalance(self):
        series = make_series([
            ("2024-01-31", 20000.0, 100.0),
            ("2024-02-01", 20000.0, 150.0),
        ])
        result = run_backtest(series, make_params(ma_period=100, enable_rebalance=False))
        assert result.summary.rebalance_trades == 0

    def test_skipped_while_hedged(self):
        series = make_series([
            ("2024-01-30", 20000.0, 100.0),
            ("2024-01-31", 19000.0, 100.0),
            ("2024-02-01", 18000.0, 150.0),
        ])
        result = run_backtest(series, make_params(safety_multiplier=1.0))
        assert not any(t.kind == TradeKind.REBALANCE for t in result.trade_logs)
        last = result.daily_results[-1]
        assert last.signal == Signal.HEDGE
        assert last.hedge_contracts == 5
        assert last.unrealized_hedge_pnl == pytest.approx(5 * 1000 * 50)
        assert last.total_equity == pytest.approx(8 * 1000 * 150 + 200_000 + 250_000)
        # unrealized P&L never touches the reserve
        assert last.hedge_reserve == pytest.approx(200_000)

    def test_buy_after_etf_drop(self):
        # equity 280k, target 224k, ETF value 80k → buy round(144k / 10k) = 14 lots
        series = make_series([
            ("2024-01-31", 20000.0, 100.0),
            ("2024-02-01", 20000.0, 10.0),
        ])
        result = run_backtest(series, make_params(ma_period=100))
        trade = [t for t in result.trade_logs if t.kind == TradeKind.REBALANCE][0]
        assert trade.side == "buy"
        assert trade.quantity == 14
        last = result.daily_results[-1]
        assert last.instrument_shares == 22
        assert last.hedge_reserve == pytest.approx(60_000)
        assert last.total_equity == pytest.approx(280_000)

    def test_buy_capped_by_reserve(self):
        # 0 lots + 40k reserve: target 32k rounds up to 1 lot of 45k, reserve affords 0
        series = make_series([
            ("2024-01-31", 20000.0, 180.0),
            ("2024-02-01", 20000.0, 45.0),
        ])
        result = run_backtest(series, make_params(initial_capital=200_000))
        assert result.summary.rebalance_trades == 0
        last = result.daily_results[-1]
        assert last.instrument_shares == 0
        assert last.hedge_reserve == pytest.approx(40_000)


class TestProperties:

    def test_conservation(self):
        result = run_backtest(synthetic_series(), make_params(ma_period=13))
        for d in result.daily_results:
            assert d.total_equity == d.instrument_value + d.hedge_reserve + d.unrealized_hedge_pnl

    def test_max_drawdown_matches_daily_drawdowns(self):
        result = run_backtest(synthetic_series(), make_params(ma_period=13))
        drawdowns = [d.drawdown for d in result.daily_results]
        assert result.summary.max_drawdown == pytest.approx(max(drawdowns) * 100)
        running = np.maximum.accumulate(drawdowns)
        assert (np.diff(running) >= 0).all()

    def test_drawdown_against_running_peak(self):
        result = run_backtest(synthetic_series(), make_params(ma_period=13))
        equity = np.array([d.total_equity for d in result.daily_results])
        peak = np.maximum.accumulate(np.concatenate([[1_000_000.0], equity]))[1:]
        expected = (peak - equity) / peak
        np.testing.assert_allclose([d.drawdown for d in result.daily_results], expected)

    def test_at_most_one_position(self):
        result = run_backtest(synthetic_series(), make_params(ma_period=13))
        contracts = [d.hedge_contracts for d in result.daily_results]
        for prev, cur in zip(contracts, contracts[1:]):
            if prev > 0 and cur > 0:
                assert prev == cur

    def test_events_alternate_open_close(self):
        result = run_backtest(synthetic_series(), make_params(ma_period=13))
        hedge_events = [
            t.kind for t in result.trade_logs
            if t.kind in (TradeKind.HEDGE_OPEN, TradeKind.HEDGE_CLOSE)
        ]
        assert hedge_events, "expected the random walk to trigger at least one hedge"
        for i, kind in enumerate(hedge_events):
            assert kind == (TradeKind.HEDGE_OPEN if i % 2 == 0 else TradeKind.HEDGE_CLOSE)

    def test_rerun_is_identical(self):
        series = synthetic_series()
        params = make_params(ma_period=13)
        a = json.dumps(run_backtest(series, params).to_dict(), sort_keys=True)
        b = json.dumps(run_backtest(series, params).to_dict(), sort_keys=True)
        assert a == b

    def test_warm_up_suppression(self):
        result = run_backtest(synthetic_series(), make_params(ma_period=13))
        warm_up = result.daily_results[:12]
        assert all(d.ma_value is None for d in warm_up)
        assert all(d.signal == Signal.NONE for d in warm_up)
        assert all(d.hedge_contracts == 0 for d in warm_up)
        assert result.daily_results[12].ma_value is not None
        warm_up_dates = {d.date for d in warm_up}
        assert not any(
            t.date in warm_up_dates and t.kind != TradeKind.BUY for t in result.trade_logs
        )

    def test_warm_up_counts_from_filtered_range(self):
        series = synthetic_series(n_days=60)
        start = series[20].date
        result = run_backtest(series, make_params(ma_period=5, start_date=start))
        assert result.daily_results[0].date == start
        assert all(d.ma_value is None for d in result.daily_results[:4])
        assert result.daily_results[4].ma_value is not None

    def test_one_result_per_day_in_range(self):
        series = synthetic_series(n_days=100)
        params = make_params(start_date=series[10].date, end_date=series[59].date)
        result = run_backtest(series, params)
        assert len(result.daily_results) == 50
        assert result.daily_results[0].date == series[10].date
        assert result.daily_results[-1].date == series[59].date

    def test_unsorted_input_is_sorted(self):
        series = synthetic_series(n_days=40)
        shuffled = list(reversed(series))
        a = run_backtest(series, make_params(ma_period=5))
        b = run_backtest(shuffled, make_params(ma_period=5))
        assert a.to_dict() == b.to_dict()


class TestErrors:

    def test_empty_range_raises(self):
        with pytest.raises(EmptyRangeError):
            run_backtest(SCENARIO, make_params(start_date="2030-01-01", end_date="2030-12-31"))

    def test_empty_input_raises(self):
        with pytest.raises(EmptyRangeError):
            run_backtest([], make_params())

    @pytest.mark.parametrize(
        "overrides",
        [
            {"initial_capital": 0},
            {"target_ratio": 0.0},
            {"target_ratio": 1.0},
            {"ma_period": 0},
            {"margin_per_contract": -1},
            {"safety_multiplier": 0.5},
            {"start_date": "2024-02-01", "end_date": "2024-01-01"},
            {"initial_capital": float("inf")},
            {"initial_capital": float("nan")},
            {"target_ratio": float("nan")},
            {"ma_period": float("nan")},
            {"ma_period": float("inf")},
            {"margin_per_contract": float("inf")},
            {"safety_multiplier": float("inf")},
        ],
    )
    def test_invalid_parameters(self, overrides):
        with pytest.raises(InvalidParameterError):
            run_backtest(SCENARIO, make_params(**overrides))

    def test_non_positive_price_rejected(self):
        series = make_series([("2024-01-02", 22000.0, 0.0)])
        with pytest.raises(InvalidParameterError):
            run_backtest(series, make_params())

    @pytest.mark.parametrize("bad", [float("inf"), float("nan")])
    def test_non_finite_price_rejected(self, bad):
        for row in [("2024-01-02", bad, 180.0), ("2024-01-02", 22000.0, bad)]:
            with pytest.raises(InvalidParameterError):
                run_backtest(make_series([row]), make_params())

    def test_duplicate_dates_rejected(self):
        series = make_series([
            ("2024-01-02", 22000.0, 180.0),
            ("2024-01-02", 22100.0, 181.0),
        ])
        with pytest.raises(InvalidParameterError, match="Duplicate"):
            run_backtest(series, make_params())

    def test_errors_are_value_errors(self):
        with pytest.raises(ValueError):
            run_backtest([], make_params())

    def test_cancel_event(self):
        event = threading.Event()
        event.set()
        with pytest.raises(BacktestCancelled):
            run_backtest(SCENARIO, make_params(), cancel_event=event)


class TestSimulationState:

    def test_unrealized_pnl_flat(self):
        state = SimulationState(shares=1, reserve=0.0, month=(2024, 1), peak_equity=1.0)
        assert state.unrealized_pnl(20000.0) == 0.0

    def test_unrealized_pnl_short(self):
        state = SimulationState(
            shares=1, reserve=0.0, month=(2024, 1), peak_equity=1.0,
            hedge_contracts=3, hedge_entry_price=20000.0,
        )
        assert state.unrealized_pnl(19900.0) == pytest.approx(3 * 100 * 50)
        assert state.hedged

    def test_result_type(self):
        assert isinstance(run_backtest(SCENARIO, make_params()), BacktestResult)
