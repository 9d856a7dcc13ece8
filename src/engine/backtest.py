"""
Day-by-day backtest of the 80/20 leveraged-ETF strategy with MA futures hedge.

Each day runs a fixed cycle: monthly rebalance → MA signal / hedge
open-close → mark-to-market → drawdown tracking → log the day.
The loop folds a frozen SimulationState over the price series, so every
step is a pure function of the previous state and today's prices.
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass, replace
from typing import Iterable

import config
from src.allocation.sizing import (
    affordable_lots,
    hedge_capacity,
    hedge_pnl,
    initial_allocation,
    instrument_value,
    lots_for_value,
)
from src.engine.errors import BacktestCancelled, EmptyRangeError, InvalidParameterError
from src.engine.models import (
    BacktestParameters,
    BacktestResult,
    BacktestSummary,
    DailyResult,
    PriceObservation,
    Signal,
    TradeKind,
    TradeLogEntry,
)
from src.signals.moving_average import is_below_ma, moving_average

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Simulation state
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SimulationState:
    """Portfolio state carried from one day to the next."""

    shares: int
    reserve: float
    month: tuple[int, int]
    peak_equity: float
    hedge_contracts: int = 0
    hedge_entry_price: float | None = None
    max_drawdown: float = 0.0
    total_hedge_pnl: float = 0.0
    hedge_trades: int = 0
    rebalance_trades: int = 0

    @property
    def hedged(self) -> bool:
        return self.hedge_contracts > 0

    def unrealized_pnl(self, index_price: float) -> float:
        if not self.hedged:
            return 0.0
        pnl, _ = hedge_pnl(self.hedge_contracts, self.hedge_entry_price, index_price)
        return pnl


# ---------------------------------------------------------------------------
# Input preparation
# ---------------------------------------------------------------------------

def _validate_parameters(params: BacktestParameters) -> None:
    for name in (
        "initial_capital",
        "target_ratio",
        "ma_period",
        "margin_per_contract",
        "safety_multiplier",
    ):
        value = getattr(params, name)
        if not math.isfinite(value):
            raise InvalidParameterError(f"{name} must be finite, got {value}")
    if not params.initial_capital > 0:
        raise InvalidParameterError(
            f"initial_capital must be positive, got {params.initial_capital}"
        )
    if not 0 < params.target_ratio < 1:
        raise InvalidParameterError(
            f"target_ratio must be in (0, 1), got {params.target_ratio}"
        )
    if int(params.ma_period) != params.ma_period or params.ma_period < 1:
        raise InvalidParameterError(
            f"ma_period must be a positive integer, got {params.ma_period}"
        )
    if not params.margin_per_contract > 0:
        raise InvalidParameterError(
            f"margin_per_contract must be positive, got {params.margin_per_contract}"
        )
    if not params.safety_multiplier >= 1:
        raise InvalidParameterError(
            f"safety_multiplier must be >= 1, got {params.safety_multiplier}"
        )
    if params.start_date > params.end_date:
        raise InvalidParameterError(
            f"start_date {params.start_date} is after end_date {params.end_date}"
        )


def _select_range(
    observations: Iterable[PriceObservation],
    params: BacktestParameters,
) -> list[PriceObservation]:
    """Observations inside [start_date, end_date], sorted by date."""
    selected = sorted(
        (o for o in observations if params.start_date <= o.date <= params.end_date),
        key=lambda o: o.date,
    )
    for prev, cur in zip(selected, selected[1:]):
        if prev.date == cur.date:
            raise InvalidParameterError(f"Duplicate price observation for {cur.date}")
    for obs in selected:
        prices = (obs.index_price, obs.instrument_price)
        if not all(math.isfinite(p) and p > 0 for p in prices):
            raise InvalidParameterError(f"Non-positive or non-finite price on {obs.date}")
    return selected


# ---------------------------------------------------------------------------
# Daily steps
# ---------------------------------------------------------------------------

def _rebalance(
    state: SimulationState,
    obs: PriceObservation,
    params: BacktestParameters,
) -> tuple[SimulationState, TradeLogEntry | None]:
    """Trade whole lots back toward target_ratio if the drift exceeds 1% of equity."""
    price = obs.instrument_price
    value = instrument_value(state.shares, price)
    equity = value + state.reserve
    difference = equity * params.target_ratio - value

    if abs(difference) <= config.REBALANCE_THRESHOLD * equity:
        return state, None

    lots = lots_for_value(difference, price)
    if lots > 0:
        lots = min(lots, affordable_lots(state.reserve, price))
    else:
        lots = max(lots, -state.shares)
    if lots == 0:
        return state, None

    amount = instrument_value(abs(lots), price)
    new_state = replace(
        state,
        shares=state.shares + lots,
        reserve=state.reserve - instrument_value(lots, price),
        rebalance_trades=state.rebalance_trades + 1,
    )
    side = "buy" if lots > 0 else "sell"
    entry = TradeLogEntry(
        date=obs.date,
        kind=TradeKind.REBALANCE,
        side=side,
        description=f"Monthly rebalance: {side} {abs(lots)} lots @ {price:,.2f}",
        quantity=abs(lots),
        price=price,
        amount=amount,
        realized_pnl=None,
        shares=new_state.shares,
        reserve=new_state.reserve,
        equity=instrument_value(new_state.shares, price) + new_state.reserve,
    )
    logger.debug("%s %s", obs.date, entry.description)
    return new_state, entry


def _apply_signal(
    state: SimulationState,
    obs: PriceObservation,
    ma: float | None,
    params: BacktestParameters,
) -> tuple[SimulationState, Signal, float, TradeLogEntry | None]:
    """Open or close the futures hedge based on the index vs its MA."""
    if ma is None:
        return state, Signal.NONE, 0.0, None

    below = is_below_ma(obs.index_price, ma)
    value = instrument_value(state.shares, obs.instrument_price)

    if below and not state.hedged:
        capacity = hedge_capacity(
            state.reserve, params.margin_per_contract, params.safety_multiplier
        )
        if capacity.max_contracts <= 0:
            return state, Signal.NONE, 0.0, None

        new_state = replace(
            state,
            hedge_contracts=capacity.max_contracts,
            hedge_entry_price=obs.index_price,
            hedge_trades=state.hedge_trades + 1,
        )
        entry = TradeLogEntry(
            date=obs.date,
            kind=TradeKind.HEDGE_OPEN,
            side="short",
            description=(
                f"Short {capacity.max_contracts} contracts @ {obs.index_price:,.2f} "
                f"(index below {params.ma_period}-day MA {ma:,.2f})"
            ),
            quantity=capacity.max_contracts,
            price=obs.index_price,
            amount=capacity.margin_required,
            realized_pnl=None,
            shares=new_state.shares,
            reserve=new_state.reserve,
            equity=value + new_state.reserve,
        )
        logger.debug("%s %s", obs.date, entry.description)
        return new_state, Signal.HEDGE, 0.0, entry

    if not below and state.hedged:
        realized, points = hedge_pnl(
            state.hedge_contracts, state.hedge_entry_price, obs.index_price
        )
        new_state = replace(
            state,
            reserve=state.reserve + realized,
            total_hedge_pnl=state.total_hedge_pnl + realized,
            hedge_contracts=0,
            hedge_entry_price=None,
        )
        if new_state.reserve < 0:
            logger.warning(
                "%s hedge loss %.0f left the reserve negative (%.0f)",
                obs.date, realized, new_state.reserve,
            )
        entry = TradeLogEntry(
            date=obs.date,
            kind=TradeKind.HEDGE_CLOSE,
            side="cover",
            description=(
                f"Cover {state.hedge_contracts} contracts @ {obs.index_price:,.2f} "
                f"({points:+,.2f} pts, P&L {realized:+,.0f})"
            ),
            quantity=state.hedge_contracts,
            price=obs.index_price,
            amount=abs(realized),
            realized_pnl=realized,
            shares=new_state.shares,
            reserve=new_state.reserve,
            equity=value + new_state.reserve,
        )
        logger.debug("%s %s", obs.date, entry.description)
        return new_state, Signal.LONG, realized, entry

    return state, Signal.HEDGE if state.hedged else Signal.LONG, 0.0, None


def _advance(
    state: SimulationState,
    obs: PriceObservation,
    ma: float | None,
    params: BacktestParameters,
    first_day: bool,
) -> tuple[SimulationState, DailyResult, list[TradeLogEntry]]:
    """Simulate one trading day."""
    events: list[TradeLogEntry] = []
    month = (obs.date.year, obs.date.month)

    # ── 1. Monthly rebalance (never while hedged) ──
    if (
        params.enable_rebalance
        and not first_day
        and month != state.month
        and not state.hedged
    ):
        state, entry = _rebalance(state, obs, params)
        if entry is not None:
            events.append(entry)
    state = replace(state, month=month)

    # ── 2. Signal / hedge transition ──
    state, signal, realized, entry = _apply_signal(state, obs, ma, params)
    if entry is not None:
        events.append(entry)

    # ── 3. Mark-to-market ──
    value = instrument_value(state.shares, obs.instrument_price)
    unrealized = state.unrealized_pnl(obs.index_price)
    total_equity = value + state.reserve + unrealized

    # ── 4. Drawdown ──
    peak = max(state.peak_equity, total_equity)
    if not peak > 0:
        raise InvalidParameterError(f"Peak equity is non-positive on {obs.date}")
    drawdown = (peak - total_equity) / peak
    state = replace(
        state,
        peak_equity=peak,
        max_drawdown=max(state.max_drawdown, drawdown),
    )

    # ── 5. Log the day ──
    day = DailyResult(
        date=obs.date,
        index_price=obs.index_price,
        instrument_price=obs.instrument_price,
        ma_value=ma,
        instrument_shares=state.shares,
        instrument_value=value,
        hedge_reserve=state.reserve,
        hedge_contracts=state.hedge_contracts,
        hedge_pnl=realized,
        unrealized_hedge_pnl=unrealized,
        total_equity=total_equity,
        drawdown=drawdown,
        signal=signal,
    )
    return state, day, events


# ---------------------------------------------------------------------------
# Core backtester
# ---------------------------------------------------------------------------

def run_backtest(
    observations: Iterable[PriceObservation],
    params: BacktestParameters,
    cancel_event: threading.Event | None = None,
) -> BacktestResult:
    """
    Run the hedged 80/20 backtest.

    Parameters
    ----------
    observations : iterable of PriceObservation
        Daily index and ETF closes. Only dates inside the parameter window
        are simulated; gaps between trading days are fine.
    params : BacktestParameters
        Full run configuration.
    cancel_event : threading.Event or None
        Checked before every simulated day; when set the run raises
        BacktestCancelled.

    Returns
    -------
    BacktestResult

    Raises
    ------
    InvalidParameterError
        Malformed parameters or prices.
    EmptyRangeError
        No observations fall inside [start_date, end_date].
    """
    _validate_parameters(params)
    series = _select_range(observations, params)
    if not series:
        raise EmptyRangeError(
            f"No price data between {params.start_date} and {params.end_date}"
        )

    ma_values = moving_average([o.index_price for o in series], int(params.ma_period))

    # --- Initial position ---
    first = series[0]
    alloc = initial_allocation(
        params.initial_capital, params.target_ratio, first.instrument_price
    )
    state = SimulationState(
        shares=alloc.shares,
        reserve=alloc.reserve_allocation,
        month=(first.date.year, first.date.month),
        peak_equity=params.initial_capital,
    )
    trade_logs: list[TradeLogEntry] = [
        TradeLogEntry(
            date=first.date,
            kind=TradeKind.BUY,
            side="buy",
            description=(
                f"Initial buy {alloc.shares} lots @ {first.instrument_price:,.2f}"
            ),
            quantity=alloc.shares,
            price=first.instrument_price,
            amount=alloc.instrument_value,
            realized_pnl=None,
            shares=alloc.shares,
            reserve=alloc.reserve_allocation,
            equity=params.initial_capital,
        )
    ]
    daily_results: list[DailyResult] = []

    # --- Day loop ---
    for i, (obs, ma) in enumerate(zip(series, ma_values)):
        if cancel_event is not None and cancel_event.is_set():
            raise BacktestCancelled(f"Backtest cancelled before {obs.date}")
        state, day, events = _advance(state, obs, ma, params, first_day=(i == 0))
        daily_results.append(day)
        trade_logs.extend(events)

    # --- Summary ---
    final_equity = daily_results[-1].total_equity
    total_return = final_equity - params.initial_capital
    summary = BacktestSummary(
        start_date=params.start_date,
        end_date=params.end_date,
        initial_capital=params.initial_capital,
        final_equity=final_equity,
        total_return=total_return,
        total_return_percent=total_return / params.initial_capital * 100,
        max_drawdown=state.max_drawdown * 100,
        total_hedge_pnl=state.total_hedge_pnl,
        hedge_trades=state.hedge_trades,
        rebalance_trades=state.rebalance_trades,
        trading_days=len(daily_results),
    )

    logger.info(
        "Backtest complete: %d days | Total return: %.2f%% | Max DD: %.2f%% | "
        "Hedges: %d (P&L %.0f) | Rebalances: %d",
        summary.trading_days,
        summary.total_return_percent,
        summary.max_drawdown,
        summary.hedge_trades,
        summary.total_hedge_pnl,
        summary.rebalance_trades,
    )

    return BacktestResult(
        daily_results=tuple(daily_results),
        trade_logs=tuple(trade_logs),
        summary=summary,
    )
