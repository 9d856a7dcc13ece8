"""
Data model for the backtest core.

Price observations and parameters go in, a BacktestResult comes out.
Every record is a frozen dataclass; the result converts to plain JSON
(numbers, strings, enum tags, null) and to pandas frames for charts.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import asdict, dataclass, fields
from enum import Enum
from typing import Any

import pandas as pd


def to_date(value: Any) -> dt.date:
    """Coerce a date, datetime, pandas Timestamp or 'YYYY-MM-DD' string."""
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    return pd.Timestamp(value).date()


class Signal(str, Enum):
    LONG = "long"
    HEDGE = "hedge"
    NONE = "none"


class TradeKind(str, Enum):
    BUY = "buy"
    REBALANCE = "rebalance"
    HEDGE_OPEN = "hedge_open"
    HEDGE_CLOSE = "hedge_close"


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PriceObservation:
    """One trading day of closing prices."""

    date: dt.date
    index_price: float
    instrument_price: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "date", to_date(self.date))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PriceObservation:
        return cls(
            date=data["date"],
            index_price=float(data["index_price"]),
            instrument_price=float(data["instrument_price"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "index_price": self.index_price,
            "instrument_price": self.instrument_price,
        }


@dataclass(frozen=True)
class BacktestParameters:
    """
    Inputs for one backtest run.

    Every field is required. Defaults live in ``config.py`` and are applied
    by callers, never by the engine.

    Attributes
    ----------
    start_date, end_date : date
        Inclusive simulation window.
    initial_capital : float
        Starting cash, split between ETF and hedge reserve.
    target_ratio : float
        Fraction of capital held in the ETF, in (0, 1).
    ma_period : int
        Lookback for the index moving average.
    margin_per_contract : float
        Exchange margin for one short futures contract.
    safety_multiplier : float
        Haircut (>= 1) applied to the margin when sizing the hedge.
    enable_rebalance : bool
        Rebalance back to ``target_ratio`` on month boundaries.
    """

    start_date: dt.date
    end_date: dt.date
    initial_capital: float
    target_ratio: float
    ma_period: int
    margin_per_contract: float
    safety_multiplier: float
    enable_rebalance: bool

    def __post_init__(self) -> None:
        object.__setattr__(self, "start_date", to_date(self.start_date))
        object.__setattr__(self, "end_date", to_date(self.end_date))


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DailyResult:
    """Snapshot of the portfolio at the close of one simulated day."""

    date: dt.date
    index_price: float
    instrument_price: float
    ma_value: float | None
    instrument_shares: int
    instrument_value: float
    hedge_reserve: float
    hedge_contracts: int
    hedge_pnl: float             # realized today, 0 unless a hedge closed
    unrealized_hedge_pnl: float
    total_equity: float
    drawdown: float              # fraction below running peak
    signal: Signal


@dataclass(frozen=True)
class TradeLogEntry:
    """A state-changing event; shares/reserve/equity are post-trade."""

    date: dt.date
    kind: TradeKind
    side: str
    description: str
    quantity: int
    price: float
    amount: float
    realized_pnl: float | None
    shares: int
    reserve: float
    equity: float


@dataclass(frozen=True)
class BacktestSummary:
    start_date: dt.date
    end_date: dt.date
    initial_capital: float
    final_equity: float
    total_return: float
    total_return_percent: float
    max_drawdown: float          # percent
    total_hedge_pnl: float
    hedge_trades: int
    rebalance_trades: int
    trading_days: int


def _jsonable(record: Any) -> dict[str, Any]:
    out = asdict(record)
    for key, value in out.items():
        if isinstance(value, dt.date):
            out[key] = value.isoformat()
        elif isinstance(value, Enum):
            out[key] = value.value
    return out


def _from_jsonable(cls: type, data: dict[str, Any]) -> Any:
    kwargs = {f.name: data[f.name] for f in fields(cls)}
    for key in ("date", "start_date", "end_date"):
        if key in kwargs:
            kwargs[key] = to_date(kwargs[key])
    if "signal" in kwargs:
        kwargs["signal"] = Signal(kwargs["signal"])
    if "kind" in kwargs:
        kwargs["kind"] = TradeKind(kwargs["kind"])
    return cls(**kwargs)


@dataclass(frozen=True)
class BacktestResult:
    """Full output of one run: daily trajectory, trade log, summary."""

    daily_results: tuple[DailyResult, ...]
    trade_logs: tuple[TradeLogEntry, ...]
    summary: BacktestSummary

    def to_dict(self) -> dict[str, Any]:
        return {
            "daily_results": [_jsonable(d) for d in self.daily_results],
            "trade_logs": [_jsonable(t) for t in self.trade_logs],
            "summary": _jsonable(self.summary),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BacktestResult:
        return cls(
            daily_results=tuple(_from_jsonable(DailyResult, d) for d in data["daily_results"]),
            trade_logs=tuple(_from_jsonable(TradeLogEntry, t) for t in data["trade_logs"]),
            summary=_from_jsonable(BacktestSummary, data["summary"]),
        )

    def daily_frame(self) -> pd.DataFrame:
        """Daily results as a DataFrame indexed by DatetimeIndex."""
        frame = pd.DataFrame([_jsonable(d) for d in self.daily_results])
        if frame.empty:
            return frame
        frame["date"] = pd.to_datetime(frame["date"])
        frame["ma_value"] = frame["ma_value"].astype(float)
        return frame.set_index("date")

    def trade_frame(self) -> pd.DataFrame:
        frame = pd.DataFrame([_jsonable(t) for t in self.trade_logs])
        if frame.empty:
            return frame
        frame["date"] = pd.to_datetime(frame["date"])
        return frame.set_index("date")

    @property
    def equity_curve(self) -> pd.Series:
        frame = self.daily_frame()
        if frame.empty:
            return pd.Series(dtype=float, name="equity")
        return frame["total_equity"].rename("equity")
