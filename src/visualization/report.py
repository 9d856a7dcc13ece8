"""
Summary report generator.

Prints and saves a text report covering: run summary, risk metrics,
hedge statistics, top-3 drawdown periods, the trade log and, when given,
the MA-period sweep.
"""

from __future__ import annotations

from pathlib import Path

import pandas as pd

import config
from src.engine.models import BacktestResult
from src.risk.hedging import HedgeStats
from src.risk.metrics import RiskReport

REPORT_PATH = Path(config.REPORT_PATH)
SEP = "=" * 66
SEP2 = "-" * 66


def _top_drawdown_periods(equity: pd.Series, n: int = 3) -> list[dict]:
    """
    Find the top-N distinct drawdown periods by peak-to-trough depth.

    Returns a list of dicts with keys: start, trough, end, depth, duration_days.
    """
    peak = equity.cummax()
    dd = (equity - peak) / peak

    results = []
    dd_start = None
    for date, val in dd.items():
        if val < 0 and dd_start is None:
            dd_start = date
        elif val == 0 and dd_start is not None:
            segment = dd[dd_start:date]
            results.append(
                {
                    "start": dd_start,
                    "trough": segment.idxmin(),
                    "end": date,
                    "depth": float(segment.min()),
                    "duration_days": (date - dd_start).days,
                }
            )
            dd_start = None

    # still under water at the end
    if dd_start is not None:
        segment = dd[dd_start:]
        results.append(
            {
                "start": dd_start,
                "trough": segment.idxmin(),
                "end": equity.index[-1],
                "depth": float(segment.min()),
                "duration_days": (equity.index[-1] - dd_start).days,
            }
        )

    results.sort(key=lambda x: x["depth"])
    return results[:n]


def generate_report(
    result: BacktestResult,
    risk: RiskReport,
    hedge_stats: HedgeStats,
    sweep: pd.DataFrame | None = None,
    max_trades: int = 30,
    write_file: bool = True,
) -> str:
    """
    Generate the text report.

    Parameters
    ----------
    result : BacktestResult
        The run to report on.
    risk : RiskReport
        Risk metrics over ``result``'s equity curve.
    hedge_stats : HedgeStats
        Closed-hedge statistics for ``result``.
    sweep : pd.DataFrame or None
        Output of ``run_ma_sweep``.
    max_trades : int
        Only the most recent ``max_trades`` trade-log entries are listed.
    write_file : bool
        If True, save to config.REPORT_PATH.

    Returns
    -------
    str
        Full report text.
    """
    s = result.summary
    lines: list[str] = []

    def add(text: str = "") -> None:
        lines.append(text)

    add(SEP)
    add("  80/20 LEVERAGED ETF + MA FUTURES HEDGE — BACKTEST REPORT")
    add(SEP)
    add(f"  Date range: {s.start_date} → {s.end_date}  ({s.trading_days} trading days)")
    add(f"  Initial capital:  {s.initial_capital:>14,.0f}")
    add(f"  Final equity:     {s.final_equity:>14,.0f}")
    add(f"  Total return:     {s.total_return:>14,.0f}  ({s.total_return_percent:+.2f}%)")
    add(f"  Max drawdown:      {s.max_drawdown:>13.2f}%")
    add(f"  Hedge trades:      {s.hedge_trades:>14d}  (P&L {s.total_hedge_pnl:,.0f})")
    add(f"  Rebalances:        {s.rebalance_trades:>14d}")
    add()

    # ── Risk metrics ──
    add(SEP)
    add("  RISK METRICS")
    add(SEP)
    add(str(risk))
    add()

    # ── Hedge statistics ──
    add(SEP)
    add("  HEDGE STATISTICS")
    add(SEP)
    add(str(hedge_stats))
    add()

    # ── Top drawdowns ──
    add(SEP)
    add("  TOP 3 DRAWDOWN PERIODS")
    add(SEP)
    add()
    periods = _top_drawdown_periods(result.equity_curve, n=3)
    if not periods:
        add("  No drawdowns.")
        add()
    for i, p in enumerate(periods, 1):
        add(
            f"  #{i}  Peak→Trough: {p['start'].date()} → {p['trough'].date()}"
            f"  (Recovery: {p['end'].date()})"
        )
        add(
            f"       Depth: {p['depth'] * 100:.2f}%   Duration: {p['duration_days']} days"
        )
        add()

    # ── Trade log ──
    add(SEP)
    add(f"  TRADE LOG (last {max_trades})")
    add(SEP)
    add(f"  {'Date':<10}  {'Event':<11}  {'Qty':>5}  {'Price':>10}  {'P&L':>12}  {'Equity':>14}")
    add("  " + SEP2[2:])
    for t in result.trade_logs[-max_trades:]:
        pnl = f"{t.realized_pnl:,.0f}" if t.realized_pnl is not None else "-"
        add(
            f"  {t.date.isoformat():<10}  {t.kind.value:<11}  {t.quantity:>5d}  "
            f"{t.price:>10,.2f}  {pnl:>12}  {t.equity:>14,.0f}"
        )
    add()

    # ── MA sweep ──
    if sweep is not None and not sweep.empty:
        add(SEP)
        add("  MOVING-AVERAGE PERIOD SWEEP")
        add(SEP)
        add(f"  {'MA':>4}  {'Return':>9}  {'Max DD':>8}  {'Hedges':>6}  {'Hedge P&L':>12}")
        for period, row in sweep.iterrows():
            add(
                f"  {period:>4d}  {row['total_return_percent']:>8.2f}%  "
                f"{row['max_drawdown']:>7.2f}%  {int(row['hedge_trades']):>6d}  "
                f"{row['total_hedge_pnl']:>12,.0f}"
            )
        add()

    add(SEP)

    text = "\n".join(lines)
    print(text)

    if write_file:
        REPORT_PATH.parent.mkdir(parents=True, exist_ok=True)
        REPORT_PATH.write_text(text)
        print(f"\n  Report saved → {REPORT_PATH}")

    return text
