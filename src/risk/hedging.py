"""
Hedge trade statistics.

Summarises the closed futures hedges in a backtest's trade log and how
much of the period the portfolio spent hedged.
"""

from __future__ import annotations

from dataclasses import dataclass

from src.engine.models import BacktestResult, TradeKind


@dataclass
class HedgeStats:
    """Outcome of the closed hedges in one run."""

    n_trades: int
    winners: int
    losers: int
    win_rate: float
    total_pnl: float
    average_pnl: float
    best: float
    worst: float
    days_hedged: int
    hedged_fraction: float

    def __str__(self) -> str:
        lines = [
            f"  Closed Hedges:        {self.n_trades:>8d}",
            f"  Winners / Losers:     {self.winners:>4d} / {self.losers:<4d}",
            f"  Hedge Win Rate:       {self.win_rate * 100:>8.2f}%",
            f"  Total Hedge P&L:     {self.total_pnl:>12,.0f}",
            f"  Average Hedge P&L:   {self.average_pnl:>12,.0f}",
            f"  Best / Worst:        {self.best:>12,.0f} / {self.worst:,.0f}",
            f"  Days Hedged:          {self.days_hedged:>8d}"
            f"  ({self.hedged_fraction * 100:.1f}% of period)",
        ]
        return "\n".join(lines)


def hedge_trade_stats(result: BacktestResult) -> HedgeStats:
    """
    Compute statistics over closed hedges.

    A hedge still open on the last day is not counted as a trade, but its
    days are counted in ``days_hedged``.
    """
    pnls = [
        t.realized_pnl
        for t in result.trade_logs
        if t.kind == TradeKind.HEDGE_CLOSE and t.realized_pnl is not None
    ]
    n_days = len(result.daily_results)
    # end-of-day exposure: the day a hedge closes is not a hedged day
    days_hedged = sum(1 for d in result.daily_results if d.hedge_contracts > 0)

    winners = sum(1 for p in pnls if p > 0)
    losers = sum(1 for p in pnls if p < 0)
    total = float(sum(pnls))
    return HedgeStats(
        n_trades=len(pnls),
        winners=winners,
        losers=losers,
        win_rate=winners / len(pnls) if pnls else 0.0,
        total_pnl=total,
        average_pnl=total / len(pnls) if pnls else 0.0,
        best=max(pnls) if pnls else 0.0,
        worst=min(pnls) if pnls else 0.0,
        days_hedged=days_hedged,
        hedged_fraction=days_hedged / n_days if n_days else 0.0,
    )
