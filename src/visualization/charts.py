"""
Visualization module.

Generates the equity curve with hedged periods shaded, index vs moving
average, underwater drawdown, and MA-sweep comparison charts.
All charts are saved as PNGs to config.CHART_DIR.
"""

from __future__ import annotations

from pathlib import Path

import matplotlib

matplotlib.use("Agg")  # non-interactive backend
import matplotlib.pyplot as plt
import matplotlib.ticker as mtick
import pandas as pd

import config

CHART_DIR = Path(config.CHART_DIR)
DPI = config.CHART_DPI

COLORS = {
    "equity": "#2196F3",     # blue
    "index": "#455A64",      # blue grey
    "ma": "#FF9800",         # orange
    "hedge": "#F44336",      # red
    "drawdown": "#F44336",
    "bar": "#4CAF50",        # green
    "grid": "#E0E0E0",
}


def _save(fig: plt.Figure, name: str) -> Path:
    CHART_DIR.mkdir(parents=True, exist_ok=True)
    path = CHART_DIR / name
    fig.savefig(path, dpi=DPI, bbox_inches="tight")
    plt.close(fig)
    return path


def _hedged_spans(daily: pd.DataFrame) -> list[tuple[pd.Timestamp, pd.Timestamp]]:
    """Contiguous date spans with an open hedge at the close."""
    spans = []
    start = None
    prev = None
    for date, contracts in daily["hedge_contracts"].items():
        if contracts > 0 and start is None:
            start = date
        elif contracts == 0 and start is not None:
            spans.append((start, date))
            start = None
        prev = date
    if start is not None:
        spans.append((start, prev))
    return spans


# ---------------------------------------------------------------------------
# 1. Equity curve
# ---------------------------------------------------------------------------


def plot_equity_curve(
    daily: pd.DataFrame,
    initial_capital: float,
    filename: str = "equity_curve.png",
) -> Path:
    """
    Plot total equity with hedged periods shaded.

    Parameters
    ----------
    daily : pd.DataFrame
        ``BacktestResult.daily_frame()``.
    initial_capital : float
        Drawn as a dashed reference line.
    filename : str
        Output file name.
    """
    fig, ax = plt.subplots(figsize=(12, 6))

    ax.plot(daily.index, daily["total_equity"], color=COLORS["equity"],
            linewidth=1.6, label="Total equity")
    ax.plot(daily.index, daily["instrument_value"], color=COLORS["index"],
            linewidth=0.9, alpha=0.7, label="ETF value")
    for i, (start, end) in enumerate(_hedged_spans(daily)):
        ax.axvspan(start, end, color=COLORS["hedge"], alpha=0.12,
                   label="Hedged" if i == 0 else None)

    ax.axhline(initial_capital, color="#9E9E9E", linewidth=0.8, linestyle="--")
    ax.set_title("Strategy Equity (ETF + Hedge Reserve)", fontsize=14, fontweight="bold")
    ax.set_ylabel("Value")
    ax.set_xlabel("Date")
    ax.legend(framealpha=0.9)
    ax.yaxis.set_major_formatter(mtick.FuncFormatter(lambda x, _: f"{x:,.0f}"))
    ax.grid(color=COLORS["grid"], linewidth=0.5)
    fig.tight_layout()
    return _save(fig, filename)


# ---------------------------------------------------------------------------
# 2. Index vs moving average
# ---------------------------------------------------------------------------


def plot_index_vs_ma(
    daily: pd.DataFrame,
    ma_period: int,
    filename: str = "index_vs_ma.png",
) -> Path:
    """Plot the index, its moving average and the hedge entries."""
    fig, ax = plt.subplots(figsize=(12, 6))

    ax.plot(daily.index, daily["index_price"], color=COLORS["index"],
            linewidth=1.2, label="Index")
    ax.plot(daily.index, daily["ma_value"], color=COLORS["ma"],
            linewidth=1.2, label=f"{ma_period}-day MA")

    opened = daily["hedge_contracts"].gt(0) & daily["hedge_contracts"].shift(1, fill_value=0).eq(0)
    ax.scatter(daily.index[opened], daily.loc[opened, "index_price"],
               color=COLORS["hedge"], marker="v", s=30, zorder=3, label="Hedge open")

    ax.set_title("Index vs Moving Average", fontsize=14, fontweight="bold")
    ax.set_ylabel("Index points")
    ax.set_xlabel("Date")
    ax.legend(framealpha=0.9)
    ax.grid(color=COLORS["grid"], linewidth=0.5)
    fig.tight_layout()
    return _save(fig, filename)


# ---------------------------------------------------------------------------
# 3. Drawdown
# ---------------------------------------------------------------------------


def plot_drawdown(
    daily: pd.DataFrame,
    filename: str = "drawdown.png",
) -> Path:
    """Underwater chart of the running drawdown."""
    fig, ax = plt.subplots(figsize=(12, 4))

    dd = -daily["drawdown"]
    ax.fill_between(daily.index, dd, 0, color=COLORS["drawdown"], alpha=0.35)
    ax.plot(daily.index, dd, color=COLORS["drawdown"], linewidth=0.8)

    ax.set_title("Drawdown from Peak Equity", fontsize=14, fontweight="bold")
    ax.set_ylabel("Drawdown")
    ax.set_xlabel("Date")
    ax.yaxis.set_major_formatter(mtick.PercentFormatter(1.0))
    ax.grid(color=COLORS["grid"], linewidth=0.5)
    fig.tight_layout()
    return _save(fig, filename)


# ---------------------------------------------------------------------------
# 4. MA sweep
# ---------------------------------------------------------------------------


def plot_ma_sweep(
    sweep: pd.DataFrame,
    filename: str = "ma_sweep.png",
) -> Path:
    """Total return and max drawdown for each swept MA period."""
    fig, (ax_ret, ax_dd) = plt.subplots(1, 2, figsize=(12, 5))
    labels = [str(p) for p in sweep.index]

    ax_ret.bar(labels, sweep["total_return_percent"], color=COLORS["bar"])
    ax_ret.set_title("Total Return by MA Period", fontweight="bold")
    ax_ret.set_xlabel("MA period (days)")
    ax_ret.yaxis.set_major_formatter(mtick.PercentFormatter(100.0))

    ax_dd.bar(labels, sweep["max_drawdown"], color=COLORS["drawdown"])
    ax_dd.set_title("Max Drawdown by MA Period", fontweight="bold")
    ax_dd.set_xlabel("MA period (days)")
    ax_dd.yaxis.set_major_formatter(mtick.PercentFormatter(100.0))

    for ax in (ax_ret, ax_dd):
        ax.grid(color=COLORS["grid"], linewidth=0.5, axis="y")
    fig.tight_layout()
    return _save(fig, filename)
