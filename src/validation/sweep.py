"""
Moving-average period sweep.

Re-runs the unchanged run_backtest() once per candidate MA period over the
same price series. Runs share no state, so they may execute in a process
pool; results are identical either way.
"""

from __future__ import annotations

import logging
from concurrent.futures import ProcessPoolExecutor
from dataclasses import replace
from typing import Sequence

import pandas as pd

import config
from src.engine.backtest import run_backtest
from src.engine.models import BacktestParameters, BacktestSummary, PriceObservation

logger = logging.getLogger(__name__)

SWEEP_COLUMNS = [
    "final_equity",
    "total_return_percent",
    "max_drawdown",
    "total_hedge_pnl",
    "hedge_trades",
    "rebalance_trades",
]


def _run_one(
    observations: Sequence[PriceObservation],
    params: BacktestParameters,
) -> BacktestSummary:
    return run_backtest(observations, params).summary


def run_ma_sweep(
    observations: Sequence[PriceObservation],
    params: BacktestParameters,
    periods: Sequence[int] = tuple(config.SWEEP_MA_PERIODS),
    max_workers: int | None = None,
) -> pd.DataFrame:
    """
    Backtest every MA period in ``periods`` with otherwise equal parameters.

    Parameters
    ----------
    observations : sequence of PriceObservation
        Shared, read-only price series.
    params : BacktestParameters
        Base parameters; only ``ma_period`` is varied.
    periods : sequence of int
        Candidate MA periods.
    max_workers : int or None
        Run in a process pool of this size when > 1, else sequentially.

    Returns
    -------
    pd.DataFrame
        One row per period (index ``ma_period``) with summary columns.
    """
    if len(periods) == 0:
        raise ValueError("No MA periods to sweep")

    observations = list(observations)
    variants = [replace(params, ma_period=int(p)) for p in periods]

    if max_workers is not None and max_workers > 1:
        with ProcessPoolExecutor(max_workers=max_workers) as pool:
            summaries = list(
                pool.map(_run_one, [observations] * len(variants), variants)
            )
    else:
        summaries = [_run_one(observations, v) for v in variants]

    rows = {
        v.ma_period: {col: getattr(s, col) for col in SWEEP_COLUMNS}
        for v, s in zip(variants, summaries)
    }
    frame = pd.DataFrame.from_dict(rows, orient="index")[SWEEP_COLUMNS]
    frame.index.name = "ma_period"

    best = frame["total_return_percent"].idxmax()
    logger.info(
        "MA sweep over %d periods: best %d-day MA (%.2f%% return, %.2f%% max DD)",
        len(frame), best,
        frame.loc[best, "total_return_percent"], frame.loc[best, "max_drawdown"],
    )
    return frame
