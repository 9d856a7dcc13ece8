"""
80/20 Leveraged ETF + MA Futures Hedge — Backtest Pipeline
===========================================================
Single entry point. Runs the full pipeline end-to-end:

    1. Fetch & cache index / ETF prices
    2. Run the hedged backtest with the configured parameters
    3. Risk metrics and hedge statistics
    4. MA-period sweep                       [if RUN_SWEEP=True]
    5. Generate all charts
    6. Generate the text report and persist the result

Flags
-----
REFRESH_DATA : bool
    Delete the parquet cache before fetching.
RUN_SWEEP : bool
    Re-run the backtest for every period in config.SWEEP_MA_PERIODS.
SWEEP_WORKERS : int or None
    Process-pool size for the sweep; None runs it sequentially.

Usage:
    source venv/bin/activate && python main.py
"""

import logging

import config
from src.data.fetcher import clear_cache, fetch_prices
from src.data.prices import date_range, to_observations
from src.engine.backtest import run_backtest
from src.engine.models import BacktestParameters
from src.risk.hedging import hedge_trade_stats
from src.risk.metrics import compute_risk_report
from src.storage.store import save_result
from src.validation.sweep import run_ma_sweep
from src.visualization.charts import (
    plot_drawdown,
    plot_equity_curve,
    plot_index_vs_ma,
    plot_ma_sweep,
)
from src.visualization.report import generate_report

# ── Pipeline flags ────────────────────────────────────────────────────────
REFRESH_DATA = False
RUN_SWEEP = True
SWEEP_WORKERS = None

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def default_parameters() -> BacktestParameters:
    """Backtest parameters built from config.py."""
    return BacktestParameters(
        start_date=config.START_DATE,
        end_date=config.END_DATE,
        initial_capital=config.INITIAL_CAPITAL,
        target_ratio=config.TARGET_RATIO,
        ma_period=config.MA_PERIOD,
        margin_per_contract=config.MARGIN_PER_CONTRACT,
        safety_multiplier=config.SAFETY_MULTIPLIER,
        enable_rebalance=config.ENABLE_REBALANCE,
    )


def main() -> None:
    logger.info("=" * 62)
    logger.info("  80/20 Hedge Backtest — Full Pipeline")
    logger.info("=" * 62)

    # ── 1. Data ──────────────────────────────────────────────────
    logger.info("[1/6] Fetching price data...")
    if REFRESH_DATA:
        logger.info("      Cleared %d cached files", clear_cache())
    prices = fetch_prices()
    observations = to_observations(prices)
    first, last = date_range(observations)
    logger.info("      %d trading days (%s → %s)", len(observations), first, last)

    # ── 2. Backtest ──────────────────────────────────────────────
    params = default_parameters()
    logger.info("[2/6] Running backtest (%d-day MA, ratio %.0f%%)...",
                params.ma_period, params.target_ratio * 100)
    result = run_backtest(observations, params)

    # ── 3. Analytics ─────────────────────────────────────────────
    logger.info("[3/6] Computing risk metrics...")
    risk = compute_risk_report(result.equity_curve)
    hedge_stats = hedge_trade_stats(result)
    logger.info("      CAGR %.1f%%  Sharpe %.3f  Hedge win rate %.0f%%",
                risk.annualized_return * 100, risk.sharpe_ratio,
                hedge_stats.win_rate * 100)

    # ── 4. Sweep ─────────────────────────────────────────────────
    sweep = None
    if RUN_SWEEP:
        logger.info("[4/6] Sweeping MA periods %s...", config.SWEEP_MA_PERIODS)
        sweep = run_ma_sweep(observations, params, max_workers=SWEEP_WORKERS)

    # ── 5. Charts ────────────────────────────────────────────────
    logger.info("[5/6] Generating charts → %s", config.CHART_DIR)
    daily = result.daily_frame()
    plot_equity_curve(daily, params.initial_capital)
    plot_index_vs_ma(daily, params.ma_period)
    plot_drawdown(daily)
    if sweep is not None:
        plot_ma_sweep(sweep)

    # ── 6. Report & persistence ──────────────────────────────────
    logger.info("[6/6] Writing report...")
    generate_report(result, risk, hedge_stats, sweep=sweep)
    save_result(result)

    logger.info("Pipeline complete.")


if __name__ == "__main__":
    main()
