"""
Current holdings check: allocation health, rebalance suggestion,
MA hedge status, hedge capacity, a what-if P&L grid and the last saved
backtest.

Holdings come from config.SETTINGS_PATH (written with defaults when
missing); prices are the latest downloaded closes.

Usage:
    source venv/bin/activate && python check_allocation.py
"""

import logging
from pathlib import Path

import pandas as pd

import config
from src.allocation.sizing import (
    HEALTH_MESSAGES,
    allocation_health,
    current_ratio,
    deviation,
    hedge_capacity,
    instrument_value,
    position_pnl,
    rebalance_action,
)
from src.data.fetcher import fetch_prices
from src.engine.scenario import project_scenarios, scenarios_frame
from src.signals.moving_average import ma_status, moving_average
from src.storage.store import load_result, load_settings, save_settings

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

LOOKBACK_DAYS = 120  # calendar days of history for the MA
LAST_TRADES = 5


def _section(title: str) -> None:
    print(f"\n{'=' * 62}")
    print(f"  {title}")
    print("=" * 62)


def _print_last_backtest(path: Path) -> None:
    result = load_result(path)
    if result is None:
        logger.info("No saved backtest at %s; run main.py first", path)
        return

    s = result.summary
    _section(f"LAST BACKTEST  ({s.start_date} → {s.end_date})")
    print(f"  Final equity:   {s.final_equity:,.0f} ({s.total_return_percent:+.2f}%)")
    print(f"  Max drawdown:   {s.max_drawdown:.2f}%")
    print(f"  Hedges:         {s.hedge_trades} (P&L {s.total_hedge_pnl:+,.0f})")
    print(f"  Rebalances:     {s.rebalance_trades}")
    trades = result.trade_frame()
    if not trades.empty:
        print(f"\n  Last {LAST_TRADES} trades:")
        recent = trades.tail(LAST_TRADES)[["kind", "quantity", "price", "equity"]]
        print(recent.to_string(float_format=lambda x: f"{x:,.2f}"))


def main() -> None:
    settings_path = Path(config.SETTINGS_PATH)
    settings = load_settings(settings_path)
    if not settings_path.exists():
        save_settings(settings, settings_path)
        logger.info("Wrote default holdings to %s; edit it to match the account", settings_path)

    # ── 1. Latest prices ──
    end = pd.Timestamp.today().normalize()
    start = end - pd.Timedelta(days=LOOKBACK_DAYS)
    logger.info("Fetching recent prices...")
    prices = fetch_prices(
        start=start.strftime("%Y-%m-%d"), end=end.strftime("%Y-%m-%d"), use_cache=False
    )
    latest = prices.iloc[-1]
    index_price = float(latest["index_price"])
    etf_price = float(latest["instrument_price"])
    ma = moving_average(prices["index_price"].tolist(), settings.ma_period)[-1]

    # ── 2. Allocation ──
    _section(f"ALLOCATION  ({prices.index[-1].date()})")
    value = instrument_value(settings.shares, etf_price)
    total = value + settings.cash
    ratio = current_ratio(value, total)
    dev = deviation(ratio, settings.target_ratio)
    health = allocation_health(dev)
    pnl, pnl_pct = position_pnl(settings.shares, etf_price, settings.cost_basis)
    print(f"  ETF:            {settings.shares} lots @ {etf_price:,.2f} = {value:,.0f}")
    print(f"  Cash reserve:   {settings.cash:,.0f}")
    print(f"  Total assets:   {total:,.0f}")
    print(f"  ETF ratio:      {ratio * 100:.1f}% (target {settings.target_ratio * 100:.0f}%, "
          f"deviation {dev * 100:+.1f} pts)")
    print(f"  Health:         {health.value.upper()} — {HEALTH_MESSAGES[health]}")
    print(f"  ETF P&L:        {pnl:+,.0f} ({pnl_pct:+.1f}%)")

    action = rebalance_action(value, settings.cash, etf_price, settings.target_ratio)
    if action.action == "hold":
        print("  Rebalance:      hold")
    else:
        after = settings.shares + (action.lots if action.action == "buy" else -action.lots)
        print(f"  Rebalance:      {action.action} {action.lots} lots (~{action.amount:,.0f}); "
              f"{settings.shares} → {after} lots")

    # ── 3. Hedge ──
    _section(f"HEDGE  ({settings.ma_period}-day MA)")
    status = ma_status(index_price, ma)
    capacity = hedge_capacity(
        settings.cash, config.MARGIN_PER_CONTRACT, config.SAFETY_MULTIPLIER
    )
    ma_text = f"{ma:,.2f}" if ma is not None else "n/a"
    print(f"  Index:          {index_price:,.2f}  (MA {ma_text}, {status.diff:+,.2f} pts)")
    if status.status == "below":
        print(f"  Signal:         BELOW MA — short {capacity.max_contracts} contracts")
    elif status.status == "above":
        print("  Signal:         above MA — keep reserve in cash")
    else:
        print("  Signal:         not enough history for the MA")
    print(f"  Capacity:       {capacity.max_contracts} contracts, margin "
          f"{capacity.margin_required:,.0f}, free {capacity.available_capital:,.0f}")

    # ── 4. Scenarios ──
    _section("WHAT-IF P&L (ETF only, 2x linear)")
    grid = scenarios_frame(
        project_scenarios(index_price, etf_price, settings.shares, settings.cost_basis)
    )
    print(grid.to_string(float_format=lambda x: f"{x:,.2f}"))

    # ── 5. Last saved backtest ──
    _print_last_backtest(Path(config.RESULT_PATH))


if __name__ == "__main__":
    main()
