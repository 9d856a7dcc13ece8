"""
Historical price download with a local parquet cache.

Pulls daily closes for the TAIEX index and the leveraged ETF from Yahoo
Finance and aligns them on common trading dates.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd
import yfinance as yf

import config
from src.data.prices import align_prices

logger = logging.getLogger(__name__)


def _cache_path(symbol: str) -> Path:
    safe = symbol.replace("^", "").replace("/", "_")
    return Path(config.CACHE_DIR) / f"{safe}.parquet"


def fetch_single(
    symbol: str,
    start: str = config.START_DATE,
    end: str = config.END_DATE,
    use_cache: bool = True,
) -> pd.Series:
    """
    Fetch adjusted daily closes for one symbol.

    Parameters
    ----------
    symbol : str
        Yahoo Finance ticker.
    start, end : str
        Inclusive date window, ``YYYY-MM-DD``.
    use_cache : bool
        Read from / write to ``config.CACHE_DIR`` when True.

    Returns
    -------
    pd.Series
        Close prices named ``symbol`` with a DatetimeIndex.
    """
    path = _cache_path(symbol)
    if use_cache and path.exists():
        logger.info("Loading %s from cache: %s", symbol, path)
        cached = pd.read_parquet(path)
        series = cached.iloc[:, 0]
        series.name = symbol
        return series

    logger.info("Downloading %s (%s → %s)", symbol, start, end)
    # yfinance treats `end` as exclusive
    end_exclusive = (pd.Timestamp(end) + pd.Timedelta(days=1)).strftime("%Y-%m-%d")
    df = yf.download(
        symbol, start=start, end=end_exclusive, auto_adjust=True, progress=False
    )
    if df is None or df.empty:
        raise ValueError(f"No data returned for '{symbol}'")

    close = df["Close"]
    if isinstance(close, pd.DataFrame):
        # newer yfinance returns (field, ticker) columns even for one ticker
        close = close.iloc[:, 0]
    series = close.dropna().astype(float)
    series.index = pd.to_datetime(series.index).tz_localize(None).normalize()
    series.name = symbol

    if use_cache:
        path.parent.mkdir(parents=True, exist_ok=True)
        series.to_frame().to_parquet(path)

    return series


def fetch_prices(
    start: str = config.START_DATE,
    end: str = config.END_DATE,
    index_symbol: str = config.INDEX_SYMBOL,
    etf_symbol: str = config.ETF_SYMBOL,
    use_cache: bool = True,
) -> pd.DataFrame:
    """
    Fetch index and ETF closes aligned on common dates.

    Returns
    -------
    pd.DataFrame
        Columns ``index_price`` and ``instrument_price``.

    Raises
    ------
    RuntimeError
        If either symbol cannot be fetched.
    """
    fetched: dict[str, pd.Series] = {}
    for symbol in (index_symbol, etf_symbol):
        try:
            fetched[symbol] = fetch_single(symbol, start, end, use_cache=use_cache)
        except ValueError as exc:
            raise RuntimeError(f"No data fetched for '{symbol}': {exc}") from exc

    prices = align_prices(fetched[index_symbol], fetched[etf_symbol])
    prices = prices.loc[pd.Timestamp(start):pd.Timestamp(end)]
    logger.info(
        "Aligned %d trading days (%s → %s)",
        len(prices),
        prices.index[0].date() if len(prices) else "-",
        prices.index[-1].date() if len(prices) else "-",
    )
    return prices


def clear_cache() -> int:
    """Delete cached parquet files; returns how many were removed."""
    cache_dir = Path(config.CACHE_DIR)
    if not cache_dir.exists():
        return 0
    count = 0
    for path in cache_dir.glob("*.parquet"):
        path.unlink()
        count += 1
    return count
