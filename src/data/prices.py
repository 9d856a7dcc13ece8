"""
Price series preparation.

Aligns the index and ETF close series to common trading dates and converts
the aligned DataFrame into the PriceObservation sequence the
backtest engine consumes.
"""

from __future__ import annotations

from typing import Sequence

import pandas as pd

import config
from src.engine.models import PriceObservation

COLUMNS = ["index_price", "instrument_price"]


def align_prices(
    index: pd.Series,
    instrument: pd.Series,
    decimals: int = config.PRICE_DECIMALS,
) -> pd.DataFrame:
    """
    Join index and ETF closes on the dates both have a price for.

    Parameters
    ----------
    index : pd.Series
        Index closes, DatetimeIndex.
    instrument : pd.Series
        ETF closes, DatetimeIndex.
    decimals : int
        Prices are rounded to this many decimals.

    Returns
    -------
    pd.DataFrame
        Columns ``index_price`` and ``instrument_price``, sorted by date,
        without missing values.
    """
    frame = pd.concat(
        [index.rename(COLUMNS[0]), instrument.rename(COLUMNS[1])],
        axis=1,
        join="inner",
    ).dropna()
    frame = frame[~frame.index.duplicated(keep="last")].sort_index()
    return frame.round(decimals)


def to_observations(prices: pd.DataFrame) -> list[PriceObservation]:
    """Convert an aligned price frame into engine input."""
    if prices.empty:
        raise ValueError("Price DataFrame is empty")

    missing = [c for c in COLUMNS if c not in prices.columns]
    if missing:
        raise ValueError(f"Price DataFrame is missing columns: {missing}")

    return [
        PriceObservation(
            date=ts,
            index_price=float(row.index_price),
            instrument_price=float(row.instrument_price),
        )
        for ts, row in zip(prices.index, prices.itertuples(index=False))
    ]


def date_range(observations: Sequence[PriceObservation]) -> tuple[str, str]:
    """First and last available dates, or the configured window if empty."""
    if len(observations) == 0:
        return config.START_DATE, config.END_DATE
    dates = sorted(o.date for o in observations)
    return dates[0].isoformat(), dates[-1].isoformat()
