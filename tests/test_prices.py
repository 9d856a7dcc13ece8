"""Tests for src/data/prices.py."""

from __future__ import annotations

import datetime as dt

import numpy as np
import pandas as pd
import pytest

import config
from src.data.prices import (
    COLUMNS,
    align_prices,
    date_range,
    to_observations,
)
from src.engine.models import PriceObservation


def _series(values, start="2024-01-01") -> pd.Series:
    return pd.Series(values, index=pd.bdate_range(start, periods=len(values)), dtype=float)


class TestAlignPrices:

    def test_inner_join(self):
        index = _series([20000.0, 20100.0, 20200.0, 20300.0])
        etf = _series([150.0, 151.0, 152.0])
        frame = align_prices(index, etf)
        assert list(frame.columns) == COLUMNS
        assert len(frame) == 3

    def test_drops_missing(self):
        index = _series([20000.0, np.nan, 20200.0])
        etf = _series([150.0, 151.0, 152.0])
        assert len(align_prices(index, etf)) == 2

    def test_sorted_and_rounded(self):
        index = _series([20000.123, 20100.456])[::-1]
        etf = _series([150.126, 151.004])[::-1]
        frame = align_prices(index, etf)
        assert frame.index.is_monotonic_increasing
        assert frame["index_price"].iloc[0] == 20000.12
        assert frame["instrument_price"].iloc[0] == 150.13


class TestObservations:

    def test_to_observations(self):
        frame = align_prices(_series([20000.0, 20100.0]), _series([150.0, 151.0]))
        observations = to_observations(frame)
        assert observations[0] == PriceObservation(dt.date(2024, 1, 1), 20000.0, 150.0)
        assert len(observations) == 2

    def test_empty_frame_raises(self):
        with pytest.raises(ValueError, match="empty"):
            to_observations(pd.DataFrame(columns=COLUMNS))

    def test_missing_column_raises(self):
        frame = pd.DataFrame({"index_price": [1.0]}, index=pd.bdate_range("2024-01-01", periods=1))
        with pytest.raises(ValueError, match="missing columns"):
            to_observations(frame)


class TestDateRange:

    def test_first_and_last(self):
        observations = [
            PriceObservation("2024-03-01", 20000.0, 150.0),
            PriceObservation("2024-01-02", 20000.0, 150.0),
        ]
        assert date_range(observations) == ("2024-01-02", "2024-03-01")

    def test_empty_falls_back_to_config(self):
        assert date_range([]) == (config.START_DATE, config.END_DATE)
