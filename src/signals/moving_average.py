"""
Moving-average signal evaluation.

The hedge trigger is a close of the index below its N-day simple moving
average. The average is undefined (None) until N observations exist.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence

from src.engine.errors import InvalidParameterError

CENT = Decimal("0.01")


@dataclass(frozen=True)
class MAStatus:
    status: str  # 'above', 'below' or 'unknown'
    diff: float


def moving_average(values: Sequence[float], period: int) -> list[float | None]:
    """
    Trailing simple moving average, rounded half-up to 2 decimals.

    Each window is summed in decimal arithmetic from the prices' shortest
    repr, so a mean that lands exactly on half a cent always rounds up.

    Parameters
    ----------
    values : sequence of float
        Prices in date order.
    period : int
        Window length.

    Returns
    -------
    list
        Same length as ``values``; the first ``period - 1`` entries are None.
    """
    if period < 1:
        raise InvalidParameterError(f"MA period must be >= 1, got {period}")

    exact = [Decimal(repr(float(v))) for v in values]
    averages: list[float | None] = []
    for i in range(len(exact)):
        if i < period - 1:
            averages.append(None)
            continue
        mean = sum(exact[i - period + 1:i + 1], Decimal(0)) / period
        averages.append(float(mean.quantize(CENT, rounding=ROUND_HALF_UP)))
    return averages


def ma_status(price: float, ma: float | None) -> MAStatus:
    """Position of ``price`` relative to the moving average."""
    if ma is None:
        return MAStatus(status="unknown", diff=0.0)
    diff = price - ma
    return MAStatus(status="above" if diff >= 0 else "below", diff=diff)


def is_below_ma(price: float, ma: float | None) -> bool:
    return ma is not None and price < ma
