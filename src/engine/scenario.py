"""
What-if P&L grid for the ETF position across index moves.

Instantaneous linear approximation: the ETF moves ``leverage`` times the
index's percentage change. Compounding and tracking error are ignored.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

import pandas as pd

import config
from src.allocation.sizing import instrument_value
from src.engine.errors import InvalidParameterError


@dataclass(frozen=True)
class ScenarioRow:
    delta: float             # index points vs base
    index_price: float
    instrument_price: float
    pnl: float               # vs cost basis


def project_scenarios(
    base_index_price: float,
    instrument_price: float,
    shares: int,
    cost_basis: float,
    price_range: float = config.SCENARIO_RANGE,
    step: float = config.SCENARIO_STEP,
    leverage: float = config.LEVERAGE,
    lot_size: int = config.LOT_SIZE,
) -> list[ScenarioRow]:
    """
    Project ETF price and P&L for index moves in ``[-price_range, +price_range]``.

    Parameters
    ----------
    base_index_price : float
        Current index level.
    instrument_price : float
        Current ETF price.
    shares : int
        Lots held.
    cost_basis : float
        Average ETF cost per unit.
    price_range : float
        Largest index move in points, each direction.
    step : float
        Spacing between rows in points.

    Returns
    -------
    list[ScenarioRow]
        Ordered by delta; the delta=0 row reproduces current prices.
    """
    if not base_index_price > 0:
        raise InvalidParameterError(
            f"base_index_price must be positive, got {base_index_price}"
        )
    if not step > 0:
        raise InvalidParameterError(f"step must be positive, got {step}")

    n_steps = int(price_range // step)
    rows: list[ScenarioRow] = []
    for k in range(-n_steps, n_steps + 1):
        delta = k * step
        projected = instrument_price * (1 + (delta / base_index_price) * leverage)
        pnl = instrument_value(shares, projected, lot_size) - instrument_value(
            shares, cost_basis, lot_size
        )
        rows.append(
            ScenarioRow(
                delta=delta,
                index_price=base_index_price + delta,
                instrument_price=projected,
                pnl=pnl,
            )
        )
    return rows


def scenarios_frame(rows: list[ScenarioRow]) -> pd.DataFrame:
    """Scenario rows as a DataFrame indexed by delta."""
    return pd.DataFrame([asdict(r) for r in rows]).set_index("delta")
