"""
Allocation math for the 80/20 ETF / hedge-reserve split.

Pure functions: initial capital split, whole-lot ETF sizing, futures hedge
capacity, deviation health, and the holdings helpers used by the daily
allocation check. Position sizes always floor so capital is never
over-committed; rebalance trade sizes round to the nearest lot.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

import config
from src.engine.errors import InvalidParameterError


class HealthStatus(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    WARNING = "warning"
    DANGER = "danger"


HEALTH_MESSAGES = {
    HealthStatus.EXCELLENT: "Allocation on target",
    HealthStatus.GOOD: "Allocation within normal range",
    HealthStatus.WARNING: "Rebalance recommended",
    HealthStatus.DANGER: "Rebalance required",
}


@dataclass(frozen=True)
class InitialAllocation:
    instrument_allocation: float
    reserve_allocation: float
    shares: int
    instrument_value: float


@dataclass(frozen=True)
class HedgeCapacity:
    max_contracts: int
    margin_required: float
    available_capital: float


@dataclass(frozen=True)
class RebalanceAction:
    action: str  # 'buy', 'sell' or 'hold'
    lots: int
    amount: float


def _require_price(price: float, name: str = "price") -> None:
    if not price > 0:
        raise InvalidParameterError(f"{name} must be positive, got {price}")


def instrument_value(shares: int, price: float, lot_size: int = config.LOT_SIZE) -> float:
    """Market value of ``shares`` lots."""
    return shares * lot_size * price


def initial_allocation(
    capital: float,
    ratio: float,
    price: float,
    lot_size: int = config.LOT_SIZE,
) -> InitialAllocation:
    """
    Split starting capital between the ETF and the hedge reserve.

    Parameters
    ----------
    capital : float
        Total starting capital.
    ratio : float
        Fraction earmarked for the ETF.
    price : float
        ETF price per unit.

    Returns
    -------
    InitialAllocation
        ``shares`` is the whole number of lots the ETF allocation can buy;
        the remainder of the allocation stays unspent.
    """
    _require_price(price)
    instrument_allocation = capital * ratio
    reserve_allocation = capital * (1 - ratio)
    shares = math.floor(instrument_allocation / (price * lot_size))
    return InitialAllocation(
        instrument_allocation=instrument_allocation,
        reserve_allocation=reserve_allocation,
        shares=shares,
        instrument_value=instrument_value(shares, price, lot_size),
    )


def hedge_capacity(
    reserve: float,
    margin_per_contract: float,
    safety_multiplier: float,
) -> HedgeCapacity:
    """
    Number of futures contracts the reserve can short.

    Each contract is charged ``margin_per_contract * safety_multiplier`` so
    margin usage stays well below the full reserve.
    """
    effective_margin = margin_per_contract * safety_multiplier
    if not effective_margin > 0:
        raise InvalidParameterError(
            f"effective margin must be positive, got {effective_margin}"
        )
    max_contracts = max(0, math.floor(reserve / effective_margin))
    margin_required = max_contracts * margin_per_contract
    return HedgeCapacity(
        max_contracts=max_contracts,
        margin_required=margin_required,
        available_capital=reserve - margin_required,
    )


def allocation_health(
    deviation_fraction: float,
    thresholds: dict[str, float] | None = None,
) -> HealthStatus:
    """Classify how far the ETF weight has drifted from target."""
    if thresholds is None:
        thresholds = config.HEALTH_THRESHOLDS

    deviation_pct = abs(deviation_fraction * 100)
    if deviation_pct <= thresholds["excellent"]:
        return HealthStatus.EXCELLENT
    if deviation_pct <= thresholds["good"]:
        return HealthStatus.GOOD
    if deviation_pct <= thresholds["warning"]:
        return HealthStatus.WARNING
    return HealthStatus.DANGER


def current_ratio(value: float, total: float) -> float:
    """ETF weight in the portfolio (0 for an empty portfolio)."""
    if total == 0:
        return 0.0
    return value / total


def deviation(current: float, target: float) -> float:
    return current - target


def lots_for_value(value: float, price: float, lot_size: int = config.LOT_SIZE) -> int:
    """
    Signed number of whole lots closest to ``value``.

    Rounds half away from zero, so a diff of 2.5 lots trades 3 either way.
    """
    _require_price(price)
    lots = math.floor(abs(value) / (price * lot_size) + 0.5)
    return lots if value >= 0 else -lots


def affordable_lots(cash: float, price: float, lot_size: int = config.LOT_SIZE) -> int:
    """Whole lots ``cash`` can pay for."""
    _require_price(price)
    return max(0, math.floor(cash / (price * lot_size)))


def rebalance_action(
    value: float,
    cash: float,
    price: float,
    target_ratio: float,
    min_trade: float = config.MIN_TRADE_AMOUNT,
    lot_size: int = config.LOT_SIZE,
) -> RebalanceAction:
    """
    Suggest the trade that brings current holdings back to target.

    Differences smaller than ``min_trade`` currency units are held.
    """
    total = value + cash
    difference = total * target_ratio - value

    if abs(difference) < min_trade:
        return RebalanceAction(action="hold", lots=0, amount=0.0)

    lots = abs(lots_for_value(difference, price, lot_size))
    return RebalanceAction(
        action="buy" if difference > 0 else "sell",
        lots=lots,
        amount=instrument_value(lots, price, lot_size),
    )


def position_pnl(
    shares: int,
    price: float,
    cost: float,
    lot_size: int = config.LOT_SIZE,
) -> tuple[float, float]:
    """Unrealized ETF P&L and its percentage of cost."""
    current = instrument_value(shares, price, lot_size)
    cost_value = instrument_value(shares, cost, lot_size)
    pnl = current - cost_value
    pnl_percent = pnl / cost_value * 100 if cost_value > 0 else 0.0
    return pnl, pnl_percent


def hedge_pnl(
    contracts: int,
    entry_price: float,
    current_price: float,
    point_value: float = config.POINT_VALUE,
) -> tuple[float, float]:
    """P&L of a short futures position; profits when the index falls."""
    points = entry_price - current_price
    return contracts * points * point_value, points
