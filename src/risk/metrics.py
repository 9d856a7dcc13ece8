"""
Risk and performance metrics over a backtest equity curve.

Sharpe ratio, Sortino ratio, maximum drawdown, Calmar ratio and daily
win rate. Returns are simple day-over-day changes in total equity;
annualization assumes 252 trading days per year.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd

import config

TRADING_DAYS = 252


@dataclass
class RiskReport:
    """Container for all computed risk metrics."""

    annualized_return: float
    annualized_volatility: float
    sharpe_ratio: float
    sortino_ratio: float
    max_drawdown: float
    calmar_ratio: float
    win_rate: float

    def __str__(self) -> str:
        lines = [
            f"  Annualized Return:    {self.annualized_return * 100:>8.2f}%",
            f"  Annualized Volatility:{self.annualized_volatility * 100:>8.2f}%",
            f"  Sharpe Ratio:         {self.sharpe_ratio:>8.3f}",
            f"  Sortino Ratio:        {self.sortino_ratio:>8.3f}",
            f"  Max Drawdown:         {self.max_drawdown * 100:>8.2f}%",
            f"  Calmar Ratio:         {self.calmar_ratio:>8.3f}",
            f"  Win Rate:             {self.win_rate * 100:>8.2f}%",
        ]
        return "\n".join(lines)


def equity_returns(equity: pd.Series) -> pd.Series:
    """Daily simple returns of an equity curve (first day dropped)."""
    return equity.pct_change().iloc[1:]


def annualized_return(equity: pd.Series) -> float:
    """
    Compound annual growth of the equity curve.

    (final / initial)^(252 / n_returns) - 1
    """
    if len(equity) < 2 or equity.iloc[0] <= 0:
        return 0.0
    growth = equity.iloc[-1] / equity.iloc[0]
    years = (len(equity) - 1) / TRADING_DAYS
    if growth <= 0:
        return -1.0
    return float(growth ** (1.0 / years) - 1.0)


def annualized_volatility(equity: pd.Series) -> float:
    returns = equity_returns(equity)
    if len(returns) < 2:
        return 0.0
    return float(returns.std() * np.sqrt(TRADING_DAYS))


def sharpe_ratio(
    equity: pd.Series,
    risk_free_rate: float = config.RISK_FREE_RATE,
) -> float:
    """(mean daily excess return / std daily return) * sqrt(252)"""
    returns = equity_returns(equity)
    if len(returns) < 2:
        return 0.0
    excess = returns - risk_free_rate / TRADING_DAYS
    vol = excess.std()
    if vol == 0.0 or np.isnan(vol):
        return 0.0
    return float(excess.mean() / vol * np.sqrt(TRADING_DAYS))


def sortino_ratio(
    equity: pd.Series,
    risk_free_rate: float = config.RISK_FREE_RATE,
) -> float:
    """Sharpe with downside deviation in the denominator."""
    returns = equity_returns(equity)
    if len(returns) < 2:
        return 0.0
    excess = returns - risk_free_rate / TRADING_DAYS
    downside = excess[excess < 0]
    if len(downside) == 0:
        return np.inf
    downside_std = float(np.sqrt((downside ** 2).mean()) * np.sqrt(TRADING_DAYS))
    if downside_std == 0.0:
        return 0.0
    return float(excess.mean() * TRADING_DAYS) / downside_std


def max_drawdown(equity: pd.Series) -> float:
    """Maximum peak-to-trough drawdown as a negative fraction."""
    if len(equity) == 0:
        return 0.0
    peak = equity.cummax()
    dd = (equity - peak) / peak
    return float(dd.min())


def calmar_ratio(equity: pd.Series) -> float:
    """CAGR / |max drawdown|; 0 when there was no drawdown."""
    mdd = max_drawdown(equity)
    if mdd == 0.0:
        return 0.0
    return float(annualized_return(equity) / abs(mdd))


def win_rate(equity: pd.Series) -> float:
    """Fraction of days on which equity rose."""
    returns = equity_returns(equity)
    if len(returns) == 0:
        return 0.0
    return float((returns > 0).mean())


def compute_risk_report(
    equity: pd.Series,
    risk_free_rate: float = config.RISK_FREE_RATE,
) -> RiskReport:
    """Compute all risk metrics and return a RiskReport."""
    return RiskReport(
        annualized_return=annualized_return(equity),
        annualized_volatility=annualized_volatility(equity),
        sharpe_ratio=sharpe_ratio(equity, risk_free_rate),
        sortino_ratio=sortino_ratio(equity, risk_free_rate),
        max_drawdown=max_drawdown(equity),
        calmar_ratio=calmar_ratio(equity),
        win_rate=win_rate(equity),
    )
