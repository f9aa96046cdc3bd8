#!/usr/bin/env python3
"""
Performance Metrics Module.

Return, attribution and risk-adjusted performance calculations.
"""

import numpy as np
import pandas as pd
from datetime import date, datetime
from typing import Dict, Union, Sequence

from ..exceptions import ValidationError, require_same_length
from .risk import TRADING_DAYS_PER_YEAR, calculate_drawdown_series


def simple_return(initial_value: float, final_value: float) -> float:
    '''Holding-period return; 0 when the initial value is 0'''
    if initial_value == 0:
        return 0.0
    return (final_value - initial_value) / initial_value


def annualized_return(initial_value: float, final_value: float,
                      start: Union[date, datetime], end: Union[date, datetime]) -> float:
    '''Compound annual growth rate between two dates (365-day years)'''
    days = (end - start).days
    if days <= 0:
        raise ValidationError(f"End date ({end}) must be after start date ({start})")
    if initial_value <= 0 or final_value < 0:
        return 0.0
    years = days / 365.0
    return (final_value / initial_value) ** (1 / years) - 1


def rolling_returns(values: pd.Series, window: int) -> pd.Series:
    '''Return over each trailing window of `window` observations'''
    if window < 1:
        raise ValidationError(f"window must be >= 1, got {window}")
    return (values / values.shift(window) - 1).dropna()


def performance_attribution(weights: Dict[str, float],
                            returns: Dict[str, float]) -> pd.DataFrame:
    """
    Contribution of each holding to the portfolio return.

    Parameters:
    -----------
    weights : Dict[str, float]
        Weight per symbol at the start of the period
    returns : Dict[str, float]
        Period return per symbol (missing symbols count as 0)

    Returns:
    --------
    pd.DataFrame indexed by symbol with weight, return, contribution and
    share of total contribution
    """
    rows = []
    for symbol, weight in weights.items():
        r = returns.get(symbol, 0.0)
        rows.append({'symbol': symbol, 'weight': weight, 'return': r, 'contribution': weight * r})
    df = pd.DataFrame(rows, columns=['symbol', 'weight', 'return', 'contribution']).set_index('symbol')
    total = df['contribution'].sum()
    df['share'] = df['contribution'] / total if total != 0 else 0.0
    return df


def performance_history(values: pd.Series) -> pd.DataFrame:
    '''Value, period return, cumulative return and drawdown for a value series'''
    if len(values) == 0:
        return pd.DataFrame(columns=['value', 'return', 'cumulative_return', 'drawdown'])
    first = values.iloc[0]
    return pd.DataFrame({
        'value': values,
        'return': values.pct_change().fillna(0.0),
        'cumulative_return': values / first - 1 if first != 0 else 0.0,
        'drawdown': calculate_drawdown_series(values),
    })


def sharpe_ratio(returns: Union[pd.Series, np.ndarray, Sequence[float]],
                 risk_free_rate: float = 0.0,
                 periods_per_year: int = TRADING_DAYS_PER_YEAR) -> float:
    '''Annualized excess return over annualized volatility; 0 without variance'''
    returns = np.asarray(returns, dtype=float)
    if len(returns) < 2:
        return 0.0
    excess = returns - risk_free_rate / periods_per_year
    std = np.std(excess)
    if std <= 1e-15:
        return 0.0
    return float(np.mean(excess) / std * np.sqrt(periods_per_year))


def sortino_ratio(returns: Union[pd.Series, np.ndarray, Sequence[float]],
                  risk_free_rate: float = 0.0,
                  periods_per_year: int = TRADING_DAYS_PER_YEAR) -> float:
    '''Like Sharpe but the denominator is downside deviation below the risk-free rate'''
    returns = np.asarray(returns, dtype=float)
    if len(returns) < 2:
        return 0.0
    rf = risk_free_rate / periods_per_year
    downside = returns[returns < rf] - rf
    if len(downside) == 0:
        return 0.0
    downside_dev = np.sqrt(np.mean(downside ** 2))
    if downside_dev <= 1e-15:
        return 0.0
    return float(np.mean(returns - rf) / downside_dev * np.sqrt(periods_per_year))


def information_ratio(returns: Union[pd.Series, np.ndarray, Sequence[float]],
                      benchmark_returns: Union[pd.Series, np.ndarray, Sequence[float]],
                      periods_per_year: int = TRADING_DAYS_PER_YEAR) -> float:
    '''Annualized active return over tracking error'''
    require_same_length(returns, benchmark_returns, "Returns and benchmark returns")
    active = np.asarray(returns, dtype=float) - np.asarray(benchmark_returns, dtype=float)
    if len(active) < 2:
        return 0.0
    tracking_error = np.std(active)
    if tracking_error <= 1e-15:
        return 0.0
    return float(np.mean(active) / tracking_error * np.sqrt(periods_per_year))
