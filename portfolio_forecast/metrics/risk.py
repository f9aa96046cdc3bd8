#!/usr/bin/env python3
"""
Risk Metrics Module.

Provides volatility, drawdown, correlation, VaR/CVaR and concentration
measures used by the optimizers and the backtester.
"""

import numpy as np
import pandas as pd
from typing import Union, Sequence

from ..exceptions import require_same_length

TRADING_DAYS_PER_YEAR = 252


def calculate_volatility(returns: Union[pd.Series, np.ndarray, Sequence[float]],
                         annualize: bool = True) -> float:
    """
    Population standard deviation of returns, optionally annualized by sqrt(252).

    Returns 0.0 for fewer than two observations.
    """
    returns = np.asarray(returns, dtype=float)
    if len(returns) < 2:
        return 0.0
    vol = float(np.std(returns))
    return vol * np.sqrt(TRADING_DAYS_PER_YEAR) if annualize else vol


def calculate_max_drawdown(values: Union[pd.Series, np.ndarray, Sequence[float]]) -> float:
    """
    Largest peak-to-trough decline of a value series, as a positive fraction.

    Parameters:
    -----------
    values : pd.Series or np.ndarray
        Portfolio values (not returns)

    Returns:
    --------
    float: Max drawdown in [0, 1]
    """
    values = np.asarray(values, dtype=float)
    if len(values) == 0:
        return 0.0
    running_max = np.maximum.accumulate(values)
    with np.errstate(divide='ignore', invalid='ignore'):
        drawdowns = np.where(running_max > 0, (running_max - values) / running_max, 0.0)
    return float(drawdowns.max())


def calculate_drawdown_series(values: pd.Series) -> pd.Series:
    """Drawdown from running peak at each point (positive fractions)."""
    running_max = values.cummax()
    drawdown = (running_max - values) / running_max.where(running_max > 0)
    return drawdown.fillna(0.0)


def calculate_correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """
    Pearson correlation of two equal-length series.

    Raises LengthMismatchError when lengths differ; returns 0.0 when either
    series has zero variance or fewer than two points.
    """
    require_same_length(x, y, "Correlation inputs")
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    n = len(x)
    if n < 2:
        return 0.0
    numerator = n * np.sum(x * y) - np.sum(x) * np.sum(y)
    denominator = np.sqrt((n * np.sum(x * x) - np.sum(x) ** 2) * (n * np.sum(y * y) - np.sum(y) ** 2))
    if not np.isfinite(denominator) or denominator <= 1e-15:
        return 0.0
    return float(np.clip(numerator / denominator, -1.0, 1.0))


def calculate_var(returns: Union[pd.Series, np.ndarray],
                  confidence: float = 0.95,
                  method: str = 'historical') -> float:
    """
    Calculate Value at Risk (VaR).

    Parameters:
    -----------
    returns : pd.Series or np.ndarray
        Return series
    confidence : float
        Confidence level (0.95 gives the 5th-percentile cutoff)
    method : str
        'historical' (empirical quantile) or 'parametric' (normal assumption)

    Returns:
    --------
    float: VaR as a positive number representing potential loss
    """
    returns = np.asarray(returns, dtype=float)
    if len(returns) == 0:
        return 0.0

    if method == 'historical':
        var = -np.percentile(returns, (1 - confidence) * 100)
    elif method == 'parametric':
        from scipy import stats
        mean = np.mean(returns)
        std = np.std(returns)
        var = -(mean + std * stats.norm.ppf(1 - confidence))
    else:
        raise ValueError(f"Unknown method: {method}")

    return float(var)


def calculate_cvar(returns: Union[pd.Series, np.ndarray],
                   confidence: float = 0.95) -> float:
    """
    Conditional Value at Risk (expected shortfall) from the empirical tail.

    The tail is every return at or below the VaR cutoff.
    """
    returns = np.asarray(returns, dtype=float)
    if len(returns) == 0:
        return 0.0
    var = calculate_var(returns, confidence)
    tail_losses = returns[returns <= -var]
    if len(tail_losses) == 0:
        return var
    return float(-np.mean(tail_losses))


def calculate_downside_deviation(returns: Union[pd.Series, np.ndarray],
                                 threshold: float = 0.0) -> float:
    """
    Calculate downside deviation (semi-deviation below threshold).

    Parameters:
    -----------
    returns : pd.Series or np.ndarray
        Return series
    threshold : float
        Threshold for downside (default: 0)

    Returns:
    --------
    float: Downside deviation
    """
    returns = np.asarray(returns, dtype=float)
    downside_returns = returns[returns < threshold]

    if len(downside_returns) == 0:
        return 0.0

    return float(np.sqrt(np.mean((downside_returns - threshold) ** 2)))


def calculate_gini(weights: Sequence[float]) -> float:
    """
    Gini coefficient of a weight distribution.

    0 for perfectly equal weights, (n-1)/n when one weight holds everything.
    Empty or all-zero input gives 0.
    """
    w = np.sort(np.abs(np.asarray(weights, dtype=float)))
    n = len(w)
    total = w.sum()
    if n == 0 or total <= 0:
        return 0.0
    ranks = np.arange(1, n + 1)
    return float((n + 1 - 2 * np.sum((n + 1 - ranks) * w) / total) / n)


def calculate_herfindahl(weights: Sequence[float]) -> float:
    """Herfindahl index: sum of squared weights."""
    w = np.asarray(weights, dtype=float)
    return float(np.sum(w ** 2))


def classify_risk_level(volatility: float,
                        low: float = 0.05,
                        medium: float = 0.10) -> int:
    """Bucket a volatility into risk level 1 (low), 2 (medium) or 3 (high)."""
    if volatility < low:
        return 1
    if volatility < medium:
        return 2
    return 3
