#!/usr/bin/env python3
"""
Performance and risk metric tests.
"""

from datetime import date

import numpy as np
import pandas as pd
import pytest

from portfolio_forecast.exceptions import LengthMismatchError, ValidationError
from portfolio_forecast.metrics import (
    annualized_return, calculate_correlation, calculate_cvar, calculate_max_drawdown,
    calculate_var, calculate_volatility, classify_risk_level, information_ratio,
    performance_attribution, performance_history, rolling_returns, sharpe_ratio,
    simple_return, sortino_ratio
)


# ============================================================================
# Returns
# ============================================================================

def test_simple_return():
    assert simple_return(100, 110) == pytest.approx(0.10)
    assert simple_return(0, 110) == 0.0


def test_annualized_return():
    assert annualized_return(100, 121, date(2020, 1, 1), date(2021, 12, 31)) == pytest.approx(0.1, abs=1e-3)
    with pytest.raises(ValidationError):
        annualized_return(100, 110, date(2021, 1, 1), date(2020, 1, 1))


def test_rolling_returns():
    values = pd.Series([100.0, 110.0, 121.0, 133.1])
    assert rolling_returns(values, 1).tolist() == pytest.approx([0.1, 0.1, 0.1])
    with pytest.raises(ValidationError):
        rolling_returns(values, 0)


def test_performance_attribution():
    frame = performance_attribution({'A': 0.6, 'B': 0.4}, {'A': 0.10, 'B': -0.05})

    assert frame.loc['A', 'contribution'] == pytest.approx(0.06)
    assert frame.loc['B', 'contribution'] == pytest.approx(-0.02)
    assert frame['share'].sum() == pytest.approx(1.0)


def test_performance_history():
    history = performance_history(pd.Series([100.0, 120.0, 90.0]))
    assert history['drawdown'].tolist() == pytest.approx([0.0, 0.0, 0.25])
    assert history['cumulative_return'].iloc[-1] == pytest.approx(-0.1)


# ============================================================================
# Risk-Adjusted Ratios
# ============================================================================

def test_ratios_need_variance():
    assert sharpe_ratio([0.01]) == 0.0
    assert sharpe_ratio([0.01, 0.01, 0.01]) == 0.0
    assert sortino_ratio([0.01, 0.02]) == 0.0


def test_sharpe_sign_follows_mean():
    returns = np.array([0.01, -0.005, 0.02, 0.0, 0.015])
    assert sharpe_ratio(returns) > 0
    assert sharpe_ratio(-returns) < 0
    assert sortino_ratio(returns) > 0


def test_information_ratio():
    returns = [0.01, 0.02, 0.03]
    assert information_ratio(returns, returns) == 0.0
    assert information_ratio(returns, [0.0, 0.005, 0.0]) > 0
    with pytest.raises(LengthMismatchError):
        information_ratio(returns, [0.01])


# ============================================================================
# Risk
# ============================================================================

def test_volatility_and_drawdown():
    assert calculate_volatility([0.01]) == 0.0
    assert calculate_volatility([0.01, -0.01], annualize=False) == pytest.approx(0.01)
    assert calculate_max_drawdown([100, 120, 60, 130]) == pytest.approx(0.5)
    assert calculate_max_drawdown([]) == 0.0


def test_historical_var_and_cvar():
    returns = np.linspace(-0.10, 0.09, 20)
    var = calculate_var(returns, 0.95)
    cvar = calculate_cvar(returns, 0.95)

    assert var == pytest.approx(-np.percentile(returns, 5))
    assert cvar >= var
    with pytest.raises(ValueError):
        calculate_var(returns, method='monte_carlo')


def test_correlation():
    assert calculate_correlation([1, 2, 3], [2, 4, 6]) == pytest.approx(1.0)
    assert calculate_correlation([1, 2, 3], [3, 2, 1]) == pytest.approx(-1.0)
    assert calculate_correlation([1, 1, 1], [1, 2, 3]) == 0.0
    with pytest.raises(LengthMismatchError):
        calculate_correlation([1, 2], [1])


def test_risk_levels():
    assert classify_risk_level(0.04) == 1
    assert classify_risk_level(0.07) == 2
    assert classify_risk_level(0.15) == 3
    assert classify_risk_level(0.15, low=0.10, medium=0.20) == 2
