# Performance and risk metrics package
"""
Performance measurement and risk analysis utilities.

Modules:
- performance: simple/annualized/rolling returns, attribution, Sharpe, Sortino, information ratio
- risk: volatility, drawdown, correlation, VaR, CVaR, Gini, Herfindahl
"""

from .performance import (
    simple_return,
    annualized_return,
    rolling_returns,
    performance_attribution,
    performance_history,
    sharpe_ratio,
    sortino_ratio,
    information_ratio,
)

from .risk import (
    TRADING_DAYS_PER_YEAR,
    calculate_volatility,
    calculate_max_drawdown,
    calculate_drawdown_series,
    calculate_correlation,
    calculate_var,
    calculate_cvar,
    calculate_downside_deviation,
    calculate_gini,
    calculate_herfindahl,
    classify_risk_level,
)

__all__ = [
    # Performance
    'simple_return',
    'annualized_return',
    'rolling_returns',
    'performance_attribution',
    'performance_history',
    'sharpe_ratio',
    'sortino_ratio',
    'information_ratio',
    # Risk
    'TRADING_DAYS_PER_YEAR',
    'calculate_volatility',
    'calculate_max_drawdown',
    'calculate_drawdown_series',
    'calculate_correlation',
    'calculate_var',
    'calculate_cvar',
    'calculate_downside_deviation',
    'calculate_gini',
    'calculate_herfindahl',
    'classify_risk_level',
]
