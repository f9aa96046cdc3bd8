# Visualization package
"""
Plotting utilities for backtest results.

Modules:
- base: Common chart utilities and styling
- backtest: Value curves, drawdowns and the backtest dashboard
"""

from .base import (
    format_currency,
    format_percentage,
    create_figure,
    save_figure,
    get_color_palette,
    DEFAULT_COLORS,
)
from .backtest import plot_value_curves, plot_drawdowns, plot_backtest_dashboard

__all__ = [
    'format_currency',
    'format_percentage',
    'create_figure',
    'save_figure',
    'get_color_palette',
    'DEFAULT_COLORS',
    'plot_value_curves',
    'plot_drawdowns',
    'plot_backtest_dashboard',
]
