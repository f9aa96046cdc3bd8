#!/usr/bin/env python3
"""
Backtest chart smoke tests (rendered off-screen).
"""

import matplotlib
matplotlib.use('Agg')

import matplotlib.pyplot as plt
import pytest

from portfolio_forecast.engine.backtest import BacktestingFramework, BacktestScenario
from portfolio_forecast.engine.providers import DataFrameMarketDataProvider
from portfolio_forecast.visualization import (
    format_currency, format_percentage, get_color_palette, plot_backtest_dashboard, plot_value_curves
)


@pytest.fixture
def result(price_frame):
    scenarios = [BacktestScenario(name, ['AAA', 'AGG.BOND'], '^IDX') for name in ('one', 'two')]
    return BacktestingFramework(DataFrameMarketDataProvider(price_frame)).run_backtest(
        scenarios, '2024-01-01', '2024-02-15')


def test_formatters():
    assert format_currency(1_250_000) == '$1.2M'
    assert format_currency(85_000) == '$85K'
    assert format_currency(950) == '$950'
    assert format_percentage(0.05) == '5.0%'


def test_color_palette_extends():
    assert len(get_color_palette(3)) == 3
    assert len(get_color_palette(15)) == 15


def test_value_curves_one_line_per_scenario(result):
    ax = plot_value_curves(result)
    assert len(ax.get_lines()) == 2
    plt.close(ax.figure)


def test_dashboard_saved(result, tmp_path):
    path = tmp_path / 'charts' / 'dashboard.png'
    fig = plot_backtest_dashboard(result, str(path))

    assert path.exists()
    assert len(fig.axes) == 4
