#!/usr/bin/env python3
"""
Backtest charts: portfolio value curves, drawdowns and a summary dashboard.
"""

from typing import Optional

import matplotlib.pyplot as plt
from matplotlib.ticker import FuncFormatter

from .base import create_figure, format_currency, format_percentage, get_color_palette, save_figure


def plot_value_curves(result, ax: Optional[plt.Axes] = None) -> plt.Axes:
    """Portfolio value of every scenario over time."""
    if ax is None:
        _, axes = create_figure()
        ax = axes[0]
    colors = get_color_palette(len(result.scenarios))
    for color, scenario in zip(colors, result.scenarios):
        perf = scenario.performance
        if len(perf):
            ax.plot(perf['date'], perf['value'], label=scenario.scenario.name, color=color, linewidth=2)
    ax.yaxis.set_major_formatter(FuncFormatter(lambda v, _: format_currency(v)))
    ax.set_title('Portfolio Value', fontsize=13, fontweight='bold')
    ax.set_ylabel('Value')
    ax.grid(True, alpha=0.3)
    ax.legend(loc='best', fontsize=8)
    return ax


def plot_drawdowns(result, ax: Optional[plt.Axes] = None) -> plt.Axes:
    """Drawdown from running peak, drawn below zero."""
    if ax is None:
        _, axes = create_figure()
        ax = axes[0]
    colors = get_color_palette(len(result.scenarios))
    for color, scenario in zip(colors, result.scenarios):
        perf = scenario.performance
        if len(perf):
            ax.fill_between(perf['date'], -perf['drawdown'], 0, color=color, alpha=0.3,
                            label=scenario.scenario.name)
    ax.yaxis.set_major_formatter(FuncFormatter(lambda v, _: format_percentage(v, 0)))
    ax.set_title('Drawdown', fontsize=13, fontweight='bold')
    ax.grid(True, alpha=0.3)
    ax.legend(loc='lower left', fontsize=8)
    return ax


def plot_backtest_dashboard(result, path: Optional[str] = None) -> plt.Figure:
    """
    Value curves, drawdowns, Sharpe ratios and aggregate risk on one figure.

    Parameters:
    -----------
    result : BacktestResult
    path : str, optional
        When given, the figure is saved there and closed

    Returns:
    --------
    plt.Figure
    """
    fig, axes = create_figure(2, 2, figsize=(14, 9))
    plot_value_curves(result, axes[0])
    plot_drawdowns(result, axes[1])

    summary = result.summary()
    axes[2].barh(summary.index, summary['sharpe_ratio'],
                 color=get_color_palette(len(summary)), alpha=0.7, edgecolor='black')
    axes[2].set_title('Sharpe Ratio', fontsize=13, fontweight='bold')
    axes[2].grid(True, alpha=0.3, axis='x')

    risk = result.risk_metrics
    trades = result.trade_metrics
    lines = [
        f"Max drawdown: {format_percentage(risk['max_drawdown'])}",
        f"Average drawdown: {format_percentage(risk['average_drawdown'])}",
        f"VaR (95%): {format_percentage(risk['value_at_risk'], 2)}",
        f"CVaR (95%): {format_percentage(risk['conditional_value_at_risk'], 2)}",
        f"Trades: {trades['total_trades']:.0f}",
        f"Win rate: {format_percentage(trades['win_rate'])}",
        f"Profit factor: {trades['profit_factor']:.2f}",
    ]
    axes[3].axis('off')
    axes[3].text(0.05, 0.95, '\n'.join(lines), va='top', fontsize=11, family='monospace')
    axes[3].set_title('Aggregate Risk and Trades', fontsize=13, fontweight='bold')

    fig.tight_layout()
    if path:
        save_figure(fig, path)
    return fig
