#!/usr/bin/env python3
"""
Shared styling, axis formatters and figure helpers for the backtest charts.
"""

import logging
import os
from typing import List, Optional, Tuple

import matplotlib.pyplot as plt
import numpy as np

# Scenario line colors, in plotting order
DEFAULT_COLORS = [
    '#1f77b4',  # Blue
    '#ff7f0e',  # Orange
    '#2ca02c',  # Green
    '#d62728',  # Red
    '#9467bd',  # Purple
    '#8c564b',  # Brown
    '#e377c2',  # Pink
    '#7f7f7f',  # Gray
]


def format_currency(value: float, prefix: str = '$') -> str:
    """Compact currency label: $1.2M, $85K, $950."""
    if abs(value) >= 1e6:
        return f'{prefix}{value / 1e6:.1f}M'
    if abs(value) >= 1e3:
        return f'{prefix}{value / 1e3:.0f}K'
    return f'{prefix}{value:.0f}'


def format_percentage(value: float, decimals: int = 1) -> str:
    """0.05 -> '5.0%'"""
    return f'{value * 100:.{decimals}f}%'


def create_figure(nrows: int = 1, ncols: int = 1,
                  figsize: Optional[Tuple[float, float]] = None,
                  **kwargs) -> Tuple[plt.Figure, np.ndarray]:
    """
    Create a figure with subplots.

    Parameters:
    -----------
    nrows, ncols : int
        Subplot grid
    figsize : tuple, optional
        Figure size (default 6 x 4 inches per panel)

    Returns:
    --------
    tuple: (fig, axes) with axes always a flat array
    """
    if figsize is None:
        figsize = (6 * ncols, 4 * nrows)
    fig, axes = plt.subplots(nrows, ncols, figsize=figsize, squeeze=False, **kwargs)
    return fig, axes.ravel()


def get_color_palette(n_colors: int) -> List:
    """Default colors, extended from the tab20 colormap when more are needed."""
    if n_colors <= len(DEFAULT_COLORS):
        return DEFAULT_COLORS[:n_colors]
    cmap = plt.get_cmap('tab20')
    return [cmap(i / n_colors) for i in range(n_colors)]


def save_figure(fig: plt.Figure, path: str, dpi: int = 150, **kwargs) -> str:
    """Save figure to `path`, creating its directory, and close it."""
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    fig.savefig(path, dpi=dpi, bbox_inches='tight', **kwargs)
    plt.close(fig)
    logging.info(f"Saved: {path}")
    return path
