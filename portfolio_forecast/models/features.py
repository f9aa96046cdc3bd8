#!/usr/bin/env python3
"""
Feature engineering for prediction models.

Technical indicators computed from a chronological price history: moving
averages, RSI and return volatility. All functions reject histories that are
too short instead of padding them.
"""

import numpy as np
from typing import Dict, List, Optional, Sequence

from ..exceptions import InsufficientHistoryError
from .base import calculate_returns, sample_volatility

RSI_PERIOD = 14


def moving_average(prices: Sequence[float], window: int) -> float:
    """Mean of the last `window` prices."""
    if window < 1:
        raise ValueError(f"window must be >= 1, got {window}")
    if len(prices) < window:
        raise InsufficientHistoryError(window, len(prices))
    return float(np.mean(np.asarray(prices[-window:], dtype=float)))


def moving_averages(prices: Sequence[float], windows: Sequence[int]) -> Dict[int, float]:
    """Moving average for every window that fits inside the history."""
    return {w: moving_average(prices, w) for w in windows if w <= len(prices)}


def calculate_rsi(prices: Sequence[float], period: int = RSI_PERIOD) -> float:
    """
    Relative Strength Index over the last `period` gains and losses.

    Returns 100 when there are no losses in the window.
    """
    if len(prices) < period + 1:
        raise InsufficientHistoryError(period + 1, len(prices))
    changes = np.diff(np.asarray(prices, dtype=float))[-period:]
    gains = changes[changes > 0]
    losses = -changes[changes < 0]
    average_gain = gains.mean() if len(gains) else 0.0
    average_loss = losses.mean() if len(losses) else 0.0
    if average_loss == 0:
        return 100.0
    rs = average_gain / average_loss
    return float(100.0 - 100.0 / (1.0 + rs))


def technical_indicators(prices: Sequence[float],
                         short_window: int = 20,
                         long_window: int = 50) -> Dict[str, float]:
    """
    Bundle of indicators used as model features.

    Moving-average windows longer than the history fall back to the full
    history, so the bundle is defined for any history with RSI coverage.

    Returns:
    --------
    Dict with short_ma, long_ma, ma_ratio, rsi, volatility
    """
    if len(prices) < RSI_PERIOD + 1:
        raise InsufficientHistoryError(RSI_PERIOD + 1, len(prices))
    short_ma = moving_average(prices, min(short_window, len(prices)))
    long_ma = moving_average(prices, min(long_window, len(prices)))
    return {
        'short_ma': short_ma,
        'long_ma': long_ma,
        'ma_ratio': short_ma / long_ma - 1 if long_ma != 0 else 0.0,
        'rsi': calculate_rsi(prices),
        'volatility': sample_volatility(calculate_returns(prices)),
    }


def build_feature_vector(prices: Sequence[float],
                         indicators: Optional[Dict[str, float]],
                         indicator_names: List[str],
                         horizon: int,
                         lookback: int) -> np.ndarray:
    """
    Concatenate trailing returns, economic indicators, technical indicators
    and the horizon into one feature vector.

    Missing indicators contribute 0.
    """
    required = max(lookback + 1, RSI_PERIOD + 1)
    if len(prices) < required:
        raise InsufficientHistoryError(required, len(prices))
    returns = calculate_returns(prices)[-lookback:]
    indicators = indicators or {}
    economic = [float(indicators.get(name, 0.0)) for name in indicator_names]
    technical = technical_indicators(prices)
    return np.concatenate([
        returns,
        economic,
        [technical['ma_ratio'], technical['rsi'] / 100.0, technical['volatility']],
        [float(horizon)],
    ])
