#!/usr/bin/env python3
"""
Shared fixtures for the test suite.

Every price series is a closed-form function of the day index (trend plus
a sine wave), so tests are deterministic without seeding a generator.
"""

import numpy as np
import pandas as pd
import pytest

from portfolio_forecast.engine.portfolio import Portfolio, Position
from portfolio_forecast.models.base import MarketPrediction, SecurityPrediction


# ============================================================================
# Helper Functions
# ============================================================================

def wave_prices(n: int, start: float = 100.0, drift: float = 0.2,
                amplitude: float = 2.0, period: float = 3.0) -> np.ndarray:
    """Upward drifting price path with a sine wiggle."""
    i = np.arange(n)
    return start + drift * i + amplitude * np.sin(i / period)


def market_prediction(volatility: float = 0.2, risk_level: int = 3,
                      expected_return: float = 0.01) -> MarketPrediction:
    return MarketPrediction(expected_return=expected_return, volatility=volatility,
                            risk_level=risk_level, confidence=0.8, time_horizon=1)


def security_prediction(symbol: str, expected_return: float = 0.01,
                        volatility: float = 0.1, risk_level: int = 2,
                        confidence: float = 0.8) -> SecurityPrediction:
    return SecurityPrediction(expected_return=expected_return, volatility=volatility,
                              risk_level=risk_level, confidence=confidence, time_horizon=1,
                              symbol=symbol)


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def prices():
    return wave_prices(120)


@pytest.fixture
def two_asset_portfolio():
    """Equity and bond position, 60/40 by value, no cash."""
    equity = Position('TECH_GROWTH.US', quantity=600, average_cost=90.0,
                      price_history=list(wave_prices(40)), current_price=100.0)
    bond = Position('AGG.BOND', quantity=400, average_cost=100.0,
                    price_history=list(wave_prices(40, drift=0.05, amplitude=0.5)), current_price=100.0)
    return Portfolio(cash=0.0, name='sixty_forty', portfolio_id='p-1', positions=[equity, bond])


@pytest.fixture
def price_frame():
    """Daily closes for two equities, one bond and an index over 90 calendar days."""
    dates = pd.date_range('2024-01-01', periods=90, freq='D')
    return pd.DataFrame({
        'AAA': wave_prices(90, drift=0.3),
        'BBB': wave_prices(90, start=50.0, drift=0.05, amplitude=1.0, period=5.0),
        'AGG.BOND': wave_prices(90, drift=0.02, amplitude=0.3),
        '^IDX': wave_prices(90, start=1000.0, drift=1.0, amplitude=10.0, period=4.0),
    }, index=dates)
