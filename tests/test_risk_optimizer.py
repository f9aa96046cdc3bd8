#!/usr/bin/env python3
"""
Risk optimizer tests.
"""

import numpy as np
import pytest

from conftest import market_prediction, security_prediction
from portfolio_forecast.config import EngineConfig
from portfolio_forecast.exceptions import MissingPortfolioError
from portfolio_forecast.optimization import RiskOptimizer, pairwise_correlations
from portfolio_forecast.schemas.profiles import RiskProfile


def predictions():
    return [security_prediction('TECH_GROWTH.US', volatility=0.2, risk_level=3),
            security_prediction('AGG.BOND', volatility=0.05, risk_level=1)]


def test_target_risk_below_current(two_asset_portfolio):
    two_asset_portfolio.risk_level = 2.0
    result = RiskOptimizer().optimize(two_asset_portfolio, market_prediction(), predictions(),
                                      RiskProfile(risk_tolerance=50))

    assert result.target.total_risk < result.current.total_risk
    assert result.risk_reduction == pytest.approx(result.current.total_risk * 0.7)
    assert result.recommendations[0].priority == 1
    assert result.recommendations[0].category == 'total'


def test_current_risk_components(two_asset_portfolio):
    current = RiskOptimizer().calculate_current_risk(two_asset_portfolio, market_prediction(), predictions())

    # Position returns since purchase: +11.1% and 0%
    expected_portfolio_risk = np.std([10 / 90, 0.0]) * 100
    assert current.portfolio_risk == pytest.approx(expected_portfolio_risk)
    assert current.market_risk == pytest.approx(0.2 * 3)
    assert current.security_risks == {'TECH_GROWTH.US': pytest.approx(0.6), 'AGG.BOND': pytest.approx(0.05)}
    assert -1.0 <= current.correlation_risk <= 1.0


@pytest.mark.parametrize('tolerance, factor', [(0, 0.01), (20, 0.2), (50, 0.3), (100, 0.3)])
def test_target_factor_is_clamped(tolerance, factor):
    assert RiskOptimizer().target_factor(RiskProfile(risk_tolerance=tolerance)) == pytest.approx(factor)


def test_adjustments_cover_every_security(two_asset_portfolio):
    result = RiskOptimizer().optimize(two_asset_portfolio, market_prediction(), predictions(),
                                      RiskProfile(risk_tolerance=20))
    assert {'portfolio', 'market', 'correlation', 'concentration',
            'TECH_GROWTH.US', 'AGG.BOND'} == set(result.adjustments)
    assert result.adjustments['market'] == pytest.approx(0.6 * 0.8)


def test_short_histories_use_derived_series(two_asset_portfolio):
    for position in two_asset_portfolio.positions.values():
        position.price_history = position.price_history[-5:]
    correlations = pairwise_correlations(two_asset_portfolio, predictions())

    # Both derived series are scaled copies of the same ramp
    assert correlations == [pytest.approx(1.0)]


def test_missing_portfolio_rejected():
    with pytest.raises(MissingPortfolioError):
        RiskOptimizer().optimize(None, market_prediction(), [], RiskProfile())


def test_from_config_uses_risk_level_clamps():
    optimizer = RiskOptimizer.from_config(EngineConfig(min_risk_level=0.4, max_risk_level=0.5))

    assert optimizer.target_factor(RiskProfile(risk_tolerance=10)) == pytest.approx(0.4)
    assert optimizer.target_factor(RiskProfile(risk_tolerance=90)) == pytest.approx(0.5)
