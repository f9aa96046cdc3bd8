#!/usr/bin/env python3
"""
Diversification analyzer and concentration measure tests.
"""

import pytest

from conftest import security_prediction, wave_prices
from portfolio_forecast.engine.portfolio import Portfolio, Position
from portfolio_forecast.metrics import calculate_gini, calculate_herfindahl
from portfolio_forecast.optimization import DiversificationAnalyzer
from portfolio_forecast.optimization.diversification import distribution_score


def spread_portfolio():
    """Four equal positions across sectors, regions, caps and styles."""
    symbols = ['TECH_GROWTH.US', 'FIN_VALUE.EU', 'HEALTH_SMALL.AS', 'ENERGY_MID']
    return Portfolio(positions=[
        Position(s, quantity=100, average_cost=100.0, current_price=100.0,
                 price_history=list(wave_prices(30, period=3.0 + i)))
        for i, s in enumerate(symbols)
    ])


# ============================================================================
# Concentration Measures
# ============================================================================

@pytest.mark.parametrize('weights, expected', [
    ([0.25, 0.25, 0.25, 0.25], 0.0),
    ([1.0, 0.0, 0.0, 0.0], 0.75),
    ([1.0, 0.0], 0.5),
    ([], 0.0),
])
def test_gini(weights, expected):
    assert calculate_gini(weights) == pytest.approx(expected, abs=1e-12)


def test_herfindahl():
    assert calculate_herfindahl([0.5, 0.5]) == pytest.approx(0.5)
    assert calculate_herfindahl([1.0]) == pytest.approx(1.0)


def test_distribution_score():
    assert distribution_score({'a': 0.5, 'b': 0.5}) == pytest.approx(1.0)
    assert distribution_score({'a': 1.0}) == 0.0
    assert distribution_score({'a': 0.9, 'b': 0.1}) < 1.0


# ============================================================================
# Analyzer
# ============================================================================

def test_spread_portfolio_scores_higher_than_single_holding():
    analyzer = DiversificationAnalyzer()
    spread = analyzer.analyze(spread_portfolio())
    single = analyzer.analyze(Portfolio(positions=[
        Position('TECH_GROWTH.US', quantity=100, average_cost=100.0, current_price=100.0)]))

    assert 0.0 <= single.score < spread.score <= 1.0
    assert single.score == 0.0
    categories = {r.category for r in single.recommendations}
    assert {'diversification', 'concentration'} <= categories


def test_distributions_use_position_tags():
    result = DiversificationAnalyzer().analyze(spread_portfolio())

    assert result.distributions['sector'] == {
        'Technology': 0.25, 'Financials': 0.25, 'Healthcare': 0.25, 'Other': 0.25}
    assert result.distribution_scores['sector'] == pytest.approx(1.0)
    assert result.concentration['gini'] == pytest.approx(0.0, abs=1e-12)
    assert result.concentration['maximum'] == pytest.approx(0.25)


def test_correlation_uses_forecasts_for_pairs():
    portfolio = spread_portfolio()
    predictions = [security_prediction(s) for s in portfolio.positions]
    result = DiversificationAnalyzer().analyze(portfolio, predictions)

    assert -1.0 <= result.correlation['minimum'] <= result.correlation['average'] <= result.correlation['maximum']
    assert result.correlation['maximum'] <= 1.0


def test_risk_metrics_by_asset_class():
    portfolio = Portfolio(cash=2000.0, positions=[
        Position('AAA', quantity=60, average_cost=100.0, current_price=100.0),
        Position('AGG.BOND', quantity=20, average_cost=100.0, current_price=100.0),
    ])
    risk = DiversificationAnalyzer.risk_metrics(portfolio, average_correlation=0.0, max_concentration=0.0)

    assert risk['equities_risk'] == pytest.approx(0.6 * 1.2 / 2.2)
    assert risk['bonds_risk'] == pytest.approx(0.2 * 0.8 / 2.2)
    assert risk['cash_risk'] == pytest.approx(0.2 * 0.2 / 2.2)
    assert risk['total_risk'] == pytest.approx((0.72 + 0.16 + 0.04) / 2.2)
