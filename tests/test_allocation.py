#!/usr/bin/env python3
"""
Asset-class allocation and risk-adjusted return optimizer tests.
"""

import pytest

from conftest import market_prediction, security_prediction
from portfolio_forecast.config import EngineConfig
from portfolio_forecast.engine.portfolio import Portfolio
from portfolio_forecast.optimization import (
    AssetAllocationOptimizer, RiskAdjustedReturnOptimizer, normalize_allocation
)
from portfolio_forecast.schemas.profiles import RiskProfile


# ============================================================================
# Asset Allocation
# ============================================================================

def test_allocation_sums_to_one(two_asset_portfolio):
    plan = AssetAllocationOptimizer().optimize(two_asset_portfolio, RiskProfile(risk_tolerance=50))

    assert sum(plan.target_allocation.values()) == pytest.approx(1.0, abs=1e-6)
    assert set(plan.target_allocation) == {'Equities', 'Bonds', 'Cash'}
    assert plan.target_allocation['Equities'] > plan.target_allocation['Bonds'] > plan.target_allocation['Cash']
    assert all(abs(a.weight_delta) > plan.threshold for a in plan.actions)


def test_higher_tolerance_raises_equity_share(two_asset_portfolio):
    optimizer = AssetAllocationOptimizer()
    cautious = optimizer.optimize(two_asset_portfolio, RiskProfile(risk_tolerance=10))
    bold = optimizer.optimize(two_asset_portfolio, RiskProfile(risk_tolerance=90))
    assert bold.target_allocation['Equities'] > cautious.target_allocation['Equities']


def test_allocation_plan_metrics(two_asset_portfolio):
    plan = AssetAllocationOptimizer().optimize(two_asset_portfolio)
    for key in ('expected_return', 'volatility', 'sharpe_ratio', 'sortino_ratio',
                'total_risk', 'market_risk', 'correlation_risk', 'current_total_risk'):
        assert key in plan.metrics
    # 60% equities, 40% bonds
    assert plan.metrics['current_total_risk'] == pytest.approx(0.6 * 1.2 + 0.4 * 0.8)


def test_normalize_allocation():
    assert normalize_allocation({'a': 2.0, 'b': -1.0}) == {'a': 1.0, 'b': 0.0}
    assert normalize_allocation({'a': 0.0, 'b': 0.0}) == {'a': 0.5, 'b': 0.5}
    assert normalize_allocation({}) == {}


# ============================================================================
# Risk-Adjusted Return
# ============================================================================

def test_repair_meets_feasible_cap_in_one_shift():
    optimizer = RiskAdjustedReturnOptimizer(max_risk=0.5)
    repaired, iterations, met = optimizer.repair_risk({'Equities': 0.4, 'Bonds': 0.4, 'Cash': 0.2})

    assert met
    assert iterations == 1
    assert optimizer.total_risk(repaired) == pytest.approx(0.5)
    assert repaired['Equities'] == pytest.approx(0.06)
    assert repaired['Cash'] == pytest.approx(0.54)
    assert sum(repaired.values()) == pytest.approx(1.0)


def test_default_cap_is_reached_by_moving_to_cash(two_asset_portfolio):
    """0.2 equals the Cash risk factor, so the default cap is met at all-cash."""
    plan = RiskAdjustedReturnOptimizer().optimize(two_asset_portfolio, market_prediction(),
                                                  [security_prediction('TECH_GROWTH.US')])

    assert plan.metrics['constraint_met'] == 1.0
    assert plan.metrics['total_risk'] <= 0.2 + 1e-9
    assert plan.target_allocation['Cash'] == pytest.approx(1.0, abs=1e-6)
    assert plan.message == ''


def test_repair_reports_cap_below_cash_floor():
    optimizer = RiskAdjustedReturnOptimizer(max_risk=0.1)
    repaired, iterations, met = optimizer.repair_risk({'Equities': 0.6, 'Bonds': 0.4})

    assert not met
    assert iterations == 2
    assert repaired['Cash'] == pytest.approx(1.0)
    assert sum(repaired.values()) == pytest.approx(1.0)


def test_heuristic_repair_meets_loose_cap(two_asset_portfolio):
    plan = RiskAdjustedReturnOptimizer(max_risk=0.9).optimize(two_asset_portfolio, market_prediction())

    assert plan.metrics['constraint_met'] == 1.0
    assert plan.metrics['total_risk'] <= 0.9 + 1e-9
    assert plan.metrics['iterations'] < 100


def test_from_config_bounds_repair_iterations(two_asset_portfolio):
    config = EngineConfig(max_repair_iterations=1, risk_free_rate=0.03)
    optimizer = RiskAdjustedReturnOptimizer.from_config(config, max_risk=0.1)

    assert optimizer.max_iterations == 1
    assert optimizer.risk_free_rate == 0.03
    assert optimizer.max_risk == 0.1
    plan = optimizer.optimize(two_asset_portfolio, market_prediction())
    assert plan.metrics['iterations'] == 1
    assert plan.metrics['constraint_met'] == 0.0


def test_linear_program_maximizes_return(two_asset_portfolio):
    plan = RiskAdjustedReturnOptimizer(max_risk=0.8).optimize(
        two_asset_portfolio, market_prediction(), method='linear_program')

    assert plan.status == 'optimal'
    assert plan.target_allocation['Equities'] == pytest.approx(0.6, abs=1e-4)
    assert plan.target_allocation['Cash'] == pytest.approx(0.4, abs=1e-4)
    assert plan.target_allocation['Bonds'] == pytest.approx(0.0, abs=1e-4)


def test_linear_program_infeasible_cap(two_asset_portfolio):
    plan = RiskAdjustedReturnOptimizer(max_risk=0.1).optimize(
        two_asset_portfolio, market_prediction(), method='linear_program')

    assert plan.status == 'failed'
    assert plan.actions == []


def test_unknown_method_rejected(two_asset_portfolio):
    with pytest.raises(ValueError):
        RiskAdjustedReturnOptimizer().optimize(two_asset_portfolio, market_prediction(), method='genetic')


def test_empty_portfolio_allocates_from_cash():
    plan = RiskAdjustedReturnOptimizer(max_risk=0.9).optimize(Portfolio(cash=10000.0), market_prediction())
    assert {a.asset for a in plan.actions} <= {'Equities', 'Bonds', 'Cash'}
