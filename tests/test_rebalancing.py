#!/usr/bin/env python3
"""
Rebalancing policy, engine and trigger tests.
"""

from datetime import date

import pytest

from conftest import market_prediction
from portfolio_forecast.config import EngineConfig
from portfolio_forecast.engine.portfolio import Portfolio
from portfolio_forecast.optimization.plan import ActionSide
from portfolio_forecast.rebalancing import (
    Drift, MarketConditionBasedPolicy, Never, Periodic, RebalancingEngine,
    RiskBasedPolicy, ThresholdBasedPolicy, TimeBasedPolicy, calculate_performance_impact,
    create_policy
)
from portfolio_forecast.schemas.profiles import RebalancingStrategyType, RiskProfile


# ============================================================================
# Policies
# ============================================================================

def test_single_sell_action(two_asset_portfolio):
    actions = ThresholdBasedPolicy().generate_actions(
        two_asset_portfolio, {'Equities': 0.6}, {'Equities': 0.5})

    assert len(actions) == 1
    assert actions[0].side == ActionSide.SELL
    assert actions[0].weight_delta == pytest.approx(-0.1)
    assert actions[0].amount == pytest.approx(10000.0)
    assert actions[0].impact == pytest.approx(-10.0)


def test_drift_within_threshold_is_ignored(two_asset_portfolio):
    actions = ThresholdBasedPolicy(threshold=0.05).generate_actions(
        two_asset_portfolio, {'Equities': 0.6, 'Bonds': 0.4}, {'Equities': 0.57, 'Bonds': 0.43})
    assert actions == []


@pytest.mark.parametrize('value, expected', [(5000.0, 1000.0), (100000.0, 10000.0), (10000000.0, 100000.0)])
def test_amount_is_clamped(value, expected):
    assert ThresholdBasedPolicy().rebalance_amount(value, -0.1) == pytest.approx(expected)


def test_risk_based_threshold(two_asset_portfolio):
    risk_based = RiskBasedPolicy()
    threshold_based = ThresholdBasedPolicy()

    two_asset_portfolio.risk_level = 0.0
    assert risk_based.effective_threshold(two_asset_portfolio) == \
        threshold_based.effective_threshold(two_asset_portfolio)

    two_asset_portfolio.risk_level = 2.0
    assert risk_based.effective_threshold(two_asset_portfolio) == pytest.approx(0.06)


def test_market_condition_threshold_widens_with_volatility(two_asset_portfolio):
    two_asset_portfolio.volatility = 0.5
    assert MarketConditionBasedPolicy().effective_threshold(two_asset_portfolio) == pytest.approx(0.0525)


def test_create_policy_from_config():
    config = EngineConfig(time_based_threshold=0.02, time_period_days=7, min_transaction_amount=500.0)
    policy = create_policy('time_based', config)

    assert isinstance(policy, TimeBasedPolicy)
    assert policy.threshold == 0.02
    assert policy.period_days == 7
    assert policy.min_amount == 500.0
    assert isinstance(create_policy(RebalancingStrategyType.VOLATILITY_BASED), MarketConditionBasedPolicy)
    with pytest.raises(ValueError):
        create_policy('calendar')


def test_policy_validates_bounds():
    with pytest.raises(ValueError):
        ThresholdBasedPolicy(threshold=-0.1)
    with pytest.raises(ValueError):
        ThresholdBasedPolicy(min_amount=5000.0, max_amount=1000.0)


# ============================================================================
# Engine
# ============================================================================

def test_target_allocation_formula():
    target = RebalancingEngine.calculate_target_allocation(RiskProfile(risk_tolerance=50), 0.2)

    assert target['Equities'] == pytest.approx(0.51)
    assert target['Bonds'] == pytest.approx(0.49)
    assert target['Cash'] == pytest.approx(0.0)


def test_target_allocation_clamps():
    target = RebalancingEngine.calculate_target_allocation(RiskProfile(risk_tolerance=100), 0.0)
    assert target['Equities'] == pytest.approx(0.9)
    assert target['Bonds'] == pytest.approx(0.1)
    assert sum(target.values()) == pytest.approx(1.0)


def test_plan_from_cash():
    engine = RebalancingEngine()
    plan = engine.generate_plan(Portfolio(cash=100000.0), market_prediction(volatility=0.2),
                                RiskProfile(risk_tolerance=50))

    sides = {a.asset: a.side for a in plan.actions}
    assert sides == {'Bonds': ActionSide.BUY, 'Cash': ActionSide.SELL, 'Equities': ActionSide.BUY}
    assert plan.strategy == RebalancingStrategyType.THRESHOLD_BASED
    assert plan.portfolio_value == pytest.approx(100000.0)
    assert plan.metrics['transaction_costs'] == pytest.approx(0.001 * plan.total_amount)


def test_plan_with_explicit_target(two_asset_portfolio):
    plan = RebalancingEngine().generate_plan(
        two_asset_portfolio, market_prediction(), RiskProfile(),
        strategy='risk_based', target_allocation={'Equities': 1.0, 'Bonds': 1.0})

    assert plan.target_allocation == {'Equities': 0.5, 'Bonds': 0.5}
    assert [a.asset for a in plan.actions] == ['Bonds', 'Equities']


def test_performance_impact_signs(two_asset_portfolio):
    actions = ThresholdBasedPolicy().generate_actions(
        two_asset_portfolio, {'Equities': 0.6, 'Bonds': 0.4}, {'Equities': 0.4, 'Bonds': 0.6})
    impact = calculate_performance_impact(actions)

    # Equal buy and sell notionals cancel in the directional components
    assert impact['total_impact'] == pytest.approx(0.0)
    assert impact['market_impact'] == pytest.approx(0.0)
    assert impact['transaction_costs'] == pytest.approx(0.001 * 40000.0)


# ============================================================================
# Triggers
# ============================================================================

def test_never_trigger():
    assert not Never().should_rebalance(date(2024, 1, 1))


def test_periodic_trigger():
    trigger = Periodic(period_days=30)
    assert trigger.should_rebalance(date(2024, 1, 1))

    trigger.record_rebalance(date(2024, 1, 1))
    assert not trigger.should_rebalance(date(2024, 1, 30))
    assert trigger.should_rebalance(date(2024, 1, 31))

    with pytest.raises(ValueError):
        Periodic(period_days=0)


def test_drift_trigger():
    trigger = Drift(drift_threshold=0.05)
    target = {'Equities': 0.6, 'Bonds': 0.4}

    assert trigger.should_rebalance(date(2024, 1, 1), {'Equities': 0.67, 'Bonds': 0.33}, target)
    assert not trigger.should_rebalance(date(2024, 1, 1), {'Equities': 0.62, 'Bonds': 0.38}, target)
    assert not trigger.should_rebalance(date(2024, 1, 1))
    assert trigger.name == 'drift_5pct'
