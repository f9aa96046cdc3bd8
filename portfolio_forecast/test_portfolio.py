#!/usr/bin/env python3
"""
Smoke test script for portfolio state, ensemble forecasts and rebalancing plans.

Run directly to print a walkthrough:
    python -m portfolio_forecast.test_portfolio
"""

import logging
from datetime import datetime

import numpy as np

from portfolio_forecast import (
    EnsemblePredictor, Portfolio, RebalancingEngine, RebalancingStrategyType,
    RiskProfile, Transaction, TransactionType
)

# Set up logging
logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')


def create_sample_prices(n: int = 120, start: float = 100.0, drift: float = 0.15):
    """Deterministic trending price path with a weekly cycle."""
    t = np.arange(n)
    return list(start + drift * t + 2.5 * np.sin(t / 5.0))


def create_sample_portfolio():
    """Cash portfolio that buys one equity and one bond fund."""
    portfolio = Portfolio(cash=50000.0, name='smoke', portfolio_id='smoke')
    portfolio.apply_transaction(Transaction(TransactionType.BUY, 'TECH_GROWTH.US', 200, 100.0,
                                            timestamp=datetime(2024, 1, 2)))
    portfolio.apply_transaction(Transaction(TransactionType.BUY, 'AGG.BOND', 150, 100.0, fee=5.0,
                                            timestamp=datetime(2024, 1, 2)))
    portfolio.positions['TECH_GROWTH.US'].price_history = create_sample_prices()
    portfolio.positions['AGG.BOND'].price_history = create_sample_prices(drift=0.01)
    portfolio.update_prices({'TECH_GROWTH.US': 118.0, 'AGG.BOND': 101.0})
    return portfolio


def test_portfolio_state():
    """Transactions, weights and value history."""
    print("\n" + "=" * 50)
    print("TESTING PORTFOLIO STATE")
    print("=" * 50)

    portfolio = create_sample_portfolio()
    print(portfolio)
    print(f"Weights: { {k: round(v, 3) for k, v in portfolio.get_weights().items()} }")
    print(f"Asset classes: { {k: round(v, 3) for k, v in portfolio.get_asset_class_weights().items()} }")

    for day, price in enumerate([118.0, 119.5, 117.2, 120.8], start=3):
        portfolio.update_prices({'TECH_GROWTH.US': price})
        portfolio.record_value(datetime(2024, 1, day))
    print("\nSummary statistics:")
    print(portfolio.get_summary_statistics().to_string())

    assert portfolio.cash == 50000.0 - 20000.0 - 15005.0
    assert len(portfolio.transactions) == 2
    print("✓ Portfolio state OK")


def test_ensemble_forecast():
    """Full ensemble pipeline on the sample portfolio."""
    print("\n" + "=" * 50)
    print("TESTING ENSEMBLE FORECAST")
    print("=" * 50)

    portfolio = create_sample_portfolio()
    predictor = EnsemblePredictor()
    prediction = predictor.predict(create_sample_prices(start=4000.0, drift=1.5), portfolio,
                                   {'inflation': 0.03, 'interest_rate': 0.045}, horizon=5)

    print(f"Expected return: {prediction.expected_return:.4%} ({prediction.direction.value})")
    print(f"Confidence: {prediction.confidence:.2f}, risk level {prediction.risk_level:.2f}")
    print(f"Component weights: {prediction.component_weights}")
    for symbol, security in prediction.securities.items():
        print(f"  {symbol}: {security.recommendation.value} ({security.expected_return:.4%})")

    assert 0.0 <= prediction.confidence <= 1.0
    assert set(prediction.securities) == {'TECH_GROWTH.US', 'AGG.BOND'}
    print("✓ Ensemble forecast OK")


def test_rebalancing_plan():
    """Plans from each rebalancing policy for a moderate investor."""
    print("\n" + "=" * 50)
    print("TESTING REBALANCING PLANS")
    print("=" * 50)

    portfolio = create_sample_portfolio()
    market = EnsemblePredictor().predict_market(create_sample_prices(start=4000.0, drift=1.5))
    engine = RebalancingEngine()

    for strategy in RebalancingStrategyType:
        plan = engine.generate_plan(portfolio, market, RiskProfile(risk_tolerance=45), strategy)
        print(f"\n{strategy.value}: threshold {plan.threshold:.4f}, {len(plan.actions)} actions")
        for action in plan.actions:
            print(f"  {action.side.value:>4} {action.asset:<9} Δ {action.weight_delta:+.3f} "
                  f"amount {action.amount:,.0f}")
        assert abs(sum(plan.target_allocation.values()) - 1.0) < 1e-6
    print("✓ Rebalancing plans OK")


def main():
    test_portfolio_state()
    test_ensemble_forecast()
    test_rebalancing_plan()

    print("\n" + "=" * 50)
    print("ALL SMOKE TESTS PASSED")
    print("=" * 50)


if __name__ == '__main__':
    main()
