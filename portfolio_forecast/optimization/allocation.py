#!/usr/bin/env python3
"""
Asset-class allocation optimizer.

Tilts a strategic Equities/Bonds/Cash mix toward the investor's risk
tolerance and away from classes whose expected return does not cover the
portfolio's current risk, then plans the class-level trades.
"""

import itertools
import logging
from typing import Dict, Optional

from ..engine.portfolio import Portfolio, require_portfolio
from ..schemas.profiles import RiskProfile
from .plan import OptimizationPlan, build_actions, normalize_allocation

ASSET_CLASSES = ['Equities', 'Bonds', 'Cash']
DEFAULT_ALLOCATION = {'Equities': 0.6, 'Bonds': 0.3, 'Cash': 0.1}
RISK_FACTORS = {'Equities': 1.2, 'Bonds': 0.8, 'Cash': 0.2}
EXPECTED_RETURNS = {'Equities': 0.08, 'Bonds': 0.04, 'Cash': 0.01}
VOLATILITIES = {'Equities': 0.15, 'Bonds': 0.05, 'Cash': 0.01}


class AssetAllocationOptimizer:
    """
    Rule-based strategic allocation across asset classes.

    Parameters:
    -----------
    rebalance_threshold : float
        Minimum |weight change| that produces an action (default 0.01)
    risk_free_rate : float
        Used for the plan's Sharpe ratio
    target_return : float
        Minimum acceptable return used for the plan's Sortino ratio
    """

    def __init__(self, rebalance_threshold: float = 0.01,
                 risk_free_rate: float = 0.02,
                 target_return: float = 0.03,
                 default_allocation: Optional[Dict[str, float]] = None):
        self.rebalance_threshold = rebalance_threshold
        self.risk_free_rate = risk_free_rate
        self.target_return = target_return
        self.default_allocation = dict(default_allocation or DEFAULT_ALLOCATION)
        unknown = set(self.default_allocation) - set(ASSET_CLASSES)
        if unknown:
            raise ValueError(f"Unknown asset classes: {sorted(unknown)}")

    def optimize(self, portfolio: Portfolio,
                 risk_profile: Optional[RiskProfile] = None) -> OptimizationPlan:
        """
        Optimal class weights and the actions to reach them.

        Returns:
        --------
        OptimizationPlan keyed by asset class, with expected_return,
        volatility, sharpe_ratio, sortino_ratio, total_risk, market_risk and
        correlation_risk in its metrics
        """
        portfolio = require_portfolio(portfolio)
        risk_profile = risk_profile or RiskProfile()
        current = portfolio.get_asset_class_weights()
        current_risk = self.total_risk(current)

        target = self.calculate_optimal_allocation(risk_profile.tolerance_fraction, current_risk)
        actions = build_actions(current, target, self.rebalance_threshold, portfolio.total_value)

        metrics = self.performance_metrics(target)
        metrics['current_total_risk'] = current_risk
        logging.info(f"AssetAllocationOptimizer: {len(actions)} actions, "
                     f"target {', '.join(f'{k}={v:.1%}' for k, v in target.items())}")
        return OptimizationPlan(target_allocation=target, actions=actions,
                                threshold=self.rebalance_threshold, metrics=metrics)

    def calculate_optimal_allocation(self, tolerance: float, current_risk: float) -> Dict[str, float]:
        """base * (1 + (tolerance - risk factor) * 0.1) * (1 + (expected return - current risk) * 0.1), normalized."""
        raw = {}
        for asset_class, base in self.default_allocation.items():
            raw[asset_class] = (base
                                * (1 + (tolerance - RISK_FACTORS[asset_class]) * 0.1)
                                * (1 + (EXPECTED_RETURNS[asset_class] - current_risk) * 0.1))
        return normalize_allocation(raw)

    # =========================================================================
    # PLAN METRICS
    # =========================================================================

    @staticmethod
    def total_risk(allocation: Dict[str, float]) -> float:
        return sum(w * RISK_FACTORS.get(c, 0.0) for c, w in allocation.items())

    @staticmethod
    def class_correlation(first: str, second: str) -> float:
        r1, r2 = RISK_FACTORS[first], RISK_FACTORS[second]
        return 1 - abs(r1 - r2) / (r1 + r2)

    def performance_metrics(self, allocation: Dict[str, float]) -> Dict[str, float]:
        expected = sum(w * EXPECTED_RETURNS[c] for c, w in allocation.items())
        volatility = sum(w * VOLATILITIES[c] * RISK_FACTORS[c] for c, w in allocation.items())
        pairs = list(itertools.combinations(allocation, 2))
        correlation = (sum(self.class_correlation(a, b) for a, b in pairs) / len(pairs)) if pairs else 0.0
        return {
            'expected_return': expected,
            'volatility': volatility,
            'sharpe_ratio': (expected - self.risk_free_rate) / volatility if volatility > 0 else 0.0,
            'sortino_ratio': (expected - self.target_return) / volatility if volatility > 0 else 0.0,
            'total_risk': self.total_risk(allocation),
            'market_risk': volatility,
            'correlation_risk': correlation,
        }
