#!/usr/bin/env python3
"""
Risk-adjusted return optimizer.

Two methods:
- 'heuristic': tilted base weights followed by a bounded repair loop that
  shifts weight from the largest risk contributor into the lowest-risk class
  until total risk fits under the cap.
  This is an approximation, not an efficient-frontier solution.
- 'linear_program': the exact return-maximizing class mix under the same
  risk cap, solved with cvxpy.
"""

import itertools
import logging
import numpy as np
import cvxpy as cp
from typing import Any, Dict, Optional, Sequence, Tuple

from ..config.system_config import EngineConfig
from ..engine.portfolio import Portfolio, require_portfolio
from ..models.base import MarketPrediction, SecurityPrediction
from ..schemas.profiles import RiskProfile
from .allocation import ASSET_CLASSES, EXPECTED_RETURNS, RISK_FACTORS
from .plan import OptimizationPlan, build_actions, normalize_allocation

CLASS_CORRELATIONS = {
    'Equities': {'Equities': 0.8, 'Bonds': 0.3, 'Cash': 0.1},
    'Bonds': {'Equities': 0.3, 'Bonds': 0.6, 'Cash': 0.2},
    'Cash': {'Equities': 0.1, 'Bonds': 0.2, 'Cash': 0.4},
}


class RiskAdjustedReturnOptimizer:
    """
    Class-level allocation under a total-risk cap.

    Parameters:
    -----------
    risk_tolerance : float
        Base weight scale (default 0.1)
    min_return : float
        Return floor reported against in the plan metrics (default 0.05)
    max_risk : float
        Cap on total risk = sum(weight * risk factor) (default 0.2)
    max_iterations : int
        Bound on the repair loop (default 100)
    """

    def __init__(self, risk_tolerance: float = 0.1,
                 min_return: float = 0.05,
                 max_risk: float = 0.2,
                 max_iterations: int = 100,
                 rebalance_threshold: float = 0.01,
                 risk_free_rate: float = 0.02,
                 target_return: float = 0.03):
        if max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {max_iterations}")
        self.risk_tolerance = risk_tolerance
        self.min_return = min_return
        self.max_risk = max_risk
        self.max_iterations = max_iterations
        self.rebalance_threshold = rebalance_threshold
        self.risk_free_rate = risk_free_rate
        self.target_return = target_return

        self.optimization_methods = {
            'heuristic': self._optimize_heuristic,
            'linear_program': self._optimize_linear_program,
        }

    @classmethod
    def from_config(cls, config: EngineConfig, **kwargs) -> 'RiskAdjustedReturnOptimizer':
        """
        Build with the repair-loop bound and risk-free rate from an EngineConfig.

        Keyword arguments (max_risk, risk_tolerance, ...) are passed through.
        """
        kwargs.setdefault('max_iterations', config.max_repair_iterations)
        kwargs.setdefault('risk_free_rate', config.risk_free_rate)
        return cls(**kwargs)

    def optimize(self, portfolio: Portfolio,
                 market_prediction: MarketPrediction,
                 security_predictions: Sequence[SecurityPrediction] = (),
                 risk_profile: Optional[RiskProfile] = None,
                 method: str = 'heuristic') -> OptimizationPlan:
        """
        Target class weights and the actions to reach them.

        Parameters:
        -----------
        portfolio : Portfolio
        market_prediction : MarketPrediction
            Supplies market volatility
        security_predictions : Sequence[SecurityPrediction]
            Expected returns weighted by current holdings give the portfolio return
        risk_profile : RiskProfile, optional
        method : str
            'heuristic' or 'linear_program'

        Returns:
        --------
        OptimizationPlan; status 'failed' when the solver finds no solution
        """
        if method not in self.optimization_methods:
            raise ValueError(f"Unknown optimization method '{method}'. "
                             f"Available: {list(self.optimization_methods)}")
        portfolio = require_portfolio(portfolio)
        risk_profile = risk_profile or RiskProfile()
        current = portfolio.get_asset_class_weights()

        weights = portfolio.get_weights()
        portfolio_return = sum(weights.get(p.symbol, 0.0) * p.expected_return for p in security_predictions)

        target, info = self.optimization_methods[method](
            current, portfolio_return, market_prediction.volatility, risk_profile.tolerance_fraction)
        if target is None:
            logging.error(f"RiskAdjustedReturnOptimizer ({method}) failed: {info['message']}")
            return OptimizationPlan(target_allocation={}, actions=[], threshold=self.rebalance_threshold,
                                    status='failed', message=info['message'])

        actions = build_actions(current, target, self.rebalance_threshold, portfolio.total_value)
        metrics = self.performance_metrics(target)
        metrics.update({k: v for k, v in info.items() if k != 'message'})
        logging.info(f"RiskAdjustedReturnOptimizer ({method}): total risk {metrics['total_risk']:.4f}, "
                     f"{len(actions)} actions")
        return OptimizationPlan(target_allocation=target, actions=actions,
                                threshold=self.rebalance_threshold, metrics=metrics,
                                message=info.get('message', ''))

    # =========================================================================
    # METHODS
    # =========================================================================

    def base_weight(self, asset_class: str, portfolio_return: float, market_volatility: float) -> float:
        return (self.risk_tolerance
                * (1 + (portfolio_return - market_volatility) * 0.1)
                * (1 - (RISK_FACTORS[asset_class] - self.risk_tolerance) * 0.1))

    def _optimize_heuristic(self, current, portfolio_return, market_volatility, tolerance):
        current_risk = self.total_risk(current)
        raw = {}
        for asset_class in ASSET_CLASSES:
            raw[asset_class] = (self.base_weight(asset_class, portfolio_return, market_volatility)
                                * (1 + (tolerance - RISK_FACTORS[asset_class]) * 0.1)
                                * (1 + (EXPECTED_RETURNS[asset_class] - current_risk) * 0.1))
        allocation = normalize_allocation(raw)
        allocation, iterations, met = self.repair_risk(allocation)
        message = '' if met else f"Risk cap {self.max_risk} not reached after {iterations} iterations"
        return allocation, {'iterations': float(iterations), 'constraint_met': float(met), 'message': message}

    def repair_risk(self, allocation: Dict[str, float]) -> Tuple[Dict[str, float], int, bool]:
        """
        Shift weight into the lowest-risk class until total risk <= max_risk.

        Each step picks the held class with the largest risk contribution
        (weight * risk factor) and moves min(weight, excess / (r_i - r_min))
        of it into the lowest-risk class, which removes exactly the excess when
        that class holds enough weight. Weights keep their sum, so no
        renormalization is needed. Stops when nothing riskier than the
        lowest-risk class is held, or after max_iterations.

        Returns:
        --------
        (allocation, iterations used, whether the cap was met)
        """
        allocation = dict(allocation)
        safest = min(ASSET_CLASSES, key=lambda c: RISK_FACTORS[c])
        r_min = RISK_FACTORS[safest]
        allocation.setdefault(safest, 0.0)

        iterations = 0
        excess = self.total_risk(allocation) - self.max_risk
        while excess > 1e-12 and iterations < self.max_iterations:
            candidates = [c for c, w in allocation.items()
                          if w > 1e-12 and RISK_FACTORS.get(c, 0.0) > r_min]
            if not candidates:
                break
            heaviest = max(candidates, key=lambda c: allocation[c] * RISK_FACTORS[c])
            shift = min(allocation[heaviest], excess / (RISK_FACTORS[heaviest] - r_min))
            allocation[heaviest] -= shift
            allocation[safest] += shift
            excess = self.total_risk(allocation) - self.max_risk
            iterations += 1

        met = excess <= 1e-12
        if not met:
            logging.warning(f"Risk repair stopped after {iterations} iterations, "
                            f"excess risk {excess:.4f} ({safest} floor is {r_min})")
        return allocation, iterations, met

    def _optimize_linear_program(self, current, portfolio_return, market_volatility, tolerance):
        classes = list(ASSET_CLASSES)
        returns = np.array([EXPECTED_RETURNS[c] for c in classes])
        risks = np.array([RISK_FACTORS[c] for c in classes])

        w = cp.Variable(len(classes))
        problem = cp.Problem(cp.Maximize(returns @ w),
                             [cp.sum(w) == 1, w >= 0, risks @ w <= self.max_risk])
        problem.solve()

        if problem.status not in ['optimal', 'optimal_inaccurate']:
            return None, {'message': f"Solver status: {problem.status}"}
        if w.value is None:
            return None, {'message': "No solution found"}

        allocation = normalize_allocation({c: float(v) for c, v in zip(classes, w.value)})
        return allocation, {'iterations': 0.0, 'constraint_met': 1.0, 'message': ''}

    # =========================================================================
    # PLAN METRICS
    # =========================================================================

    @staticmethod
    def total_risk(allocation: Dict[str, float]) -> float:
        return sum(w * RISK_FACTORS.get(c, 0.0) for c, w in allocation.items())

    @staticmethod
    def downside_volatility(allocation: Dict[str, float]) -> float:
        """sqrt(sum(w * (target - r)^2)) over classes returning less than the allocation's own expected return."""
        target = sum(w * EXPECTED_RETURNS[c] for c, w in allocation.items())
        downside = sum(w * (target - EXPECTED_RETURNS[c]) ** 2
                       for c, w in allocation.items() if EXPECTED_RETURNS[c] < target)
        return float(np.sqrt(downside))

    def performance_metrics(self, allocation: Dict[str, float]) -> Dict[str, Any]:
        expected = sum(w * EXPECTED_RETURNS[c] for c, w in allocation.items())
        volatility = sum(w * RISK_FACTORS[c] * EXPECTED_RETURNS[c] for c, w in allocation.items())
        downside = self.downside_volatility(allocation)
        pairs = list(itertools.combinations(allocation, 2))
        correlation = (sum(CLASS_CORRELATIONS[a][b] for a, b in pairs) / len(pairs)) if pairs else 0.0
        return {
            'expected_return': expected,
            'volatility': volatility,
            'downside_volatility': downside,
            'sharpe_ratio': (expected - self.risk_free_rate) / volatility if volatility > 0 else 0.0,
            'sortino_ratio': (expected - self.target_return) / downside if downside > 0 else 0.0,
            'total_risk': self.total_risk(allocation),
            'market_risk': volatility,
            'correlation_risk': correlation,
            'meets_min_return': float(expected >= self.min_return),
        }
