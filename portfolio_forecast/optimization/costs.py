#!/usr/bin/env python3
"""
Transaction cost optimizer.

Prices fees, slippage and market impact per position, shades each
position's target weight by its round-trip cost, and scores the plan's cost
efficiency against the maximum acceptable cost rate.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from ..engine.classification import impact_bucket_for, instrument_category_for, liquidity_bucket_for
from ..engine.portfolio import Portfolio, require_portfolio
from ..schemas.profiles import TransactionCostProfile
from .plan import OptimizationPlan, build_actions, normalize_allocation


@dataclass
class CostEstimate:
    """Cost rates and amounts for trading one position's full value."""
    symbol: str
    category: str
    fee_rate: float
    slippage_rate: float
    impact_rate: float
    value: float

    @property
    def total_rate(self) -> float:
        return self.fee_rate + self.slippage_rate + self.impact_rate

    @property
    def total_cost(self) -> float:
        return self.value * self.total_rate


class TransactionCostOptimizer:
    """
    Cost-aware position weights.

    Parameters:
    -----------
    cost_profile : TransactionCostProfile, optional
    rebalance_threshold : float
        Minimum |weight change| that produces an action (default 0.01)
    """

    def __init__(self, cost_profile: Optional[TransactionCostProfile] = None,
                 rebalance_threshold: float = 0.01):
        self.cost_profile = cost_profile or TransactionCostProfile()
        self.rebalance_threshold = rebalance_threshold

    def estimate_cost(self, symbol: str, value: float) -> CostEstimate:
        category = instrument_category_for(symbol)
        return CostEstimate(
            symbol=symbol,
            category=category,
            fee_rate=self.cost_profile.fee_rate(category),
            slippage_rate=self.cost_profile.slippage_rate(liquidity_bucket_for(symbol)),
            impact_rate=self.cost_profile.impact_rate(impact_bucket_for(symbol)),
            value=value,
        )

    def estimate_costs(self, portfolio: Portfolio) -> Dict[str, CostEstimate]:
        """Cost estimate for every held position."""
        portfolio = require_portfolio(portfolio)
        return {s: self.estimate_cost(s, p.market_value) for s, p in portfolio.positions.items()}

    def optimize(self, portfolio: Portfolio,
                 base_allocation: Optional[Dict[str, float]] = None) -> OptimizationPlan:
        """
        Cost-adjusted position weights and the trades to reach them.

        Weights are fractions of invested value (cash excluded). The target is
        base * (1 - fee) * (1 - slippage) * (1 - impact), clamped and
        normalized; each action's impact is |delta| * value * total cost rate.

        Parameters:
        -----------
        portfolio : Portfolio
        base_allocation : Dict[str, float], optional
            Symbol weights to adjust (default: current invested weights)

        Returns:
        --------
        OptimizationPlan with total_cost, cost_rate and cost_efficiency metrics
        """
        portfolio = require_portfolio(portfolio)
        invested = portfolio.market_value
        current = {s: p.market_value / invested for s, p in portfolio.positions.items()} if invested > 0 else {}
        base = base_allocation or current
        if not base:
            return OptimizationPlan(target_allocation={}, actions=[], threshold=self.rebalance_threshold,
                                    metrics={'total_cost': 0.0, 'cost_rate': 0.0, 'cost_efficiency': 1.0})

        estimates = {s: self.estimate_cost(s, invested * w) for s, w in base.items()}
        target = normalize_allocation({
            s: w * (1 - estimates[s].fee_rate) * (1 - estimates[s].slippage_rate) * (1 - estimates[s].impact_rate)
            for s, w in base.items()
        })

        def cost_impact(symbol: str, delta: float, amount: float) -> float:
            estimate = estimates.get(symbol) or self.estimate_cost(symbol, 0.0)
            return abs(delta) * invested * estimate.total_rate

        actions = build_actions(current, target, self.rebalance_threshold, invested, impact_fn=cost_impact)
        actions = [a for a in actions if a.amount >= self.cost_profile.min_transaction_amount]

        total_cost = sum(a.impact for a in actions)
        cost_rate = total_cost / invested if invested > 0 else 0.0
        metrics = {
            'total_cost': total_cost,
            'cost_rate': cost_rate,
            'cost_efficiency': 1 - cost_rate / self.cost_profile.max_cost_rate,
            'average_cost_rate': (sum(e.total_rate * base[s] for s, e in estimates.items())
                                  / sum(base.values())) if sum(base.values()) > 0 else 0.0,
        }
        logging.info(f"TransactionCostOptimizer: {len(actions)} actions, cost {total_cost:,.2f} "
                     f"(efficiency {metrics['cost_efficiency']:.3f})")
        return OptimizationPlan(target_allocation=target, actions=actions,
                                threshold=self.rebalance_threshold, metrics=metrics)
