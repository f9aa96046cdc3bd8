#!/usr/bin/env python3
"""
Rebalancing Strategies Module.

Defines WHAT trades a rebalance makes: each policy turns a target asset-class
allocation into a RebalancingPlan, differing only in how the drift threshold
is derived from the portfolio's state. WHEN the engine runs is decided by the
triggers in triggers.py.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Union

import numpy as np

from ..config.system_config import EngineConfig
from ..engine.portfolio import Portfolio, require_portfolio
from ..models.base import MarketPrediction
from ..optimization.plan import Action, ActionSide, RebalancingPlan, build_actions, normalize_allocation
from ..schemas.profiles import RebalancingStrategyType, RiskProfile

# Per-unit-notional impact rates of an executed action
ACTION_IMPACT_RATE = 0.001
TRANSACTION_COST_RATE = 0.001
MARKET_IMPACT_RATE = 0.0005
VOLATILITY_IMPACT_RATE = 0.0002
RISK_IMPACT_RATE = 0.0003


class RebalancingPolicy(ABC):
    """
    Abstract base class for rebalancing policies.

    Subclasses only decide the drift threshold; action generation and
    amount clamping are shared.
    """

    strategy_type: RebalancingStrategyType = None

    def __init__(self,
                 threshold: float = 0.05,
                 min_amount: float = 1000.0,
                 max_amount: float = 100000.0):
        """
        Initialize rebalancing policy.

        Parameters:
        -----------
        threshold : float
            Base drift threshold (weight fraction)
        min_amount, max_amount : float
            Bounds applied to every action's notional
        """
        if threshold < 0:
            raise ValueError(f"threshold must be >= 0, got {threshold}")
        if min_amount > max_amount:
            raise ValueError(f"min_amount ({min_amount}) exceeds max_amount ({max_amount})")
        self.threshold = threshold
        self.min_amount = min_amount
        self.max_amount = max_amount
        logging.info(f"Initialized {self.__class__.__name__} with threshold {threshold:.2%}")

    @abstractmethod
    def effective_threshold(self, portfolio: Portfolio) -> float:
        """Drift threshold applied to `portfolio`."""
        pass

    def rebalance_amount(self, portfolio_value: float, weight_delta: float) -> float:
        """value * |delta| clamped to [min_amount, max_amount]."""
        amount = portfolio_value * abs(weight_delta)
        return float(np.clip(amount, self.min_amount, self.max_amount))

    def generate_actions(self, portfolio: Portfolio,
                         current_allocation: Dict[str, float],
                         target_allocation: Dict[str, float]) -> List[Action]:
        value = portfolio.total_value
        return build_actions(
            current_allocation, target_allocation,
            threshold=self.effective_threshold(portfolio),
            portfolio_value=value,
            amount_fn=lambda asset, delta: self.rebalance_amount(value, delta),
            impact_fn=lambda asset, delta, amount: action_impact(delta, amount),
        )


class TimeBasedPolicy(RebalancingPolicy):
    """Fixed small threshold; meant to run on a calendar cadence."""

    strategy_type = RebalancingStrategyType.TIME_BASED

    def __init__(self, threshold: float = 0.01, period_days: int = 30, **kwargs):
        super().__init__(threshold=threshold, **kwargs)
        self.period_days = period_days

    def effective_threshold(self, portfolio: Portfolio) -> float:
        return self.threshold


class ThresholdBasedPolicy(RebalancingPolicy):
    strategy_type = RebalancingStrategyType.THRESHOLD_BASED

    def effective_threshold(self, portfolio: Portfolio) -> float:
        return self.threshold


class MarketConditionBasedPolicy(RebalancingPolicy):
    """Threshold widened by portfolio volatility: threshold * (1 + vol * 0.1)."""

    strategy_type = RebalancingStrategyType.MARKET_CONDITION_BASED

    def effective_threshold(self, portfolio: Portfolio) -> float:
        return self.threshold * (1 + portfolio.volatility * 0.1)


class VolatilityBasedPolicy(MarketConditionBasedPolicy):
    strategy_type = RebalancingStrategyType.VOLATILITY_BASED


class RiskBasedPolicy(RebalancingPolicy):
    """Threshold widened by portfolio risk level: threshold * (1 + risk * 0.1)."""

    strategy_type = RebalancingStrategyType.RISK_BASED

    def effective_threshold(self, portfolio: Portfolio) -> float:
        return self.threshold * (1 + portfolio.risk_level * 0.1)


POLICY_REGISTRY = {
    RebalancingStrategyType.TIME_BASED: TimeBasedPolicy,
    RebalancingStrategyType.THRESHOLD_BASED: ThresholdBasedPolicy,
    RebalancingStrategyType.MARKET_CONDITION_BASED: MarketConditionBasedPolicy,
    RebalancingStrategyType.VOLATILITY_BASED: VolatilityBasedPolicy,
    RebalancingStrategyType.RISK_BASED: RiskBasedPolicy,
}


def create_policy(strategy: Union[RebalancingStrategyType, str],
                  config: Optional[EngineConfig] = None) -> RebalancingPolicy:
    """
    Build the policy for `strategy` with thresholds and amount bounds from `config`.

    Raises ValueError for an unknown strategy name.
    """
    config = config or EngineConfig()
    strategy = RebalancingStrategyType(strategy)
    bounds = dict(min_amount=config.min_transaction_amount, max_amount=config.max_transaction_amount)
    if strategy == RebalancingStrategyType.TIME_BASED:
        return TimeBasedPolicy(threshold=config.time_based_threshold,
                               period_days=config.time_period_days, **bounds)
    return POLICY_REGISTRY[strategy](threshold=config.rebalance_threshold, **bounds)


def action_impact(weight_delta: float, amount: float) -> float:
    """Signed action impact: +0.1% of notional for buys, -0.1% for sells."""
    return amount * (ACTION_IMPACT_RATE if weight_delta > 0 else -ACTION_IMPACT_RATE)


def calculate_performance_impact(actions: List[Action]) -> Dict[str, float]:
    """
    Estimated effect of executing `actions`, in currency units.

    Directional components are positive for buys and negative for sells;
    transaction costs are always positive.
    """
    impact = {'total_impact': 0.0, 'transaction_costs': 0.0, 'market_impact': 0.0,
              'volatility_impact': 0.0, 'risk_impact': 0.0}
    for action in actions:
        sign = 1.0 if action.side == ActionSide.BUY else -1.0
        impact['total_impact'] += sign * ACTION_IMPACT_RATE * action.amount
        impact['transaction_costs'] += TRANSACTION_COST_RATE * action.amount
        impact['market_impact'] += sign * MARKET_IMPACT_RATE * action.amount
        impact['volatility_impact'] += sign * VOLATILITY_IMPACT_RATE * action.amount
        impact['risk_impact'] += sign * RISK_IMPACT_RATE * action.amount
    return impact


class RebalancingEngine:
    """
    Turns a market forecast and a risk profile into a rebalancing plan.

    The target is an Equities/Bonds/Cash split driven by risk tolerance and
    forecast market volatility; the chosen policy decides which drifts to trade.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self._policies: Dict[RebalancingStrategyType, RebalancingPolicy] = {}

    def get_policy(self, strategy: Union[RebalancingStrategyType, str]) -> RebalancingPolicy:
        strategy = RebalancingStrategyType(strategy)
        if strategy not in self._policies:
            self._policies[strategy] = create_policy(strategy, self.config)
        return self._policies[strategy]

    @staticmethod
    def calculate_target_allocation(risk_profile: RiskProfile, market_volatility: float) -> Dict[str, float]:
        """
        Equities/Bonds/Cash target for a risk profile.

        equity = clamp(tol * (1 + mvol * 0.1), 0.1, 0.9)
        bond   = clamp((1 - tol) * (1 - mvol * 0.1), 0.1, 0.8)
        cash   = max(0, 1 - equity - bond), then normalized
        """
        tolerance = risk_profile.tolerance_fraction
        equity = float(np.clip(tolerance * (1 + market_volatility * 0.1), 0.1, 0.9))
        bond = float(np.clip((1 - tolerance) * (1 - market_volatility * 0.1), 0.1, 0.8))
        cash = max(0.0, 1 - equity - bond)
        return normalize_allocation({'Equities': equity, 'Bonds': bond, 'Cash': cash})

    def generate_plan(self,
                      portfolio: Portfolio,
                      market_prediction: MarketPrediction,
                      risk_profile: RiskProfile,
                      strategy: Union[RebalancingStrategyType, str] = RebalancingStrategyType.THRESHOLD_BASED,
                      target_allocation: Optional[Dict[str, float]] = None) -> RebalancingPlan:
        """
        Generate a rebalancing plan for the portfolio's asset classes.

        Parameters:
        -----------
        portfolio : Portfolio
        market_prediction : MarketPrediction
            Its volatility shapes the target split
        risk_profile : RiskProfile
        strategy : RebalancingStrategyType
            Policy deciding the drift threshold
        target_allocation : Dict[str, float], optional
            Overrides the risk-profile target

        Returns:
        --------
        RebalancingPlan with metrics holding the performance impact
        """
        portfolio = require_portfolio(portfolio)
        policy = self.get_policy(strategy)

        if target_allocation is None:
            target_allocation = self.calculate_target_allocation(risk_profile, market_prediction.volatility)
        else:
            target_allocation = normalize_allocation(target_allocation)

        current_allocation = portfolio.get_asset_class_weights()
        actions = policy.generate_actions(portfolio, current_allocation, target_allocation)

        plan = RebalancingPlan(
            target_allocation=target_allocation,
            actions=actions,
            threshold=policy.effective_threshold(portfolio),
            metrics=calculate_performance_impact(actions),
            strategy=policy.strategy_type,
            portfolio_value=portfolio.total_value,
        )
        logging.info(f"RebalancingEngine: {policy.strategy_type.value} plan with {len(actions)} actions, "
                     f"notional {plan.total_amount:,.2f}")
        return plan
