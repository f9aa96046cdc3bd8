# Rebalancing package
"""
Rebalancing policies and timing.

Modules:
- strategy: RebalancingPolicy variants, create_policy, RebalancingEngine
- triggers: Never, Periodic, Drift (when the engine is invoked)
"""

from .strategy import (
    RebalancingPolicy,
    TimeBasedPolicy,
    ThresholdBasedPolicy,
    MarketConditionBasedPolicy,
    VolatilityBasedPolicy,
    RiskBasedPolicy,
    POLICY_REGISTRY,
    create_policy,
    calculate_performance_impact,
    RebalancingEngine,
)
from .triggers import RebalancingTrigger, Never, Periodic, Drift

__all__ = [
    'RebalancingPolicy',
    'TimeBasedPolicy',
    'ThresholdBasedPolicy',
    'MarketConditionBasedPolicy',
    'VolatilityBasedPolicy',
    'RiskBasedPolicy',
    'POLICY_REGISTRY',
    'create_policy',
    'calculate_performance_impact',
    'RebalancingEngine',
    'RebalancingTrigger',
    'Never',
    'Periodic',
    'Drift',
]
