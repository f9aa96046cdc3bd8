#!/usr/bin/env python3
"""
Plan and action types shared by the optimizers and the rebalancing engine.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

import numpy as np
import pandas as pd

from ..schemas.profiles import RebalancingStrategyType


class ActionSide(Enum):
    BUY = "buy"
    SELL = "sell"


@dataclass
class Action:
    """Move one asset (class or symbol) from its current to its target weight."""
    asset: str
    side: ActionSide
    current_weight: float
    target_weight: float
    weight_delta: float
    amount: float = 0.0
    impact: float = 0.0


@dataclass
class OptimizationPlan:
    """
    Target allocation plus the actions needed to reach it.

    Every action satisfies |weight_delta| > threshold.
    """
    target_allocation: Dict[str, float]
    actions: List[Action]
    threshold: float
    status: str = 'optimal'
    metrics: Dict[str, float] = field(default_factory=dict)
    message: str = ''

    @property
    def total_amount(self) -> float:
        return float(sum(a.amount for a in self.actions))

    @property
    def total_impact(self) -> float:
        return float(sum(a.impact for a in self.actions))

    def to_frame(self) -> pd.DataFrame:
        """Actions as a DataFrame, one row per action."""
        return pd.DataFrame([{
            'asset': a.asset,
            'side': a.side.value,
            'current_weight': a.current_weight,
            'target_weight': a.target_weight,
            'weight_delta': a.weight_delta,
            'amount': a.amount,
            'impact': a.impact,
        } for a in self.actions], columns=['asset', 'side', 'current_weight', 'target_weight',
                                          'weight_delta', 'amount', 'impact'])


@dataclass
class RebalancingPlan(OptimizationPlan):
    strategy: Optional[RebalancingStrategyType] = None
    portfolio_value: float = 0.0


def normalize_allocation(raw: Dict[str, float]) -> Dict[str, float]:
    """Clamp every weight to [0, 1] and rescale to sum to 1; all-zero input gives equal weights."""
    if not raw:
        return {}
    clamped = {k: float(np.clip(v, 0.0, 1.0)) for k, v in raw.items()}
    total = sum(clamped.values())
    if total <= 0:
        return {k: 1.0 / len(clamped) for k in clamped}
    return {k: v / total for k, v in clamped.items()}


def build_actions(current: Dict[str, float],
                  target: Dict[str, float],
                  threshold: float,
                  portfolio_value: float = 0.0,
                  amount_fn: Optional[Callable[[str, float], float]] = None,
                  impact_fn: Optional[Callable[[str, float, float], float]] = None) -> List[Action]:
    """
    One action per asset whose |target - current| exceeds `threshold`.

    Parameters:
    -----------
    current, target : Dict[str, float]
        Weights; assets missing from one side count as 0
    threshold : float
        Strict lower bound on |delta| for an action
    portfolio_value : float
        Notional used for the default amount |delta| * value
    amount_fn : callable(asset, delta) -> amount, optional
    impact_fn : callable(asset, delta, amount) -> impact, optional

    Returns:
    --------
    Actions ordered by asset name
    """
    actions = []
    for asset in sorted(set(current) | set(target)):
        current_weight = current.get(asset, 0.0)
        target_weight = target.get(asset, 0.0)
        delta = target_weight - current_weight
        if abs(delta) <= threshold:
            continue
        amount = amount_fn(asset, delta) if amount_fn else abs(delta) * portfolio_value
        impact = impact_fn(asset, delta, amount) if impact_fn else 0.0
        actions.append(Action(
            asset=asset,
            side=ActionSide.BUY if delta > 0 else ActionSide.SELL,
            current_weight=current_weight,
            target_weight=target_weight,
            weight_delta=delta,
            amount=float(amount),
            impact=float(impact),
        ))
    return actions
