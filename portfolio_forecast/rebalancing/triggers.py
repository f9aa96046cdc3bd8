#!/usr/bin/env python3
"""
Timing gates for the rebalancing engine.

A trigger only answers whether today is a rebalancing day; the policy in
strategy.py decides which trades that day produces.

Each trigger decides based on:
- Time elapsed since the last rebalance (periodic)
- Weight drift from the target (drift)
"""

import logging
from abc import ABC, abstractmethod
from datetime import date
from typing import Dict, Optional

import pandas as pd


class RebalancingTrigger(ABC):
    """
    Gate consulted by a ScenarioRunner before it asks for a rebalancing plan.

    Triggers are stateful only in the last rebalance date, so each backtest
    scenario owns its own instance.
    """

    def __init__(self, name: str = "trigger"):
        self.name = name
        self.last_rebalance_date: Optional[pd.Timestamp] = None
        logging.info(f"Initialized {self.__class__.__name__}: {name}")

    @abstractmethod
    def should_rebalance(self,
                         current_date: date,
                         current_weights: Optional[Dict[str, float]] = None,
                         target_weights: Optional[Dict[str, float]] = None) -> bool:
        """
        Whether the engine runs on `current_date`.

        Parameters:
        -----------
        current_date : date
            Current simulation date
        current_weights : Dict[str, float], optional
            Current weights (drift triggers)
        target_weights : Dict[str, float], optional
            Target weights (drift triggers)

        Returns:
        --------
        bool
            True on a rebalancing day
        """
        pass

    def record_rebalance(self, rebalance_date: date) -> None:
        """Record that rebalancing was executed on `rebalance_date`."""
        self.last_rebalance_date = pd.Timestamp(rebalance_date)
        logging.debug(f"{self.name}: Recorded rebalance on {self.last_rebalance_date.date()}")


class Never(RebalancingTrigger):
    """Never rebalance (buy and hold)."""

    def __init__(self, name: str = "never"):
        super().__init__(name)

    def should_rebalance(self, current_date, current_weights=None, target_weights=None) -> bool:
        return False


class Periodic(RebalancingTrigger):
    """
    Rebalance every `period_days` calendar days.

    The first call always rebalances to establish the baseline.
    """

    def __init__(self, period_days: int = 30, name: Optional[str] = None):
        if period_days < 1:
            raise ValueError(f"period_days must be >= 1, got {period_days}")
        super().__init__(name or f"periodic_{period_days}d")
        self.period_days = period_days

    def should_rebalance(self, current_date, current_weights=None, target_weights=None) -> bool:
        if self.last_rebalance_date is None:
            return True
        days_elapsed = (pd.Timestamp(current_date) - self.last_rebalance_date).days
        return days_elapsed >= self.period_days


class Drift(RebalancingTrigger):
    """
    Rebalance when any weight drifts more than `drift_threshold` from target.

    Example: target 60% equities, current 67%, threshold 5% -> rebalance.
    """

    def __init__(self, drift_threshold: float = 0.05, name: Optional[str] = None):
        if drift_threshold < 0:
            raise ValueError(f"drift_threshold must be >= 0, got {drift_threshold}")
        super().__init__(name or f"drift_{drift_threshold * 100:.0f}pct")
        self.drift_threshold = drift_threshold

    def should_rebalance(self, current_date, current_weights=None, target_weights=None) -> bool:
        if current_weights is None or target_weights is None:
            logging.warning(f"{self.name}: Missing weights, cannot check drift")
            return False

        assets = set(current_weights) | set(target_weights)
        if not assets:
            return False
        max_drift = max(abs(current_weights.get(a, 0.0) - target_weights.get(a, 0.0)) for a in assets)
        if max_drift > self.drift_threshold:
            logging.debug(f"{self.name}: Max drift {max_drift:.1%} > threshold {self.drift_threshold:.1%}")
            return True
        return False
