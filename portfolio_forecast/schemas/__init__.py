# Schemas package
"""
Configuration surface shared by optimizers, ensemble and backtester.

Modules:
- profiles: strategy enums and pydantic risk/tax/cost profiles
"""

from .profiles import (
    ModelType,
    WeightingStrategy,
    RebalancingStrategyType,
    RiskProfile,
    TaxProfile,
    TransactionCostProfile,
)

__all__ = [
    'ModelType',
    'WeightingStrategy',
    'RebalancingStrategyType',
    'RiskProfile',
    'TaxProfile',
    'TransactionCostProfile',
]
