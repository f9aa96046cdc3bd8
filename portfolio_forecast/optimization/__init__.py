# Portfolio optimization package
"""
Optimizers that turn forecasts and investor profiles into target allocations.

Modules:
- plan: OptimizationPlan, RebalancingPlan, Action, normalize_allocation
- risk: RiskOptimizer (current vs. target risk, recommendations)
- allocation: AssetAllocationOptimizer (risk-tolerance driven class weights)
- risk_adjusted: RiskAdjustedReturnOptimizer (bounded repair loop, cvxpy LP)
- tax: TaxOptimizer (holding-period aware, tax impact of sells)
- costs: TransactionCostOptimizer (fees, slippage, market impact)
- diversification: DiversificationAnalyzer (entropy, correlation, concentration)
"""

from .plan import (
    ActionSide,
    Action,
    OptimizationPlan,
    RebalancingPlan,
    normalize_allocation,
    build_actions,
)
from .risk import (
    RiskMetrics,
    RiskRecommendation,
    RiskOptimizationResult,
    RiskOptimizer,
    pairwise_correlations,
)
from .allocation import (
    ASSET_CLASSES,
    DEFAULT_ALLOCATION,
    RISK_FACTORS,
    AssetAllocationOptimizer,
)
from .risk_adjusted import RiskAdjustedReturnOptimizer
from .tax import TaxOptimizer
from .costs import CostEstimate, TransactionCostOptimizer
from .diversification import DiversificationResult, DiversificationAnalyzer

__all__ = [
    # Plans
    'ActionSide',
    'Action',
    'OptimizationPlan',
    'RebalancingPlan',
    'normalize_allocation',
    'build_actions',
    # Risk
    'RiskMetrics',
    'RiskRecommendation',
    'RiskOptimizationResult',
    'RiskOptimizer',
    'pairwise_correlations',
    # Allocation
    'ASSET_CLASSES',
    'DEFAULT_ALLOCATION',
    'RISK_FACTORS',
    'AssetAllocationOptimizer',
    'RiskAdjustedReturnOptimizer',
    # Tax and costs
    'TaxOptimizer',
    'CostEstimate',
    'TransactionCostOptimizer',
    # Diversification
    'DiversificationResult',
    'DiversificationAnalyzer',
]
