# Portfolio Forecasting, Optimization and Backtesting Package
"""
Ensemble return forecasting, portfolio optimization and day-by-day backtesting.

Subpackages:
- models: Statistical, TrendFollowing and LearnedRegression prediction models
- ensemble: model weighting and the ensemble predictor
- monitoring: model performance monitor
- optimization: risk, allocation, risk-adjusted, tax, cost and diversification optimizers
- rebalancing: rebalancing policies, engine and timing triggers
- metrics: performance and risk metrics
- engine: portfolio state, data providers and the backtesting framework
- visualization: matplotlib charts of backtest results
- config, schemas: engine configuration and investor profiles

Usage:
    from portfolio_forecast import EnsemblePredictor, BacktestingFramework
    from portfolio_forecast.optimization import RiskOptimizer
    from portfolio_forecast.visualization import plot_backtest_dashboard
"""

__version__ = "0.1.0"

from .exceptions import (
    PortfolioForecastError,
    ValidationError,
    MissingPortfolioError,
    EmptySymbolError,
    LengthMismatchError,
    InsufficientHistoryError,
    ModelNotTrainedError,
    TrainingError,
    OperationCancelledError,
)
from .cancellation import CancellationToken
from .config import EngineConfig, load_engine_config
from .schemas import (
    ModelType,
    WeightingStrategy,
    RebalancingStrategyType,
    RiskProfile,
    TaxProfile,
    TransactionCostProfile,
)
from .engine import Portfolio, Position, Transaction, TransactionType
from .models import create_model, create_default_models
from .ensemble import EnsemblePredictor, ModelWeightCalculator
from .monitoring import ModelPerformanceMonitor
from .optimization import (
    RiskOptimizer,
    AssetAllocationOptimizer,
    RiskAdjustedReturnOptimizer,
    TaxOptimizer,
    TransactionCostOptimizer,
    DiversificationAnalyzer,
)
from .rebalancing import RebalancingEngine, create_policy
# Last: the backtest depends on every package above
from .engine.backtest import BacktestingFramework, BacktestScenario, BacktestResult, BacktestStatus

__all__ = [
    # Errors
    'PortfolioForecastError',
    'ValidationError',
    'MissingPortfolioError',
    'EmptySymbolError',
    'LengthMismatchError',
    'InsufficientHistoryError',
    'ModelNotTrainedError',
    'TrainingError',
    'OperationCancelledError',
    'CancellationToken',
    # Configuration
    'EngineConfig',
    'load_engine_config',
    'ModelType',
    'WeightingStrategy',
    'RebalancingStrategyType',
    'RiskProfile',
    'TaxProfile',
    'TransactionCostProfile',
    # Portfolio state
    'Portfolio',
    'Position',
    'Transaction',
    'TransactionType',
    # Forecasting
    'create_model',
    'create_default_models',
    'EnsemblePredictor',
    'ModelWeightCalculator',
    'ModelPerformanceMonitor',
    # Optimization and rebalancing
    'RiskOptimizer',
    'AssetAllocationOptimizer',
    'RiskAdjustedReturnOptimizer',
    'TaxOptimizer',
    'TransactionCostOptimizer',
    'DiversificationAnalyzer',
    'RebalancingEngine',
    'create_policy',
    # Backtesting
    'BacktestingFramework',
    'BacktestScenario',
    'BacktestResult',
    'BacktestStatus',
]
