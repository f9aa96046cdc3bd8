# Prediction models package
"""
Prediction model variants behind a single interface.

Modules:
- base: PredictionModel interface, forecast result types, validation helpers
- features: moving averages, RSI, technical indicator bundles
- statistical: moment-based forecaster
- trend: moving-average trend forecaster
- learned: trainable regression forecaster
- registry: ModelType -> model class factory
"""

from .base import (
    Direction,
    Recommendation,
    PredictionModel,
    PredictionPerformanceMetrics,
    ValidationData,
    ValidationResult,
    Prediction,
    MarketPrediction,
    SecurityPrediction,
    PortfolioPrediction,
    PredictionRecommendation,
    calculate_returns,
    directional_accuracy,
)
from .features import moving_average, calculate_rsi, technical_indicators
from .statistical import StatisticalModel
from .trend import TrendFollowingModel
from .learned import (
    TrainableEstimator,
    SklearnRegressionEstimator,
    TrainingSample,
    LearnedRegressionModel,
    regression_metrics,
)
from .registry import MODEL_REGISTRY, create_model, create_default_models

__all__ = [
    'Direction',
    'Recommendation',
    'PredictionModel',
    'PredictionPerformanceMetrics',
    'ValidationData',
    'ValidationResult',
    'Prediction',
    'MarketPrediction',
    'SecurityPrediction',
    'PortfolioPrediction',
    'PredictionRecommendation',
    'calculate_returns',
    'directional_accuracy',
    'moving_average',
    'calculate_rsi',
    'technical_indicators',
    'StatisticalModel',
    'TrendFollowingModel',
    'TrainableEstimator',
    'SklearnRegressionEstimator',
    'TrainingSample',
    'LearnedRegressionModel',
    'regression_metrics',
    'MODEL_REGISTRY',
    'create_model',
    'create_default_models',
]
