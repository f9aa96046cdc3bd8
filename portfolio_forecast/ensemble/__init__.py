# Ensemble forecasting package
"""
Blends prediction model variants into one signal.

Modules:
- weighting: ModelWeightCalculator (equal, performance, confidence, market-condition, volatility)
- predictor: EnsemblePredictor (per-level blending, combination, combiner training, backtest)
"""

from .weighting import ModelWeightCalculator
from .predictor import (
    EnsemblePredictor,
    EnsemblePrediction,
    EnsembleTrainingSample,
    EnsembleBacktestResult,
    FEATURE_NAMES,
)

__all__ = [
    'ModelWeightCalculator',
    'EnsemblePredictor',
    'EnsemblePrediction',
    'EnsembleTrainingSample',
    'EnsembleBacktestResult',
    'FEATURE_NAMES',
]
