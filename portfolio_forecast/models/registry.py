#!/usr/bin/env python3
"""
Model registry: ModelType -> PredictionModel class.
"""

from typing import Dict, Optional, Type, Union

from ..config.system_config import EngineConfig
from ..schemas.profiles import ModelType
from .base import PredictionModel
from .learned import LearnedRegressionModel
from .statistical import StatisticalModel
from .trend import TrendFollowingModel

MODEL_REGISTRY: Dict[ModelType, Type[PredictionModel]] = {
    ModelType.STATISTICAL: StatisticalModel,
    ModelType.TREND_FOLLOWING: TrendFollowingModel,
    ModelType.LEARNED_REGRESSION: LearnedRegressionModel,
}


def create_model(model_type: Union[ModelType, str], **kwargs) -> PredictionModel:
    """
    Instantiate a model variant by type.

    Raises ValueError for a type outside the registry.
    """
    try:
        model_type = ModelType(model_type)
    except ValueError:
        raise ValueError(f"Unknown model type '{model_type}'. "
                         f"Available: {[t.value for t in MODEL_REGISTRY]}")
    return MODEL_REGISTRY[model_type](**kwargs)


def create_default_models(config: Optional[EngineConfig] = None) -> Dict[ModelType, PredictionModel]:
    """One instance of every variant, parameterized from the engine configuration."""
    config = config or EngineConfig()
    return {
        ModelType.STATISTICAL: StatisticalModel(
            market_return_assumption=config.market_return_assumption),
        ModelType.TREND_FOLLOWING: TrendFollowingModel(periods=config.trend_periods),
        ModelType.LEARNED_REGRESSION: LearnedRegressionModel(
            lookback=config.learned_lookback,
            indicator_names=config.learned_indicators,
            ridge_alpha=config.ridge_alpha),
    }
