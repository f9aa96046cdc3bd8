#!/usr/bin/env python3
"""
Ensemble weight calculation.

Turns per-model quality metrics and the current market regime into a weight
per model. Every strategy returns weights that sum to 1.
"""

import logging
from typing import Dict, List, Optional, Union

from ..models.base import PredictionPerformanceMetrics
from ..schemas.profiles import ModelType, WeightingStrategy

DEFAULT_BASE_WEIGHTS = {
    ModelType.LEARNED_REGRESSION: 0.4,
    ModelType.STATISTICAL: 0.3,
    ModelType.TREND_FOLLOWING: 0.3,
}

HIGH_VOLATILITY = 0.2
LOW_VOLATILITY = 0.1
STRONG_TREND = 0.1


class ModelWeightCalculator:
    """
    Computes ensemble weights under a selectable strategy.

    Parameters:
    -----------
    base_weights : Dict[ModelType or str, float], optional
        Starting weights for the market-condition strategy
    """

    def __init__(self, base_weights: Optional[Dict[Union[ModelType, str], float]] = None):
        if base_weights:
            self.base_weights = {ModelType(k): float(v) for k, v in base_weights.items()}
        else:
            self.base_weights = dict(DEFAULT_BASE_WEIGHTS)

        self.weighting_methods = {
            WeightingStrategy.EQUAL: self._equal_weights,
            WeightingStrategy.PERFORMANCE_BASED: self._performance_weights,
            WeightingStrategy.CONFIDENCE_BASED: self._confidence_weights,
            WeightingStrategy.MARKET_CONDITION_BASED: self._market_condition_weights,
            WeightingStrategy.VOLATILITY_BASED: self._volatility_weights,
        }

    def get_available_strategies(self) -> List[str]:
        return [s.value for s in self.weighting_methods]

    def calculate_weights(self,
                          strategy: Union[WeightingStrategy, str],
                          metrics: Dict[ModelType, PredictionPerformanceMetrics],
                          economic_context: Optional[Dict[str, float]] = None) -> Dict[ModelType, float]:
        """
        Weight per model under `strategy`.

        Parameters:
        -----------
        strategy : WeightingStrategy or str
            Weighting rule to apply
        metrics : Dict[ModelType, PredictionPerformanceMetrics]
            Current metrics of every participating model
        economic_context : Dict[str, float], optional
            Regime indicators; 'volatility' and 'trend_strength' are read

        Returns:
        --------
        Dict[ModelType, float] summing to 1.0. A zero total falls back to equal weights.
        """
        if not metrics:
            return {}
        try:
            strategy = WeightingStrategy(strategy)
        except ValueError:
            raise ValueError(f"Unknown weighting strategy '{strategy}'. "
                             f"Available: {self.get_available_strategies()}")

        raw = self.weighting_methods[strategy](metrics, economic_context or {})
        weights = self._normalize(raw)
        if weights is None:
            logging.warning(f"{strategy.value} weights sum to zero, falling back to equal weights")
            weights = self._normalize(self._equal_weights(metrics, {}))

        logging.debug(f"Ensemble weights ({strategy.value}): "
                      f"{ {k.value: round(v, 4) for k, v in weights.items()} }")
        return weights

    @staticmethod
    def _normalize(raw: Dict[ModelType, float]) -> Optional[Dict[ModelType, float]]:
        total = sum(raw.values())
        if total <= 0:
            return None
        return {k: v / total for k, v in raw.items()}

    # =========================================================================
    # STRATEGIES
    # =========================================================================

    def _equal_weights(self, metrics, context):
        return {model_type: 1.0 for model_type in metrics}

    def _performance_weights(self, metrics, context):
        return {model_type: max(m.f1_score, 0.0) for model_type, m in metrics.items()}

    def _confidence_weights(self, metrics, context):
        return {model_type: max(m.confidence, 0.0) for model_type, m in metrics.items()}

    def _market_condition_weights(self, metrics, context):
        volatility = context.get('volatility', 0.0)
        trend = context.get('trend_strength', 0.0)
        weights = {}
        for model_type in metrics:
            weight = self.base_weights.get(model_type, 0.0)
            if volatility > HIGH_VOLATILITY:
                if model_type == ModelType.LEARNED_REGRESSION:
                    weight *= 0.8
                elif model_type == ModelType.STATISTICAL:
                    weight *= 1.2
            if trend > STRONG_TREND and model_type == ModelType.TREND_FOLLOWING:
                weight *= 1.2
            weights[model_type] = weight
        return weights

    def _volatility_weights(self, metrics, context):
        volatility = context.get('volatility', 0.0)
        weights = {}
        for model_type in metrics:
            weight = self.base_weights.get(model_type, 0.0)
            if volatility < LOW_VOLATILITY:
                if model_type == ModelType.TREND_FOLLOWING:
                    weight *= 1.2
                elif model_type == ModelType.STATISTICAL:
                    weight *= 0.9
            elif volatility > HIGH_VOLATILITY:
                if model_type == ModelType.STATISTICAL:
                    weight *= 1.2
                elif model_type == ModelType.TREND_FOLLOWING:
                    weight *= 0.8
            weights[model_type] = weight
        return weights
