#!/usr/bin/env python3
"""
Ensemble weighting strategy tests.
"""

import pytest

from portfolio_forecast.ensemble import ModelWeightCalculator
from portfolio_forecast.models.base import PredictionPerformanceMetrics
from portfolio_forecast.schemas.profiles import ModelType, WeightingStrategy


def model_metrics(f1=(0.81, 0.71, 0.66), confidence=(0.9, 0.8, 0.7)):
    types = [ModelType.LEARNED_REGRESSION, ModelType.STATISTICAL, ModelType.TREND_FOLLOWING]
    return {t: PredictionPerformanceMetrics(accuracy=0.8, precision=0.8, recall=0.8,
                                            f1_score=f, confidence=c, model_type=t)
            for t, f, c in zip(types, f1, confidence)}


@pytest.mark.parametrize('strategy', list(WeightingStrategy))
def test_every_strategy_sums_to_one(strategy):
    weights = ModelWeightCalculator().calculate_weights(
        strategy, model_metrics(), {'volatility': 0.25, 'trend_strength': 0.2})
    assert sum(weights.values()) == pytest.approx(1.0)
    assert all(w >= 0 for w in weights.values())


def test_equal_weights():
    weights = ModelWeightCalculator().calculate_weights('equal', model_metrics())
    assert all(w == pytest.approx(1 / 3) for w in weights.values())


def test_performance_weights_follow_f1():
    weights = ModelWeightCalculator().calculate_weights(WeightingStrategy.PERFORMANCE_BASED, model_metrics())
    assert weights[ModelType.LEARNED_REGRESSION] == pytest.approx(0.81 / (0.81 + 0.71 + 0.66))


def test_zero_total_falls_back_to_equal():
    metrics = model_metrics(confidence=(0.0, 0.0, 0.0))
    weights = ModelWeightCalculator().calculate_weights(WeightingStrategy.CONFIDENCE_BASED, metrics)
    assert all(w == pytest.approx(1 / 3) for w in weights.values())


def test_market_condition_favours_statistical_in_high_volatility():
    calculator = ModelWeightCalculator()
    calm = calculator.calculate_weights(WeightingStrategy.MARKET_CONDITION_BASED, model_metrics(),
                                        {'volatility': 0.05})
    stressed = calculator.calculate_weights(WeightingStrategy.MARKET_CONDITION_BASED, model_metrics(),
                                            {'volatility': 0.25})

    assert calm[ModelType.LEARNED_REGRESSION] == pytest.approx(0.4)
    assert stressed[ModelType.STATISTICAL] == pytest.approx(0.36 / 0.98)
    assert stressed[ModelType.STATISTICAL] > stressed[ModelType.LEARNED_REGRESSION]


def test_volatility_strategy_favours_trend_in_calm_markets():
    weights = ModelWeightCalculator().calculate_weights(WeightingStrategy.VOLATILITY_BASED, model_metrics(),
                                                        {'volatility': 0.05})
    assert weights[ModelType.TREND_FOLLOWING] > weights[ModelType.STATISTICAL]


def test_custom_base_weights_accept_names():
    calculator = ModelWeightCalculator({'statistical': 1.0, 'trend_following': 1.0, 'learned_regression': 2.0})
    weights = calculator.calculate_weights(WeightingStrategy.MARKET_CONDITION_BASED, model_metrics())
    assert weights[ModelType.LEARNED_REGRESSION] == pytest.approx(0.5)


def test_unknown_strategy_and_empty_metrics():
    calculator = ModelWeightCalculator()
    with pytest.raises(ValueError):
        calculator.calculate_weights('momentum', model_metrics())
    assert calculator.calculate_weights(WeightingStrategy.EQUAL, {}) == {}
    assert 'volatility_based' in calculator.get_available_strategies()
