#!/usr/bin/env python3
"""
Model performance monitor tests: status thresholds, trends, retention and
concurrent updates.
"""

import threading
from datetime import datetime, timedelta

import pytest

from portfolio_forecast.models.base import PredictionPerformanceMetrics, ValidationResult
from portfolio_forecast.monitoring import ModelPerformanceMonitor, ModelStatus, Trend, classify_status
from portfolio_forecast.monitoring.monitor import relative_trend
from portfolio_forecast.schemas.profiles import ModelType

T0 = datetime(2024, 1, 1, 9, 0)


def quality(accuracy=0.85, confidence=0.9, f1=0.8):
    return PredictionPerformanceMetrics(accuracy=accuracy, precision=f1, recall=f1, f1_score=f1,
                                        confidence=confidence)


def validation(level=0.9):
    return ValidationResult(level, level, level)


# ============================================================================
# Status
# ============================================================================

def test_unknown_model_has_unknown_status():
    health = ModelPerformanceMonitor().get_model_health(ModelType.STATISTICAL)
    assert health.status == ModelStatus.UNKNOWN
    assert health.recommendations == []


def test_healthy_model():
    monitor = ModelPerformanceMonitor()
    snapshot = monitor.update_metrics(ModelType.STATISTICAL, quality(), validation(), T0)

    assert snapshot.status == ModelStatus.HEALTHY
    health = monitor.get_model_health(ModelType.STATISTICAL)
    assert health.status == ModelStatus.HEALTHY
    assert health.last_update == T0
    assert health.performance_trend == Trend.STABLE


def test_critical_model_gets_retrain_recommendation():
    monitor = ModelPerformanceMonitor()
    monitor.update_metrics(ModelType.TREND_FOLLOWING, quality(accuracy=0.5), validation(), T0)
    health = monitor.get_model_health(ModelType.TREND_FOLLOWING)

    assert health.status == ModelStatus.CRITICAL
    assert any('Retrain' in r for r in health.recommendations)


@pytest.mark.parametrize('metrics, result, expected', [
    (quality(), validation(0.9), ModelStatus.HEALTHY),
    (quality(confidence=0.75), validation(0.9), ModelStatus.WARNING),
    (quality(), ValidationResult(0.9, 0.65, 0.9), ModelStatus.WARNING),
    (quality(confidence=0.65), validation(0.9), ModelStatus.CRITICAL),
    (quality(), ValidationResult(0.9, 0.9, 0.55), ModelStatus.CRITICAL),
])
def test_status_thresholds(metrics, result, expected):
    assert classify_status(metrics, result) == expected


# ============================================================================
# Trends
# ============================================================================

def test_improving_and_deteriorating_trends():
    monitor = ModelPerformanceMonitor()
    monitor.update_metrics(ModelType.STATISTICAL, quality(accuracy=0.7, f1=0.6), validation(0.9), T0)
    monitor.update_metrics(ModelType.STATISTICAL, quality(accuracy=0.9, f1=0.8), validation(0.7),
                           T0 + timedelta(hours=1))
    health = monitor.get_model_health(ModelType.STATISTICAL)

    assert health.performance_trend == Trend.IMPROVING
    assert health.validation_trend == Trend.DETERIORATING
    assert health.confidence_trend == Trend.STABLE
    assert any('Validation accuracy is falling' in r for r in health.recommendations)


def test_zero_previous_value_is_stable():
    assert relative_trend([0.5, 0.5], [0.0, 0.4]) == Trend.STABLE
    assert relative_trend([0.5], [0.4]) == Trend.IMPROVING
    assert relative_trend([0.3], [0.4]) == Trend.DETERIORATING


# ============================================================================
# History
# ============================================================================

def test_history_is_trimmed_to_retention_window():
    monitor = ModelPerformanceMonitor(retention_hours=24)
    monitor.update_metrics(ModelType.STATISTICAL, quality(), validation(), T0)
    monitor.update_metrics(ModelType.STATISTICAL, quality(), validation(), T0 + timedelta(hours=12))
    monitor.update_metrics(ModelType.STATISTICAL, quality(), validation(), T0 + timedelta(hours=30))

    history = monitor.get_historical_metrics(ModelType.STATISTICAL)
    assert [m.timestamp for m in history] == [T0 + timedelta(hours=12), T0 + timedelta(hours=30)]


def test_history_is_a_copy():
    monitor = ModelPerformanceMonitor()
    monitor.update_metrics(ModelType.STATISTICAL, quality(), validation(), T0)
    monitor.get_historical_metrics(ModelType.STATISTICAL)[0].accuracy = 0.0
    assert monitor.get_current_metrics(ModelType.STATISTICAL).accuracy == 0.85


def test_concurrent_updates_are_all_recorded():
    monitor = ModelPerformanceMonitor(retention_hours=1000)

    def worker(offset):
        for i in range(25):
            monitor.update_metrics(ModelType.STATISTICAL, quality(), validation(),
                                   T0 + timedelta(minutes=offset * 100 + i))

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(monitor.get_historical_metrics(ModelType.STATISTICAL)) == 100
    assert set(monitor.get_all_health()) == {ModelType.STATISTICAL}


def test_invalid_retention_rejected():
    with pytest.raises(ValueError):
        ModelPerformanceMonitor(retention_hours=0)
