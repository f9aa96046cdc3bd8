#!/usr/bin/env python3
"""
Model performance monitor.

Keeps the latest and recent historical quality metrics of every prediction
model and classifies model health. One monitor instance is created by the
caller and shared; all state is guarded by a re-entrant lock so backtest
scenarios running in parallel threads can report into it.
"""

import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, List, Optional, Sequence

from ..models.base import PredictionPerformanceMetrics, ValidationResult
from ..schemas.profiles import ModelType

# ============================================================================
# ENUMS
# ============================================================================

class ModelStatus(Enum):
    """Model health classification"""
    UNKNOWN = "unknown"
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"


class Trend(Enum):
    """Direction of change between the two latest snapshots"""
    IMPROVING = "improving"
    STABLE = "stable"
    DETERIORATING = "deteriorating"


CRITICAL_ACCURACY = 0.6
CRITICAL_CONFIDENCE = 0.7
CRITICAL_VALIDATION = 0.6
WARNING_ACCURACY = 0.7
WARNING_CONFIDENCE = 0.8
WARNING_VALIDATION = 0.7
TREND_THRESHOLD = 0.1

# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass
class ModelPerformanceMetrics:
    """Snapshot of one model's quality at one point in time"""
    model_type: ModelType
    accuracy: float
    precision: float
    recall: float
    f1_score: float
    confidence: float
    validation: ValidationResult
    timestamp: datetime
    status: ModelStatus


@dataclass
class ModelHealthStatus:
    """Health report for one model"""
    model_type: ModelType
    status: ModelStatus
    performance_trend: Trend = Trend.STABLE
    validation_trend: Trend = Trend.STABLE
    confidence_trend: Trend = Trend.STABLE
    last_update: Optional[datetime] = None
    recommendations: List[str] = field(default_factory=list)


def classify_status(metrics: PredictionPerformanceMetrics, validation: ValidationResult) -> ModelStatus:
    """Critical below 0.6/0.7/0.6, Warning below 0.7/0.8/0.7, otherwise Healthy."""
    components = validation.components()
    if (metrics.accuracy < CRITICAL_ACCURACY or metrics.confidence < CRITICAL_CONFIDENCE
            or any(c < CRITICAL_VALIDATION for c in components)):
        return ModelStatus.CRITICAL
    if (metrics.accuracy < WARNING_ACCURACY or metrics.confidence < WARNING_CONFIDENCE
            or any(c < WARNING_VALIDATION for c in components)):
        return ModelStatus.WARNING
    return ModelStatus.HEALTHY


def relative_trend(latest: Sequence[float], previous: Sequence[float],
                   threshold: float = TREND_THRESHOLD) -> Trend:
    """Mean relative change of paired values; any zero previous value gives Stable."""
    if any(p == 0 for p in previous):
        return Trend.STABLE
    changes = [(new - old) / old for new, old in zip(latest, previous)]
    average = sum(changes) / len(changes)
    if average > threshold:
        return Trend.IMPROVING
    if average < -threshold:
        return Trend.DETERIORATING
    return Trend.STABLE


class ModelPerformanceMonitor:
    """
    Thread-safe store of model quality snapshots.

    Parameters:
    -----------
    retention_hours : float
        History kept per model, measured back from the newest snapshot
    trend_threshold : float
        Relative change that counts as improving or deteriorating
    """

    def __init__(self, retention_hours: float = 24, trend_threshold: float = TREND_THRESHOLD):
        if retention_hours <= 0:
            raise ValueError(f"retention_hours must be positive, got {retention_hours}")
        self.retention = timedelta(hours=retention_hours)
        self.trend_threshold = trend_threshold
        self._lock = threading.RLock()
        self._current: Dict[ModelType, ModelPerformanceMetrics] = {}
        self._history: Dict[ModelType, List[ModelPerformanceMetrics]] = {}
        logging.info(f"ModelPerformanceMonitor initialized (retention {retention_hours}h)")

    def update_metrics(self, model_type: ModelType,
                       metrics: PredictionPerformanceMetrics,
                       validation: ValidationResult,
                       timestamp: Optional[datetime] = None) -> ModelPerformanceMetrics:
        """
        Record a snapshot and trim history older than the retention window.

        Parameters:
        -----------
        model_type : ModelType
        metrics : PredictionPerformanceMetrics
        validation : ValidationResult
        timestamp : datetime, optional
            Snapshot time (default now, UTC); backtests pass the simulated date

        Returns:
        --------
        The stored ModelPerformanceMetrics
        """
        model_type = ModelType(model_type)
        snapshot = ModelPerformanceMetrics(
            model_type=model_type,
            accuracy=metrics.accuracy,
            precision=metrics.precision,
            recall=metrics.recall,
            f1_score=metrics.f1_score,
            confidence=metrics.confidence,
            validation=validation,
            timestamp=timestamp or datetime.now(timezone.utc),
            status=classify_status(metrics, validation),
        )
        with self._lock:
            self._current[model_type] = snapshot
            history = self._history.setdefault(model_type, [])
            history.append(snapshot)
            history.sort(key=lambda m: m.timestamp)
            cutoff = history[-1].timestamp - self.retention
            self._history[model_type] = [m for m in history if m.timestamp >= cutoff]

        if snapshot.status != ModelStatus.HEALTHY:
            logging.warning(f"Model {model_type.value} status {snapshot.status.value} "
                            f"(accuracy={metrics.accuracy:.3f}, confidence={metrics.confidence:.3f})")
        return snapshot

    def get_current_metrics(self, model_type: ModelType) -> Optional[ModelPerformanceMetrics]:
        with self._lock:
            return self._current.get(ModelType(model_type))

    def get_historical_metrics(self, model_type: ModelType) -> List[ModelPerformanceMetrics]:
        """Copy of the retained history, oldest first."""
        with self._lock:
            return [replace(m) for m in self._history.get(ModelType(model_type), [])]

    def get_model_health(self, model_type: ModelType) -> ModelHealthStatus:
        """Status, trends from the two latest snapshots, and recommendations."""
        model_type = ModelType(model_type)
        with self._lock:
            current = self._current.get(model_type)
            history = list(self._history.get(model_type, []))

        if current is None:
            return ModelHealthStatus(model_type=model_type, status=ModelStatus.UNKNOWN)

        performance = validation = confidence = Trend.STABLE
        if len(history) >= 2:
            previous, latest = history[-2], history[-1]
            performance = relative_trend(
                [latest.accuracy, latest.precision, latest.recall, latest.f1_score],
                [previous.accuracy, previous.precision, previous.recall, previous.f1_score],
                self.trend_threshold)
            validation = relative_trend(
                latest.validation.components(), previous.validation.components(), self.trend_threshold)
            confidence = relative_trend([latest.confidence], [previous.confidence], self.trend_threshold)

        return ModelHealthStatus(
            model_type=model_type,
            status=current.status,
            performance_trend=performance,
            validation_trend=validation,
            confidence_trend=confidence,
            last_update=current.timestamp,
            recommendations=self.generate_recommendations(current.status, performance, validation, confidence),
        )

    def get_all_health(self) -> Dict[ModelType, ModelHealthStatus]:
        with self._lock:
            model_types = list(self._current)
        return {t: self.get_model_health(t) for t in model_types}

    @staticmethod
    def generate_recommendations(status: ModelStatus, performance: Trend,
                                 validation: Trend, confidence: Trend) -> List[str]:
        recommendations = []
        if status == ModelStatus.CRITICAL:
            recommendations += [
                "Model performance is critically low and needs attention now",
                "Retrain the model on recent data",
                "Check model assumptions and input data quality",
            ]
        elif status == ModelStatus.WARNING:
            recommendations += [
                "Model performance is below target",
                "Watch the model closely and plan a retrain",
                "Review how market conditions have shifted recently",
            ]
        elif status == ModelStatus.HEALTHY:
            recommendations += [
                "Model is performing well; keep monitoring",
                "Look for feature or parameter improvements",
            ]

        if performance == Trend.DETERIORATING:
            recommendations += [
                "Performance is falling: look for recent changes in market conditions",
                "Refresh model parameters",
            ]
        if validation == Trend.DETERIORATING:
            recommendations += [
                "Validation accuracy is falling: audit data quality",
                "Add more recent market data to the training set",
            ]
        if confidence == Trend.DETERIORATING:
            recommendations += [
                "Confidence is falling: inspect recent forecasts",
                "Revisit model decision thresholds",
            ]
        return recommendations
