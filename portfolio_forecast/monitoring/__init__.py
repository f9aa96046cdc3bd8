# Model monitoring package
"""
Model health tracking.

Modules:
- monitor: ModelPerformanceMonitor, health status and trend classification
"""

from .monitor import (
    ModelPerformanceMonitor,
    ModelPerformanceMetrics,
    ModelHealthStatus,
    ModelStatus,
    Trend,
    classify_status,
)

__all__ = [
    'ModelPerformanceMonitor',
    'ModelPerformanceMetrics',
    'ModelHealthStatus',
    'ModelStatus',
    'Trend',
    'classify_status',
]
